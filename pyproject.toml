[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vecindex"
version = "0.1.0"
description = "Building blocks for vector similarity search: an HNSW graph, k-means, quantizers, a vector store and a write-ahead log"
requires-python = ">=3.10"
keywords = ["vector", "search", "hnsw", "k-means", "quantization", "nearest-neighbor", "wal"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Scientific/Engineering :: Information Analysis",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vecindex"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
