"""Vector search building blocks: HNSW graph, k-means, quantizers, vector store, tombstones and a write-ahead log."""

__version__ = "0.1.0"