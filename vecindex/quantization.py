"""Vector quantizers and a store of quantized codes."""

from __future__ import annotations

import copy
from dataclasses import dataclass

import numpy as np

from .kmeans import Distance, ElkanKMeans
from .vec2 import Vec2
from .vectors import Vectors

SUBSPACE_DIMS = 2
CODEBOOK_SIZE = 256
_KMEANS_ROUNDS = 200


def _row(vector, dims: int) -> np.ndarray:
    row = np.asarray(vector, dtype=np.float64)
    if row.shape != (dims,):
        raise ValueError(f"expected a vector of {dims} values")
    return row


def _codes(code, width: int) -> np.ndarray:
    array = np.frombuffer(bytes(code), dtype=np.uint8)
    if array.shape != (width,):
        raise ValueError(f"expected a code of {width} bytes")
    return array


@dataclass(eq=False)
class ScalarQuantization:
    """One byte per dimension, scaled between the sampled minimum and maximum."""

    family: Distance
    dims: int
    upper: np.ndarray
    lower: np.ndarray

    @classmethod
    def build(cls, family: Distance, samples: Vec2) -> "ScalarQuantization":
        """Fit to ``samples``."""
        if len(samples) == 0:
            raise ValueError("at least one sample is required")
        data = np.asarray(samples.data, dtype=np.float64)
        return cls(family, samples.dims, data.max(axis=0), data.min(axis=0))

    def _span(self) -> np.ndarray:
        return self.upper - self.lower

    def process(self, vector) -> bytes:
        row = _row(vector, self.dims)
        with np.errstate(divide="ignore", invalid="ignore"):
            scaled = (row - self.lower) / self._span() * 256.0
        scaled = np.where(np.isnan(scaled), 0.0, np.trunc(scaled))
        return np.clip(scaled, 0, 255).astype(np.uint8).tobytes()

    def _decode(self, code) -> np.ndarray:
        values = _codes(code, self.dims).astype(np.float64)
        return values / 256.0 * self._span() + self.lower

    def distance(self, lhs, rhs) -> float:
        state = self.family.quantization_new(self._decode(lhs), self._decode(rhs))
        return self.family.quantization_finish(state)

    @staticmethod
    def width_dims(dims: int) -> int:
        return dims

    def width(self) -> int:
        return self.dims


@dataclass(eq=False)
class ProductQuantization:
    """One byte per pair of dimensions, indexing a 256-entry codebook."""

    family: Distance
    dims: int
    centroids: list[Vec2]
    matrices: list[np.ndarray]

    @classmethod
    def build(cls, family: Distance, samples: Vec2) -> "ProductQuantization":
        """Fit one codebook per subspace; needs at least 256 samples."""
        dims = samples.dims
        n = len(samples)
        centroids: list[Vec2] = []
        matrices: list[np.ndarray] = []
        for start in range(0, dims, SUBSPACE_DIMS):
            sub = samples.data[:, start : start + SUBSPACE_DIMS]
            subsamples = Vec2(sub.shape[1], n)
            subsamples.data[:] = sub
            k_means = ElkanKMeans(Distance.L2, CODEBOOK_SIZE, subsamples)
            for _ in range(_KMEANS_ROUNDS):
                if k_means.iterate():
                    break
            codebook = k_means.finish()
            centroids.append(codebook)
            matrices.append(family.quantization_pairwise(codebook.data, codebook.data))
        return cls(family, dims, centroids, matrices)

    def process(self, vector) -> bytes:
        row = _row(vector, self.dims)
        result = bytearray()
        for index, codebook in enumerate(self.centroids):
            start = index * SUBSPACE_DIMS
            part = row[start : start + codebook.dims]
            diff = np.asarray(codebook.data, dtype=np.float64) - part
            result.append(int(np.argmin(np.einsum("ij,ij->i", diff, diff))))
        return bytes(result)

    def distance(self, lhs, rhs) -> float:
        width = self.width()
        left, right = _codes(lhs, width), _codes(rhs, width)
        state = self.family.quantization_initial_state()
        for matrix, x, y in zip(self.matrices, left, right):
            state = self.family.quantization_merge(state, matrix[x, y])
        return self.family.quantization_finish(state)

    @staticmethod
    def width_dims(dims: int) -> int:
        return -(-dims // SUBSPACE_DIMS)

    def width(self) -> int:
        return self.width_dims(self.dims)


Quantization = ScalarQuantization | ProductQuantization


class QuantizedStore:
    """Quantized codes for the vectors of a :class:`Vectors` table."""

    def __init__(self, vectors: Vectors, quantization: Quantization, capacity: int) -> None:
        self._vectors = vectors
        self._quantization = quantization
        self._width = quantization.width()
        self._data = np.zeros((capacity, self._width), dtype=np.uint8)

    @classmethod
    def build(
        cls,
        quantization_type: type,
        family: Distance,
        vectors: Vectors,
        n: int,
        sample_size: int,
        capacity: int,
    ) -> "QuantizedStore":
        """Fit a quantizer on a random sample of the first ``n`` vectors and encode them."""
        rng = np.random.default_rng()
        m = min(n, sample_size)
        chosen = rng.choice(n, size=m, replace=False) if m else np.empty(0, dtype=int)
        samples = Vec2(vectors.dims, m)
        for row, index in enumerate(chosen):
            samples[row] = vectors.get_vector(int(index))
        quantization = quantization_type.build(family, samples)
        store = cls(vectors, quantization, capacity)
        for i in range(n):
            store.insert(i)
        return store

    @classmethod
    def load(cls, vectors: Vectors, quantization: Quantization, capacity: int) -> "QuantizedStore":
        """Restore a store from a saved quantizer, encoding the vectors present."""
        store = cls(vectors, quantization, capacity)
        for i in range(len(vectors)):
            store.insert(i)
        return store

    def save(self) -> Quantization:
        return copy.deepcopy(self._quantization)

    def insert(self, x: int) -> None:
        code = self._quantization.process(self._vectors.get_vector(x))
        self._data[x] = np.frombuffer(code, dtype=np.uint8)

    def process(self, vector) -> bytes:
        return self._quantization.process(vector)

    def distance(self, lhs, rhs) -> float:
        return self._quantization.distance(lhs, rhs)

    def get_vector(self, i: int) -> bytes:
        return self._data[i].tobytes()