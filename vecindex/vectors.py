"""Fixed-capacity storage of vectors and their payloads."""

from __future__ import annotations

import enum
import os
import threading
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

_U64_LIMIT = 1 << 64


class Memmap(enum.Enum):
    """Where a structure prefers to live."""

    RAM = "ram"
    DISK = "disk"


@dataclass(frozen=True)
class VectorsOptions:
    memmap: Memmap = field(default=Memmap.RAM)


class CapacityError(RuntimeError):
    """The store has no room for another vector."""


class Vectors:
    """Append-only table of float32 vectors, each with a 64-bit payload."""

    def __init__(
        self, dims: int, capacity: int, options: VectorsOptions | None = None
    ) -> None:
        if dims < 1:
            raise ValueError("dims must be at least 1")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.options = options or VectorsOptions()
        self._dims = dims
        self._capacity = capacity
        self._data = np.zeros(capacity, dtype=np.uint64)
        self._vectors = np.zeros((capacity, dims), dtype=np.float32)
        self._len = 0
        self._lock = threading.Lock()

    @property
    def dims(self) -> int:
        return self._dims

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._len

    def put(self, data: int, vector: Iterable[float]) -> int:
        """Append a vector with its payload and return its position."""
        if not 0 <= data < _U64_LIMIT:
            raise ValueError("data must fit in 64 unsigned bits")
        row = np.asarray(vector, dtype=np.float32)
        if row.shape != (self._dims,):
            raise ValueError(f"expected a vector of {self._dims} values")
        with self._lock:
            i = self._len
            if i >= self._capacity:
                raise CapacityError("The capacity is used up.")
            self._data[i] = data
            self._vectors[i] = row
            self._len = i + 1
        return i

    def _check(self, i: int) -> int:
        if not 0 <= i < self._len:
            raise IndexError(f"vector {i} out of range for {self._len} vectors")
        return i

    def get_data(self, i: int) -> int:
        return int(self._data[self._check(i)])

    def get_vector(self, i: int) -> np.ndarray:
        """A read-only view of vector ``i``."""
        view = self._vectors[self._check(i)]
        view.flags.writeable = False
        return view

    def save(self, path: str | os.PathLike) -> None:
        """Write the stored vectors to ``path``."""
        with open(path, "wb") as f:
            np.savez(
                f,
                dims=np.int64(self._dims),
                capacity=np.int64(self._capacity),
                memmap=np.array(self.options.memmap.value),
                data=self._data[: self._len],
                vectors=self._vectors[: self._len],
            )

    @classmethod
    def load(cls, path: str | os.PathLike) -> "Vectors":
        """Read vectors previously written by :meth:`save`."""
        with open(path, "rb") as f, np.load(f, allow_pickle=False) as archive:
            store = cls(
                int(archive["dims"]),
                int(archive["capacity"]),
                VectorsOptions(Memmap(str(archive["memmap"]))),
            )
            data = archive["data"]
            count = len(data)
            store._data[:count] = data
            store._vectors[:count] = archive["vectors"]
            store._len = count
        return store