"""A dense table of fixed-width float32 rows."""

from __future__ import annotations

import operator
from typing import Iterable

import numpy as np


class Vec2:
    """``n`` rows of ``dims`` float32 values, zero-initialised."""

    def __init__(self, dims: int, n: int) -> None:
        if dims < 1:
            raise ValueError("dims must be at least 1")
        if n < 0:
            raise ValueError("n must not be negative")
        self._data = np.zeros((n, dims), dtype=np.float32)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[float]]) -> "Vec2":
        """Build a table from an iterable of equal-length rows."""
        array = np.asarray([list(row) for row in rows], dtype=np.float32)
        if array.ndim != 2:
            raise ValueError("rows must be a non-empty two-dimensional sequence")
        table = cls(array.shape[1], array.shape[0])
        table._data[:] = array
        return table

    @property
    def dims(self) -> int:
        return self._data.shape[1]

    @property
    def data(self) -> np.ndarray:
        """The underlying ``(n, dims)`` array."""
        return self._data

    def __len__(self) -> int:
        return self._data.shape[0]

    def _check(self, index: int) -> int:
        index = operator.index(index)
        if not 0 <= index < len(self):
            raise IndexError(f"row {index} out of range for {len(self)} rows")
        return index

    def __getitem__(self, index: int) -> np.ndarray:
        return self._data[self._check(index)]

    def __setitem__(self, index: int, value: Iterable[float]) -> None:
        row = np.asarray(value, dtype=np.float32)
        if row.shape != (self.dims,):
            raise ValueError(f"expected a row of {self.dims} values")
        self._data[self._check(index)] = row

    def copy_within(self, i: int, j: int) -> None:
        """Copy row ``i`` over row ``j``."""
        i = self._check(i)
        j = self._check(j)
        if i != j:
            self._data[j] = self._data[i]

    def fill(self, value: float) -> None:
        self._data.fill(value)