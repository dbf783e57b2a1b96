"""Distance families and Elkan's accelerated k-means clustering."""

from __future__ import annotations

import enum

import numpy as np

from .vec2 import Vec2

DELTA = 1.0 / 1024.0

_CHUNK_ELEMENTS = 1 << 22


def _as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _l2_normalize(values) -> np.ndarray:
    values = _as_array(values)
    norms = np.linalg.norm(values, axis=-1, keepdims=True)
    return values / np.where(norms > 0, norms, 1.0)


def _pairwise_squared_l2(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Squared Euclidean distances between every row of ``a`` and of ``b``."""
    out = np.empty((a.shape[0], b.shape[0]), dtype=np.float64)
    step = max(1, _CHUNK_ELEMENTS // max(1, b.shape[0] * max(1, a.shape[1])))
    for start in range(0, a.shape[0], step):
        diff = a[start : start + step, None, :] - b[None, :, :]
        out[start : start + step] = np.einsum("ijk,ijk->ij", diff, diff)
    return out


class Distance(enum.Enum):
    """A distance family: search distance, clustering metric and quantization state."""

    L2 = "l2"
    COSINE = "cosine"
    DOT = "dot"

    def distance(self, lhs, rhs) -> float:
        """Search distance: smaller is closer."""
        lhs, rhs = _as_array(lhs), _as_array(rhs)
        if self is Distance.L2:
            diff = lhs - rhs
            return float(np.dot(diff, diff))
        if self is Distance.DOT:
            return float(-np.dot(lhs, rhs))
        with np.errstate(divide="ignore", invalid="ignore"):
            denom = np.sqrt(np.dot(lhs, lhs) * np.dot(rhs, rhs))
            return float(-(np.dot(lhs, rhs) / denom))

    def elkan_k_means_normalize(self, vectors) -> np.ndarray:
        """Vectors prepared for clustering, one per row of the last axis."""
        if self is Distance.L2:
            return _as_array(vectors).copy()
        return _l2_normalize(vectors)

    def elkan_k_means_distance(self, lhs, rhs) -> np.ndarray:
        """Clustering metric, taken along the last axis with broadcasting."""
        lhs, rhs = _as_array(lhs), _as_array(rhs)
        if self is Distance.L2:
            diff = lhs - rhs
            return np.sqrt(np.sum(diff * diff, axis=-1))
        return np.arccos(np.clip(np.sum(lhs * rhs, axis=-1), -1.0, 1.0))

    def elkan_k_means_pairwise(self, a, b) -> np.ndarray:
        """Clustering metric between every row of ``a`` and every row of ``b``."""
        a, b = np.atleast_2d(_as_array(a)), np.atleast_2d(_as_array(b))
        if self is Distance.L2:
            return np.sqrt(_pairwise_squared_l2(a, b))
        return np.arccos(np.clip(a @ b.T, -1.0, 1.0))

    @property
    def state_size(self) -> int:
        return 3 if self is Distance.COSINE else 1

    def quantization_initial_state(self) -> np.ndarray:
        return np.zeros(self.state_size, dtype=np.float64)

    def quantization_pairwise(self, a, b) -> np.ndarray:
        """Quantization states for every pair of rows, shaped ``(len(a), len(b), k)``."""
        a, b = np.atleast_2d(_as_array(a)), np.atleast_2d(_as_array(b))
        if self is Distance.L2:
            return _pairwise_squared_l2(a, b)[..., None]
        dots = a @ b.T
        if self is Distance.DOT:
            return dots[..., None]
        xx = np.broadcast_to(np.sum(a * a, axis=1)[:, None], dots.shape)
        yy = np.broadcast_to(np.sum(b * b, axis=1)[None, :], dots.shape)
        return np.stack([dots, xx, yy], axis=-1)

    def quantization_new(self, lhs, rhs) -> np.ndarray:
        return self.quantization_pairwise(lhs, rhs)[0, 0].copy()

    @staticmethod
    def quantization_merge(state: np.ndarray, delta: np.ndarray) -> np.ndarray:
        return state + delta

    def quantization_finish(self, state) -> float:
        state = _as_array(state)
        if self is Distance.L2:
            return float(state[0])
        if self is Distance.DOT:
            return float(-state[0])
        xy, xx, yy = state
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(-(xy / np.sqrt(xx * yy)))


def _ratio(numerator: float, denominator: int) -> float:
    if denominator > 0:
        return numerator / denominator
    if numerator > 0:
        return float("inf")
    if numerator < 0:
        return float("-inf")
    return float("nan")


class ElkanKMeans:
    """k-means with triangle-inequality bounds, seeded by weighted sampling."""

    def __init__(self, family: Distance, c: int, samples: Vec2, rng=None) -> None:
        data = _as_array(samples.data)
        n, dims = data.shape
        if c < 1:
            raise ValueError("c must be at least 1")
        if n < c:
            raise ValueError(f"need at least {c} samples, got {n}")
        self._family = family
        self._c = c
        self._dims = dims
        self._samples = data
        self._rng = np.random.default_rng(rng)

        centroids = np.zeros((c, dims), dtype=np.float64)
        lower = np.empty((n, c), dtype=np.float64)
        centroids[0] = data[self._rng.integers(n)]
        weight = np.full(n, np.inf)
        for i in range(c):
            dis = family.elkan_k_means_distance(data, centroids[i])
            lower[:, i] = dis
            weight = np.minimum(weight, dis * dis)
            if i + 1 == c:
                break
            choice = weight.sum() * self._rng.random()
            hits = np.flatnonzero(choice - np.cumsum(weight[:-1]) <= 0)
            index = int(hits[0]) if hits.size else n - 1
            centroids[i + 1] = data[index]

        self._centroids = centroids
        self._lower = lower
        self._assign = np.argmin(lower, axis=1)
        self._upper = lower[np.arange(n), self._assign]

    @property
    def centroids(self) -> Vec2:
        return self._to_vec2(self._centroids)

    def _to_vec2(self, rows: np.ndarray) -> Vec2:
        table = Vec2(self._dims, self._c)
        table.data[:] = rows
        return table

    def iterate(self) -> bool:
        """Run one round; True when no sample changed its cluster."""
        family = self._family
        c, data = self._c, self._samples
        n = data.shape[0]
        centroids = self._centroids

        half = family.elkan_k_means_pairwise(centroids, centroids) * 0.5
        np.fill_diagonal(half, np.inf)
        nearest_other = half.min(axis=1)

        change = 0
        stale = np.flatnonzero(self._upper > nearest_other[self._assign])
        if stale.size:
            dis = family.elkan_k_means_pairwise(data[stale], centroids)
            self._lower[stale] = dis
            rows = np.arange(stale.size)
            current = self._assign[stale]
            current_dis = dis[rows, current]
            best = np.argmin(dis, axis=1)
            best_dis = dis[rows, best]
            moved = best_dis < current_dis
            self._assign[stale] = np.where(moved, best, current)
            self._upper[stale] = np.where(moved, best_dis, current_dis)
            change = int(np.count_nonzero(moved))

        sums = np.zeros_like(centroids)
        np.add.at(sums, self._assign, data)
        count = np.bincount(self._assign, minlength=c).astype(np.float64)
        fresh = np.zeros_like(centroids)
        filled = count > 0
        fresh[filled] = sums[filled] / count[filled, None]

        signs = np.where(np.arange(self._dims) % 2 == 0, 1.0, -1.0)
        for i in np.flatnonzero(count == 0):
            o = 0
            while True:
                alpha = self._rng.random()
                if alpha < _ratio(count[o] - 1.0, n - c):
                    break
                o = (o + 1) % c
            fresh[i] = fresh[o] * (1.0 + DELTA * signs)
            fresh[o] = fresh[o] * (1.0 - DELTA * signs)
            count[i] = count[o] / 2.0
            count[o] = count[o] - count[i]
        fresh = family.elkan_k_means_normalize(fresh)

        shift = family.elkan_k_means_distance(centroids, fresh)
        self._lower = np.maximum(self._lower - shift[None, :], 0.0)
        self._upper = self._upper + shift[self._assign]
        self._centroids = fresh
        return change == 0

    def finish(self) -> Vec2:
        """The current centroids."""
        return self.centroids