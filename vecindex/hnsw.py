"""Hierarchical navigable small-world graph index."""

from __future__ import annotations

import bisect
import heapq
import itertools
import math
import os
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from .heaps import FilteredFixedHeap
from .kmeans import Distance
from .pool import Pool
from .vectors import Memmap, Vectors

MAX_LEVEL = 63

Edge = tuple[float, int]


def _cpu_count() -> int:
    return os.cpu_count() or 1


def _default_max_threads() -> int:
    return _cpu_count() * 2


@dataclass
class HnswOptions:
    memmap: Memmap = Memmap.RAM
    build_threads: int = field(default_factory=_cpu_count)
    max_threads: int = field(default_factory=_default_max_threads)
    m: int = 36
    ef_construction: int = 500

    def __post_init__(self) -> None:
        if self.m < 1:
            raise ValueError("m must be at least 1")
        if self.ef_construction < 1:
            raise ValueError("ef_construction must be at least 1")
        if self.max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        if self.build_threads < 0:
            raise ValueError("build_threads must not be negative")


def generate_random_levels(m: int, max_level: int) -> int:
    """Draw the top layer of a new vertex from an exponential distribution."""
    if m < 1:
        raise ValueError("m must be at least 1")
    u = random.random()
    if m == 1 or u == 0.0:
        return max_level
    x = -math.log(u) / math.log(m)
    return min(int(math.floor(x + 0.5)), max_level)


def size_of_a_layer(m: int, i: int) -> int:
    """How many edges a vertex keeps on layer ``i``."""
    return m * 2 if i == 0 else m


class _Visited:
    """Visit marks that are cleared in O(1) by bumping a version."""

    def __init__(self, capacity: int) -> None:
        self._version = 0
        self._marks = [0] * capacity

    def new_version(self) -> "_Visited":
        self._version += 1
        return self

    def test(self, i: int) -> bool:
        return self._marks[i] == self._version

    def set(self, i: int) -> None:
        self._marks[i] = self._version


def _accept_all(_: int) -> bool:
    return True


class Hnsw:
    """A layered proximity graph over the vectors of a :class:`Vectors` table."""

    def __init__(
        self,
        family: Distance,
        dims: int,
        vectors: Vectors,
        options: HnswOptions,
        levels: list[int],
        edges: list[list[tuple[Edge, ...]]],
        entry: int | None,
    ) -> None:
        self._family = family
        self._dims = dims
        self._vectors = vectors
        self._options = options
        self._m = options.m
        self._ef_construction = options.ef_construction
        self._levels = levels
        self._edges = edges
        self._entry = entry
        self._entry_lock = threading.Lock()
        self._locks = [threading.Lock() for _ in levels]
        self._visited: Pool[_Visited] = Pool()
        for _ in range(options.max_threads):
            self._visited.push(_Visited(len(levels)))

    @classmethod
    def build(
        cls,
        family: Distance,
        dims: int,
        capacity: int,
        options: HnswOptions,
        vectors: Vectors,
        n: int,
    ) -> "Hnsw":
        """Create the graph and insert the first ``n`` vectors."""
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if n > len(vectors) or n > capacity:
            raise ValueError("n exceeds the stored vectors or the capacity")
        levels = [generate_random_levels(options.m, MAX_LEVEL) for _ in range(capacity)]
        edges: list[list[tuple[Edge, ...]]] = [[()] * (lv + 1) for lv in levels]
        hnsw = cls(family, dims, vectors, options, levels, edges, None)
        hnsw._insert_range(n, options.build_threads)
        return hnsw

    @classmethod
    def load(
        cls,
        family: Distance,
        dims: int,
        capacity: int,
        options: HnswOptions,
        vectors: Vectors,
        save: dict[str, Any],
    ) -> "Hnsw":
        """Restore a graph from the state returned by :meth:`save`."""
        levels = [int(level) for level in save["levels"]]
        raw_edges = save["edges"]
        entry = save["entry"]
        if len(levels) != capacity or len(raw_edges) != capacity:
            raise ValueError("saved graph does not match the capacity")
        edges: list[list[tuple[Edge, ...]]] = []
        for level, layers in zip(levels, raw_edges):
            if len(layers) != level + 1:
                raise ValueError("saved graph has inconsistent layers")
            edges.append(
                [tuple((float(d), int(v)) for d, v in layer) for layer in layers]
            )
        if entry is not None:
            entry = int(entry)
            if not 0 <= entry < capacity:
                raise ValueError("saved entry point is out of range")
        return cls(family, dims, vectors, options, levels, edges, entry)

    def save(self) -> dict[str, Any]:
        """The graph as plain lists and numbers."""
        return {
            "levels": list(self._levels),
            "entry": self._entry,
            "edges": [
                [[[d, v] for d, v in layer] for layer in vertex]
                for vertex in self._edges
            ],
        }

    def _insert_range(self, n: int, threads: int) -> None:
        counter = itertools.count()
        counter_lock = threading.Lock()
        errors: list[list[BaseException]] = [[] for _ in range(threads)]

        def work(slot: int) -> None:
            while True:
                with counter_lock:
                    i = next(counter)
                if i >= n:
                    return
                try:
                    self.insert(i)
                except BaseException as exc:
                    errors[slot].append(exc)
                    return

        workers = [
            threading.Thread(target=work, args=(slot,), daemon=True)
            for slot in range(threads)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        for failures in errors:
            if failures:
                raise failures[0]

    def insert(self, x: int) -> None:
        """Link vector ``x`` into the graph."""
        if not 0 <= x < len(self._levels):
            raise IndexError(f"vertex {x} out of range for capacity {len(self._levels)}")
        with self._visited.acquire() as visited:
            self._insert(visited, x)

    def search(
        self, target, k: int, keep: Callable[[int], bool] | None = None
    ) -> list[Edge]:
        """The ``k`` nearest accepted ``(distance, data)`` pairs, nearest first."""
        target = np.asarray(target, dtype=np.float32)
        if target.shape != (self._dims,):
            raise ValueError(f"expected a vector of {self._dims} values")
        if k < 1:
            raise ValueError("k must be at least 1")
        u = self._entry
        if u is None:
            return []
        top = self._levels[u]
        u = self._go(top, 1, u, target)
        with self._visited.acquire() as visited:
            return self._filtered_search(
                visited, target, u, k, 0, keep or _accept_all
            )

    def _set_edges(self, u: int, i: int, edges: list[Edge]) -> None:
        limit = size_of_a_layer(self._m, i)
        if len(edges) > limit:
            raise RuntimeError(f"Array is full. The capacity is {limit}.")
        self._edges[u][i] = tuple(edges)

    def _go(self, high: int, low: int, u: int, target) -> int:
        u_dis = self._dist0(u, target)
        for i in range(high, low - 1, -1):
            changed = True
            while changed:
                changed = False
                for _, v in self._edges[u][i]:
                    v_dis = self._dist0(v, target)
                    if v_dis < u_dis:
                        u, u_dis = v, v_dis
                        changed = True
        return u

    def _insert(self, visited: _Visited, vertex: int) -> None:
        target = self._vectors.get_vector(vertex)
        levels = self._levels[vertex]

        def promotes(current: int | None) -> bool:
            return current is None or self._levels[current] < levels

        holding = False
        entry = self._entry
        if promotes(entry):
            self._entry_lock.acquire()
            entry = self._entry
            if promotes(entry):
                holding = True
            else:
                self._entry_lock.release()
        try:
            if entry is None:
                if holding:
                    self._entry = vertex
                return
            u = entry
            top = self._levels[u]
            if top > levels:
                u = self._go(top, levels + 1, u, target)
            layers: list[list[Edge]] = []
            for i in range(min(levels, top), -1, -1):
                found = sorted(
                    self._search(visited, target, u, self._ef_construction, i)
                )
                found = self._select(found, size_of_a_layer(self._m, i))
                u = found[0][1]
                layers.append(found)
            layers.reverse()
            layers.extend([] for _ in range(levels + 1 - len(layers)))
            with self._locks[vertex]:
                for i, layer in enumerate(layers):
                    self._set_edges(vertex, i, layer)
            for i, layer in enumerate(layers):
                for n_dis, n in layer:
                    with self._locks[n]:
                        edges = list(self._edges[n][i])
                        bisect.insort(edges, (n_dis, vertex))
                        edges = self._select(edges, size_of_a_layer(self._m, i))
                        self._set_edges(n, i, edges)
            if holding:
                self._entry = vertex
        finally:
            if holding:
                self._entry_lock.release()

    def _select(self, candidates: list[Edge], size: int) -> list[Edge]:
        if len(candidates) <= size:
            return candidates
        chosen: list[Edge] = []
        for u_dis, u in candidates:
            if len(chosen) == size:
                break
            if all(self._dist1(u, v) > u_dis for _, v in chosen):
                chosen.append((u_dis, u))
        return chosen

    def _search(
        self, visited: _Visited, target, s: int, k: int, i: int
    ) -> list[Edge]:
        if k < 1:
            raise ValueError("k must be at least 1")
        bound = math.inf
        visited = visited.new_version()
        s_dis = self._dist0(s, target)
        visited.set(s)
        candidates: list[Edge] = [(s_dis, s)]
        # Max-heap of results, both fields negated.
        results: list[tuple[float, int]] = [(-s_dis, -s)]
        if len(results) == k:
            bound = -results[0][0]
        while candidates:
            u_dis, u = heapq.heappop(candidates)
            if u_dis > bound:
                break
            for _, v in self._edges[u][i]:
                if visited.test(v):
                    continue
                visited.set(v)
                v_dis = self._dist0(v, target)
                if v_dis > bound:
                    continue
                heapq.heappush(candidates, (v_dis, v))
                heapq.heappush(results, (-v_dis, -v))
                if len(results) == k + 1:
                    heapq.heappop(results)
                if len(results) == k:
                    bound = -results[0][0]
        return [(-d, -v) for d, v in results]

    def _filtered_search(
        self,
        visited: _Visited,
        target,
        s: int,
        k: int,
        i: int,
        keep: Callable[[int], bool],
    ) -> list[Edge]:
        visited = visited.new_version()
        results = FilteredFixedHeap(k, keep)
        s_dis = self._dist0(s, target)
        visited.set(s)
        candidates: list[Edge] = [(s_dis, s)]
        results.push((s_dis, self._vectors.get_data(s)))
        while candidates:
            u_dis, u = heapq.heappop(candidates)
            if u_dis > results.bound():
                break
            for _, v in self._edges[u][i]:
                if visited.test(v):
                    continue
                visited.set(v)
                v_dis = self._dist0(v, target)
                if v_dis > results.bound():
                    continue
                heapq.heappush(candidates, (v_dis, v))
                results.push((v_dis, self._vectors.get_data(v)))
        return results.into_sorted_list()

    def _dist0(self, u: int, target) -> float:
        return self._family.distance(self._vectors.get_vector(u), target)

    def _dist1(self, u: int, v: int) -> float:
        return self._family.distance(
            self._vectors.get_vector(u), self._vectors.get_vector(v)
        )