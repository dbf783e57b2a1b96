"""Bounded heaps that keep the smallest items pushed into them."""

from __future__ import annotations

import heapq
import math
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Item = tuple[float, int]


class FilteredFixedHeap:
    """Keeps the ``size`` smallest ``(distance, data)`` pairs accepted by ``keep``.

    ``keep`` is consulted only for items that would enter the heap, so
    candidates that are already worse than the current bound never reach it.
    """

    def __init__(self, size: int, keep: Callable[[int], bool]) -> None:
        self._size = size
        self._keep = keep
        # Max-heap emulated by negating both fields.
        self._heap: list[tuple[float, int]] = []

    def __len__(self) -> int:
        return len(self._heap)

    def _top(self) -> Item:
        distance, data = self._heap[0]
        return (-distance, -data)

    def push(self, item: Item) -> None:
        """Offer an item; it is kept if it is among the best seen and accepted."""
        distance, data = float(item[0]), int(item[1])
        entry = (-distance, -data)
        if len(self._heap) < self._size:
            if self._keep(data):
                heapq.heappush(self._heap, entry)
        elif self._top() > (distance, data):
            if self._keep(data):
                heapq.heapreplace(self._heap, entry)

    def bound(self) -> float:
        """Distance an item must beat to enter; infinite until the heap is full."""
        if len(self._heap) < self._size:
            return math.inf
        return self._top()[0]

    def into_sorted_list(self) -> list[Item]:
        """The kept items in ascending order."""
        return sorted((-distance, -data) for distance, data in self._heap)


class _Reversed(Generic[T]):
    __slots__ = ("value",)

    def __init__(self, value: T) -> None:
        self.value = value

    def __lt__(self, other: "_Reversed[T]") -> bool:
        return other.value < self.value  # type: ignore[operator]


class FixedHeap(Generic[T]):
    """Keeps the ``size`` smallest items pushed into it."""

    def __init__(self, size: int) -> None:
        self._size = size
        self._heap: list[_Reversed[T]] = []

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, item: T) -> None:
        heapq.heappush(self._heap, _Reversed(item))
        if len(self._heap) > self._size:
            heapq.heappop(self._heap)

    def items(self) -> list[T]:
        """The kept items in ascending order."""
        return sorted(entry.value for entry in self._heap)