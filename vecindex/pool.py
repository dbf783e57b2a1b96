"""A blocking pool of reusable objects."""

from __future__ import annotations

import queue
from contextlib import contextmanager
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class Pool(Generic[T]):
    """Hands out items one holder at a time, waiting when all are in use."""

    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[T]" = queue.SimpleQueue()

    def push(self, item: T) -> None:
        """Add an item to the pool."""
        self._queue.put(item)

    @contextmanager
    def acquire(self) -> Iterator[T]:
        """Borrow an item for the duration of a ``with`` block."""
        item = self._queue.get()
        try:
            yield item
        finally:
            self._queue.put(item)