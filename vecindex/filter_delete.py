"""Versioned tombstones for deleted pointers."""

from __future__ import annotations

import threading

_POINTER_LIMIT = 1 << 48
_VERSION_MASK = 0xFFFF


def _check_pointer(p: int) -> int:
    if not 0 <= p < _POINTER_LIMIT:
        raise ValueError("pointer must fit in 48 bits")
    return p


class FilterDelete:
    """Tracks insert/delete versions per pointer.

    A stored payload packs the pointer in the upper 48 bits and the version
    it was inserted under in the lower 16 bits.
    """

    def __init__(self) -> None:
        self._data: dict[int, tuple[int, bool]] = {}
        self._lock = threading.Lock()

    def filter(self, x: int) -> int | None:
        """The pointer of payload ``x``, or ``None`` if it has been deleted since."""
        p = x >> 16
        version = x & _VERSION_MASK
        with self._lock:
            cell = self._data.get(p)
        if cell is not None and version < cell[0]:
            return None
        return p

    def on_deleting(self, p: int) -> bool:
        """Mark ``p`` deleted; False if it was already deleted."""
        _check_pointer(p)
        with self._lock:
            cell = self._data.get(p)
            if cell is None:
                self._data[p] = (1, False)
                return True
            version, exists = cell
            if not exists:
                return False
            self._data[p] = ((version + 1) & _VERSION_MASK, False)
            return True

    def on_inserting(self, p: int) -> int:
        """Mark ``p`` present and return its versioned payload."""
        _check_pointer(p)
        with self._lock:
            cell = self._data.get(p)
            version = 0 if cell is None else cell[0]
            self._data[p] = (version, True)
        return (p << 16) | version