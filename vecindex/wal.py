"""A checksummed append-only write-ahead log.

Each record is a native-endian CRC32 of the payload, a native-endian
32-bit payload length, then the payload.
"""

from __future__ import annotations

import enum
import os
import queue
import struct
import threading
import zlib
from typing import BinaryIO

_HEADER = struct.Struct("=II")


class WalStatus(enum.Enum):
    READ = enum.auto()
    TRUNCATE = enum.auto()
    WRITE = enum.auto()
    FLUSH = enum.auto()


class WalStateError(RuntimeError):
    """An operation was attempted that the log's current state does not permit."""


class Wal:
    """A log file that is first replayed, then truncated, then appended to."""

    def __init__(self, file: BinaryIO, status: WalStatus) -> None:
        self._file = file
        self._offset = 0
        self._status = status

    @classmethod
    def open(cls, path: str | os.PathLike) -> "Wal":
        """Open an existing log (creating it if missing) for replay."""
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
        return cls(os.fdopen(fd, "r+b"), WalStatus.READ)

    @classmethod
    def create(cls, path: str | os.PathLike) -> "Wal":
        """Create an empty log, discarding any previous contents."""
        return cls(open(path, "w+b"), WalStatus.WRITE)

    @property
    def status(self) -> WalStatus:
        return self._status

    @property
    def offset(self) -> int:
        """Bytes of valid records read or written so far."""
        return self._offset

    def _require(self, *allowed: WalStatus) -> None:
        if self._status not in allowed:
            raise WalStateError("Operation not permitted.")

    def read(self) -> bytes | None:
        """The next intact record, or ``None`` at the end or at a damaged record."""
        self._require(WalStatus.READ)
        header = self._file.read(_HEADER.size)
        if len(header) < _HEADER.size:
            self._status = WalStatus.TRUNCATE
            return None
        crc, length = _HEADER.unpack(header)
        payload = self._file.read(length)
        if len(payload) < length or zlib.crc32(payload) != crc:
            self._status = WalStatus.TRUNCATE
            return None
        self._offset += _HEADER.size + length
        return payload

    def truncate(self) -> None:
        """Cut off whatever follows the last intact record."""
        self._require(WalStatus.TRUNCATE)
        self._file.truncate(self._offset)
        self._file.seek(self._offset)
        self._sync()
        self._status = WalStatus.FLUSH

    def write(self, data: bytes) -> None:
        self._require(WalStatus.WRITE, WalStatus.FLUSH)
        data = bytes(data)
        self._file.write(_HEADER.pack(zlib.crc32(data), len(data)))
        self._file.write(data)
        self._offset += _HEADER.size + len(data)
        self._status = WalStatus.WRITE

    def flush(self) -> None:
        self._require(WalStatus.WRITE, WalStatus.FLUSH)
        self._sync()
        self._status = WalStatus.FLUSH

    def _sync(self) -> None:
        self._file.flush()
        os.fsync(self._file.fileno())

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "Wal":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


_WRITE = "write"
_FLUSH = "flush"
_SHUTDOWN = "shutdown"


class WalWriter:
    """Appends to a log on a background thread."""

    def __init__(self, wal: Wal) -> None:
        if wal.status not in (WalStatus.WRITE, WalStatus.FLUSH):
            raise WalStateError("Operation not permitted.")
        self._wal = wal
        self._queue: "queue.Queue[tuple[str, object]]" = queue.Queue(maxsize=256)
        self._lock = threading.Lock()
        self._closed = False
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while True:
            kind, payload = self._queue.get()
            try:
                if self._error is None:
                    if kind == _WRITE:
                        self._wal.write(payload)  # type: ignore[arg-type]
                    else:
                        self._wal.flush()
            except Exception as exc:  # reported to the caller on flush/shutdown
                self._error = exc
            finally:
                if kind != _WRITE:
                    payload.set()  # type: ignore[union-attr]
            if kind == _SHUTDOWN:
                return

    def _send(self, kind: str, payload: object) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Wal thread exited.")
            if kind == _SHUTDOWN:
                self._closed = True
            self._queue.put((kind, payload))

    def _raise_error(self) -> None:
        if self._error is not None:
            raise self._error

    def write(self, data: bytes) -> None:
        """Queue a record for appending."""
        self._raise_error()
        self._send(_WRITE, bytes(data))

    def flush(self) -> None:
        """Wait until every queued record is written and synced."""
        done = threading.Event()
        self._send(_FLUSH, done)
        done.wait()
        self._raise_error()

    def shutdown(self) -> None:
        """Flush, stop the background thread and close the log."""
        done = threading.Event()
        self._send(_SHUTDOWN, done)
        done.wait()
        self._thread.join()
        self._wal.close()
        self._raise_error()