import pytest

from vecindex.wal import Wal, WalStateError, WalStatus, WalWriter


def _write_records(path, records):
    with Wal.create(path) as wal:
        for record in records:
            wal.write(record)
        wal.flush()


def _read_all(wal):
    records = []
    while (record := wal.read()) is not None:
        records.append(record)
    return records


def test_round_trip(tmp_path):
    path = tmp_path / "log"
    records = [b"first", b"", b"third record"]
    _write_records(path, records)
    with Wal.open(path) as wal:
        assert _read_all(wal) == records
        assert wal.status is WalStatus.TRUNCATE


def test_empty_record_wire_format(tmp_path):
    path = tmp_path / "log"
    with Wal.create(path) as wal:
        wal.write(b"")
        wal.flush()
        assert wal.status is WalStatus.FLUSH
    assert path.read_bytes() == b"\x00" * 8


def test_record_size_on_disk(tmp_path):
    path = tmp_path / "log"
    with Wal.create(path) as wal:
        wal.write(b"abc")
        wal.write(b"defgh")
        assert wal.status is WalStatus.WRITE
        wal.flush()
    assert path.stat().st_size == (8 + 3) + (8 + 5)


def test_damaged_tail_is_truncated(tmp_path):
    path = tmp_path / "log"
    _write_records(path, [b"good", b"also good"])
    size = path.stat().st_size
    with open(path, "r+b") as f:
        f.seek(size - 1)
        f.write(b"\xff")
    with Wal.open(path) as wal:
        assert _read_all(wal) == [b"good"]
        wal.truncate()
        assert wal.status is WalStatus.FLUSH
        wal.write(b"new")
        wal.flush()
    with Wal.open(path) as wal:
        assert _read_all(wal) == [b"good", b"new"]


def test_partial_header_is_truncated(tmp_path):
    path = tmp_path / "log"
    _write_records(path, [b"keep"])
    with open(path, "ab") as f:
        f.write(b"\x01\x02\x03")
    with Wal.open(path) as wal:
        assert _read_all(wal) == [b"keep"]
        wal.truncate()
    assert path.stat().st_size == 8 + 4


def test_open_creates_missing_file(tmp_path):
    path = tmp_path / "missing"
    with Wal.open(path) as wal:
        assert wal.read() is None
    assert path.exists()


def test_write_while_reading_rejected(tmp_path):
    path = tmp_path / "log"
    _write_records(path, [b"x"])
    with Wal.open(path) as wal:
        with pytest.raises(WalStateError):
            wal.write(b"y")


def test_read_while_writing_rejected(tmp_path):
    with Wal.create(tmp_path / "log") as wal:
        with pytest.raises(WalStateError):
            wal.read()
        with pytest.raises(WalStateError):
            wal.truncate()


def test_writer_rejects_reading_log(tmp_path):
    path = tmp_path / "log"
    _write_records(path, [])
    with Wal.open(path) as wal:
        with pytest.raises(WalStateError):
            WalWriter(wal)


def test_writer_persists_records(tmp_path):
    path = tmp_path / "log"
    writer = WalWriter(Wal.create(path))
    payloads = [bytes([i]) * i for i in range(50)]
    for payload in payloads:
        writer.write(payload)
    writer.flush()
    writer.write(b"tail")
    writer.shutdown()
    with Wal.open(path) as wal:
        assert _read_all(wal) == payloads + [b"tail"]


def test_writer_after_shutdown(tmp_path):
    writer = WalWriter(Wal.create(tmp_path / "log"))
    writer.shutdown()
    with pytest.raises(RuntimeError):
        writer.write(b"late")
    with pytest.raises(RuntimeError):
        writer.shutdown()