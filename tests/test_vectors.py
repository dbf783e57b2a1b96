import threading

import numpy as np
import pytest

from vecindex.vectors import CapacityError, Memmap, Vectors, VectorsOptions


def test_put_returns_sequential_positions():
    store = Vectors(2, 4)
    assert store.put(10, [1.0, 2.0]) == 0
    assert store.put(20, [3.0, 4.0]) == 1
    assert len(store) == 2


def test_round_trip_values():
    store = Vectors(3, 2)
    i = store.put(123, [0.5, -1.0, 2.0])
    assert store.get_data(i) == 123
    assert store.get_vector(i).tolist() == [0.5, -1.0, 2.0]


def test_large_payload():
    store = Vectors(1, 1)
    payload = (1 << 64) - 1
    store.put(payload, [0.0])
    assert store.get_data(0) == payload


def test_vector_view_is_read_only():
    store = Vectors(2, 1)
    store.put(1, [1.0, 2.0])
    with pytest.raises(ValueError):
        store.get_vector(0)[0] = 5.0


def test_capacity_used_up_stays_full():
    store = Vectors(1, 2)
    store.put(1, [1.0])
    store.put(2, [2.0])
    with pytest.raises(CapacityError):
        store.put(3, [3.0])
    with pytest.raises(CapacityError):
        store.put(4, [4.0])
    assert len(store) == 2


def test_wrong_dimension_rejected():
    store = Vectors(2, 2)
    with pytest.raises(ValueError):
        store.put(1, [1.0, 2.0, 3.0])
    assert len(store) == 0


def test_negative_payload_rejected():
    store = Vectors(1, 1)
    with pytest.raises(ValueError):
        store.put(-1, [1.0])


def test_get_beyond_length():
    store = Vectors(1, 3)
    store.put(1, [1.0])
    with pytest.raises(IndexError):
        store.get_vector(1)
    with pytest.raises(IndexError):
        store.get_data(1)


def test_default_options():
    assert Vectors(1, 1).options.memmap is Memmap.RAM


def test_save_and_load(tmp_path):
    store = Vectors(2, 5, VectorsOptions(Memmap.DISK))
    store.put(7, [1.0, 2.0])
    store.put(8, [3.0, 4.0])
    path = tmp_path / "vectors"
    store.save(path)
    loaded = Vectors.load(path)
    assert len(loaded) == 2
    assert loaded.capacity == 5
    assert loaded.dims == 2
    assert loaded.options.memmap is Memmap.DISK
    assert [loaded.get_data(i) for i in range(2)] == [7, 8]
    assert loaded.get_vector(1).tolist() == [3.0, 4.0]
    assert loaded.put(9, [5.0, 6.0]) == 2


def test_concurrent_puts_use_every_slot():
    store = Vectors(2, 400)
    positions = []
    lock = threading.Lock()

    def worker(start):
        for j in range(100):
            data = start + j
            i = store.put(data, [float(data), 0.0])
            with lock:
                positions.append(i)

    threads = [threading.Thread(target=worker, args=(k * 100,)) for k in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert sorted(positions) == list(range(400))
    for i in range(400):
        assert store.get_vector(i)[0] == np.float32(store.get_data(i))