import threading

from vecindex.pool import Pool


def test_acquire_returns_pushed_item():
    pool = Pool()
    pool.push("a")
    with pool.acquire() as item:
        assert item == "a"
    with pool.acquire() as item:
        assert item == "a"


def test_distinct_items_held_at_once():
    pool = Pool()
    pool.push(1)
    pool.push(2)
    with pool.acquire() as first, pool.acquire() as second:
        assert {first, second} == {1, 2}


def test_mutation_persists_after_release():
    pool = Pool()
    pool.push([])
    with pool.acquire() as item:
        item.append("x")
    with pool.acquire() as item:
        assert item == ["x"]


def test_item_returned_after_exception():
    pool = Pool()
    pool.push("only")
    try:
        with pool.acquire():
            raise KeyError("boom")
    except KeyError:
        pass
    with pool.acquire() as item:
        assert item == "only"


def test_acquire_waits_for_release():
    pool = Pool()
    pool.push(0)
    seen = []
    released = threading.Event()

    def worker():
        with pool.acquire() as item:
            seen.append((item, released.is_set()))

    with pool.acquire() as held:
        assert held == 0
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join(0.1)
        assert seen == []
        released.set()
    thread.join(5)
    assert seen == [(0, True)]
    with pool.acquire() as item:
        assert item == 0