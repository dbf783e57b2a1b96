import pytest

from vecindex.filter_delete import FilterDelete


def test_insert_encodes_pointer_and_version():
    fd = FilterDelete()
    x = fd.on_inserting(42)
    assert x >> 16 == 42
    assert x & 0xFFFF == 0
    assert fd.filter(x) == 42


def test_unknown_payload_passes():
    fd = FilterDelete()
    assert fd.filter(7 << 16) == 7


def test_delete_hides_old_version():
    fd = FilterDelete()
    x = fd.on_inserting(5)
    assert fd.on_deleting(5) is True
    assert fd.filter(x) is None


def test_double_delete_returns_false():
    fd = FilterDelete()
    fd.on_inserting(5)
    assert fd.on_deleting(5) is True
    assert fd.on_deleting(5) is False


def test_reinsert_gets_new_version():
    fd = FilterDelete()
    old = fd.on_inserting(9)
    fd.on_deleting(9)
    new = fd.on_inserting(9)
    assert new >> 16 == 9
    assert new & 0xFFFF == (old & 0xFFFF) + 1
    assert fd.filter(new) == 9
    assert fd.filter(old) is None


def test_delete_before_insert():
    fd = FilterDelete()
    assert fd.on_deleting(3) is True
    x = fd.on_inserting(3)
    assert x & 0xFFFF == 1
    assert fd.filter(x) == 3
    assert fd.filter(3 << 16) is None


def test_pointer_out_of_range():
    fd = FilterDelete()
    with pytest.raises(ValueError):
        fd.on_inserting(1 << 48)
    with pytest.raises(ValueError):
        fd.on_deleting(-1)