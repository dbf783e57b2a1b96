import numpy as np
import pytest

from vecindex.vec2 import Vec2


def test_new_is_zeroed():
    table = Vec2(3, 4)
    assert len(table) == 4
    assert table.dims == 3
    assert np.all(table.data == 0)


def test_set_and_get_row():
    table = Vec2(2, 3)
    table[1] = [1.5, -2.0]
    assert list(table[1]) == [1.5, -2.0]
    assert list(table[0]) == [0.0, 0.0]


def test_row_is_a_view():
    table = Vec2(2, 2)
    table[0][1] = 7.0
    assert table.data[0, 1] == 7.0


def test_copy_within():
    table = Vec2.from_rows([[1.0, 2.0], [3.0, 4.0]])
    table.copy_within(0, 1)
    assert list(table[1]) == [1.0, 2.0]
    table[0] = [9.0, 9.0]
    assert list(table[1]) == [1.0, 2.0]


def test_copy_within_out_of_range():
    table = Vec2(2, 2)
    with pytest.raises(IndexError):
        table.copy_within(0, 2)


def test_index_out_of_range():
    table = Vec2.from_rows([[1.0, 2.0], [3.0, 4.0]])
    with pytest.raises(IndexError):
        table[2]
    with pytest.raises(IndexError):
        table[-1]
    assert list(table[1]) == [3.0, 4.0]


def test_wrong_row_width():
    table = Vec2(2, 2)
    with pytest.raises(ValueError):
        table[0] = [1.0, 2.0, 3.0]
    assert list(table[0]) == [0.0, 0.0]


def test_zero_dims_rejected():
    with pytest.raises(ValueError):
        Vec2(0, 3)


def test_fill():
    table = Vec2(2, 2)
    table.fill(3.0)
    assert table.data.tolist() == [[3.0, 3.0], [3.0, 3.0]]