import numpy as np
import pytest

from splitvoxel.tables import CORNER_OFFSETS, EDGE_CORNERS, EDGE_TABLE, TRI_TABLE


def test_table_shapes():
    assert CORNER_OFFSETS.shape == (8, 3)
    assert EDGE_CORNERS.shape == (12, 2)
    assert EDGE_TABLE.shape == (256,)
    assert TRI_TABLE.shape == (256, 16)


def test_edges_join_adjacent_corners():
    for a, b in EDGE_CORNERS:
        assert np.abs(CORNER_OFFSETS[a] - CORNER_OFFSETS[b]).sum() == 1


def test_edge_table_marks_straddling_edges():
    for index in range(256):
        for edge, (a, b) in enumerate(EDGE_CORNERS):
            straddles = bool(index >> a & 1) != bool(index >> b & 1)
            assert bool(EDGE_TABLE[index] >> edge & 1) == straddles


def test_triangle_rows_use_exactly_the_crossed_edges():
    for index in range(256):
        row = TRI_TABLE[index]
        count = int(np.argmax(row == -1))
        assert row[15] == -1
        assert count % 3 == 0 and count <= 15
        assert np.all(row[count:] == -1)
        used = 0
        for edge in row[:count]:
            used |= 1 << int(edge)
        assert used == EDGE_TABLE[index]


def test_uniform_cubes_have_no_triangles():
    assert EDGE_TABLE[0] == 0 and EDGE_TABLE[255] == 0
    assert np.all(TRI_TABLE[0] == -1) and np.all(TRI_TABLE[255] == -1)


def test_tables_are_read_only():
    with pytest.raises(ValueError):
        TRI_TABLE[1, 0] = 4
