import numpy as np
import pytest

from fgtkde.indexer import SpatialIndexer


def test_round_trip_over_all_boxes():
    indexer = SpatialIndexer((4, 3, 2))

    assert indexer.nboxes == 24
    for box_id in range(indexer.nboxes):
        assert indexer.encode(indexer.decode(box_id)) == box_id


def test_first_axis_varies_fastest():
    indexer = SpatialIndexer((10, 4))

    assert indexer.encode((1, 0)) == 1
    assert indexer.encode((0, 1)) == 10
    assert indexer.decode(37) == (7, 3)
    np.testing.assert_array_equal(
        indexer.encode_many(np.array([[0, 9, 3], [0, 3, 2]])), [0, 39, 23]
    )


def test_neighbors_radius_zero_is_the_box_itself():
    indexer = SpatialIndexer((5, 5))

    assert indexer.neighbors(12, 0) == {12}


def test_neighbors_in_one_dimension():
    indexer = SpatialIndexer((5,))

    assert indexer.neighbors(2, 1) == {1, 2, 3}
    assert indexer.neighbors(0, 1) == {0, 1}
    assert indexer.neighbors(4, 1) == {3, 4}
    assert indexer.neighbors(2, 10) == {0, 1, 2, 3, 4}


def test_neighbors_in_two_dimensions():
    indexer = SpatialIndexer((4, 4))

    interior = indexer.encode((1, 1))
    assert len(indexer.neighbors(interior, 1)) == 9
    assert indexer.neighbors(0, 1) == {0, 1, 4, 5}


def test_invalid_arguments():
    indexer = SpatialIndexer((3, 3))

    with pytest.raises(ValueError):
        indexer.encode((3, 0))
    with pytest.raises(IndexError):
        indexer.decode(9)
    with pytest.raises(ValueError):
        indexer.neighbors(0, -1)
    with pytest.raises(ValueError):
        SpatialIndexer((0, 2))
