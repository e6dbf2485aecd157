import numpy as np
import pytest

from fgtkde.assignment import Box
from fgtkde.expansion import ExpansionEngine
from fgtkde.functions.cpu_numba import hermite_table, tensor_product
from fgtkde.multiindex import MultiIndexTable

BANDWIDTH = 1.0
ORDER = 16


def _box(box_id: int, centroid, *, queries=0, references=0) -> Box:
    return Box(
        id=box_id,
        coords=(box_id,),
        centroid=np.asarray(centroid, dtype=np.float64),
        query_rows=np.arange(queries, dtype=np.int64),
        reference_rows=np.arange(references, dtype=np.int64),
    )


def _cluster(rng, center, count: int, spread: float = 0.3) -> np.ndarray:
    center = np.asarray(center, dtype=np.float64)[:, None]
    return np.ascontiguousarray(
        center + rng.uniform(-spread, spread, size=(center.shape[0], count))
    )


def _direct_sum(queries: np.ndarray, references: np.ndarray) -> np.ndarray:
    diff = queries[:, :, None] - references[:, None, :]
    return np.exp(-np.sum(diff**2, axis=0) / (2.0 * BANDWIDTH**2)).sum(axis=1)


def _engine(dimension: int = 2) -> ExpansionEngine:
    return ExpansionEngine(MultiIndexTable(ORDER, dimension), BANDWIDTH)


def test_hermite_table_recurrence():
    u = np.array([0.3, -1.2])
    table = hermite_table(u, 1.0, 4)

    h0 = np.exp(-u * u)
    np.testing.assert_allclose(table[:, 0], h0)
    np.testing.assert_allclose(table[:, 1], 2 * u * h0)
    np.testing.assert_allclose(table[:, 2], (4 * u**2 - 2) * h0)
    np.testing.assert_allclose(table[:, 3], (8 * u**3 - 12 * u) * h0)


def test_tensor_product_matches_multiindex_layout():
    table = MultiIndexTable(3, 3)
    factors = np.arange(1.0, 10.0).reshape(3, 3)

    product = tensor_product(factors, 3, table.size)

    expected = np.prod(factors[np.arange(3), table.multiindex], axis=1)
    np.testing.assert_allclose(product, expected)


def test_far_field_matches_direct_sum():
    rng = np.random.default_rng(0)
    engine = _engine()
    references = _cluster(rng, [0.0, 0.0], 20)
    queries = _cluster(rng, [1.5, -0.8], 7)
    source = _box(0, [0.0, 0.0], references=20)

    moments = engine.compute_far_field_moments(source, references)
    densities = np.zeros(7)
    engine.evaluate_far_field(source, queries, np.arange(7, dtype=np.int64), densities)

    assert moments[0] == 20
    np.testing.assert_allclose(densities, _direct_sum(queries, references), rtol=1e-8)


def test_moments_are_computed_once():
    rng = np.random.default_rng(1)
    engine = _engine()
    references = _cluster(rng, [0.0, 0.0], 10)
    source = _box(0, [0.0, 0.0], references=10)

    first = engine.compute_far_field_moments(source, references).copy()
    second = engine.compute_far_field_moments(source, references)

    assert source.moments_computed
    assert second is source.moments
    np.testing.assert_array_equal(first, second)


def test_far_field_requires_moments():
    engine = _engine()
    source = _box(0, [0.0, 0.0], references=1)

    with pytest.raises(RuntimeError):
        engine.evaluate_far_field(
            source, np.zeros((2, 1)), np.arange(1, dtype=np.int64), np.zeros(1)
        )
    with pytest.raises(RuntimeError):
        engine.translate_far_field_to_local(source, _box(1, [1.0, 1.0]))


def test_direct_local_matches_direct_sum():
    rng = np.random.default_rng(2)
    engine = _engine()
    references = _cluster(rng, [-1.0, 0.5], 15)
    queries = _cluster(rng, [0.5, 0.0], 9)
    source = _box(0, [-1.0, 0.5], references=15)
    target = _box(1, [0.5, 0.0], queries=9)

    engine.accumulate_direct_local(source, references, target)

    values = [
        engine.evaluate_local_expansion(queries[:, i], target.centroid, target.local)
        for i in range(9)
    ]
    np.testing.assert_allclose(values, _direct_sum(queries, references), rtol=1e-7)


def test_translation_matches_direct_sum():
    rng = np.random.default_rng(3)
    engine = _engine()
    references = _cluster(rng, [0.0, 0.0], 25)
    queries = _cluster(rng, [1.2, 0.9], 11)
    source = _box(0, [0.0, 0.0], references=25)
    target = _box(1, [1.2, 0.9], queries=11)

    engine.compute_far_field_moments(source, references)
    engine.translate_far_field_to_local(source, target)

    densities = np.zeros(11)
    count = engine.evaluate_local_expansions([target], queries, densities)

    assert count == 11
    np.testing.assert_allclose(densities, _direct_sum(queries, references), rtol=1e-6)


def test_translation_in_three_dimensions():
    rng = np.random.default_rng(4)
    engine = ExpansionEngine(MultiIndexTable(10, 3), BANDWIDTH)
    references = _cluster(rng, [0.0, 0.0, 0.0], 12, spread=0.2)
    queries = _cluster(rng, [0.8, -0.4, 0.6], 5, spread=0.2)
    source = _box(0, [0.0, 0.0, 0.0], references=12)
    target = _box(1, [0.8, -0.4, 0.6], queries=5)

    engine.compute_far_field_moments(source, references)
    engine.translate_far_field_to_local(source, target)
    densities = np.zeros(5)
    engine.evaluate_local_expansions([target], queries, densities, parallel=False)

    np.testing.assert_allclose(densities, _direct_sum(queries, references), rtol=1e-5)


def test_local_sweep_parallel_and_serial_agree():
    rng = np.random.default_rng(5)
    engine = _engine()
    references = _cluster(rng, [0.0, 0.0], 10)
    queries = np.concatenate(
        [_cluster(rng, [1.0, 0.0], 6), _cluster(rng, [0.0, 1.0], 4)], axis=1
    )
    targets = [
        Box(1, (1,), np.array([1.0, 0.0]), np.arange(6, dtype=np.int64), np.arange(0)),
        Box(2, (2,), np.array([0.0, 1.0]), np.arange(6, 10, dtype=np.int64), np.arange(0)),
    ]
    source = _box(0, [0.0, 0.0], references=10)
    for target in targets:
        engine.accumulate_direct_local(source, references, target)

    serial = np.zeros(10)
    parallel = np.zeros(10)
    engine.evaluate_local_expansions(targets, queries, serial, parallel=False)
    engine.evaluate_local_expansions(targets, queries, parallel, parallel=True)

    np.testing.assert_allclose(parallel, serial)
    np.testing.assert_allclose(serial, _direct_sum(queries, references), rtol=1e-7)


def test_boxes_without_local_expansion_are_skipped():
    engine = _engine()
    densities = np.zeros(3)

    count = engine.evaluate_local_expansions(
        [_box(0, [0.0, 0.0], queries=3)], np.zeros((2, 3)), densities
    )

    assert count == 0
    np.testing.assert_array_equal(densities, 0.0)
