"""Tests for the greedy merge pass."""

import itertools
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from nbody_sim import Body, SimulationConfig, find_merge_pairs, merge_bodies, merge_pass


@pytest.fixture
def config():
    return SimulationConfig(merge_threshold=1.0, damping=0.6, workers=1)


class TestFindMergePairs:
    """Tests for candidate pair detection."""

    def test_finds_close_pairs(self):
        bodies = [
            Body(0, 1.0, [0.0, 0.0]),
            Body(1, 1.0, [10.0, 0.0]),
            Body(2, 1.0, [0.5, 0.0]),
        ]
        assert find_merge_pairs(bodies, 1.0) == [(0, 2)]

    def test_threshold_is_strict(self):
        bodies = [Body(0, 1.0, [0.0, 0.0]), Body(1, 1.0, [1.0, 0.0])]
        assert find_merge_pairs(bodies, 1.0) == []

    def test_sorted_by_first_index(self):
        bodies = [Body(i, 1.0, [0.1 * i, 0.0]) for i in range(5)]
        pairs = find_merge_pairs(bodies, 1.0)
        assert pairs == [(i, j) for i in range(5) for j in range(i + 1, 5)]

    def test_executor_matches_serial(self):
        rng = np.random.default_rng(0)
        bodies = [Body(i, 1.0, p) for i, p in enumerate(rng.uniform(0, 20, (200, 2)))]
        serial = find_merge_pairs(bodies, 1.0)
        with ThreadPoolExecutor(max_workers=4) as pool:
            parallel = find_merge_pairs(bodies, 1.0, pool, parts=4)
        assert serial
        assert parallel == serial

    def test_too_few_bodies(self):
        assert find_merge_pairs([], 1.0) == []
        assert find_merge_pairs([Body(0, 1.0, [0.0, 0.0])], 1.0) == []


class TestMergeBodies:
    """Tests for combining two bodies."""

    def test_weighted_average_and_damping(self):
        a = Body(0, 1.0, [0.0, 0.0], [4.0, 0.0], radius=1.0)
        b = Body(1, 3.0, [4.0, 0.0], [0.0, 4.0], radius=2.0)
        merged = merge_bodies(a, b, -5, damping=0.6)

        assert merged.id == -5
        assert merged.mass == pytest.approx(2.4)
        assert np.allclose(merged.position, [3.0, 0.0])
        assert np.allclose(merged.velocity, [1.0, 3.0])
        assert merged.radius == pytest.approx(9.0 ** (1.0 / 3.0))
        assert not merged.force.any()

    def test_inert_pair(self):
        a = Body(0, 0.0, [0.0, 0.0])
        b = Body(1, 0.0, [2.0, 0.0])
        merged = merge_bodies(a, b, -1)
        assert merged.mass == 0.0
        assert np.allclose(merged.position, [1.0, 0.0])


class TestMergePass:
    """Tests for one greedy merge pass."""

    def test_no_pairs_keeps_population(self, config):
        bodies = [Body(0, 1.0, [0.0, 0.0]), Body(1, 1.0, [5.0, 0.0])]
        result = merge_pass(bodies, config)
        assert result == bodies
        assert result is not bodies

    def test_close_pair_merges(self, config):
        bodies = [
            Body(0, 2.0, [0.0, 0.0]),
            Body(1, 1.0, [50.0, 0.0]),
            Body(2, 2.0, [0.5, 0.0]),
        ]
        result = merge_pass(bodies, config)

        assert [b.id for b in result] == [1, -1]
        product = result[-1]
        assert product.mass == pytest.approx(4.0 * 0.6)
        assert np.allclose(product.position, [0.25, 0.0])

    def test_three_close_bodies_merge_once(self, config):
        """Greedy, not clustering: a triple yields one merge per pass."""
        bodies = [Body(i, 1.0, [0.3 * i, 0.0]) for i in range(3)]
        result = merge_pass(bodies, config)

        assert len(result) == 2
        assert result[0].id == 2
        assert result[1].id < 0
        assert result[1].mass == pytest.approx(1.2)

    def test_two_separate_pairs(self, config):
        bodies = [
            Body(0, 1.0, [0.0, 0.0]),
            Body(1, 1.0, [100.0, 0.0]),
            Body(2, 1.0, [0.2, 0.0]),
            Body(3, 1.0, [100.2, 0.0]),
            Body(4, 1.0, [50.0, 50.0]),
        ]
        result = merge_pass(bodies, config)

        assert [b.id for b in result] == [4, -1, -2]
        assert np.allclose(result[1].position, [0.1, 0.0])
        assert np.allclose(result[2].position, [100.1, 0.0])

    def test_id_source(self, config):
        bodies = [Body(0, 1.0, [0.0, 0.0]), Body(1, 1.0, [0.1, 0.0])]
        ids = itertools.count(-40, -1)
        result = merge_pass(bodies, config, id_source=ids)
        assert result[0].id == -40
        assert next(ids) == -41

    def test_default_ids_avoid_existing(self, config):
        """Fresh ids fall below every id already present."""
        bodies = [
            Body(-3, 1.0, [0.0, 0.0]),
            Body(7, 1.0, [0.1, 0.0]),
        ]
        result = merge_pass(bodies, config)
        assert result[0].id == -4

    def test_input_not_mutated(self, config):
        bodies = [Body(0, 1.0, [0.0, 0.0]), Body(1, 1.0, [0.1, 0.0])]
        merge_pass(bodies, config)
        assert [b.id for b in bodies] == [0, 1]
        assert bodies[0].mass == 1.0

    def test_zero_threshold_never_merges(self):
        config = SimulationConfig(merge_threshold=0.0, workers=1)
        bodies = [Body(0, 1.0, [0.0, 0.0]), Body(1, 1.0, [0.0, 0.0])]
        assert len(merge_pass(bodies, config)) == 2
