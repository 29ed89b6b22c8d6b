"""Tests for the Barnes-Hut mass tree."""

import numpy as np
import pytest

from nbody_sim import Body, SimulationConfig, TraversalStats, direct_forces, gravitational_force
from nbody_sim.spatial import BoundingBox, MassTreeNode, SpatialTree


def make_tree(low=0.0, high=100.0, dimensions=2, **config_kwargs):
    config = SimulationConfig(dimensions=dimensions, **config_kwargs)
    return SpatialTree(BoundingBox.cube(low, high, dimensions), config)


def snapshot(node):
    """Nested tuple capturing every bit of a subtree."""
    return (
        node.mass,
        tuple(node.position.tolist()),
        node.body_id,
        tuple((e.body_id, e.mass, tuple(e.position.tolist())) for e in node.entries),
        tuple(node.bounding_box.min.tolist()),
        tuple(node.bounding_box.max.tolist()),
        tuple(None if c is None else snapshot(c) for c in node.children),
    )


def descendant_leaves(node):
    if node.is_leaf():
        return [node] if node.mass > 0 else []
    leaves = []
    for child in node.children:
        if child is not None:
            leaves.extend(descendant_leaves(child))
    return leaves


def internal_nodes(node):
    if node.is_leaf():
        return []
    found = [node]
    for child in node.children:
        if child is not None:
            found.extend(internal_nodes(child))
    return found


def random_points(n, seed=0, dimensions=2, low=0.0, high=100.0):
    rng = np.random.default_rng(seed)
    positions = rng.uniform(low, high, size=(n, dimensions))
    masses = rng.uniform(0.5, 5.0, size=n)
    return positions, masses


class TestMassTreeNode:
    """Tests for MassTreeNode."""

    def test_node_creation(self):
        """A fresh node is an empty leaf with 2^D child slots."""
        node = MassTreeNode(BoundingBox.cube(0.0, 1.0, 3), np.zeros(3))
        assert node.is_empty()
        assert node.is_leaf()
        assert len(node.children) == 8

    def test_absorb(self):
        """absorb() keeps the mass-weighted center."""
        node = MassTreeNode(BoundingBox.cube(0.0, 10.0, 2), np.array([0.0, 0.0]), mass=1.0)
        node.absorb(np.array([3.0, 0.0]), 2.0)
        assert node.mass == 3.0
        assert np.allclose(node.position, [2.0, 0.0])


class TestSpatialTreeInsertion:
    """Tests for SpatialTree insertion."""

    def test_empty_tree(self):
        tree = make_tree()
        assert tree.body_count == 0
        assert tree.root.is_empty()
        assert tree.total_mass == 0.0

    def test_single_insertion(self):
        """The first point turns the root into a leaf."""
        tree = make_tree()
        tree.insert(np.array([25.0, 25.0]), 2.0, body_id=7)

        assert tree.body_count == 1
        assert tree.root.is_leaf()
        assert tree.root.body_id == 7
        assert tree.root.mass == 2.0
        assert np.array_equal(tree.root.position, [25.0, 25.0])

    def test_records_bounding_box(self):
        """An explicit box on the first insert becomes the root box."""
        tree = make_tree()
        bb = BoundingBox.cube(-10.0, 10.0, 2)
        tree.insert(np.array([1.0, 1.0]), 1.0, bounding_box=bb)
        assert tree.root.bounding_box == bb

    def test_two_insertions_split(self):
        """Two points in different quadrants become two children of the root."""
        tree = make_tree()
        tree.insert(np.array([25.0, 25.0]), 1.0, body_id=0)
        tree.insert(np.array([75.0, 75.0]), 3.0, body_id=1)

        assert not tree.root.is_leaf()
        assert tree.root.body_id is None
        assert tree.root.mass == 4.0
        assert np.allclose(tree.root.position, [62.5, 62.5])
        assert tree.root.children[0].body_id == 0
        assert tree.root.children[3].body_id == 1
        assert tree.root.children[1] is None

    def test_same_quadrant_creates_chain(self):
        """Close points split level by level until they separate."""
        tree = make_tree()
        tree.insert(np.array([10.0, 10.0]), 1.0, body_id=0)
        tree.insert(np.array([12.0, 12.0]), 1.0, body_id=1)

        assert tree.depth() == 6
        leaves = list(tree.leaves())
        assert sorted(leaf.body_id for leaf in leaves) == [0, 1]
        # Every node on the chain carries both points
        for node in internal_nodes(tree.root):
            assert node.mass == 2.0
            assert np.allclose(node.position, [11.0, 11.0])

    def test_child_boxes_nest(self):
        """Each child's box is the parent's box split at the octant."""
        tree = make_tree()
        positions, masses = random_points(40, seed=5)
        for i, (p, m) in enumerate(zip(positions, masses)):
            tree.insert(p, m, body_id=i)

        for node in internal_nodes(tree.root):
            for q, child in enumerate(node.children):
                if child is not None:
                    assert child.bounding_box == node.bounding_box.child(q)

    def test_insert_into_free_octant_updates_parent(self):
        """A point landing in an empty octant of an internal node is aggregated."""
        tree = make_tree()
        tree.insert(np.array([25.0, 25.0]), 1.0, body_id=0)
        tree.insert(np.array([75.0, 75.0]), 1.0, body_id=1)
        tree.insert(np.array([75.0, 25.0]), 2.0, body_id=2)

        assert tree.root.mass == 4.0
        assert tree.root.children[1].body_id == 2
        assert np.allclose(tree.root.position, [62.5, 37.5])

    def test_leaves_hold_one_point(self):
        """With distinct points, every point ends up in its own leaf."""
        tree = make_tree()
        positions, masses = random_points(100, seed=1)
        for i, (p, m) in enumerate(zip(positions, masses)):
            tree.insert(p, m, body_id=i)

        leaves = list(tree.leaves())
        assert len(leaves) == 100
        assert sorted(leaf.body_id for leaf in leaves) == list(range(100))
        for leaf in leaves:
            assert np.array_equal(leaf.position, positions[leaf.body_id])

    @pytest.mark.parametrize("dimensions", [2, 3])
    def test_mass_conservation(self, dimensions):
        """Root mass equals the sum of everything inserted."""
        tree = make_tree(dimensions=dimensions)
        positions, masses = random_points(300, seed=2, dimensions=dimensions)
        for p, m in zip(positions, masses):
            tree.insert(p, m)
        assert tree.total_mass == pytest.approx(masses.sum(), rel=1e-12)

    @pytest.mark.parametrize("dimensions", [2, 3])
    def test_center_of_mass_correctness(self, dimensions):
        """Every internal node is the weighted average of its leaves."""
        tree = make_tree(dimensions=dimensions)
        positions, masses = random_points(150, seed=3, dimensions=dimensions)
        for i, (p, m) in enumerate(zip(positions, masses)):
            tree.insert(p, m, body_id=i)

        for node in internal_nodes(tree.root):
            leaves = descendant_leaves(node)
            total = sum(leaf.mass for leaf in leaves)
            expected = sum(leaf.position * leaf.mass for leaf in leaves) / total
            assert node.mass == pytest.approx(total, rel=1e-12)
            assert np.allclose(node.position, expected, rtol=1e-9, atol=1e-9)


class TestSpatialTreeEdgeCases:
    """Tests for inert and coincident points."""

    @pytest.mark.parametrize("mass", [0.0, -1.0])
    def test_non_positive_mass_is_noop(self, mass):
        """Inserting zero or negative mass leaves the tree bit-for-bit unchanged."""
        tree = make_tree()
        positions, masses = random_points(20, seed=4)
        for i, (p, m) in enumerate(zip(positions, masses)):
            tree.insert(p, m, body_id=i)

        before = snapshot(tree.root)
        tree.insert(np.array([50.0, 50.0]), mass, body_id=99)
        assert snapshot(tree.root) == before
        assert tree.body_count == 20

    def test_non_positive_mass_on_empty_tree(self):
        tree = make_tree()
        tree.insert(np.array([50.0, 50.0]), 0.0)
        assert tree.root.is_empty()

    def test_coincident_points_merge(self):
        """Points closer than the collision epsilon share a leaf."""
        tree = make_tree(collision_epsilon=1e-3)
        tree.insert(np.array([40.0, 40.0]), 1.0, body_id=0)
        tree.insert(np.array([40.0, 40.0005]), 3.0, body_id=1)

        assert tree.root.is_leaf()
        assert tree.root.mass == 4.0
        assert tree.root.body_id == 0
        assert np.allclose(tree.root.position, [40.0, 40.000375])
        assert [entry.body_id for entry in tree.root.entries] == [0, 1]

    def test_many_identical_points(self):
        """Identical points never recurse without bound."""
        tree = make_tree()
        for i in range(50):
            tree.insert(np.array([33.0, 66.0]), 1.0, body_id=i)
        assert tree.total_mass == 50.0
        assert tree.depth() == 0

    def test_points_outside_box_terminate(self):
        """Points beyond the root box stop splitting at the depth guard."""
        tree = make_tree(low=0.0, high=1.0)
        tree.insert(np.array([5.0, 5.0]), 1.0, body_id=0)
        tree.insert(np.array([6.0, 6.0]), 1.0, body_id=1)
        assert tree.total_mass == 2.0

    def test_from_bodies_skips_inert(self):
        config = SimulationConfig()
        bodies = [
            Body(0, 1.0, [0.0, 0.0]),
            Body(1, 0.0, [5.0, 5.0]),
            Body(2, 2.0, [10.0, 0.0]),
        ]
        tree = SpatialTree.from_bodies(bodies, config)
        assert tree.body_count == 2
        assert tree.total_mass == 3.0
        for body in bodies:
            assert tree.root.bounding_box.contains(body.position)


class TestSpatialTreeForce:
    """Tests for Barnes-Hut force evaluation on the mass tree."""

    def test_single_body_no_self_force(self):
        config = SimulationConfig()
        body = Body(3, 5.0, [1.0, 2.0])
        tree = SpatialTree.from_bodies([body], config)
        assert not tree.compute_force(body, theta=0.5).any()

    def test_two_body_force(self):
        """Force matches G m1 m2 / (d^2 + eps^2) along the separation."""
        config = SimulationConfig(gravitational_constant=1.0, softening=1.0)
        a = Body(0, 2.0, [0.0, 0.0])
        b = Body(1, 3.0, [3.0, 4.0])
        tree = SpatialTree.from_bodies([a, b], config)

        force = tree.compute_force(a, theta=0.0)
        expected_mag = 2.0 * 3.0 / (25.0 + 1.0)
        assert np.allclose(force, [0.6 * expected_mag, 0.8 * expected_mag])
        assert np.allclose(tree.compute_force(b, theta=0.0), -force)

    @pytest.mark.parametrize("dimensions", [2, 3])
    def test_theta_zero_matches_direct(self, dimensions):
        """theta = 0 reproduces the exact pairwise sum."""
        config = SimulationConfig(
            dimensions=dimensions, gravitational_constant=1.0, softening=0.1
        )
        positions, masses = random_points(60, seed=8, dimensions=dimensions)
        bodies = [Body(i, m, p) for i, (p, m) in enumerate(zip(positions, masses))]
        tree = SpatialTree.from_bodies(bodies, config)

        exact = direct_forces(bodies, config)
        approx = np.array([tree.compute_force(b, theta=0.0) for b in bodies])
        scale = np.linalg.norm(exact, axis=1).mean()
        assert np.allclose(approx, exact, rtol=1e-6, atol=1e-9 * scale)

    def test_theta_zero_never_approximates(self):
        config = SimulationConfig()
        positions, masses = random_points(30, seed=9)
        bodies = [Body(i, m, p) for i, (p, m) in enumerate(zip(positions, masses))]
        tree = SpatialTree.from_bodies(bodies, config)

        stats = TraversalStats()
        for body in bodies:
            tree.compute_force(body, theta=0.0, stats=stats)
        assert stats.approximations == 0
        assert stats.nodes_visited > 0

    def test_distant_cluster_uses_center_of_mass(self):
        """An admissible root is evaluated as one mass at its center of mass."""
        config = SimulationConfig(gravitational_constant=1.0, softening=1.0)
        tree = SpatialTree(BoundingBox.cube(0.0, 10.0, 2), config)
        tree.insert(np.array([2.0, 2.0]), 1.0, body_id=0)
        tree.insert(np.array([8.0, 8.0]), 3.0, body_id=1)

        target = Body(9, 1.0, [-1000.0, -1000.0])
        stats = TraversalStats()
        force = tree.compute_force(target, theta=0.5, stats=stats)

        expected = gravitational_force(
            target.position, target.mass, np.array([6.5, 6.5]), 4.0, config
        )
        assert stats.approximations == 1
        assert stats.nodes_visited == 1
        assert np.allclose(force, expected)

    def test_larger_theta_visits_fewer_nodes(self):
        """theta = 1 walks far fewer nodes than theta = 0 and gives different forces."""
        config = SimulationConfig(gravitational_constant=1.0, softening=0.1)
        positions, masses = random_points(1000, seed=10, high=1000.0)
        bodies = [Body(i, m, p) for i, (p, m) in enumerate(zip(positions, masses))]
        tree = SpatialTree.from_bodies(bodies, config)
        sample = bodies[:20]

        exact_stats = TraversalStats()
        rough_stats = TraversalStats()
        exact = np.array([tree.compute_force(b, 0.0, exact_stats) for b in sample])
        rough = np.array([tree.compute_force(b, 1.0, rough_stats) for b in sample])

        assert rough_stats.nodes_visited < exact_stats.nodes_visited / 2
        assert rough_stats.approximations > 0
        assert not np.allclose(rough, exact, rtol=1e-12, atol=0.0)

    def test_config_theta_is_default(self):
        config = SimulationConfig(theta=0.0)
        positions, masses = random_points(20, seed=11)
        bodies = [Body(i, m, p) for i, (p, m) in enumerate(zip(positions, masses))]
        tree = SpatialTree.from_bodies(bodies, config)
        assert np.array_equal(tree.compute_force(bodies[0]), tree.compute_force(bodies[0], 0.0))

    def test_shared_leaf_matches_direct(self):
        """Bodies sharing a collision leaf still feel each other exactly."""
        config = SimulationConfig(gravitational_constant=1.0, softening=1.0)
        bodies = [
            Body(0, 1.0, [10.0, 10.0]),
            Body(1, 1.0, [10.0, 10.00005]),
            Body(2, 1.0, [90.0, 90.0]),
        ]
        tree = SpatialTree.from_bodies(bodies, config)
        shared = [leaf for leaf in tree.leaves() if len(leaf.entries) == 2]
        assert len(shared) == 1

        exact = direct_forces(bodies, config)
        approx = np.array([tree.compute_force(b, theta=0.0) for b in bodies])
        assert np.allclose(approx, exact, rtol=1e-9, atol=1e-12)

    def test_shared_leaf_obeys_third_law(self):
        config = SimulationConfig(gravitational_constant=1.0, softening=1.0)
        a = Body(0, 2.0, [5.0, 5.0])
        b = Body(1, 3.0, [5.00003, 5.0])
        tree = SpatialTree.from_bodies([a, b], config)
        assert tree.root.is_leaf()

        f_a = tree.compute_force(a, theta=0.0)
        f_b = tree.compute_force(b, theta=0.0)
        assert f_a[0] > 0
        assert np.allclose(f_a, -f_b)

    def test_cell_containing_body_is_opened(self):
        """A large theta never folds the body's own mass into an approximation."""
        config = SimulationConfig(gravitational_constant=1.0, softening=1.0)
        tree = SpatialTree(BoundingBox.cube(-10.0, 10.0, 2), config)
        a = Body(0, 1.0, [-9.0, -9.0])
        b = Body(1, 1.0, [9.0, 9.0])
        tree.insert(a.position, a.mass, body_id=a.id)
        tree.insert(b.position, b.mass, body_id=b.id)

        stats = TraversalStats()
        force = tree.compute_force(a, theta=10.0, stats=stats)
        assert stats.approximations == 0
        assert np.allclose(force, direct_forces([a, b], config)[0])
