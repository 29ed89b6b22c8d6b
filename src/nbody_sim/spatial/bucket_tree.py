"""
Bucket tree with a first-order multipole pass.

Unlike the Barnes-Hut mass tree, leaves hold up to ``node_capacity`` raw
bodies. A full leaf whose half-width is still above ``min_cell_size``
subdivides and redistributes its bodies among its 2^D children. Once all
bodies are in place, ``compute_multipole_expansion`` walks the tree
bottom-up and stores each node's aggregate mass and mass-weighted
centroid.
"""

from __future__ import annotations

import math
from typing import Iterator, List, Optional, Sequence

import numpy as np

from ..config import SimulationConfig
from ..force import TraversalStats, gravitational_force
from ..types import Body
from ..vector import distance
from .bounding_box import BoundingBox


class BucketTreeNode:
    """
    A node in the bucket tree.

    Attributes:
        center: Center of the cell
        size: Half-width of the cell
        bodies: Body copies held by this node (leaves only, except at
            the minimum cell size)
        multipole_expansion: Mass-weighted centroid of everything at or
            beneath this node (valid after ``compute_multipole_expansion``)
        total_mass: Summed mass at or beneath this node (same validity)
        children: 2^D children once subdivided, else None
    """

    def __init__(self, center: np.ndarray, size: float) -> None:
        self.center = np.array(center, dtype=np.float64)
        self.size = float(size)
        self.bodies: List[Body] = []
        self.multipole_expansion = np.zeros(self.center.shape[0], dtype=np.float64)
        self.total_mass = 0.0
        self.children: Optional[List[BucketTreeNode]] = None

    def is_leaf(self) -> bool:
        """True if this node has not been subdivided."""
        return self.children is None

    def contains(self, pos: np.ndarray) -> bool:
        """True if ``pos`` lies inside this cell (boundaries included)."""
        return bool(np.all(np.abs(pos - self.center) <= self.size))

    def get_quadrant(self, pos: np.ndarray) -> int:
        """Octant index of ``pos``: bit d set iff pos[d] >= center[d]."""
        index = 0
        for d in range(self.center.shape[0]):
            if pos[d] >= self.center[d]:
                index |= 1 << d
        return index

    def subdivide(self) -> None:
        """Create the 2^D children, each half as wide."""
        dims = self.center.shape[0]
        half = self.size / 2
        children = []
        for i in range(1 << dims):
            offset = np.array([half if i & (1 << d) else -half for d in range(dims)])
            children.append(BucketTreeNode(self.center + offset, half))
        self.children = children

    def clear(self) -> None:
        """Empty every bucket while keeping the subdivision structure."""
        self.bodies.clear()
        self.multipole_expansion[:] = 0.0
        self.total_mass = 0.0
        if self.children is not None:
            for child in self.children:
                child.clear()

    def compute_multipole_expansion(self) -> None:
        """Recompute mass and centroid for this subtree (post-order)."""
        weighted = np.zeros(self.center.shape[0], dtype=np.float64)
        total_mass = 0.0

        if self.children is not None:
            for child in self.children:
                child.compute_multipole_expansion()
                if child.total_mass > 0:
                    total_mass += child.total_mass
                    weighted += child.multipole_expansion * child.total_mass

        for body in self.bodies:
            total_mass += body.mass
            weighted += body.position * body.mass

        self.total_mass = total_mass
        if total_mass > 0:
            self.multipole_expansion = weighted / total_mass
        else:
            self.multipole_expansion = weighted


class BucketTree:
    """
    Multipole variant of the Barnes-Hut tree.

    Usage:
        tree = BucketTree(center, size, config)
        for body in bodies:
            tree.insert(body)
        tree.compute_multipole_expansion()

        force = tree.compute_force(body, theta=0.5)

    Admissible internal nodes are evaluated as their summed mass placed at
    the multipole centroid; leaves are always summed body by body.
    """

    def __init__(self, center: np.ndarray, size: float, config: SimulationConfig) -> None:
        """
        Initialize an empty tree.

        Args:
            center: Center of the root cell
            size: Half-width of the root cell
            config: Supplies node capacity, minimum cell size and the force law
        """
        self.config = config
        self.root = BucketTreeNode(center, size)
        self.body_count = 0

    @property
    def total_mass(self) -> float:
        return self.root.total_mass

    def insert(self, body: Body) -> None:
        """Insert a copy of ``body``; bodies with mass <= 0 are ignored."""
        if body.mass <= 0:
            return
        self._insert_into(self.root, body.copy())
        self.body_count += 1

    def _insert_into(self, node: BucketTreeNode, body: Body) -> None:
        capacity = self.config.node_capacity
        min_size = self.config.min_cell_size

        while True:
            if node.children is None:
                if len(node.bodies) < capacity or node.size <= min_size:
                    node.bodies.append(body)
                    return

                # Full leaf: split and push its bodies one level down
                node.subdivide()
                held, node.bodies = node.bodies, []
                assert node.children is not None
                for resident in held:
                    child = node.children[node.get_quadrant(resident.position)]
                    self._insert_into(child, resident)

            assert node.children is not None
            node = node.children[node.get_quadrant(body.position)]

    def clear(self) -> None:
        """Remove every body, keeping the cell structure for reuse."""
        self.root.clear()
        self.body_count = 0

    def compute_multipole_expansion(self) -> None:
        """Compute mass and centroid for every node (post-order traversal)."""
        self.root.compute_multipole_expansion()

    def compute_force(
        self,
        body: Body,
        theta: Optional[float] = None,
        stats: Optional[TraversalStats] = None,
    ) -> np.ndarray:
        """
        Approximate net gravitational force on a body.

        Cells containing the body are opened regardless of theta, so a
        body never feels its own mass through a multipole.

        Args:
            body: The body to calculate the force on
            theta: Admissibility threshold (defaults to ``config.theta``)
            stats: Optional counters updated during the traversal

        Returns:
            Force vector
        """
        if theta is None:
            theta = self.config.theta
        return self._compute_force(self.root, body, theta, stats)

    def _compute_force(
        self,
        node: BucketTreeNode,
        body: Body,
        theta: float,
        stats: Optional[TraversalStats],
    ) -> np.ndarray:
        net = np.zeros(body.dimensions, dtype=np.float64)
        if node.total_mass <= 0:
            return net
        if stats is not None:
            stats.nodes_visited += 1

        if node.children is not None:
            dist = distance(node.multipole_expansion, body.position)
            ratio = 2 * node.size / dist if dist > 0 else math.inf
            # Cells containing the body are never approximated
            if ratio < theta and not node.contains(body.position):
                if stats is not None:
                    stats.approximations += 1
                return gravitational_force(
                    body.position,
                    body.mass,
                    node.multipole_expansion,
                    node.total_mass,
                    self.config,
                )
            for child in node.children:
                net += self._compute_force(child, body, theta, stats)

        for other in node.bodies:
            if other.id == body.id:
                continue
            net += gravitational_force(
                body.position, body.mass, other.position, other.mass, self.config
            )
        return net

    def leaves(self) -> Iterator[BucketTreeNode]:
        """Yield every leaf holding at least one body."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.children is None:
                if node.bodies:
                    yield node
            else:
                stack.extend(reversed(node.children))

    def node_count(self) -> int:
        """Total number of nodes, empty cells included."""
        count = 0
        stack = [self.root]
        while stack:
            node = stack.pop()
            count += 1
            if node.children is not None:
                stack.extend(node.children)
        return count

    def depth(self) -> int:
        """Number of levels below the root."""
        deepest = 0
        stack = [(self.root, 0)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            if node.children is not None:
                stack.extend((child, level + 1) for child in node.children)
        return deepest

    @classmethod
    def from_bodies(cls, bodies: Sequence[Body], config: SimulationConfig) -> BucketTree:
        """
        Build a tree from a body population and compute its multipoles.

        The root cell is the padded bounding cube of every body.
        """
        bb = BoundingBox.around(
            (b.position for b in bodies), config.dimensions, padding=config.padding
        )
        tree = cls(bb.center(), bb.size() / 2, config)
        for body in bodies:
            tree.insert(body)
        tree.compute_multipole_expansion()
        return tree


__all__ = ["BucketTree", "BucketTreeNode"]
