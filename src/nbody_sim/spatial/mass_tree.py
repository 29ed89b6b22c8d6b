"""
Barnes-Hut mass tree for approximate gravitational force calculations.

The tree recursively subdivides D-dimensional space into 2^D octants.
Every node stores the aggregate mass and center of mass of everything
inserted beneath it, maintained incrementally during insertion, so no
separate mass-distribution pass is needed. A leaf holds one point, or
several when they are closer than the collision epsilon.

The tree is built once per simulation step and only read afterwards;
force evaluation for different bodies can run concurrently.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Sequence

import numpy as np

from ..config import SimulationConfig
from ..force import TraversalStats, gravitational_force
from ..types import Body
from ..vector import distance
from .bounding_box import BoundingBox

# Guards the split loop against points the root box does not contain,
# which would otherwise share an octant forever.
_MAX_SPLIT_DEPTH = 128


class LeafEntry(NamedTuple):
    """One point held by a leaf."""

    body_id: Optional[int]
    mass: float
    position: np.ndarray


@dataclass(eq=False)
class MassTreeNode:
    """
    A node in the mass tree.

    Attributes:
        bounding_box: Region covered by this node
        position: Center of mass of the points beneath this node
        mass: Aggregate mass of the points beneath this node
        body_id: Id of the first body held by a leaf (None for internal nodes)
        children: 2^D optional children, indexed by octant
        entries: Points held by a leaf. Usually one; several when points
            closer than the collision epsilon share the leaf.
    """

    bounding_box: BoundingBox
    position: np.ndarray
    mass: float = 0.0
    body_id: Optional[int] = None
    children: List[Optional[MassTreeNode]] = field(default_factory=list)
    entries: List[LeafEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.children:
            self.children = [None] * (1 << self.bounding_box.dimensions)
        self.size = self.bounding_box.size()

    def is_leaf(self) -> bool:
        """True if this node has no children."""
        return all(child is None for child in self.children)

    def is_empty(self) -> bool:
        """True if nothing has been inserted beneath this node."""
        return self.mass <= 0 and self.is_leaf()

    def absorb(self, position: np.ndarray, mass: float) -> None:
        """Fold a point into this node's center of mass and aggregate mass."""
        new_mass = self.mass + mass
        self.position = (self.position * self.mass + position * mass) / new_mass
        self.mass = new_mass

    def new_child(
        self,
        quadrant: int,
        position: np.ndarray,
        mass: float,
        body_id: Optional[int] = None,
        entries: Optional[List[LeafEntry]] = None,
    ) -> MassTreeNode:
        """
        Create (replacing any existing) the child in ``quadrant``.

        Without ``entries`` the child is a leaf holding just this point.
        """
        pos = np.array(position, dtype=np.float64)
        if entries is None:
            entries = [LeafEntry(body_id, mass, pos.copy())]
        child = MassTreeNode(
            self.bounding_box.child(quadrant), pos, mass, body_id, entries=entries
        )
        self.children[quadrant] = child
        return child


class SpatialTree:
    """
    Barnes-Hut mass tree.

    For distant clusters the force evaluation treats a whole subtree as a
    single body at its center of mass, reducing the per-step cost from
    O(n^2) to O(n log n).

    Usage:
        tree = SpatialTree(BoundingBox.cube(0, 1000, 2), config)
        for body in bodies:
            tree.insert(body.position, body.mass, body_id=body.id)

        force = tree.compute_force(body, theta=0.5)

    The theta parameter controls the accuracy/speed tradeoff:
    - theta = 0: Exact calculation (every leaf visited)
    - theta = 0.5: Good balance
    - theta = 1.0: Fast, aggressive approximation
    """

    def __init__(self, bounding_box: BoundingBox, config: SimulationConfig) -> None:
        """
        Initialize an empty tree.

        Args:
            bounding_box: Region covered by the root
            config: Supplies dimensions, G, softening and the epsilons
        """
        self.config = config
        self.root = MassTreeNode(bounding_box, np.zeros(bounding_box.dimensions))
        self.body_count = 0

    @property
    def total_mass(self) -> float:
        return self.root.mass

    @property
    def center_of_mass(self) -> np.ndarray:
        return self.root.position

    def insert(
        self,
        position: np.ndarray,
        mass: float,
        bounding_box: Optional[BoundingBox] = None,
        body_id: Optional[int] = None,
    ) -> None:
        """
        Insert a point mass.

        Non-positive masses are ignored and leave the tree untouched.

        Args:
            position: Position of the point
            mass: Its mass
            bounding_box: Region of the root; defaults to the box the tree
                was created with
            body_id: Id stored in the leaf, used to skip self-interaction
        """
        if mass <= 0:
            return

        bb = self.root.bounding_box if bounding_box is None else bounding_box
        pos = np.array(position, dtype=np.float64)
        self.body_count += 1

        # First point: the root becomes a leaf
        if self.root.is_empty():
            self.root = MassTreeNode(
                bb, pos, mass, body_id, entries=[LeafEntry(body_id, mass, pos.copy())]
            )
            return

        # Walk down through occupied octants, folding the point into
        # every node it passes
        node = self.root
        node_bb = bb
        quadrant = node_bb.quadrant(pos)
        child = node.children[quadrant]
        while child is not None:
            node.absorb(pos, mass)
            node = child
            node_bb = node_bb.child(quadrant)
            quadrant = node_bb.quadrant(pos)
            child = node.children[quadrant]

        if not node.is_leaf():
            # Internal node with a free octant
            node.absorb(pos, mass)
            node.new_child(quadrant, pos, mass, body_id)
            return

        # Landed on a leaf
        entry = LeafEntry(body_id, mass, pos.copy())
        if distance(node.position, pos) < self.config.collision_epsilon:
            node.absorb(pos, mass)
            node.entries.append(entry)
            return

        old_pos, old_mass, old_id = node.position, node.mass, node.body_id
        old_entries = node.entries
        node.absorb(pos, mass)
        node.body_id = None
        node.entries = []

        # Split until the two points fall into different octants
        old_quadrant = node_bb.quadrant(old_pos)
        depth = 0
        while quadrant == old_quadrant:
            if depth >= _MAX_SPLIT_DEPTH:
                node.entries = old_entries + [entry]
                return
            node = node.new_child(quadrant, node.position, node.mass, entries=[])
            node_bb = node_bb.child(quadrant)
            quadrant = node_bb.quadrant(pos)
            old_quadrant = node_bb.quadrant(old_pos)
            depth += 1

        node.new_child(old_quadrant, old_pos, old_mass, old_id, entries=old_entries)
        node.new_child(quadrant, pos, mass, body_id, entries=[entry])

    def compute_force(
        self,
        body: Body,
        theta: Optional[float] = None,
        stats: Optional[TraversalStats] = None,
    ) -> np.ndarray:
        """
        Approximate net gravitational force on a body.

        Uses the Barnes-Hut criterion: if size/distance < theta for a
        node, the node is treated as a single mass at its center of mass.
        Cells containing the body are opened regardless of theta, and the
        points of a leaf are summed one by one, skipping the body itself.

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
        node: MassTreeNode,
        body: Body,
        theta: float,
        stats: Optional[TraversalStats],
    ) -> np.ndarray:
        """Recursively calculate the force contribution of a subtree."""
        if node.mass <= 0:
            return np.zeros(body.dimensions, dtype=np.float64)
        if stats is not None:
            stats.nodes_visited += 1

        net = np.zeros(body.dimensions, dtype=np.float64)
        if node.is_leaf():
            for entry in node.entries:
                # Skip self-interaction
                if entry.body_id is not None and entry.body_id == body.id:
                    continue
                net += gravitational_force(
                    body.position, body.mass, entry.position, entry.mass, self.config
                )
            return net

        dist = distance(node.position, body.position)
        ratio = node.size / dist if dist > 0 else math.inf
        # Cells containing the body are never approximated
        if ratio < theta and not node.bounding_box.contains(body.position):
            if stats is not None:
                stats.approximations += 1
            return gravitational_force(
                body.position, body.mass, node.position, node.mass, self.config
            )

        for child in node.children:
            if child is not None:
                net += self._compute_force(child, body, theta, stats)
        return net

    def leaves(self) -> Iterator[MassTreeNode]:
        """Yield every non-empty leaf, depth first."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                if node.mass > 0:
                    yield node
                continue
            stack.extend(child for child in reversed(node.children) if child is not None)

    def node_count(self) -> int:
        """Number of non-empty nodes in the tree."""
        count = 0
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.mass > 0:
                count += 1
            stack.extend(child for child in node.children if child is not None)
        return count

    def depth(self) -> int:
        """Number of levels below the root (0 for a single leaf)."""
        deepest = 0
        stack = [(self.root, 0)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children if child is not None)
        return deepest

    @classmethod
    def from_bodies(cls, bodies: Sequence[Body], config: SimulationConfig) -> SpatialTree:
        """
        Build a tree from a body population.

        The root box is the padded bounding cube of every body; inert
        bodies (mass <= 0) are skipped by ``insert``.
        """
        bb = BoundingBox.around(
            (b.position for b in bodies), config.dimensions, padding=config.padding
        )
        tree = cls(bb, config)
        for body in bodies:
            tree.insert(body.position, body.mass, body_id=body.id)
        return tree


__all__ = ["MassTreeNode", "SpatialTree"]
