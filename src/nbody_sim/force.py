"""
Gravitational force kernel and the exact pairwise reference.

Every force in the package goes through ``gravitational_force``, the
softened inverse-square law::

    F = G * m1 * m2 / (d^2 + softening^2)

directed along the normalized separation. The direction of a separation
shorter than ``config.normalize_epsilon`` is the zero vector, so
coincident points contribute nothing instead of producing NaN.

The tree evaluators live on the trees themselves
(``SpatialTree.compute_force`` and ``BucketTree.compute_force``); this
module also provides the O(n^2) direct sum they are checked against.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import SimulationConfig
from .types import Body
from .vector import magnitude, normalize


@dataclass
class TraversalStats:
    """
    Counters collected while walking a tree for one body.

    Attributes:
        nodes_visited: Nodes entered by the traversal
        approximations: Internal nodes treated as a single point mass
    """

    nodes_visited: int = 0
    approximations: int = 0


def gravitational_force(
    position: np.ndarray,
    mass: float,
    other_position: np.ndarray,
    other_mass: float,
    config: SimulationConfig,
) -> np.ndarray:
    """
    Force exerted on a point mass at ``position`` by one at ``other_position``.

    Args:
        position: Position of the body the force acts on
        mass: Its mass
        other_position: Position of the attracting mass
        other_mass: Attracting mass
        config: Supplies G, softening and the normalization threshold

    Returns:
        Force vector pointing from ``position`` toward ``other_position``
    """
    separation = other_position - position
    dist = magnitude(separation)
    f_mag = (
        config.gravitational_constant * mass * other_mass / (dist * dist + config.softening_sq)
    )
    return normalize(separation, config.normalize_epsilon) * f_mag


def direct_force(body: Body, bodies: Sequence[Body], config: SimulationConfig) -> np.ndarray:
    """Exact net force on ``body`` from every other body in ``bodies``."""
    net = np.zeros(body.dimensions, dtype=np.float64)
    for other in bodies:
        if other.id == body.id or other.mass <= 0:
            continue
        net += gravitational_force(body.position, body.mass, other.position, other.mass, config)
    return net


def direct_forces(bodies: Sequence[Body], config: SimulationConfig) -> np.ndarray:
    """
    Exact net force on every body.

    Returns:
        (n, D) array, row i being the force on ``bodies[i]``

    Time Complexity: O(n^2)
    """
    forces = np.zeros((len(bodies), config.dimensions), dtype=np.float64)
    for i, body in enumerate(bodies):
        forces[i] = direct_force(body, bodies, config)
    return forces


__all__ = [
    "TraversalStats",
    "gravitational_force",
    "direct_force",
    "direct_forces",
]
