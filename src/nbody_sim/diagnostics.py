"""
Simulation quality diagnostics.

Provides quantitative checks on a body population:
- Total mass and center of mass
- Linear momentum
- Kinetic, potential and total energy
- Relative error of one force set against a reference

Merging damps mass, so mass and momentum are only conserved between
merges; the energy of a softened system is also only approximately
conserved by the semi-implicit Euler integrator.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .config import SimulationConfig
from .types import Body


def total_mass(bodies: Sequence[Body]) -> float:
    """Sum of all positive masses."""
    return float(sum(b.mass for b in bodies if b.mass > 0))


def center_of_mass(bodies: Sequence[Body]) -> np.ndarray:
    """
    Mass-weighted average position.

    Returns:
        D-vector; zeros when there is no positive mass
    """
    active = [b for b in bodies if b.mass > 0]
    if not active:
        dims = bodies[0].dimensions if bodies else 2
        return np.zeros(dims)
    masses = np.array([b.mass for b in active])
    positions = np.array([b.position for b in active])
    return (positions * masses[:, None]).sum(axis=0) / masses.sum()


def total_momentum(bodies: Sequence[Body]) -> np.ndarray:
    """Sum of mass * velocity."""
    dims = bodies[0].dimensions if bodies else 2
    momentum = np.zeros(dims)
    for b in bodies:
        if b.mass > 0:
            momentum += b.velocity * b.mass
    return momentum


def kinetic_energy(bodies: Sequence[Body]) -> float:
    """Sum of 1/2 m v^2."""
    return float(
        sum(0.5 * b.mass * float(np.dot(b.velocity, b.velocity)) for b in bodies if b.mass > 0)
    )


def potential_energy(bodies: Sequence[Body], config: SimulationConfig) -> float:
    """
    Softened gravitational potential energy.

    U = -sum_{i<j} G m_i m_j / sqrt(d_ij^2 + softening^2)

    Time Complexity: O(n^2)
    """
    active = [b for b in bodies if b.mass > 0]
    g = config.gravitational_constant
    eps_sq = config.softening_sq
    energy = 0.0
    for i in range(len(active)):
        for j in range(i + 1, len(active)):
            d = active[i].position - active[j].position
            energy -= g * active[i].mass * active[j].mass / math.sqrt(float(np.dot(d, d)) + eps_sq)
    return energy


def total_energy(bodies: Sequence[Body], config: SimulationConfig) -> float:
    """Kinetic plus potential energy."""
    return kinetic_energy(bodies) + potential_energy(bodies, config)


def force_error(approx: np.ndarray, exact: np.ndarray) -> np.ndarray:
    """
    Per-body relative error of approximate forces.

    Args:
        approx: (n, D) forces from a tree
        exact: (n, D) reference forces (e.g. from ``direct_forces``)

    Returns:
        (n,) array of |approx - exact| / |exact|; rows where the exact
        force is zero report the absolute error instead
    """
    diff = np.linalg.norm(np.asarray(approx) - np.asarray(exact), axis=1)
    scale = np.linalg.norm(np.asarray(exact), axis=1)
    return np.where(scale > 0, diff / np.where(scale > 0, scale, 1.0), diff)


__all__ = [
    "total_mass",
    "center_of_mass",
    "total_momentum",
    "kinetic_energy",
    "potential_energy",
    "total_energy",
    "force_error",
]
