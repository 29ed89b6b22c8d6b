"""
Initial body populations.

Generators place bodies uniformly, in circular orbits around a central
mass, or around a few heavy "attractor" bodies. All randomness comes from
a seeded ``numpy.random.Generator`` drawing uniform integers over
half-open ranges, so a seed always reproduces the same population.
Ids are unique, non-negative and assigned in creation order.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import SimulationConfig
from .types import Body


def _rng(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(seed)


def _random_range(rng: np.random.Generator, low: int, high: int, size: int) -> np.ndarray:
    """Uniform integers in [low, high) as float64."""
    return rng.integers(low, high, size=size).astype(np.float64)


def uniform_bodies(
    n: int,
    seed: Optional[int] = None,
    config: Optional[SimulationConfig] = None,
    extent: Tuple[int, int] = (0, 10_000),
    mass_range: Tuple[int, int] = (1, 1_000),
    start_id: int = 0,
) -> List[Body]:
    """
    Bodies at rest, scattered uniformly over a cube.

    Args:
        n: Number of bodies
        seed: Random seed for reproducible populations
        config: Supplies the dimensionality (default 2)
        extent: Half-open coordinate range in every dimension
        mass_range: Half-open integer mass range (low must be >= 1)
        start_id: Id of the first body

    Returns:
        List of n bodies
    """
    dims = config.dimensions if config is not None else 2
    rng = _rng(seed)
    bodies = []
    for k in range(n):
        position = _random_range(rng, extent[0], extent[1], dims)
        mass = float(rng.integers(mass_range[0], mass_range[1]))
        bodies.append(Body(start_id + k, mass, position, radius=mass ** (1.0 / 3.0)))
    return bodies


def circular_velocity(
    central_mass: float, offset: np.ndarray, gravitational_constant: float
) -> np.ndarray:
    """
    Velocity for a circular orbit at ``offset`` from a central mass.

    Speed is sqrt(G * M / r); the direction is ``offset`` rotated a
    quarter turn in the x-y plane.
    """
    r = float(np.linalg.norm(offset))
    velocity = np.zeros_like(offset, dtype=np.float64)
    if r == 0:
        return velocity
    speed = math.sqrt(gravitational_constant * central_mass / r)
    velocity[0] = -offset[1] / r * speed
    velocity[1] = offset[0] / r * speed
    return velocity


def orbital_bodies(
    n: int,
    seed: Optional[int] = None,
    config: Optional[SimulationConfig] = None,
    center: Optional[Sequence[float]] = None,
    central_mass: float = 1e20,
    radius_range: Tuple[int, int] = (500, 5_000),
    mass_range: Tuple[int, int] = (1, 100),
    start_id: int = 0,
) -> List[Body]:
    """
    A heavy central body with n - 1 light bodies in circular orbits.

    Orbits lie in the x-y plane; in 3D the z offset is zero.

    Returns:
        Central body first (id ``start_id``), then the satellites
    """
    config = config or SimulationConfig()
    dims = config.dimensions
    rng = _rng(seed)
    origin = np.zeros(dims) if center is None else np.array(center, dtype=np.float64)

    bodies = [Body(start_id, central_mass, origin, radius=central_mass ** (1.0 / 9.0))]
    for k in range(1, n):
        r = float(rng.integers(radius_range[0], radius_range[1]))
        angle = float(rng.integers(0, 360_000)) / 1000.0 * math.pi / 180.0
        offset = np.zeros(dims)
        offset[0] = r * math.cos(angle)
        offset[1] = r * math.sin(angle)
        velocity = circular_velocity(central_mass, offset, config.gravitational_constant)
        mass = float(rng.integers(mass_range[0], mass_range[1]))
        bodies.append(
            Body(start_id + k, mass, origin + offset, velocity, radius=mass ** (1.0 / 3.0))
        )
    return bodies


def attractor_bodies(
    n: int,
    attractors: int = 3,
    seed: Optional[int] = None,
    config: Optional[SimulationConfig] = None,
    extent: Tuple[int, int] = (0, 10_000),
    attractor_mass: float = 1e15,
    cloud_radius: int = 1_000,
) -> List[Body]:
    """
    Clouds of light bodies orbiting a few seeded heavy attractors.

    The first ``attractors`` bodies are the heavy ones; the remaining
    bodies are spread round-robin among them, each on a circular orbit
    around its attractor.
    """
    config = config or SimulationConfig()
    dims = config.dimensions
    rng = _rng(seed)
    attractors = max(1, min(attractors, n))

    bodies: List[Body] = []
    for k in range(attractors):
        position = _random_range(rng, extent[0], extent[1], dims)
        bodies.append(Body(k, attractor_mass, position, radius=attractor_mass ** (1.0 / 9.0)))

    for k in range(attractors, n):
        host = bodies[k % attractors]
        r = float(rng.integers(cloud_radius // 10 + 1, cloud_radius + 2))
        angle = float(rng.integers(0, 360_000)) / 1000.0 * math.pi / 180.0
        offset = np.zeros(dims)
        offset[0] = r * math.cos(angle)
        offset[1] = r * math.sin(angle)
        velocity = circular_velocity(host.mass, offset, config.gravitational_constant)
        mass = float(rng.integers(1, 100))
        bodies.append(
            Body(k, mass, host.position + offset, velocity, radius=mass ** (1.0 / 3.0))
        )
    return bodies


def solar_system(config: Optional[SimulationConfig] = None) -> List[Body]:
    """
    Sun, Earth and Moon in SI units (positions in meters).

    Intended for use with G = 6.67430e-11 and a small softening length.
    """
    dims = config.dimensions if config is not None else 2
    earth_pos = np.zeros(dims)
    earth_pos[0] = 1.496e11
    earth_vel = np.zeros(dims)
    earth_vel[1] = 29_780.0
    moon_pos = earth_pos.copy()
    moon_pos[0] += 384_400_000.0
    moon_vel = earth_vel.copy()
    moon_vel[1] += 1_022.0

    return [
        Body(0, 1.989e30, np.zeros(dims), radius=6.957e8),
        Body(1, 5.972e24, earth_pos, earth_vel, radius=6.371e6),
        Body(2, 7.348e22, moon_pos, moon_vel, radius=1.737e6),
    ]


__all__ = [
    "uniform_bodies",
    "circular_velocity",
    "orbital_bodies",
    "attractor_bodies",
    "solar_system",
]
