"""
Common types for the simulation.

This module provides the fundamental types shared across components:
- Body: Point mass with position, velocity and a per-step force slot
- EventType: Simulation lifecycle events
- Event: Event payload for callbacks
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, TypedDict, Union

import numpy as np

from .vector import VectorLike, as_vector, has_nan, zeros


class EventType(IntEnum):
    """
    Simulation lifecycle events.

    - start: Stepping has begun
    - tick: Fired once per completed step (renderer/telemetry hook)
    - end: Step budget reached or simulation stopped
    """

    start = 0
    tick = 1
    end = 2


class Event(TypedDict, total=False):
    """Event payload passed to event listeners."""

    type: EventType
    step: int
    bodies: List["Body"]
    merged: int
    listener: Optional[Callable[[], None]]


class Body:
    """
    A point mass (planet, star, asteroid, black hole...).

    Attributes:
        id: Unique identifier. Merge products carry negative ids.
        mass: Mass; bodies with mass <= 0 are inert
        radius: Display radius, not used by the dynamics
        position: D-vector
        velocity: D-vector
        force: D-vector, overwritten once per step by the force evaluator
    """

    def __init__(
        self,
        id: int,
        mass: float,
        position: VectorLike,
        velocity: Optional[VectorLike] = None,
        radius: float = 1.0,
        force: Optional[VectorLike] = None,
    ) -> None:
        self.id = int(id)
        self.mass = float(mass)
        self.radius = float(radius)
        self.position: np.ndarray = np.array(position, dtype=np.float64).reshape(-1)
        d = self.position.shape[0]
        self.velocity: np.ndarray = zeros(d) if velocity is None else as_vector(velocity, d)
        self.force: np.ndarray = zeros(d) if force is None else as_vector(force, d)

    @property
    def dimensions(self) -> int:
        """Number of spatial dimensions of this body."""
        return int(self.position.shape[0])

    def copy(self) -> Body:
        """Return an independent copy (vectors are not shared)."""
        return Body(
            self.id,
            self.mass,
            self.position.copy(),
            self.velocity.copy(),
            radius=self.radius,
            force=self.force.copy(),
        )

    def update_velocity(self, dt: float) -> None:
        """Apply the accumulated force over a ``dt`` time step."""
        self.velocity += (self.force / self.mass) * dt

    def update_position(self, dt: float) -> None:
        """Advance the position from the velocity over a ``dt`` time step."""
        self.position += self.velocity * dt

    def nan_field(self) -> Optional[str]:
        """Name of the first vector holding a NaN, or None if all are finite."""
        for field in ("position", "velocity", "force"):
            if has_nan(getattr(self, field)):
                return field
        return None

    @classmethod
    def from_data(cls, data: BodyLike) -> Body:
        """
        Build a body from a Body, a dict, or an object with body attributes.

        Body instances are copied so the caller's population is never
        mutated by the simulation.
        """
        if isinstance(data, Body):
            return data.copy()
        if isinstance(data, dict):
            return cls(**data)
        return cls(
            getattr(data, "id"),
            getattr(data, "mass"),
            getattr(data, "position"),
            getattr(data, "velocity", None),
            radius=getattr(data, "radius", 1.0),
        )

    def __repr__(self) -> str:
        pos = ", ".join(f"{c:.3g}" for c in self.position)
        return f"Body(id={self.id}, mass={self.mass:.3g}, position=({pos}))"


BodyLike = Union[Body, Dict[str, Any], Any]


__all__ = [
    "EventType",
    "Event",
    "Body",
    "BodyLike",
]
