"""
Simulation configuration.

A single immutable ``SimulationConfig`` value is threaded through every
component (trees, force evaluation, merging, the step loop) instead of
module-level constants, so several simulations with different parameters
can run side by side.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .validation import (
    InvalidConfigError,
    validate_dimensions,
    validate_fraction,
    validate_positive,
    validate_theta,
)


class ForceMethod(str, Enum):
    """How forces are evaluated each step."""

    BARNES_HUT = "barnes_hut"
    MULTIPOLE = "multipole"
    DIRECT = "direct"


@dataclass(frozen=True)
class SimulationConfig:
    """
    Parameters of a simulation run.

    Attributes:
        gravitational_constant: G in F = G * m1 * m2 / (d^2 + softening^2)
        softening: Softening length bounding the force at close range
        dimensions: Spatial dimensionality (2 or 3)
        dt: Time step
        theta: Barnes-Hut admissibility threshold (0 = exact)
        merge_threshold: Bodies closer than this are merged
        damping: Mass factor applied to merge products
        node_capacity: Bodies held by a bucket-tree leaf before it splits
        min_cell_size: Bucket-tree cells at or below this half-width never split
        collision_epsilon: Points closer than this share one mass-tree leaf
        normalize_epsilon: Separation below which the force direction is zero
        method: Force evaluation method
        steps: Number of steps to run (None = until stopped)
        workers: Worker threads for the parallel phases (None = CPU count)
        padding: Margin added around the root bounding box on each rebuild
    """

    gravitational_constant: float = 1e-8
    softening: float = 10.0
    dimensions: int = 2
    dt: float = 600.0
    theta: float = 1.0
    merge_threshold: float = 1.0
    damping: float = 0.6
    node_capacity: int = 4
    min_cell_size: float = 1.0
    collision_epsilon: float = 1e-4
    normalize_epsilon: float = 1e-9
    method: ForceMethod = ForceMethod.BARNES_HUT
    steps: Optional[int] = None
    workers: Optional[int] = None
    padding: float = 1.0

    @property
    def softening_sq(self) -> float:
        """Precomputed square of the softening length."""
        return self.softening * self.softening

    @property
    def children_per_node(self) -> int:
        """Number of octants (2^D) per tree node."""
        return 1 << self.dimensions

    @property
    def worker_count(self) -> int:
        """Resolved number of worker threads."""
        if self.workers is not None:
            return self.workers
        return os.cpu_count() or 1

    def replace(self, **changes: Any) -> SimulationConfig:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def validate(self) -> SimulationConfig:
        """
        Check every field is in range.

        Returns:
            self (for chaining)

        Raises:
            InvalidConfigError: If a value is out of range
            InvalidDimensionError: If dimensions is not 2 or 3
        """
        validate_dimensions(self.dimensions)
        validate_positive("gravitational_constant", self.gravitational_constant)
        validate_positive("softening", self.softening)
        validate_positive("dt", self.dt)
        validate_theta(self.theta)
        validate_fraction("damping", self.damping)
        validate_positive("min_cell_size", self.min_cell_size)
        validate_positive("collision_epsilon", self.collision_epsilon)
        if self.merge_threshold < 0:
            raise InvalidConfigError(
                f"merge_threshold must be >= 0, got {self.merge_threshold}"
            )
        if self.normalize_epsilon < 0:
            raise InvalidConfigError(
                f"normalize_epsilon must be >= 0, got {self.normalize_epsilon}"
            )
        if self.padding < 0:
            raise InvalidConfigError(f"padding must be >= 0, got {self.padding}")
        if self.node_capacity < 1:
            raise InvalidConfigError(f"node_capacity must be >= 1, got {self.node_capacity}")
        if self.steps is not None and self.steps < 0:
            raise InvalidConfigError(f"steps must be >= 0, got {self.steps}")
        if self.workers is not None and self.workers < 1:
            raise InvalidConfigError(f"workers must be >= 1, got {self.workers}")
        if not isinstance(self.method, ForceMethod):
            raise InvalidConfigError(f"Unknown force method: {self.method!r}")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SimulationConfig:
        """
        Build a validated config from plain data (e.g. parsed JSON).

        Raises:
            InvalidConfigError: On unknown keys, unknown method names or
                out-of-range values
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = dict(data)
        if "method" in values and not isinstance(values["method"], ForceMethod):
            try:
                values["method"] = ForceMethod(values["method"])
            except ValueError:
                valid = [m.value for m in ForceMethod]
                raise InvalidConfigError(
                    f"method must be one of {valid}, got {values['method']!r}"
                ) from None
        return cls(**values).validate()


__all__ = ["ForceMethod", "SimulationConfig"]
