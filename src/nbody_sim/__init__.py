"""
nbody-sim: Gravitational N-body simulation on adaptive spatial trees.

This package simulates a population of point masses under softened
Newtonian gravity, approximating the pairwise force sum in O(n log n).

Components:
- spatial: Bounding boxes, the Barnes-Hut mass tree and the bucketed
  multipole tree
- force: Softened force kernel and the exact O(n^2) reference
- merge: Greedy single-pass merging of converged bodies
- simulation: The step loop (rebuild, forces, integration, merge)
- generators: Seeded initial populations
- diagnostics: Mass, momentum, energy and force-error checks
"""

__version__ = "0.1.0"

from .config import ForceMethod, SimulationConfig

# Diagnostics
from .diagnostics import (
    center_of_mass,
    force_error,
    kinetic_energy,
    potential_energy,
    total_energy,
    total_mass,
    total_momentum,
)

# Force evaluation
from .force import TraversalStats, direct_force, direct_forces, gravitational_force

# Merging
from .merge import find_merge_pairs, merge_bodies, merge_pass

# Simulation loop
from .simulation import Simulation, build_tree, simulate_step

# Spatial data structures
from .spatial import BoundingBox, BucketTree, BucketTreeNode, MassTreeNode, SpatialTree
from .types import Body, BodyLike, Event, EventType

# Validation utilities
from .validation import (
    InvalidBodyError,
    InvalidConfigError,
    InvalidDimensionError,
    NumericalDivergenceError,
    PerformanceWarning,
    ValidationError,
    validate_bodies,
)

__all__ = [
    # Version
    "__version__",
    # Shared types
    "Body",
    "BodyLike",
    "Event",
    "EventType",
    # Configuration
    "ForceMethod",
    "SimulationConfig",
    # Spatial data structures
    "BoundingBox",
    "SpatialTree",
    "MassTreeNode",
    "BucketTree",
    "BucketTreeNode",
    # Force evaluation
    "TraversalStats",
    "gravitational_force",
    "direct_force",
    "direct_forces",
    # Merging
    "find_merge_pairs",
    "merge_bodies",
    "merge_pass",
    # Simulation
    "Simulation",
    "build_tree",
    "simulate_step",
    # Diagnostics
    "total_mass",
    "center_of_mass",
    "total_momentum",
    "kinetic_energy",
    "potential_energy",
    "total_energy",
    "force_error",
    # Validation
    "ValidationError",
    "InvalidConfigError",
    "InvalidDimensionError",
    "InvalidBodyError",
    "NumericalDivergenceError",
    "PerformanceWarning",
    "validate_bodies",
]
