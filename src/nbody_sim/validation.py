"""
Input validation utilities and simulation errors.

Provides centralized validation for configuration values and body
populations, plus the fatal numerical-divergence error raised by the
simulation loop. The tree and force code never validate their inputs;
validation happens at the front door (``SimulationConfig`` and
``Simulation``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .types import Body

from .vector import SUPPORTED_DIMENSIONS


class ValidationError(ValueError):
    """Base exception for simulation validation errors."""

    pass


class InvalidConfigError(ValidationError):
    """Raised when a configuration value is out of range."""

    pass


class InvalidDimensionError(ValidationError):
    """Raised when a dimensionality other than 2 or 3 is requested."""

    pass


class InvalidBodyError(ValidationError):
    """Raised when a body population is malformed."""

    pass


class PerformanceWarning(UserWarning):
    """Warning about performance-related issues."""

    pass


class NumericalDivergenceError(ArithmeticError):
    """
    Raised when a body's position, velocity or force becomes NaN.

    This signals irrecoverable divergence (typically too small a softening
    length or too large a time step) and is never recovered in place.

    Attributes:
        body_id: Id of the first body found with a NaN component
        step: Step index at which the NaN was detected
    """

    def __init__(self, body_id: int, step: int, field: str = "state") -> None:
        self.body_id = body_id
        self.step = step
        self.field = field
        super().__init__(f"Body {body_id} has NaN {field} at step {step}")


def validate_dimensions(dimensions: int) -> int:
    """
    Validate dimensionality is one of the supported values.

    Raises:
        InvalidDimensionError: If dimensions is not 2 or 3
    """
    if dimensions not in SUPPORTED_DIMENSIONS:
        raise InvalidDimensionError(
            f"dimensions must be one of {SUPPORTED_DIMENSIONS}, got {dimensions}"
        )
    return dimensions


def validate_positive(name: str, value: float) -> float:
    """
    Validate a value is strictly positive.

    Raises:
        InvalidConfigError: If value <= 0
    """
    if not value > 0:
        raise InvalidConfigError(f"{name} must be positive, got {value}")
    return value


def validate_theta(theta: float) -> float:
    """
    Validate the Barnes-Hut threshold is non-negative.

    Raises:
        InvalidConfigError: If theta < 0
    """
    if not theta >= 0:
        raise InvalidConfigError(f"theta must be >= 0, got {theta}")
    return theta


def validate_fraction(name: str, value: float) -> float:
    """
    Validate a value lies in (0, 1].

    Raises:
        InvalidConfigError: If value is outside (0, 1]
    """
    if not 0 < value <= 1:
        raise InvalidConfigError(f"{name} must be in (0, 1], got {value}")
    return value


def validate_bodies(
    bodies: Sequence[Body],
    dimensions: int,
    strict: bool = True,
) -> list[tuple[int, str]]:
    """
    Validate a body population.

    Checks that ids are unique and every vector has the configured
    dimensionality. Non-positive mass is not an issue: such bodies are
    inert and ignored by tree insertion.

    Args:
        bodies: Population to check
        dimensions: Expected vector length
        strict: If True, raises on invalid. If False, returns list of issues.

    Returns:
        List of (body_index, issue_description) tuples

    Raises:
        InvalidBodyError: If strict=True and issues were found
    """
    issues: list[tuple[int, str]] = []
    seen: dict[int, int] = {}

    for i, body in enumerate(bodies):
        previous: Optional[int] = seen.get(body.id)
        if previous is not None:
            issues.append((i, f"Body {i}: id {body.id} already used by body {previous}"))
        else:
            seen[body.id] = i

        for field in ("position", "velocity", "force"):
            length = len(getattr(body, field))
            if length != dimensions:
                issues.append(
                    (i, f"Body {i}: {field} has {length} coordinates, expected {dimensions}")
                )

    if strict and issues:
        msg = "Invalid bodies:\n" + "\n".join(issue[1] for issue in issues)
        raise InvalidBodyError(msg)

    return issues


__all__ = [
    "ValidationError",
    "InvalidConfigError",
    "InvalidDimensionError",
    "InvalidBodyError",
    "PerformanceWarning",
    "NumericalDivergenceError",
    "validate_dimensions",
    "validate_positive",
    "validate_theta",
    "validate_fraction",
    "validate_bodies",
]
