"""
Fixed-dimension vector primitives.

Vectors are plain ``numpy`` float64 arrays of length D (2 or 3). The helpers
here cover the handful of operations the trees and integrator need beyond
numpy's own arithmetic: magnitude, distance, guarded normalization and
NaN detection.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

SUPPORTED_DIMENSIONS = (2, 3)

VectorLike = Union[np.ndarray, Sequence[float]]


def zeros(dimensions: int) -> np.ndarray:
    """Return a zero vector of the given dimensionality."""
    return np.zeros(dimensions, dtype=np.float64)


def as_vector(values: VectorLike, dimensions: int) -> np.ndarray:
    """
    Copy values into a float64 vector of length ``dimensions``.

    Raises:
        ValueError: If the number of coordinates does not match.
    """
    vec = np.array(values, dtype=np.float64).reshape(-1)
    if vec.shape[0] != dimensions:
        raise ValueError(f"Expected {dimensions} coordinates, got {vec.shape[0]}")
    return vec


def magnitude(v: np.ndarray) -> float:
    """Euclidean length of v."""
    return math.sqrt(float(np.dot(v, v)))


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between a and b."""
    d = a - b
    return math.sqrt(float(np.dot(d, d)))


def normalize(v: np.ndarray, threshold: float = 1e-9) -> np.ndarray:
    """
    Return v scaled to unit length.

    A vector whose magnitude is at or below ``threshold`` normalizes to
    the zero vector, so near-coincident points contribute no force.
    """
    mag = magnitude(v)
    if mag <= threshold:
        return np.zeros_like(v, dtype=np.float64)
    return v / mag


def has_nan(v: np.ndarray) -> bool:
    """True if any coordinate of v is NaN."""
    return bool(np.isnan(v).any())


__all__ = [
    "SUPPORTED_DIMENSIONS",
    "VectorLike",
    "zeros",
    "as_vector",
    "magnitude",
    "distance",
    "normalize",
    "has_nan",
]
