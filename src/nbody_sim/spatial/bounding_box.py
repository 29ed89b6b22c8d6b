"""
Axis-aligned bounding boxes that split into 2^D octants.

Octant indices are bit masks: bit i is set when the point lies on the
upper half of dimension i. ``child(quadrant(pos))`` is the sub-box that
contains ``pos``.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from ..vector import VectorLike


class BoundingBox:
    """
    Splittable multidimensional bounding box.

    No assertions are made by the splitting methods; callers keep points
    inside the box they query.

    Attributes:
        min: Lower corner (D-vector)
        max: Upper corner (D-vector)
    """

    __slots__ = ("min", "max")

    def __init__(self, min: VectorLike, max: VectorLike) -> None:
        self.min: np.ndarray = np.array(min, dtype=np.float64).reshape(-1)
        self.max: np.ndarray = np.array(max, dtype=np.float64).reshape(-1)

    @classmethod
    def cube(cls, low: float, high: float, dimensions: int) -> BoundingBox:
        """Create a box spanning ``[low, high]`` in every dimension."""
        return cls(np.full(dimensions, low), np.full(dimensions, high))

    @classmethod
    def around(
        cls, positions: Iterable[Sequence[float]], dimensions: int, padding: float = 0.0
    ) -> BoundingBox:
        """
        Smallest cube enclosing all positions, grown by ``padding`` per side.

        A cube keeps child cells square, so box size is one number per level.
        An empty input yields a unit cube at the origin.
        """
        points = np.array(list(positions), dtype=np.float64).reshape(-1, dimensions)
        if points.shape[0] == 0:
            return cls.cube(-0.5, 0.5, dimensions)

        low = points.min(axis=0)
        high = points.max(axis=0)
        center = (low + high) / 2
        half = float((high - low).max()) / 2 + padding
        if half <= 0:
            half = 0.5
        return cls(center - half, center + half)

    @property
    def dimensions(self) -> int:
        return int(self.min.shape[0])

    def center(self) -> np.ndarray:
        """Center point (average of min and max)."""
        return (self.min + self.max) / 2

    def diff(self) -> np.ndarray:
        """Per-dimension extent (max - min)."""
        return self.max - self.min

    def size(self) -> float:
        """Width of the box along its widest dimension."""
        return float(self.diff().max())

    def contains(self, pos: Sequence[float]) -> bool:
        """Check if ``pos`` lies inside the box (boundaries included)."""
        p = np.asarray(pos, dtype=np.float64)
        return bool(np.all(p >= self.min) and np.all(p <= self.max))

    def quadrant(self, pos: Sequence[float]) -> int:
        """
        Octant index of ``pos``.

        Returns:
            Integer in [0, 2^D) with bit i set iff pos[i] >= center[i]
        """
        center = self.center()
        index = 0
        for i in range(self.dimensions):
            if pos[i] >= center[i]:
                index |= 1 << i
        return index

    def child(self, quadrant: int) -> BoundingBox:
        """
        Sub-box for an octant index returned by ``quadrant()``.

        For each dimension, a set bit moves min up to the center, a clear
        bit moves max down to it.
        """
        center = self.center()
        low = self.min.copy()
        high = self.max.copy()
        for i in range(self.dimensions):
            if quadrant & (1 << i):
                low[i] = center[i]
            else:
                high[i] = center[i]
        return BoundingBox(low, high)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoundingBox):
            return NotImplemented
        return bool(np.array_equal(self.min, other.min) and np.array_equal(self.max, other.max))

    def __repr__(self) -> str:
        return f"BoundingBox(min={self.min.tolist()}, max={self.max.tolist()})"


__all__ = ["BoundingBox"]
