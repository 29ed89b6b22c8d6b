"""
Spatial data structures for efficient force calculations.

Provides the Barnes-Hut mass tree and the bucketed multipole tree for
O(n log n) gravitational force approximation, plus the splittable
bounding box both are built on.
"""

from .bounding_box import BoundingBox
from .bucket_tree import BucketTree, BucketTreeNode
from .mass_tree import MassTreeNode, SpatialTree

__all__ = ["BoundingBox", "BucketTree", "BucketTreeNode", "MassTreeNode", "SpatialTree"]
