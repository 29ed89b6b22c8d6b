"""
Merging of bodies that have converged closer than a threshold.

The pass is a single greedy sweep, not a clustering: candidate pairs
(i < j) are sorted by their first index and consumed in that order, and a
pair is skipped when either body was already consumed earlier in the same
pass. Three mutually close bodies therefore produce one merge per pass.

Pair detection is split across workers by row range; consumption and the
rewrite of the population run on the calling thread.
"""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import Executor
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .config import SimulationConfig
from .parallel import fork_join
from .types import Body

logger = logging.getLogger(__name__)


def find_merge_pairs(
    bodies: Sequence[Body],
    threshold: float,
    executor: Optional[Executor] = None,
    parts: int = 1,
) -> List[Tuple[int, int]]:
    """
    Find all index pairs (i, j), i < j, closer than ``threshold``.

    Args:
        bodies: Population to scan
        threshold: Merge distance
        executor: Optional worker pool for the row scan
        parts: Number of row ranges to scan independently

    Returns:
        Pairs sorted by first index (second index ascending within a row)

    Time Complexity: O(n^2)
    """
    n = len(bodies)
    if n < 2:
        return []
    positions = np.array([b.position for b in bodies], dtype=np.float64)

    def scan(start: int, stop: int) -> List[Tuple[int, int]]:
        local: List[Tuple[int, int]] = []
        for i in range(start, stop):
            rest = positions[i + 1 :] - positions[i]
            dist = np.sqrt(np.einsum("ij,ij->i", rest, rest))
            for j in np.nonzero(dist < threshold)[0]:
                local.append((i, i + 1 + int(j)))
        return local

    pairs: List[Tuple[int, int]] = []
    for chunk in fork_join(scan, n, executor, parts):
        pairs.extend(chunk)
    pairs.sort(key=lambda p: p[0])
    return pairs


def merge_bodies(a: Body, b: Body, new_id: int, damping: float = 0.6) -> Body:
    """
    Combine two bodies into one.

    Position and velocity are the mass-weighted averages of the inputs
    (weighted by the pre-merge masses); the mass is the damped sum.

    Args:
        a: First body
        b: Second body
        new_id: Id for the merge product
        damping: Factor applied to the summed mass
    """
    mass = a.mass + b.mass
    if mass <= 0:
        # Two inert bodies: plain average
        position = (a.position + b.position) / 2.0
        velocity = (a.velocity + b.velocity) / 2.0
    else:
        position = (a.position * a.mass + b.position * b.mass) / mass
        velocity = (a.velocity * a.mass + b.velocity * b.mass) / mass
    radius = (a.radius**3 + b.radius**3) ** (1.0 / 3.0)
    return Body(new_id, mass * damping, position, velocity, radius=radius)


def _default_ids(bodies: Sequence[Body]) -> Iterator[int]:
    lowest = min((b.id for b in bodies), default=0)
    return itertools.count(min(lowest, 0) - 1, -1)


def merge_pass(
    bodies: Sequence[Body],
    config: SimulationConfig,
    executor: Optional[Executor] = None,
    id_source: Optional[Iterator[int]] = None,
) -> List[Body]:
    """
    Merge every greedily-paired couple of close bodies.

    Consumed bodies are removed (surviving bodies keep their order) and
    the merge products are appended at the end.

    Args:
        bodies: Current population
        config: Supplies ``merge_threshold``, ``damping`` and worker count
        executor: Optional worker pool for pair detection
        id_source: Iterator of fresh negative ids for merge products.
            A simulation passes one counter for its whole run so retired ids
            never reappear; the default counts down from below the lowest id
            present.

    Returns:
        The next population
    """
    pairs = find_merge_pairs(bodies, config.merge_threshold, executor, config.worker_count)
    if not pairs:
        return list(bodies)

    ids = id_source if id_source is not None else _default_ids(bodies)
    consumed: set[int] = set()
    products: List[Body] = []

    for i, j in pairs:
        first, second = bodies[i], bodies[j]
        if first.id in consumed or second.id in consumed:
            continue
        products.append(merge_bodies(first, second, next(ids), config.damping))
        consumed.add(first.id)
        consumed.add(second.id)

    logger.debug("Merged %d pairs out of %d candidates", len(products), len(pairs))

    survivors = [b for b in bodies if b.id not in consumed]
    survivors.extend(products)
    return survivors


__all__ = ["find_merge_pairs", "merge_bodies", "merge_pass"]
