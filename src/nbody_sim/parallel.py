"""
Fork-join helpers over contiguous index ranges.

Each parallel phase of a step splits ``range(n)`` into one contiguous
chunk per worker, maps a function over the chunks and waits for all of
them before returning (the barrier). Results come back in chunk order.
Without an executor the chunks run inline on the calling thread.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Callable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def chunk_ranges(n: int, parts: int) -> List[Tuple[int, int]]:
    """
    Split ``range(n)`` into at most ``parts`` contiguous (start, stop) ranges.

    Sizes differ by at most one; no range is empty.
    """
    parts = max(1, min(parts, n))
    if n == 0:
        return []
    base, extra = divmod(n, parts)
    ranges = []
    start = 0
    for k in range(parts):
        stop = start + base + (1 if k < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def fork_join(
    fn: Callable[[int, int], T],
    n: int,
    executor: Optional[Executor] = None,
    parts: int = 1,
) -> List[T]:
    """
    Run ``fn(start, stop)`` over chunks of ``range(n)`` and collect results.

    Args:
        fn: Work function for one chunk
        n: Number of items
        executor: Worker pool; None runs every chunk on the calling thread
        parts: Number of chunks to split into

    Returns:
        Results in chunk order
    """
    ranges = chunk_ranges(n, parts)
    if executor is None or len(ranges) <= 1:
        return [fn(start, stop) for start, stop in ranges]
    return list(executor.map(lambda r: fn(*r), ranges))


__all__ = ["chunk_ranges", "fork_join"]
