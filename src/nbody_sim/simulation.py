"""
The simulation loop.

Each step runs four strictly ordered phases:

1. Tree rebuild (single-threaded): the only phase that builds structure.
2. Force evaluation (parallel over bodies): every body reads the finished
   tree and writes only its own ``force`` slot, so no locking is needed.
3. Integration (parallel over bodies): ``v += F/m * dt``, then ``x += v * dt``.
4. Merge: parallel pair detection, single-threaded consumption.

A NaN in any body's position, velocity or force after integration is
fatal and raises ``NumericalDivergenceError``.
"""

from __future__ import annotations

import itertools
import logging
import time
import warnings
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Sequence, Union

if TYPE_CHECKING:
    from typing_extensions import Self

import numpy as np

from .config import ForceMethod, SimulationConfig
from .force import direct_force
from .merge import merge_pass
from .parallel import fork_join
from .spatial import BucketTree, SpatialTree
from .types import Body, BodyLike, Event, EventType
from .validation import NumericalDivergenceError, PerformanceWarning, validate_bodies

logger = logging.getLogger(__name__)

# Direct summation above this many bodies triggers a PerformanceWarning
DIRECT_METHOD_WARN_LIMIT = 2000

Tree = Union[SpatialTree, BucketTree]


def build_tree(bodies: Sequence[Body], config: SimulationConfig) -> Optional[Tree]:
    """
    Build the force tree for the configured method.

    Returns:
        A ``SpatialTree`` (barnes_hut), a ``BucketTree`` with its multipole
        expansion computed (multipole), or None for direct summation
    """
    if config.method == ForceMethod.BARNES_HUT:
        return SpatialTree.from_bodies(bodies, config)
    if config.method == ForceMethod.MULTIPOLE:
        return BucketTree.from_bodies(bodies, config)
    return None


def compute_forces(
    bodies: Sequence[Body],
    config: SimulationConfig,
    tree: Optional[Tree] = None,
    executor: Optional[Executor] = None,
) -> None:
    """
    Overwrite every body's ``force`` with its net gravitational force.

    Args:
        bodies: Population; each body's force slot is written exactly once
        config: Simulation parameters
        tree: Tree built from ``bodies``; None means direct summation
        executor: Optional worker pool
    """

    def evaluate(start: int, stop: int) -> None:
        for i in range(start, stop):
            body = bodies[i]
            if body.mass <= 0:
                body.force = np.zeros(config.dimensions, dtype=np.float64)
            elif tree is None:
                body.force = direct_force(body, bodies, config)
            else:
                body.force = tree.compute_force(body, config.theta)

    fork_join(evaluate, len(bodies), executor, config.worker_count)


def integrate(
    bodies: Sequence[Body],
    config: SimulationConfig,
    executor: Optional[Executor] = None,
) -> None:
    """Advance velocities then positions of every body by ``config.dt``."""
    dt = config.dt

    def advance(start: int, stop: int) -> None:
        for i in range(start, stop):
            body = bodies[i]
            if body.mass > 0:
                body.update_velocity(dt)
            body.update_position(dt)

    fork_join(advance, len(bodies), executor, config.worker_count)


def check_divergence(bodies: Sequence[Body], step: int) -> None:
    """
    Raise on the first body holding a NaN.

    Raises:
        NumericalDivergenceError: Identifying the body and the step
    """
    for body in bodies:
        field = body.nan_field()
        if field is not None:
            logger.error("Body %d diverged (NaN %s) at step %d", body.id, field, step)
            raise NumericalDivergenceError(body.id, step, field)


def advance_population(
    bodies: List[Body],
    config: SimulationConfig,
    executor: Optional[Executor] = None,
    id_source: Optional[Iterator[int]] = None,
    step: int = 0,
) -> List[Body]:
    """
    Run one full step on ``bodies`` in place and return the merged population.

    The bodies that survive the merge are the same objects that were passed
    in; use ``simulate_step`` for a copying variant.
    """
    tree = build_tree(bodies, config)
    if tree is not None and logger.isEnabledFor(logging.DEBUG):
        logger.debug("Step %d: tree of %d nodes, depth %d", step, tree.node_count(), tree.depth())

    compute_forces(bodies, config, tree, executor)
    integrate(bodies, config, executor)
    check_divergence(bodies, step)
    return merge_pass(bodies, config, executor, id_source)


def simulate_step(
    bodies: Sequence[BodyLike],
    config: SimulationConfig,
    executor: Optional[Executor] = None,
    id_source: Optional[Iterator[int]] = None,
    step: int = 0,
) -> List[Body]:
    """
    Produce the next population from the current one.

    The input is not mutated: bodies are copied before stepping.

    Args:
        bodies: Current population
        config: Simulation parameters
        executor: Optional worker pool for the parallel phases
        id_source: Fresh ids for merge products
        step: Step index reported on divergence

    Returns:
        The population after one step
    """
    population = [Body.from_data(b) for b in bodies]
    return advance_population(population, config, executor, id_source, step)


class Simulation:
    """
    Repeated stepping of a body population.

    Provides:
    - Event system (start/tick/end) for renderers and telemetry
    - A worker pool shared by every step of a run
    - Termination by step count, by ``stop()``, or by numerical divergence

    Example:
        sim = Simulation(
            bodies=uniform_bodies(500, seed=1, config=config),
            config=config.replace(steps=100),
            on_tick=lambda event: draw(event["bodies"]),
        )
        sim.run()
    """

    def __init__(
        self,
        *,
        bodies: Optional[Sequence[BodyLike]] = None,
        config: Optional[SimulationConfig] = None,
        on_start: Optional[Callable[[Optional[Event]], None]] = None,
        on_tick: Optional[Callable[[Optional[Event]], None]] = None,
        on_end: Optional[Callable[[Optional[Event]], None]] = None,
    ) -> None:
        """
        Initialize a simulation.

        Args:
            bodies: Initial population (Body objects, dicts, or objects with
                body attributes); copied, never mutated
            config: Simulation parameters (validated here)
            on_start: Callback for start event
            on_tick: Callback fired after every step
            on_end: Callback for end event

        Raises:
            ValidationError: If the config or the population is invalid
        """
        self._config: SimulationConfig = (config or SimulationConfig()).validate()
        self._bodies: List[Body] = []
        self._events: dict[EventType, Callable[[Optional[Event]], None]] = {}
        self._step_count: int = 0
        self._running: bool = False
        self._executor: Optional[ThreadPoolExecutor] = None
        self._ids: Iterator[int] = itertools.count(-1, -1)

        if bodies is not None:
            self.bodies = bodies

        if on_start:
            self._events[EventType.start] = on_start
        if on_tick:
            self._events[EventType.tick] = on_tick
        if on_end:
            self._events[EventType.end] = on_end

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def bodies(self) -> List[Body]:
        """Current population. Renderers must treat it as read-only."""
        return self._bodies

    @bodies.setter
    def bodies(self, value: Sequence[BodyLike]) -> None:
        """Replace the population with copies of ``value``."""
        population = [Body.from_data(b) for b in value]
        validate_bodies(population, self._config.dimensions)

        if self._config.method == ForceMethod.DIRECT and len(population) > DIRECT_METHOD_WARN_LIMIT:
            warnings.warn(
                f"Direct O(n^2) force evaluation with {len(population)} bodies. "
                "Consider method='barnes_hut' or 'multipole'.",
                PerformanceWarning,
                stacklevel=3,
            )

        self._bodies = population
        lowest = min((b.id for b in population), default=0)
        self._ids = itertools.count(min(lowest, 0) - 1, -1)

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def step_count(self) -> int:
        """Number of steps completed so far."""
        return self._step_count

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Event System
    # -------------------------------------------------------------------------

    def on(self, event: EventType | str, callback: Callable[[Optional[Event]], None]) -> Self:
        """
        Subscribe to a simulation event.

        Args:
            event: Event type (EventType enum or string name)
            callback: Function to call when event fires

        Returns:
            self (for chaining)
        """
        if isinstance(event, str):
            event = EventType[event]
        self._events[event] = callback
        return self

    def trigger(self, event: Event) -> None:
        """Call the callback registered for the event's type, if any."""
        event_type = event.get("type")
        if event_type is not None and event_type in self._events:
            self._events[event_type](event)

    # -------------------------------------------------------------------------
    # Worker pool
    # -------------------------------------------------------------------------

    def __enter__(self) -> Self:
        self._open_pool()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _open_pool(self) -> bool:
        """Start the worker pool if needed; True if this call started it."""
        if self._executor is not None or self._config.worker_count <= 1:
            return False
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.worker_count, thread_name_prefix="nbody"
        )
        return True

    def close(self) -> None:
        """Shut down the worker pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -------------------------------------------------------------------------
    # Lifecycle Methods
    # -------------------------------------------------------------------------

    def build_tree(self) -> Optional[Tree]:
        """Build the force tree for the current population."""
        return build_tree(self._bodies, self._config)

    def tick(self) -> bool:
        """
        Perform one step.

        Returns:
            True if the configured step count has been reached.

        Raises:
            NumericalDivergenceError: If a body's state became NaN
        """
        limit = self._config.steps
        if limit is not None and self._step_count >= limit:
            return True

        started = time.perf_counter()
        before = len(self._bodies)
        self._bodies = advance_population(
            self._bodies, self._config, self._executor, self._ids, self._step_count
        )
        merged = before - len(self._bodies)
        self._step_count += 1

        logger.debug(
            "Step %d done in %.4fs (%d bodies)",
            self._step_count,
            time.perf_counter() - started,
            len(self._bodies),
        )
        if merged:
            logger.info(
                "Step %d: %d merge(s), %d bodies left", self._step_count, merged, len(self._bodies)
            )

        self.trigger(
            {
                "type": EventType.tick,
                "step": self._step_count,
                "bodies": self._bodies,
                "merged": merged,
            }
        )
        return limit is not None and self._step_count >= limit

    def run(self, steps: Optional[int] = None) -> Self:
        """
        Step until done.

        Args:
            steps: Steps to run in this call. Defaults to the remaining
                ``config.steps``; None in both runs until ``stop()``.

        Returns:
            self (for chaining)
        """
        target: Optional[int] = None
        if steps is not None:
            target = self._step_count + steps
        elif self._config.steps is not None:
            target = self._config.steps

        owns_pool = self._open_pool()
        self._running = True
        logger.info(
            "Simulation start: %d bodies, method=%s, theta=%s",
            len(self._bodies),
            self._config.method.value,
            self._config.theta,
        )
        self.trigger({"type": EventType.start, "step": self._step_count, "bodies": self._bodies})

        try:
            while self._running and (target is None or self._step_count < target):
                if self.tick():
                    break
        finally:
            self._running = False
            if owns_pool:
                self.close()

        logger.info("Simulation end: %d steps, %d bodies", self._step_count, len(self._bodies))
        self.trigger({"type": EventType.end, "step": self._step_count, "bodies": self._bodies})
        return self

    def stop(self) -> Self:
        """Stop after the step in progress."""
        self._running = False
        return self


__all__ = [
    "DIRECT_METHOD_WARN_LIMIT",
    "Simulation",
    "advance_population",
    "build_tree",
    "check_divergence",
    "compute_forces",
    "integrate",
    "simulate_step",
]
