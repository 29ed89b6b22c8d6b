#!/usr/bin/env python3
"""
Compare force evaluation methods on one population.

Times a tree build plus one full force evaluation per method and reports
the relative force error against direct summation and the average number
of tree nodes visited per body.

Usage:
    uv run python scripts/benchmark_solvers.py [--bodies N] [--thetas 0.1,0.5,1.0]
"""

from __future__ import annotations

import argparse
import time

import numpy as np

from nbody_sim import (
    BucketTree,
    ForceMethod,
    SimulationConfig,
    SpatialTree,
    TraversalStats,
    direct_forces,
    force_error,
)
from nbody_sim.generators import uniform_bodies


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--bodies", type=int, default=500)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--dimensions", type=int, choices=[2, 3], default=2)
    parser.add_argument("--thetas", default="0.0,0.1,0.5,1.0")
    args = parser.parse_args()

    config = SimulationConfig(dimensions=args.dimensions, workers=1)
    bodies = uniform_bodies(args.bodies, seed=args.seed, config=config)

    start = time.perf_counter()
    exact = direct_forces(bodies, config)
    direct_time = time.perf_counter() - start

    print(f"{args.bodies} bodies, {args.dimensions}D")
    print(f"  {'direct':22s}: {direct_time:.4f}s")
    print("=" * 72)

    thetas = [float(t) for t in args.thetas.split(",")]
    solvers = ((ForceMethod.BARNES_HUT, SpatialTree), (ForceMethod.MULTIPOLE, BucketTree))
    for method, tree_cls in solvers:
        for theta in thetas:
            cfg = config.replace(method=method, theta=theta)
            stats = TraversalStats()
            start = time.perf_counter()
            tree = tree_cls.from_bodies(bodies, cfg)
            approx = np.array([tree.compute_force(b, theta, stats) for b in bodies])
            elapsed = time.perf_counter() - start

            err = force_error(approx, exact)
            label = f"{method.value} theta={theta}"
            print(
                f"  {label:22s}: {elapsed:.4f}s  "
                f"max err {err.max():.2e}  median err {np.median(err):.2e}  "
                f"nodes/body {stats.nodes_visited / len(bodies):.1f}"
            )


if __name__ == "__main__":
    main()
