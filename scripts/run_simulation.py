#!/usr/bin/env python3
"""
Run an N-body simulation from the command line.

Usage:
    uv run python scripts/run_simulation.py [--bodies N] [--steps N] [--method METHOD]

Examples:
    uv run python scripts/run_simulation.py --bodies 2000 --steps 50
    uv run python scripts/run_simulation.py --generator orbital --method multipole
    uv run python scripts/run_simulation.py --config params.json --log-level DEBUG
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Optional

from nbody_sim import (
    ForceMethod,
    NumericalDivergenceError,
    Simulation,
    SimulationConfig,
    ValidationError,
    total_energy,
    total_mass,
)
from nbody_sim.generators import attractor_bodies, orbital_bodies, uniform_bodies

GENERATORS = {
    "uniform": uniform_bodies,
    "orbital": orbital_bodies,
    "attractor": attractor_bodies,
}


def load_config(path: Optional[Path], overrides: dict[str, Any]) -> SimulationConfig:
    """Read a JSON config file (if any) and apply command-line overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        with open(path) as f:
            data = json.load(f)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return SimulationConfig.from_mapping(data)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run an N-body simulation")
    parser.add_argument("--config", type=Path, help="JSON file with SimulationConfig fields")
    parser.add_argument("--bodies", type=int, default=1000, help="Number of bodies")
    parser.add_argument("--steps", type=int, default=100, help="Steps to run (0 = until Ctrl-C)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--generator", choices=sorted(GENERATORS), default="uniform", help="Initial population"
    )
    parser.add_argument("--method", choices=[m.value for m in ForceMethod], help="Force method")
    parser.add_argument("--theta", type=float, help="Barnes-Hut threshold")
    parser.add_argument("--dimensions", type=int, choices=[2, 3], help="Dimensionality")
    parser.add_argument("--workers", type=int, help="Worker threads")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        config = load_config(
            args.config,
            {
                "method": args.method,
                "theta": args.theta,
                "dimensions": args.dimensions,
                "workers": args.workers,
                "steps": args.steps or None,
            },
        )
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    bodies = GENERATORS[args.generator](args.bodies, seed=args.seed, config=config)
    sim = Simulation(bodies=bodies, config=config)

    energy_start = total_energy(sim.bodies, config) if len(bodies) <= 2000 else None
    start = time.perf_counter()
    try:
        sim.run()
    except NumericalDivergenceError as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        sim.stop()
    elapsed = time.perf_counter() - start

    per_step = elapsed / max(1, sim.step_count)
    print(f"{sim.step_count} steps in {elapsed:.2f}s ({per_step:.4f}s/step)")
    print(f"Bodies: {len(bodies)} -> {len(sim.bodies)}, mass: {total_mass(sim.bodies):.6g}")
    if energy_start is not None:
        print(f"Energy: {energy_start:.6g} -> {total_energy(sim.bodies, config):.6g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
