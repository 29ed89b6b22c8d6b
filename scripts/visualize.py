#!/usr/bin/env python3
"""
Render simulation snapshots with matplotlib.

Generates one image per generator into ./build/, each showing the
initial population and the trajectories of the first bodies.

Usage:
    uv run python scripts/visualize.py
"""

from pathlib import Path

import matplotlib.pyplot as plt

from nbody_sim import Simulation, SimulationConfig
from nbody_sim.generators import attractor_bodies, orbital_bodies, uniform_bodies

# Output directory
BUILD_DIR = Path(__file__).parent.parent / "build"

TRACKED = 20


def ensure_build_dir():
    """Create build directory if it doesn't exist."""
    BUILD_DIR.mkdir(exist_ok=True)


def run_and_plot(name, bodies, config, ax):
    """Run a simulation, recording tracked trajectories through the tick event."""
    tracked_ids = [b.id for b in bodies[:TRACKED]]
    trails = {body_id: [] for body_id in tracked_ids}

    def record(event):
        for body in event["bodies"]:
            if body.id in trails:
                trails[body.id].append(body.position[:2].copy())

    sim = Simulation(bodies=bodies, config=config, on_tick=record)
    sim.run()

    xs = [b.position[0] for b in sim.bodies]
    ys = [b.position[1] for b in sim.bodies]
    sizes = [max(2.0, min(80.0, b.radius)) for b in sim.bodies]
    ax.scatter(xs, ys, s=sizes, c="steelblue", alpha=0.7, edgecolors="none")

    for points in trails.values():
        if len(points) > 1:
            ax.plot([p[0] for p in points], [p[1] for p in points], "gray", alpha=0.5, linewidth=1)

    ax.set_title(f"{name} ({len(sim.bodies)} bodies, {sim.step_count} steps)", fontsize=12)
    ax.set_aspect("equal")
    ax.axis("off")


def main():
    ensure_build_dir()
    config = SimulationConfig(gravitational_constant=6.674e-11, softening=1.0, dt=1.0, steps=200)

    scenarios = [
        ("Uniform", uniform_bodies(300, seed=1, config=config)),
        ("Orbital", orbital_bodies(300, seed=2, config=config)),
        ("Attractors", attractor_bodies(300, attractors=3, seed=3, config=config)),
    ]

    fig, axes = plt.subplots(1, len(scenarios), figsize=(6 * len(scenarios), 6))
    for ax, (name, bodies) in zip(axes, scenarios):
        run_and_plot(name, bodies, config, ax)

    output = BUILD_DIR / "simulation.png"
    fig.tight_layout()
    fig.savefig(output, dpi=120)
    print(f"Saved {output}")


if __name__ == "__main__":
    main()
