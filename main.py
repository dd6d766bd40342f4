#!/usr/bin/env python3
"""
Main entry point for the XPBD cloth simulation.

Usage:
    python main.py run --steps 300 --pins table --save trajectory.npy --animate
    python main.py run --rx 20 --rz 20 --pins corners --bend-compliance 1.0 --plot
"""

import argparse
import logging
import sys

import numpy as np

from xpbd_cloth import (
    SolverConfig,
    ClothConfig,
    ClothSimulation,
    XPBDError,
    corner_pins,
    table_pins,
    animate_cloth,
    plot_trajectories,
    setup_logging,
)

PIN_MODES = {
    "table": table_pins,
    "corners": corner_pins,
    "none": None,
}


def run_simulation(args, logger):
    """Run the cloth simulation."""
    logger.info("=== XPBD Cloth Simulation ===")

    cloth_config = ClothConfig(
        rx=args.rx,
        rz=args.rz,
        width=args.width,
        height=args.height,
        y=args.y,
    )
    solver_config = SolverConfig(
        iterations=args.iterations,
        stretch_compliance=args.stretch_compliance,
        bend_compliance=args.bend_compliance,
        damping=args.damping,
        gravity=(0.0, -args.g, 0.0),
        max_dt=args.max_dt,
    )

    logger.info(
        f"Config: {cloth_config.rx}x{cloth_config.rz} cloth, Ns={solver_config.iterations}, "
        f"stretch={solver_config.stretch_compliance:g}, bend={solver_config.bend_compliance:g}"
    )
    logger.info(f"Steps: {args.steps}, dt={args.dt:.6f}, pins={args.pins}")

    simulation = ClothSimulation(cloth_config, solver_config, pins=PIN_MODES[args.pins])
    logger.info(f"Device: {solver_config.device}")

    logger.info("Running simulation...")
    trajectory = simulation.run(args.steps, dt=args.dt, record=True)
    logger.info(f"Trajectory shape: {trajectory.shape}")

    if args.save:
        np.save(args.save, trajectory)
        logger.info(f"Saved trajectory to {args.save} with shape {trajectory.shape}")

    if args.animate:
        logger.info("Creating animation...")
        animate_cloth(trajectory[:: args.frame_stride], simulation.mesh.triangles,
                      path=args.animation_path)
        logger.info(f"Animation saved to {args.animation_path}")

    if args.plot:
        import matplotlib.pyplot as plt

        plot_trajectories(trajectory, dt=min(args.dt, solver_config.max_dt))
        plt.savefig(args.plot_path)
        logger.info(f"Trajectory plot saved to {args.plot_path}")

    logger.info("Done!")
    return trajectory


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        description="XPBD cloth simulation with stretch, bend and attach constraints"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run a cloth simulation")

    # Cloth parameters
    run_parser.add_argument("--rx", type=int, default=15, help="Particles along x")
    run_parser.add_argument("--rz", type=int, default=30, help="Particles along z")
    run_parser.add_argument("--width", type=float, default=0.6, help="Cloth extent along x")
    run_parser.add_argument("--height", type=float, default=1.2, help="Cloth extent along z")
    run_parser.add_argument("--y", type=float, default=0.0, help="Initial cloth height")
    run_parser.add_argument(
        "--pins", choices=sorted(PIN_MODES), default="table", help="Pinned particle layout"
    )

    # Solver parameters
    run_parser.add_argument(
        "--iterations", type=int, default=20, help="Gauss-Seidel passes per step"
    )
    run_parser.add_argument(
        "--stretch-compliance", type=float, default=1e-9, help="Stretch compliance"
    )
    run_parser.add_argument(
        "--bend-compliance", type=float, default=10.0, help="Bend compliance"
    )
    run_parser.add_argument(
        "--damping", type=float, default=0.0, help="Global velocity damping in [0, 1]"
    )
    run_parser.add_argument("--g", type=float, default=9.8, help="Gravity")

    # Simulation parameters
    run_parser.add_argument("--dt", type=float, default=0.016, help="Frame time step")
    run_parser.add_argument(
        "--max-dt", type=float, default=0.017, help="Largest time step passed to the solver"
    )
    run_parser.add_argument("--steps", type=int, default=300, help="Number of steps")

    # Output options
    run_parser.add_argument("--save", type=str, help="Save trajectory to .npy file")
    run_parser.add_argument("--animate", action="store_true", help="Create animation")
    run_parser.add_argument(
        "--animation-path", type=str, default="cloth_animation.gif", help="Animation output path"
    )
    run_parser.add_argument(
        "--frame-stride", type=positive_int, default=5, help="Keep every Nth frame in the animation"
    )
    run_parser.add_argument(
        "--plot", action="store_true", help="Plot particle heights over time"
    )
    run_parser.add_argument(
        "--plot-path", type=str, default="trajectories.png", help="Plot output path"
    )
    run_parser.add_argument("--log-file", type=str, help="Also log to this file")
    run_parser.add_argument("--verbose", action="store_true", help="Log every step")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "run":
        parser.print_help()
        sys.exit(1)

    logger = setup_logging(
        log_file=args.log_file,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    try:
        return run_simulation(args, logger)
    except XPBDError as exc:
        logger.error(str(exc))
        sys.exit(2)


if __name__ == "__main__":
    main()
