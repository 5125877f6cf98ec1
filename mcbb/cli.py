"""Command-line entry point for mcbb.

Usage:
    mcbb systems
    mcbb run --config configs/logistic_bifurcation.yaml
    mcbb run --config configs/coupled_logistic_basins.yaml --output results/basins.json --progress
"""

import argparse
import json
import logging
import os
import sys

from mcbb.config import build_problem, load_run_config
from mcbb.systems import get_default_params, list_systems


def cmd_systems(args):
    """List built-in systems and their default parameters."""
    for system_id in list_systems():
        print(f"{system_id:<18} {get_default_params(system_id)}")


def cmd_run(args):
    """Build, solve and summarize a problem from a YAML config."""
    cfg = load_run_config(args.config)
    if args.seed is not None:
        cfg["seed"] = args.seed

    problem = build_problem(cfg)
    solution = problem.solve(progress=args.progress)

    print("\nEnsemble solved.")
    print(f"  System          : {cfg['system']}")
    print(f"  Trials          : {solution.trial_count}")
    print(f"  State dimension : {solution.state_dimension}")
    print(f"  Measures        : {solution.measure_count} "
          f"({solution.per_dimension_measure_count} per dim, "
          f"{solution.global_measure_count} global)")

    if args.output:
        out_dir = os.path.dirname(args.output)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        payload = {
            "config": cfg,
            "ic_par": problem.ic_par.tolist(),
            "solution": solution.to_dict(),
        }
        with open(args.output, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
        print(f"  Output          : {args.output}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="mcbb",
        description="Monte Carlo basin/bifurcation ensembles for custom-solved systems",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("systems", help="List built-in systems")

    run_parser = subparsers.add_parser("run", help="Solve an ensemble from a YAML config")
    run_parser.add_argument("--config", type=str, help="Run config YAML")
    run_parser.add_argument("--output", type=str, help="Write results as JSON")
    run_parser.add_argument("--seed", type=int, help="Override seed")
    run_parser.add_argument("--progress", action="store_true", help="Show a progress bar")
    run_parser.add_argument("--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(message)s",
    )

    try:
        if args.command == "systems":
            cmd_systems(args)
        elif args.command == "run":
            cmd_run(args)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
