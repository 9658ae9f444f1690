"""
evaluate_strategies.py - Compare move-up strategies on a synthetic scenario

Usage:
  python evaluate/evaluate_strategies.py --replications=5 --ddsm --model=[model_path]

  --replications: Number of call sets (one replication each)
  --ddsm:         Also evaluate the DDSM strategy (needs the chosen solver)
  --solver:       DDSM solver: cbc, glpk or gurobi
  --model:        Trained PPO model (.zip) to evaluate as a learned policy
  --log-dir:      Write each strategy's decision log as CSV into this directory
  --verbose:      Show detailed logs
"""

import argparse
import logging
import os

import pandas as pd

from ems_moveup.encoding import StationOccupancyEncoder
from ems_moveup.models.sb3_policy import SB3PolicyApproximator
from ems_moveup.simulator.replication import run_replications, split_calls
from ems_moveup.simulator.synthetic import build_grid_scenario
from ems_moveup.strategies import DDSMStrategy, LearnedPolicyStrategy, MoveUpLogger, NullStrategy

SUMMARY_COLUMNS = ["avg_response_time", "survival_rate", "percentile_response_time",
                   "max_response_time", "utilization", "num_relocations", "total_distance"]


def build_strategies(args, base_state):
    strategies = {"none": None, "null": NullStrategy()}
    if args.ddsm:
        strategies["ddsm"] = DDSMStrategy(solver=args.solver)
    if args.model:
        encoder = StationOccupancyEncoder.from_state(base_state)
        strategies["learned"] = LearnedPolicyStrategy(encoder, SB3PolicyApproximator.load(args.model))
    return strategies


def main():
    parser = argparse.ArgumentParser(description="Evaluate move-up strategies against the no move-up baseline")
    parser.add_argument("--replications", type=int, default=5, help="Number of replications")
    parser.add_argument("--ddsm", action="store_true", help="Evaluate the DDSM strategy")
    parser.add_argument("--solver", type=str, default="cbc", choices=["cbc", "glpk", "gurobi"])
    parser.add_argument("--model", type=str, default=None, help="Trained PPO model for the learned strategy")
    parser.add_argument("--grid-size", type=int, default=8)
    parser.add_argument("--num-stations", type=int, default=5)
    parser.add_argument("--num-ambulances", type=int, default=6)
    parser.add_argument("--num-calls", type=int, default=1000)
    parser.add_argument("--calls-per-hour", type=float, default=6.0)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--log-dir", type=str, default=None, help="Directory for decision logs")
    parser.add_argument("--output", type=str, default=None, help="CSV file for the per-replication results")
    parser.add_argument("--verbose", action="store_true", help="Show detailed logs")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    scenario = build_grid_scenario(
        rows=args.grid_size, cols=args.grid_size,
        num_stations=args.num_stations,
        num_ambulances=args.num_ambulances,
        num_calls=args.num_calls,
        calls_per_hour=args.calls_per_hour,
        seed=args.seed,
    )
    base_state = scenario.create_state()
    call_sets = split_calls(base_state.calls, args.replications)

    results = []
    for name, strategy in build_strategies(args, base_state).items():
        print(f"\nEvaluating {name}...")
        logger = None
        if args.log_dir and strategy is not None:
            logger = MoveUpLogger(StationOccupancyEncoder.from_state(base_state))
        df = run_replications(base_state, strategy, call_sets=call_sets, logger=logger)
        df.insert(0, "strategy", name)
        results.append(df)
        if logger is not None:
            path = logger.save_csv(os.path.join(args.log_dir, f"moveup_log_{name}"))
            if path:
                print(f"Decision log saved to {path}")

    results = pd.concat(results, ignore_index=True)
    summary = results.groupby("strategy", sort=False)[SUMMARY_COLUMNS].mean()

    print("\n===== Strategy Comparison (mean over replications) =====")
    with pd.option_context("display.float_format", "{:.3f}".format, "display.width", 120):
        print(summary)

    if args.output:
        results.to_csv(args.output, index=False)
        print(f"\nResults saved to {args.output}")


if __name__ == "__main__":
    main()
