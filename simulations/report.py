# simulations/report.py

from __future__ import annotations

import argparse
import logging
import math
import sys

from .common import ExperimentSpec, format_result_line
from .experiments import EXPERIMENTS, get_experiment
from .run import run_experiment, suite_top_index

from src.noise_sequences.bit_source import DETERMINISTIC, resolve_seed
from src.noise_sequences.sequences import GENERATORS


# Keep the tool intentionally opinionated:
# - sizes are fixed here, not on the command line
# - the seed is fixed only when DETERMINISTIC is set (or --seed is given)
DEFAULT_SPEC = ExperimentSpec(
    lottery_win_frequency=10_000,
    lottery_test_count=1_000,
    sum_test_count=100,
    sum_repeat_count=1_000,
    sum_window=32,
    candidate_count=1_000,
    candidate_test_count=10_000,
    workers=8,
)


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(
        description="Estimate e-related probabilities via Monte Carlo with different sample sequences."
    )
    parser.add_argument("--generators", default=",".join(GENERATORS), help="comma separated, e.g. white,golden_ratio")
    parser.add_argument("--experiments", default=",".join(EXPERIMENTS), help="comma separated: lottery,sum,candidates")
    parser.add_argument("--seed", type=int, default=None, help="fixed global seed (overrides DETERMINISTIC)")
    parser.add_argument("--log-level", default="WARNING", help="logging level")
    parser.add_argument("--no-progress", action="store_true", help="do not draw the progress indicator")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    seed = args.seed if args.seed is not None else resolve_seed(DETERMINISTIC)
    generators = _split(args.generators)
    experiments = [get_experiment(e) for e in _split(args.experiments)]

    print(f"e = {math.e:f}\n")
    print(f"1/e = {1.0 / math.e:f}\n")
    print(f"seed = {seed}\n")

    for exp_ordinal, exp in enumerate(experiments):
        print(f"{exp.title}:")
        for gen_ordinal, generator in enumerate(generators):
            result = run_experiment(
                exp.name,
                generator,
                spec=DEFAULT_SPEC,
                seed=seed,
                top_index=suite_top_index(exp_ordinal, gen_ordinal, len(generators)),
                show_progress=not args.no_progress,
            )
            print(format_result_line(result, percent=exp.percent))
        print()

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
