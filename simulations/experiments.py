# simulations/experiments.py

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from .common import ExperimentResult, ExperimentSpec, RunningStats, Timer, sequence_index
from .harness import ProgressCounter, run_trials

from src.noise_sequences.bit_source import map_to_range
from src.noise_sequences.sequences import SequenceFn, generate_white, get_generator


logger = logging.getLogger(__name__)

GeneratorLike = Union[str, SequenceFn]

# roles inside one lottery trial
ROLE_WINNING_NUMBER = 0
ROLE_DRAWS = 1


def _resolve_generator(generator: GeneratorLike) -> Tuple[str, SequenceFn]:
    if isinstance(generator, str):
        return generator.strip().lower(), get_generator(generator)
    return getattr(generator, "__name__", "custom"), generator


def _ensure_metrics(metrics: Dict[str, RunningStats], *names: str) -> Dict[str, RunningStats]:
    # all-exhausted runs still report every metric (as NaN)
    for name in names:
        metrics.setdefault(name, RunningStats())
    return metrics


def lottery_test(
    spec: ExperimentSpec,
    seed: int,
    generator: GeneratorLike,
    top_index: int = 0,
    progress: Optional[ProgressCounter] = None,
) -> ExperimentResult:
    """
    N-trial 1/N lottery.

    Each trial draws a winning number in [0, W) from white noise, then W
    tickets from the generator under test. The reported statistic is the
    chance nobody wins, which tends to (1 - 1/W)^W ~ 1/e for decorrelated
    generators.
    """
    name, fn = _resolve_generator(generator)
    w = spec.lottery_win_frequency
    outer_count = spec.lottery_test_count

    def trial(outer: int, inner: int) -> Dict[str, float]:
        win_index = sequence_index(top_index, outer, inner, ROLE_WINNING_NUMBER, outer_count, 1, 2)
        draw_index = sequence_index(top_index, outer, inner, ROLE_DRAWS, outer_count, 1, 2)

        winning_number = map_to_range(float(generate_white(1, win_index, seed)[0]), 0, w - 1)
        tickets = map_to_range(fn(w, draw_index, seed), 0, w - 1)
        won = bool(np.any(tickets == winning_number))
        return {"lose": 0.0 if won else 1.0}

    with Timer() as t:
        reduced = run_trials(trial, outer_count, 1, spec.workers, progress)

    return ExperimentResult(
        experiment="lottery",
        generator=name,
        spec=spec,
        seed=seed,
        metrics=_ensure_metrics(reduced.metrics, "lose"),
        primary="lose",
        expected=(1.0 - 1.0 / w) ** w,
        exhausted=reduced.exhausted,
        runtime_s=t.elapsed_s,
        meta={"win_frequency": w},
    )


def sum_test(
    spec: ExperimentSpec,
    seed: int,
    generator: GeneratorLike,
    top_index: int = 0,
    progress: Optional[ProgressCounter] = None,
) -> ExperimentResult:
    """
    Count the draws needed for a running sum to reach 1.0; the mean count
    tends to e.

    A trial whose window of `sum_window` draws never reaches 1.0 is
    exhausted: it is excluded from the mean and counted separately.
    """
    name, fn = _resolve_generator(generator)
    outer_count = spec.sum_test_count
    inner_count = spec.sum_repeat_count
    window = spec.sum_window

    def trial(outer: int, inner: int) -> Optional[Dict[str, float]]:
        index = sequence_index(top_index, outer, inner, 0, outer_count, inner_count, 1)
        running = np.cumsum(fn(window, index, seed))
        reached = np.flatnonzero(running >= 1.0)
        if reached.size == 0:
            return None
        return {"count": float(reached[0] + 1)}

    with Timer() as t:
        reduced = run_trials(trial, outer_count, inner_count, spec.workers, progress)

    if reduced.exhausted:
        logger.warning(
            "sum test: %d of %d trials with generator '%s' never reached 1.0 within %d draws; excluded",
            reduced.exhausted, outer_count * inner_count, name, window,
        )

    return ExperimentResult(
        experiment="sum",
        generator=name,
        spec=spec,
        seed=seed,
        metrics=_ensure_metrics(reduced.metrics, "count"),
        primary="count",
        expected=math.e,
        exhausted=reduced.exhausted,
        runtime_s=t.elapsed_s,
        meta={"window": window},
    )


def select_candidate(samples: np.ndarray) -> Tuple[int, bool]:
    """
    Secretary rule: look at the first len/e candidates without choosing,
    then take the first one better than all of them.

    Returns (selected index, fell_back). Falls back to the last candidate
    when nobody beats the look-only maximum.
    """
    n = len(samples)
    if n == 0:
        raise ValueError("samples must be non-empty")

    look = int(n / math.e)
    threshold = float(samples[:look].max()) if look > 0 else -math.inf

    above = np.flatnonzero(samples[look:] > threshold)
    if above.size == 0:
        return n - 1, True
    return look + int(above[0]), False


def candidates_test(
    spec: ExperimentSpec,
    seed: int,
    generator: GeneratorLike,
    top_index: int = 0,
    progress: Optional[ProgressCounter] = None,
) -> ExperimentResult:
    """
    Secretary problem over `candidate_count` candidates.

    Reports how often the selected candidate is the true best (rank 0),
    which tends to 1/e, along with the mean rank and selected position.
    """
    name, fn = _resolve_generator(generator)
    n = spec.candidate_count
    outer_count = spec.candidate_test_count

    def trial(outer: int, inner: int) -> Dict[str, float]:
        index = sequence_index(top_index, outer, inner, 0, outer_count, 1, 1)
        samples = fn(n, index, seed)
        selected, fell_back = select_candidate(samples)
        rank = int(np.count_nonzero(samples > samples[selected]))
        return {
            "best_found": 1.0 if rank == 0 else 0.0,
            "rank": float(rank),
            "selected_index": float(selected),
            "fallback": 1.0 if fell_back else 0.0,
        }

    with Timer() as t:
        reduced = run_trials(trial, outer_count, 1, spec.workers, progress)

    metrics = _ensure_metrics(reduced.metrics, "best_found", "rank", "selected_index", "fallback")
    return ExperimentResult(
        experiment="candidates",
        generator=name,
        spec=spec,
        seed=seed,
        metrics=metrics,
        primary="best_found",
        expected=1.0 / math.e,
        exhausted=reduced.exhausted,
        runtime_s=t.elapsed_s,
        meta={"candidate_count": n, "look_count": int(n / math.e)},
    )


# --- Registry / dispatch -----------------------------------------------------

@dataclass(frozen=True)
class Experiment:
    name: str
    title: str
    run: Callable[..., ExperimentResult]
    trial_count: Callable[[ExperimentSpec], int]
    percent: bool = False


def get_experiment(name: str) -> Experiment:
    name = name.strip().lower()
    if name not in EXPERIMENTS:
        raise ValueError(f"unknown experiment '{name}'. Available: {sorted(EXPERIMENTS.keys())}")
    return EXPERIMENTS[name]


EXPERIMENTS: Dict[str, Experiment] = {
    "lottery": Experiment(
        name="lottery",
        title="Lottery Lose Chance",
        run=lottery_test,
        trial_count=lambda s: s.lottery_test_count,
        percent=True,
    ),
    "sum": Experiment(
        name="sum",
        title="Draws Until Sum >= 1",
        run=sum_test,
        trial_count=lambda s: s.sum_test_count * s.sum_repeat_count,
    ),
    "candidates": Experiment(
        name="candidates",
        title="Best Candidate Chance",
        run=candidates_test,
        trial_count=lambda s: s.candidate_test_count,
        percent=True,
    ),
}
