# simulations/common.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import math
import time


MAX_SEQUENCE_INDEX = (1 << 64) - 1

# every top-level slice spans the same number of streams, whatever the grid
# shape inside it
TOP_LEVEL_BITS = 40
TOP_LEVEL_STRIDE = 1 << TOP_LEVEL_BITS


@dataclass(frozen=True)
class ExperimentSpec:
    """
    Experiment sizes shared across all simulations.

    Fixed per run: none of these change once an experiment starts.
    """
    lottery_win_frequency: int = 10_000
    lottery_test_count: int = 1_000
    sum_test_count: int = 100      # outer slots
    sum_repeat_count: int = 100    # inner repetitions per slot
    sum_window: int = 32           # draws available to one sum trial
    candidate_count: int = 1_000
    candidate_test_count: int = 10_000
    workers: int = 4

    def __post_init__(self) -> None:
        if self.lottery_win_frequency <= 0:
            raise ValueError("lottery_win_frequency must be > 0")
        if self.lottery_test_count <= 0:
            raise ValueError("lottery_test_count must be > 0")
        if self.sum_test_count <= 0:
            raise ValueError("sum_test_count must be > 0")
        if self.sum_repeat_count <= 0:
            raise ValueError("sum_repeat_count must be > 0")
        if self.sum_window <= 0:
            raise ValueError("sum_window must be > 0")
        if self.candidate_count <= 0:
            raise ValueError("candidate_count must be > 0")
        if self.candidate_test_count <= 0:
            raise ValueError("candidate_test_count must be > 0")
        if self.workers <= 0:
            raise ValueError("workers must be > 0")


def lerp(a: float, b: float, t: float) -> float:
    return a * (1.0 - t) + b * t


def sequence_index(
    top: int,
    outer: int,
    inner: int,
    role: int,
    outer_count: int,
    inner_count: int = 1,
    role_count: int = 1,
) -> int:
    """
    Address one BitSource stream in the hierarchical index space:
    top-level experiment, outer trial, inner repetition, role in the trial.

    Each level multiplies a disjoint offset, so two distinct tuples (within
    the given counts) never share a stream. Top-level slices have a fixed
    width of TOP_LEVEL_STRIDE, so grids of different shapes under different
    top indices never overlap either.
    """
    if not 0 <= outer < outer_count:
        raise ValueError("outer must be in [0, outer_count)")
    if not 0 <= inner < inner_count:
        raise ValueError("inner must be in [0, inner_count)")
    if not 0 <= role < role_count:
        raise ValueError("role must be in [0, role_count)")
    if top < 0:
        raise ValueError("top must be >= 0")

    if outer_count * inner_count * role_count > TOP_LEVEL_STRIDE:
        raise ValueError("trial grid does not fit in one top-level slice")

    index = top * TOP_LEVEL_STRIDE + (outer * inner_count + inner) * role_count + role
    if index > MAX_SEQUENCE_INDEX:
        raise ValueError("sequence index does not fit in 64 bits")
    return index


class RunningStats:
    """
    Streaming mean and mean-of-squares.

    Each push applies mean_n = lerp(mean_{n-1}, x_n, 1/n), so no running
    total is ever kept. Variance is E[X^2] - E[X]^2.
    """
    __slots__ = ("count", "_mean", "_mean_sq")

    def __init__(self) -> None:
        self.count = 0
        self._mean = 0.0
        self._mean_sq = 0.0

    def push(self, x: float) -> None:
        self.count += 1
        t = 1.0 / self.count
        self._mean = lerp(self._mean, x, t)
        self._mean_sq = lerp(self._mean_sq, x * x, t)

    def merge(self, other: "RunningStats") -> None:
        """
        Fold another accumulator into this one, weighted by sample counts.
        """
        if other.count == 0:
            return
        total = self.count + other.count
        t = other.count / total
        self._mean = lerp(self._mean, other._mean, t)
        self._mean_sq = lerp(self._mean_sq, other._mean_sq, t)
        self.count = total

    @property
    def mean(self) -> float:
        if self.count == 0:
            return math.nan
        return self._mean

    @property
    def variance(self) -> float:
        if self.count == 0:
            return math.nan
        return max(self._mean_sq - self._mean * self._mean, 0.0)

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    def __repr__(self) -> str:
        return f"RunningStats(count={self.count}, mean={self.mean}, variance={self.variance})"


@dataclass
class ExperimentResult:
    """
    Common return type for all experiments.
    """
    experiment: str
    generator: str
    spec: ExperimentSpec
    seed: int
    metrics: Dict[str, RunningStats]
    primary: str
    expected: float
    exhausted: int = 0

    runtime_s: Optional[float] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.primary not in self.metrics:
            raise ValueError(f"primary metric '{self.primary}' missing from metrics")

    @property
    def value(self) -> float:
        return self.metrics[self.primary].mean

    @property
    def trials(self) -> int:
        return self.metrics[self.primary].count


class Timer:
    """
    Tiny timing helper for simulations.
    Usage:
        with Timer() as t:
            ...
        elapsed = t.elapsed_s
    """
    def __init__(self) -> None:
        self._start: Optional[float] = None
        self.elapsed_s: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.time()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._start is not None:
            self.elapsed_s = time.time() - self._start


def format_result_line(r: ExperimentResult, percent: bool = False) -> str:
    """
    Human-friendly one-liner for the console report.
    """
    stats = r.metrics[r.primary]
    if percent:
        body = f"{100.0 * stats.mean:0.2f}% (expected {100.0 * r.expected:0.2f}%)"
    else:
        body = (
            f"{stats.mean:0.4f} (expected {r.expected:0.4f}, variance {stats.variance:0.4f})"
        )
    return (
        f"  {r.generator}: {body}"
        + (f", exhausted={r.exhausted}" if r.exhausted else "")
        + (f", runtime={r.runtime_s:.3f}s" if r.runtime_s is not None else "")
    )
