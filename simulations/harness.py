# simulations/harness.py

from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO

from .common import RunningStats


logger = logging.getLogger(__name__)

# trial_fn(outer, inner) -> metric name -> value, or None when the trial's
# sequence ran out before producing an outcome.
TrialFn = Callable[[int, int], Optional[Dict[str, float]]]


class ProgressCounter:
    """
    Units of finished work, shared by all workers.

    Writers increment under a lock; the single reporting thread only reads
    `value` to see whether anything changed.
    """

    def __init__(self, total: int) -> None:
        self.total = total
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, n: int = 1) -> None:
        with self._lock:
            self._value += n

    @property
    def value(self) -> int:
        return self._value


class ProgressReporter:
    """
    Background thread that samples a ProgressCounter and redraws a
    percentage line. It is the only thread that writes progress output.

    Usage:
        with ProgressReporter(counter):
            ...
    """

    def __init__(
        self,
        counter: ProgressCounter,
        stream: Optional[TextIO] = None,
        interval_s: float = 0.25,
        label: str = "",
    ) -> None:
        self.counter = counter
        self.stream = stream if stream is not None else sys.stderr
        self.interval_s = interval_s
        self.label = label
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="progress", daemon=True)
        self._last = -1

    def __enter__(self) -> "ProgressReporter":
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._stop.set()
        self._thread.join()
        # wipe the indicator line
        self.stream.write("\r" + " " * (len(self.label) + 8) + "\r")
        self.stream.flush()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            self._draw()
        self._draw()

    def _draw(self) -> None:
        value = self.counter.value
        if value == self._last:
            return
        self._last = value
        total = max(self.counter.total, 1)
        pct = int(100 * value / total)
        self.stream.write(f"\r{self.label}{pct:3d}%")
        self.stream.flush()


@dataclass
class TrialSlot:
    """
    Accumulator owned by exactly one outer trial index.
    """
    metrics: Dict[str, RunningStats] = field(default_factory=dict)
    exhausted: int = 0

    def record(self, outcome: Dict[str, float]) -> None:
        for name, value in outcome.items():
            stats = self.metrics.get(name)
            if stats is None:
                stats = self.metrics[name] = RunningStats()
            stats.push(value)


@dataclass
class TrialReduction:
    metrics: Dict[str, RunningStats]
    exhausted: int
    slots: List[TrialSlot]


def run_trials(
    trial_fn: TrialFn,
    outer_count: int,
    inner_count: int = 1,
    workers: int = 1,
    progress: Optional[ProgressCounter] = None,
) -> TrialReduction:
    """
    Run an outer x inner grid of trials over a thread pool.

    Work is fanned out per outer index. Every outer index owns one
    TrialSlot, so workers never touch each other's state. Exhausted trials
    (trial_fn returned None) are counted and left out of the statistics.

    The final reduction walks the slots in index order, never in completion
    order, so the result is the same for any worker count.

    An exception in any trial is re-raised here; slots not yet started are
    cancelled first.
    """
    if outer_count <= 0:
        raise ValueError("outer_count must be > 0")
    if inner_count <= 0:
        raise ValueError("inner_count must be > 0")
    if workers <= 0:
        raise ValueError("workers must be > 0")

    slots: List[TrialSlot] = [TrialSlot() for _ in range(outer_count)]

    def run_slot(outer: int) -> None:
        slot = slots[outer]
        for inner in range(inner_count):
            outcome = trial_fn(outer, inner)
            if outcome is None:
                slot.exhausted += 1
                logger.debug("trial (%d, %d) exhausted its sequence", outer, inner)
            else:
                slot.record(outcome)
            if progress is not None:
                progress.increment()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run_slot, outer) for outer in range(outer_count)]
        try:
            for future in futures:
                future.result()
        except BaseException:
            # drop slots that have not started yet
            pool.shutdown(wait=True, cancel_futures=True)
            raise

    metrics: Dict[str, RunningStats] = {}
    exhausted = 0
    for slot in slots:
        exhausted += slot.exhausted
        for name, stats in slot.metrics.items():
            metrics.setdefault(name, RunningStats()).merge(stats)

    return TrialReduction(metrics=metrics, exhausted=exhausted, slots=slots)
