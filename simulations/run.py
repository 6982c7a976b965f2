# simulations/run.py

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .common import ExperimentResult, ExperimentSpec
from .experiments import GeneratorLike, get_experiment
from .harness import ProgressCounter, ProgressReporter

from src.noise_sequences.bit_source import resolve_seed


logger = logging.getLogger(__name__)


def suite_top_index(experiment_ordinal: int, generator_ordinal: int, generator_count: int) -> int:
    """
    Top-level slice for one (experiment, generator) pair of a suite.
    """
    if not 0 <= generator_ordinal < generator_count:
        raise ValueError("generator_ordinal must be in [0, generator_count)")
    return experiment_ordinal * generator_count + generator_ordinal


def run_experiment(
    experiment: str,
    generator: GeneratorLike,
    spec: Optional[ExperimentSpec] = None,
    seed: Optional[int] = None,
    top_index: int = 0,
    show_progress: bool = False,
) -> ExperimentResult:
    """
    Run a single experiment against one generator and return an
    ExperimentResult.

    Parameters
    ----------
    experiment:
        Name of the experiment ('lottery', 'sum', 'candidates').
    generator:
        Generator name (e.g. 'white', 'golden_ratio') or any callable
        fn(count, sequence_index, seed).
    spec:
        Experiment sizes; defaults to ExperimentSpec().
    seed:
        Global seed; resolved via resolve_seed() when omitted.
    top_index:
        Top-level slice of the sequence-index space used by this run.
    show_progress:
        Draw a percentage indicator on stderr while the run is going.

    Returns
    -------
    ExperimentResult
    """
    exp = get_experiment(experiment)
    spec = spec or ExperimentSpec()
    if seed is None:
        seed = resolve_seed()

    logger.info("running %s with generator %s (seed=%d, top_index=%d)", exp.name, generator, seed, top_index)

    if not show_progress:
        result = exp.run(spec, seed, generator, top_index=top_index)
    else:
        counter = ProgressCounter(exp.trial_count(spec))
        with ProgressReporter(counter, label=f"  {generator}: "):
            result = exp.run(spec, seed, generator, top_index=top_index, progress=counter)

    logger.info("%s/%s -> %.6f over %d trials", result.experiment, result.generator, result.value, result.trials)
    return result


def run_suite(
    generators: Iterable[GeneratorLike],
    experiments: Iterable[str],
    spec: Optional[ExperimentSpec] = None,
    seed: Optional[int] = None,
    show_progress: bool = False,
) -> List[ExperimentResult]:
    """
    Convenience helper: run every experiment against every generator under
    one seed. Each (experiment, generator) pair gets its own top-level
    index, so no two runs in the suite read the same streams.

    Results are ordered experiment-major, then generator.
    """
    spec = spec or ExperimentSpec()
    if seed is None:
        seed = resolve_seed()

    generators = list(generators)
    results: List[ExperimentResult] = []
    for exp_ordinal, experiment in enumerate(experiments):
        for gen_ordinal, generator in enumerate(generators):
            results.append(
                run_experiment(
                    experiment,
                    generator,
                    spec=spec,
                    seed=seed,
                    top_index=suite_top_index(exp_ordinal, gen_ordinal, len(generators)),
                    show_progress=show_progress,
                )
            )
    return results
