# tests/conftest.py
from __future__ import annotations

import numpy as np
import pytest

from simulations.common import ExperimentSpec


SEED = 0x5EED_1234


@pytest.fixture(scope="session")
def seed() -> int:
    return SEED


@pytest.fixture
def small_spec() -> ExperimentSpec:
    return ExperimentSpec(
        lottery_win_frequency=100,
        lottery_test_count=50,
        sum_test_count=10,
        sum_repeat_count=10,
        sum_window=32,
        candidate_count=50,
        candidate_test_count=50,
        workers=2,
    )


def lag1_autocorrelation(values: np.ndarray) -> float:
    return float(np.corrcoef(values[:-1], values[1:])[0, 1])
