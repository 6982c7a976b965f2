import math

import numpy as np
import pytest
from scipy import stats

from src.noise_sequences.bit_source import BitSource
from src.noise_sequences.sequences import (
    GENERATORS,
    GOLDEN_RATIO_CONJUGATE,
    generate_blue_naive,
    generate_golden_ratio,
    generate_red_naive,
    generate_regular_offset,
    generate_regular_offset_shuffled,
    generate_stratified,
    generate_stratified_shuffled,
    generate_white,
    get_generator,
    shuffle,
    triangle_to_uniform,
)
from tests.conftest import lag1_autocorrelation


@pytest.mark.parametrize("name", sorted(GENERATORS))
def test_every_generator_honours_the_contract(name, seed):
    fn = get_generator(name)

    values = fn(257, 11, seed)
    assert isinstance(values, np.ndarray)
    assert values.shape == (257,)
    assert values.min() >= 0.0
    assert values.max() < 1.0

    assert np.array_equal(values, fn(257, 11, seed))
    assert not np.array_equal(values, fn(257, 12, seed))

    assert fn(0, 11, seed).shape == (0,)
    with pytest.raises(ValueError):
        fn(-1, 11, seed)


def test_white_matches_bit_source(seed):
    assert np.array_equal(generate_white(64, 5, seed), BitSource(seed, 5).uniforms(64))


def test_golden_ratio_recurrence_is_exact(seed):
    values = generate_golden_ratio(1000, 3, seed)
    assert values[0] == generate_white(1, 3, seed)[0]
    for i in range(1, len(values)):
        assert values[i] == math.fmod(values[i - 1] + GOLDEN_RATIO_CONJUGATE, 1.0)


@pytest.mark.parametrize("index", range(20))
def test_stratified_sample_stays_in_its_bin(seed, index):
    values = generate_stratified(10, index, seed)
    for i, v in enumerate(values):
        assert i / 10 <= v < (i + 1) / 10


def test_regular_offset_is_evenly_spaced(seed):
    values = generate_regular_offset(100, 8, seed)
    assert np.allclose(np.diff(values), 0.01)
    assert 0.0 <= values[0] < 0.01


def test_shuffle_is_a_reproducible_permutation(seed):
    ordered = generate_stratified(200, 4, seed)
    a = generate_stratified_shuffled(200, 4, seed)
    b = generate_stratified_shuffled(200, 4, seed)

    assert np.array_equal(a, b)
    assert np.array_equal(np.sort(a), ordered)
    assert not np.array_equal(a, ordered)


def test_shuffled_regular_offset_keeps_the_values(seed):
    ordered = generate_regular_offset(64, 9, seed)
    permuted = generate_regular_offset_shuffled(64, 9, seed)
    assert np.array_equal(np.sort(permuted), np.sort(ordered))
    assert not np.array_equal(permuted, ordered)


def test_shuffle_depends_on_key():
    base = np.arange(50, dtype=np.float64)
    a = shuffle(base.copy(), 1)
    b = shuffle(base.copy(), 2)
    assert not np.array_equal(a, b)
    assert np.array_equal(shuffle(base.copy(), 1), a)


def test_shuffle_short_inputs_untouched():
    assert list(shuffle(np.array([0.25]), 7)) == [0.25]
    assert shuffle(np.array([]), 7).shape == (0,)


def test_triangle_to_uniform_scalar_points():
    assert triangle_to_uniform(0.0) == 0.0
    assert triangle_to_uniform(0.25) == pytest.approx(0.125)
    assert triangle_to_uniform(0.5) == pytest.approx(0.5)
    assert triangle_to_uniform(0.75) == pytest.approx(0.875)
    assert triangle_to_uniform(1.0) == pytest.approx(1.0)


def test_triangle_to_uniform_flattens_mean_of_two_uniforms(seed):
    u1 = BitSource(seed, 100).uniforms(20_000)
    u2 = BitSource(seed, 101).uniforms(20_000)
    out = triangle_to_uniform((u1 + u2) / 2.0)

    assert stats.kstest(out, "uniform").pvalue > 0.01


def test_naive_noise_colour(seed):
    blue = generate_blue_naive(20_000, 1, seed)
    red = generate_red_naive(20_000, 1, seed)

    assert lag1_autocorrelation(blue) < -0.2
    assert lag1_autocorrelation(red) > 0.2
    for values in (blue, red):
        freq, _ = np.histogram(values, bins=10, range=(0.0, 1.0))
        assert np.all(np.abs(freq / len(values) - 0.1) < 0.02)


def test_unknown_generator():
    with pytest.raises(ValueError, match="unknown generator"):
        get_generator("pink")


def test_generator_lookup_is_case_insensitive():
    assert get_generator("  Golden_Ratio ") is generate_golden_ratio


@pytest.mark.parametrize("name", sorted(GENERATORS))
def test_every_generator_is_documented(name):
    assert get_generator(name).__doc__
