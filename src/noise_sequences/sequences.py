import math
from typing import Callable, Dict

import numpy as np

from .bit_source import MAX_UINT64, BitSource, FloatLike, map_to_range
from .noise_streams import AppletonBlueNoiseStream, BlueNoiseStream, RedNoiseStream


# fn(count, sequence_index, seed) -> float64 array of `count` values in [0, 1)
SequenceFn = Callable[[int, int, int], np.ndarray]

GOLDEN_RATIO_CONJUGATE = 0.61803398875

# Shuffles read from their own stream so they never replay a generator's draws.
SHUFFLE_STREAM = MAX_UINT64

_BELOW_ONE = float(np.nextafter(1.0, 0.0))


def _check_count(count: int) -> None:
    if count < 0:
        raise ValueError("count must be >= 0")


def _clamp01(values: np.ndarray) -> np.ndarray:
    return np.clip(values, 0.0, _BELOW_ONE)


def triangle_to_uniform(x: FloatLike):
    """
    Map a symmetric triangular distribution on [0, 1] (e.g. the mean of two
    uniforms) back to uniform by applying its CDF: the integral of the
    linear PDF on each half of the support.
    """
    if isinstance(x, np.ndarray):
        low = 2.0 * x * x
        high = 1.0 - 2.0 * (1.0 - x) * (1.0 - x)
        return np.where(x < 0.5, low, high)

    if x < 0.5:
        return 2.0 * x * x
    return 1.0 - 2.0 * (1.0 - x) * (1.0 - x)


def shuffle(values: np.ndarray, key: int) -> np.ndarray:
    """
    Fisher-Yates shuffle of `values` in place, driven by a BitSource keyed by
    `key`. The same key always produces the same permutation.
    """
    n = len(values)
    if n < 2:
        return values

    draws = BitSource(key & MAX_UINT64, SHUFFLE_STREAM).uniforms(n - 1)
    for step, i in enumerate(range(n - 1, 0, -1)):
        j = map_to_range(float(draws[step]), 0, i)
        values[i], values[j] = values[j], values[i]
    return values


# --- Generators --------------------------------------------------------------

def generate_white(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Independent uniform draws.
    """
    _check_count(count)
    return BitSource(seed, sequence_index).uniforms(count)


def generate_stratified(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    One uniform sample inside each of `count` equal bins, in bin order.

    Needs `count` up front, so it cannot feed an unbounded consumer.
    """
    _check_count(count)
    jitter = BitSource(seed, sequence_index).uniforms(count)
    return (np.arange(count, dtype=np.float64) + jitter) / float(count)


def generate_regular_offset(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Evenly spaced samples sharing one random phase offset.
    """
    _check_count(count)
    if count == 0:
        return np.empty(0, dtype=np.float64)
    offset = BitSource(seed, sequence_index).next_uniform()
    return (np.arange(count, dtype=np.float64) + offset) / float(count)


def generate_golden_ratio(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Golden ratio additive recurrence from a random starting point.
    """
    _check_count(count)
    ret = np.empty(count, dtype=np.float64)
    if count == 0:
        return ret

    value = BitSource(seed, sequence_index).next_uniform()
    ret[0] = value
    for i in range(1, count):
        value = math.fmod(value + GOLDEN_RATIO_CONJUGATE, 1.0)
        ret[i] = value
    return ret


def generate_blue_naive(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Differences of adjacent white samples, made uniform again.
    """
    _check_count(count)
    white = BitSource(seed, sequence_index).uniforms(count + 1)
    diff = (white[1:] - white[:-1] + 1.0) * 0.5
    return _clamp01(triangle_to_uniform(diff))


def generate_red_naive(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Averages of adjacent white samples, made uniform again.
    """
    _check_count(count)
    white = BitSource(seed, sequence_index).uniforms(count + 1)
    avg = (white[1:] + white[:-1]) * 0.5
    return _clamp01(triangle_to_uniform(avg))


def generate_blue_stream(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Streaming high-pass filtered noise, made uniform by the CDF polynomial.
    """
    _check_count(count)
    stream = BlueNoiseStream(BitSource(seed, sequence_index))
    return _clamp01(stream.take(count))


def generate_red_stream(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Streaming low-pass filtered noise, made uniform by the CDF polynomial.
    """
    _check_count(count)
    stream = RedNoiseStream(BitSource(seed, sequence_index))
    return _clamp01(stream.take(count))


def generate_blue_appleton(count: int, sequence_index: int, seed: int) -> np.ndarray:
    """
    Sign-bit blue noise; no CDF correction is applied.
    """
    _check_count(count)
    stream = AppletonBlueNoiseStream(BitSource(seed, sequence_index).next_uint32())
    return _clamp01(stream.take(count))


def shuffled(fn: SequenceFn) -> SequenceFn:
    """
    Wrap an ordered generator so its output is permuted, keyed by
    sequence_index XOR seed.

    Used where an ordered sequence would leak its position into the test,
    e.g. an always-increasing candidate pool rewards the last position.
    """
    def generate(count: int, sequence_index: int, seed: int) -> np.ndarray:
        return shuffle(fn(count, sequence_index, seed), sequence_index ^ seed)

    generate.__name__ = fn.__name__ + "_shuffled"
    generate.__doc__ = fn.__doc__
    return generate


generate_stratified_shuffled = shuffled(generate_stratified)
generate_regular_offset_shuffled = shuffled(generate_regular_offset)


# --- Registry / dispatch -----------------------------------------------------

def get_generator(name: str) -> SequenceFn:
    name = name.strip().lower()
    if name not in GENERATORS:
        raise ValueError(f"unknown generator '{name}'. Available: {sorted(GENERATORS.keys())}")
    return GENERATORS[name]


GENERATORS: Dict[str, SequenceFn] = {
    "white": generate_white,
    "stratified": generate_stratified,
    "stratified_shuffled": generate_stratified_shuffled,
    "regular_offset": generate_regular_offset,
    "regular_offset_shuffled": generate_regular_offset_shuffled,
    "golden_ratio": generate_golden_ratio,
    "blue_naive": generate_blue_naive,
    "red_naive": generate_red_naive,
    "blue_stream": generate_blue_stream,
    "red_stream": generate_red_stream,
    "blue_appleton": generate_blue_appleton,
}
