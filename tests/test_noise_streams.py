import numpy as np
import pytest

from src.noise_sequences.bit_source import BitSource
from src.noise_sequences.noise_streams import (
    AppletonBlueNoiseStream,
    BlueNoiseStream,
    PolynomialNoiseStream,
    RedNoiseStream,
    uniformize,
)
from src.noise_sequences.sequences import generate_blue_appleton, generate_blue_stream, generate_red_stream
from tests.conftest import lag1_autocorrelation


def test_uniformize_endpoints():
    assert uniformize(0.0) == 0.0
    assert uniformize(0.5) == pytest.approx(0.5, abs=1e-3)
    assert uniformize(1.0) == pytest.approx(1.0, abs=1e-3)


def test_uniformize_is_monotone():
    xs = np.linspace(0.0, 1.0, 2001)
    ys = np.array([uniformize(float(x)) for x in xs])
    assert np.all(np.diff(ys) > -1e-3)


@pytest.mark.parametrize("stream_cls", [BlueNoiseStream, RedNoiseStream])
def test_stream_replays_for_same_source(stream_cls, seed):
    a = stream_cls(BitSource(seed, 2)).take(500)
    b = stream_cls(BitSource(seed, 2)).take(500)
    assert np.array_equal(a, b)


def test_blue_stream_filters_raw_draws(seed):
    raw = BitSource(seed, 6).uniforms(5)
    stream = BlueNoiseStream(BitSource(seed, 6))

    # primed with raw[0], raw[1]; history[0] is the newest
    y = raw[2] * 0.5 + raw[1] * -1.0 + raw[0] * 0.5
    assert stream.next() == pytest.approx(uniformize(y * 0.5 + 0.5))

    y = raw[3] * 0.5 + raw[2] * -1.0 + raw[1] * 0.5
    assert stream.next() == pytest.approx(uniformize(y * 0.5 + 0.5))


def test_red_stream_filters_raw_draws(seed):
    raw = BitSource(seed, 6).uniforms(4)
    stream = RedNoiseStream(BitSource(seed, 6))

    y = raw[2] * 0.25 + raw[1] * 0.5 + raw[0] * 0.25
    assert stream.next() == pytest.approx(uniformize(y))

    y = raw[3] * 0.25 + raw[2] * 0.5 + raw[1] * 0.25
    assert stream.next() == pytest.approx(uniformize(y))


@pytest.mark.parametrize("fn", [generate_blue_stream, generate_red_stream])
def test_stream_output_is_close_to_uniform(fn, seed):
    values = fn(50_000, 1, seed)
    freq, _ = np.histogram(values, bins=10, range=(0.0, 1.0))
    freq = freq / len(values)

    assert np.all(np.abs(freq - 0.1) < 0.02)
    assert abs(values.mean() - 0.5) < 0.01


def test_stream_colour(seed):
    assert lag1_autocorrelation(generate_blue_stream(20_000, 1, seed)) < -0.2
    assert lag1_autocorrelation(generate_red_stream(20_000, 1, seed)) > 0.2


def test_kernel_must_have_three_taps(seed):
    with pytest.raises(ValueError):
        PolynomialNoiseStream(BitSource(seed, 0), (0.5, 0.5))


def test_appleton_first_values():
    stream = AppletonBlueNoiseStream(0)
    # state 0 -> 5 -> 34, both with the top bit clear
    assert stream.next() == 0.25
    assert stream.next() == 0.375


def test_appleton_is_blue_and_bounded(seed):
    values = generate_blue_appleton(20_000, 3, seed)
    assert values.min() >= 0.0
    assert values.max() < 1.0
    assert lag1_autocorrelation(values) < -0.2
    assert abs(values.mean() - 0.5) < 0.05


def test_take_rejects_negative_count(seed):
    with pytest.raises(ValueError):
        BlueNoiseStream(BitSource(seed, 0)).take(-1)
    with pytest.raises(ValueError):
        AppletonBlueNoiseStream(1).take(-1)
