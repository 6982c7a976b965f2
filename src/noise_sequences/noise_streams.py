from typing import Callable, Sequence, Tuple

import numpy as np

from .bit_source import BitSource


BLUE_KERNEL: Tuple[float, float, float] = (0.5, -1.0, 0.5)
RED_KERNEL: Tuple[float, float, float] = (0.25, 0.5, 0.25)

# Piecewise cubic fit of the filtered noise CDF: four bins over [0, 1), each
# bin stored highest order first (a, b, c, d) for ((a*x + b)*x + c)*x + d.
CDF_POLYNOMIALS: Tuple[float, ...] = (
    5.25964, 0.039474, 0.000708779, 0.0,
    -5.20987, 7.82905, -1.93105, 0.159677,
    -5.22644, 7.8272, -1.91677, 0.15507,
    5.23882, -15.761, 15.8054, -4.28323,
)


def uniformize(x: float) -> float:
    """
    Push a filtered sample through the piecewise cubic CDF approximation so
    the output is (approximately) uniform again.
    """
    first = min(int(x * 4.0), 3) * 4
    a, b, c, d = CDF_POLYNOMIALS[first:first + 4]
    return d + x * (c + x * (b + x * a))


def _blue_normalize(y: float) -> float:
    # high-pass output lives in [-1, 1]
    return y * 0.5 + 0.5


def _identity(y: float) -> float:
    return y


class PolynomialNoiseStream:
    """
    PolynomialNoiseStream

    Streaming colored noise: each next() filters a fresh uniform draw
    together with the two previous draws through a 3-tap FIR kernel, then
    restores a uniform marginal with the shared CDF polynomial. The sequence
    length never needs to be known in advance.

    This class is:
      - stateful (next() is not idempotent)
      - single-owner, not thread-safe

    Build one instance per trial from that trial's own BitSource.
    """

    def __init__(
        self,
        source: BitSource,
        kernel: Sequence[float],
        normalize: Callable[[float], float] = _identity,
    ):
        if len(kernel) != 3:
            raise ValueError("kernel must have exactly 3 taps")

        self._source = source
        self._kernel = tuple(float(k) for k in kernel)
        self._normalize = normalize

        # _history[0] is the most recent raw draw
        older = source.next_uniform()
        newer = source.next_uniform()
        self._history = [newer, older]

    def next(self) -> float:
        value = self._source.next_uniform()
        c0, c1, c2 = self._kernel
        p0, p1 = self._history

        y = value * c0 + p0 * c1 + p1 * c2

        self._history[1] = p0
        self._history[0] = value

        return uniformize(self._normalize(y))

    def take(self, count: int) -> np.ndarray:
        if count < 0:
            raise ValueError("count must be >= 0")
        out = np.empty(count, dtype=np.float64)
        for i in range(count):
            out[i] = self.next()
        return out


class BlueNoiseStream(PolynomialNoiseStream):
    """High-pass filtered stream: neighbours are anti-correlated."""

    def __init__(self, source: BitSource):
        super().__init__(source, BLUE_KERNEL, _blue_normalize)


class RedNoiseStream(PolynomialNoiseStream):
    """Low-pass filtered stream: neighbours are correlated."""

    def __init__(self, source: BitSource):
        super().__init__(source, RED_KERNEL, _identity)


class AppletonBlueNoiseStream:
    """
    AppletonBlueNoiseStream

    Blue noise from one random sign bit per sample: the output subtracts
    half of the previous output, which pushes consecutive values apart.
    The sign bits come from a tiny nonlinear 32-bit state generator.

    No CDF correction is applied. Whatever uniformity the output has is a
    property of the construction, so check it empirically.
    """

    def __init__(self, seed: int):
        self._state = seed & 0xFFFFFFFF
        self._p = 0.0

    def _random_bit(self) -> bool:
        s = self._state
        s = (s + ((s * s) | 5)) & 0xFFFFFFFF
        self._state = s
        return (s & 0x80000000) != 0

    def next(self) -> float:
        sign = 1.0 if self._random_bit() else -1.0
        ret = sign / 2.0 - self._p
        self._p = ret / 2.0

        # [-1, 1] -> [0, 1]
        return ret * 0.5 + 0.5

    def take(self, count: int) -> np.ndarray:
        if count < 0:
            raise ValueError("count must be >= 0")
        out = np.empty(count, dtype=np.float64)
        for i in range(count):
            out[i] = self.next()
        return out
