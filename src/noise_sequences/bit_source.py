import math
from typing import Union

import numpy as np


# Keep the switch opinionated: flip it to get reproducible regression runs.
DETERMINISTIC = False
DEFAULT_SEED = 0

MAX_UINT64 = (1 << 64) - 1

FloatLike = Union[float, np.ndarray]


def resolve_seed(deterministic: bool = DETERMINISTIC) -> int:
    """
    Return the process-wide seed: DEFAULT_SEED for deterministic runs,
    otherwise 64 bits of fresh OS entropy.
    """
    if deterministic:
        return DEFAULT_SEED
    return int(np.random.SeedSequence().entropy) & MAX_UINT64


class BitSource:
    """
    BitSource

    A counter-based uniform source addressed by (seed, sequence_index).

    The pair is used directly as the 128-bit Philox key, so the sequence
    index selects an independent stream natively instead of being mixed
    into the seed. The same pair always replays the same stream.

    Floats are built from the upper 32 bits of each raw draw and scaled with
    ldexp, never with a modulo, so every value lies in [0, 1).

    Instances are NOT thread-safe. Each trial owns its own source.
    """

    def __init__(self, seed: int, sequence_index: int):
        if not 0 <= seed <= MAX_UINT64:
            raise ValueError("seed must be in [0, 2**64)")
        if not 0 <= sequence_index <= MAX_UINT64:
            raise ValueError("sequence_index must be in [0, 2**64)")

        self.seed = seed
        self.sequence_index = sequence_index
        self._bitgen = np.random.Philox(
            key=np.array([seed, sequence_index], dtype=np.uint64)
        )

    # ------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------

    def next_uint32(self) -> int:
        return int(self._bitgen.random_raw()) >> 32

    def next_uniform(self) -> float:
        """
        Draw one uniform float in [0, 1).
        """
        return math.ldexp(self.next_uint32(), -32)

    def uniforms(self, count: int) -> np.ndarray:
        """
        Draw `count` uniform floats in [0, 1).

        Produces exactly the values `count` calls to next_uniform() would.
        """
        if count < 0:
            raise ValueError("count must be >= 0")
        raw = self._bitgen.random_raw(count)
        hi = (raw >> np.uint64(32)).astype(np.float64)
        return np.ldexp(hi, -32)


def map_to_range(f: FloatLike, lo: int, hi: int):
    """
    Map uniform float(s) in [0, 1) onto the integers [lo, hi].

    Scales linearly over (hi - lo + 1) values and clamps to hi. Accepts a
    scalar (returns int) or an ndarray (returns an int64 ndarray).
    """
    if hi < lo:
        raise ValueError("hi must be >= lo")

    span = hi - lo
    if isinstance(f, np.ndarray):
        scaled = np.floor(f * float(span + 1)).astype(np.int64)
        return lo + np.minimum(scaled, span)

    return lo + min(int(f * float(span + 1)), span)
