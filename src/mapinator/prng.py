"""Deterministic pseudo-random numbers keyed by seed strings.

Every random decision in a generated map flows from a seed string. Separate
concerns (lattice jitter, landmass shape, moisture) draw from sub-streams
derived by suffixing the seed, so they never share generator state.

Outputs have a granularity of 1e-6: the xorshift state is reduced modulo
1,000,000 rather than scaled to full float precision. This keeps streams
bit-for-bit reproducible across platforms at the cost of entropy.
"""

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
# Substituted for a zero hash; xorshift never leaves the zero state.
ZERO_STATE_FALLBACK = 0x6D2B79F5
OUTPUT_MODULUS = 1_000_000


def hash32(seed: str) -> int:
    """Fold a string into an unsigned 32-bit integer (FNV-1a).

    Hashes UTF-16 code units so seeds outside the BMP fold the same way as
    in browser builds of the generator.

    Args:
        seed: Any string.

    Returns:
        Unsigned 32-bit hash.
    """
    h = _FNV_OFFSET
    units = seed.encode("utf-16-le")
    for i in range(0, len(units), 2):
        h ^= units[i] | (units[i + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK32
    return h


def seed_state(seed: str) -> int:
    """Initial xorshift state for a seed (never zero)."""
    state = hash32(seed)
    if state == 0:
        state = ZERO_STATE_FALLBACK
    return state


class Xorshift32:
    """Seeded xorshift32 stream producing floats in [0, 1).

    Calling the instance returns the next value, mirroring ``random()``.
    """

    def __init__(self, seed: str):
        self.seed = seed
        self.state = seed_state(seed)

    def __call__(self) -> float:
        return self.random()

    def random(self) -> float:
        """Next value in [0, 1) with 1e-6 granularity."""
        x = self.state
        x ^= (x << 13) & _MASK32
        x ^= x >> 17
        x ^= (x << 5) & _MASK32
        self.state = x
        return (x % OUTPUT_MODULUS) / OUTPUT_MODULUS

    def uniform(self, low: float, high: float) -> float:
        """Uniform value between low and high."""
        return low + (high - low) * self.random()

    def sample_dial(self, bounds: Sequence[float]) -> float:
        """Sample a tuning dial from a ``(low, high)`` range."""
        low, high = bounds
        return self.uniform(low, high)

    def choice(self, choices: Sequence[T]) -> T:
        """Pick one element uniformly.

        Raises:
            IndexError: If choices is empty.
        """
        if not choices:
            raise IndexError("Cannot choose from an empty sequence")
        return choices[int(self.random() * len(choices))]

    def weighted_choice(self, choices: Sequence[tuple[T, float]]) -> T:
        """Pick a value from ``(value, weight)`` pairs.

        Weights need not sum to one; they are scaled by their total.

        Raises:
            ValueError: If choices is empty or the weights total <= 0.
        """
        total = sum(weight for _, weight in choices)
        if not choices or total <= 0:
            raise ValueError("weighted_choice needs a positive total weight")

        r = self.random() * total
        acc = 0.0
        for value, weight in choices:
            acc += weight
            if r < acc:
                return value

        # Floating point rounding can leave r just above the final sum
        return choices[-1][0]

    def substream(self, suffix: str) -> "Xorshift32":
        """Independent stream keyed by ``seed + suffix``."""
        return Xorshift32(self.seed + suffix)

    def __repr__(self) -> str:
        return f"Xorshift32(seed={self.seed!r}, state={self.state:#010x})"


def make_rng(seed: str) -> Xorshift32:
    """Create the stream for a seed string."""
    return Xorshift32(seed)
