"""Noise primitives: seeded gradient noise, two-octave fBm and domain warp.

All functions operate on numpy arrays of query coordinates so a whole
lattice is sampled in one call.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .prng import Xorshift32

PERMUTATION_SIZE = 256
NEUTRAL = 0.5

# Unit-scale gradient set (axes and diagonals) for 2D gradient noise.
_GRADIENTS = np.array(
    [
        [1.0, 1.0],
        [-1.0, 1.0],
        [1.0, -1.0],
        [-1.0, -1.0],
        [1.0, 0.0],
        [-1.0, 0.0],
        [0.0, 1.0],
        [0.0, -1.0],
    ]
)


def lerp(a: ArrayLike, b: ArrayLike, t: ArrayLike) -> NDArray[np.float64]:
    """Linear interpolation from a to b."""
    a = np.asarray(a, dtype=np.float64)
    return a + (np.asarray(b) - a) * t


def smoothstep(edge0: float, edge1: float, x: ArrayLike) -> NDArray[np.float64]:
    """Smooth Hermite interpolation between 0 and 1.

    Args:
        edge0: Lower edge of transition.
        edge1: Upper edge of transition.
        x: Input values.

    Returns:
        Smoothly interpolated values in [0, 1].
    """
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def _fade(t: NDArray[np.float64]) -> NDArray[np.float64]:
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6 - 15) + 10)


class GradientNoise:
    """2D gradient noise with a permutation table shuffled by a seed stream.

    Values lie roughly in [-1, 1] and are exactly 0 on integer lattice
    points.
    """

    def __init__(self, rng: Xorshift32):
        perm = np.arange(PERMUTATION_SIZE, dtype=np.int64)
        # Fisher-Yates driven by the seed stream
        for i in range(PERMUTATION_SIZE - 1, 0, -1):
            j = int(rng() * (i + 1))
            perm[i], perm[j] = perm[j], perm[i]
        self._perm = np.concatenate([perm, perm])
        self._perm.setflags(write=False)

    def _corner(
        self,
        xi: NDArray[np.int64],
        yi: NDArray[np.int64],
        dx: NDArray[np.float64],
        dy: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        h = self._perm[self._perm[xi] + yi] % len(_GRADIENTS)
        g = _GRADIENTS[h]
        return g[..., 0] * dx + g[..., 1] * dy

    def __call__(self, x: ArrayLike, y: ArrayLike) -> NDArray[np.float64]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)

        x0 = np.floor(x)
        y0 = np.floor(y)
        xf = x - x0
        yf = y - y0

        px0 = x0.astype(np.int64) % PERMUTATION_SIZE
        py0 = y0.astype(np.int64) % PERMUTATION_SIZE
        px1 = (px0 + 1) % PERMUTATION_SIZE
        py1 = (py0 + 1) % PERMUTATION_SIZE

        n00 = self._corner(px0, py0, xf, yf)
        n10 = self._corner(px1, py0, xf - 1, yf)
        n01 = self._corner(px0, py1, xf, yf - 1)
        n11 = self._corner(px1, py1, xf - 1, yf - 1)

        u = _fade(xf)
        v = _fade(yf)
        return lerp(lerp(n00, n10, u), lerp(n01, n11, u), v)


@dataclass(frozen=True)
class FractalNoise:
    """Two-octave fBm over a gradient noise source.

    The octave weights are dials sampled once per map.
    """

    noise: GradientNoise
    w1: float
    w2: float

    def fbm2(self, x: ArrayLike, y: ArrayLike, frequency: float) -> NDArray[np.float64]:
        """Two-octave noise clamped to [0, 1], centered on 0.5.

        Args:
            x, y: Query coordinates.
            frequency: Feature size divisor; larger means broader features.
        """
        x = np.asarray(x, dtype=np.float64) / frequency
        y = np.asarray(y, dtype=np.float64) / frequency
        n1 = self.noise(x, y)
        n2 = self.noise(2 * x, 2 * y)
        return np.clip(NEUTRAL + self.w1 * n1 + self.w2 * n2, 0.0, 1.0)

    def warp(
        self,
        x: ArrayLike,
        y: ArrayLike,
        frequency: float,
        strength: float,
        k: float,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Domain-warp query points by the field itself.

        The y offset samples the field with swapped axes so the two
        offsets are decorrelated.

        Args:
            x, y: Query coordinates.
            frequency: fBm frequency divisor.
            strength: Maximum offset is ``strength / 2``.
            k: Warp noise frequency multiplier.

        Returns:
            Warped (x, y) coordinates.
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        wx = x + strength * (self.fbm2(k * x, k * y, frequency) - NEUTRAL)
        wy = y + strength * (self.fbm2(k * y, k * x, frequency) - NEUTRAL)
        return wx, wy
