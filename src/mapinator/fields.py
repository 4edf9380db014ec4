"""Per-region fields: elevation and moisture."""

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray
from pydantic import BaseModel

from .biomes import apply_sea_level
from .config import ElevationDialRanges, MoistureDialRanges, ResolvedSettings
from .exceptions import InvalidSettingsError
from .lattice import RegionLattice
from .noise import FractalNoise, lerp, smoothstep
from .prng import Xorshift32
from .shape import ShapePose, blend_elevation, coast_field, sample_mask_aa

logger = logging.getLogger(__name__)

# Exponents at contrast 0, 0.5 and 1
CONTRAST_FLAT = 3.0
CONTRAST_NEUTRAL = 1.0
CONTRAST_SHARP = 0.2

COASTLINE_CONTRAST_MIN = 0.45
COASTLINE_CONTRAST_MAX = 1.0


def apply_contrast(values: ArrayLike, amount: float) -> NDArray[np.float64]:
    """Push values in [0, 1] toward or away from 0.5.

    The signed offset ``u = 2v - 1`` is raised to an exponent that is 3 at
    amount 0 (flatten), 1 at amount 0.5 (identity) and 0.2 at amount 1
    (sharpen toward the extremes).

    Args:
        values: Field values in [0, 1].
        amount: Contrast in [0, 1].

    Returns:
        Adjusted values clamped to [0, 1].

    Raises:
        InvalidSettingsError: If amount is outside [0, 1].
    """
    if not 0.0 <= amount <= 1.0:
        raise InvalidSettingsError(f"Contrast must be in [0, 1], got {amount}")

    if amount <= 0.5:
        exponent = float(lerp(CONTRAST_FLAT, CONTRAST_NEUTRAL, amount / 0.5))
    else:
        exponent = float(lerp(CONTRAST_NEUTRAL, CONTRAST_SHARP, (amount - 0.5) / 0.5))

    u = 2 * np.asarray(values, dtype=np.float64) - 1
    shaped = np.sign(u) * np.abs(u) ** exponent
    return np.clip((shaped + 1) / 2, 0.0, 1.0)


def coastline_contrast(sea_level: float) -> float:
    """Extra contrast that sharpens the coastline as the sea rises."""
    t = float(smoothstep(0.0, 1.0, sea_level))
    return float(lerp(COASTLINE_CONTRAST_MIN, COASTLINE_CONTRAST_MAX, t))


def normalized_coordinates(
    lattice: RegionLattice,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Site coordinates mapped to [-0.5, 0.5] on both axes."""
    r = float(lattice.resolution)
    return lattice.points[:, 0] / r - 0.5, lattice.points[:, 1] / r - 0.5


class MoistureDials(BaseModel, frozen=True):
    """Per-seed moisture tuning values."""

    fbm_w1: float
    fbm_w2: float
    ripple_scale: float
    warp_strength: float
    warp_frequency: float


def build_moisture_dials(rng: Xorshift32, ranges: MoistureDialRanges) -> MoistureDials:
    """Sample the moisture dials from their ranges, in a fixed order."""
    return MoistureDials(
        fbm_w1=rng.sample_dial(ranges.fbm_w1),
        fbm_w2=rng.sample_dial(ranges.fbm_w2),
        ripple_scale=rng.sample_dial(ranges.ripple_scale),
        warp_strength=rng.sample_dial(ranges.warp_strength),
        warp_frequency=rng.sample_dial(ranges.warp_frequency),
    )


def make_elevation(
    lattice: RegionLattice,
    noise: FractalNoise,
    pose: ShapePose,
    settings: ResolvedSettings,
    ranges: ElevationDialRanges | None = None,
) -> NDArray[np.float64]:
    """Generate the elevation field.

    Blends fBm noise toward the landmass shape, applies contrast twice
    (user contrast, then the sea-level coastline contrast) and finally
    shifts by sea level into [-1, 1] so negative values are ocean.

    Args:
        lattice: Region lattice.
        noise: Elevation fBm, weighted by the shape dials.
        pose: Frozen landmass pose.
        settings: Resolved map settings.
        ranges: Curve search parameters.

    Returns:
        Elevation per region in [-1, 1].
    """
    ranges = ranges or ElevationDialRanges()
    x, y = normalized_coordinates(lattice)
    frequency = settings.terrain_frequency

    base = noise.fbm2(x, y, frequency)
    mask = sample_mask_aa(
        pose,
        noise,
        x,
        y,
        frequency,
        coarse_steps=ranges.curve_coarse_steps,
        refine_steps=ranges.curve_refine_steps,
    )

    c = settings.clumpiness
    elevation = blend_elevation(base, coast_field(mask, c), abs(c))
    elevation = apply_contrast(elevation, settings.elevation_contrast)
    elevation = apply_contrast(elevation, coastline_contrast(settings.sea_level))
    elevation = apply_sea_level(elevation, settings.sea_level)

    logger.info(
        f"Elevation: mask coverage {float(np.mean(mask < 0.5)):.2%}, "
        f"ocean {float(np.mean(elevation < 0)):.2%}"
    )
    return elevation


def make_moisture(
    lattice: RegionLattice,
    noise: FractalNoise,
    dials: MoistureDials,
    settings: ResolvedSettings,
) -> NDArray[np.float64]:
    """Generate the moisture field.

    Independent of elevation: warped fBm at the weather frequency, scaled
    by the ripple dial and shaped by moisture contrast.

    Returns:
        Moisture per region in [0, 1].
    """
    x, y = normalized_coordinates(lattice)
    frequency = settings.weather_frequency

    wx, wy = noise.warp(x, y, frequency, dials.warp_strength, dials.warp_frequency)
    moisture = noise.fbm2(wx * dials.ripple_scale, wy * dials.ripple_scale, frequency)
    moisture = apply_contrast(moisture, settings.moisture_contrast)

    logger.info(f"Moisture: mean {float(np.mean(moisture)):.3f}")
    return np.clip(moisture, 0.0, 1.0)
