"""Biome classification: banded elevation and moisture into a fixed grid.

Elevation lives in [-1, 1] with negative values ocean; moisture in [0, 1].
Band breaks are inclusive upper bounds, so a value sitting exactly on a
break belongs to the lower band. Exactly 0 is land.
"""

import math
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .exceptions import ClassificationError, InvalidSettingsError


class BiomeKey(str, Enum):
    """Discrete biome tags. Position in the enum is the stored biome code."""

    OCEAN = "OCEAN"
    DRY_LOW = "DRY_LOW"
    MID_LOW = "MID_LOW"
    WET_LOW = "WET_LOW"
    DRY_MEDIUM = "DRY_MEDIUM"
    MID_MEDIUM = "MID_MEDIUM"
    WET_MEDIUM = "WET_MEDIUM"
    DRY_HIGH = "DRY_HIGH"
    MID_HIGH = "MID_HIGH"
    WET_HIGH = "WET_HIGH"
    DRY_VERY_HIGH = "DRY_VERY_HIGH"
    MID_VERY_HIGH = "MID_VERY_HIGH"
    WET_VERY_HIGH = "WET_VERY_HIGH"

    @property
    def code(self) -> int:
        return _BIOME_CODES[self]

    @property
    def is_ocean(self) -> bool:
        return self is BiomeKey.OCEAN


class ElevationFamily(str, Enum):
    OCEAN = "OCEAN"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class ElevationBand(str, Enum):
    """Fine elevation bands, deepest first. Used for lightness shading."""

    OCEAN_3 = "OCEAN_3"
    OCEAN_2 = "OCEAN_2"
    OCEAN_1 = "OCEAN_1"
    LOW_1 = "LOW_1"
    LOW_2 = "LOW_2"
    MEDIUM_1 = "MEDIUM_1"
    MEDIUM_2 = "MEDIUM_2"
    HIGH_1 = "HIGH_1"
    HIGH_2 = "HIGH_2"
    VERY_HIGH_1 = "VERY_HIGH_1"
    VERY_HIGH_2 = "VERY_HIGH_2"


class MoistureBand(str, Enum):
    DRY = "DRY"
    MID = "MID"
    WET = "WET"


BIOME_KEYS: tuple[BiomeKey, ...] = tuple(BiomeKey)
ELEVATION_BANDS: tuple[ElevationBand, ...] = tuple(ElevationBand)
ELEVATION_FAMILIES: tuple[ElevationFamily, ...] = tuple(ElevationFamily)
MOISTURE_BANDS: tuple[MoistureBand, ...] = tuple(MoistureBand)

_BIOME_CODES = {key: i for i, key in enumerate(BIOME_KEYS)}

# Inclusive upper bounds. The last ocean band is open at 0.
OCEAN_BREAKS = np.array([-0.7, -0.35])
LAND_BREAKS = np.array([0.2, 0.22, 0.35, 0.52, 0.62, 0.75, 0.87, 1.0])
MOISTURE_BREAKS = np.array([0.2, 0.6, 1.0])
NUM_OCEAN_BANDS = len(OCEAN_BREAKS) + 1

# Fine band index -> family index
BAND_FAMILY = np.array(
    [
        ELEVATION_FAMILIES.index(ElevationFamily[band.value.rsplit("_", 1)[0]])
        for band in ELEVATION_BANDS
    ],
    dtype=np.int64,
)

# (family, moisture band) -> biome code; the ocean row ignores moisture
BIOME_GRID = np.array(
    [
        [BiomeKey.OCEAN.code] * len(MOISTURE_BANDS),
        *[
            [BiomeKey[f"{m.value}_{family.value}"].code for m in MOISTURE_BANDS]
            for family in ELEVATION_FAMILIES[1:]
        ],
    ],
    dtype=np.uint8,
)

RAINFALL_CURVE_K = 4.1
RAINFALL_SCALE = 25.0
MIN_RAINFALL_EXPONENT = 0.01

SEA_LEVEL_BIAS = 0.1


def _require_partition(hit: NDArray[np.bool_], values: NDArray[np.float64], name: str) -> None:
    if not np.all(hit):
        bad = values[~hit]
        raise ClassificationError(
            f"{len(bad)} {name} value(s) fall outside every band, e.g. {bad[0]!r}"
        )


def elevation_bands(elevation: ArrayLike) -> NDArray[np.int64]:
    """Fine elevation band index (into ``ELEVATION_BANDS``) per value.

    Raises:
        ClassificationError: For NaN or values outside [-1, 1].
    """
    e = np.atleast_1d(np.asarray(elevation, dtype=np.float64))
    ocean = e < 0
    idx = np.where(
        ocean,
        np.searchsorted(OCEAN_BREAKS, e, side="left"),
        np.searchsorted(LAND_BREAKS, e, side="left") + NUM_OCEAN_BANDS,
    )
    _require_partition((e >= -1.0) & (idx < len(ELEVATION_BANDS)), e, "elevation")
    return idx


def moisture_bands(moisture: ArrayLike) -> NDArray[np.int64]:
    """Moisture band index (into ``MOISTURE_BANDS``) per value.

    Raises:
        ClassificationError: For NaN or values outside [0, 1].
    """
    m = np.atleast_1d(np.asarray(moisture, dtype=np.float64))
    idx = np.searchsorted(MOISTURE_BREAKS, m, side="left")
    _require_partition((m >= 0.0) & (idx < len(MOISTURE_BANDS)), m, "moisture")
    return idx


def classify(elevation: ArrayLike, moisture: ArrayLike) -> NDArray[np.uint8]:
    """Biome codes for classified-space elevation and (shaped) moisture.

    Args:
        elevation: Values in [-1, 1]; negative is ocean.
        moisture: Values in [0, 1].

    Returns:
        Codes into ``BIOME_KEYS``.

    Raises:
        ClassificationError: If any value misses its partition.
    """
    family = BAND_FAMILY[elevation_bands(elevation)]
    return BIOME_GRID[family, moisture_bands(moisture)]


def biome_key(elevation: float, moisture: float) -> BiomeKey:
    """Scalar form of ``classify``."""
    return BIOME_KEYS[int(classify(elevation, moisture)[0])]


def apply_sea_level(elevation01: ArrayLike, sea_level: float) -> NDArray[np.float64]:
    """Map [0, 1] elevation into [-1, 1], shifted down as the sea rises.

    Raises:
        InvalidSettingsError: If sea_level is outside [0, 1].
    """
    if not 0.0 <= sea_level <= 1.0:
        raise InvalidSettingsError(f"sea_level must be in [0, 1], got {sea_level}")
    shift = 2.0 * (sea_level - 0.5) - SEA_LEVEL_BIAS
    e = np.asarray(elevation01, dtype=np.float64)
    return np.clip(2.0 * (e - 0.5) - shift, -1.0, 1.0)


def exp_curve(x: float, k: float) -> float:
    """Exponential ease from 0 to 1 over x in [0, 1]; steeper for larger k."""
    x = min(max(x, 0.0), 1.0)
    return (math.exp(k * x) - 1) / (math.exp(k) - 1)


def rainfall_exponent(rainfall: float) -> float:
    """Exponent moisture is raised to; wetter settings give smaller exponents."""
    return max(MIN_RAINFALL_EXPONENT, RAINFALL_SCALE * exp_curve(1 - rainfall, RAINFALL_CURVE_K))


class BiomeClassifier:
    """Rainfall-aware classifier for elevation and moisture arrays.

    Moisture is shaped by the rainfall exponent before banding; elevation
    is taken as already sea-level shifted.
    """

    def __init__(self, rainfall: float):
        if not 0.0 <= rainfall <= 1.0:
            raise InvalidSettingsError(f"rainfall must be in [0, 1], got {rainfall}")
        self.rainfall = rainfall
        self.exponent = rainfall_exponent(rainfall)

    def shape_moisture(self, moisture: ArrayLike) -> NDArray[np.float64]:
        m = np.clip(np.asarray(moisture, dtype=np.float64), 0.0, 1.0)
        return m**self.exponent

    def classify(self, elevation: ArrayLike, moisture: ArrayLike) -> NDArray[np.uint8]:
        return classify(elevation, self.shape_moisture(moisture))

    def biome_at(self, elevation: float, moisture: float) -> BiomeKey:
        return BIOME_KEYS[int(self.classify(elevation, moisture)[0])]

    def __repr__(self) -> str:
        return f"BiomeClassifier(rainfall={self.rainfall}, exponent={self.exponent:.3f})"
