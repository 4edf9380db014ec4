"""Theme palettes and biome color derivation.

Each theme maps every BiomeKey to a base hex color. Final colors shift the
base in HSL space: saturation is scaled per theme and lightness is nudged
per fine elevation band, so each biome reads with some relief.
"""

import colorsys
import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .biomes import (
    BIOME_KEYS,
    ELEVATION_BANDS,
    BiomeClassifier,
    BiomeKey,
    ElevationBand,
    classify,
    elevation_bands,
)
from .config import Theme
from .exceptions import InvalidSettingsError

_B = BiomeKey

BIOME_COLORS: dict[Theme, dict[BiomeKey, str]] = {
    Theme.DEFAULT: {
        _B.OCEAN: "#34699A",
        _B.DRY_VERY_HIGH: "#bfb9a4",
        _B.MID_VERY_HIGH: "#c4c2bc",
        _B.WET_VERY_HIGH: "#E7E8E9",
        _B.DRY_HIGH: "#8a816d",
        _B.MID_HIGH: "#85A947",
        _B.WET_HIGH: "#63a947",
        _B.DRY_MEDIUM: "#8D8D4E",
        _B.MID_MEDIUM: "#6c8a4e",
        _B.WET_MEDIUM: "#528a4e",
        _B.DRY_LOW: "#d4c9a1",
        _B.MID_LOW: "#506132",
        _B.WET_LOW: "#436132",
    },
    Theme.ARID: {
        _B.OCEAN: "#34699A",
        _B.DRY_VERY_HIGH: "#bdb49d",
        _B.MID_VERY_HIGH: "#bfbeb5",
        _B.WET_VERY_HIGH: "#c9cccc",
        _B.DRY_HIGH: "#bbae8c",
        _B.MID_HIGH: "#9ca881",
        _B.WET_HIGH: "#839d7d",
        _B.DRY_MEDIUM: "#b59f70",
        _B.MID_MEDIUM: "#99995f",
        _B.WET_MEDIUM: "#7b8e61",
        _B.DRY_LOW: "#d0c293",
        _B.MID_LOW: "#96854d",
        _B.WET_LOW: "#637d45",
    },
    Theme.LUSH: {
        _B.OCEAN: "#34699A",
        _B.DRY_VERY_HIGH: "#bfb9a4",
        _B.MID_VERY_HIGH: "#c4c2bc",
        _B.WET_VERY_HIGH: "#E7E8E9",
        _B.DRY_HIGH: "#7eaa5b",
        _B.MID_HIGH: "#649a4b",
        _B.WET_HIGH: "#4d8f45",
        _B.DRY_MEDIUM: "#557d3f",
        _B.MID_MEDIUM: "#457339",
        _B.WET_MEDIUM: "#356a33",
        _B.DRY_LOW: "#9e8e61",
        _B.MID_LOW: "#3e6432",
        _B.WET_LOW: "#27582c",
    },
    Theme.RAINBOW: {
        _B.OCEAN: "#44447a",
        _B.DRY_VERY_HIGH: "#f9844a",
        _B.MID_VERY_HIGH: "#f3722c",
        _B.WET_VERY_HIGH: "#f94144",
        _B.DRY_HIGH: "#f9c74f",
        _B.MID_HIGH: "#f9c74f",
        _B.WET_HIGH: "#f8961e",
        _B.DRY_MEDIUM: "#4d908e",
        _B.MID_MEDIUM: "#43aa8b",
        _B.WET_MEDIUM: "#90be6d",
        _B.DRY_LOW: "#577590",
        _B.MID_LOW: "#577590",
        _B.WET_LOW: "#277da1",
    },
    Theme.OASIS: {
        **{key: "#E3D2A6" for key in BiomeKey},
        _B.WET_VERY_HIGH: "#04009A",
        _B.WET_HIGH: "#4E8F5B",
    },
    Theme.GRAYSCALE: {
        _B.OCEAN: "#2e2d2d",
        _B.DRY_VERY_HIGH: "#cccccc",
        _B.MID_VERY_HIGH: "#cccccc",
        _B.WET_VERY_HIGH: "#cccccc",
        _B.DRY_HIGH: "#a6a6a6",
        _B.MID_HIGH: "#a6a6a6",
        _B.WET_HIGH: "#a6a6a6",
        _B.DRY_MEDIUM: "#737373",
        _B.MID_MEDIUM: "#737373",
        _B.WET_MEDIUM: "#737373",
        _B.DRY_LOW: "#454444",
        _B.MID_LOW: "#454444",
        _B.WET_LOW: "#454444",
    },
    Theme.VOLCANO: {
        _B.OCEAN: "#1E2430",
        _B.DRY_VERY_HIGH: "#FF3D00",
        _B.MID_VERY_HIGH: "#FF3D00",
        _B.WET_VERY_HIGH: "#FF3D00",
        _B.DRY_HIGH: "#3B2E2B",
        _B.MID_HIGH: "#5C4038",
        _B.WET_HIGH: "#78493C",
        _B.DRY_MEDIUM: "#2A2422",
        _B.MID_MEDIUM: "#2A2422",
        _B.WET_MEDIUM: "#2A2422",
        _B.DRY_LOW: "#1A1A1A",
        _B.MID_LOW: "#1A1A1A",
        _B.WET_LOW: "#1A1A1A",
    },
}

_E = ElevationBand

BASE_LIGHTNESS: dict[ElevationBand, float] = {
    _E.OCEAN_3: -0.06,
    _E.OCEAN_2: -0.03,
    _E.OCEAN_1: 0.01,
    _E.LOW_1: -0.02,
    _E.LOW_2: 0.0,
    _E.MEDIUM_1: -0.05,
    _E.MEDIUM_2: 0.0,
    _E.HIGH_1: -0.05,
    _E.HIGH_2: 0.0,
    _E.VERY_HIGH_1: -0.05,
    _E.VERY_HIGH_2: 0.0,
}

_FLAT_OCEAN = {_E.OCEAN_3: 0.0, _E.OCEAN_2: 0.0, _E.OCEAN_1: 0.0}


@dataclass(frozen=True)
class ThemeAdjust:
    """Per-theme HSL adjustment over the base palette."""

    saturation_scale: float = 1.0
    lightness: dict[ElevationBand, float] | None = None


THEME_OVERRIDES: dict[Theme, ThemeAdjust] = {
    Theme.DEFAULT: ThemeAdjust(saturation_scale=1.0),
    Theme.ARID: ThemeAdjust(saturation_scale=0.95),
    Theme.LUSH: ThemeAdjust(saturation_scale=1.07),
    Theme.RAINBOW: ThemeAdjust(saturation_scale=1.12),
    Theme.OASIS: ThemeAdjust(
        saturation_scale=0.85, lightness={band: 0.0 for band in ElevationBand}
    ),
    Theme.GRAYSCALE: ThemeAdjust(saturation_scale=0.0, lightness=_FLAT_OCEAN),
    Theme.VOLCANO: ThemeAdjust(saturation_scale=1.12, lightness=_FLAT_OCEAN),
}


def resolve_theme(theme: Theme | str) -> tuple[Theme, float, dict[ElevationBand, float]]:
    """Resolve a theme to its saturation scale and full lightness table.

    Theme lightness overrides are merged over ``BASE_LIGHTNESS``.

    Raises:
        InvalidSettingsError: If the theme name is unknown.
    """
    try:
        theme = Theme(theme)
    except ValueError as e:
        raise InvalidSettingsError(f"Unknown theme: {theme!r}") from e

    adjust = THEME_OVERRIDES.get(theme, ThemeAdjust())
    lightness = {**BASE_LIGHTNESS, **(adjust.lightness or {})}
    return theme, adjust.saturation_scale, lightness


def hex_to_rgb(color: str) -> tuple[float, float, float]:
    """Parse ``#RRGGBB`` (or ``#RGB``) into floats in [0, 1]."""
    digits = color.lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    r, g, b = (int(digits[i : i + 2], 16) / 255 for i in (0, 2, 4))
    return r, g, b


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Format floats in [0, 1] as uppercase ``#RRGGBB``."""
    channels = (min(255, max(0, math.floor(v * 255 + 0.5))) for v in (r, g, b))
    return "#" + "".join(f"{c:02X}" for c in channels)


def adjust_color(color: str, saturation_scale: float, lightness_delta: float) -> str:
    """Scale saturation and shift lightness of a hex color in HSL space."""
    h, l, s = colorsys.rgb_to_hls(*hex_to_rgb(color))
    s = min(1.0, max(0.0, s * saturation_scale))
    l = min(1.0, max(0.0, l + lightness_delta))
    return rgb_to_hex(*colorsys.hls_to_rgb(h, l, s))


@lru_cache(maxsize=None)
def palette_table(theme: Theme) -> NDArray[np.str_]:
    """Final color for every (biome code, fine elevation band) pair.

    Returns:
        String array of shape (len(BIOME_KEYS), len(ELEVATION_BANDS)).
    """
    theme, saturation, lightness = resolve_theme(theme)
    base = BIOME_COLORS[theme]
    table = np.array(
        [
            [adjust_color(base[key], saturation, lightness[band]) for band in ELEVATION_BANDS]
            for key in BIOME_KEYS
        ]
    )
    table.setflags(write=False)
    return table


def region_colors(
    theme: Theme | str,
    elevation: ArrayLike,
    moisture: ArrayLike,
    rainfall: float | None = None,
    biomes: NDArray[np.uint8] | None = None,
) -> NDArray[np.str_]:
    """Vectorized ``biome_color``.

    Args:
        theme: Palette to use.
        elevation: Sea-level shifted elevation in [-1, 1].
        moisture: Moisture in [0, 1], as stored on a WorldMap.
        rainfall: Rainfall setting used to shape the moisture. None means
            the moisture is already shaped.
        biomes: Precomputed biome codes, classified from the inputs if None.

    Returns:
        Array of ``#RRGGBB`` strings.
    """
    theme, _, _ = resolve_theme(theme)
    if biomes is None:
        if rainfall is None:
            biomes = classify(elevation, moisture)
        else:
            biomes = BiomeClassifier(rainfall).classify(elevation, moisture)
    return palette_table(theme)[biomes, elevation_bands(elevation)]


def biome_color(
    theme: Theme | str,
    elevation: float,
    moisture: float,
    rainfall: float | None = None,
) -> str:
    """Themed ``#RRGGBB`` color for one region.

    Pass the map's ``rainfall`` with a region's stored moisture to get the
    same color as ``WorldMap.colors``.
    """
    return str(region_colors(theme, elevation, moisture, rainfall)[0])
