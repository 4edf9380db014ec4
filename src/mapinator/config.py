"""Map settings, generator tuning ranges and TOML loading.

User-facing ``MapSettings`` are normalized slider values. ``resolve()``
maps them to the working ranges the generator consumes. The dial range
models hold the bounds from which each seed samples its frozen tuning
values; they are configuration, not per-map state.
"""

import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class Theme(str, Enum):
    """Named color palettes."""

    DEFAULT = "default"
    ARID = "arid"
    LUSH = "lush"
    RAINBOW = "rainbow"
    OASIS = "oasis"
    GRAYSCALE = "grayscale"
    VOLCANO = "volcano"


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation from a to b."""
    return a + (b - a) * t


class SettingRanges(BaseModel):
    """Working ranges that normalized settings are interpolated into."""

    resolution: tuple[float, float] = Field(
        default=(10.0, 200.0), description="Sites per axis at slider 0 and 1"
    )
    frequency: tuple[float, float] = Field(
        default=(0.1, 1.3), description="Noise frequency divisor range"
    )


class ResolvedSettings(BaseModel, frozen=True):
    """Denormalized settings the generation pipeline consumes."""

    resolution: int = Field(ge=2, description="Lattice sites per axis")
    jitter: float = Field(ge=0.0, le=1.0)
    rainfall: float = Field(ge=0.0, le=1.0)
    sea_level: float = Field(ge=0.0, le=1.0)
    clumpiness: float = Field(ge=-1.0, le=1.0)
    elevation_contrast: float = Field(ge=0.0, le=1.0)
    moisture_contrast: float = Field(ge=0.0, le=1.0)
    terrain_frequency: float = Field(gt=0.0)
    weather_frequency: float = Field(gt=0.0)
    theme: Theme = Theme.DEFAULT


class MapSettings(BaseModel, frozen=True):
    """Normalized user settings (slider values)."""

    resolution: float = Field(default=0.5, ge=0.0, le=1.0)
    jitter: float = Field(default=0.5, ge=0.0, le=1.0)
    rainfall: float = Field(default=0.65, ge=0.0, le=1.0)
    sea_level: float = Field(default=0.51, ge=0.0, le=1.0)
    clumpiness: float = Field(
        default=0.8,
        ge=-1.0,
        le=1.0,
        description="Positive: island in the shape; negative: inland sea",
    )
    elevation_contrast: float = Field(default=0.7, ge=0.0, le=1.0)
    moisture_contrast: float = Field(default=0.5, ge=0.0, le=1.0)
    terrain_frequency: float = Field(default=0.35, ge=0.0, le=1.0)
    weather_frequency: float = Field(default=0.35, ge=0.0, le=1.0)
    theme: Theme = Theme.DEFAULT

    def resolve(self, ranges: SettingRanges | None = None) -> ResolvedSettings:
        """Map slider values into working ranges.

        Args:
            ranges: Target ranges, defaults to ``SettingRanges()``.

        Returns:
            ResolvedSettings ready for generation.
        """
        ranges = ranges or SettingRanges()
        return ResolvedSettings(
            resolution=round(lerp(*ranges.resolution, self.resolution)),
            jitter=self.jitter,
            rainfall=self.rainfall,
            sea_level=self.sea_level,
            clumpiness=self.clumpiness,
            elevation_contrast=self.elevation_contrast,
            moisture_contrast=self.moisture_contrast,
            terrain_frequency=lerp(*ranges.frequency, self.terrain_frequency),
            weather_frequency=lerp(*ranges.frequency, self.weather_frequency),
            theme=self.theme,
        )


class LatticeConfig(BaseModel):
    """Region lattice relaxation parameters."""

    relax_iterations: int = Field(default=4, ge=0, description="Lloyd iterations")
    min_polygon_vertices: int = Field(
        default=3, description="Cells with fewer vertices keep their site"
    )
    epsilon_area: float = Field(
        default=1e-12, description="Cells with smaller |area| keep their site"
    )
    flat_triangle_epsilon: float = Field(
        default=1e-9, description="Triangles with smaller |cross product| count as flat"
    )
    nudge_scale: float = Field(
        default=1e-4, gt=0.0, description="Largest site offset used to break flat triangles"
    )
    max_nudges: int = Field(default=4, ge=0, description="Attempts before giving up")


class ElevationDialRanges(BaseModel):
    """Bounds for the per-seed landmass shape dials.

    Distances are in normalized map units: the map spans [-0.5, 0.5] on
    both axes.
    """

    fbm_w1: tuple[float, float] = Field(default=(0.32, 0.38))
    fbm_w2: tuple[float, float] = Field(default=(0.12, 0.18))
    center_drift: tuple[float, float] = Field(
        default=(0.08, 0.18), description="Shape center offset span"
    )
    base_radius: tuple[float, float] = Field(default=(0.28, 0.34))
    bell_base: tuple[float, float] = Field(
        default=(0.7, 0.85), description="Tube radius factor at the ends"
    )
    bell_gain: tuple[float, float] = Field(
        default=(0.25, 0.4), description="Extra radius factor at the midpoint"
    )
    ripple: tuple[float, float] = Field(default=(0.04, 0.1))
    warp_strength: tuple[float, float] = Field(default=(0.05, 0.15))
    warp_frequency: tuple[float, float] = Field(default=(1.5, 3.0))
    softness: tuple[float, float] = Field(default=(0.02, 0.06))
    aa_radius: tuple[float, float] = Field(default=(0.002, 0.006))
    endpoint_jitter_fraction: tuple[float, float] = Field(default=(0.0, 0.2))
    radius_jitter: tuple[float, float] = Field(default=(0.85, 1.15))

    tube_count_weights: dict[int, float] = Field(
        default_factory=lambda: {1: 0.5, 2: 0.35, 3: 0.15}
    )
    length_by_count: dict[int, tuple[float, float]] = Field(
        default_factory=lambda: {1: (0.6, 0.9), 2: (0.5, 0.75), 3: (0.45, 0.65)}
    )
    bend_by_count: dict[int, tuple[float, float]] = Field(
        default_factory=lambda: {1: (0.05, 0.25), 2: (0.05, 0.2), 3: (0.0, 0.15)}
    )
    radius_scale_by_count: dict[int, float] = Field(
        default_factory=lambda: {1: 1.0, 2: 0.82, 3: 0.72}
    )

    curve_coarse_steps: int = Field(default=16, ge=1)
    curve_refine_steps: tuple[float, ...] = Field(
        default=(1 / 32, 1 / 64, 1 / 128)
    )


class MoistureDialRanges(BaseModel):
    """Bounds for the per-seed moisture dials."""

    fbm_w1: tuple[float, float] = Field(default=(0.32, 0.38))
    fbm_w2: tuple[float, float] = Field(default=(0.12, 0.18))
    ripple_scale: tuple[float, float] = Field(default=(0.8, 1.3))
    warp_strength: tuple[float, float] = Field(default=(0.05, 0.15))
    warp_frequency: tuple[float, float] = Field(default=(1.5, 3.0))


class GeneratorConfig(BaseModel):
    """Complete generator configuration."""

    ranges: SettingRanges = Field(default_factory=SettingRanges)
    lattice: LatticeConfig = Field(default_factory=LatticeConfig)
    elevation: ElevationDialRanges = Field(default_factory=ElevationDialRanges)
    moisture: MoistureDialRanges = Field(default_factory=MoistureDialRanges)
    map_cache_size: int = Field(default=8, ge=1, description="Finished maps kept per seed")
    lattice_cache_size: int = Field(default=2, ge=1, description="Lattices kept per seed")


def load_config(config_path: Path) -> GeneratorConfig:
    """Load generator configuration from the ``[generator]`` table of a TOML file.

    Args:
        config_path: Path to the TOML file.

    Returns:
        Parsed GeneratorConfig. Missing keys keep their defaults.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return GeneratorConfig.model_validate(data.get("generator", {}))


def load_map_request(request_path: Path) -> tuple[str, MapSettings]:
    """Load a seed and settings from the ``[map]`` table of a TOML file.

    Example::

        [map]
        seed = "test-seed"
        resolution = 0.5
        theme = "arid"

    Raises:
        FileNotFoundError: If the file doesn't exist.
        KeyError: If the ``[map]`` table has no seed.
    """
    with open(request_path, "rb") as f:
        data = tomllib.load(f)
    table = dict(data.get("map", {}))
    if "seed" not in table:
        raise KeyError(f"No seed in [map] table of {request_path}")
    seed = str(table.pop("seed"))
    return seed, MapSettings.model_validate(table)
