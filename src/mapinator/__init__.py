"""Deterministic fantasy map generation."""

from .biomes import (
    BIOME_KEYS,
    BiomeClassifier,
    BiomeKey,
    ElevationBand,
    apply_sea_level,
    classify,
)
from .config import (
    ElevationDialRanges,
    GeneratorConfig,
    LatticeConfig,
    MapSettings,
    MoistureDialRanges,
    ResolvedSettings,
    SettingRanges,
    Theme,
    load_config,
    load_map_request,
)
from .exceptions import (
    ClassificationError,
    InvalidSettingsError,
    LatticeError,
    MapgenError,
)
from .generator import MapGenerator, WorldMap, generate
from .lattice import RegionLattice, build_lattice
from .noise import FractalNoise, GradientNoise
from .prng import Xorshift32, hash32, make_rng
from .shape import ShapePose, build_shape_pose
from .themes import biome_color, region_colors
from .validation import ValidationResult, validate_world

__all__ = [
    # Generation
    "generate",
    "MapGenerator",
    "WorldMap",
    # Settings
    "MapSettings",
    "ResolvedSettings",
    "SettingRanges",
    "GeneratorConfig",
    "LatticeConfig",
    "ElevationDialRanges",
    "MoistureDialRanges",
    "Theme",
    "load_config",
    "load_map_request",
    # Randomness
    "Xorshift32",
    "hash32",
    "make_rng",
    # Lattice
    "RegionLattice",
    "build_lattice",
    # Noise and shape
    "GradientNoise",
    "FractalNoise",
    "ShapePose",
    "build_shape_pose",
    # Biomes
    "BiomeKey",
    "ElevationBand",
    "BIOME_KEYS",
    "BiomeClassifier",
    "classify",
    "apply_sea_level",
    "biome_color",
    "region_colors",
    # Validation
    "ValidationResult",
    "validate_world",
    # Exceptions
    "MapgenError",
    "InvalidSettingsError",
    "LatticeError",
    "ClassificationError",
]
