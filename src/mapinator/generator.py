"""Map generation orchestration."""

import time
from collections import Counter, OrderedDict
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from .biomes import BIOME_KEYS, BiomeClassifier, BiomeKey
from .config import GeneratorConfig, MapSettings, ResolvedSettings, Theme
from .fields import MoistureDials, build_moisture_dials, make_elevation, make_moisture
from .lattice import RegionLattice, build_lattice
from .noise import FractalNoise, GradientNoise
from .prng import make_rng
from .shape import ShapePose, build_shape_pose
from .themes import region_colors

logger = structlog.get_logger()

SHAPE_STREAM = "-shape"
MOISTURE_STREAM = "-moisture"


@dataclass(frozen=True, eq=False)
class WorldMap:
    """A generated map. Immutable; arrays are read-only.

    ``elevation`` is sea-level shifted, so negative values are ocean.
    ``moisture`` is the raw field; rainfall shaping is applied only when
    classifying and coloring.
    """

    seed: str
    settings: ResolvedSettings
    lattice: RegionLattice
    elevation: NDArray[np.float64]
    moisture: NDArray[np.float64]
    biomes: NDArray[np.uint8]

    def __post_init__(self) -> None:
        for arr in (self.elevation, self.moisture, self.biomes):
            arr.setflags(write=False)

    @property
    def num_regions(self) -> int:
        return self.lattice.num_regions

    @property
    def points(self) -> NDArray[np.float64]:
        return self.lattice.points

    @property
    def ocean_mask(self) -> NDArray[np.bool_]:
        return self.elevation < 0

    @property
    def ocean_fraction(self) -> float:
        return float(np.mean(self.ocean_mask))

    def biome_keys(self) -> list[BiomeKey]:
        """Biome of every region, in site order."""
        return [BIOME_KEYS[code] for code in self.biomes]

    def biome_counts(self) -> dict[BiomeKey, int]:
        """Number of regions per biome, for biomes that occur."""
        counts = Counter(int(code) for code in self.biomes)
        return {BIOME_KEYS[code]: n for code, n in sorted(counts.items())}

    def colors(self, theme: Theme | str | None = None) -> NDArray[np.str_]:
        """``#RRGGBB`` color per region.

        Args:
            theme: Palette, defaults to the theme in the map's settings.
        """
        return region_colors(
            theme or self.settings.theme,
            self.elevation,
            self.moisture,
            rainfall=self.settings.rainfall,
            biomes=self.biomes,
        )


@dataclass(frozen=True)
class SeedState:
    """Everything sampled once per seed and shared by all maps for it."""

    elevation_noise: FractalNoise
    pose: ShapePose
    moisture_noise: FractalNoise
    moisture_dials: MoistureDials


def build_seed_state(seed: str, config: GeneratorConfig) -> SeedState:
    """Sample the frozen noise tables, landmass pose and dials for a seed.

    Each concern draws from its own sub-stream of the seed.
    """
    pose = build_shape_pose(make_rng(seed + SHAPE_STREAM), config.elevation)
    elevation_noise = FractalNoise(
        GradientNoise(make_rng(seed)), pose.dials.fbm_w1, pose.dials.fbm_w2
    )

    moisture_rng = make_rng(seed + MOISTURE_STREAM)
    moisture_table = GradientNoise(moisture_rng)
    moisture_dials = build_moisture_dials(moisture_rng, config.moisture)
    moisture_noise = FractalNoise(
        moisture_table, moisture_dials.fbm_w1, moisture_dials.fbm_w2
    )

    return SeedState(
        elevation_noise=elevation_noise,
        pose=pose,
        moisture_noise=moisture_noise,
        moisture_dials=moisture_dials,
    )


class MapGenerator:
    """Generates maps for one seed, caching lattices and finished maps.

    Both caches keep only the most recently used entries, up to the sizes
    in the config. ``reseed`` replaces all per-seed state and clears both
    caches; maps already returned are unaffected.
    """

    def __init__(self, seed: str, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig()
        self._seed = seed
        self._state = build_seed_state(seed, self.config)
        self._lattices: OrderedDict[tuple[int, float], RegionLattice] = OrderedDict()
        self._maps: OrderedDict[ResolvedSettings, WorldMap] = OrderedDict()

    @property
    def seed(self) -> str:
        return self._seed

    @property
    def pose(self) -> ShapePose:
        return self._state.pose

    def reseed(self, seed: str) -> None:
        """Switch to a new seed, discarding cached lattices and maps."""
        old_seed = self._seed
        self._seed = seed
        self._state = build_seed_state(seed, self.config)
        self._lattices.clear()
        self._maps.clear()
        logger.info("generator_reseeded", old_seed=old_seed, seed=seed)

    def lattice(self, resolution: int, jitter: float) -> RegionLattice:
        """Relaxed lattice for the current seed, built on first use."""
        key = (resolution, jitter)
        lattice = self._lattices.get(key)
        if lattice is None:
            lattice = build_lattice(self._seed, resolution, jitter, self.config.lattice)
        _remember(self._lattices, key, lattice, self.config.lattice_cache_size)
        return lattice

    def generate(self, settings: MapSettings | ResolvedSettings | None = None) -> WorldMap:
        """Generate (or fetch from cache) the map for the given settings.

        Args:
            settings: Normalized or resolved settings; defaults to MapSettings().

        Returns:
            The WorldMap.

        Raises:
            LatticeError: If the lattice cannot be built.
            ClassificationError: If a region misses the biome partition.
        """
        if settings is None:
            settings = MapSettings()
        if isinstance(settings, MapSettings):
            settings = settings.resolve(self.config.ranges)

        cached = self._maps.get(settings)
        if cached is not None:
            logger.debug("map_cache_hit", seed=self._seed, resolution=settings.resolution)
            self._maps.move_to_end(settings)
            return cached

        start = time.perf_counter()
        state = self._state
        lattice = self.lattice(settings.resolution, settings.jitter)

        elevation = make_elevation(
            lattice, state.elevation_noise, state.pose, settings, self.config.elevation
        )
        moisture = make_moisture(
            lattice, state.moisture_noise, state.moisture_dials, settings
        )
        biomes = BiomeClassifier(settings.rainfall).classify(elevation, moisture)

        world = WorldMap(
            seed=self._seed,
            settings=settings,
            lattice=lattice,
            elevation=elevation,
            moisture=moisture,
            biomes=biomes,
        )
        _remember(self._maps, settings, world, self.config.map_cache_size)

        logger.info(
            "map_generated",
            seed=self._seed,
            regions=world.num_regions,
            triangles=lattice.num_triangles,
            ocean_fraction=round(world.ocean_fraction, 4),
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return world


def _remember(cache: OrderedDict, key: object, value: object, limit: int) -> None:
    """Store ``value`` as the newest entry and evict the oldest beyond ``limit``."""
    cache[key] = value
    cache.move_to_end(key)
    while len(cache) > limit:
        cache.popitem(last=False)


def generate(
    seed: str,
    settings: MapSettings | ResolvedSettings | None = None,
    config: GeneratorConfig | None = None,
) -> WorldMap:
    """Generate a single map without keeping a generator around."""
    return MapGenerator(seed, config).generate(settings)
