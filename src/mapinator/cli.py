"""Command-line interface for map generation."""

import argparse
import logging
import time
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .config import Theme

logger = logging.getLogger(__name__)

SETTING_FLAGS = (
    "resolution",
    "jitter",
    "rainfall",
    "sea_level",
    "clumpiness",
    "elevation_contrast",
    "moisture_contrast",
    "terrain_frequency",
    "weather_frequency",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a procedural fantasy map from a seed"
    )
    parser.add_argument(
        "--seed", type=str, default=None, help="Map seed (default: test-seed)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="TOML file with a [generator] table of tuning ranges",
    )
    parser.add_argument(
        "--request",
        type=str,
        default=None,
        help="TOML file with a [map] table holding the seed and settings",
    )
    for name in SETTING_FLAGS:
        parser.add_argument(
            f"--{name.replace('_', '-')}",
            dest=name,
            type=float,
            default=None,
            help=f"Normalized {name.replace('_', ' ')} setting",
        )
    parser.add_argument(
        "--theme",
        type=str,
        choices=[t.value for t in Theme],
        default=None,
        help="Color theme",
    )
    parser.add_argument(
        "--debug-images",
        type=str,
        default=None,
        help="Directory to save debug images (optional)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for map generation.

    Returns:
        0 if the map passed validation, 1 otherwise.
    """
    args = build_parser().parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Import here to avoid slow startup for --help
    from .config import GeneratorConfig, MapSettings, load_config, load_map_request
    from .generator import MapGenerator
    from .validation import validate_world

    config = load_config(Path(args.config)) if args.config else GeneratorConfig()

    seed = "test-seed"
    settings = MapSettings()
    if args.request:
        seed, settings = load_map_request(Path(args.request))
    if args.seed is not None:
        seed = args.seed

    overrides = {
        name: getattr(args, name)
        for name in (*SETTING_FLAGS, "theme")
        if getattr(args, name) is not None
    }
    if overrides:
        settings = MapSettings.model_validate({**settings.model_dump(), **overrides})

    resolved = settings.resolve(config.ranges)
    print(f"Generating {resolved.resolution}x{resolved.resolution} map with seed {seed!r}")
    print()

    start_time = time.time()
    world = MapGenerator(seed, config).generate(resolved)
    gen_time = time.time() - start_time

    result = validate_world(world)

    print()
    print(f"Generation complete in {gen_time:.1f}s")
    print(f"Regions: {world.num_regions:,}")
    print(f"Triangles: {world.lattice.num_triangles:,}")
    print(f"Ocean fraction: {world.ocean_fraction:.1%}")
    print("Biomes:")
    for key, count in world.biome_counts().items():
        print(f"  {key.value}: {count:,} ({count / world.num_regions:.1%})")

    if args.debug_images:
        _dump_debug_images(
            Path(args.debug_images),
            world.points,
            elevation=world.elevation,
            moisture=world.moisture,
            colors=world.colors(),
        )

    return 0 if result.passed else 1


def _dump_debug_images(
    output_dir: Path, points: NDArray[np.float64], **arrays: NDArray
) -> None:
    """Save per-region arrays as scatter plots for debugging.

    Args:
        output_dir: Directory to save images.
        points: Region sites.
        **arrays: Named per-region arrays to plot.
    """
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not available, skipping debug images")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    marker_size = max(1.0, 40000.0 / len(points))

    for name, arr in arrays.items():
        fig, ax = plt.subplots(figsize=(10, 10))

        if arr.dtype.kind == "U":
            ax.scatter(points[:, 0], points[:, 1], c=list(arr), s=marker_size, marker="s")
        else:
            cmap = "Blues" if name == "moisture" else "terrain"
            ax.scatter(points[:, 0], points[:, 1], c=arr, cmap=cmap, s=marker_size, marker="s")

        ax.set_title(name)
        ax.set_aspect("equal")
        ax.axis("off")

        fig.savefig(output_dir / f"{name}.png", dpi=150, bbox_inches="tight")
        plt.close(fig)

    logger.info(f"Debug images saved to {output_dir}")


if __name__ == "__main__":
    raise SystemExit(main())
