"""Post-generation validation of a WorldMap."""

import logging

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from .biomes import BIOME_KEYS
from .generator import WorldMap
from .lattice import RegionLattice

logger = logging.getLogger(__name__)

MIN_OCEAN_FRACTION = 0.05
MAX_OCEAN_FRACTION = 0.95


class ValidationResult:
    """Result of map validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_world(world: WorldMap) -> ValidationResult:
    """Validate a generated map's topology and fields.

    Args:
        world: The map to check.

    Returns:
        ValidationResult with any errors/warnings.
    """
    result = ValidationResult()

    # Check 1: Half-edge twins are mutual
    _check_halfedges(world.lattice, result)

    # Check 2: Counts describe a planar triangulation
    _check_euler(world.lattice, result)

    # Check 3: Every site is a triangle vertex
    _check_coverage(world.lattice, result)

    # Check 4: Field domains
    fields_ok = _check_fields(world, result)

    if fields_ok:
        # Check 5: Ocean fraction in reasonable range
        _check_ocean_fraction(world, result)

        # Check 6: Land forms one main mass
        _check_landmass(world, result)

    if result.passed:
        logger.info("Map validation passed")
    else:
        logger.warning(f"Map validation failed with {len(result.errors)} errors")
        for error in result.errors:
            logger.error(f"  - {error}")

    for warning in result.warnings:
        logger.warning(f"  - {warning}")

    return result


def _check_halfedges(lattice: RegionLattice, result: ValidationResult) -> None:
    """Check halfedges[halfedges[e]] == e and twins run in opposite directions."""
    halfedges = lattice.halfedges
    if lattice.num_edges != 3 * lattice.num_triangles:
        result.add_error(
            f"{lattice.num_edges} half-edges for {lattice.num_triangles} triangles"
        )
        return

    out_of_range = int(np.sum((halfedges < -1) | (halfedges >= lattice.num_edges)))
    if out_of_range:
        result.add_error(f"{out_of_range} half-edge twins are out of range")
        return

    e = np.nonzero(halfedges >= 0)[0]
    twins = halfedges[e]
    asymmetric = int(np.sum(halfedges[twins] != e))
    if asymmetric:
        result.add_error(f"{asymmetric} half-edges have non-mutual twins")
        return

    flat = lattice.triangles.ravel()
    start = flat[e]
    end = flat[_next_halfedge(e)]
    reversed_ok = (flat[twins] == end) & (flat[_next_halfedge(twins)] == start)
    mismatched = int(np.sum(~reversed_ok))
    if mismatched:
        result.add_error(f"{mismatched} twin pairs do not share reversed endpoints")


def _next_halfedge(e: NDArray[np.int64]) -> NDArray[np.int64]:
    return np.where(e % 3 == 2, e - 2, e + 1)


def _check_euler(lattice: RegionLattice, result: ValidationResult) -> None:
    """Check T = 2n - 2 - h for n sites and h hull vertices."""
    hull = int(np.sum(lattice.halfedges == -1))
    expected = 2 * lattice.num_regions - 2 - hull
    if lattice.num_triangles != expected:
        result.add_error(
            f"Triangle count {lattice.num_triangles} != 2n - 2 - h = {expected}"
        )


def _check_coverage(lattice: RegionLattice, result: ValidationResult) -> None:
    """Check every region appears in at least one triangle."""
    used = np.zeros(lattice.num_regions, dtype=bool)
    used[lattice.triangles.ravel()] = True
    missing = int(np.sum(~used))
    if missing:
        result.add_error(f"{missing} regions are not in the triangulation")


def _check_fields(world: WorldMap, result: ValidationResult) -> bool:
    """Check array lengths and value domains.

    Returns:
        False if the per-region arrays do not match the lattice.
    """
    n = world.num_regions
    for name, arr in (
        ("elevation", world.elevation),
        ("moisture", world.moisture),
        ("biomes", world.biomes),
    ):
        if len(arr) != n:
            result.add_error(f"{name} has {len(arr)} values for {n} regions")
            return False

    if not np.all((world.elevation >= -1.0) & (world.elevation <= 1.0)):
        result.add_error("Elevation outside [-1, 1]")
    if not np.all((world.moisture >= 0.0) & (world.moisture <= 1.0)):
        result.add_error("Moisture outside [0, 1]")
    if np.any(world.biomes >= len(BIOME_KEYS)):
        result.add_error("Unknown biome codes")
    return True


def _check_ocean_fraction(world: WorldMap, result: ValidationResult) -> None:
    """Warn when the map is almost all land or almost all water."""
    fraction = world.ocean_fraction
    if fraction < MIN_OCEAN_FRACTION:
        result.add_warning(f"Ocean fraction {fraction:.1%} leaves almost no coast")
    elif fraction > MAX_OCEAN_FRACTION:
        result.add_warning(f"Ocean fraction {fraction:.1%} leaves almost no land")


def _check_landmass(world: WorldMap, result: ValidationResult) -> None:
    """Warn when land splits into several comparable masses."""
    land = ~world.ocean_mask
    total_land = int(np.sum(land))
    if total_land == 0:
        result.add_warning("No land found")
        return

    tri = world.lattice.triangles
    a = tri.ravel()
    b = tri[:, [1, 2, 0]].ravel()
    keep = land[a] & land[b]
    n = world.num_regions
    graph = coo_matrix((np.ones(int(np.sum(keep))), (a[keep], b[keep])), shape=(n, n))
    _, labels = connected_components(graph, directed=False)

    sizes = np.bincount(labels[land])
    sizes = sizes[sizes > 0]
    largest_frac = float(np.max(sizes)) / total_land
    if len(sizes) > 1 and largest_frac < 0.9:
        result.add_warning(
            f"Multiple land masses: {len(sizes)} components, "
            f"largest is {largest_frac:.1%} of land"
        )
