"""Region lattice: jittered grid, Lloyd relaxation and Delaunay topology.

Sites start on a jittered R x R grid and are relaxed toward the centroids
of their Voronoi cells clipped to the [0, R] x [0, R] box. The final sites
are triangulated and exposed with delaunator-style half-edges:
half-edge ``e`` runs from ``triangles[e // 3, e % 3]`` to the next vertex of
the same triangle and ``halfedges[e]`` is its twin in the adjacent
triangle, or -1 on the convex hull.
"""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import Delaunay, QhullError

from .config import LatticeConfig
from .exceptions import LatticeError
from .prng import Xorshift32, make_rng

logger = logging.getLogger(__name__)

MIN_RESOLUTION = 2
MIN_SITES = 3


@dataclass(frozen=True)
class RegionLattice:
    """Relaxed region sites and their triangulation.

    Arrays are read-only; site order is the index space of every
    per-region array built on top of the lattice.
    """

    resolution: int
    points: NDArray[np.float64]
    triangles: NDArray[np.int64]
    halfedges: NDArray[np.int64]

    def __post_init__(self) -> None:
        for arr in (self.points, self.triangles, self.halfedges):
            arr.setflags(write=False)

    @property
    def num_regions(self) -> int:
        return len(self.points)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    @property
    def num_edges(self) -> int:
        """Number of half-edges (three per triangle)."""
        return len(self.halfedges)

    @property
    def is_boundary(self) -> NDArray[np.bool_]:
        """Regions whose cell is open (a hull half-edge starts there)."""
        mask = np.zeros(self.num_regions, dtype=bool)
        mask[self.triangles.ravel()[self.halfedges == -1]] = True
        return mask

    def neighbors(self, region: int) -> list[int]:
        """Regions sharing a Delaunay edge with ``region``, ascending."""
        rows = np.nonzero((self.triangles == region).any(axis=1))[0]
        adjacent = np.unique(self.triangles[rows])
        return [int(r) for r in adjacent if r != region]


def jittered_grid(resolution: int, jitter: float, rng: Xorshift32) -> NDArray[np.float64]:
    """Regular grid with a zero-mean, center-biased offset per site.

    Each coordinate moves by ``jitter * (rng() - rng())``; the difference of
    two uniforms is triangular on [-1, 1].

    Args:
        resolution: Sites per axis.
        jitter: Offset scale in [0, 1].
        rng: Stream keyed by seed and resolution.

    Returns:
        Array of shape (resolution**2, 2), x-major order.
    """
    points = np.empty((resolution * resolution, 2), dtype=np.float64)
    i = 0
    for x in range(resolution):
        for y in range(resolution):
            jx = x + jitter * (rng() - rng())
            jy = y + jitter * (rng() - rng())
            points[i] = (jx, jy)
            i += 1
    return points


def triangulate(points: NDArray[np.float64]) -> Delaunay:
    """Delaunay triangulation of the sites.

    Raises:
        LatticeError: If there are too few sites or they are degenerate.
    """
    if len(points) < MIN_SITES:
        raise LatticeError(f"Need at least {MIN_SITES} sites, got {len(points)}")
    try:
        return Delaunay(points)
    except QhullError as e:
        raise LatticeError(f"Cannot triangulate {len(points)} sites: {e}") from e


def _clip_halfplane(
    poly: list[tuple[float, float]],
    a: float,
    b: float,
    c: float,
) -> list[tuple[float, float]]:
    """Keep the part of a convex polygon where ``a*x + b*y <= c``."""
    out: list[tuple[float, float]] = []
    n = len(poly)
    for i in range(n):
        x0, y0 = poly[i - 1]
        x1, y1 = poly[i]
        d0 = a * x0 + b * y0 - c
        d1 = a * x1 + b * y1 - c
        if d1 <= 0:
            if d0 > 0:
                t = d0 / (d0 - d1)
                out.append((x0 + t * (x1 - x0), y0 + t * (y1 - y0)))
            out.append((x1, y1))
        elif d0 <= 0:
            t = d0 / (d0 - d1)
            out.append((x0 + t * (x1 - x0), y0 + t * (y1 - y0)))
    return out


def clipped_cell(
    site: tuple[float, float],
    neighbors: NDArray[np.float64],
    size: float,
) -> list[tuple[float, float]]:
    """Voronoi cell of a site clipped to the [0, size] square.

    The cell is the box intersected with the bisector half-planes of the
    site's Delaunay neighbours.

    Args:
        site: The site coordinates.
        neighbors: Coordinates of the Delaunay neighbours, shape (k, 2).
        size: Box side length.

    Returns:
        Counter-clockwise polygon vertices (possibly empty).
    """
    px, py = site
    poly = [(0.0, 0.0), (size, 0.0), (size, size), (0.0, size)]
    for qx, qy in neighbors:
        a = qx - px
        b = qy - py
        c = 0.5 * (a * (px + qx) + b * (py + qy))
        poly = _clip_halfplane(poly, a, b, c)
        if not poly:
            break
    return poly


def polygon_centroid(
    poly: list[tuple[float, float]],
    min_vertices: int = 3,
    epsilon_area: float = 1e-12,
) -> tuple[float, float] | None:
    """Area-weighted centroid of a simple polygon.

    Returns:
        The centroid, or None for degenerate polygons (too few vertices or
        |signed area| below epsilon_area).
    """
    if len(poly) < min_vertices:
        return None

    area2 = 0.0
    cx = 0.0
    cy = 0.0
    x0, y0 = poly[-1]
    for x1, y1 in poly:
        cross = x0 * y1 - x1 * y0
        area2 += cross
        cx += (x0 + x1) * cross
        cy += (y0 + y1) * cross
        x0, y0 = x1, y1

    area = area2 / 2
    if abs(area) < epsilon_area:
        return None
    return cx / (6 * area), cy / (6 * area)


def relax_step(
    points: NDArray[np.float64],
    resolution: int,
    config: LatticeConfig | None = None,
) -> NDArray[np.float64]:
    """One Lloyd iteration: move every site to its clipped cell's centroid.

    Sites whose clipped cell is degenerate keep their position.

    Args:
        points: Current sites, shape (n, 2).
        resolution: Side of the clipping box.
        config: Degeneracy thresholds.

    Returns:
        New array of relaxed sites.
    """
    config = config or LatticeConfig()
    tri = triangulate(points)
    indptr, indices = tri.vertex_neighbor_vertices

    relaxed = points.copy()
    degenerate = 0
    size = float(resolution)
    for i in range(len(points)):
        neighbors = points[indices[indptr[i] : indptr[i + 1]]]
        poly = clipped_cell((points[i, 0], points[i, 1]), neighbors, size)
        centroid = polygon_centroid(
            poly, config.min_polygon_vertices, config.epsilon_area
        )
        if centroid is None:
            degenerate += 1
            continue
        relaxed[i] = centroid

    if degenerate:
        logger.debug(f"{degenerate} degenerate cells kept their sites")
    return relaxed


def triangle_cross(
    points: NDArray[np.float64], triangles: NDArray[np.int64]
) -> NDArray[np.float64]:
    """Twice the signed area of each triangle; positive when counter-clockwise."""
    a = points[triangles[:, 0]]
    b = points[triangles[:, 1]]
    c = points[triangles[:, 2]]
    return (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (
        c[:, 0] - a[:, 0]
    )


def nudge_sites(
    points: NDArray[np.float64], scale: float, rng: Xorshift32
) -> NDArray[np.float64]:
    """Offset every coordinate by a seeded amount in [-scale, scale].

    Sites relaxed from an unjittered grid stay on collinear rows and
    cocircular squares, where Qhull can emit zero-area triangles. A tiny
    offset puts them in general position.
    """
    offsets = np.array([scale * (2.0 * rng() - 1.0) for _ in range(points.size)])
    return points + offsets.reshape(points.shape)


def triangulate_general(
    points: NDArray[np.float64],
    rng: Xorshift32,
    config: LatticeConfig,
) -> tuple[NDArray[np.float64], Delaunay]:
    """Triangulate, nudging the sites until no triangle is flat.

    Returns:
        Tuple of (sites actually triangulated, triangulation).

    Raises:
        LatticeError: If flat triangles remain after ``max_nudges`` attempts.
    """
    tri = triangulate(points)
    attempts = 0
    while True:
        cross = triangle_cross(points, tri.simplices)
        flat = int(np.sum(np.abs(cross) <= config.flat_triangle_epsilon))
        if not flat:
            return points, tri
        if attempts == config.max_nudges:
            raise LatticeError(
                f"{flat} flat triangles remain after {attempts} nudges"
            )
        attempts += 1
        logger.debug(f"{flat} flat triangles, nudging sites (attempt {attempts})")
        points = nudge_sites(points, config.nudge_scale, rng)
        tri = triangulate(points)


def build_halfedges(
    tri: Delaunay,
) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Counter-clockwise triangles and half-edge twins from a triangulation.

    Returns:
        Tuple of (triangles (t, 3), halfedges (3t,)).
    """
    triangles = tri.simplices.astype(np.int64, copy=True)
    neighbors = tri.neighbors.astype(np.int64, copy=True)

    # Orient every triangle counter-clockwise so twins run in opposite
    # directions. neighbors[t, i] is opposite vertex i, so swap both.
    flip = triangle_cross(tri.points, triangles) < 0
    triangles[flip] = triangles[flip][:, [0, 2, 1]]
    neighbors[flip] = neighbors[flip][:, [0, 2, 1]]

    n_tri = len(triangles)
    halfedges = np.full(3 * n_tri, -1, dtype=np.int64)
    for i in range(3):
        # Half-edge i joins vertices i and i+1; it is opposite vertex i+2
        adjacent = neighbors[:, (i + 2) % 3]
        has_twin = adjacent >= 0
        t_idx = np.nonzero(has_twin)[0]
        t_adj = adjacent[has_twin]
        # Vertex k of the adjacent triangle is opposite the shared edge
        k = np.argmax(neighbors[t_adj] == t_idx[:, None], axis=1)
        halfedges[3 * t_idx + i] = 3 * t_adj + (k + 1) % 3

    return triangles, halfedges


def build_lattice(
    seed: str,
    resolution: int,
    jitter: float,
    config: LatticeConfig | None = None,
) -> RegionLattice:
    """Build the relaxed region lattice for a seed.

    The lattice depends only on (seed, resolution, jitter).

    Args:
        seed: Map seed; the jitter stream is keyed by ``f"{seed}-{resolution}"``.
        resolution: Sites per axis (>= 2).
        jitter: Initial grid jitter in [0, 1].
        config: Relaxation parameters.

    Returns:
        The RegionLattice.

    Raises:
        LatticeError: If resolution is below 2 or triangulation fails.
    """
    config = config or LatticeConfig()
    if resolution < MIN_RESOLUTION:
        raise LatticeError(
            f"Resolution must be at least {MIN_RESOLUTION} sites per axis, got {resolution}"
        )

    rng = make_rng(f"{seed}-{resolution}")
    points = jittered_grid(resolution, jitter, rng)

    for k in range(config.relax_iterations):
        relaxed = relax_step(points, resolution, config)
        moved = float(np.mean(np.hypot(*(relaxed - points).T)))
        logger.debug(f"Lloyd iteration {k + 1}/{config.relax_iterations}: mean shift {moved:.4f}")
        points = relaxed

    points, tri = triangulate_general(points, rng, config)
    if len(tri.coplanar):
        raise LatticeError(
            f"{len(tri.coplanar)} sites were dropped from the triangulation"
        )
    triangles, halfedges = build_halfedges(tri)
    if np.any(triangle_cross(points, triangles) <= 0):
        raise LatticeError("Triangulation is not counter-clockwise")

    logger.info(
        f"Built lattice {resolution}x{resolution}: "
        f"{len(points)} regions, {len(triangles)} triangles"
    )
    return RegionLattice(
        resolution=resolution,
        points=points,
        triangles=triangles,
        halfedges=halfedges,
    )


def nearest_neighbor_distances(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Distance from each site to its closest other site."""
    from scipy.spatial import cKDTree

    dist, _ = cKDTree(points).query(points, k=2)
    return dist[:, 1]
