"""Tests for the relaxed region lattice."""

import numpy as np
import pytest

from mapinator.config import LatticeConfig
from mapinator.exceptions import LatticeError
from mapinator.lattice import (
    RegionLattice,
    build_lattice,
    clipped_cell,
    jittered_grid,
    nearest_neighbor_distances,
    nudge_sites,
    polygon_centroid,
    relax_step,
    triangle_cross,
    triangulate,
    triangulate_general,
)
from mapinator.prng import make_rng


class TestJitteredGrid:
    """Tests for initial site placement."""

    def test_zero_jitter_is_regular_grid(self) -> None:
        points = jittered_grid(4, 0.0, make_rng("grid"))
        assert points.shape == (16, 2)
        # x is the outer loop
        np.testing.assert_array_equal(points[0], [0.0, 0.0])
        np.testing.assert_array_equal(points[1], [0.0, 1.0])
        np.testing.assert_array_equal(points[4], [1.0, 0.0])

    def test_offsets_bounded_by_jitter(self) -> None:
        r = 8
        points = jittered_grid(r, 0.5, make_rng("bounded"))
        grid = jittered_grid(r, 0.0, make_rng("bounded"))
        offsets = np.abs(points - grid)
        assert offsets.max() <= 0.5
        assert offsets.max() > 0.0

    def test_deterministic(self) -> None:
        a = jittered_grid(6, 1.0, make_rng("same"))
        b = jittered_grid(6, 1.0, make_rng("same"))
        np.testing.assert_array_equal(a, b)


class TestPolygonGeometry:
    """Tests for cell clipping and centroids."""

    def test_square_centroid(self) -> None:
        square = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
        assert polygon_centroid(square) == pytest.approx((0.5, 0.5))

    def test_clockwise_square_centroid(self) -> None:
        square = [(0.0, 0.0), (0.0, 2.0), (2.0, 2.0), (2.0, 0.0)]
        assert polygon_centroid(square) == pytest.approx((1.0, 1.0))

    def test_too_few_vertices(self) -> None:
        assert polygon_centroid([(0.0, 0.0), (1.0, 1.0)]) is None

    def test_zero_area(self) -> None:
        assert polygon_centroid([(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]) is None

    def test_clipped_cell_bisector(self) -> None:
        """A single neighbour cuts the box along the perpendicular bisector."""
        cell = clipped_cell((1.0, 1.0), np.array([[3.0, 1.0]]), 4.0)
        xs = [x for x, _ in cell]
        assert max(xs) == pytest.approx(2.0)
        assert polygon_centroid(cell) == pytest.approx((1.0, 2.0))

    def test_clipped_cell_without_neighbors_is_box(self) -> None:
        cell = clipped_cell((1.0, 1.0), np.empty((0, 2)), 3.0)
        assert polygon_centroid(cell) == pytest.approx((1.5, 1.5))

    def test_site_outside_box(self) -> None:
        """Sites jittered past the border still get a cell inside the box."""
        cell = clipped_cell((-0.4, 0.5), np.array([[1.0, 0.5]]), 2.0)
        cx, cy = polygon_centroid(cell)
        assert 0.0 <= cx <= 0.3
        assert cy == pytest.approx(1.0)


class TestTriangulate:
    """Tests for triangulation failures."""

    def test_too_few_sites(self) -> None:
        with pytest.raises(LatticeError):
            triangulate(np.array([[0.0, 0.0], [1.0, 1.0]]))

    def test_collinear_sites(self) -> None:
        with pytest.raises(LatticeError):
            triangulate(np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]]))


class TestGeneralPosition:
    """Tests for breaking flat triangles on regular grids."""

    def test_triangle_cross_sign(self) -> None:
        points = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [2.0, 0.0]])
        cross = triangle_cross(points, np.array([[0, 1, 2], [0, 2, 1], [0, 1, 3]]))
        np.testing.assert_allclose(cross, [1.0, -1.0, 0.0])

    def test_nudge_is_small_and_seeded(self) -> None:
        points = jittered_grid(5, 0.0, make_rng("nudge"))
        a = nudge_sites(points, 1e-4, make_rng("offsets"))
        b = nudge_sites(points, 1e-4, make_rng("offsets"))
        np.testing.assert_array_equal(a, b)
        assert np.max(np.abs(a - points)) <= 1e-4
        assert not np.array_equal(a, points)

    def test_regular_grid_has_no_flat_triangles(self) -> None:
        points = jittered_grid(8, 0.0, make_rng("flat")) + 0.5
        nudged, tri = triangulate_general(points, make_rng("flat-nudge"), LatticeConfig())
        cross = triangle_cross(nudged, tri.simplices)
        assert np.all(np.abs(cross) > LatticeConfig().flat_triangle_epsilon)
        assert len(tri.coplanar) == 0

    def test_gives_up_without_nudges(self) -> None:
        """Collinear hull sites make flat triangles that cannot be left in place."""
        points = jittered_grid(8, 0.0, make_rng("stuck")) + 0.5
        tri = triangulate(points)
        if np.all(np.abs(triangle_cross(points, tri.simplices)) > 1e-9):
            pytest.skip("Qhull produced no flat triangles for this grid")
        with pytest.raises(LatticeError):
            triangulate_general(points, make_rng("stuck"), LatticeConfig(max_nudges=0))


class TestRelaxation:
    """Tests for Lloyd relaxation."""

    def test_variance_does_not_grow(self) -> None:
        """Neighbour spacing becomes more uniform with each iteration."""
        r = 20
        points = jittered_grid(r, 1.0, make_rng("relax"))
        variances = [float(np.var(nearest_neighbor_distances(points)))]
        for _ in range(4):
            points = relax_step(points, r)
            variances.append(float(np.var(nearest_neighbor_distances(points))))

        for before, after in zip(variances, variances[1:]):
            assert after <= before
        assert variances[-1] < 0.5 * variances[0]

    def test_relaxed_sites_inside_box(self) -> None:
        r = 10
        points = jittered_grid(r, 1.0, make_rng("inside"))
        relaxed = relax_step(points, r)
        assert relaxed.min() >= 0.0
        assert relaxed.max() <= r

    def test_centered_grid_is_fixed_point(self) -> None:
        """Sites at cell centers of a regular grid are already at their centroids."""
        r = 6
        points = jittered_grid(r, 0.0, make_rng("stable")) + 0.5
        relaxed = relax_step(points, r)
        np.testing.assert_allclose(relaxed, points, atol=1e-9)

    def test_does_not_mutate_input(self) -> None:
        points = jittered_grid(5, 0.5, make_rng("immutable"))
        original = points.copy()
        relax_step(points, 5)
        np.testing.assert_array_equal(points, original)


class TestBuildLattice:
    """Tests for the full lattice build."""

    def test_counts(self, small_lattice: RegionLattice) -> None:
        assert small_lattice.num_regions == 144
        assert small_lattice.num_edges == 3 * small_lattice.num_triangles
        assert small_lattice.triangles.shape == (small_lattice.num_triangles, 3)

    def test_halfedge_twins_are_mutual(self, small_lattice: RegionLattice) -> None:
        h = small_lattice.halfedges
        inner = np.nonzero(h >= 0)[0]
        np.testing.assert_array_equal(h[h[inner]], inner)

    def test_twins_run_in_opposite_directions(self, small_lattice: RegionLattice) -> None:
        flat = small_lattice.triangles.ravel()
        h = small_lattice.halfedges

        def nxt(e: np.ndarray) -> np.ndarray:
            return np.where(e % 3 == 2, e - 2, e + 1)

        e = np.nonzero(h >= 0)[0]
        np.testing.assert_array_equal(flat[e], flat[nxt(h[e])])
        np.testing.assert_array_equal(flat[nxt(e)], flat[h[e]])

    def test_triangles_counter_clockwise(self, small_lattice: RegionLattice) -> None:
        p = small_lattice.points[small_lattice.triangles]
        a, b, c = p[:, 0], p[:, 1], p[:, 2]
        cross = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (
            c[:, 0] - a[:, 0]
        )
        assert np.all(cross > 0)

    def test_euler_relation(self, small_lattice: RegionLattice) -> None:
        """T = 2n - 2 - h for a planar triangulation with h hull vertices."""
        hull = int(np.sum(small_lattice.halfedges == -1))
        assert small_lattice.num_triangles == 2 * small_lattice.num_regions - 2 - hull

    def test_every_region_triangulated(self, small_lattice: RegionLattice) -> None:
        used = np.unique(small_lattice.triangles)
        assert len(used) == small_lattice.num_regions

    def test_boundary_regions(self, small_lattice: RegionLattice) -> None:
        boundary = small_lattice.is_boundary
        hull = int(np.sum(small_lattice.halfedges == -1))
        assert boundary.sum() == hull
        # The site nearest the middle is interior
        middle = np.argmin(np.hypot(*(small_lattice.points - 6.0).T))
        assert not boundary[middle]

    def test_neighbors_are_symmetric(self, small_lattice: RegionLattice) -> None:
        for r in range(0, small_lattice.num_regions, 13):
            for n in small_lattice.neighbors(r):
                assert r in small_lattice.neighbors(n)

    def test_arrays_read_only(self, small_lattice: RegionLattice) -> None:
        with pytest.raises(ValueError):
            small_lattice.points[0, 0] = 99.0
        with pytest.raises(ValueError):
            small_lattice.halfedges[0] = 0

    def test_deterministic(self) -> None:
        a = build_lattice("det", 8, 0.5)
        b = build_lattice("det", 8, 0.5)
        np.testing.assert_array_equal(a.points, b.points)
        np.testing.assert_array_equal(a.triangles, b.triangles)
        np.testing.assert_array_equal(a.halfedges, b.halfedges)

    def test_seed_changes_points(self) -> None:
        a = build_lattice("one", 8, 0.5)
        b = build_lattice("two", 8, 0.5)
        assert not np.allclose(a.points, b.points)

    def test_relax_iterations_configurable(self) -> None:
        """Zero iterations leaves the jittered grid untouched."""
        lattice = build_lattice("raw", 5, 0.5, LatticeConfig(relax_iterations=0))
        expected = jittered_grid(5, 0.5, make_rng("raw-5"))
        np.testing.assert_array_equal(lattice.points, expected)

    @pytest.mark.parametrize("resolution", [0, 1])
    def test_resolution_below_two_raises(self, resolution: int) -> None:
        with pytest.raises(LatticeError):
            build_lattice("tiny", resolution, 0.5)

    def test_minimum_resolution(self) -> None:
        lattice = build_lattice("tiny", 2, 0.5)
        assert lattice.num_regions == 4
        assert lattice.num_triangles >= 2

    @pytest.mark.parametrize("resolution", [10, 29, 40])
    def test_unjittered_grid_is_valid(self, resolution: int) -> None:
        """A zero-jitter lattice still yields CCW triangles with reversed twins."""
        lattice = build_lattice("edge", resolution, 0.0)
        assert np.all(triangle_cross(lattice.points, lattice.triangles) > 0)

        flat = lattice.triangles.ravel()
        h = lattice.halfedges
        e = np.nonzero(h >= 0)[0]
        nxt = np.where(e % 3 == 2, e - 2, e + 1)
        nxt_twin = np.where(h[e] % 3 == 2, h[e] - 2, h[e] + 1)
        np.testing.assert_array_equal(flat[e], flat[nxt_twin])
        np.testing.assert_array_equal(flat[nxt], flat[h[e]])

        hull = int(np.sum(h == -1))
        assert lattice.num_triangles == 2 * lattice.num_regions - 2 - hull
        assert len(np.unique(lattice.triangles)) == lattice.num_regions

