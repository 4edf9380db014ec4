"""Tests for the landmass shape pose and mask."""

import math

import numpy as np
import pytest
from pydantic import ValidationError

from mapinator.config import ElevationDialRanges
from mapinator.noise import FractalNoise, GradientNoise
from mapinator.prng import make_rng
from mapinator.shape import (
    ShapeDials,
    ShapePose,
    Tube,
    blend_elevation,
    build_shape_pose,
    coast_field,
    nearest_curve_parameter,
    qbez,
    sample_mask,
    sample_mask_aa,
    signed_distance,
    tube_signed_distance,
)

STILL_DIALS = ShapeDials(
    fbm_w1=0.35,
    fbm_w2=0.15,
    center_drift=0.0,
    base_radius=0.2,
    bell_base=1.0,
    bell_gain=0.0,
    ripple=0.0,
    warp_strength=0.0,
    warp_frequency=2.0,
    softness=0.04,
    aa_radius=0.004,
    endpoint_jitter_fraction=0.0,
)

STRAIGHT_TUBE = Tube(
    p0=(-0.3, 0.0),
    p1=(0.0, 0.0),
    p2=(0.3, 0.0),
    radius_scale=1.0,
    length=0.6,
    bend=0.0,
)


def _still_pose(angle: float = 0.0) -> ShapePose:
    """Horizontal capsule of radius 0.2 at the origin, no warp or ripple."""
    return ShapePose(
        dials=STILL_DIALS,
        center=(0.0, 0.0),
        angle=angle,
        cos_angle=math.cos(angle),
        sin_angle=math.sin(angle),
        tubes=(STRAIGHT_TUBE,),
    )


@pytest.fixture
def noise() -> FractalNoise:
    return FractalNoise(GradientNoise(make_rng("shape-noise")), 0.35, 0.15)


class TestBuildShapePose:
    """Tests for sampling the frozen pose."""

    def test_deterministic(self) -> None:
        ranges = ElevationDialRanges()
        a = build_shape_pose(make_rng("pose-shape"), ranges)
        b = build_shape_pose(make_rng("pose-shape"), ranges)
        assert a == b

    def test_seed_changes_pose(self) -> None:
        ranges = ElevationDialRanges()
        a = build_shape_pose(make_rng("one-shape"), ranges)
        b = build_shape_pose(make_rng("two-shape"), ranges)
        assert a != b

    @pytest.mark.parametrize("seed", ["a", "b", "c", "d", "e", "f", "g", "h"])
    def test_within_ranges(self, seed: str) -> None:
        ranges = ElevationDialRanges()
        pose = build_shape_pose(make_rng(seed + "-shape"), ranges)

        for name, value in pose.dials:
            low, high = getattr(ranges, name)
            assert low <= value <= high, name

        drift = pose.dials.center_drift
        assert abs(pose.center[0]) <= drift / 2
        assert abs(pose.center[1]) <= drift / 2
        assert 0.0 <= pose.angle < 2 * math.pi
        assert pose.cos_angle == pytest.approx(math.cos(pose.angle))
        assert pose.sin_angle == pytest.approx(math.sin(pose.angle))

        count = len(pose.tubes)
        assert count in ranges.tube_count_weights
        low, high = ranges.length_by_count[count]
        for tube in pose.tubes:
            assert low <= tube.length <= high

    def test_tube_count_follows_weights(self) -> None:
        """Single tubes are the most common, three the rarest."""
        ranges = ElevationDialRanges()
        counts = {1: 0, 2: 0, 3: 0}
        for i in range(300):
            pose = build_shape_pose(make_rng(f"count-{i}-shape"), ranges)
            counts[len(pose.tubes)] += 1
        assert counts[1] > counts[2] > counts[3] > 0

    def test_forced_tube_count(self) -> None:
        ranges = ElevationDialRanges(tube_count_weights={1: 0.0, 2: 0.0, 3: 1.0})
        pose = build_shape_pose(make_rng("three-shape"), ranges)
        assert len(pose.tubes) == 3
        for tube in pose.tubes:
            assert 0.72 * 0.85 <= tube.radius_scale <= 0.72 * 1.15

    def test_frozen(self) -> None:
        pose = build_shape_pose(make_rng("frozen-shape"), ElevationDialRanges())
        with pytest.raises(ValidationError):
            pose.angle = 0.0


class TestCurve:
    """Tests for Bézier evaluation and the nearest-parameter search."""

    def test_qbez_endpoints(self) -> None:
        t = np.array([0.0, 1.0])
        np.testing.assert_allclose(qbez(1.0, 5.0, 3.0, t), [1.0, 3.0])

    def test_qbez_midpoint(self) -> None:
        assert qbez(0.0, 1.0, 0.0, np.array([0.5]))[0] == pytest.approx(0.5)

    def test_nearest_parameter_on_straight_tube(self) -> None:
        x = np.array([-0.3, -0.15, 0.0, 0.21, 0.3, 0.9])
        y = np.array([0.1, -0.2, 0.3, 0.05, 0.0, 0.0])
        t = nearest_curve_parameter(STRAIGHT_TUBE, x, y, 16, (1 / 32, 1 / 64, 1 / 128))
        # Straight line with a centered control point: x = -0.3 + 0.6 t
        np.testing.assert_allclose(t[:5], [0.0, 0.25, 0.5, 0.85, 1.0], atol=5e-3)
        assert t[5] == 1.0

    def test_refinement_beats_coarse_search(self) -> None:
        x = np.array([0.013])
        y = np.array([0.0])
        coarse = nearest_curve_parameter(STRAIGHT_TUBE, x, y, 16, ())
        refined = nearest_curve_parameter(STRAIGHT_TUBE, x, y, 16, (1 / 32, 1 / 64, 1 / 128))
        target = (0.013 + 0.3) / 0.6
        assert abs(refined[0] - target) <= abs(coarse[0] - target)


class TestSignedDistance:
    """Tests for the tube signed-distance field."""

    def test_inside_negative_outside_positive(self) -> None:
        x = np.array([0.0, 0.0, 0.8])
        y = np.array([0.0, 0.5, 0.0])
        sd = tube_signed_distance(STRAIGHT_TUBE, STILL_DIALS, x, y, np.zeros(3))
        assert sd[0] == pytest.approx(-0.2, abs=1e-6)
        assert sd[1] == pytest.approx(0.3, abs=1e-6)
        assert sd[2] == pytest.approx(0.3, abs=1e-6)

    def test_ripple_grows_radius(self) -> None:
        x = np.array([0.0])
        y = np.array([0.25])
        plain = tube_signed_distance(STRAIGHT_TUBE, STILL_DIALS, x, y, np.zeros(1))
        rippled = tube_signed_distance(STRAIGHT_TUBE, STILL_DIALS, x, y, np.full(1, 0.1))
        assert rippled[0] == pytest.approx(plain[0] - 0.1)
        assert plain[0] > 0 > rippled[0]

    def test_bell_widest_at_midpoint(self) -> None:
        dials = STILL_DIALS.model_copy(update={"bell_base": 0.5, "bell_gain": 0.5})
        x = np.array([0.0, -0.3])
        y = np.array([0.0, 0.0])
        sd = tube_signed_distance(STRAIGHT_TUBE, dials, x, y, np.zeros(2))
        # radius 0.2 at the middle, 0.1 at the ends
        np.testing.assert_allclose(sd, [-0.2, -0.1], atol=1e-6)

    def test_pose_rotation(self, noise: FractalNoise) -> None:
        """A quarter turn stands the capsule upright."""
        pose = _still_pose(math.pi / 2)
        x = np.array([0.0, 0.28])
        y = np.array([0.28, 0.0])
        sd = signed_distance(pose, noise, x, y, 0.5)
        assert sd[0] < 0 < sd[1]

    def test_minimum_over_tubes(self, noise: FractalNoise) -> None:
        upright = Tube(
            p0=(0.0, -0.3), p1=(0.0, 0.0), p2=(0.0, 0.3), radius_scale=1.0, length=0.6, bend=0.0
        )
        pose = _still_pose().model_copy(update={"tubes": (STRAIGHT_TUBE, upright)})
        x = np.array([0.28, 0.0, 0.4])
        y = np.array([0.0, 0.28, 0.4])
        sd = signed_distance(pose, noise, x, y, 0.5)
        assert sd[0] < 0
        assert sd[1] < 0
        assert sd[2] > 0


class TestMask:
    """Tests for the smoothed and antialiased masks."""

    def test_mask_inside_and_outside(self, noise: FractalNoise) -> None:
        pose = _still_pose()
        x = np.array([0.0, 0.45, 0.2])
        y = np.array([0.0, 0.45, 0.2])
        mask = sample_mask(pose, noise, x, y, 0.5)
        assert mask[0] == 0.0
        assert mask[1] == 1.0
        assert 0.0 <= mask[2] <= 1.0

    def test_mask_transition_on_edge(self, noise: FractalNoise) -> None:
        """The boundary sits at 0.5 and the transition spans the softness."""
        pose = _still_pose()
        mask = sample_mask(pose, noise, np.array([0.0]), np.array([0.2]), 0.5)
        assert mask[0] == pytest.approx(0.5, abs=1e-3)

    def test_aa_mask_averages(self, noise: FractalNoise) -> None:
        pose = _still_pose()
        x = np.linspace(-0.5, 0.5, 41)
        y = np.full_like(x, 0.19)
        aa = sample_mask_aa(pose, noise, x, y, 0.5)
        assert aa.min() >= 0.0
        assert aa.max() <= 1.0
        np.testing.assert_allclose(aa[20], sample_mask(pose, noise, x, y, 0.5)[20], atol=0.05)

    def test_sampled_pose_mask_in_range(self, noise: FractalNoise) -> None:
        pose = build_shape_pose(make_rng("mask-shape"), ElevationDialRanges())
        xs, ys = np.meshgrid(np.linspace(-0.5, 0.5, 30), np.linspace(-0.5, 0.5, 30))
        mask = sample_mask_aa(pose, noise, xs.ravel(), ys.ravel(), 0.5)
        assert mask.min() >= 0.0
        assert mask.max() <= 1.0
        # Some land and some sea
        assert (mask < 0.5).any()
        assert (mask > 0.5).any()


class TestCoastBlend:
    """Tests for coast field and blending."""

    def test_island(self) -> None:
        np.testing.assert_allclose(coast_field(np.array([0.0, 1.0]), 1.0), [1.0, 0.0])

    def test_inland_sea(self) -> None:
        np.testing.assert_allclose(coast_field(np.array([0.0, 1.0]), -1.0), [0.0, 1.0])

    def test_flat_at_zero_clumpiness(self) -> None:
        np.testing.assert_allclose(coast_field(np.array([0.0, 0.3, 1.0]), 0.0), 0.5)

    def test_blend_amount_zero_keeps_base(self) -> None:
        base = np.array([0.1, 0.7])
        np.testing.assert_array_equal(blend_elevation(base, np.array([1.0, 0.0]), 0.0), base)

    def test_blend_full_amount_is_halfway(self) -> None:
        base = np.array([0.2, 0.8])
        coast = np.array([1.0, 0.0])
        np.testing.assert_allclose(blend_elevation(base, coast, 1.0), [0.6, 0.4])
