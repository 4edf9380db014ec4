"""Landmass shape: a frozen pose of Bézier tubes and its signed-distance mask.

Each seed samples one ``ShapePose``: tuning dials, a drifted center, a
rotation and one to three quadratic-Bézier "tubes". The mask is 0 deep
inside any tube and 1 far outside all of them; the coast field turns it
into an island (positive clumpiness) or an inland sea (negative).
"""

import logging
import math

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel

from .config import ElevationDialRanges
from .noise import NEUTRAL, FractalNoise, lerp, smoothstep
from .prng import Xorshift32

logger = logging.getLogger(__name__)

PARABOLA_EPS = 1e-12
AA_CARDINAL_OFFSETS = ((1.0, 0.0), (-1.0, 0.0), (0.0, 1.0), (0.0, -1.0))
COAST_FIELD_SCALE = 0.5


class ShapeDials(BaseModel, frozen=True):
    """Tuning values sampled once per seed."""

    fbm_w1: float
    fbm_w2: float
    center_drift: float
    base_radius: float
    bell_base: float
    bell_gain: float
    ripple: float
    warp_strength: float
    warp_frequency: float
    softness: float
    aa_radius: float
    endpoint_jitter_fraction: float


class Tube(BaseModel, frozen=True):
    """Quadratic Bézier spine with a per-tube radius scale."""

    p0: tuple[float, float]
    p1: tuple[float, float]
    p2: tuple[float, float]
    radius_scale: float
    length: float
    bend: float


class ShapePose(BaseModel, frozen=True):
    """Frozen landmass pose: dials, center, rotation and tubes."""

    dials: ShapeDials
    center: tuple[float, float]
    angle: float
    cos_angle: float
    sin_angle: float
    tubes: tuple[Tube, ...]

    def to_local(
        self, x: NDArray[np.float64], y: NDArray[np.float64]
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Translate by the center and undo the rotation."""
        dx = x - self.center[0]
        dy = y - self.center[1]
        return (
            self.cos_angle * dx + self.sin_angle * dy,
            -self.sin_angle * dx + self.cos_angle * dy,
        )


def sample_shape_dials(rng: Xorshift32, ranges: ElevationDialRanges) -> ShapeDials:
    """Sample every shape dial from its range, in a fixed order."""
    return ShapeDials(
        fbm_w1=rng.sample_dial(ranges.fbm_w1),
        fbm_w2=rng.sample_dial(ranges.fbm_w2),
        center_drift=rng.sample_dial(ranges.center_drift),
        base_radius=rng.sample_dial(ranges.base_radius),
        bell_base=rng.sample_dial(ranges.bell_base),
        bell_gain=rng.sample_dial(ranges.bell_gain),
        ripple=rng.sample_dial(ranges.ripple),
        warp_strength=rng.sample_dial(ranges.warp_strength),
        warp_frequency=rng.sample_dial(ranges.warp_frequency),
        softness=rng.sample_dial(ranges.softness),
        aa_radius=rng.sample_dial(ranges.aa_radius),
        endpoint_jitter_fraction=rng.sample_dial(ranges.endpoint_jitter_fraction),
    )


def _build_tube(
    rng: Xorshift32,
    dials: ShapeDials,
    length_range: tuple[float, float],
    bend_range: tuple[float, float],
    radius_scale: float,
    radius_jitter: tuple[float, float],
) -> Tube:
    theta = rng() * 2 * math.pi
    length = rng.sample_dial(length_range)
    half = length * NEUTRAL
    dx, dy = math.cos(theta), math.sin(theta)

    # Endpoints symmetric around the origin, then jittered
    jitter = dials.endpoint_jitter_fraction * length
    p0 = (-dx * half + (rng() - NEUTRAL) * jitter, -dy * half + (rng() - NEUTRAL) * jitter)
    p2 = (dx * half + (rng() - NEUTRAL) * jitter, dy * half + (rng() - NEUTRAL) * jitter)

    # Control point bent along the perpendicular of the chord
    bend = rng.sample_dial(bend_range) * length
    sign = -1.0 if rng() < NEUTRAL else 1.0
    mid = ((p0[0] + p2[0]) * NEUTRAL, (p0[1] + p2[1]) * NEUTRAL)
    p1 = (mid[0] - dy * bend * sign, mid[1] + dx * bend * sign)

    return Tube(
        p0=p0,
        p1=p1,
        p2=p2,
        radius_scale=radius_scale * rng.sample_dial(radius_jitter),
        length=length,
        bend=bend,
    )


def build_shape_pose(rng: Xorshift32, ranges: ElevationDialRanges) -> ShapePose:
    """Sample the frozen landmass pose for one seed.

    Args:
        rng: Dedicated shape stream.
        ranges: Dial bounds.

    Returns:
        The ShapePose.
    """
    dials = sample_shape_dials(rng, ranges)

    drift = dials.center_drift
    center = ((rng() - NEUTRAL) * drift, (rng() - NEUTRAL) * drift)
    angle = rng() * 2 * math.pi

    count = rng.weighted_choice(list(ranges.tube_count_weights.items()))
    tubes = tuple(
        _build_tube(
            rng,
            dials,
            ranges.length_by_count[count],
            ranges.bend_by_count[count],
            ranges.radius_scale_by_count[count],
            ranges.radius_jitter,
        )
        for _ in range(count)
    )

    pose = ShapePose(
        dials=dials,
        center=center,
        angle=angle,
        cos_angle=math.cos(angle),
        sin_angle=math.sin(angle),
        tubes=tubes,
    )
    _log_pose(pose)
    return pose


def _log_pose(pose: ShapePose) -> None:
    logger.debug("Shape dials:")
    for key, value in pose.dials.model_dump().items():
        logger.debug(f"  {key}: {value:.4f}")
    logger.debug(f"  center: ({pose.center[0]:.4f}, {pose.center[1]:.4f})")
    for i, tube in enumerate(pose.tubes):
        logger.debug(
            f"  tube {i}: length {tube.length:.3f}, bend {tube.bend:.3f}, "
            f"radius_scale {tube.radius_scale:.3f}"
        )


def qbez(a: float, b: float, c: float, t: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quadratic Bézier component at parameter t."""
    s = 1 - t
    return s * s * a + 2 * s * t * b + t * t * c


def _dist_at(
    tube: Tube,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    t: NDArray[np.float64],
) -> NDArray[np.float64]:
    px = qbez(tube.p0[0], tube.p1[0], tube.p2[0], t)
    py = qbez(tube.p0[1], tube.p1[1], tube.p2[1], t)
    return np.hypot(px - x, py - y)


def _refine_t(
    tube: Tube,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    t0: NDArray[np.float64],
    h: float,
) -> NDArray[np.float64]:
    """Step t toward the vertex of a parabola through t0 - h, t0, t0 + h."""
    t_left = np.clip(t0 - h, 0.0, 1.0)
    t_right = np.clip(t0 + h, 0.0, 1.0)
    d_left = _dist_at(tube, x, y, t_left)
    d_center = _dist_at(tube, x, y, t0)
    d_right = _dist_at(tube, x, y, t_right)

    denom = d_left - 2 * d_center + d_right
    safe = np.abs(denom) >= PARABOLA_EPS
    step = np.where(safe, h * (d_left - d_right) / (2 * np.where(safe, denom, 1.0)), 0.0)
    candidate = np.clip(t0 + step, 0.0, 1.0)

    # Only accept steps that move closer to the curve
    better = _dist_at(tube, x, y, candidate) <= d_center
    return np.where(better, candidate, t0)


def nearest_curve_parameter(
    tube: Tube,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    coarse_steps: int,
    refine_steps: tuple[float, ...],
) -> NDArray[np.float64]:
    """Approximate the curve parameter closest to each query point.

    Coarse search over evenly spaced parameters, then parabolic
    refinements with shrinking step sizes.
    """
    ts = np.linspace(0.0, 1.0, coarse_steps + 1)
    bx = qbez(tube.p0[0], tube.p1[0], tube.p2[0], ts)
    by = qbez(tube.p0[1], tube.p1[1], tube.p2[1], ts)
    d = np.hypot(bx[None, :] - x[:, None], by[None, :] - y[:, None])
    t = ts[np.argmin(d, axis=1)]
    for h in refine_steps:
        t = _refine_t(tube, x, y, t, h)
    return t


def tube_signed_distance(
    tube: Tube,
    dials: ShapeDials,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    ripple: NDArray[np.float64],
    coarse_steps: int = 16,
    refine_steps: tuple[float, ...] = (1 / 32, 1 / 64, 1 / 128),
) -> NDArray[np.float64]:
    """Signed distance to a tube whose radius bulges at the curve midpoint.

    Negative inside the tube. ``ripple`` is added to the radius.
    """
    t = nearest_curve_parameter(tube, x, y, coarse_steps, refine_steps)
    dist = _dist_at(tube, x, y, t)

    bell = 1 - np.abs(2 * t - 1)
    radius = dials.base_radius * tube.radius_scale * (dials.bell_base + dials.bell_gain * bell)
    return dist - (radius + ripple)


def signed_distance(
    pose: ShapePose,
    noise: FractalNoise,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    frequency: float,
    coarse_steps: int = 16,
    refine_steps: tuple[float, ...] = (1 / 32, 1 / 64, 1 / 128),
) -> NDArray[np.float64]:
    """Minimum signed distance over all tubes in the warped pose frame."""
    dials = pose.dials
    lx, ly = pose.to_local(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
    wx, wy = noise.warp(lx, ly, frequency, dials.warp_strength, dials.warp_frequency)

    k = dials.warp_frequency
    ripple = dials.ripple * (noise.fbm2(k * wx, k * wy, frequency) - NEUTRAL)

    best = np.full(wx.shape, np.inf)
    for tube in pose.tubes:
        sd = tube_signed_distance(tube, dials, wx, wy, ripple, coarse_steps, refine_steps)
        best = np.minimum(best, sd)
    return best


def sample_mask(
    pose: ShapePose,
    noise: FractalNoise,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    frequency: float,
    **search: object,
) -> NDArray[np.float64]:
    """Shape mask: 0 inside the tubes, 1 outside, smooth across the edge."""
    softness = pose.dials.softness
    sd = signed_distance(pose, noise, x, y, frequency, **search)
    return smoothstep(-softness, softness, sd)


def sample_mask_aa(
    pose: ShapePose,
    noise: FractalNoise,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    frequency: float,
    **search: object,
) -> NDArray[np.float64]:
    """Antialiased mask: mean of four cardinal samples at ``aa_radius``."""
    e = pose.dials.aa_radius
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    total = np.zeros(x.shape)
    for ox, oy in AA_CARDINAL_OFFSETS:
        total += sample_mask(pose, noise, x + ox * e, y + oy * e, frequency, **search)
    return total / len(AA_CARDINAL_OFFSETS)


def coast_field(mask: NDArray[np.float64], clumpiness: float) -> NDArray[np.float64]:
    """Target elevation implied by the shape.

    clumpiness = +1 gives 1 inside the tubes and 0 outside; -1 inverts
    that; 0 gives a flat 0.5.
    """
    return lerp(
        COAST_FIELD_SCALE * (1 + clumpiness),
        COAST_FIELD_SCALE * (1 - clumpiness),
        mask,
    )


def blend_elevation(
    base: NDArray[np.float64],
    coast: NDArray[np.float64],
    amount: float,
) -> NDArray[np.float64]:
    """Pull the base field toward the coast field by ``amount / 2``."""
    return base + COAST_FIELD_SCALE * amount * (coast - base)
