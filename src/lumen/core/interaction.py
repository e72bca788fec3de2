"""Interaction-point records and robust ray spawning.

An interaction point is the minimal record shared by surface hits and light
samples: position, a conservative bound on the floating-point error of that
position, outgoing direction, geometric normal and time. Lights without a
surface (point, spot, distant, infinite) produce records with a zero normal
and zero error bound.

Rays leaving an interaction are offset along the normal by the projected
error bound so that they cannot re-intersect the surface they start on.
Shadow rays between two records offset both endpoints and stop just short of
the target.

Example:
    >>> from src.lumen.core.interaction import Interaction, spawn_ray_to
    >>> # Inside a Taichi kernel:
    >>> # ray = spawn_ray_to(shading_point, light_point)
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import SHADOW_EPSILON, T_MAX, Ray, vec3

# Relative scale of the position error bound assigned to computed hit points.
# Sized for single-precision intersection arithmetic.
RAY_EPSILON = 1e-4


@ti.dataclass
class Interaction:
    """Record of a point where light interacts with the scene.

    Attributes:
        p: Position of the interaction.
        p_error: Per-axis conservative bound on the error in p.
        wo: Outgoing direction (toward the viewer), or zero if unknown.
        n: Geometric surface normal, or zero for points not on a surface.
        time: Time associated with the interaction.
    """

    p: vec3
    p_error: vec3
    wo: vec3
    n: vec3
    time: ti.f32


@ti.func
def make_point_interaction(p: vec3, time: ti.f32) -> Interaction:
    """Create a surface-less interaction at a point (no normal, no error)."""
    zero = vec3(0.0, 0.0, 0.0)
    return Interaction(p=p, p_error=zero, wo=zero, n=zero, time=time)


@ti.func
def point_error_bound(p: vec3) -> vec3:
    """Conservative error bound for a point produced by intersection math.

    The bound grows with the magnitude of the coordinates and has an absolute
    floor so that points near the origin are still offset.
    """
    return RAY_EPSILON * (ti.abs(p) + 1.0)


@ti.func
def offset_ray_origin(p: vec3, p_error: vec3, n: vec3, w: vec3) -> vec3:
    """Push a point off its surface along the normal, toward direction w.

    The offset distance is the error bound projected onto the normal, so
    points with a zero normal or zero error bound are returned unchanged.

    Args:
        p: The point to offset.
        p_error: Error bound of p.
        n: Geometric normal at p.
        w: Direction the spawned ray will travel.

    Returns:
        The offset origin, on the same side of the surface as w.
    """
    d = tm.dot(ti.abs(n), p_error)
    offset = d * n
    if tm.dot(w, n) < 0.0:
        offset = -offset
    return p + offset


@ti.func
def spawn_ray(it: Interaction, direction: vec3) -> Ray:
    """Spawn an unbounded ray leaving an interaction in a given direction."""
    origin = offset_ray_origin(it.p, it.p_error, it.n, direction)
    return Ray(origin=origin, direction=direction, t_max=T_MAX, time=it.time)


@ti.func
def spawn_ray_to(it: Interaction, target: Interaction) -> Ray:
    """Spawn a shadow ray from one interaction toward another.

    Both endpoints are nudged along their own error bounds. The direction
    spans the full offset segment and t_max stops just short of the target,
    so only geometry strictly between the two points is reported.

    Args:
        it: The interaction the ray starts from.
        target: The interaction the ray travels toward.

    Returns:
        A ray with t in (0, 1 - SHADOW_EPSILON) covering the segment.
    """
    p_origin = offset_ray_origin(it.p, it.p_error, it.n, target.p - it.p)
    p_target = offset_ray_origin(target.p, target.p_error, target.n, p_origin - target.p)
    return Ray(
        origin=p_origin,
        direction=p_target - p_origin,
        t_max=1.0 - SHADOW_EPSILON,
        time=it.time,
    )


# =============================================================================
# Host-side Records
# =============================================================================


@dataclass
class InteractionPoint:
    """Host-side mirror of an Interaction record.

    Used to pass reference points into Python-callable query wrappers and to
    return light sample endpoints to host code.

    Attributes:
        p: Position (x, y, z).
        p_error: Per-axis error bound on the position.
        wo: Outgoing direction, or zero.
        n: Geometric normal, or zero for points not on a surface.
        time: Time of the interaction.
    """

    p: tuple[float, float, float]
    p_error: tuple[float, float, float] = (0.0, 0.0, 0.0)
    wo: tuple[float, float, float] = (0.0, 0.0, 0.0)
    n: tuple[float, float, float] = (0.0, 0.0, 0.0)
    time: float = 0.0


def _to_tuple(v) -> tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))


def write_interaction(target: "ti.StructField", point: InteractionPoint) -> None:
    """Store a host InteractionPoint into a 0-d Interaction field."""
    target.p[None] = list(point.p)
    target.p_error[None] = list(point.p_error)
    target.wo[None] = list(point.wo)
    target.n[None] = list(point.n)
    target.time[None] = point.time


def read_interaction(source: "ti.StructField") -> InteractionPoint:
    """Load a 0-d Interaction field into a host InteractionPoint."""
    return InteractionPoint(
        p=_to_tuple(source.p[None]),
        p_error=_to_tuple(source.p_error[None]),
        wo=_to_tuple(source.wo[None]),
        n=_to_tuple(source.n[None]),
        time=float(source.time[None]),
    )
