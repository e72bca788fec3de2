"""Distant (directional) light.

All radiance arrives along one direction, as from a source infinitely far
away. Because its emission depends on the scene's extent, the light captures
the scene's bounding sphere in ``preprocess``.
"""

import math

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction, make_point_interaction
from src.lumen.core.ray import T_MAX, Ray, build_onb_from_normal, vec2, vec3
from src.lumen.core.sampling import concentric_sample_disk
from src.lumen.core.visibility import VisibilityTester
from src.lumen.lights.light import (
    Light,
    LightFlags,
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
)


class DistantLight(Light):
    """Light arriving from infinitely far away.

    Args:
        direction: Direction the light travels in (from the source into the
            scene); need not be normalized.
        radiance: RGB radiance.
        n_samples: Suggested samples per shading point.

    Raises:
        ValueError: If direction is the zero vector.
    """

    light_type = LightType.DISTANT
    flags = LightFlags.DELTA_DIRECTION

    def __init__(self, direction, radiance, n_samples: int = 1) -> None:
        super().__init__(n_samples)
        length = math.sqrt(sum(float(c) * float(c) for c in direction))
        if length == 0.0:
            raise ValueError("Distant light direction must be non-zero")
        # Stored as the unit direction toward the light
        self.w_light = tuple(-float(c) / length for c in direction)
        self.radiance = tuple(float(c) for c in radiance)
        self.world_center = (0.0, 0.0, 0.0)
        self.world_radius = 0.0

    def preprocess(self, scene) -> None:
        self.world_center, self.world_radius = scene.world_bound()
        self.commit()

    def record(self):
        return {
            "light_type": self.light_type,
            "flags": self.flags,
            "n_samples": self.n_samples,
            "direction": self.w_light,
            "emission": self.radiance,
            "world_center": self.world_center,
            "world_radius": self.world_radius,
        }

    def total_power(self):
        area = math.pi * self.world_radius * self.world_radius
        return tuple(c * area for c in self.radiance)


@ti.func
def disk_pdf(radius: ti.f32) -> ti.f32:
    """Area density of a uniform sample on a disk; 0 for a degenerate disk."""
    pdf = 0.0
    if radius > 0.0:
        pdf = 1.0 / (tm.pi * radius * radius)
    return pdf


@ti.func
def distant_sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    """The only direction is toward the light; the target lies outside the scene."""
    p_outside = ref.p + light.direction * (2.0 * light.world_radius)
    return LightLiSample(
        radiance=light.emission,
        wi=light.direction,
        pdf=1.0,
        vis=VisibilityTester(p0=ref, p1=make_point_interaction(p_outside, ref.time)),
    )


@ti.func
def distant_sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Emit from a disk facing the scene, just outside its bounding sphere."""
    tangent, bitangent, _ = build_onb_from_normal(light.direction)
    cd = concentric_sample_disk(u1)
    p_disk = light.world_center + light.world_radius * (cd.x * tangent + cd.y * bitangent)
    d = -light.direction
    return LightLeSample(
        radiance=light.emission,
        ray=Ray(origin=p_disk + light.world_radius * light.direction, direction=d, t_max=T_MAX, time=time),
        n_light=d,
        pdf_pos=disk_pdf(light.world_radius),
        pdf_dir=1.0,
    )


@ti.func
def distant_pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    return vec2(disk_pdf(light.world_radius), 0.0)
