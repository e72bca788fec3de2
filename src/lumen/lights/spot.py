"""Spotlight: a point light restricted to a cone.

Intensity is constant inside ``falloff_start`` degrees of the axis, zero
beyond ``total_width`` degrees, and follows a smooth quartic falloff in the
band between the two.
"""

import math

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction, make_point_interaction
from src.lumen.core.ray import T_MAX, Ray, build_onb_from_normal, local_to_world, vec2, vec3
from src.lumen.core.sampling import uniform_cone_pdf, uniform_sample_cone
from src.lumen.core.visibility import VisibilityTester
from src.lumen.lights.light import (
    Light,
    LightFlags,
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
    make_empty_li_sample,
)


class SpotLight(Light):
    """Spotlight at ``position`` pointing along ``direction``.

    Args:
        position: Emitter position.
        direction: Cone axis; need not be normalized.
        intensity: RGB intensity on the axis.
        total_width: Outer cone half-angle in degrees.
        falloff_start: Half-angle in degrees where falloff begins.
        n_samples: Suggested samples per shading point.

    Raises:
        ValueError: On a zero axis or an inconsistent pair of angles.
    """

    light_type = LightType.SPOT
    flags = LightFlags.DELTA_POSITION

    def __init__(
        self,
        position,
        direction,
        intensity,
        total_width: float = 30.0,
        falloff_start: float = 25.0,
        n_samples: int = 1,
    ) -> None:
        super().__init__(n_samples)
        length = math.sqrt(sum(float(c) * float(c) for c in direction))
        if length == 0.0:
            raise ValueError("Spotlight direction must be non-zero")
        if not 0.0 < total_width <= 180.0:
            raise ValueError(f"total_width must be in (0, 180], got {total_width}")
        if not 0.0 <= falloff_start <= total_width:
            raise ValueError(f"falloff_start must be in [0, total_width], got {falloff_start}")
        self.position = tuple(float(c) for c in position)
        self.direction = tuple(float(c) / length for c in direction)
        self.intensity = tuple(float(c) for c in intensity)
        self.cos_total_width = math.cos(math.radians(total_width))
        self.cos_falloff_start = math.cos(math.radians(falloff_start))

    def record(self):
        return {
            "light_type": self.light_type,
            "flags": self.flags,
            "n_samples": self.n_samples,
            "position": self.position,
            "direction": self.direction,
            "emission": self.intensity,
            "cos_total_width": self.cos_total_width,
            "cos_falloff_start": self.cos_falloff_start,
        }

    def total_power(self):
        solid_angle = 2.0 * math.pi * (1.0 - 0.5 * (self.cos_falloff_start + self.cos_total_width))
        return tuple(c * solid_angle for c in self.intensity)


@ti.func
def spot_falloff(light: LightRecord, w: vec3) -> ti.f32:
    """Fraction of the axial intensity emitted along unit direction w."""
    cos_theta = tm.dot(w, light.direction)
    result = 0.0
    if cos_theta >= light.cos_falloff_start:
        result = 1.0
    elif cos_theta >= light.cos_total_width:
        delta = (cos_theta - light.cos_total_width) / (light.cos_falloff_start - light.cos_total_width)
        result = (delta * delta) * (delta * delta)
    return result


@ti.func
def spot_sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    result = make_empty_li_sample(ref)
    wi = light.position - ref.p
    dist2 = tm.dot(wi, wi)
    if dist2 > 0.0:
        wi_n = wi / ti.sqrt(dist2)
        result = LightLiSample(
            radiance=light.emission * spot_falloff(light, -wi_n) / dist2,
            wi=wi_n,
            pdf=1.0,
            vis=VisibilityTester(p0=ref, p1=make_point_interaction(light.position, ref.time)),
        )
    return result


@ti.func
def spot_sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Emit a ray uniformly within the outer cone."""
    local = uniform_sample_cone(u1, light.cos_total_width)
    tangent, bitangent, axis = build_onb_from_normal(light.direction)
    w = local_to_world(local, tangent, bitangent, axis)
    return LightLeSample(
        radiance=light.emission * spot_falloff(light, w),
        ray=Ray(origin=light.position, direction=w, t_max=T_MAX, time=time),
        n_light=w,
        pdf_pos=1.0,
        pdf_dir=uniform_cone_pdf(light.cos_total_width),
    )


@ti.func
def spot_pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    pdf_dir = 0.0
    if tm.dot(ray.direction, light.direction) >= light.cos_total_width:
        pdf_dir = uniform_cone_pdf(light.cos_total_width)
    return vec2(0.0, pdf_dir)
