"""Isotropic point light.

A point light emits intensity I uniformly in all directions from a single
position. Incident radiance at distance d is I / d^2.
"""

import math

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction, make_point_interaction
from src.lumen.core.ray import T_MAX, Ray, vec2, vec3
from src.lumen.core.sampling import uniform_sample_sphere, uniform_sphere_pdf
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


class PointLight(Light):
    """Point light at ``position`` with RGB ``intensity``."""

    light_type = LightType.POINT
    flags = LightFlags.DELTA_POSITION

    def __init__(self, position, intensity, n_samples: int = 1) -> None:
        super().__init__(n_samples)
        self.position = tuple(float(c) for c in position)
        self.intensity = tuple(float(c) for c in intensity)

    def record(self):
        return {
            "light_type": self.light_type,
            "flags": self.flags,
            "n_samples": self.n_samples,
            "position": self.position,
            "emission": self.intensity,
        }

    def total_power(self):
        return tuple(4.0 * math.pi * c for c in self.intensity)


@ti.func
def point_sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    """Incident radiance from a point light; the direction is deterministic."""
    result = make_empty_li_sample(ref)
    wi = light.position - ref.p
    dist2 = tm.dot(wi, wi)
    if dist2 > 0.0:
        result = LightLiSample(
            radiance=light.emission / dist2,
            wi=wi / ti.sqrt(dist2),
            pdf=1.0,
            vis=VisibilityTester(p0=ref, p1=make_point_interaction(light.position, ref.time)),
        )
    return result


@ti.func
def point_sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Emit a ray from the light position in a uniformly sampled direction."""
    w = uniform_sample_sphere(u1)
    return LightLeSample(
        radiance=light.emission,
        ray=Ray(origin=light.position, direction=w, t_max=T_MAX, time=time),
        n_light=w,
        pdf_pos=1.0,
        pdf_dir=uniform_sphere_pdf(),
    )


@ti.func
def point_pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    return vec2(0.0, uniform_sphere_pdf())
