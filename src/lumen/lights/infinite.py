"""Uniform infinite (environment) light.

Surrounds the scene with constant radiance. Rays that escape the scene pick
it up through ``emitted_radiance_along_ray``.
"""

import math

import taichi as ti

from src.lumen.core.interaction import Interaction, make_point_interaction
from src.lumen.core.ray import T_MAX, Ray, build_onb_from_normal, vec2, vec3
from src.lumen.core.sampling import concentric_sample_disk, uniform_sample_sphere, uniform_sphere_pdf
from src.lumen.core.visibility import VisibilityTester
from src.lumen.lights.distant import disk_pdf
from src.lumen.lights.light import (
    Light,
    LightFlags,
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
)


class UniformInfiniteLight(Light):
    """Constant environment radiance arriving from every direction."""

    light_type = LightType.INFINITE
    flags = LightFlags.INFINITE

    def __init__(self, radiance, n_samples: int = 1) -> None:
        super().__init__(n_samples)
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
            "emission": self.radiance,
            "world_center": self.world_center,
            "world_radius": self.world_radius,
        }

    def total_power(self):
        area = math.pi * self.world_radius * self.world_radius
        return tuple(c * area for c in self.radiance)


@ti.func
def infinite_sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    wi = uniform_sample_sphere(u)
    p_outside = ref.p + wi * (2.0 * light.world_radius)
    return LightLiSample(
        radiance=light.emission,
        wi=wi,
        pdf=uniform_sphere_pdf(),
        vis=VisibilityTester(p0=ref, p1=make_point_interaction(p_outside, ref.time)),
    )


@ti.func
def infinite_pdf_li(light: LightRecord, ref: Interaction, wi: vec3) -> ti.f32:
    return uniform_sphere_pdf()


@ti.func
def infinite_le(light: LightRecord, ray: Ray) -> vec3:
    return light.emission


@ti.func
def infinite_sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Pick an inbound direction, then an origin on a disk facing it."""
    d = -uniform_sample_sphere(u1)
    tangent, bitangent, _ = build_onb_from_normal(-d)
    cd = concentric_sample_disk(u2)
    p_disk = light.world_center + light.world_radius * (cd.x * tangent + cd.y * bitangent)
    return LightLeSample(
        radiance=light.emission,
        ray=Ray(origin=p_disk - light.world_radius * d, direction=d, t_max=T_MAX, time=time),
        n_light=d,
        pdf_pos=disk_pdf(light.world_radius),
        pdf_dir=uniform_sphere_pdf(),
    )


@ti.func
def infinite_pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    return vec2(disk_pdf(light.world_radius), uniform_sphere_pdf())
