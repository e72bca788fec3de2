"""Diffuse area light attached to a scene primitive.

The light emits constant radiance from the surface of one sphere or quad,
on the side its geometric normal faces (or on both sides when two-sided).
Incident sampling picks a point uniformly by area and converts the density to
solid angle at the shading point.
"""

import math

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction, offset_ray_origin, spawn_ray
from src.lumen.core.ray import T_MAX, Ray, build_onb_from_normal, local_to_world, safe_normalize, vec2, vec3
from src.lumen.core.sampling import area_to_solid_angle_pdf, cosine_hemisphere_pdf, cosine_sample_hemisphere
from src.lumen.core.visibility import VisibilityTester
from src.lumen.geometry import hit_quad, hit_sphere, quad_area, quad_normal, sample_quad, sample_sphere, sphere_area
from src.lumen.lights.light import (
    Light,
    LightFlags,
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
    make_empty_le_sample,
    make_empty_li_sample,
)
from src.lumen.scene.intersection import PrimitiveKind, get_quad, get_sphere


class DiffuseAreaLight(Light):
    """Constant-radiance emitter bound to a primitive.

    The light is unbound until a Scene attaches it to a sphere or quad; the
    scene fills in ``shape_kind``, ``shape_index`` and ``area``.

    Args:
        radiance: RGB emitted radiance.
        two_sided: Emit from both faces instead of only the front one.
        n_samples: Suggested samples per shading point.
    """

    light_type = LightType.DIFFUSE_AREA
    flags = LightFlags.AREA

    def __init__(self, radiance, two_sided: bool = False, n_samples: int = 1) -> None:
        super().__init__(n_samples)
        self.radiance = tuple(float(c) for c in radiance)
        self.two_sided = two_sided
        self.shape_kind = PrimitiveKind.NONE
        self.shape_index = -1
        self.area = 0.0

    def bind(self, kind: PrimitiveKind, index: int, area: float) -> None:
        """Attach the light to a primitive."""
        self.shape_kind = PrimitiveKind(kind)
        self.shape_index = index
        self.area = area

    def record(self):
        if self.shape_kind == PrimitiveKind.NONE:
            raise RuntimeError("DiffuseAreaLight is not bound to a primitive")
        return {
            "light_type": self.light_type,
            "flags": self.flags,
            "n_samples": self.n_samples,
            "emission": self.radiance,
            "shape_kind": self.shape_kind,
            "shape_index": self.shape_index,
            "two_sided": int(self.two_sided),
        }

    def total_power(self):
        sides = 2.0 if self.two_sided else 1.0
        return tuple(sides * c * self.area * math.pi for c in self.radiance)

    def emitted_radiance_at_point(self, point, w) -> tuple[float, float, float]:
        """Radiance leaving a point of the light's surface in direction w."""
        from src.lumen.lights.queries import emitted_radiance_at_point

        return emitted_radiance_at_point(self._slot(), point, w)


@ti.func
def diffuse_l(light: LightRecord, n: vec3, w: vec3) -> vec3:
    """Emitted radiance for surface normal n and outgoing direction w."""
    result = vec3(0.0, 0.0, 0.0)
    if light.two_sided != 0 or tm.dot(n, w) > 0.0:
        result = light.emission
    return result


@ti.func
def shape_area(light: LightRecord) -> ti.f32:
    area = 0.0
    if light.shape_kind == int(PrimitiveKind.SPHERE):
        area = sphere_area(get_sphere(light.shape_index))
    elif light.shape_kind == int(PrimitiveKind.QUAD):
        area = quad_area(get_quad(light.shape_index))
    return area


@ti.func
def sample_shape(light: LightRecord, u: vec2):
    """Uniform point on the light's primitive.

    Returns:
        A tuple (point, outward normal, p_error, area).
    """
    p = vec3(0.0, 0.0, 0.0)
    n = vec3(0.0, 0.0, 0.0)
    p_error = vec3(0.0, 0.0, 0.0)
    area = 0.0
    if light.shape_kind == int(PrimitiveKind.SPHERE):
        sphere = get_sphere(light.shape_index)
        p, n, p_error = sample_sphere(sphere, u)
        area = sphere_area(sphere)
    elif light.shape_kind == int(PrimitiveKind.QUAD):
        quad = get_quad(light.shape_index)
        p, n, p_error = sample_quad(quad, u)
        area = quad_area(quad)
    return p, n, p_error, area


@ti.func
def diffuse_sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    result = make_empty_li_sample(ref)
    p, n, p_error, area = sample_shape(light, u)
    wi = p - ref.p
    dist2 = tm.dot(wi, wi)
    if dist2 > 0.0 and area > 0.0:
        wi = wi / ti.sqrt(dist2)
        pdf = area_to_solid_angle_pdf(1.0 / area, dist2, tm.dot(n, -wi))
        if pdf > 0.0:
            p_light = Interaction(p=p, p_error=p_error, wo=-wi, n=n, time=ref.time)
            result = LightLiSample(
                radiance=diffuse_l(light, n, -wi),
                wi=wi,
                pdf=pdf,
                vis=VisibilityTester(p0=ref, p1=p_light),
            )
    return result


@ti.func
def diffuse_pdf_li(light: LightRecord, ref: Interaction, wi: vec3) -> ti.f32:
    """Density of wi under area sampling; 0 if the ray misses the primitive."""
    ray = spawn_ray(ref, wi)
    hit_point = vec3(0.0, 0.0, 0.0)
    n = vec3(0.0, 0.0, 0.0)
    hit = 0
    area = 0.0
    if light.shape_kind == int(PrimitiveKind.SPHERE):
        sphere = get_sphere(light.shape_index)
        rec = hit_sphere(ray.origin, ray.direction, sphere, 0.0, T_MAX)
        hit = rec.hit
        hit_point = rec.point
        n = rec.normal
        area = sphere_area(sphere)
    elif light.shape_kind == int(PrimitiveKind.QUAD):
        quad = get_quad(light.shape_index)
        rec = hit_quad(ray.origin, ray.direction, quad, 0.0, T_MAX)
        hit = rec.hit
        hit_point = rec.point
        n = quad_normal(quad)
        area = quad_area(quad)
    pdf = 0.0
    if hit != 0 and area > 0.0:
        d = hit_point - ref.p
        pdf = area_to_solid_angle_pdf(1.0 / area, tm.dot(d, d), tm.dot(n, -wi))
    return pdf


@ti.func
def diffuse_area_l(light: LightRecord, it: Interaction, w: vec3) -> vec3:
    return diffuse_l(light, it.n, w)


@ti.func
def diffuse_sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Origin uniform by area, direction cosine-weighted about the normal.

    A two-sided light spends the first half of u2[0] on the front hemisphere
    and the second half on the back one.
    """
    result = make_empty_le_sample(time)
    p, n, p_error, area = sample_shape(light, u1)
    if area > 0.0:
        u_dir = u2
        side = 1.0
        pdf_scale = 1.0
        if light.two_sided != 0:
            pdf_scale = 0.5
            if u_dir[0] < 0.5:
                u_dir[0] = ti.min(u_dir[0] * 2.0, 0.99999994)
            else:
                u_dir[0] = ti.min((u_dir[0] - 0.5) * 2.0, 0.99999994)
                side = -1.0
        local = cosine_sample_hemisphere(u_dir)
        tangent, bitangent, normal = build_onb_from_normal(n * side)
        w = local_to_world(local, tangent, bitangent, normal)
        origin = offset_ray_origin(p, p_error, n, w)
        result = LightLeSample(
            radiance=diffuse_l(light, n, w),
            ray=Ray(origin=origin, direction=w, t_max=T_MAX, time=time),
            n_light=n,
            pdf_pos=1.0 / area,
            pdf_dir=pdf_scale * cosine_hemisphere_pdf(local.z),
        )
    return result


@ti.func
def diffuse_pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    area = shape_area(light)
    pdf_pos = 0.0
    if area > 0.0:
        pdf_pos = 1.0 / area
    cos_theta = tm.dot(n_light, safe_normalize(ray.direction))
    pdf_dir = cosine_hemisphere_pdf(cos_theta)
    if light.two_sided != 0:
        pdf_dir = 0.5 * cosine_hemisphere_pdf(ti.abs(cos_theta))
    return vec2(pdf_pos, pdf_dir)
