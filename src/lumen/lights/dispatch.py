"""Tag dispatch over LightRecord variants.

These are the entry points an integrator calls from inside a kernel. Each one
selects the variant implementation by ``light_type`` and normalizes results:
a non-finite or non-positive density yields a zero-radiance, zero-pdf sample.
"""

import taichi as ti

from src.lumen.core.interaction import Interaction
from src.lumen.core.ray import Ray, is_finite, safe_normalize, vec2, vec3
from src.lumen.lights.diffuse import (
    diffuse_area_l,
    diffuse_pdf_le,
    diffuse_pdf_li,
    diffuse_sample_le,
    diffuse_sample_li,
)
from src.lumen.lights.distant import distant_pdf_le, distant_sample_le, distant_sample_li
from src.lumen.lights.infinite import (
    infinite_le,
    infinite_pdf_le,
    infinite_pdf_li,
    infinite_sample_le,
    infinite_sample_li,
)
from src.lumen.lights.light import (
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
    make_empty_le_sample,
    make_empty_li_sample,
)
from src.lumen.lights.point import point_pdf_le, point_sample_le, point_sample_li
from src.lumen.lights.spot import spot_pdf_le, spot_sample_le, spot_sample_li


@ti.func
def sample_li(light: LightRecord, ref: Interaction, u: vec2) -> LightLiSample:
    """Sample incident radiance at ref from a light.

    Args:
        light: The light's record.
        ref: The shading point.
        u: Uniform values in [0,1)^2 (ignored by delta lights).

    Returns:
        A LightLiSample; pdf == 0 means the sample must be discarded.
    """
    result = make_empty_li_sample(ref)
    if light.light_type == int(LightType.POINT):
        result = point_sample_li(light, ref, u)
    elif light.light_type == int(LightType.SPOT):
        result = spot_sample_li(light, ref, u)
    elif light.light_type == int(LightType.DISTANT):
        result = distant_sample_li(light, ref, u)
    elif light.light_type == int(LightType.DIFFUSE_AREA):
        result = diffuse_sample_li(light, ref, u)
    elif light.light_type == int(LightType.INFINITE):
        result = infinite_sample_li(light, ref, u)

    if not (is_finite(result.pdf) and result.pdf > 0.0):
        result = make_empty_li_sample(ref)
    return result


@ti.func
def pdf_li(light: LightRecord, ref: Interaction, wi: vec3) -> ti.f32:
    """Solid-angle density sample_li assigns to wi; always 0 for delta lights."""
    pdf = 0.0
    w = safe_normalize(wi)
    if w.x != 0.0 or w.y != 0.0 or w.z != 0.0:
        if light.light_type == int(LightType.DIFFUSE_AREA):
            pdf = diffuse_pdf_li(light, ref, w)
        elif light.light_type == int(LightType.INFINITE):
            pdf = infinite_pdf_li(light, ref, w)
    if not is_finite(pdf):
        pdf = 0.0
    return pdf


@ti.func
def le(light: LightRecord, ray: Ray) -> vec3:
    """Radiance an escaping ray receives from a light; zero unless infinite."""
    result = vec3(0.0, 0.0, 0.0)
    if light.light_type == int(LightType.INFINITE):
        result = infinite_le(light, ray)
    return result


@ti.func
def area_l(light: LightRecord, it: Interaction, w: vec3) -> vec3:
    """Radiance leaving a point on an area light's surface in direction w."""
    result = vec3(0.0, 0.0, 0.0)
    if light.light_type == int(LightType.DIFFUSE_AREA):
        result = diffuse_area_l(light, it, w)
    return result


@ti.func
def sample_le(light: LightRecord, u1: vec2, u2: vec2, time: ti.f32) -> LightLeSample:
    """Sample a ray leaving a light, for light-tracing integrators."""
    result = make_empty_le_sample(time)
    if light.light_type == int(LightType.POINT):
        result = point_sample_le(light, u1, u2, time)
    elif light.light_type == int(LightType.SPOT):
        result = spot_sample_le(light, u1, u2, time)
    elif light.light_type == int(LightType.DISTANT):
        result = distant_sample_le(light, u1, u2, time)
    elif light.light_type == int(LightType.DIFFUSE_AREA):
        result = diffuse_sample_le(light, u1, u2, time)
    elif light.light_type == int(LightType.INFINITE):
        result = infinite_sample_le(light, u1, u2, time)

    if not (is_finite(result.pdf_pos) and is_finite(result.pdf_dir)):
        result = make_empty_le_sample(time)
    return result


@ti.func
def pdf_le(light: LightRecord, ray: Ray, n_light: vec3) -> vec2:
    """Return (pdf_pos, pdf_dir) that sample_le assigns to a ray."""
    pdfs = vec2(0.0, 0.0)
    r = Ray(origin=ray.origin, direction=safe_normalize(ray.direction), t_max=ray.t_max, time=ray.time)
    if light.light_type == int(LightType.POINT):
        pdfs = point_pdf_le(light, r, n_light)
    elif light.light_type == int(LightType.SPOT):
        pdfs = spot_pdf_le(light, r, n_light)
    elif light.light_type == int(LightType.DISTANT):
        pdfs = distant_pdf_le(light, r, n_light)
    elif light.light_type == int(LightType.DIFFUSE_AREA):
        pdfs = diffuse_pdf_le(light, r, n_light)
    elif light.light_type == int(LightType.INFINITE):
        pdfs = infinite_pdf_le(light, r, n_light)

    if not (is_finite(pdfs[0]) and is_finite(pdfs[1])):
        pdfs = vec2(0.0, 0.0)
    return pdfs
