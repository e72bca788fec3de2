"""Sample warping functions and probability density helpers.

Every warp takes its uniform random numbers explicitly so that callers can
feed values from a Sampler stream instead of a global generator. Each warp is
paired with the density of the distribution it draws from; the two must stay
consistent or Monte Carlo estimates become biased.

Conventions:
    - Directions are returned in a local frame with +z as the axis.
    - Densities are in solid-angle measure unless the name says "area".
"""

import taichi as ti
import taichi.math as tm

from src.lumen.core.ray import is_finite, vec2, vec3

INV_PI = 1.0 / tm.pi
INV_2PI = 0.5 / tm.pi
INV_4PI = 0.25 / tm.pi
PI_OVER_2 = 0.5 * tm.pi
PI_OVER_4 = 0.25 * tm.pi


@ti.func
def uniform_sample_sphere(u: vec2) -> vec3:
    """Map [0,1)^2 uniformly onto the unit sphere."""
    z = 1.0 - 2.0 * u[0]
    r = ti.sqrt(ti.max(0.0, 1.0 - z * z))
    phi = 2.0 * tm.pi * u[1]
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def uniform_sphere_pdf() -> ti.f32:
    return INV_4PI


@ti.func
def uniform_sample_cone(u: vec2, cos_theta_max: ti.f32) -> vec3:
    """Uniformly sample directions within a cone around +z.

    Args:
        u: Uniform random values in [0,1)^2.
        cos_theta_max: Cosine of the cone half-angle.

    Returns:
        A unit direction with z >= cos_theta_max.
    """
    cos_theta = (1.0 - u[0]) + u[0] * cos_theta_max
    sin_theta = ti.sqrt(ti.max(0.0, 1.0 - cos_theta * cos_theta))
    phi = u[1] * 2.0 * tm.pi
    return vec3(ti.cos(phi) * sin_theta, ti.sin(phi) * sin_theta, cos_theta)


@ti.func
def uniform_cone_pdf(cos_theta_max: ti.f32) -> ti.f32:
    return 1.0 / (2.0 * tm.pi * (1.0 - cos_theta_max))


@ti.func
def concentric_sample_disk(u: vec2) -> vec2:
    """Shirley-Chiu concentric mapping of [0,1)^2 onto the unit disk."""
    u_offset = 2.0 * u - vec2(1.0, 1.0)
    result = vec2(0.0, 0.0)
    if u_offset.x != 0.0 or u_offset.y != 0.0:
        r = 0.0
        theta = 0.0
        if ti.abs(u_offset.x) > ti.abs(u_offset.y):
            r = u_offset.x
            theta = PI_OVER_4 * (u_offset.y / u_offset.x)
        else:
            r = u_offset.y
            theta = PI_OVER_2 - PI_OVER_4 * (u_offset.x / u_offset.y)
        result = r * vec2(ti.cos(theta), ti.sin(theta))
    return result


@ti.func
def cosine_sample_hemisphere(u: vec2) -> vec3:
    """Cosine-weighted hemisphere sample around +z (Malley's method)."""
    d = concentric_sample_disk(u)
    z = ti.sqrt(ti.max(0.0, 1.0 - d.x * d.x - d.y * d.y))
    return vec3(d.x, d.y, z)


@ti.func
def cosine_hemisphere_pdf(cos_theta: ti.f32) -> ti.f32:
    return ti.max(cos_theta, 0.0) * INV_PI


@ti.func
def area_to_solid_angle_pdf(pdf_area: ti.f32, distance_squared: ti.f32, cos_theta: ti.f32) -> ti.f32:
    """Convert an area-measure density to solid angle at a reference point.

    Applies the Jacobian distance^2 / |cos theta|, where theta is the angle
    between the sampled surface's normal and the connecting direction.
    Grazing or non-finite results map to zero, marking the sample as unusable.

    Args:
        pdf_area: Density with respect to surface area.
        distance_squared: Squared distance between the two points.
        cos_theta: Cosine at the sampled surface point.

    Returns:
        The density with respect to solid angle, or 0.
    """
    abs_cos = ti.abs(cos_theta)
    pdf = 0.0
    if abs_cos > 0.0:
        pdf = pdf_area * distance_squared / abs_cos
    if not is_finite(pdf):
        pdf = 0.0
    return pdf


# =============================================================================
# Multiple Importance Sampling Weights
# =============================================================================


@ti.func
def balance_heuristic(nf: ti.i32, f_pdf: ti.f32, ng: ti.i32, g_pdf: ti.f32) -> ti.f32:
    f = nf * f_pdf
    g = ng * g_pdf
    weight = 0.0
    if f + g > 0.0:
        weight = f / (f + g)
    return weight


@ti.func
def power_heuristic(nf: ti.i32, f_pdf: ti.f32, ng: ti.i32, g_pdf: ti.f32) -> ti.f32:
    """Veach's power heuristic with exponent 2.

    A delta light reports a light pdf that the other strategy can never
    match; callers pass g_pdf = 0 for it, which yields weight 1.
    """
    f = nf * f_pdf
    g = ng * g_pdf
    weight = 0.0
    if f * f + g * g > 0.0:
        weight = (f * f) / (f * f + g * g)
    return weight
