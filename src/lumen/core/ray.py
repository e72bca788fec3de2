"""Ray data structure and vector utilities for light transport queries.

This module provides the Ray dataclass used by shadow and emission rays,
together with small vector helpers shared by the light and geometry code.
All operations are designed to work within Taichi kernels.

Rays carry an explicit parametric extent ``t_max``. Shadow rays built between
two interaction points use an unnormalized direction spanning the segment, so
``t_max`` slightly below 1 means "strictly before the target point".

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction, t_max=T_MAX, time=0.0)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type aliases for vectors using Taichi's math module
vec2 = tm.vec2
vec3 = tm.vec3

# Unbounded ray extent
T_MAX = 1e10

# Shadow rays stop this fraction short of their target point
SHADOW_EPSILON = 1e-4


@ti.dataclass
class Ray:
    """A ray with an origin, direction, parametric extent and time.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not necessarily
            normalized; shadow rays span the whole segment to their target.
        t_max: Largest parameter value considered for intersections.
        time: Time at which the ray is traced.
    """

    origin: vec3
    direction: vec3
    t_max: ti.f32
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    """Create an unbounded ray from origin and direction."""
    return Ray(origin=origin, direction=direction, t_max=T_MAX, time=time)


# Vector helpers


@ti.func
def safe_normalize(v: vec3) -> vec3:
    """Normalize a vector, returning zero for zero-length input.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or the zero vector.
    """
    len2 = tm.dot(v, v)
    result = vec3(0.0, 0.0, 0.0)
    if len2 > 0.0:
        result = v / ti.sqrt(len2)
    return result


@ti.func
def build_onb_from_normal(normal: vec3):
    """Complete a unit normal to a right-handed frame.

    Returns:
        Tuple (tangent, bitangent, normal) with the normal as local z.
    """
    # Helper axis far from parallel to the normal
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(a, normal))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Map a z-up local direction into the frame (tangent, bitangent, normal)."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def is_finite(x: ti.f32) -> ti.i32:
    """Return 1 if x is neither NaN nor infinite.

    Tests the exponent bits directly; fast-math builds may fold isnan and
    isinf to constants.
    """
    return (ti.bit_cast(x, ti.i32) & 0x7F800000) != 0x7F800000
