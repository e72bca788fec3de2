"""Spherical emitters and occluders.

Two things are needed from a sphere by the light transport core: the
closest ray crossing within an open parameter interval (shadow rays and
own-shape pdf lookups both rely on this) and uniform points on its surface
(for area lights bound to the sphere, density ``1 / area``).

Roots are computed with the cancellation-free form of the quadratic from
Ray Tracing Gems, chapter 7. Every hit carries a per-axis error bound on its
position so spawned rays can be pushed off the surface.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.geometry.sphere import Sphere, hit_sphere
    >>> bulb = Sphere(center=ti.math.vec3(0, 3, 0), radius=0.25)
"""

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import point_error_bound
from src.lumen.core.ray import vec2, vec3
from src.lumen.core.sampling import uniform_sample_sphere

# Below this |q| the ray grazes the sphere and the textbook roots are used
TANGENT_EPSILON = 1e-10


@ti.dataclass
class Sphere:
    """Sphere with ``center`` and positive ``radius``."""

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Closest crossing of a ray with a single primitive.

    Only ``hit`` is meaningful on a miss.

    Attributes:
        hit: 1 on a hit, 0 otherwise.
        t: Ray parameter of the crossing.
        point: Position of the crossing.
        p_error: Per-axis bound on the rounding error of ``point``.
        normal: Unit normal turned to face the ray origin.
        front_face: 1 when the ray arrived on the side the geometric normal
            points to.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    p_error: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def make_miss_hit_record() -> HitRecord:
    zero = vec3(0.0, 0.0, 0.0)
    return HitRecord(hit=0, t=0.0, point=zero, p_error=zero, normal=zero, front_face=0)


@ti.func
def _sorted_roots(a: ti.f32, h: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Roots of ``a t^2 + 2 h t + c = 0`` in ascending order.

    With ``q = -(h + sign(h) sqrt_d)`` the roots are ``q / a`` and ``c / q``,
    neither of which subtracts nearly equal quantities.
    """
    q = -(h + ti.select(h < 0.0, -1.0, 1.0) * sqrt_d)
    lo = (-h - sqrt_d) / a
    hi = (-h + sqrt_d) / a
    if ti.abs(q) >= TANGENT_EPSILON:
        lo = ti.min(q / a, c / q)
        hi = ti.max(q / a, c / q)
    return lo, hi


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a sphere.

    Substituting the ray into ``|P - center|^2 = radius^2`` gives
    ``a t^2 + 2 h t + c = 0`` with ``a = d.d``, ``h = d.oc`` and
    ``c = oc.oc - radius^2``. The nearer root inside ``(t_min, t_max)`` wins,
    so a ray starting inside the sphere reports the far wall. A zero-length
    direction never hits.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction, not necessarily unit length.
        sphere: Sphere to test.
        t_min: Hits must satisfy t > t_min.
        t_max: Hits must satisfy t < t_max.

    Returns:
        A HitRecord whose normal faces the incoming ray.
    """
    result = make_miss_hit_record()

    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    disc = h * h - a * c

    if a > 0.0 and disc >= 0.0:
        lo, hi = _sorted_roots(a, h, c, ti.sqrt(disc))
        t = lo
        if not (t > t_min and t < t_max):
            t = hi
        if t > t_min and t < t_max:
            p = ray_origin + t * ray_direction
            outward = (p - sphere.center) / sphere.radius
            front = 1
            if tm.dot(ray_direction, outward) > 0.0:
                # Origin is inside the sphere
                front = 0
            result = HitRecord(
                hit=1,
                t=t,
                point=p,
                p_error=point_error_bound(p),
                normal=ti.select(front == 1, outward, -outward),
                front_face=front,
            )

    return result


@ti.func
def sphere_area(sphere: Sphere) -> ti.f32:
    return 4.0 * tm.pi * sphere.radius * sphere.radius


@ti.func
def sample_sphere(sphere: Sphere, u: vec2):
    """Pick a point on the sphere with uniform area density.

    Returns:
        Tuple (point, outward normal, p_error).
    """
    n = uniform_sample_sphere(u)
    p = sphere.center + sphere.radius * n
    return p, n, point_error_bound(p)
