"""Parallelogram emitters and occluders.

``Quad(Q, u, v)`` covers the points ``Q + s*u + t*v`` for ``s, t`` in [0, 1].
Its geometric normal is ``normalize(u x v)``; a one-sided area light bound to
a quad radiates only into that half-space.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.geometry.quad import Quad, hit_quad
    >>> ceiling = Quad(
    ...     Q=ti.math.vec3(-0.5, 2.0, -0.5),
    ...     u=ti.math.vec3(0, 0, 1),
    ...     v=ti.math.vec3(1, 0, 0),
    ... )  # u x v points down, into the room
"""

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import point_error_bound
from src.lumen.core.ray import vec2, vec3

from .sphere import HitRecord, make_miss_hit_record

# Below this |u x v|^2 the edges are treated as parallel
DEGENERATE_AREA_SQ = 1e-10

# Below this |n . d| the ray is treated as parallel to the plane
PARALLEL_EPSILON = 1e-8


@ti.dataclass
class Quad:
    """A parallelogram given by one corner and two edge vectors.

    Attributes:
        Q: Corner point.
        u: First edge, from Q.
        v: Second edge, from Q.
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def quad_local_coords(quad: Quad, p: vec3):
    """Express a point of the quad's plane as ``Q + s*u + t*v``.

    Projects ``p - Q`` onto the dual basis of (u, v) in the plane, so the
    edges need not be orthogonal. Degenerate quads report (-1, -1), which
    lies outside every quad.

    Returns:
        Tuple (s, t).
    """
    n = tm.cross(quad.u, quad.v)
    n_sq = tm.dot(n, n)
    s = -1.0
    t = -1.0
    if n_sq > DEGENERATE_AREA_SQ:
        rel = p - quad.Q
        s = tm.dot(tm.cross(quad.v, n), rel) / n_sq
        t = tm.dot(tm.cross(n, quad.u), rel) / n_sq
    return s, t


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a quad.

    The ray parameter comes from the plane equation ``dot(n, P) = dot(n, Q)``,
    then the hit point is accepted if its local coordinates fall inside the
    unit square. Rays parallel to the plane never hit.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction, not necessarily unit length.
        quad: Quad to test.
        t_min: Hits must satisfy t > t_min.
        t_max: Hits must satisfy t < t_max.

    Returns:
        A HitRecord whose normal faces the incoming ray.
    """
    result = make_miss_hit_record()
    normal = quad_normal(quad)
    denom = tm.dot(normal, ray_direction)

    if ti.abs(denom) > PARALLEL_EPSILON:
        t = tm.dot(normal, quad.Q - ray_origin) / denom
        if t > t_min and t < t_max:
            p = ray_origin + t * ray_direction
            s, w = quad_local_coords(quad, p)
            if s >= 0.0 and s <= 1.0 and w >= 0.0 and w <= 1.0:
                front = 1
                if denom > 0.0:
                    # Leaving through the back side
                    front = 0
                result = HitRecord(
                    hit=1,
                    t=t,
                    point=p,
                    p_error=point_error_bound(p),
                    normal=ti.select(front == 1, normal, -normal),
                    front_face=front,
                )

    return result


@ti.func
def quad_normal(quad: Quad) -> vec3:
    return tm.normalize(tm.cross(quad.u, quad.v))


@ti.func
def quad_area(quad: Quad) -> ti.f32:
    """|u x v|."""
    return tm.length(tm.cross(quad.u, quad.v))


@ti.func
def sample_quad(quad: Quad, u: vec2):
    """Pick a point on the quad with uniform area density.

    The unit square maps affinely onto the parallelogram, so the density is
    ``1 / quad_area(quad)`` everywhere.

    Returns:
        Tuple (point, normal, p_error).
    """
    p = quad.Q + u[0] * quad.u + u[1] * quad.v
    return p, quad_normal(quad), point_error_bound(p)
