"""Scene-level primitive storage and ray intersection queries.

This module stores spheres and quads in Taichi fields and answers the two
queries the light transport core needs from a scene:

- ``intersect_scene(ray)``: closest hit, returned as an interaction record
  plus a handle to the primitive that was hit.
- ``intersect_scene_any(ray)``: occlusion-only existence test for shadow rays.

Each primitive carries a material id. ``NO_MATERIAL`` (-1) marks geometry
that is present but has no material; visibility tests treat such surfaces as
pass-through boundaries rather than occluders.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.scene.intersection import add_sphere, add_quad, clear_scene
    >>> clear_scene()
    >>> add_sphere(vec3(0, 0, -1), 0.5, material_id=0)
    >>> add_quad(vec3(-1, -0.5, -2), vec3(2, 0, 0), vec3(0, 1, 0), material_id=NO_MATERIAL)
    >>> # Use intersect_scene within a Taichi kernel
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction
from src.lumen.core.ray import Ray, safe_normalize
from src.lumen.geometry.quad import Quad, hit_quad
from src.lumen.geometry.sphere import HitRecord, Sphere, hit_sphere

vec3 = tm.vec3

# Material id for geometry that has no material assigned
NO_MATERIAL = -1

# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_QUADS = 1024

# Rays start exactly at their (already offset) origin
RAY_T_MIN = 0.0


class PrimitiveKind(IntEnum):
    """Kinds of primitive stored in the scene."""

    NONE = -1
    SPHERE = 0
    QUAD = 1


@ti.dataclass
class Primitive:
    """Handle to a primitive stored in the scene.

    Attributes:
        kind: A PrimitiveKind value (NONE for misses).
        index: Index into the storage arrays for that kind.
    """

    kind: ti.i32
    index: ti.i32


@ti.dataclass
class SceneHit:
    """Record of a ray-scene intersection.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray of the hit.
        interaction: Interaction record at the hit point. Its normal is the
            primitive's geometric (outward) normal.
        front_face: 1 if the ray arrived on the side the normal points to.
        primitive: Handle to the primitive that was hit.
        material_id: Material of the hit primitive, NO_MATERIAL if none.
    """

    hit: ti.i32
    t: ti.f32
    interaction: Interaction
    front_face: ti.i32
    primitive: Primitive
    material_id: ti.i32


# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Quad storage: quad_corners stores the Q (corner point) of each quad
quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_material_ids = ti.field(dtype=ti.i32, shape=MAX_QUADS)
num_quads = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives from the scene.

    Resets the primitive counts to zero. The actual field data is not
    cleared but will be overwritten when new primitives are added.
    """
    num_spheres[None] = 0
    num_quads[None] = 0


def add_sphere(center, radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere (should be positive).
        material_id: The material ID, or NO_MATERIAL for pass-through geometry.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = center
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def add_quad(q, u, v, material_id: int = 0) -> int:
    """Add a quad to the scene.

    The quad represents a parallelogram with vertices at Q, Q+u, Q+v, Q+u+v.

    Args:
        q: The corner point of the quad.
        u: Edge vector from q to adjacent corner.
        v: Edge vector from q to other adjacent corner.
        material_id: The material ID, or NO_MATERIAL for pass-through geometry.

    Returns:
        The index of the added quad.

    Raises:
        RuntimeError: If the maximum number of quads is exceeded.
    """
    idx = num_quads[None]
    if idx >= MAX_QUADS:
        raise RuntimeError(f"Maximum number of quads ({MAX_QUADS}) exceeded")
    quad_corners[idx] = q
    quad_edge_u[idx] = u
    quad_edge_v[idx] = v
    quad_material_ids[idx] = material_id
    num_quads[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_quad_count() -> int:
    """Get the number of quads in the scene."""
    return int(num_quads[None])


@ti.func
def get_sphere(index: ti.i32) -> Sphere:
    return Sphere(center=sphere_centers[index], radius=sphere_radii[index])


@ti.func
def get_quad(index: ti.i32) -> Quad:
    return Quad(Q=quad_corners[index], u=quad_edge_u[index], v=quad_edge_v[index])


@ti.func
def primitive_count() -> ti.i32:
    """Total number of primitives of all kinds."""
    return num_spheres[None] + num_quads[None]


@ti.func
def get_material(primitive: Primitive) -> ti.i32:
    """Get the material of a primitive.

    Args:
        primitive: Handle to a stored primitive.

    Returns:
        The material id, or NO_MATERIAL if the primitive has none or the
        handle does not refer to a primitive.
    """
    material_id = NO_MATERIAL
    if primitive.kind == int(PrimitiveKind.SPHERE):
        material_id = sphere_material_ids[primitive.index]
    elif primitive.kind == int(PrimitiveKind.QUAD):
        material_id = quad_material_ids[primitive.index]
    return material_id


@ti.func
def _to_scene_hit(rec: HitRecord, ray: Ray, kind: ti.i32, index: ti.i32, material_id: ti.i32) -> SceneHit:
    """Convert a primitive HitRecord into a SceneHit.

    The face-forwarded normal of the hit record is turned back into the
    primitive's geometric normal.
    """
    n = rec.normal
    if rec.front_face == 0:
        n = -n
    it = Interaction(
        p=rec.point,
        p_error=rec.p_error,
        wo=-safe_normalize(ray.direction),
        n=n,
        time=ray.time,
    )
    return SceneHit(
        hit=1,
        t=rec.t,
        interaction=it,
        front_face=rec.front_face,
        primitive=Primitive(kind=kind, index=index),
        material_id=material_id,
    )


@ti.func
def make_miss_scene_hit() -> SceneHit:
    """Create a SceneHit indicating no intersection."""
    zero = vec3(0.0, 0.0, 0.0)
    return SceneHit(
        hit=0,
        t=0.0,
        interaction=Interaction(p=zero, p_error=zero, wo=zero, n=zero, time=0.0),
        front_face=0,
        primitive=Primitive(kind=int(PrimitiveKind.NONE), index=-1),
        material_id=NO_MATERIAL,
    )


@ti.func
def intersect_scene(ray: Ray) -> SceneHit:
    """Find the closest intersection of a ray with the scene.

    Iterates through all spheres and quads, keeping the closest hit with
    RAY_T_MIN < t < ray.t_max.

    Args:
        ray: The ray to trace.

    Returns:
        A SceneHit for the closest intersection, or a miss record.
    """
    closest_t = ray.t_max
    result = make_miss_scene_hit()

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        rec = hit_sphere(ray.origin, ray.direction, get_sphere(i), RAY_T_MIN, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit(rec, ray, int(PrimitiveKind.SPHERE), i, sphere_material_ids[i])

    n_quads = num_quads[None]
    for i in range(n_quads):
        rec = hit_quad(ray.origin, ray.direction, get_quad(i), RAY_T_MIN, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit(rec, ray, int(PrimitiveKind.QUAD), i, quad_material_ids[i])

    return result


@ti.func
def intersect_scene_any(ray: Ray) -> ti.i32:
    """Test if a ray hits any primitive in the scene (shadow ray query).

    Every primitive counts as an occluder here regardless of material.

    Args:
        ray: The ray to trace, bounded by ray.t_max.

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        if hit_any == 0:
            rec = hit_sphere(ray.origin, ray.direction, get_sphere(i), RAY_T_MIN, ray.t_max)
            if rec.hit == 1:
                hit_any = 1

    n_quads = num_quads[None]
    for i in range(n_quads):
        if hit_any == 0:
            rec = hit_quad(ray.origin, ray.direction, get_quad(i), RAY_T_MIN, ray.t_max)
            if rec.hit == 1:
                hit_any = 1

    return hit_any
