"""Geometry module for shape primitives.

This module provides the concrete primitives the light transport core is
exercised against:

Components:
    sphere: Sphere primitive with ray-sphere intersection and area sampling
    quad: Parallelogram primitive with ray-quad intersection and area sampling

All routines are Taichi functions (@ti.func). Hit records carry a position
error bound used to offset rays spawned from the hit.
"""

from .quad import Quad, hit_quad, quad_area, quad_local_coords, quad_normal, sample_quad
from .sphere import HitRecord, Sphere, hit_sphere, make_miss_hit_record, sample_sphere, sphere_area

__all__ = [
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_miss_hit_record",
    "sample_sphere",
    "sphere_area",
    "Quad",
    "hit_quad",
    "quad_area",
    "quad_local_coords",
    "quad_normal",
    "sample_quad",
]
