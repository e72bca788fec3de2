"""Core types and numerical helpers of the light transport core.

Components:
    ray: Ray record and vector helpers
    interaction: Interaction records, ray offsetting and spawning
    spectrum: RGB radiance helpers
    sampling: Warping functions, densities and MIS weights
    visibility: Deferred occlusion and transmittance queries

``visibility`` reads scene storage and is imported from its own module.
"""

from .interaction import (
    RAY_EPSILON,
    Interaction,
    InteractionPoint,
    make_point_interaction,
    offset_ray_origin,
    spawn_ray,
    spawn_ray_to,
)
from .ray import SHADOW_EPSILON, T_MAX, Ray, make_ray, ray_at
from .spectrum import black, clamp_radiance, is_black, luminance

__all__ = [
    "RAY_EPSILON",
    "SHADOW_EPSILON",
    "T_MAX",
    "Interaction",
    "InteractionPoint",
    "Ray",
    "black",
    "clamp_radiance",
    "is_black",
    "luminance",
    "make_point_interaction",
    "make_ray",
    "offset_ray_origin",
    "ray_at",
    "spawn_ray",
    "spawn_ray_to",
]
