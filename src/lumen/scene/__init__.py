"""Scene storage and the host-side Scene.

Components:
    intersection: Global primitive storage and ray-scene queries
    scene: Host Scene coordinating primitives, lights and preprocessing

Light modules depend on ``intersection``, and ``scene`` depends on the light
modules, so the Scene class is imported from ``src.lumen.scene.scene``.
"""

from .intersection import (
    NO_MATERIAL,
    Primitive,
    PrimitiveKind,
    SceneHit,
    get_material,
    intersect_scene,
    intersect_scene_any,
    primitive_count,
)

__all__ = [
    "NO_MATERIAL",
    "Primitive",
    "PrimitiveKind",
    "SceneHit",
    "get_material",
    "intersect_scene",
    "intersect_scene_any",
    "primitive_count",
]
