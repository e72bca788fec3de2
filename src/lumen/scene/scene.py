"""Host-side scene: primitives, lights, bounds and light preprocessing.

Primitive and light storage are module-level Taichi fields shared by every
kernel, so only one Scene is loaded at a time. A Scene keeps a host copy of
everything it contains and reloads the fields when it becomes active again
(``ensure_current``).

Lights are preprocessed sequentially once per change: adding a primitive or
a light marks the scene dirty, and the next ``preprocess`` (or any query that
calls ``ensure_current``) brings every light up to date.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.lumen.scene.scene import Scene
    >>> from src.lumen.lights import PointLight
    >>> scene = Scene()
    >>> scene.add_sphere(center=(0, 2, 0), radius=1.0)
    >>> light = scene.add_light(PointLight(position=(0, 5, 0), intensity=(10, 10, 10)))
    >>> scene.preprocess()
"""

import math
from dataclasses import dataclass

import numpy as np

from src.lumen.core.spectrum import luminance_host
from src.lumen.lights.diffuse import DiffuseAreaLight
from src.lumen.lights.light import Light, LightType, allocate_light, clear_lights
from src.lumen.scene import intersection
from src.lumen.scene.intersection import NO_MATERIAL, PrimitiveKind
from src.lumen.utils.console import CONSOLE, warn

# The Scene whose contents are currently in the global fields
_active_scene: "Scene | None" = None


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center: The center of the sphere.
        radius: The radius of the sphere.
        material_id: The material ID, or NO_MATERIAL.
    """

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int


@dataclass
class QuadInfo:
    """Information about a quad in the scene.

    Attributes:
        quad_index: The index in the quad storage arrays.
        corner: The corner point (Q) of the quad.
        edge_u: The first edge vector.
        edge_v: The second edge vector.
        material_id: The material ID, or NO_MATERIAL.
    """

    quad_index: int
    corner: tuple[float, float, float]
    edge_u: tuple[float, float, float]
    edge_v: tuple[float, float, float]
    material_id: int


def clear_storage() -> None:
    """Empty primitive and light storage and forget the active Scene."""
    global _active_scene
    intersection.clear_scene()
    clear_lights()
    _active_scene = None


def _vec3(v) -> tuple[float, float, float]:
    if len(v) != 3:
        raise ValueError(f"Expected a 3-vector, got {v!r}")
    return (float(v[0]), float(v[1]), float(v[2]))


class Scene:
    """A set of primitives and lights loaded into global storage.

    Creating a Scene makes it the active one and clears storage.

    Attributes:
        spheres: SphereInfo for every sphere, in storage order.
        quads: QuadInfo for every quad, in storage order.
        lights: Attached lights, in slot order.
    """

    def __init__(self) -> None:
        self.spheres: list[SphereInfo] = []
        self.quads: list[QuadInfo] = []
        self.lights: list[Light] = []
        self._dirty = True
        self._activate()

    # =========================================================================
    # Storage
    # =========================================================================

    def _activate(self) -> None:
        """Reload this scene's primitives and lights into global storage."""
        global _active_scene
        intersection.clear_scene()
        clear_lights()
        for s in self.spheres:
            intersection.add_sphere(s.center, s.radius, s.material_id)
        for q in self.quads:
            intersection.add_quad(q.corner, q.edge_u, q.edge_v, q.material_id)
        for light in self.lights:
            allocate_light()
            light.commit()
        _active_scene = self

    @property
    def is_active(self) -> bool:
        return _active_scene is self

    def ensure_current(self) -> None:
        """Make this scene the loaded one and bring its lights up to date."""
        if not self.is_active:
            self._activate()
        if self._dirty:
            self.preprocess()

    def clear(self) -> None:
        """Remove all primitives and lights."""
        for light in self.lights:
            light.index = None
            light.scene = None
        self.spheres.clear()
        self.quads.clear()
        self.lights.clear()
        self._dirty = True
        self._activate()

    # =========================================================================
    # Primitives
    # =========================================================================

    def add_sphere(self, center, radius: float, material_id: int = 0) -> int:
        """Add a sphere.

        Args:
            center: Sphere center.
            radius: Positive radius.
            material_id: Material ID, or NO_MATERIAL for pass-through geometry.

        Returns:
            The sphere index.

        Raises:
            ValueError: If radius is not positive.
            RuntimeError: If sphere storage is full.
        """
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        if not self.is_active:
            self._activate()
        center = _vec3(center)
        idx = intersection.add_sphere(center, float(radius), material_id)
        self.spheres.append(SphereInfo(idx, center, float(radius), material_id))
        self._dirty = True
        return idx

    def add_quad(self, corner, edge_u, edge_v, material_id: int = 0) -> int:
        """Add a quad spanning corner + s*edge_u + t*edge_v for s, t in [0, 1].

        Raises:
            ValueError: If the edges are parallel or zero.
            RuntimeError: If quad storage is full.
        """
        corner, edge_u, edge_v = _vec3(corner), _vec3(edge_u), _vec3(edge_v)
        if np.linalg.norm(np.cross(edge_u, edge_v)) == 0.0:
            raise ValueError("Quad edges must span a non-degenerate parallelogram")
        if not self.is_active:
            self._activate()
        idx = intersection.add_quad(corner, edge_u, edge_v, material_id)
        self.quads.append(QuadInfo(idx, corner, edge_u, edge_v, material_id))
        self._dirty = True
        return idx

    def primitive_count(self) -> int:
        return len(self.spheres) + len(self.quads)

    def primitive_area(self, kind: PrimitiveKind, index: int) -> float:
        """Surface area of a stored primitive."""
        if kind == PrimitiveKind.SPHERE:
            r = self.spheres[index].radius
            return 4.0 * math.pi * r * r
        if kind == PrimitiveKind.QUAD:
            q = self.quads[index]
            return float(np.linalg.norm(np.cross(q.edge_u, q.edge_v)))
        raise ValueError(f"Unknown primitive kind {kind!r}")

    # =========================================================================
    # Lights
    # =========================================================================

    def add_light(self, light: Light) -> Light:
        """Attach a light and store its record.

        Raises:
            ValueError: If the light already belongs to a scene, or is an
                unbound area light (use ``attach_area_light``).
            RuntimeError: If light storage is full.
        """
        if light.scene is not None:
            raise ValueError(f"{light!r} is already attached to a scene")
        if isinstance(light, DiffuseAreaLight) and light.shape_kind == PrimitiveKind.NONE:
            raise ValueError("Area lights must be attached with attach_area_light")
        if not self.is_active:
            self._activate()
        light.index = allocate_light()
        light.scene = self
        light.commit()
        self.lights.append(light)
        self._dirty = True
        return light

    def attach_area_light(self, light: DiffuseAreaLight, kind: PrimitiveKind, index: int) -> DiffuseAreaLight:
        """Bind an area light to an existing primitive and attach it."""
        kind = PrimitiveKind(kind)
        count = len(self.spheres) if kind == PrimitiveKind.SPHERE else len(self.quads)
        if not 0 <= index < count:
            raise IndexError(f"No {kind.name.lower()} with index {index}")
        area = self.primitive_area(kind, index)
        if area <= 0.0:
            warn(f"Area light on {kind.name.lower()} {index} has zero area and will emit nothing")
        light.bind(kind, index, area)
        self.add_light(light)
        return light

    def add_emissive_sphere(
        self,
        center,
        radius: float,
        radiance,
        material_id: int = NO_MATERIAL,
        two_sided: bool = False,
        n_samples: int = 1,
    ) -> DiffuseAreaLight:
        """Add a sphere and a diffuse area light covering it."""
        idx = self.add_sphere(center, radius, material_id)
        light = DiffuseAreaLight(radiance, two_sided=two_sided, n_samples=n_samples)
        return self.attach_area_light(light, PrimitiveKind.SPHERE, idx)

    def add_emissive_quad(
        self,
        corner,
        edge_u,
        edge_v,
        radiance,
        material_id: int = NO_MATERIAL,
        two_sided: bool = False,
        n_samples: int = 1,
    ) -> DiffuseAreaLight:
        """Add a quad and a diffuse area light covering it."""
        idx = self.add_quad(corner, edge_u, edge_v, material_id)
        light = DiffuseAreaLight(radiance, two_sided=two_sided, n_samples=n_samples)
        return self.attach_area_light(light, PrimitiveKind.QUAD, idx)

    # =========================================================================
    # Bounds and preprocessing
    # =========================================================================

    def bounds(self) -> tuple[np.ndarray, np.ndarray] | None:
        """Axis-aligned bounds (p_min, p_max) of all primitives, or None if empty."""
        points = []
        for s in self.spheres:
            c = np.asarray(s.center)
            points.append(c - s.radius)
            points.append(c + s.radius)
        for q in self.quads:
            corner, u, v = np.asarray(q.corner), np.asarray(q.edge_u), np.asarray(q.edge_v)
            points.extend([corner, corner + u, corner + v, corner + u + v])
        if not points:
            return None
        pts = np.stack(points)
        return pts.min(axis=0), pts.max(axis=0)

    def world_bound(self) -> tuple[tuple[float, float, float], float]:
        """Bounding sphere (center, radius) of the scene; radius 0 when empty."""
        b = self.bounds()
        if b is None:
            return (0.0, 0.0, 0.0), 0.0
        p_min, p_max = b
        center = 0.5 * (p_min + p_max)
        radius = float(np.linalg.norm(p_max - center))
        return _vec3(center), radius

    def preprocess(self) -> None:
        """Run every light's preprocessing step; no-op if nothing changed."""
        if not self.is_active:
            self._activate()
        if not self._dirty:
            return
        _, radius = self.world_bound()
        for light in self.lights:
            light.preprocess(self)
            if radius == 0.0 and light.light_type in (LightType.DISTANT, LightType.INFINITE):
                warn(f"{type(light).__name__} in an empty scene has zero power")
        self._dirty = False
        total = sum(luminance_host(light.total_power()) for light in self.lights)
        CONSOLE.log(
            f"Preprocessed {len(self.lights)} light(s) over {self.primitive_count()} primitive(s), "
            f"world radius {radius:.4g}, total power {total:.4g}"
        )

    def light_selection_pmf(self) -> np.ndarray:
        """Probabilities for picking each light in proportion to its power.

        Falls back to uniform selection when no light reports positive power.
        """
        if not self.lights:
            return np.zeros(0, dtype=np.float64)
        self.ensure_current()
        power = np.array([max(luminance_host(light.total_power()), 0.0) for light in self.lights])
        if power.sum() <= 0.0:
            return np.full(len(self.lights), 1.0 / len(self.lights))
        return power / power.sum()
