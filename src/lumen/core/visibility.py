"""Deferred occlusion and transmittance queries between two points.

A light's sampling routine cannot know whether the point it sampled is
visible from the shading point; it returns a ``VisibilityTester`` holding the
two interaction records instead, and the integrator resolves it later
against the scene.

Two resolutions are provided:

- ``unoccluded``: the standard shadow-ray test. Any geometry strictly
  between the two (offset) endpoints blocks the path.
- ``transmittance``: partial occlusion. Geometry with a material blocks the
  path; geometry without a material is passed through and the ray restarts
  from the far side of it. No attenuation is applied per passed surface yet,
  so the result is either the unit value or zero. The loop is capped at
  ``transmittance_step_limit()`` casts; exceeding the cap counts as fully
  blocked.

Both only read scene storage and are safe to call from many threads at once.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import (
    Interaction,
    InteractionPoint,
    spawn_ray_to,
    write_interaction,
)
from src.lumen.scene.intersection import (
    NO_MATERIAL,
    get_material,
    intersect_scene,
    intersect_scene_any,
    num_quads,
    num_spheres,
)

if TYPE_CHECKING:
    from src.lumen.sampler.sampler import Sampler
    from src.lumen.scene.scene import Scene

vec3 = tm.vec3


@ti.dataclass
class VisibilityTester:
    """Two interaction records whose mutual visibility is yet to be resolved.

    Attributes:
        p0: The shading point.
        p1: The point on (or toward) the light.
    """

    p0: Interaction
    p1: Interaction


@ti.func
def unoccluded(vis: VisibilityTester) -> ti.i32:
    """Return 1 if no geometry lies strictly between p0 and p1."""
    ray = spawn_ray_to(vis.p0, vis.p1)
    return 1 - intersect_scene_any(ray)


@ti.func
def transmittance_step_limit() -> ti.i32:
    """Maximum number of rays cast by one transmittance query.

    A sphere can be crossed twice and a quad once; anything beyond that
    bound means the walk is stuck on degenerate geometry.
    """
    return 2 * num_spheres[None] + num_quads[None] + 2


@ti.func
def transmittance_capped(vis: VisibilityTester, sampler: ti.template(), max_steps: ti.i32) -> vec3:
    """Transmittance from p0 to p1 with an explicit cap on ray casts.

    Args:
        vis: The pair of points.
        sampler: Sample stream of the calling thread, reserved for sampling
            participating media along each segment.
        max_steps: Maximum number of rays to cast.

    Returns:
        vec3(1) if p1 is reached through pass-through surfaces only, zero if
        a surface with a material is hit or the cap is exceeded.
    """
    tr = vec3(1.0, 1.0, 1.0)
    ray = spawn_ray_to(vis.p0, vis.p1)
    active = 1
    steps = 0
    while active == 1:
        if steps >= max_steps:
            tr = vec3(0.0, 0.0, 0.0)
            active = 0
        else:
            steps += 1
            hit = intersect_scene(ray)
            if hit.hit == 0:
                active = 0
            elif get_material(hit.primitive) != NO_MATERIAL:
                tr = vec3(0.0, 0.0, 0.0)
                active = 0
            else:
                # TODO: multiply tr by the medium transmittance of this segment once media exist
                ray = spawn_ray_to(hit.interaction, vis.p1)
    return tr


@ti.func
def transmittance(vis: VisibilityTester, sampler: ti.template()) -> vec3:
    """Transmittance from p0 to p1, capped by transmittance_step_limit()."""
    return transmittance_capped(vis, sampler, transmittance_step_limit())


# =============================================================================
# Host-side Queries
# =============================================================================

_query_p0 = Interaction.field(shape=())
_query_p1 = Interaction.field(shape=())


@ti.kernel
def _unoccluded_kernel() -> ti.i32:
    return unoccluded(VisibilityTester(p0=_query_p0[None], p1=_query_p1[None]))


@ti.kernel
def _transmittance_kernel(state: ti.template(), max_steps: ti.i32) -> vec3:
    s = state[None]
    vis = VisibilityTester(p0=_query_p0[None], p1=_query_p1[None])
    steps = max_steps
    if steps < 0:
        steps = transmittance_step_limit()
    return transmittance_capped(vis, s, steps)


@dataclass
class VisibilityQuery:
    """Host-side VisibilityTester.

    Attributes:
        p0: The shading point.
        p1: The point on (or toward) the light.
    """

    p0: InteractionPoint
    p1: InteractionPoint

    def _upload(self) -> None:
        write_interaction(_query_p0, self.p0)
        write_interaction(_query_p1, self.p1)

    def is_unoccluded(self, scene: "Scene") -> bool:
        """Shadow-ray test against the scene.

        Args:
            scene: The scene whose geometry is currently loaded.

        Returns:
            True iff no geometry lies strictly between p0 and p1.
        """
        scene.ensure_current()
        self._upload()
        return bool(_unoccluded_kernel())

    def transmittance(
        self, scene: "Scene", sampler: "Sampler", max_steps: int | None = None
    ) -> tuple[float, float, float]:
        """Fraction of radiance surviving from p1 to p0.

        Args:
            scene: The scene whose geometry is currently loaded.
            sampler: The calling worker's sampler.
            max_steps: Override for the ray-cast cap; defaults to the
                scene-derived limit.

        Returns:
            (1, 1, 1) through pass-through surfaces only, (0, 0, 0) if blocked.
        """
        scene.ensure_current()
        self._upload()
        tr = _transmittance_kernel(sampler.state, -1 if max_steps is None else max_steps)
        return float(tr[0]), float(tr[1]), float(tr[2])
