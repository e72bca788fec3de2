"""Light abstraction: flags, the tagged device record and the host base class.

All light variants share one device-side record, ``LightRecord``, tagged by
``light_type``. Variant-specific members are simply unused by the other
variants. Dispatch over the tag happens in ``lights.dispatch``; this keeps the
innermost sampling loop free of indirect calls.

Records live in Structure-of-Arrays Taichi fields indexed by light id. The
host-side ``Light`` classes hold parameters, report flags and power, and write
their record when attached to a scene or preprocessed.

Flags are fixed per light:

    DELTA_POSITION: emits from a single point (point, spot).
    DELTA_DIRECTION: emits along a single direction (distant).
    AREA: emits from the surface of a primitive.
    INFINITE: surrounds the scene (environment).

A delta light occupies zero measure: no randomly sampled ray can hit it, so
it must always be sampled explicitly and its incident_direction_pdf is 0.
"""

from enum import IntEnum, IntFlag
from typing import TYPE_CHECKING, Any

import taichi as ti
import taichi.math as tm

from src.lumen.core.interaction import Interaction
from src.lumen.core.ray import Ray
from src.lumen.core.visibility import VisibilityTester

if TYPE_CHECKING:
    from src.lumen.core.interaction import InteractionPoint
    from src.lumen.lights.queries import EmissionSample, IncidentSample
    from src.lumen.scene.scene import Scene

vec3 = tm.vec3

# Maximum number of lights supported in the scene
MAX_LIGHTS = 64


class LightFlags(IntFlag):
    """Bitset describing the measure a light occupies."""

    DELTA_POSITION = 1
    DELTA_DIRECTION = 2
    AREA = 4
    INFINITE = 8


class LightType(IntEnum):
    """Tag selecting the variant of a LightRecord."""

    POINT = 0
    SPOT = 1
    DISTANT = 2
    DIFFUSE_AREA = 3
    INFINITE = 4


def is_delta_light(flags: int) -> bool:
    """True iff the delta-position or delta-direction bit is set."""
    return bool(flags & (LightFlags.DELTA_POSITION | LightFlags.DELTA_DIRECTION))


@ti.dataclass
class LightRecord:
    """Device-side description of one light.

    Attributes:
        light_type: A LightType value.
        flags: LightFlags bitset.
        n_samples: Suggested number of samples per shading point.
        position: Emitter position (point, spot).
        direction: Spot axis, or the unit direction toward a distant light.
        emission: Intensity (point, spot) or radiance (distant, area, infinite).
        cos_total_width: Cosine of the spot cone's outer half-angle.
        cos_falloff_start: Cosine of the angle where spot falloff begins.
        world_center: Center of the scene's bounding sphere (distant, infinite).
        world_radius: Radius of the scene's bounding sphere (distant, infinite).
        shape_kind: PrimitiveKind of the emitting primitive (area).
        shape_index: Index of the emitting primitive (area).
        two_sided: 1 if the area light emits from both faces.
    """

    light_type: ti.i32
    flags: ti.i32
    n_samples: ti.i32
    position: vec3
    direction: vec3
    emission: vec3
    cos_total_width: ti.f32
    cos_falloff_start: ti.f32
    world_center: vec3
    world_radius: ti.f32
    shape_kind: ti.i32
    shape_index: ti.i32
    two_sided: ti.i32


@ti.dataclass
class LightLiSample:
    """Result of sampling incident radiance from a light.

    Attributes:
        radiance: Incident radiance along wi, ignoring occlusion.
        wi: Unit direction from the reference point toward the light.
        pdf: Solid-angle density of wi; 0 marks an unusable sample.
        vis: Visibility tester between the reference point and the sample.
    """

    radiance: vec3
    wi: vec3
    pdf: ti.f32
    vis: VisibilityTester


@ti.dataclass
class LightLeSample:
    """Result of sampling a ray leaving a light.

    Attributes:
        radiance: Emitted radiance along the ray.
        ray: The emitted ray (unit direction).
        n_light: Surface normal at the ray origin (or the ray direction for
            lights without a surface).
        pdf_pos: Area-measure density of the origin.
        pdf_dir: Solid-angle density of the direction.
    """

    radiance: vec3
    ray: Ray
    n_light: vec3
    pdf_pos: ti.f32
    pdf_dir: ti.f32


# Light storage: Structure of Arrays layout
light_types = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_flags = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_n_samples = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_directions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_emission = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_cos_total_width = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
light_cos_falloff_start = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
light_world_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_world_radii = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
light_shape_kinds = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_shape_indices = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_two_sided = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Remove all lights from storage."""
    num_lights[None] = 0


def get_light_count() -> int:
    """Get the number of stored lights."""
    return int(num_lights[None])


def allocate_light() -> int:
    """Reserve the next light slot.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
    """
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    num_lights[None] = idx + 1
    return idx


def write_light_record(index: int, values: dict[str, Any]) -> None:
    """Store a light's record; members not given are zeroed.

    Args:
        index: Light slot.
        values: Mapping from LightRecord member names to values.
    """
    zero = (0.0, 0.0, 0.0)
    light_types[index] = int(values["light_type"])
    light_flags[index] = int(values["flags"])
    light_n_samples[index] = int(values.get("n_samples", 1))
    light_positions[index] = values.get("position", zero)
    light_directions[index] = values.get("direction", zero)
    light_emission[index] = values.get("emission", zero)
    light_cos_total_width[index] = values.get("cos_total_width", 0.0)
    light_cos_falloff_start[index] = values.get("cos_falloff_start", 0.0)
    light_world_centers[index] = values.get("world_center", zero)
    light_world_radii[index] = values.get("world_radius", 0.0)
    light_shape_kinds[index] = int(values.get("shape_kind", -1))
    light_shape_indices[index] = int(values.get("shape_index", -1))
    light_two_sided[index] = int(values.get("two_sided", 0))


@ti.func
def fetch_light(index: ti.i32) -> LightRecord:
    """Load a light's record from storage."""
    return LightRecord(
        light_type=light_types[index],
        flags=light_flags[index],
        n_samples=light_n_samples[index],
        position=light_positions[index],
        direction=light_directions[index],
        emission=light_emission[index],
        cos_total_width=light_cos_total_width[index],
        cos_falloff_start=light_cos_falloff_start[index],
        world_center=light_world_centers[index],
        world_radius=light_world_radii[index],
        shape_kind=light_shape_kinds[index],
        shape_index=light_shape_indices[index],
        two_sided=light_two_sided[index],
    )


@ti.func
def is_delta(light: LightRecord) -> ti.i32:
    """Return 1 for lights with a delta-position or delta-direction flag."""
    return (light.flags & (int(LightFlags.DELTA_POSITION) | int(LightFlags.DELTA_DIRECTION))) != 0


@ti.func
def make_empty_li_sample(ref: Interaction) -> LightLiSample:
    """A zero-radiance, zero-pdf incident sample."""
    zero = vec3(0.0, 0.0, 0.0)
    return LightLiSample(radiance=zero, wi=zero, pdf=0.0, vis=VisibilityTester(p0=ref, p1=ref))


@ti.func
def make_empty_le_sample(time: ti.f32) -> LightLeSample:
    """A zero-radiance, zero-pdf emission sample."""
    zero = vec3(0.0, 0.0, 0.0)
    return LightLeSample(
        radiance=zero,
        ray=Ray(origin=zero, direction=zero, t_max=0.0, time=time),
        n_light=zero,
        pdf_pos=0.0,
        pdf_dir=0.0,
    )


# =============================================================================
# Host-side Light
# =============================================================================


class Light:
    """Base class of host-side light descriptions.

    Subclasses set ``light_type`` and ``flags`` and implement ``record`` and
    ``total_power``. A light gets a slot index when a Scene attaches it; the
    query methods below then evaluate the shared device code for that slot.

    Attributes:
        n_samples: Suggested number of samples per shading point.
        index: Storage slot, or None while not attached to a scene.
        scene: The Scene the light is attached to.
    """

    light_type: LightType
    flags: LightFlags

    def __init__(self, n_samples: int = 1) -> None:
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        self.n_samples = n_samples
        self.index: int | None = None
        self.scene: "Scene | None" = None

    @property
    def is_delta(self) -> bool:
        return is_delta_light(self.flags)

    def sample_count_hint(self) -> int:
        return self.n_samples

    def record(self) -> dict[str, Any]:
        """Values of this light's LightRecord."""
        raise NotImplementedError("Can not call virtual method to be overridden.")

    def total_power(self) -> tuple[float, float, float]:
        """Approximate total emitted power (RGB), for light selection."""
        raise NotImplementedError("Can not call virtual method to be overridden.")

    def preprocess(self, scene: "Scene") -> None:
        """One-time setup against the finished scene; idempotent.

        The default just (re)writes the record. Lights that depend on the
        scene extent override this to capture it first.
        """
        self.commit()

    def commit(self) -> None:
        """Write this light's record into its storage slot."""
        if self.index is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a scene")
        write_light_record(self.index, self.record())

    def _slot(self) -> int:
        if self.index is None or self.scene is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a scene")
        self.scene.ensure_current()
        return self.index

    # -------------------------------------------------------------------------
    # Queries (run the device code for this light's slot)
    # -------------------------------------------------------------------------

    def sample_incident_radiance(
        self, ref: "InteractionPoint", u: tuple[float, float]
    ) -> "IncidentSample":
        """Sample a direction toward the light from a reference point."""
        from src.lumen.lights.queries import sample_incident_radiance

        return sample_incident_radiance(self._slot(), ref, u)

    def incident_direction_pdf(self, ref: "InteractionPoint", wi: tuple[float, float, float]) -> float:
        """Solid-angle density sample_incident_radiance assigns to wi."""
        from src.lumen.lights.queries import incident_direction_pdf

        return incident_direction_pdf(self._slot(), ref, wi)

    def emitted_radiance_along_ray(self, origin, direction) -> tuple[float, float, float]:
        """Radiance carried by a ray that escapes the scene."""
        from src.lumen.lights.queries import emitted_radiance_along_ray

        return emitted_radiance_along_ray(self._slot(), origin, direction)

    def sample_emission(
        self, u_pos: tuple[float, float], u_dir: tuple[float, float], time: float = 0.0
    ) -> "EmissionSample":
        """Sample a ray leaving the light."""
        from src.lumen.lights.queries import sample_emission

        return sample_emission(self._slot(), u_pos, u_dir, time)

    def emission_pdf(self, origin, direction, n_light) -> tuple[float, float]:
        """(pdf_pos, pdf_dir) sample_emission assigns to a ray."""
        from src.lumen.lights.queries import emission_pdf

        return emission_pdf(self._slot(), origin, direction, n_light)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} index={self.index} flags={LightFlags(self.flags)!r}>"
