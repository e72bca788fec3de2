"""Python-callable wrappers around the device light routines.

Each wrapper uploads its inputs into 0-d scratch fields, runs a one-off
kernel against the light stored in the given slot, and reads the results
back as plain host values. They serve setup code, diagnostics and tests; a
renderer calls ``lights.dispatch`` directly from its own kernels.
"""

from dataclasses import dataclass

import taichi as ti

from src.lumen.core.interaction import (
    Interaction,
    InteractionPoint,
    _to_tuple,
    read_interaction,
    write_interaction,
)
from src.lumen.core.ray import T_MAX, Ray, vec2, vec3
from src.lumen.core.visibility import VisibilityQuery
from src.lumen.lights import dispatch
from src.lumen.lights.light import fetch_light, get_light_count

# Inputs
_ref = Interaction.field(shape=())
_in_vec = ti.Vector.field(3, dtype=ti.f32, shape=3)
_in_uv = ti.Vector.field(2, dtype=ti.f32, shape=2)

# Outputs
_out_p1 = Interaction.field(shape=())
_out_vec = ti.Vector.field(3, dtype=ti.f32, shape=4)
_out_scalar = ti.field(dtype=ti.f32, shape=2)


@dataclass
class IncidentSample:
    """Host-side LightLiSample.

    Attributes:
        radiance: Incident radiance ignoring occlusion.
        wi: Unit direction toward the light.
        pdf: Solid-angle density; 0 marks an unusable sample.
        visibility: Deferred shadow test between the two endpoints.
    """

    radiance: tuple[float, float, float]
    wi: tuple[float, float, float]
    pdf: float
    visibility: VisibilityQuery


@dataclass
class EmissionSample:
    """Host-side LightLeSample."""

    radiance: tuple[float, float, float]
    origin: tuple[float, float, float]
    direction: tuple[float, float, float]
    n_light: tuple[float, float, float]
    pdf_pos: float
    pdf_dir: float
    time: float = 0.0


def _check_slot(index: int) -> None:
    if not 0 <= index < get_light_count():
        raise IndexError(f"Light index {index} out of range")


@ti.kernel
def _sample_li_kernel(index: ti.i32):
    ls = dispatch.sample_li(fetch_light(index), _ref[None], _in_uv[0])
    _out_vec[0] = ls.radiance
    _out_vec[1] = ls.wi
    _out_scalar[0] = ls.pdf
    _out_p1[None] = ls.vis.p1


@ti.kernel
def _pdf_li_kernel(index: ti.i32) -> ti.f32:
    return dispatch.pdf_li(fetch_light(index), _ref[None], _in_vec[0])


@ti.kernel
def _le_kernel(index: ti.i32):
    ray = Ray(origin=_in_vec[0], direction=_in_vec[1], t_max=T_MAX, time=0.0)
    _out_vec[0] = dispatch.le(fetch_light(index), ray)


@ti.kernel
def _area_l_kernel(index: ti.i32):
    _out_vec[0] = dispatch.area_l(fetch_light(index), _ref[None], _in_vec[0])


@ti.kernel
def _sample_le_kernel(index: ti.i32, time: ti.f32):
    es = dispatch.sample_le(fetch_light(index), _in_uv[0], _in_uv[1], time)
    _out_vec[0] = es.radiance
    _out_vec[1] = es.ray.origin
    _out_vec[2] = es.ray.direction
    _out_vec[3] = es.n_light
    _out_scalar[0] = es.pdf_pos
    _out_scalar[1] = es.pdf_dir


@ti.kernel
def _pdf_le_kernel(index: ti.i32):
    ray = Ray(origin=_in_vec[0], direction=_in_vec[1], t_max=T_MAX, time=0.0)
    pdfs = dispatch.pdf_le(fetch_light(index), ray, _in_vec[2])
    _out_scalar[0] = pdfs[0]
    _out_scalar[1] = pdfs[1]


def _vec_out(i: int) -> tuple[float, float, float]:
    return _to_tuple(_out_vec[i])


def sample_incident_radiance(index: int, ref: InteractionPoint, u: tuple[float, float]) -> IncidentSample:
    """Sample incident radiance at ref from the light in slot index."""
    _check_slot(index)
    write_interaction(_ref, ref)
    _in_uv[0] = list(u)
    _sample_li_kernel(index)
    return IncidentSample(
        radiance=_vec_out(0),
        wi=_vec_out(1),
        pdf=float(_out_scalar[0]),
        visibility=VisibilityQuery(p0=ref, p1=read_interaction(_out_p1)),
    )


def incident_direction_pdf(index: int, ref: InteractionPoint, wi) -> float:
    _check_slot(index)
    write_interaction(_ref, ref)
    _in_vec[0] = list(wi)
    return float(_pdf_li_kernel(index))


def emitted_radiance_along_ray(index: int, origin, direction) -> tuple[float, float, float]:
    _check_slot(index)
    _in_vec[0] = list(origin)
    _in_vec[1] = list(direction)
    _le_kernel(index)
    return _vec_out(0)


def emitted_radiance_at_point(index: int, point: InteractionPoint, w) -> tuple[float, float, float]:
    _check_slot(index)
    write_interaction(_ref, point)
    _in_vec[0] = list(w)
    _area_l_kernel(index)
    return _vec_out(0)


def sample_emission(index: int, u_pos, u_dir, time: float = 0.0) -> EmissionSample:
    """Sample a ray leaving the light in slot index."""
    _check_slot(index)
    _in_uv[0] = list(u_pos)
    _in_uv[1] = list(u_dir)
    _sample_le_kernel(index, time)
    return EmissionSample(
        radiance=_vec_out(0),
        origin=_vec_out(1),
        direction=_vec_out(2),
        n_light=_vec_out(3),
        pdf_pos=float(_out_scalar[0]),
        pdf_dir=float(_out_scalar[1]),
        time=time,
    )


def emission_pdf(index: int, origin, direction, n_light) -> tuple[float, float]:
    _check_slot(index)
    _in_vec[0] = list(origin)
    _in_vec[1] = list(direction)
    _in_vec[2] = list(n_light)
    _pdf_le_kernel(index)
    return float(_out_scalar[0]), float(_out_scalar[1])
