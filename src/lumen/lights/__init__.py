"""Light sources.

Components:
    light: Flags, the tagged LightRecord, sample records and the Light base class
    point, spot, distant: Delta lights
    diffuse: Diffuse area light bound to a sphere or quad
    infinite: Uniform environment light
    dispatch: Device entry points (sample_li, pdf_li, le, area_l, sample_le, pdf_le)
    queries: Host wrappers running the device entry points
"""

from .diffuse import DiffuseAreaLight
from .distant import DistantLight
from .infinite import UniformInfiniteLight
from .light import (
    MAX_LIGHTS,
    Light,
    LightFlags,
    LightLeSample,
    LightLiSample,
    LightRecord,
    LightType,
    clear_lights,
    fetch_light,
    get_light_count,
    is_delta,
    is_delta_light,
)
from .point import PointLight
from .queries import EmissionSample, IncidentSample
from .spot import SpotLight

__all__ = [
    "MAX_LIGHTS",
    "Light",
    "LightFlags",
    "LightType",
    "LightRecord",
    "LightLiSample",
    "LightLeSample",
    "clear_lights",
    "fetch_light",
    "get_light_count",
    "is_delta",
    "is_delta_light",
    "PointLight",
    "SpotLight",
    "DistantLight",
    "DiffuseAreaLight",
    "UniformInfiniteLight",
    "IncidentSample",
    "EmissionSample",
]
