"""Sampler module: reproducible per-pixel sample streams.

Components:
    hashing: Integer hash that turns sample coordinates into uniform values
    stream: Device-side SamplerState and the @ti.func stream operations
    sampler: Host-side Sampler, SamplerConfig and array registry

Rendering kernels take ``sampler.state`` as a template argument, copy it into
a thread-local variable and call the functions in ``stream``.
"""

from .sampler import (
    MAX_ARRAY_LENGTH,
    CameraSampleValues,
    Sampler,
    SamplerConfig,
    SamplerConfigError,
    SamplerKind,
)
from .stream import MAX_SAMPLER_ARRAYS, CameraSample, SamplerState

__all__ = [
    "Sampler",
    "SamplerConfig",
    "SamplerConfigError",
    "SamplerKind",
    "CameraSample",
    "CameraSampleValues",
    "SamplerState",
    "MAX_ARRAY_LENGTH",
    "MAX_SAMPLER_ARRAYS",
]
