"""Integer hashing used to derive sample values.

Sample values are a pure function of (seed, stream, pixel, sample index,
dimension, element). Hashing instead of advancing a shared generator makes
every value reproducible no matter how pixels are scheduled across threads.
"""

import taichi as ti

# 2^-24: maps the top 24 bits of a hash into [0, 1)
_INV_2_24 = 1.0 / 16777216.0


@ti.func
def wang_hash(key: ti.u32) -> ti.u32:
    """Thomas Wang's 32-bit integer hash."""
    h = (key ^ ti.u32(61)) ^ (key >> ti.u32(16))
    h = h * ti.u32(9)
    h = h ^ (h >> ti.u32(4))
    h = h * ti.u32(0x27D4EB2D)
    h = h ^ (h >> ti.u32(15))
    return h


@ti.func
def hash_sample(
    seed: ti.u32,
    stream: ti.i32,
    px: ti.i32,
    py: ti.i32,
    sample_index: ti.i32,
    dimension: ti.i32,
    element: ti.i32,
) -> ti.u32:
    """Hash the full coordinate of one sample value."""
    h = wang_hash(seed ^ ti.cast(stream, ti.u32))
    h = wang_hash(h ^ ti.cast(px, ti.u32))
    h = wang_hash(h ^ ti.cast(py, ti.u32))
    h = wang_hash(h ^ ti.cast(sample_index, ti.u32))
    h = wang_hash(h ^ ti.cast(dimension, ti.u32))
    h = wang_hash(h ^ ti.cast(element, ti.u32))
    return h


@ti.func
def hash_to_unit_float(h: ti.u32) -> ti.f32:
    """Map a hash to a float in [0, 1); 1.0 is never produced."""
    return ti.cast(h >> ti.u32(8), ti.f32) * _INV_2_24
