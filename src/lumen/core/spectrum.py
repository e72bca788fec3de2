"""Radiance values.

Radiance is represented as an RGB ``vec3``. The light transport core only
relies on addition, scaling, clamping and an exact-zero test, so nothing here
depends on the color space.
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.func
def black() -> vec3:
    """The zero radiance value."""
    return vec3(0.0, 0.0, 0.0)


@ti.func
def is_black(c: vec3) -> ti.i32:
    """Return 1 if every component is exactly zero."""
    return c.x == 0.0 and c.y == 0.0 and c.z == 0.0


@ti.func
def clamp_radiance(c: vec3, low: ti.f32, high: ti.f32) -> vec3:
    """Clamp every component into [low, high]."""
    return tm.clamp(c, low, high)


@ti.func
def luminance(c: vec3) -> ti.f32:
    """Rec. 709 luminance, used as a scalar brightness."""
    return 0.2126 * c.x + 0.7152 * c.y + 0.0722 * c.z


def luminance_host(c: tuple[float, float, float]) -> float:
    """Host-side luminance of an RGB tuple."""
    return 0.2126 * c[0] + 0.7152 * c[1] + 0.0722 * c[2]
