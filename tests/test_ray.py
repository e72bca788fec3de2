"""Unit tests for rays, interactions and ray spawning.

Tests cover:
- Ray evaluation and vector helpers
- Orthonormal basis construction
- Error-bound offsetting of ray origins
- Spawning rays toward a direction or another interaction
"""

import pytest
import taichi as ti


class TestRayBasics:
    """Tests for the Ray dataclass and vector helpers."""

    def test_ray_at(self):
        """ray_at evaluates origin + t * direction."""
        from src.lumen.core.ray import make_ray, ray_at, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())
        t_max = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 2.0, 3.0), vec3(0.0, 0.0, -1.0), 0.0)
            result[None] = ray_at(ray, 2.5)
            t_max[None] = ray.t_max

        test_kernel()
        p = result[None]
        assert p[0] == pytest.approx(1.0)
        assert p[1] == pytest.approx(2.0)
        assert p[2] == pytest.approx(0.5)
        assert t_max[None] > 1e9

    def test_safe_normalize_zero_vector(self):
        """A zero vector normalizes to zero instead of NaN."""
        from src.lumen.core.ray import safe_normalize, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            result[0] = safe_normalize(vec3(0.0, 0.0, 0.0))
            result[1] = safe_normalize(vec3(0.0, 3.0, 4.0))

        test_kernel()
        assert list(result[0]) == [0.0, 0.0, 0.0]
        assert result[1][1] == pytest.approx(0.6)
        assert result[1][2] == pytest.approx(0.8)

    @pytest.mark.parametrize("normal", [(0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0)])
    def test_build_onb_is_orthonormal(self, normal):
        """The basis is orthonormal and keeps the given normal as z."""
        from src.lumen.core.ray import build_onb_from_normal, vec3

        dots = ti.field(dtype=ti.f32, shape=6)

        @ti.kernel
        def test_kernel(nx: ti.f32, ny: ti.f32, nz: ti.f32):
            t, b, n = build_onb_from_normal(vec3(nx, ny, nz))
            dots[0] = ti.math.dot(t, t)
            dots[1] = ti.math.dot(b, b)
            dots[2] = ti.math.dot(n, n)
            dots[3] = ti.math.dot(t, b)
            dots[4] = ti.math.dot(t, n)
            dots[5] = ti.math.dot(b, n)

        test_kernel(*normal)
        for i in range(3):
            assert dots[i] == pytest.approx(1.0, abs=1e-5)
        for i in range(3, 6):
            assert abs(dots[i]) < 1e-5

    def test_is_finite(self):
        """inf and nan produced at run time are both rejected."""
        from src.lumen.core.ray import is_finite

        flags = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel(big: ti.f32, num: ti.f32, den: ti.f32):
            flags[0] = is_finite(big)
            flags[1] = is_finite(big * big)
            flags[2] = is_finite(-big * big)
            flags[3] = is_finite(num / den)

        test_kernel(1e30, 0.0, 0.0)
        assert flags[0] != 0
        assert flags[1] == 0
        assert flags[2] == 0
        assert flags[3] == 0


class TestRayOffsetting:
    """Tests for offset_ray_origin and spawn_ray/spawn_ray_to."""

    def test_offset_follows_direction_side(self):
        """The origin moves to the side of the surface the ray leaves on."""
        from src.lumen.core.interaction import offset_ray_origin
        from src.lumen.core.ray import vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            p = vec3(0.0, 0.0, 0.0)
            err = vec3(0.01, 0.01, 0.01)
            n = vec3(0.0, 1.0, 0.0)
            result[0] = offset_ray_origin(p, err, n, vec3(0.0, 1.0, 0.0))
            result[1] = offset_ray_origin(p, err, n, vec3(0.0, -1.0, 0.0))

        test_kernel()
        assert result[0][1] == pytest.approx(0.01)
        assert result[1][1] == pytest.approx(-0.01)

    def test_point_interaction_is_not_offset(self):
        """A point without normal or error bound stays where it is."""
        from src.lumen.core.interaction import make_point_interaction, spawn_ray
        from src.lumen.core.ray import vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            it = make_point_interaction(vec3(1.0, 2.0, 3.0), 0.0)
            result[None] = spawn_ray(it, vec3(0.0, 0.0, 1.0)).origin

        test_kernel()
        assert list(result[None]) == [1.0, 2.0, 3.0]

    def test_spawn_ray_to_stops_short_of_target(self):
        """Shadow rays span the segment and end just before the target."""
        from src.lumen.core.interaction import make_point_interaction, spawn_ray_to
        from src.lumen.core.ray import SHADOW_EPSILON, ray_at, vec3

        t_max = ti.field(dtype=ti.f32, shape=())
        end = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            a = make_point_interaction(vec3(0.0, 0.0, 0.0), 0.0)
            b = make_point_interaction(vec3(0.0, 4.0, 0.0), 0.0)
            ray = spawn_ray_to(a, b)
            t_max[None] = ray.t_max
            end[None] = ray_at(ray, 1.0)

        test_kernel()
        assert t_max[None] == pytest.approx(1.0 - SHADOW_EPSILON)
        assert end[None][1] == pytest.approx(4.0)

    def test_error_bound_grows_with_magnitude(self):
        """Points far from the origin get a larger error bound."""
        from src.lumen.core.interaction import point_error_bound
        from src.lumen.core.ray import vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            result[0] = point_error_bound(vec3(0.0, 0.0, 0.0))
            result[1] = point_error_bound(vec3(100.0, 0.0, 0.0))

        test_kernel()
        assert result[0][0] > 0.0
        assert result[1][0] > result[0][0]


class TestHostInteraction:
    """Tests for the host-side InteractionPoint mirror."""

    def test_write_then_read(self):
        from src.lumen.core.interaction import (
            Interaction,
            InteractionPoint,
            read_interaction,
            write_interaction,
        )

        field = Interaction.field(shape=())
        point = InteractionPoint(p=(1.0, 2.0, 3.0), n=(0.0, 1.0, 0.0), time=0.5)
        write_interaction(field, point)
        back = read_interaction(field)
        assert back.p == pytest.approx((1.0, 2.0, 3.0))
        assert back.n == pytest.approx((0.0, 1.0, 0.0))
        assert back.time == pytest.approx(0.5)
