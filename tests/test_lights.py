"""Unit tests for light sources.

Tests cover:
- Flags and the delta-light predicate for every variant
- Incident radiance sampling and its density
- Consistency of incident_direction_pdf with sampled densities
- Degenerate configurations (zero distance, zero direction)
- Total power and emission sampling densities
"""

import math

import pytest


@pytest.fixture
def scene():
    from src.lumen.scene.scene import Scene

    return Scene()


def _ref(p=(0.0, 0.0, 0.0), n=(0.0, 0.0, 0.0)):
    from src.lumen.core.interaction import InteractionPoint

    return InteractionPoint(p=p, n=n)


class TestFlags:
    """Tests for LightFlags and is_delta."""

    def test_flag_values(self):
        from src.lumen.lights import LightFlags

        assert LightFlags.DELTA_POSITION == 1
        assert LightFlags.DELTA_DIRECTION == 2
        assert LightFlags.AREA == 4
        assert LightFlags.INFINITE == 8

    def test_is_delta_light(self):
        from src.lumen.lights import LightFlags, is_delta_light

        assert is_delta_light(LightFlags.DELTA_POSITION)
        assert is_delta_light(LightFlags.DELTA_DIRECTION)
        assert not is_delta_light(LightFlags.AREA)
        assert not is_delta_light(LightFlags.INFINITE)

    def test_variant_flags(self):
        from src.lumen.lights import (
            DiffuseAreaLight,
            DistantLight,
            LightFlags,
            PointLight,
            SpotLight,
            UniformInfiniteLight,
        )

        assert PointLight((0, 0, 0), (1, 1, 1)).flags == LightFlags.DELTA_POSITION
        assert SpotLight((0, 0, 0), (0, -1, 0), (1, 1, 1)).flags == LightFlags.DELTA_POSITION
        assert DistantLight((0, -1, 0), (1, 1, 1)).flags == LightFlags.DELTA_DIRECTION
        assert DiffuseAreaLight((1, 1, 1)).flags == LightFlags.AREA
        assert UniformInfiniteLight((1, 1, 1)).flags == LightFlags.INFINITE
        assert PointLight((0, 0, 0), (1, 1, 1)).is_delta
        assert not UniformInfiniteLight((1, 1, 1)).is_delta

    def test_device_is_delta(self, scene):
        import taichi as ti

        from src.lumen.lights import DistantLight, PointLight, UniformInfiniteLight, fetch_light, is_delta

        scene.add_light(PointLight((0, 1, 0), (1, 1, 1)))
        scene.add_light(DistantLight((0, -1, 0), (1, 1, 1)))
        scene.add_light(UniformInfiniteLight((1, 1, 1)))
        result = ti.field(dtype=ti.i32, shape=3)

        @ti.kernel
        def test_kernel():
            for i in range(3):
                result[i] = is_delta(fetch_light(i))

        test_kernel()
        assert list(result.to_numpy()) == [1, 1, 0]

    def test_sample_count_hint(self):
        from src.lumen.lights import PointLight

        assert PointLight((0, 0, 0), (1, 1, 1)).sample_count_hint() == 1
        assert PointLight((0, 0, 0), (1, 1, 1), n_samples=4).sample_count_hint() == 4
        with pytest.raises(ValueError):
            PointLight((0, 0, 0), (1, 1, 1), n_samples=0)


class TestPointLight:
    """Tests for the point light."""

    def test_inverse_square(self, scene):
        from src.lumen.lights import PointLight

        light = scene.add_light(PointLight((0.0, 2.0, 0.0), (8.0, 8.0, 8.0)))
        ls = light.sample_incident_radiance(_ref(), (0.3, 0.7))
        assert ls.pdf == pytest.approx(1.0)
        assert ls.wi == pytest.approx((0.0, 1.0, 0.0))
        assert ls.radiance == pytest.approx((2.0, 2.0, 2.0))
        assert ls.visibility.p1.p == pytest.approx((0.0, 2.0, 0.0))

    def test_reference_at_light_position(self, scene):
        from src.lumen.lights import PointLight

        light = scene.add_light(PointLight((1.0, 1.0, 1.0), (1.0, 1.0, 1.0)))
        ls = light.sample_incident_radiance(_ref(p=(1.0, 1.0, 1.0)), (0.5, 0.5))
        assert ls.pdf == 0.0
        assert ls.radiance == (0.0, 0.0, 0.0)

    def test_incident_pdf_is_zero(self, scene):
        from src.lumen.lights import PointLight

        light = scene.add_light(PointLight((0.0, 2.0, 0.0), (1.0, 1.0, 1.0)))
        assert light.incident_direction_pdf(_ref(), (0.0, 1.0, 0.0)) == 0.0

    def test_power(self):
        from src.lumen.lights import PointLight

        power = PointLight((0, 0, 0), (1.0, 2.0, 3.0)).total_power()
        assert power == pytest.approx((4 * math.pi, 8 * math.pi, 12 * math.pi))

    def test_emission(self, scene):
        from src.lumen.lights import PointLight

        light = scene.add_light(PointLight((0.0, 2.0, 0.0), (1.0, 1.0, 1.0)))
        es = light.sample_emission((0.25, 0.5), (0.5, 0.5))
        assert es.origin == pytest.approx((0.0, 2.0, 0.0))
        assert sum(c * c for c in es.direction) == pytest.approx(1.0, abs=1e-5)
        assert es.pdf_pos == pytest.approx(1.0)
        assert es.pdf_dir == pytest.approx(1.0 / (4 * math.pi))
        pdf_pos, pdf_dir = light.emission_pdf(es.origin, es.direction, es.n_light)
        assert pdf_pos == 0.0
        assert pdf_dir == pytest.approx(es.pdf_dir)


class TestSpotLight:
    """Tests for the spotlight."""

    def test_falloff(self, scene):
        from src.lumen.lights import SpotLight

        light = scene.add_light(
            SpotLight((0.0, 1.0, 0.0), (0.0, -1.0, 0.0), (1.0, 1.0, 1.0), total_width=45.0, falloff_start=10.0)
        )
        inside = light.sample_incident_radiance(_ref(), (0.5, 0.5))
        assert inside.radiance == pytest.approx((1.0, 1.0, 1.0))
        # 60 degrees off axis: outside the cone
        outside = light.sample_incident_radiance(_ref(p=(math.tan(math.radians(60.0)), 0.0, 0.0)), (0.5, 0.5))
        assert outside.pdf == pytest.approx(1.0)
        assert outside.radiance == (0.0, 0.0, 0.0)
        # 30 degrees off axis: inside the falloff band
        band = light.sample_incident_radiance(_ref(p=(math.tan(math.radians(30.0)), 0.0, 0.0)), (0.5, 0.5))
        assert 0.0 < band.radiance[0] < 1.0 / (1.0 / math.cos(math.radians(30.0))) ** 2

    def test_invalid_parameters(self):
        from src.lumen.lights import SpotLight

        with pytest.raises(ValueError):
            SpotLight((0, 0, 0), (0, 0, 0), (1, 1, 1))
        with pytest.raises(ValueError):
            SpotLight((0, 0, 0), (0, -1, 0), (1, 1, 1), total_width=20.0, falloff_start=30.0)

    def test_power(self):
        from src.lumen.lights import SpotLight

        light = SpotLight((0, 0, 0), (0, -1, 0), (1.0, 1.0, 1.0), total_width=90.0, falloff_start=90.0)
        assert light.total_power()[0] == pytest.approx(2 * math.pi)

    def test_emission_inside_cone(self, scene):
        from src.lumen.lights import SpotLight

        light = scene.add_light(
            SpotLight((0.0, 1.0, 0.0), (0.0, -1.0, 0.0), (1.0, 1.0, 1.0), total_width=30.0, falloff_start=20.0)
        )
        es = light.sample_emission((0.9, 0.3), (0.5, 0.5))
        assert -es.direction[1] >= math.cos(math.radians(30.0)) - 1e-5
        assert es.pdf_dir == pytest.approx(1.0 / (2 * math.pi * (1 - math.cos(math.radians(30.0)))), rel=1e-4)
        _, pdf_dir = light.emission_pdf(es.origin, (0.0, 1.0, 0.0), es.n_light)
        assert pdf_dir == 0.0


class TestDistantLight:
    """Tests for the distant light."""

    def test_sample_points_outside_scene(self, scene):
        from src.lumen.lights import DistantLight

        scene.add_sphere((0.0, 0.0, 0.0), 1.0)
        light = scene.add_light(DistantLight((0.0, -1.0, 0.0), (2.0, 2.0, 2.0)))
        scene.preprocess()
        assert light.world_radius == pytest.approx(math.sqrt(3.0))
        ls = light.sample_incident_radiance(_ref(p=(0.0, 1.0, 0.0)), (0.1, 0.9))
        assert ls.wi == pytest.approx((0.0, 1.0, 0.0))
        assert ls.pdf == pytest.approx(1.0)
        assert ls.radiance == pytest.approx((2.0, 2.0, 2.0))
        assert ls.visibility.p1.p[1] > light.world_radius

    def test_power_uses_world_radius(self, scene):
        from src.lumen.lights import DistantLight

        scene.add_sphere((0.0, 0.0, 0.0), 1.0)
        light = scene.add_light(DistantLight((1.0, 0.0, 0.0), (1.0, 1.0, 1.0)))
        scene.preprocess()
        assert light.total_power()[0] == pytest.approx(math.pi * 3.0, rel=1e-5)

    def test_emission(self, scene):
        from src.lumen.lights import DistantLight

        scene.add_sphere((0.0, 0.0, 0.0), 1.0)
        light = scene.add_light(DistantLight((0.0, -1.0, 0.0), (1.0, 1.0, 1.0)))
        scene.preprocess()
        es = light.sample_emission((0.5, 0.5), (0.5, 0.5))
        assert es.direction == pytest.approx((0.0, -1.0, 0.0))
        assert es.pdf_pos == pytest.approx(1.0 / (math.pi * 3.0), rel=1e-5)
        assert es.pdf_dir == pytest.approx(1.0)
        pdf_pos, pdf_dir = light.emission_pdf(es.origin, es.direction, es.n_light)
        assert pdf_pos == pytest.approx(es.pdf_pos)
        assert pdf_dir == 0.0

    def test_zero_direction_rejected(self):
        from src.lumen.lights import DistantLight

        with pytest.raises(ValueError):
            DistantLight((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))


class TestDiffuseAreaLight:
    """Tests for the diffuse area light."""

    def test_quad_light_sample_and_pdf_agree(self, scene):
        """Sampled densities match incident_direction_pdf for the same direction."""
        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (4.0, 4.0, 4.0))
        # u x v = (1,0,0) x (0,0,1) = (0,-1,0): facing down toward the origin
        ref = _ref(n=(0.0, 1.0, 0.0))
        for u in [(0.5, 0.5), (0.1, 0.8), (0.9, 0.2)]:
            ls = light.sample_incident_radiance(ref, u)
            assert ls.pdf > 0.0
            assert ls.radiance == pytest.approx((4.0, 4.0, 4.0))
            assert light.incident_direction_pdf(ref, ls.wi) == pytest.approx(ls.pdf, rel=1e-3)

    def test_center_sample_density(self, scene):
        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        ls = light.sample_incident_radiance(_ref(), (0.5, 0.5))
        # pdf = (1/area) * d^2 / cos = 1 * 4 / 1
        assert ls.pdf == pytest.approx(4.0, rel=1e-4)
        assert ls.wi == pytest.approx((0.0, 1.0, 0.0), abs=1e-5)

    def test_one_sided_back_is_dark(self, scene):
        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        # Normal (0,0,1) x (1,0,0) = (0,1,0): faces away from the origin
        ls = light.sample_incident_radiance(_ref(), (0.5, 0.5))
        assert ls.pdf > 0.0
        assert ls.radiance == (0.0, 0.0, 0.0)

    def test_two_sided_back_is_lit(self, scene):
        light = scene.add_emissive_quad(
            (-0.5, 2.0, -0.5), (0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (1.0, 1.0, 1.0), two_sided=True
        )
        ls = light.sample_incident_radiance(_ref(), (0.5, 0.5))
        assert ls.radiance == pytest.approx((1.0, 1.0, 1.0))

    def test_pdf_zero_when_missing_shape(self, scene):
        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        assert light.incident_direction_pdf(_ref(), (0.0, -1.0, 0.0)) == 0.0
        assert light.incident_direction_pdf(_ref(), (0.0, 0.0, 0.0)) == 0.0

    def test_sphere_light_pdf_consistency(self, scene):
        light = scene.add_emissive_sphere((0.0, 4.0, 0.0), 1.0, (1.0, 1.0, 1.0))
        ref = _ref()
        # Both samples land on the side of the sphere facing the reference point
        for u in [(0.5, 0.75), (0.6, 0.7)]:
            ls = light.sample_incident_radiance(ref, u)
            assert ls.pdf > 0.0
            assert light.incident_direction_pdf(ref, ls.wi) == pytest.approx(ls.pdf, rel=1e-3)
        ls = light.sample_incident_radiance(ref, (0.5, 0.75))
        assert ls.pdf == pytest.approx(9.0 / (4.0 * math.pi), rel=1e-4)

    def test_emitted_radiance_at_point(self, scene):
        from src.lumen.core.interaction import InteractionPoint

        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (3.0, 3.0, 3.0))
        point = InteractionPoint(p=(0.0, 2.0, 0.0), n=(0.0, -1.0, 0.0))
        assert light.emitted_radiance_at_point(point, (0.0, -1.0, 0.0)) == pytest.approx((3.0, 3.0, 3.0))
        assert light.emitted_radiance_at_point(point, (0.0, 1.0, 0.0)) == (0.0, 0.0, 0.0)

    def test_power(self, scene):
        one = scene.add_emissive_quad((0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        two = scene.add_emissive_quad(
            (0.0, 1.0, 0.0), (2.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0), two_sided=True
        )
        assert one.total_power()[0] == pytest.approx(2.0 * math.pi)
        assert two.total_power()[0] == pytest.approx(4.0 * math.pi)

    def test_emission(self, scene):
        light = scene.add_emissive_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        es = light.sample_emission((0.5, 0.5), (0.3, 0.6))
        assert es.origin[1] == pytest.approx(2.0, abs=1e-3)
        assert es.direction[1] < 0.0
        assert es.pdf_pos == pytest.approx(1.0)
        assert es.radiance == pytest.approx((1.0, 1.0, 1.0))
        pdf_pos, pdf_dir = light.emission_pdf(es.origin, es.direction, es.n_light)
        assert pdf_pos == pytest.approx(1.0)
        assert pdf_dir == pytest.approx(es.pdf_dir, rel=1e-4)

    def test_unbound_light_cannot_be_added(self, scene):
        from src.lumen.lights import DiffuseAreaLight

        with pytest.raises(ValueError):
            scene.add_light(DiffuseAreaLight((1.0, 1.0, 1.0)))


class TestUniformInfiniteLight:
    """Tests for the uniform environment light."""

    def test_sample_and_pdf(self, scene):
        from src.lumen.lights import UniformInfiniteLight

        scene.add_sphere((0.0, 0.0, 0.0), 1.0)
        light = scene.add_light(UniformInfiniteLight((0.5, 0.5, 0.5)))
        ls = light.sample_incident_radiance(_ref(p=(0.0, 3.0, 0.0)), (0.2, 0.4))
        assert ls.pdf == pytest.approx(1.0 / (4 * math.pi))
        assert ls.radiance == pytest.approx((0.5, 0.5, 0.5))
        assert light.incident_direction_pdf(_ref(), ls.wi) == pytest.approx(ls.pdf)
        assert light.incident_direction_pdf(_ref(), (0.0, 0.0, 0.0)) == 0.0

    def test_escaping_ray_radiance(self, scene):
        from src.lumen.lights import PointLight, UniformInfiniteLight

        env = scene.add_light(UniformInfiniteLight((0.5, 0.25, 0.125)))
        point = scene.add_light(PointLight((0.0, 1.0, 0.0), (1.0, 1.0, 1.0)))
        assert env.emitted_radiance_along_ray((0, 0, 0), (0, 0, 1)) == pytest.approx((0.5, 0.25, 0.125))
        assert point.emitted_radiance_along_ray((0, 0, 0), (0, 0, 1)) == (0.0, 0.0, 0.0)

    def test_emission_pdf(self, scene):
        from src.lumen.lights import UniformInfiniteLight

        scene.add_sphere((0.0, 0.0, 0.0), 1.0)
        light = scene.add_light(UniformInfiniteLight((1.0, 1.0, 1.0)))
        es = light.sample_emission((0.3, 0.3), (0.6, 0.2))
        assert es.pdf_dir == pytest.approx(1.0 / (4 * math.pi))
        assert es.pdf_pos == pytest.approx(1.0 / (math.pi * 3.0), rel=1e-5)

    def test_empty_scene_power_is_zero(self, scene):
        from src.lumen.lights import UniformInfiniteLight

        light = scene.add_light(UniformInfiniteLight((1.0, 1.0, 1.0)))
        scene.preprocess()
        assert light.total_power() == (0.0, 0.0, 0.0)
        es = light.sample_emission((0.3, 0.3), (0.6, 0.2))
        assert es.pdf_pos == 0.0


class TestUnattachedLight:
    """Tests for lights used before they are attached."""

    def test_query_requires_scene(self):
        from src.lumen.lights import PointLight

        with pytest.raises(RuntimeError):
            PointLight((0, 0, 0), (1, 1, 1)).sample_incident_radiance(_ref(), (0.5, 0.5))
