"""Unit tests for the host-side Scene.

Tests cover:
- Adding primitives and lights
- Bounds and the bounding sphere
- Idempotent preprocessing and dirty tracking
- Reloading storage when switching between scenes
- Power-proportional light selection
"""

import math

import numpy as np
import pytest


@pytest.fixture
def fresh_scene():
    """Create a fresh Scene for each test."""
    from src.lumen.scene.scene import Scene

    scene = Scene()
    yield scene
    scene.clear()


class TestPrimitives:
    """Tests for primitive management."""

    def test_add_primitives(self, fresh_scene):
        from src.lumen.scene.intersection import get_quad_count, get_sphere_count

        assert fresh_scene.add_sphere((0, 0, 0), 1.0) == 0
        assert fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0)) == 0
        assert fresh_scene.primitive_count() == 2
        assert get_sphere_count() == 1
        assert get_quad_count() == 1

    def test_invalid_primitives(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_sphere((0, 0, 0), 0.0)
        with pytest.raises(ValueError):
            fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (2, 0, 0))

    def test_primitive_area(self, fresh_scene):
        from src.lumen.scene.intersection import PrimitiveKind

        fresh_scene.add_sphere((0, 0, 0), 2.0)
        fresh_scene.add_quad((0, 0, 0), (3, 0, 0), (0, 2, 0))
        assert fresh_scene.primitive_area(PrimitiveKind.SPHERE, 0) == pytest.approx(16 * math.pi)
        assert fresh_scene.primitive_area(PrimitiveKind.QUAD, 0) == pytest.approx(6.0)

    def test_clear(self, fresh_scene):
        from src.lumen.lights import PointLight, get_light_count

        fresh_scene.add_sphere((0, 0, 0), 1.0)
        light = fresh_scene.add_light(PointLight((0, 1, 0), (1, 1, 1)))
        fresh_scene.clear()
        assert fresh_scene.primitive_count() == 0
        assert get_light_count() == 0
        assert light.index is None


class TestBounds:
    """Tests for bounds and the bounding sphere."""

    def test_empty_scene(self, fresh_scene):
        assert fresh_scene.bounds() is None
        assert fresh_scene.world_bound() == ((0.0, 0.0, 0.0), 0.0)

    def test_sphere_and_quad(self, fresh_scene):
        fresh_scene.add_sphere((0, 0, 0), 1.0)
        fresh_scene.add_quad((2, 0, 0), (1, 0, 0), (0, 0, 1))
        p_min, p_max = fresh_scene.bounds()
        np.testing.assert_allclose(p_min, [-1, -1, -1])
        np.testing.assert_allclose(p_max, [3, 1, 1])
        center, radius = fresh_scene.world_bound()
        assert center == pytest.approx((1.0, 0.0, 0.0))
        assert radius == pytest.approx(math.sqrt(6.0))


class TestLightsAndPreprocess:
    """Tests for attaching lights and preprocessing."""

    def test_add_light_assigns_slots(self, fresh_scene):
        from src.lumen.lights import PointLight, get_light_count

        a = fresh_scene.add_light(PointLight((0, 1, 0), (1, 1, 1)))
        b = fresh_scene.add_light(PointLight((0, 2, 0), (1, 1, 1)))
        assert (a.index, b.index) == (0, 1)
        assert get_light_count() == 2
        with pytest.raises(ValueError):
            fresh_scene.add_light(a)

    def test_preprocess_tracks_changes(self, fresh_scene):
        from src.lumen.core.interaction import InteractionPoint
        from src.lumen.lights import DistantLight

        fresh_scene.add_sphere((0, 0, 0), 1.0)
        light = fresh_scene.add_light(DistantLight((0, -1, 0), (1, 1, 1)))
        fresh_scene.preprocess()
        first = light.world_radius
        fresh_scene.preprocess()
        assert light.world_radius == first

        # New geometry marks the scene dirty; the next query catches up
        fresh_scene.add_sphere((10, 0, 0), 1.0)
        light.sample_incident_radiance(InteractionPoint(p=(0, 0, 0)), (0.5, 0.5))
        assert light.world_radius > first

    def test_attach_area_light_to_missing_primitive(self, fresh_scene):
        from src.lumen.lights import DiffuseAreaLight
        from src.lumen.scene.intersection import PrimitiveKind

        with pytest.raises(IndexError):
            fresh_scene.attach_area_light(DiffuseAreaLight((1, 1, 1)), PrimitiveKind.SPHERE, 0)

    def test_light_selection_pmf(self, fresh_scene):
        from src.lumen.lights import PointLight

        fresh_scene.add_light(PointLight((0, 1, 0), (1, 1, 1)))
        fresh_scene.add_light(PointLight((0, 2, 0), (3, 3, 3)))
        pmf = fresh_scene.light_selection_pmf()
        np.testing.assert_allclose(pmf, [0.25, 0.75])

    def test_light_selection_pmf_uniform_fallback(self, fresh_scene):
        from src.lumen.lights import PointLight

        fresh_scene.add_light(PointLight((0, 1, 0), (0, 0, 0)))
        fresh_scene.add_light(PointLight((0, 2, 0), (0, 0, 0)))
        np.testing.assert_allclose(fresh_scene.light_selection_pmf(), [0.5, 0.5])


class TestActiveScene:
    """Tests for switching between scenes sharing global storage."""

    def test_queries_reload_their_scene(self):
        from src.lumen.core.interaction import InteractionPoint
        from src.lumen.core.visibility import VisibilityQuery
        from src.lumen.scene.scene import Scene

        blocked = Scene()
        blocked.add_sphere((0, 2, 0), 1.0)
        empty = Scene()
        query = VisibilityQuery(p0=InteractionPoint(p=(0, 0, 0)), p1=InteractionPoint(p=(0, 5, 0)))

        assert query.is_unoccluded(empty)
        assert not query.is_unoccluded(blocked)
        assert blocked.is_active
        assert query.is_unoccluded(empty)
