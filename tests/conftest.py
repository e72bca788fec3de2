"""Pytest configuration for light transport tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear primitive and light storage before and after each test.

    This ensures tests are isolated from each other.
    """
    # Import here so that fields are created after ti.init
    from src.lumen.scene.scene import clear_storage

    clear_storage()
    yield
    clear_storage()
