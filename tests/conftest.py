"""Pytest configuration for mcshade tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    discard every field declared by the registries.
    """
    from mcshade.core.runtime import init

    init(arch=ti.cpu, random_seed=42, debug=True)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear primitives, materials, lights and the environment around each test."""
    # Import here so registry fields are declared after Taichi is initialized
    from mcshade.scene.manager import reset_scene_state

    reset_scene_state()

    yield

    reset_scene_state()
