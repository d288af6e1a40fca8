"""Scene module for primitive storage, ray queries and scene management.

Components:
    intersection: Sphere/quad storage, nearest-hit and shadow queries
    manager: Unified scene manager coordinating primitives, materials,
        lights and the environment

Scene data is organized for efficient device access:
    - Structure-of-Arrays layout for geometric data
    - Unified material and light id spaces mapped to per-variant registries
"""

from .intersection import (
    MAX_QUADS,
    MAX_SPHERES,
    SceneHitRecord,
    add_quad,
    add_sphere,
    clear_scene,
    get_quad_count,
    get_sphere_count,
    intersect_scene,
    intersect_scene_any,
)
from .manager import (
    LightInfo,
    MaterialInfo,
    QuadInfo,
    SceneConfig,
    SceneManager,
    SphereInfo,
    reset_scene_state,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "add_sphere",
    "add_quad",
    "clear_scene",
    "get_sphere_count",
    "get_quad_count",
    "intersect_scene",
    "intersect_scene_any",
    "MAX_SPHERES",
    "MAX_QUADS",
    # Manager module
    "SceneManager",
    "MaterialInfo",
    "SphereInfo",
    "QuadInfo",
    "LightInfo",
    "SceneConfig",
    "reset_scene_state",
]
