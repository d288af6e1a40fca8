"""Core rendering module.

This module contains the fundamental building blocks for shading:

Components:
    runtime: Taichi initialisation (64-bit floats, seeded random streams)
    ray: Ray data structure, vector utilities and seeded sampling warps
    integrator: Shading strategies (reflectance, point light, light
        sampling, BSDF sampling, multiple importance sampling)

The integrator is NOT imported here: it declares Taichi fields through the
material and light registries, which must only happen after ``init``.
Import it directly from ``mcshade.core.integrator`` once Taichi is running.
"""

from .ray import (
    RAY_EPSILON,
    T_MAX,
    T_MIN,
    Ray,
    build_onb_from_normal,
    cosine_direction,
    local_to_world,
    make_offset_ray,
    make_offset_segment,
    make_ray,
    mirror,
    offset_origin,
    ray_at,
    reflect,
    refract,
    safe_normalize,
    sample_cosine_hemisphere,
    spherical_direction,
    vec2,
    vec3,
)
from .runtime import init

__all__ = [
    "init",
    "Ray",
    "ray_at",
    "make_ray",
    "make_offset_ray",
    "make_offset_segment",
    "offset_origin",
    "vec2",
    "vec3",
    "safe_normalize",
    "reflect",
    "mirror",
    "refract",
    "build_onb_from_normal",
    "local_to_world",
    "spherical_direction",
    "cosine_direction",
    "sample_cosine_hemisphere",
    "RAY_EPSILON",
    "T_MIN",
    "T_MAX",
]
