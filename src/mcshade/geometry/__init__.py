"""Geometry module for the primitives behind the scene queries.

Components:
    sphere: Sphere primitive, HitRecord and robust intersection
    quad: Parallelogram primitive (also the emitter shape of rectangle lights)
"""

from .quad import Quad, hit_quad, quad_area
from .sphere import HitRecord, Sphere, hit_sphere, sphere_uv

__all__ = [
    "HitRecord",
    "Sphere",
    "hit_sphere",
    "sphere_uv",
    "Quad",
    "hit_quad",
    "quad_area",
]
