"""Scene-level primitive storage and ray queries.

This module is the ray/scene collaborator used by the integrators. It stores
spheres and quads in Taichi fields and answers two queries:

- ``intersect_scene``: nearest hit along a ray, with the hit surface's
  material id and, for emitters, the id of the light that owns it.
- ``intersect_scene_any``: whether anything blocks a ray segment (shadow
  test).

Example:
    >>> from mcshade.scene.intersection import add_sphere, add_quad, clear_scene
    >>> clear_scene()
    >>> add_sphere((0.0, 0.0, -1.0), 0.5, material_id=0)
    >>> add_quad((-1.0, -0.5, -2.0), (2.0, 0.0, 0.0), (0.0, 1.0, 0.0), material_id=1)
    >>> # Within a Taichi kernel: rec = intersect_scene(ray)
"""

import taichi as ti

from mcshade.core.ray import Ray, vec2, vec3
from mcshade.geometry.quad import Quad, hit_quad
from mcshade.geometry.sphere import HitRecord, Sphere, hit_sphere


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with surface information.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The outward geometric normal (unit length).
        front_face: 1 if the ray arrived on the side the normal points to.
        uv: Surface coordinates of the hit point.
        material_id: The unified material ID of the hit primitive.
        light_id: The unified light ID if the primitive is an emitter,
            -1 otherwise.
    """

    hit: ti.i32
    t: ti.f64
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: vec2
    material_id: ti.i32
    light_id: ti.i32


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_QUADS = 1024

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f64, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f64, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Quad storage: quad_corners stores the Q (corner point) of each quad
quad_corners = ti.Vector.field(3, dtype=ti.f64, shape=MAX_QUADS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f64, shape=MAX_QUADS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f64, shape=MAX_QUADS)
quad_material_ids = ti.field(dtype=ti.i32, shape=MAX_QUADS)
quad_light_ids = ti.field(dtype=ti.i32, shape=MAX_QUADS)
num_quads = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives from the scene.

    Resets the primitive counts to zero. The field data is overwritten when
    new primitives are added.
    """
    num_spheres[None] = 0
    num_quads[None] = 0


def add_sphere(center, radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere as (x, y, z).
        radius: The radius of the sphere (must be positive).
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added sphere.

    Raises:
        ValueError: If the radius is not positive.
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = [center[0], center[1], center[2]]
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def add_quad(q, u, v, material_id: int = 0, light_id: int = -1) -> int:
    """Add a quad to the scene.

    The quad represents a parallelogram with vertices at Q, Q+u, Q+v, Q+u+v.

    Args:
        q: The corner point of the quad.
        u: Edge vector from q to adjacent corner.
        v: Edge vector from q to other adjacent corner.
        material_id: The material ID to associate with this quad.
        light_id: The light that emits from this quad, or -1.

    Returns:
        The index of the added quad.

    Raises:
        RuntimeError: If the maximum number of quads is exceeded.
    """
    idx = num_quads[None]
    if idx >= MAX_QUADS:
        raise RuntimeError(f"Maximum number of quads ({MAX_QUADS}) exceeded")
    quad_corners[idx] = [q[0], q[1], q[2]]
    quad_edge_u[idx] = [u[0], u[1], u[2]]
    quad_edge_v[idx] = [v[0], v[1], v[2]]
    quad_material_ids[idx] = material_id
    quad_light_ids[idx] = light_id
    num_quads[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_quad_count() -> int:
    """Get the number of quads in the scene."""
    return int(num_quads[None])


@ti.func
def _to_scene_hit_record(rec: HitRecord, material_id: ti.i32, light_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        uv=rec.uv,
        material_id=material_id,
        light_id=light_id,
    )


@ti.func
def make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        uv=vec2(0.0, 0.0),
        material_id=-1,
        light_id=-1,
    )


@ti.func
def intersect_scene(ray: Ray) -> SceneHitRecord:
    """Find the nearest intersection of a ray with the scene.

    Iterates through all spheres and quads, keeping the closest hit inside
    [ray.t_min, ray.t_max].

    Args:
        ray: The ray to trace.

    Returns:
        A SceneHitRecord for the closest intersection, or a miss record.
    """
    closest_t = ray.t_max
    result = make_miss_record()

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(ray.origin, ray.direction, sphere, ray.t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit_record(rec, sphere_material_ids[i], -1)

    n_quads = num_quads[None]
    for i in range(n_quads):
        quad = Quad(Q=quad_corners[i], u=quad_edge_u[i], v=quad_edge_v[i])
        rec = hit_quad(ray.origin, ray.direction, quad, ray.t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit_record(rec, quad_material_ids[i], quad_light_ids[i])

    return result


@ti.func
def intersect_scene_any(ray: Ray) -> ti.i32:
    """Test if anything in the scene blocks a ray segment (shadow query).

    Args:
        ray: The segment to test, bounded by [ray.t_min, ray.t_max].

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        if hit_any == 0:
            sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
            rec = hit_sphere(ray.origin, ray.direction, sphere, ray.t_min, ray.t_max)
            if rec.hit == 1:
                hit_any = 1

    n_quads = num_quads[None]
    for i in range(n_quads):
        if hit_any == 0:
            quad = Quad(Q=quad_corners[i], u=quad_edge_u[i], v=quad_edge_v[i])
            rec = hit_quad(ray.origin, ray.direction, quad, ray.t_min, ray.t_max)
            if rec.hit == 1:
                hit_any = 1

    return hit_any
