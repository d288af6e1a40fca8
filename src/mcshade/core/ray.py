"""Ray data structure and vector utilities for Monte Carlo light transport.

This module provides the Ray dataclass, 64-bit vector types, and the small
set of geometric helpers shared by BSDFs, lights and integrators: reflection,
refraction, orthonormal frames, cosine-weighted hemisphere warping and ray
offsetting. All sampling helpers are deterministic functions of an explicit
``seed`` pair of uniforms, so callers own their random streams.

Example:
    >>> import taichi as ti
    >>> from mcshade.core.runtime import init
    >>> init()
    >>> from mcshade.core.ray import Ray, ray_at, vec3
    >>> # Within a Taichi kernel:
    >>> # ray = Ray(origin=vec3(0.0), direction=vec3(0.0, 0.0, -1.0),
    >>> #           t_min=T_MIN, t_max=T_MAX)
    >>> # point = ray_at(ray, 5.0)
"""

import taichi as ti
import taichi.math as tm

# 64-bit vector types; probability bookkeeping is checked to 1e-6
vec2 = ti.types.vector(2, ti.f64)
vec3 = ti.types.vector(3, ti.f64)

# Ray offset epsilon to avoid self-intersection
RAY_EPSILON = 1e-6

# Default parametric interval for rays
T_MIN = 1e-6
T_MAX = 1e30


@ti.dataclass
class Ray:
    """A ray with an origin, a direction and a valid parametric interval.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not necessarily
            unit length.
        t_min: Start of the valid interval along the ray.
        t_max: End of the valid interval along the ray.
    """

    origin: vec3
    direction: vec3
    t_min: ti.f64
    t_max: ti.f64


@ti.func
def ray_at(ray: Ray, t: ti.f64) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray spanning the default interval [T_MIN, T_MAX]."""
    return Ray(origin=origin, direction=direction, t_min=T_MIN, t_max=T_MAX)


@ti.func
def offset_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Offset a ray origin to avoid self-intersection.

    Pushes the point slightly along the geometric normal on the side the ray
    will travel (above the surface for reflection, below for transmission).

    Args:
        point: The intersection point.
        normal: The geometric surface normal.
        direction: The direction of the new ray.

    Returns:
        The offset origin point.
    """
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def make_offset_ray(point: vec3, normal: vec3, direction: vec3) -> Ray:
    """Create an unbounded ray leaving a surface point."""
    return Ray(
        origin=offset_origin(point, normal, direction),
        direction=direction,
        t_min=T_MIN,
        t_max=T_MAX,
    )


@ti.func
def make_offset_segment(point: vec3, normal: vec3, direction: vec3, distance: ti.f64) -> Ray:
    """Create a segment leaving a surface point that stops short of ``distance``.

    Used for shadow rays: the segment ends just before the light sample so
    the emitter itself is never reported as an occluder.

    Args:
        point: The shading point.
        normal: The geometric surface normal at the shading point.
        direction: Unit direction toward the light.
        distance: Distance from the shading point to the light sample.

    Returns:
        A Ray whose t_max is slightly less than ``distance``.
    """
    return Ray(
        origin=offset_origin(point, normal, direction),
        direction=direction,
        t_min=T_MIN,
        t_max=distance * (1.0 - 1e-6) - T_MIN,
    )


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def safe_normalize(v: vec3) -> vec3:
    """Normalize a vector, returning the zero vector for zero-length input.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or (0, 0, 0) when v is
        degenerate.
    """
    result = vec3(0.0, 0.0, 0.0)
    len_sq = tm.dot(v, v)
    if len_sq > 1e-300:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def mirror(direction: vec3, axis: vec3) -> vec3:
    """Mirror a direction pointing away from the surface about an axis.

    Unlike reflect(), both the input and the result point away from the
    surface: the result is 2 (axis . direction) axis - direction.

    Args:
        direction: Direction pointing away from the surface.
        axis: Unit mirror axis (a normal or a microfacet half vector).

    Returns:
        The mirrored direction (not renormalized).
    """
    return 2.0 * tm.dot(axis, direction) * axis - direction


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f64) -> vec3:
    """Refract an incident vector through a surface.

    Computes the refracted direction using Snell's law. If total internal
    reflection occurs, returns a zero vector.

    Args:
        incident: The incoming direction vector (should be normalized).
        normal: The surface normal on the incident side (normalized).
        eta: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction vector, or zero vector if total internal
        reflection occurs.
    """
    cos_i = -tm.dot(incident, normal)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


# =============================================================================
# Sampling Utilities
# =============================================================================


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis from a normal vector.

    Creates a local coordinate frame where the normal is the z-axis.

    Args:
        normal: The surface normal (should be normalized).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    # Choose a vector not parallel to normal
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(a, normal))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Transform a direction from local (z-up) to world coordinates."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def spherical_direction(sin_theta: ti.f64, cos_theta: ti.f64, phi: ti.f64) -> vec3:
    """Local z-up direction from polar and azimuthal angles."""
    return vec3(sin_theta * ti.cos(phi), sin_theta * ti.sin(phi), cos_theta)


@ti.func
def cosine_direction(seed: vec2) -> vec3:
    """Warp a seed pair to a cosine-weighted direction in the local frame.

    With seed (u, v): z = sqrt(1 - u), r = sqrt(u), phi = 2 pi v.
    The density of the result is z / pi.

    Args:
        seed: Two uniform random numbers in [0, 1).

    Returns:
        A unit direction in the local coordinate frame (z-up).
    """
    r = ti.sqrt(seed.x)
    z = ti.sqrt(ti.max(0.0, 1.0 - seed.x))
    phi = 2.0 * tm.pi * seed.y
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def sample_cosine_hemisphere(normal: vec3, seed: vec2):
    """Cosine-weighted hemisphere sampling around a normal.

    Args:
        normal: The surface normal defining the hemisphere orientation.
        seed: Two uniform random numbers in [0, 1).

    Returns:
        A tuple of (direction, pdf) where pdf = cos(theta) / pi.
    """
    local_dir = cosine_direction(seed)
    tangent, bitangent, n = build_onb_from_normal(normal)
    world_dir = tm.normalize(local_to_world(local_dir, tangent, bitangent, n))
    pdf = ti.max(tm.dot(world_dir, normal), 0.0) / tm.pi
    return world_dir, pdf
