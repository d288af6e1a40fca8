"""Quad primitive with ray-quad intersection.

A quad is the parallelogram spanned from a corner point ``Q`` by two edge
vectors ``u`` and ``v``. Its normal is normalize(cross(u, v)) by the
right-hand rule, and it is what rectangle lights insert into the scene so
that rays can hit the emitter directly.

Ray-quad intersection uses the parametric plane test:
1. Find where the ray intersects the plane containing the quad
2. Check if the intersection point lies within the quad bounds

Example:
    >>> from mcshade.geometry.quad import Quad, hit_quad
    >>> # Floor quad at y=0, spanning x=[0,1] and z=[0,1]:
    >>> # quad = Quad(Q=vec3(0.0, 0.0, 0.0), u=vec3(1.0, 0.0, 0.0),
    >>> #             v=vec3(0.0, 0.0, 1.0))
"""

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import vec2, vec3

from .sphere import HitRecord


@ti.dataclass
class Quad:
    """A quad (parallelogram) defined by a corner point and two edge vectors.

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: Quad):
    """Compute the quad's plane normal and barycentric helper vectors.

    The hit point is P = Q + alpha * u + beta * v, with
    alpha = dot(w_u, P - Q) and beta = dot(w_v, P - Q).

    Returns:
        Tuple of (normal, d, w_u, w_v); w_u and w_v are zero for a
        degenerate quad.
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)

    if n_dot_n > 1e-20:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f64,
    t_max: ti.f64,
) -> HitRecord:
    """Test for ray-quad intersection.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        quad: The quad to test intersection against.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord with the outward normal cross(u, v) and uv = (alpha, beta).
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0

    # Ray not parallel to plane
    if ti.abs(denom) > 1e-12:
        t = (d - tm.dot(normal, ray_origin)) / denom

        if t > t_min and t < t_max:
            hit_point = ray_origin + t * ray_direction
            p_minus_q = hit_point - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                hit_normal = normal
                hit_uv = vec2(alpha, beta)
                is_front_face = 1
                if denom > 0.0:
                    is_front_face = 0

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        uv=hit_uv,
    )


@ti.func
def quad_area(quad: Quad) -> ti.f64:
    """Area of the parallelogram, |u x v|."""
    return tm.length(tm.cross(quad.u, quad.v))
