"""Microfacet normal distributions (Beckmann and GGX).

Each distribution provides the normal distribution function D, the
single-direction shadowing-masking term G1, half-vector importance sampling
and the resulting outgoing-direction density. The distribution is selected
by a ``DistributionType`` tag so one Taichi function serves both variants.

Beckmann:
    D(m) = exp(-tan^2(theta_m) / alpha^2) / (pi alpha^2 cos^4(theta_m))
    G1(v) = 1 if a >= 1.6, else (3.535 a + 2.181 a^2) / (1 + 2.276 a + 2.577 a^2)
            with a = 1 / (alpha tan(theta_v))
    sampling: tan^2(theta) = -alpha^2 ln(1 - u)

GGX:
    D(m) = alpha^2 / (pi cos^4(theta_m) (alpha^2 + tan^2(theta_m))^2)
    G1(v) = 2 / (1 + sqrt(1 + alpha^2 tan^2(theta_v)))
    sampling: tan^2(theta) = alpha^2 u / (1 - u)

Reflecting the incoming direction about a half vector sampled with density
D(m) |m.n| yields an outgoing density D(m) |m.n| / (4 |dir1.m|).

Example:
    >>> from mcshade.materials.distribution import DistributionType
    >>> # Within a Taichi kernel:
    >>> # spec = distribution_eval(DistributionType.GGX, 0.5, 1.5, dir1, dir2, n)
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import (
    build_onb_from_normal,
    local_to_world,
    mirror,
    safe_normalize,
    spherical_direction,
    vec2,
    vec3,
)

from .fresnel import fresnel_half_vector


class DistributionType(IntEnum):
    """Microfacet normal distribution variants."""

    BECKMANN = 0
    GGX = 1


@ti.func
def chi_plus(a: ti.f64) -> ti.f64:
    """Positive characteristic function: 1 if a > 0 else 0."""
    result = 0.0
    if a > 0.0:
        result = 1.0
    return result


@ti.func
def distribution_d(kind: ti.i32, alpha: ti.f64, m: vec3, n: vec3) -> ti.f64:
    """Normal distribution function D(m).

    Args:
        kind: DistributionType value.
        alpha: Roughness width.
        m: Microfacet normal (half vector), unit length.
        n: Macro-surface normal, unit length.

    Returns:
        The microfacet density; 0 for back-facing microfacets.
    """
    d_value = 0.0
    cos_m = tm.dot(m, n)
    if cos_m > 0.0:
        cos_m2 = cos_m * cos_m
        cos_m4 = cos_m2 * cos_m2
        tan_m2 = (1.0 - cos_m2) / cos_m2
        alpha2 = alpha * alpha
        if kind == int(DistributionType.BECKMANN):
            d_value = ti.exp(-tan_m2 / alpha2) / (tm.pi * alpha2 * cos_m4)
        else:
            root = alpha2 + tan_m2
            d_value = alpha2 / (tm.pi * cos_m4 * root * root)
    return d_value


@ti.func
def distribution_g1(kind: ti.i32, alpha: ti.f64, v: vec3, m: vec3, n: vec3) -> ti.f64:
    """Single-direction shadowing-masking term.

    Zero whenever v sees the microfacet and the macro surface from
    opposite sides.
    """
    result = 0.0
    vm = tm.dot(v, m)
    vn = tm.dot(v, n)
    if vn != 0.0 and vm / vn > 0.0:
        cos_v = ti.abs(tm.dot(safe_normalize(v), safe_normalize(n)))
        sin_v = ti.sqrt(ti.max(0.0, 1.0 - cos_v * cos_v))
        tan_v = 0.0
        if cos_v > 0.0:
            tan_v = sin_v / cos_v
        if kind == int(DistributionType.BECKMANN):
            result = 1.0
            if alpha * tan_v > 0.0:
                a = 1.0 / (alpha * tan_v)
                if a < 1.6:
                    result = (3.535 * a + 2.181 * a * a) / (1.0 + 2.276 * a + 2.577 * a * a)
        else:
            result = 2.0 / (1.0 + ti.sqrt(1.0 + alpha * alpha * tan_v * tan_v))
    return result


@ti.func
def sample_half_vector(kind: ti.i32, alpha: ti.f64, normal: vec3, seed: vec2) -> vec3:
    """Importance sample a microfacet normal with density D(m) |m.n|.

    Args:
        kind: DistributionType value.
        alpha: Roughness width.
        normal: Macro-surface normal, unit length.
        seed: Two uniform random numbers in [0, 1).

    Returns:
        The sampled half vector in world space.
    """
    alpha2 = alpha * alpha
    tan2 = 0.0
    if kind == int(DistributionType.BECKMANN):
        tan2 = -alpha2 * ti.log(1.0 - seed.x)
    else:
        tan2 = alpha2 * seed.x / (1.0 - seed.x)
    cos2 = 1.0 / (1.0 + tan2)
    cos_theta = ti.sqrt(cos2)
    sin_theta = ti.sqrt(ti.max(0.0, 1.0 - cos2))
    local_h = spherical_direction(sin_theta, cos_theta, 2.0 * tm.pi * seed.y)
    tangent, bitangent, n = build_onb_from_normal(normal)
    return local_to_world(local_h, tangent, bitangent, n)


@ti.func
def distribution_eval(
    kind: ti.i32, alpha: ti.f64, nt: ti.f64, dir1: vec3, dir2: vec3, normal: vec3
) -> ti.f64:
    """Specular microfacet term F D G / (4 |cos_i| |cos_o|).

    Args:
        kind: DistributionType value.
        alpha: Roughness width.
        nt: Relative refractive index for the Fresnel factor.
        dir1: First direction, pointing away from the surface.
        dir2: Second direction, pointing away from the surface.
        normal: Macro-surface normal, unit length.

    Returns:
        The scalar specular reflectance; 0 unless both directions are above
        the surface.
    """
    result = 0.0
    cos_i = tm.dot(dir1, normal)
    cos_o = tm.dot(dir2, normal)
    if cos_i > 0.0 and cos_o > 0.0:
        h = safe_normalize(dir1 + dir2)
        f = fresnel_half_vector(tm.dot(dir1, h), nt)
        d = distribution_d(kind, alpha, h, normal)
        g = distribution_g1(kind, alpha, dir1, h, normal) * distribution_g1(
            kind, alpha, dir2, h, normal
        )
        result = f * d * g / (4.0 * cos_i * cos_o)
    return result


@ti.func
def distribution_pdf(kind: ti.i32, alpha: ti.f64, dir1: vec3, dir2: vec3, normal: vec3) -> ti.f64:
    """Density of ``dir2`` when reflecting ``dir1`` about a sampled half vector.

    Returns:
        D(h) |h.n| / (4 |dir1.h|), gated so that it is 0 whenever either
        direction is below the surface or on the wrong side of h.
    """
    prob = 0.0
    cos_i = tm.dot(dir1, normal)
    cos_o = tm.dot(dir2, normal)
    if cos_i > 0.0 and cos_o > 0.0:
        h = safe_normalize(dir1 + dir2)
        i_dot_h = tm.dot(dir1, h)
        o_dot_h = tm.dot(dir2, h)
        if i_dot_h != 0.0:
            d = distribution_d(kind, alpha, h, normal)
            cos_h = ti.abs(tm.dot(h, normal))
            jacobian = 1.0 / (4.0 * ti.abs(i_dot_h))
            prob = chi_plus(o_dot_h / cos_o) * chi_plus(i_dot_h / cos_i) * d * cos_h * jacobian
    return prob


@ti.func
def distribution_sample(kind: ti.i32, alpha: ti.f64, dir1: vec3, normal: vec3, seed: vec2):
    """Sample an outgoing direction by reflecting ``dir1`` about a half vector.

    Returns:
        A tuple (dir2, pdf) with pdf = distribution_pdf(dir1, dir2).
    """
    h = sample_half_vector(kind, alpha, normal, seed)
    dir2 = safe_normalize(mirror(dir1, h))
    prob = distribution_pdf(kind, alpha, dir1, dir2, normal)
    return dir2, prob
