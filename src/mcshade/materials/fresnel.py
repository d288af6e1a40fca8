"""Dielectric Fresnel reflectance.

Two equivalent forms of the unpolarized Fresnel reflectance for a dielectric
interface are provided:

- ``fresnel_dielectric`` works from a normal and an outgoing direction and
  is used by the glass and glazed BSDFs. The cosine is the raw dot product
  of its inputs; nothing is renormalized.
- ``fresnel_half_vector`` takes the cosine to a microfacet half vector and
  the relative index, using the g = sqrt(nt^2 - 1 + c^2) formulation, and
  is used by the microfacet distributions.
"""

import taichi as ti

from mcshade.core.ray import vec3


@ti.func
def fresnel_dielectric(normal: vec3, outgoing: vec3, ior: ti.f64) -> ti.f64:
    """Fresnel reflectance for light leaving along ``outgoing``.

    Args:
        normal: Surface normal on the side of ``outgoing``.
        outgoing: Direction away from the surface.
        ior: Relative refractive index (transmitted side over incident side).

    Returns:
        Reflectance in [0, 1]. 0 when ``outgoing`` is below the surface,
        1 under total internal reflection.
    """
    cos_1 = normal.dot(outgoing)
    result = 0.0
    if cos_1 >= 0.0:
        cos_2_sq = 1.0 - (1.0 - cos_1 * cos_1) / (ior * ior)
        if cos_2_sq < 0.0:
            result = 1.0
        else:
            cos_2 = ti.sqrt(cos_2_sq)
            denom_p = ior * cos_1 + cos_2
            denom_s = cos_1 + ior * cos_2
            # A NaN ior falls through to the formula so it reaches the pdf checks
            if denom_p <= 0.0 or denom_s <= 0.0:
                result = 1.0
            else:
                f_p = (ior * cos_1 - cos_2) / denom_p
                f_s = (cos_1 - ior * cos_2) / denom_s
                result = 0.5 * (f_p * f_p + f_s * f_s)
    return result


@ti.func
def fresnel_half_vector(cos_h: ti.f64, nt: ti.f64) -> ti.f64:
    """Fresnel reflectance from the cosine to a half vector.

    Args:
        cos_h: |dot(direction, half_vector)|.
        nt: Relative refractive index.

    Returns:
        Reflectance in [0, 1]; 1 when g^2 <= 0.
    """
    c = ti.abs(cos_h)
    g_sq = nt * nt - 1.0 + c * c
    result = 1.0
    if g_sq > 0.0:
        g = ti.sqrt(g_sq)
        a = (g - c) / (g + c)
        b = (c * (g + c) - 1.0) / (c * (g - c) + 1.0)
        result = 0.5 * a * a * (1.0 + b * b)
    return result
