"""Glass (smooth dielectric interface) BSDF.

Glass is purely discrete: light is either specularly reflected or refracted,
so ``eval`` and ``pdf`` are always zero and every sample is flagged
discrete.

Key physics:
    - The side of the interface is decided by the sign of dir1 . normal;
      from inside, the normal is flipped and n1 = ior, n2 = 1.
    - Total internal reflection when 1 - (n1/n2)^2 (1 - cos1^2) < 0, which
      forces the reflection probability R to 1.
    - Otherwise R is the dielectric Fresnel reflectance and seed.x chooses
      reflection (probability R) or refraction (probability 1 - R).

The sample value is R / cos1 (reflection) or (1 - R) / cos2 (refraction),
so value * cos / pdf reduces to exactly one for the chosen branch.

Example:
    >>> from mcshade.materials.glass import add_glass_material
    >>> idx = add_glass_material(ior=1.5)
"""

import logging

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import mirror, refract, safe_normalize, vec2, vec3

from .fresnel import fresnel_dielectric
from .record import BSDFSample

logger = logging.getLogger(__name__)


@ti.func
def sample_glass(ior: ti.f64, dir1: vec3, normal: vec3, seed: vec2) -> BSDFSample:
    """Choose between specular reflection and refraction.

    Args:
        ior: Index of refraction of the material.
        dir1: Direction toward the viewer, pointing away from the surface.
        normal: Outward surface normal (normalized).
        seed: Two uniform random numbers; only seed.x is used.

    Returns:
        A discrete BSDFSample whose pdf is the probability of the chosen
        branch.
    """
    n = normal
    n1 = 1.0
    n2 = ior
    if tm.dot(dir1, normal) <= 0.0:
        # Leaving the material
        n = -normal
        n1 = ior
        n2 = 1.0

    cos_1 = tm.dot(dir1, n)
    k = 1.0 - n1 * n1 * (1.0 - cos_1 * cos_1) / (n2 * n2)

    reflectance = 1.0
    cos_2 = 0.0
    if k >= 0.0:
        cos_2 = ti.sqrt(k)
        reflectance = fresnel_dielectric(n, dir1, n2 / n1)

    direction = vec3(0.0, 0.0, 0.0)
    value = vec3(0.0, 0.0, 0.0)
    prob = 0.0
    if cos_1 > 0.0:
        if seed.x <= reflectance:
            direction = safe_normalize(mirror(dir1, n))
            value = vec3(reflectance / cos_1)
            prob = reflectance
        elif cos_2 > 0.0:
            direction = safe_normalize(refract(-dir1, n, n1 / n2))
            value = vec3((1.0 - reflectance) / cos_2)
            prob = 1.0 - reflectance

    return BSDFSample(direction=direction, value=value, pdf=prob, is_discrete=1)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_GLASS_MATERIALS = 256

glass_iors = ti.field(dtype=ti.f64, shape=MAX_GLASS_MATERIALS)
num_glass_materials = ti.field(dtype=ti.i32, shape=())


def clear_glass_materials() -> None:
    """Clear all glass materials."""
    num_glass_materials[None] = 0


def add_glass_material(ior: float = 1.5) -> int:
    """Add a glass material to the material registry.

    Args:
        ior: Index of refraction. Default is 1.5 (typical glass).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction must be positive, got {ior}")

    idx = num_glass_materials[None]
    if idx >= MAX_GLASS_MATERIALS:
        raise RuntimeError(f"Maximum number of glass materials ({MAX_GLASS_MATERIALS}) exceeded")

    glass_iors[idx] = ior
    num_glass_materials[None] = idx + 1
    logger.debug("Glass material %d: ior=%g", idx, ior)
    return idx


def get_glass_material_count() -> int:
    """Get the number of glass materials in the registry."""
    return int(num_glass_materials[None])


@ti.func
def get_glass_ior(material_idx: ti.i32) -> ti.f64:
    """Get the IOR for a glass material by index."""
    return glass_iors[material_idx]
