"""Glazed BSDF: a clear specular coat over a substrate material.

The coat reflects a Fresnel fraction R of the light as a perfect mirror;
the rest reaches the substrate (a Lambertian or Microfacet material).

Sampling picks the coat with probability R and the substrate with
probability 1 - R, reusing ``seed.x`` for the choice and rescaling it so
the substrate still receives a uniform seed. The continuous part of the
density is therefore (1 - R) times the substrate density, while ``eval``
forwards to the substrate unchanged.

This module holds the coat and the registry; composing the coat with the
substrate lives in ``mcshade.materials.bsdf`` where the substrate can be
dispatched.

Example:
    >>> from mcshade.materials.glazed import add_glazed_material
    >>> idx = add_glazed_material(ior=1.5, substrate_id=0)
"""

import logging

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import mirror, safe_normalize, vec2, vec3

from .fresnel import fresnel_dielectric
from .record import BSDFSample

logger = logging.getLogger(__name__)


@ti.func
def glaze_reflectance(ior: ti.f64, dir1: vec3, normal: vec3) -> ti.f64:
    """Fresnel reflectance of the coat seen from ``dir1``."""
    return fresnel_dielectric(normal, dir1, ior)


@ti.func
def sample_glaze_coat(reflectance: ti.f64, dir1: vec3, normal: vec3) -> BSDFSample:
    """Mirror reflection off the coat, chosen with probability ``reflectance``.

    The value R / cos(theta) makes value * cos / pdf equal to one.
    """
    cos_1 = tm.dot(dir1, normal)
    direction = vec3(0.0, 0.0, 0.0)
    value = vec3(0.0, 0.0, 0.0)
    prob = 0.0
    if cos_1 > 0.0 and reflectance > 0.0:
        direction = safe_normalize(mirror(dir1, normal))
        value = vec3(reflectance / cos_1)
        prob = reflectance
    return BSDFSample(direction=direction, value=value, pdf=prob, is_discrete=1)


@ti.func
def remap_substrate_seed(reflectance: ti.f64, seed: vec2) -> vec2:
    """Rescale ``seed.x`` from [R, 1) back to [0, 1) for the substrate."""
    remapped = seed
    if reflectance < 1.0:
        remapped.x = ti.min((seed.x - reflectance) / (1.0 - reflectance), 1.0 - 1e-12)
    return remapped


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_GLAZED_MATERIALS = 256

glazed_iors = ti.field(dtype=ti.f64, shape=MAX_GLAZED_MATERIALS)
# Unified material id of the substrate
glazed_substrate_ids = ti.field(dtype=ti.i32, shape=MAX_GLAZED_MATERIALS)
num_glazed_materials = ti.field(dtype=ti.i32, shape=())


def clear_glazed_materials() -> None:
    """Clear all glazed materials."""
    num_glazed_materials[None] = 0


def add_glazed_material(ior: float, substrate_id: int) -> int:
    """Add a glazed material to the material registry.

    The caller is responsible for checking that ``substrate_id`` refers to
    a Lambertian or Microfacet material.

    Args:
        ior: Index of refraction of the coat.
        substrate_id: Unified material id of the substrate.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is not positive or the substrate id is negative.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction must be positive, got {ior}")
    if substrate_id < 0:
        raise ValueError(f"Invalid substrate material id: {substrate_id}")

    idx = num_glazed_materials[None]
    if idx >= MAX_GLAZED_MATERIALS:
        raise RuntimeError(f"Maximum number of glazed materials ({MAX_GLAZED_MATERIALS}) exceeded")

    glazed_iors[idx] = ior
    glazed_substrate_ids[idx] = substrate_id
    num_glazed_materials[None] = idx + 1
    logger.debug("Glazed material %d: ior=%g substrate=%d", idx, ior, substrate_id)
    return idx


def get_glazed_material_count() -> int:
    """Get the number of glazed materials in the registry."""
    return int(num_glazed_materials[None])


@ti.func
def get_glazed_ior(material_idx: ti.i32) -> ti.f64:
    return glazed_iors[material_idx]


@ti.func
def get_glazed_substrate(material_idx: ti.i32) -> ti.i32:
    return glazed_substrate_ids[material_idx]
