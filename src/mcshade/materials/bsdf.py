"""Unified material ids and BSDF dispatch.

Every material lives in the registry of its own variant (Lambertian,
Microfacet, Glass, Glazed). This module maps a unified material id to the
pair (MaterialType, type-local index) and routes ``eval``, ``sample``,
``pdf`` and diffuse-reflectance queries to the right variant.

Dispatch has two levels. The base level covers the variants that do not
contain another material; the top level adds Glazed, whose substrate is
dispatched through the base level. Taichi functions cannot recurse, so a
Glazed substrate must itself be a base material (in practice Lambertian or
Microfacet).

Conventions shared by all variants:
    - ``dir1`` is the fixed direction (toward the viewer), ``dir2`` the
      generated one (toward the light); both point away from the surface.
    - ``normal`` is the outward geometric normal of the hit surface.
    - ``bsdf_pdf`` reports only the continuous density; discrete branches
      are visible through ``BSDFSample.is_discrete`` alone.

Example:
    >>> from mcshade.materials.bsdf import MaterialType, register_material
    >>> # Within a Taichi kernel:
    >>> # s = bsdf_sample(rec.material_id, -ray.direction, rec.normal, seed)
"""

import logging
from enum import IntEnum

import taichi as ti

from mcshade.core.ray import vec2, vec3

from .glass import get_glass_ior, sample_glass
from .glazed import (
    get_glazed_ior,
    get_glazed_substrate,
    glaze_reflectance,
    remap_substrate_seed,
    sample_glaze_coat,
)
from .lambertian import (
    eval_lambertian,
    get_lambertian_reflectance,
    pdf_lambertian,
    sample_lambertian,
)
from .microfacet import (
    eval_microfacet,
    get_microfacet_material,
    pdf_microfacet,
    sample_microfacet,
)
from .record import BSDFSample, make_null_sample

logger = logging.getLogger(__name__)


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the integrators to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    MICROFACET = 1
    GLASS = 2
    GLAZED = 3


# Maximum number of materials across all types
MAX_MATERIALS = 1024  # 256 per type * 4 types

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_material_registry() -> None:
    """Forget every unified material id."""
    num_materials[None] = 0


def register_material(material_type: MaterialType, type_index: int) -> int:
    """Assign the next unified material id to a variant-local material.

    Args:
        material_type: Variant of the material.
        type_index: Index returned by the variant's ``add_*_material``.

    Returns:
        The unified material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    material_id = num_materials[None]
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_types[material_id] = int(material_type)
    material_type_indices[material_id] = type_index
    num_materials[None] = material_id + 1
    logger.debug("Material id %d -> %s[%d]", material_id, MaterialType(material_type).name, type_index)
    return material_id


def get_material_count() -> int:
    """Get the number of registered materials."""
    return int(num_materials[None])


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Returns:
        The material type as an integer (see MaterialType enum), or -1 for
        invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID, or -1 if invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


# =============================================================================
# Base dispatch (variants without a nested material)
# =============================================================================


@ti.func
def _base_eval(material_id: ti.i32, dir1: vec3, dir2: vec3, normal: vec3) -> vec3:
    mat_type = get_material_type(material_id)
    idx = get_material_type_index(material_id)
    result = vec3(0.0, 0.0, 0.0)
    if mat_type == int(MaterialType.LAMBERTIAN):
        result = eval_lambertian(get_lambertian_reflectance(idx), dir1, dir2, normal)
    elif mat_type == int(MaterialType.MICROFACET):
        result = eval_microfacet(get_microfacet_material(idx), dir1, dir2, normal)
    return result


@ti.func
def _base_pdf(material_id: ti.i32, dir1: vec3, dir2: vec3, normal: vec3) -> ti.f64:
    mat_type = get_material_type(material_id)
    idx = get_material_type_index(material_id)
    result = 0.0
    if mat_type == int(MaterialType.LAMBERTIAN):
        result = pdf_lambertian(dir1, dir2, normal)
    elif mat_type == int(MaterialType.MICROFACET):
        result = pdf_microfacet(get_microfacet_material(idx), dir1, dir2, normal)
    return result


@ti.func
def _base_sample(material_id: ti.i32, dir1: vec3, normal: vec3, seed: vec2) -> BSDFSample:
    mat_type = get_material_type(material_id)
    idx = get_material_type_index(material_id)
    result = make_null_sample()
    if mat_type == int(MaterialType.LAMBERTIAN):
        result = sample_lambertian(get_lambertian_reflectance(idx), dir1, normal, seed)
    elif mat_type == int(MaterialType.MICROFACET):
        result = sample_microfacet(get_microfacet_material(idx), dir1, normal, seed)
    elif mat_type == int(MaterialType.GLASS):
        result = sample_glass(get_glass_ior(idx), dir1, normal, seed)
    return result


@ti.func
def _base_diffuse_reflectance(material_id: ti.i32) -> vec3:
    mat_type = get_material_type(material_id)
    idx = get_material_type_index(material_id)
    result = vec3(0.0, 0.0, 0.0)
    if mat_type == int(MaterialType.LAMBERTIAN):
        result = get_lambertian_reflectance(idx)
    elif mat_type == int(MaterialType.MICROFACET):
        result = get_microfacet_material(idx).diffuse
    return result


# =============================================================================
# Public dispatch
# =============================================================================


@ti.func
def bsdf_eval(material_id: ti.i32, dir1: vec3, dir2: vec3, normal: vec3) -> vec3:
    """Evaluate the BSDF of a material for a pair of directions.

    Glass has no continuous part and evaluates to zero; Glazed forwards to
    its substrate.
    """
    mid = material_id
    if get_material_type(material_id) == int(MaterialType.GLAZED):
        mid = get_glazed_substrate(get_material_type_index(material_id))
    return _base_eval(mid, dir1, dir2, normal)


@ti.func
def bsdf_pdf(material_id: ti.i32, dir1: vec3, dir2: vec3, normal: vec3) -> ti.f64:
    """Continuous density with which ``bsdf_sample`` generates ``dir2``.

    For Glazed this is the substrate density scaled by the probability
    1 - R of choosing the substrate.
    """
    result = 0.0
    if get_material_type(material_id) == int(MaterialType.GLAZED):
        idx = get_material_type_index(material_id)
        reflectance = glaze_reflectance(get_glazed_ior(idx), dir1, normal)
        result = (1.0 - reflectance) * _base_pdf(get_glazed_substrate(idx), dir1, dir2, normal)
    else:
        result = _base_pdf(material_id, dir1, dir2, normal)
    return result


@ti.func
def bsdf_sample(material_id: ti.i32, dir1: vec3, normal: vec3, seed: vec2) -> BSDFSample:
    """Sample a direction from the material's BSDF.

    Args:
        material_id: Unified material id.
        dir1: The fixed direction, pointing away from the surface.
        normal: Outward surface normal (normalized).
        seed: Two uniform random numbers in [0, 1).

    Returns:
        The BSDFSample. A pdf of zero marks a sample that contributes
        nothing.
    """
    result = make_null_sample()
    if get_material_type(material_id) == int(MaterialType.GLAZED):
        idx = get_material_type_index(material_id)
        substrate = get_glazed_substrate(idx)
        reflectance = glaze_reflectance(get_glazed_ior(idx), dir1, normal)
        if seed.x < reflectance:
            result = sample_glaze_coat(reflectance, dir1, normal)
        else:
            result = _base_sample(substrate, dir1, normal, remap_substrate_seed(reflectance, seed))
            result.pdf = (1.0 - reflectance) * result.pdf
    else:
        result = _base_sample(material_id, dir1, normal, seed)
    assert result.pdf >= 0.0, "BSDF sample produced a negative or NaN pdf"
    return result


@ti.func
def bsdf_diffuse_reflectance(material_id: ti.i32) -> vec3:
    """Diffuse albedo used by the reflectance (albedo) integrator."""
    mid = material_id
    if get_material_type(material_id) == int(MaterialType.GLAZED):
        mid = get_glazed_substrate(get_material_type_index(material_id))
    return _base_diffuse_reflectance(mid)
