"""Materials module for BSDF models.

This module implements the scattering functions used by the integrators:

Components:
    fresnel: Dielectric Fresnel reflectance (direction and half-vector forms)
    distribution: Beckmann and GGX microfacet normal distributions
    lambertian: Ideal diffuse reflection
    microfacet: Diffuse base plus a rough specular lobe
    glass: Smooth dielectric interface (discrete reflection/refraction)
    glazed: Fresnel clear coat over a substrate material
    bsdf: Unified material ids and variant dispatch

Each material provides:
    - eval(): Evaluate the BSDF for a pair of directions
    - sample(): Importance sample a direction from an explicit seed
    - pdf(): Density of the sampled direction

Importing this package declares Taichi fields, so ``mcshade.core.init``
must run first.
"""

from .bsdf import (
    MAX_MATERIALS,
    MaterialType,
    bsdf_diffuse_reflectance,
    bsdf_eval,
    bsdf_pdf,
    bsdf_sample,
    clear_material_registry,
    get_material_count,
    get_material_type,
    get_material_type_index,
    register_material,
)
from .distribution import DistributionType
from .fresnel import fresnel_dielectric, fresnel_half_vector
from .glass import (
    add_glass_material,
    clear_glass_materials,
    get_glass_material_count,
    sample_glass,
)
from .glazed import (
    add_glazed_material,
    clear_glazed_materials,
    get_glazed_material_count,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    eval_lambertian,
    get_lambertian_material_count,
    pdf_lambertian,
    sample_lambertian,
)
from .microfacet import (
    MicrofacetMaterial,
    add_microfacet_material,
    clear_microfacet_materials,
    eval_microfacet,
    get_microfacet_material_count,
    pdf_microfacet,
    sample_microfacet,
)
from .record import BSDFSample

__all__ = [
    # Records and dispatch
    "BSDFSample",
    "MaterialType",
    "MAX_MATERIALS",
    "register_material",
    "clear_material_registry",
    "get_material_count",
    "get_material_type",
    "get_material_type_index",
    "bsdf_eval",
    "bsdf_pdf",
    "bsdf_sample",
    "bsdf_diffuse_reflectance",
    # Fresnel and distributions
    "fresnel_dielectric",
    "fresnel_half_vector",
    "DistributionType",
    # Lambertian
    "eval_lambertian",
    "pdf_lambertian",
    "sample_lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    # Microfacet
    "MicrofacetMaterial",
    "eval_microfacet",
    "pdf_microfacet",
    "sample_microfacet",
    "add_microfacet_material",
    "clear_microfacet_materials",
    "get_microfacet_material_count",
    # Glass
    "sample_glass",
    "add_glass_material",
    "clear_glass_materials",
    "get_glass_material_count",
    # Glazed
    "add_glazed_material",
    "clear_glazed_materials",
    "get_glazed_material_count",
]
