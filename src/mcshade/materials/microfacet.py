"""Microfacet BSDF: diffuse base plus a rough specular lobe.

    f(dir1, dir2) = diffuse / pi + specular * F D G / (4 |cos_i| |cos_o|)

with D and G from the Beckmann or GGX distribution and F the dielectric
Fresnel factor at the half vector. Both directions must be above the
surface for any contribution.

Sampling draws a half vector from the distribution and reflects ``dir1``
about it; the reported density is the specular lobe's density only, which
is positive wherever the lobe is, so the estimator stays unbiased for the
diffuse term as well.

Example:
    >>> from mcshade.materials.distribution import DistributionType
    >>> from mcshade.materials.microfacet import add_microfacet_material
    >>> idx = add_microfacet_material((0.2, 0.2, 0.2), (1.0, 1.0, 1.0),
    ...                               0.3, 1.5, DistributionType.GGX)
"""

import logging

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import vec2, vec3

from .distribution import (
    DistributionType,
    distribution_eval,
    distribution_pdf,
    distribution_sample,
)
from .lambertian import validate_reflectance
from .record import BSDFSample

logger = logging.getLogger(__name__)


@ti.dataclass
class MicrofacetMaterial:
    """Parameters of a microfacet BSDF.

    Attributes:
        diffuse: Diffuse reflectance (RGB).
        specular: Specular color multiplying the microfacet term (RGB).
        alpha: Roughness width of the distribution.
        ior: Relative refractive index used by the Fresnel factor.
        distribution: DistributionType value.
    """

    diffuse: vec3
    specular: vec3
    alpha: ti.f64
    ior: ti.f64
    distribution: ti.i32


@ti.func
def eval_microfacet(mat: MicrofacetMaterial, dir1: vec3, dir2: vec3, normal: vec3) -> vec3:
    """Evaluate diffuse / pi + specular * microfacet term, or zero if back-facing."""
    result = vec3(0.0, 0.0, 0.0)
    if tm.dot(dir1, normal) > 0.0 and tm.dot(dir2, normal) > 0.0:
        spec = distribution_eval(mat.distribution, mat.alpha, mat.ior, dir1, dir2, normal)
        result = mat.diffuse / tm.pi + mat.specular * spec
    return result


@ti.func
def pdf_microfacet(mat: MicrofacetMaterial, dir1: vec3, dir2: vec3, normal: vec3) -> ti.f64:
    """Density of sample_microfacet generating ``dir2`` from ``dir1``."""
    prob = 0.0
    if tm.dot(dir1, normal) > 0.0 and tm.dot(dir2, normal) > 0.0:
        prob = distribution_pdf(mat.distribution, mat.alpha, dir1, dir2, normal)
    return prob


@ti.func
def sample_microfacet(mat: MicrofacetMaterial, dir1: vec3, normal: vec3, seed: vec2) -> BSDFSample:
    """Sample the specular lobe by reflecting ``dir1`` about a sampled half vector.

    Args:
        mat: Microfacet parameters.
        dir1: The fixed direction, pointing away from the surface.
        normal: The surface normal (normalized).
        seed: Two uniform random numbers in [0, 1).

    Returns:
        A continuous BSDFSample; value and pdf are zero when either
        direction ends up below the surface.
    """
    dir2, prob = distribution_sample(mat.distribution, mat.alpha, dir1, normal, seed)
    value = vec3(0.0, 0.0, 0.0)
    if tm.dot(dir1, normal) > 0.0 and tm.dot(dir2, normal) > 0.0:
        value = eval_microfacet(mat, dir1, dir2, normal)
    else:
        prob = 0.0
    return BSDFSample(direction=dir2, value=value, pdf=prob, is_discrete=0)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_MICROFACET_MATERIALS = 256

microfacet_materials = MicrofacetMaterial.field(shape=MAX_MICROFACET_MATERIALS)
num_microfacet_materials = ti.field(dtype=ti.i32, shape=())


def clear_microfacet_materials() -> None:
    """Clear all microfacet materials."""
    num_microfacet_materials[None] = 0


def add_microfacet_material(
    diffuse: tuple[float, float, float],
    specular: tuple[float, float, float] = (1.0, 1.0, 1.0),
    roughness: float = 0.5,
    ior: float = 1.5,
    distribution: DistributionType = DistributionType.BECKMANN,
) -> int:
    """Add a microfacet material to the material registry.

    Args:
        diffuse: Diffuse reflectance as (R, G, B), each in [0, 1].
        specular: Specular color as (R, G, B), each in [0, 1].
        roughness: Distribution width alpha, must be positive.
        ior: Relative refractive index for the Fresnel factor, must be positive.
        distribution: Which normal distribution to use.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If a parameter is out of range.
    """
    validate_reflectance(diffuse, "diffuse")
    validate_reflectance(specular, "specular")
    if roughness <= 0.0:
        raise ValueError(f"Microfacet roughness must be positive, got {roughness}")
    if ior <= 0.0:
        raise ValueError(f"Index of refraction must be positive, got {ior}")
    distribution = DistributionType(distribution)

    idx = num_microfacet_materials[None]
    if idx >= MAX_MICROFACET_MATERIALS:
        raise RuntimeError(
            f"Maximum number of microfacet materials ({MAX_MICROFACET_MATERIALS}) exceeded"
        )

    microfacet_materials.diffuse[idx] = [diffuse[0], diffuse[1], diffuse[2]]
    microfacet_materials.specular[idx] = [specular[0], specular[1], specular[2]]
    microfacet_materials.alpha[idx] = roughness
    microfacet_materials.ior[idx] = ior
    microfacet_materials.distribution[idx] = int(distribution)
    num_microfacet_materials[None] = idx + 1
    logger.debug(
        "Microfacet material %d: %s alpha=%g ior=%g", idx, distribution.name, roughness, ior
    )
    return idx


def get_microfacet_material_count() -> int:
    """Get the number of microfacet materials in the registry."""
    return int(num_microfacet_materials[None])


@ti.func
def get_microfacet_material(material_idx: ti.i32) -> MicrofacetMaterial:
    """Get the parameters of a microfacet material by index."""
    return microfacet_materials[material_idx]
