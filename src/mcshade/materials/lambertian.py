"""Lambertian (ideal diffuse) BSDF.

The Lambertian BSDF scatters uniformly, weighted by the cosine to the
normal:

    f(dir1, dir2) = reflectance / pi     (both directions above the surface)

Sampling uses the cosine-weighted hemisphere warp, so the density of a
generated direction is cos(theta) / pi and never discrete.

Example:
    >>> from mcshade.materials.lambertian import add_lambertian_material
    >>> idx = add_lambertian_material((0.8, 0.3, 0.3))
    >>> # Within a Taichi kernel:
    >>> # s = sample_lambertian(get_lambertian_reflectance(idx), dir1, n, seed)
"""

import logging

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import sample_cosine_hemisphere, vec2, vec3

from .record import BSDFSample

logger = logging.getLogger(__name__)


@ti.func
def eval_lambertian(reflectance: vec3, dir1: vec3, dir2: vec3, normal: vec3) -> vec3:
    """Evaluate the Lambertian BSDF.

    Args:
        reflectance: The diffuse reflectance color (RGB).
        dir1: First direction, pointing away from the surface.
        dir2: Second direction, pointing away from the surface.
        normal: The surface normal (normalized).

    Returns:
        reflectance / pi when both directions are on the front side,
        zero otherwise.
    """
    result = vec3(0.0, 0.0, 0.0)
    if tm.dot(dir1, normal) >= 0.0 and tm.dot(dir2, normal) >= 0.0:
        result = reflectance / tm.pi
    return result


@ti.func
def pdf_lambertian(dir1: vec3, dir2: vec3, normal: vec3) -> ti.f64:
    """Density of cosine-weighted sampling: max(cos(theta), 0) / pi.

    ``dir1`` does not affect the density; it is accepted so that every
    BSDF shares the same pdf signature.
    """
    cos_theta = tm.dot(dir2, normal)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def sample_lambertian(reflectance: vec3, dir1: vec3, normal: vec3, seed: vec2) -> BSDFSample:
    """Sample a direction from the cosine-weighted hemisphere.

    Args:
        reflectance: The diffuse reflectance color (RGB).
        dir1: The fixed direction (unused by the warp).
        normal: The surface normal at the hit point (normalized).
        seed: Two uniform random numbers in [0, 1).

    Returns:
        A BSDFSample with value reflectance / pi and pdf cos(theta) / pi.
    """
    direction, pdf = sample_cosine_hemisphere(normal, seed)
    value = eval_lambertian(reflectance, dir1, direction, normal)
    if pdf <= 0.0:
        value = vec3(0.0, 0.0, 0.0)
    return BSDFSample(direction=direction, value=value, pdf=pdf, is_discrete=0)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 256

# Storage for Lambertian material properties
lambertian_reflectances = ti.Vector.field(3, dtype=ti.f64, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials."""
    num_lambertian_materials[None] = 0


def validate_reflectance(color, name: str = "reflectance") -> None:
    """Reject colors with components outside [0, 1].

    Raises:
        ValueError: If the color does not have three components in [0, 1].
    """
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"{name} component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )


def add_lambertian_material(reflectance: tuple[float, float, float]) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        reflectance: The diffuse reflectance color as (R, G, B), each in [0, 1].

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any reflectance component is outside [0, 1].
    """
    validate_reflectance(reflectance)

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_reflectances[idx] = [reflectance[0], reflectance[1], reflectance[2]]
    num_lambertian_materials[None] = idx + 1
    logger.debug("Lambertian material %d: reflectance=%s", idx, reflectance)
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_reflectance(material_idx: ti.i32) -> vec3:
    """Get the reflectance for a Lambertian material by index."""
    return lambertian_reflectances[material_idx]
