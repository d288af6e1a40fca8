"""Shading integrators for Monte Carlo light transport.

This module turns a ray and its nearest intersection into an estimate of the
radiance travelling back along the ray. Five strategies are provided:

    REFLECTANCE     Diffuse reflectance of the hit material (debug view).
    POINT_LIGHT     Deterministic sum over point lights with shadow tests.
    LIGHT_SAMPLING  Next-event estimation: sample every light and the
                    environment, plus emission of the hit surface.
    BSDF_SAMPLING   Sample the BSDF once and collect whatever emitter or
                    environment the sampled ray reaches.
    MIS             Combine light and BSDF sampling with the balance
                    heuristic. Area-light densities are converted to solid
                    angle (pdf_area * d^2 / |cos_source|) before combining.

Every strategy except REFLECTANCE and POINT_LIGHT follows discrete BSDF
samples (mirror, glass, glaze coat) with one more ray per bounce; glossy
and diffuse interreflection is not traced. Each such bounce counts one
depth level and contributions stop once depth exceeds ``max_depth``.

Point lights can never be hit by rays, so every strategy that handles
point lights samples them directly.

Example:
    >>> from mcshade.core.runtime import init
    >>> init()
    >>> from mcshade.scene.manager import SceneManager
    >>> from mcshade.core.integrator import estimate_radiance
    >>> scene = SceneManager()
    >>> scene.add_lambertian_sphere((0, 0, 0), 1.0, (0.5, 0.5, 0.5))
    >>> scene.add_point_light((0, 3, 0), (10, 10, 10))
    >>> estimate_radiance((0, 5, 0), (0, -1, 0), integrator="point_light")
"""

import logging
import math
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import (
    Ray,
    make_offset_ray,
    make_offset_segment,
    make_ray,
    safe_normalize,
    vec2,
    vec3,
)
from mcshade.lights.environment import env_eval, env_pdf, env_sample
from mcshade.lights.sampling import (
    get_num_lights,
    is_delta_light,
    light_eval,
    light_pdf,
    light_sample,
)
from mcshade.materials.bsdf import (
    MaterialType,
    bsdf_diffuse_reflectance,
    bsdf_eval,
    bsdf_pdf,
    bsdf_sample,
    get_material_type,
)
from mcshade.scene.intersection import SceneHitRecord, intersect_scene, intersect_scene_any

logger = logging.getLogger(__name__)


class IntegratorType(IntEnum):
    """Available shading strategies."""

    REFLECTANCE = 0
    POINT_LIGHT = 1
    LIGHT_SAMPLING = 2
    BSDF_SAMPLING = 3
    MIS = 4


DEFAULT_INTEGRATOR = IntegratorType.LIGHT_SAMPLING

# Default bound on discrete (specular) bounces
DEFAULT_MAX_DEPTH = 8

_estimate_sum = ti.Vector.field(3, dtype=ti.f64, shape=())


# =============================================================================
# Shared helpers
# =============================================================================


@ti.func
def _random_seed() -> vec2:
    return vec2(ti.random(ti.f64), ti.random(ti.f64))


@ti.func
def is_shadowed(point: vec3, normal: vec3, direction: vec3, distance: ti.f64) -> ti.i32:
    """Test whether anything blocks the segment from ``point`` toward a light.

    The segment starts just off the surface and stops just short of
    ``distance``, so neither the shading surface nor the light's own
    geometry counts as an occluder.
    """
    return intersect_scene_any(make_offset_segment(point, normal, direction, distance))


@ti.func
def _is_blocked(point: vec3, normal: vec3, direction: vec3) -> ti.i32:
    """Shadow test toward the environment (unbounded)."""
    return intersect_scene_any(make_offset_ray(point, normal, direction))


@ti.func
def _shading_normal(rec: SceneHitRecord, to_eye: vec3) -> vec3:
    """Normal used for shading at a hit.

    Glass decides inside/outside from the outward normal itself; every other
    material is shaded on the side the ray arrived from.
    """
    n = rec.normal
    if get_material_type(rec.material_id) != int(MaterialType.GLASS):
        if tm.dot(n, to_eye) < 0.0:
            n = -n
    return n


@ti.func
def _emitted(rec: SceneHitRecord, ray_direction: vec3) -> vec3:
    """Radiance emitted toward the viewer if the hit surface belongs to a light."""
    result = vec3(0.0, 0.0, 0.0)
    if rec.light_id >= 0:
        result = light_eval(rec.light_id, ray_direction)
    return result


@ti.func
def _point_lights(rec: SceneHitRecord, to_eye: vec3, n: vec3) -> vec3:
    """Contribution of all point lights at a hit, with shadow tests."""
    result = vec3(0.0, 0.0, 0.0)
    for light_id in range(get_num_lights()):
        if is_delta_light(light_id) == 1:
            ls = light_sample(light_id, rec.point, vec2(0.5, 0.5))
            cos_theta = tm.dot(n, ls.direction)
            if ls.attenuation > 0.0 and cos_theta > 0.0:
                if is_shadowed(rec.point, rec.normal, ls.direction, ls.distance) == 0:
                    radiance = light_eval(light_id, ls.direction)
                    f = bsdf_eval(rec.material_id, to_eye, ls.direction, n)
                    result += radiance * f * cos_theta * ls.attenuation / ls.probability
    return result


@ti.func
def _area_lights_sampled(rec: SceneHitRecord, to_eye: vec3, n: vec3, use_mis: ti.template()) -> vec3:
    """Light-sampling estimate for every area light.

    With ``use_mis`` the estimate carries the balance-heuristic weight
    against BSDF sampling of the same direction.
    """
    result = vec3(0.0, 0.0, 0.0)
    for light_id in range(get_num_lights()):
        if is_delta_light(light_id) == 0:
            ls = light_sample(light_id, rec.point, _random_seed())
            cos_theta = tm.dot(n, ls.direction)
            if ls.attenuation > 0.0 and ls.probability > 0.0 and cos_theta > 0.0:
                if is_shadowed(rec.point, rec.normal, ls.direction, ls.distance) == 0:
                    radiance = light_eval(light_id, ls.direction)
                    f = bsdf_eval(rec.material_id, to_eye, ls.direction, n)
                    # attenuation / probability is 1 / pdf in solid angle
                    pdf_light = ls.probability / ls.attenuation
                    pdf_total = pdf_light
                    if ti.static(use_mis):
                        pdf_total += bsdf_pdf(rec.material_id, to_eye, ls.direction, n)
                    result += radiance * f * cos_theta / pdf_total
    return result


@ti.func
def _environment_sampled(rec: SceneHitRecord, to_eye: vec3, n: vec3, use_mis: ti.template()) -> vec3:
    """Light-sampling estimate for the environment."""
    result = vec3(0.0, 0.0, 0.0)
    es = env_sample(_random_seed())
    cos_theta = tm.dot(n, es.direction)
    if es.pdf > 0.0 and cos_theta > 0.0:
        if _is_blocked(rec.point, rec.normal, es.direction) == 0:
            f = bsdf_eval(rec.material_id, to_eye, es.direction, n)
            pdf_total = es.pdf
            if ti.static(use_mis):
                pdf_total += bsdf_pdf(rec.material_id, to_eye, es.direction, n)
            result = es.radiance * f * cos_theta / pdf_total
    return result


@ti.func
def _bsdf_sampled(rec: SceneHitRecord, n: vec3, s, use_mis: ti.template()) -> vec3:
    """BSDF-sampling estimate from a continuous sample ``s``.

    The sampled ray collects the environment if it escapes, or the emitted
    radiance of an area light it hits.
    """
    result = vec3(0.0, 0.0, 0.0)
    cos_theta = ti.abs(tm.dot(n, s.direction))
    if s.is_discrete == 0 and s.pdf > 0.0 and cos_theta > 0.0:
        hit = intersect_scene(make_offset_ray(rec.point, rec.normal, s.direction))
        radiance = vec3(0.0, 0.0, 0.0)
        pdf_light = 0.0
        if hit.hit == 0:
            radiance = env_eval(s.direction)
            if ti.static(use_mis):
                pdf_light = env_pdf(s.direction)
        elif hit.light_id >= 0:
            radiance = light_eval(hit.light_id, s.direction)
            if ti.static(use_mis):
                cos_source = ti.abs(tm.dot(hit.normal, s.direction))
                if cos_source > 0.0:
                    pdf_light = light_pdf(hit.light_id, s.direction) * hit.t * hit.t / cos_source
        result = radiance * s.value * cos_theta / (s.pdf + pdf_light)
    return result


@ti.func
def _local_radiance(strategy: ti.template(), rec: SceneHitRecord, ray_direction: vec3, to_eye: vec3, n: vec3, s):
    """Everything a strategy gathers at one hit, apart from discrete bounces."""
    result = vec3(0.0, 0.0, 0.0)
    if ti.static(strategy == IntegratorType.LIGHT_SAMPLING):
        result = _emitted(rec, ray_direction)
        result += _point_lights(rec, to_eye, n)
        result += _area_lights_sampled(rec, to_eye, n, False)
        result += _environment_sampled(rec, to_eye, n, False)
    elif ti.static(strategy == IntegratorType.BSDF_SAMPLING):
        result = _emitted(rec, ray_direction)
        result += _point_lights(rec, to_eye, n)
        result += _bsdf_sampled(rec, n, s, False)
    elif ti.static(strategy == IntegratorType.MIS):
        result = _emitted(rec, ray_direction)
        result += _point_lights(rec, to_eye, n)
        result += _area_lights_sampled(rec, to_eye, n, True)
        result += _environment_sampled(rec, to_eye, n, True)
        result += _bsdf_sampled(rec, n, s, True)
    return result


# =============================================================================
# Entry point
# =============================================================================


@ti.func
def shade(strategy: ti.template(), ray: Ray, rec: SceneHitRecord, depth: ti.i32, max_depth: ti.i32) -> vec3:
    """Estimate the radiance travelling back along ``ray``.

    Args:
        strategy: IntegratorType value, resolved at compile time.
        ray: The ray that produced ``rec``.
        rec: Nearest intersection of ``ray`` (a miss sees the environment).
        depth: Depth of ``ray``; 0 for camera rays.
        max_depth: Contributions from rays deeper than this are zero.

    Returns:
        The radiance estimate (RGB).
    """
    result = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    direction = safe_normalize(ray.direction)
    current = rec
    active = 1

    for level in range(depth, max_depth + 1):
        if active == 1:
            if current.hit == 0:
                result += throughput * env_eval(direction)
                active = 0
            elif ti.static(strategy == IntegratorType.REFLECTANCE):
                result += throughput * bsdf_diffuse_reflectance(current.material_id)
                active = 0
            elif ti.static(strategy == IntegratorType.POINT_LIGHT):
                to_eye = -direction
                n = _shading_normal(current, to_eye)
                result += throughput * _point_lights(current, to_eye, n)
                active = 0
            else:
                to_eye = -direction
                n = _shading_normal(current, to_eye)
                s = bsdf_sample(current.material_id, to_eye, n, _random_seed())
                result += throughput * _local_radiance(strategy, current, direction, to_eye, n, s)

                # Light sampling uses s only to follow discrete reflection
                if s.is_discrete == 1 and s.pdf > 0.0 and level < max_depth:
                    cos_theta = ti.abs(tm.dot(n, s.direction))
                    throughput *= s.value * cos_theta / s.pdf
                    next_ray = make_offset_ray(current.point, current.normal, s.direction)
                    direction = s.direction
                    current = intersect_scene(next_ray)
                else:
                    active = 0
    return result


@ti.func
def trace(strategy: ti.template(), origin: vec3, direction: vec3, max_depth: ti.i32) -> vec3:
    """Intersect a camera ray with the scene and shade it."""
    ray = make_ray(origin, direction)
    return shade(strategy, ray, intersect_scene(ray), 0, max_depth)


# =============================================================================
# Estimation kernels
# =============================================================================


@ti.kernel
def _estimate_kernel(
    strategy: ti.template(),
    origin: vec3,
    direction: vec3,
    num_samples: ti.i32,
    max_depth: ti.i32,
):
    """Accumulate ``num_samples`` independent estimates into _estimate_sum."""
    for _ in range(num_samples):
        color = trace(strategy, origin, direction, max_depth)
        _estimate_sum[None] += color


def _resolve_integrator(integrator) -> IntegratorType:
    if isinstance(integrator, str):
        try:
            return IntegratorType[integrator.upper()]
        except KeyError:
            raise ValueError(f"Unknown integrator: {integrator}") from None
    try:
        return IntegratorType(integrator)
    except ValueError:
        raise ValueError(f"Unknown integrator: {integrator}") from None


def _normalized_direction(direction) -> tuple[float, float, float]:
    length = math.sqrt(sum(float(c) * float(c) for c in direction))
    if length == 0.0:
        raise ValueError("Ray direction must be non-zero")
    return (direction[0] / length, direction[1] / length, direction[2] / length)


def estimate_radiance(
    origin,
    direction,
    integrator=DEFAULT_INTEGRATOR,
    num_samples: int = 64,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> tuple[float, float, float]:
    """Mean of independent radiance estimates along a camera ray.

    Args:
        origin: Ray origin (x, y, z).
        direction: Ray direction (x, y, z), normalized internally.
        integrator: IntegratorType or its name (case-insensitive).
        num_samples: Number of estimates to average, positive.
        max_depth: Bound on discrete bounces, non-negative.

    Returns:
        Tuple of (R, G, B) radiance.

    Raises:
        ValueError: If the integrator is unknown, num_samples is not
            positive, max_depth is negative or the direction is zero.
    """
    strategy = _resolve_integrator(integrator)
    if num_samples <= 0:
        raise ValueError(f"num_samples must be positive, got {num_samples}")
    if max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")
    unit = _normalized_direction(direction)
    logger.debug("Estimating radiance with %s, %d samples, max depth %d", strategy.name, num_samples, max_depth)

    _estimate_sum[None] = [0.0, 0.0, 0.0]
    _estimate_kernel(
        int(strategy),
        vec3(origin[0], origin[1], origin[2]),
        vec3(unit[0], unit[1], unit[2]),
        num_samples,
        max_depth,
    )
    total = _estimate_sum[None]
    return (
        float(total[0]) / num_samples,
        float(total[1]) / num_samples,
        float(total[2]) / num_samples,
    )


def shade_ray(
    origin,
    direction,
    integrator=DEFAULT_INTEGRATOR,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> tuple[float, float, float]:
    """One stochastic radiance estimate along a camera ray.

    Rays that miss the scene return the environment radiance (black when no
    environment is set).

    Raises:
        ValueError: If the integrator is unknown, max_depth is negative or
            the direction is zero.
    """
    return estimate_radiance(origin, direction, integrator, num_samples=1, max_depth=max_depth)
