"""Unified light ids and light dispatch.

Lights are stored per variant (point, rectangle). This module maps a
unified light id to (LightType, type-local index) and routes ``eval``,
``sample`` and ``pdf`` to the variant. Integrators loop over
``0 <= light_id < get_num_lights()`` and use ``is_delta_light`` to tell
sources that can only be sampled (point lights) from sources rays can hit.

Example:
    >>> from mcshade.lights.sampling import LightType, register_light
    >>> # Within a Taichi kernel:
    >>> # for light_id in range(get_num_lights()):
    >>> #     ls = light_sample(light_id, rec.point, seed)
"""

import logging
from enum import IntEnum

import taichi as ti

from mcshade.core.ray import vec2, vec3

from .point import get_point_light_intensity, get_point_light_position, sample_point_light
from .record import LightSample, make_null_light_sample
from .rectangle import (
    eval_rectangle_light,
    get_rectangle_light,
    pdf_rectangle_light,
    sample_rectangle_light,
)

logger = logging.getLogger(__name__)


class LightType(IntEnum):
    """Enumeration of supported light types."""

    POINT = 0
    RECTANGLE = 1


MAX_LIGHTS = 512

light_types = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_type_indices = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_light_registry() -> None:
    """Forget every unified light id."""
    num_lights[None] = 0


def register_light(light_type: LightType, type_index: int) -> int:
    """Assign the next unified light id to a variant-local light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
    """
    light_id = num_lights[None]
    if light_id >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_types[light_id] = int(light_type)
    light_type_indices[light_id] = type_index
    num_lights[None] = light_id + 1
    logger.debug("Light id %d -> %s[%d]", light_id, LightType(light_type).name, type_index)
    return light_id


def get_light_count() -> int:
    """Get the number of registered lights."""
    return int(num_lights[None])


@ti.func
def get_num_lights() -> ti.i32:
    return num_lights[None]


@ti.func
def get_light_type(light_id: ti.i32) -> ti.i32:
    """LightType of a light id, or -1 if the id is invalid."""
    result = -1
    if 0 <= light_id < num_lights[None]:
        result = light_types[light_id]
    return result


@ti.func
def is_delta_light(light_id: ti.i32) -> ti.i32:
    """1 for sources that rays can never hit (point lights)."""
    result = 0
    if get_light_type(light_id) == int(LightType.POINT):
        result = 1
    return result


@ti.func
def light_eval(light_id: ti.i32, direction: vec3) -> vec3:
    """Radiance (or intensity, for point lights) along ``direction``.

    ``direction`` points from the shading point toward the light and is
    assumed to reach it.
    """
    light_type = get_light_type(light_id)
    idx = light_type_indices[ti.max(light_id, 0)]
    result = vec3(0.0, 0.0, 0.0)
    if light_type == int(LightType.POINT):
        result = get_point_light_intensity(idx)
    elif light_type == int(LightType.RECTANGLE):
        result = eval_rectangle_light(get_rectangle_light(idx), direction)
    return result


@ti.func
def light_sample(light_id: ti.i32, point: vec3, seed: vec2) -> LightSample:
    """Sample a point on a light as seen from ``point``."""
    light_type = get_light_type(light_id)
    idx = light_type_indices[ti.max(light_id, 0)]
    result = make_null_light_sample()
    if light_type == int(LightType.POINT):
        result = sample_point_light(get_point_light_position(idx), point)
    elif light_type == int(LightType.RECTANGLE):
        result = sample_rectangle_light(get_rectangle_light(idx), point, seed)
    assert result.probability >= 0.0, "Light sample produced a negative or NaN probability"
    return result


@ti.func
def light_pdf(light_id: ti.i32, direction: vec3) -> ti.f64:
    """Probability (point lights) or area density (area lights) of a sample.

    ``direction`` is accepted for symmetry with ``light_eval``; neither
    variant's density depends on it.
    """
    light_type = get_light_type(light_id)
    idx = light_type_indices[ti.max(light_id, 0)]
    result = 0.0
    if light_type == int(LightType.POINT):
        result = 1.0
    elif light_type == int(LightType.RECTANGLE):
        result = pdf_rectangle_light(get_rectangle_light(idx))
    return result
