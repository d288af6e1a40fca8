"""Point light: an infinitely small source emitting equally in all directions.

A point light is a delta source. It can only be reached by explicit
sampling, so it is chosen with probability 1 and its intensity falls off
with the inverse square of the distance.

Example:
    >>> from mcshade.lights.point import add_point_light
    >>> idx = add_point_light((0.0, 3.0, 0.0), (10.0, 10.0, 10.0))
"""

import logging

import taichi as ti
import taichi.math as tm

from mcshade.core.ray import vec3

from .record import LightSample

logger = logging.getLogger(__name__)


@ti.func
def sample_point_light(position: vec3, point: vec3) -> LightSample:
    """Sample the light's position as seen from ``point``.

    Args:
        position: Position of the light.
        point: The shading point.

    Returns:
        A LightSample with attenuation 1 / d^2 and probability 1. A light
        coinciding with the shading point yields a zero sample.
    """
    offset = position - point
    dist_sq = tm.dot(offset, offset)
    distance = ti.sqrt(dist_sq)
    direction = vec3(0.0, 0.0, 0.0)
    attenuation = 0.0
    if dist_sq > 0.0:
        direction = offset / distance
        attenuation = 1.0 / dist_sq
    return LightSample(direction=direction, distance=distance, attenuation=attenuation, probability=1.0)


# =============================================================================
# Light Field Storage
# =============================================================================

MAX_POINT_LIGHTS = 256

point_light_positions = ti.Vector.field(3, dtype=ti.f64, shape=MAX_POINT_LIGHTS)
point_light_intensities = ti.Vector.field(3, dtype=ti.f64, shape=MAX_POINT_LIGHTS)
num_point_lights = ti.field(dtype=ti.i32, shape=())


def validate_intensity(intensity, name: str = "intensity") -> None:
    """Reject intensities that are not three non-negative components.

    Raises:
        ValueError: If the intensity is malformed or negative.
    """
    if len(intensity) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(intensity)}")
    for i, component in enumerate(intensity):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} must be non-negative")


def clear_point_lights() -> None:
    """Clear all point lights."""
    num_point_lights[None] = 0


def add_point_light(
    position: tuple[float, float, float],
    intensity: tuple[float, float, float] = (1.0, 1.0, 1.0),
) -> int:
    """Add a point light to the light registry.

    Args:
        position: Where the light is located.
        intensity: Emitted intensity (RGB), non-negative.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of point lights is exceeded.
        ValueError: If the intensity is negative.
    """
    validate_intensity(intensity)

    idx = num_point_lights[None]
    if idx >= MAX_POINT_LIGHTS:
        raise RuntimeError(f"Maximum number of point lights ({MAX_POINT_LIGHTS}) exceeded")

    point_light_positions[idx] = [position[0], position[1], position[2]]
    point_light_intensities[idx] = [intensity[0], intensity[1], intensity[2]]
    num_point_lights[None] = idx + 1
    logger.debug("Point light %d at %s, intensity=%s", idx, position, intensity)
    return idx


def get_point_light_count() -> int:
    """Get the number of point lights in the registry."""
    return int(num_point_lights[None])


@ti.func
def get_point_light_position(light_idx: ti.i32) -> vec3:
    return point_light_positions[light_idx]


@ti.func
def get_point_light_intensity(light_idx: ti.i32) -> vec3:
    return point_light_intensities[light_idx]
