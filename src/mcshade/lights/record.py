"""Result records returned by light and environment samplers."""

import taichi as ti

from mcshade.core.ray import vec3


@ti.dataclass
class LightSample:
    """Outcome of sampling a light source from a shading point.

    Attributes:
        direction: Unit direction from the shading point toward the sampled
            point on the light.
        distance: Distance from the shading point to the sampled point.
        attenuation: Geometric falloff. Inverse-square for point lights;
            area lights also fold in the cosine at the source.
        probability: 1 for point lights (a delta light is always chosen);
            density with respect to area for area lights.
    """

    direction: vec3
    distance: ti.f64
    attenuation: ti.f64
    probability: ti.f64


@ti.func
def make_null_light_sample() -> LightSample:
    """A sample that contributes nothing."""
    return LightSample(direction=vec3(0.0, 0.0, 0.0), distance=0.0, attenuation=0.0, probability=0.0)


@ti.dataclass
class EnvironmentSample:
    """Outcome of importance sampling the environment.

    Attributes:
        direction: Unit direction toward the environment.
        radiance: Radiance arriving from that direction (scaled).
        pdf: Solid-angle density of the direction.
    """

    direction: vec3
    radiance: vec3
    pdf: ti.f64
