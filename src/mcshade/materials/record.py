"""Result record returned by every BSDF sampler."""

import taichi as ti

from mcshade.core.ray import vec3


@ti.dataclass
class BSDFSample:
    """Outcome of sampling a BSDF for a fixed direction.

    Attributes:
        direction: The generated direction (dir2), pointing away from the
            surface.
        value: BSDF value for (dir1, direction). For discrete samples this
            is the radiance-scaled weight whose product with cos(theta) and
            division by ``pdf`` yields the branch weight.
        pdf: Solid-angle density for continuous samples; probability mass
            of the chosen branch for discrete samples. 0 marks a failed
            sample that contributes nothing.
        is_discrete: 1 if the sample came from a delta component.
    """

    direction: vec3
    value: vec3
    pdf: ti.f64
    is_discrete: ti.i32


@ti.func
def make_null_sample() -> BSDFSample:
    """A zero-weight sample."""
    return BSDFSample(
        direction=vec3(0.0, 0.0, 0.0),
        value=vec3(0.0, 0.0, 0.0),
        pdf=0.0,
        is_discrete=0,
    )
