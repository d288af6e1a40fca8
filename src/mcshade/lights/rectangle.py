"""Rectangle light: a one-sided area source with constant radiance.

The rectangle is framed like a camera. ``normal_dir`` is the direction the
light faces and ``up_dir`` fixes the height axis. From these the registry
derives an orthonormal basis:

    W = normalize(-normal_dir)
    U = normalize(up_dir x W)
    V = normalize(W x U)

The emitting surface spans ``width`` along U and ``height`` along V,
centred on ``position``. Points are sampled uniformly over that area, so
the density with respect to area is 1 / (width * height). The light only
illuminates points on the side ``normal_dir`` points to.

The matching parallelogram is exposed by ``rectangle_light_quad`` so the
scene can register it as emissive geometry that rays can hit directly.

Example:
    >>> from mcshade.lights.rectangle import add_rectangle_light
    >>> idx = add_rectangle_light((0.0, 2.0, 0.0), (0.0, -1.0, 0.0), (0.0, 0.0, 1.0),
    ...                           1.0, 1.0, (5.0, 5.0, 5.0))
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from mcshade.core.ray import vec2, vec3

from .point import validate_intensity
from .record import LightSample

logger = logging.getLogger(__name__)


@ti.dataclass
class RectangleLight:
    """Parameters and derived basis of a rectangle light.

    Attributes:
        position: Centre of the rectangle.
        normal_dir: Direction the light faces.
        basis_u: Width axis.
        basis_v: Height axis.
        basis_w: Unit vector opposite ``normal_dir``.
        width: Extent along ``basis_u``.
        height: Extent along ``basis_v``.
        intensity: Emitted radiance (RGB).
    """

    position: vec3
    normal_dir: vec3
    basis_u: vec3
    basis_v: vec3
    basis_w: vec3
    width: ti.f64
    height: ti.f64
    intensity: vec3


@ti.func
def eval_rectangle_light(light: RectangleLight, direction: vec3) -> vec3:
    """Radiance seen along ``direction`` (shading point toward the light).

    Only the front face emits: the result is zero unless the direction
    opposes ``normal_dir``.
    """
    result = vec3(0.0, 0.0, 0.0)
    if tm.dot(direction, light.normal_dir) < 0.0:
        result = light.intensity
    return result


@ti.func
def sample_rectangle_light(light: RectangleLight, point: vec3, seed: vec2) -> LightSample:
    """Pick a uniformly distributed point on the rectangle.

    Both the source cosine and the squared distance in the attenuation are
    measured to the sampled point, not to the rectangle's centre.

    Args:
        light: The rectangle light.
        point: The shading point.
        seed: Two uniform random numbers in [0, 1).

    Returns:
        A LightSample with probability 1 / (width * height).
    """
    light_point = (
        light.position
        + light.width * (seed.x - 0.5) * light.basis_u
        + light.height * (seed.y - 0.5) * light.basis_v
    )
    offset = light_point - point
    dist_sq = tm.dot(offset, offset)
    distance = ti.sqrt(dist_sq)
    direction = vec3(0.0, 0.0, 0.0)
    attenuation = 0.0
    if dist_sq > 0.0:
        direction = offset / distance
        attenuation = ti.max(0.0, tm.dot(direction, light.basis_w)) / dist_sq
    return LightSample(
        direction=direction,
        distance=distance,
        attenuation=attenuation,
        probability=1.0 / (light.width * light.height),
    )


@ti.func
def pdf_rectangle_light(light: RectangleLight) -> ti.f64:
    """Density with respect to area of any point on the rectangle."""
    return 1.0 / (light.width * light.height)


# =============================================================================
# Light Field Storage
# =============================================================================

MAX_RECTANGLE_LIGHTS = 256

rectangle_lights = RectangleLight.field(shape=MAX_RECTANGLE_LIGHTS)
num_rectangle_lights = ti.field(dtype=ti.i32, shape=())


def compute_rectangle_basis(normal_dir, up_dir) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build the (U, V, W) basis of a rectangle light.

    Raises:
        ValueError: If ``normal_dir`` is zero or parallel to ``up_dir``.
    """
    normal = np.array(normal_dir, dtype=np.float64)
    up = np.array(up_dir, dtype=np.float64)

    normal_len = np.linalg.norm(normal)
    if normal_len == 0.0:
        raise ValueError("Rectangle light normal direction must be non-zero")
    w = -normal / normal_len

    u = np.cross(up, w)
    u_len = np.linalg.norm(u)
    if u_len < 1e-12:
        raise ValueError(f"Up direction {tuple(up_dir)} is parallel to normal {tuple(normal_dir)}")
    u = u / u_len

    v = np.cross(w, u)
    v = v / np.linalg.norm(v)
    return u, v, w


def rectangle_light_quad(position, normal_dir, up_dir, width: float, height: float):
    """The parallelogram (corner, edge_u, edge_v) covered by a rectangle light.

    The quad's normal, edge_u x edge_v, points along W (away from the lit
    side); intersection reports outward normals either way, so only the
    surface's extent matters.
    """
    u, v, _ = compute_rectangle_basis(normal_dir, up_dir)
    center = np.array(position, dtype=np.float64)
    corner = center - 0.5 * width * u - 0.5 * height * v
    return tuple(corner.tolist()), tuple((width * u).tolist()), tuple((height * v).tolist())


def clear_rectangle_lights() -> None:
    """Clear all rectangle lights."""
    num_rectangle_lights[None] = 0


def add_rectangle_light(
    position: tuple[float, float, float],
    normal_dir: tuple[float, float, float] = (0.0, 0.0, -1.0),
    up_dir: tuple[float, float, float] = (0.0, 1.0, 0.0),
    width: float = 1.0,
    height: float = 1.0,
    intensity: tuple[float, float, float] = (1.0, 1.0, 1.0),
) -> int:
    """Add a rectangle light to the light registry.

    Only the light itself is stored here; the scene manager also registers
    the emissive quad.

    Args:
        position: Centre of the rectangle.
        normal_dir: Direction the light faces.
        up_dir: Direction of the height axis.
        width: Extent along the width axis, must be positive.
        height: Extent along the height axis, must be positive.
        intensity: Emitted radiance (RGB), non-negative.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of rectangle lights is exceeded.
        ValueError: If a parameter is out of range or the frame is degenerate.
    """
    if width <= 0.0 or height <= 0.0:
        raise ValueError(f"Rectangle light size must be positive, got {width} x {height}")
    validate_intensity(intensity)
    u, v, w = compute_rectangle_basis(normal_dir, up_dir)

    idx = num_rectangle_lights[None]
    if idx >= MAX_RECTANGLE_LIGHTS:
        raise RuntimeError(f"Maximum number of rectangle lights ({MAX_RECTANGLE_LIGHTS}) exceeded")

    rectangle_lights.position[idx] = [position[0], position[1], position[2]]
    rectangle_lights.normal_dir[idx] = [normal_dir[0], normal_dir[1], normal_dir[2]]
    rectangle_lights.basis_u[idx] = u.tolist()
    rectangle_lights.basis_v[idx] = v.tolist()
    rectangle_lights.basis_w[idx] = w.tolist()
    rectangle_lights.width[idx] = width
    rectangle_lights.height[idx] = height
    rectangle_lights.intensity[idx] = [intensity[0], intensity[1], intensity[2]]
    num_rectangle_lights[None] = idx + 1
    logger.debug("Rectangle light %d: %gx%g at %s facing %s", idx, width, height, position, normal_dir)
    return idx


def get_rectangle_light_count() -> int:
    """Get the number of rectangle lights in the registry."""
    return int(num_rectangle_lights[None])


@ti.func
def get_rectangle_light(light_idx: ti.i32) -> RectangleLight:
    return rectangle_lights[light_idx]
