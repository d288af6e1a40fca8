"""Importance-sampled cubemap environment.

The environment maps every direction leaving the scene to a radiance. It is
stored as a vertical-cross cubemap: an image of 3B x 4B pixels for a face
size B, with the six faces laid out in a 3 x 4 grid of B x B cells
(column, row):

    face 0 (+x): (2, 2)    face 1 (-x): (0, 2)
    face 2 (+y): (1, 3)    face 3 (-y): (1, 1)
    face 4 (+z): (1, 0)    face 5 (-z): (1, 2)

Within a face, (u, v) in [-1, 1]^2 are the coordinates on the unit cube's
face. The image is read in stored row order: pixel ``ix + width * iy`` lies
in the ``iy``-th row of the file.

Sampling picks a pixel with probability proportional to

    max(r, g, b) / (1 + u^2 + v^2)^(3/2)

which is its brightest channel times the solid angle it subtends, through
a binary search of the cumulative table, then jitters uniformly within the
pixel. The density of the resulting direction with respect to solid angle
is

    pdf = P(pixel) * (B^2 / 4) * (1 + u^2 + v^2)^(3/2)

evaluated at the jittered (u, v), which ``env_pdf`` reproduces exactly for
the same direction.

Example:
    >>> from mcshade.lights.environment import load_environment
    >>> load_environment("uffizi_cross.pfm", scale_factor=0.5)
    >>> # Within a Taichi kernel:
    >>> # s = env_sample(vec2(ti.random(), ti.random()))
"""

import logging
import math
from os import PathLike

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from mcshade.core.ray import safe_normalize, vec2, vec3

from .pfm import read_pfm
from .record import EnvironmentSample

logger = logging.getLogger(__name__)

# Largest supported face size; the image fields are preallocated for it
MAX_ENVIRONMENT_BLOCK = 256
MAX_ENVIRONMENT_PIXELS = 3 * MAX_ENVIRONMENT_BLOCK * 4 * MAX_ENVIRONMENT_BLOCK

# Face occupying each (row, column) cell of the cross, -1 for unused cells
LOCATION_FACES = ((-1, 4, -1), (-1, 3, -1), (1, 5, 0), (-1, 2, -1))

env_pixels = ti.Vector.field(3, dtype=ti.f64, shape=MAX_ENVIRONMENT_PIXELS)
# Cumulative pixel probabilities: env_cum_prob[k] = P(pixel < k), env_cum_prob[n] = 1
env_cum_prob = ti.field(dtype=ti.f64, shape=MAX_ENVIRONMENT_PIXELS + 1)
env_enabled = ti.field(dtype=ti.i32, shape=())
env_block_size = ti.field(dtype=ti.i32, shape=())
env_width = ti.field(dtype=ti.i32, shape=())
env_num_pixels = ti.field(dtype=ti.i32, shape=())
env_map_bits = ti.field(dtype=ti.i32, shape=())
env_scale_factor = ti.field(dtype=ti.f64, shape=())


# =============================================================================
# Python-side setup
# =============================================================================


def clear_environment() -> None:
    """Remove the environment; rays that miss the scene then see black."""
    env_enabled[None] = 0
    env_num_pixels[None] = 0


def has_environment() -> bool:
    """Whether an environment is currently set."""
    return bool(env_enabled[None])


def pixel_probabilities(image: npt.NDArray) -> npt.NDArray[np.float64]:
    """Unnormalized selection probability of every pixel of a cross cubemap.

    Args:
        image: Array of shape (4B, 3B, 3).

    Returns:
        Flat array of length 12 B^2 in pixel index order. Cells outside the
        cross have probability 0.
    """
    height, width = image.shape[:2]
    block = width // 3
    iy, ix = np.mgrid[0:height, 0:width]
    faces = np.array(LOCATION_FACES)[iy // block, ix // block]
    u = 2.0 * (ix % block + 0.5) / block - 1.0
    v = 2.0 * (iy % block + 0.5) / block - 1.0
    brightest = np.max(image.astype(np.float64), axis=2)
    prob = brightest / (1.0 + u * u + v * v) ** 1.5 / (block * block / 4.0) / (4.0 * math.pi)
    prob[faces < 0] = 0.0
    return prob.reshape(-1)


def set_environment_image(image: npt.ArrayLike, scale_factor: float = 1.0) -> None:
    """Install a cross cubemap as the environment.

    Args:
        image: Radiance image of shape (4B, 3B, 3), rows in stored order.
        scale_factor: Multiplier applied to every returned radiance.

    Raises:
        ValueError: If the image is not a vertical-cross cubemap, has
            negative radiance, or is black everywhere.
        RuntimeError: If the face size exceeds MAX_ENVIRONMENT_BLOCK.
    """
    pixels = np.asarray(image, dtype=np.float64)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Environment image must have shape (height, width, 3), got {pixels.shape}")
    height, width = pixels.shape[:2]
    if width % 3 != 0 or width == 0 or 3 * height != 4 * width:
        raise ValueError(f"Environment image {width}x{height} is not a 3:4 vertical cross")
    block = width // 3
    if block > MAX_ENVIRONMENT_BLOCK:
        raise RuntimeError(
            f"Environment face size {block} exceeds the maximum ({MAX_ENVIRONMENT_BLOCK})"
        )
    if not np.all(np.isfinite(pixels)) or np.any(pixels < 0.0):
        raise ValueError("Environment radiance must be finite and non-negative")

    n = width * height
    prob = pixel_probabilities(pixels)
    cum = np.zeros(MAX_ENVIRONMENT_PIXELS + 1, dtype=np.float64)
    cum[1 : n + 1] = np.cumsum(prob)
    total = cum[n]
    if total <= 0.0:
        raise ValueError("Environment image is black everywhere and cannot be sampled")
    cum[1 : n + 1] /= total
    cum[n + 1 :] = 1.0

    padded = np.zeros((MAX_ENVIRONMENT_PIXELS, 3), dtype=np.float64)
    padded[:n] = pixels.reshape(n, 3)
    env_pixels.from_numpy(padded)
    env_cum_prob.from_numpy(cum)

    map_bits = 0
    while (1 << map_bits) < n:
        map_bits += 1

    env_block_size[None] = block
    env_width[None] = width
    env_num_pixels[None] = n
    env_map_bits[None] = map_bits
    env_scale_factor[None] = scale_factor
    env_enabled[None] = 1
    logger.info("Environment set: %dx%d cross cubemap, face size %d", width, height, block)


def load_environment(path: str | PathLike, scale_factor: float = 1.0) -> None:
    """Load a cross cubemap from a PFM file and install it.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is malformed or not a cross cubemap.
        RuntimeError: If the face size exceeds MAX_ENVIRONMENT_BLOCK.
    """
    image = read_pfm(path)
    set_environment_image(image, scale_factor)
    logger.info("Environment loaded from %s", path)


def set_environment_scale(scale_factor: float) -> None:
    """Change the exposure multiplier of the current environment."""
    env_scale_factor[None] = scale_factor


# =============================================================================
# Cube face mapping
# =============================================================================


@ti.func
def dir_to_face(direction: vec3):
    """Find the cube face a direction passes through.

    Returns:
        A tuple (face, uv) with uv in [-1, 1]^2. The direction must be
        non-zero.
    """
    ax = ti.abs(direction.x)
    ay = ti.abs(direction.y)
    az = ti.abs(direction.z)
    face = 0
    uv = vec2(0.0, 0.0)
    if ax > ay and ax > az:
        face = 0
        if direction.x < 0.0:
            face = 1
        uv = vec2(direction.z / direction.x, direction.y / ax)
    elif ay > az:
        face = 2
        if direction.y < 0.0:
            face = 3
        uv = vec2(direction.x / ay, direction.z / direction.y)
    else:
        face = 4
        if direction.z < 0.0:
            face = 5
        uv = vec2(direction.x / az, -direction.y / direction.z)
    return face, uv


@ti.func
def face_to_dir(face: ti.i32, uv: vec2) -> vec3:
    """Unit direction through (u, v) on a cube face."""
    u = uv.x
    v = uv.y
    d = vec3(u, v, -1.0)
    if face == 0:
        d = vec3(1.0, v, u)
    elif face == 1:
        d = vec3(-1.0, v, -u)
    elif face == 2:
        d = vec3(u, 1.0, v)
    elif face == 3:
        d = vec3(u, -1.0, -v)
    elif face == 4:
        d = vec3(u, -v, 1.0)
    return safe_normalize(d)


@ti.func
def _face_location(face: ti.i32):
    col = 1
    row = 2
    if face == 0:
        col = 2
    elif face == 1:
        col = 0
    elif face == 2:
        row = 3
    elif face == 3:
        row = 1
    elif face == 4:
        row = 0
    return col, row


@ti.func
def _location_face(col: ti.i32, row: ti.i32) -> ti.i32:
    face = -1
    if col == 1:
        if row == 0:
            face = 4
        elif row == 1:
            face = 3
        elif row == 2:
            face = 5
        elif row == 3:
            face = 2
    elif row == 2:
        if col == 0:
            face = 1
        elif col == 2:
            face = 0
    return face


@ti.func
def face_to_index(face: ti.i32, uv: vec2) -> ti.i32:
    """Pixel index of the texel containing (u, v) on a face."""
    block = env_block_size[None]
    iu = ti.min(ti.max(ti.cast(block * (uv.x + 1.0) / 2.0, ti.i32), 0), block - 1)
    iv = ti.min(ti.max(ti.cast(block * (uv.y + 1.0) / 2.0, ti.i32), 0), block - 1)
    col, row = _face_location(face)
    ix = iu + block * col
    iy = iv + block * row
    return ix + env_width[None] * iy


@ti.func
def index_to_face(index: ti.i32):
    """Face and pixel-centre (u, v) of a pixel index.

    Returns:
        A tuple (face, uv); face is -1 for cells outside the cross.
    """
    block = env_block_size[None]
    width = env_width[None]
    ix = index % width
    iy = index // width
    face = _location_face(ix // block, iy // block)
    iu = ix % block
    iv = iy % block
    uv = vec2(2.0 * (iu + 0.5) / block - 1.0, 2.0 * (iv + 0.5) / block - 1.0)
    return face, uv


@ti.func
def _solid_angle_density(pixel_prob: ti.f64, uv: vec2) -> ti.f64:
    block = ti.cast(env_block_size[None], ti.f64)
    return pixel_prob * (block * block / 4.0) * ti.pow(1.0 + tm.dot(uv, uv), 1.5)


# =============================================================================
# Environment queries
# =============================================================================


@ti.func
def env_eval(direction: vec3) -> vec3:
    """Radiance arriving from ``direction``; black without an environment."""
    result = vec3(0.0, 0.0, 0.0)
    if env_enabled[None] == 1 and tm.dot(direction, direction) > 0.0:
        face, uv = dir_to_face(direction)
        k = face_to_index(face, uv)
        result = env_pixels[k] * env_scale_factor[None]
    return result


@ti.func
def env_pdf(direction: vec3) -> ti.f64:
    """Solid-angle density with which ``env_sample`` produces ``direction``."""
    result = 0.0
    if env_enabled[None] == 1 and tm.dot(direction, direction) > 0.0:
        face, uv = dir_to_face(direction)
        k = face_to_index(face, uv)
        result = _solid_angle_density(env_cum_prob[k + 1] - env_cum_prob[k], uv)
    return result


@ti.func
def env_sample(seed: vec2) -> EnvironmentSample:
    """Importance sample a direction from the environment.

    Args:
        seed: Two uniform random numbers in [0, 1). seed.x selects the
            pixel, and what remains of it plus seed.y place the direction
            within the pixel.

    Returns:
        The EnvironmentSample. Its pdf is 0 when there is no environment.
    """
    direction = vec3(0.0, 0.0, 0.0)
    radiance = vec3(0.0, 0.0, 0.0)
    prob = 0.0
    if env_enabled[None] == 1:
        n = env_num_pixels[None]
        # Largest k with cum[k] < seed.x
        k = 0
        for i in range(env_map_bits[None]):
            step = 1 << (env_map_bits[None] - 1 - i)
            if k + step <= n:
                if seed.x > env_cum_prob[k + step]:
                    k += step
        pixel_prob = env_cum_prob[k + 1] - env_cum_prob[k]
        if pixel_prob > 0.0:
            seed_x = (seed.x - env_cum_prob[k]) / pixel_prob
            block = ti.cast(env_block_size[None], ti.f64)
            face, uv = index_to_face(k)
            uv += vec2((2.0 * seed_x - 1.0) / block, (2.0 * seed.y - 1.0) / block)
            direction = face_to_dir(face, uv)
            radiance = env_pixels[k] * env_scale_factor[None]
            prob = _solid_angle_density(pixel_prob, uv)
    return EnvironmentSample(direction=direction, radiance=radiance, pdf=prob)
