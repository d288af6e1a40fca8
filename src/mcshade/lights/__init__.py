"""Lights module for light sources and the environment.

Components:
    record: LightSample and EnvironmentSample result structs
    point: Point light (delta source with inverse-square falloff)
    rectangle: One-sided rectangular area light
    pfm: Portable float map reading and writing
    environment: Importance-sampled cubemap environment
    sampling: Unified light ids and light dispatch

Importing this package declares Taichi fields, so ``mcshade.core.init``
must run first.
"""

from .environment import (
    MAX_ENVIRONMENT_BLOCK,
    clear_environment,
    dir_to_face,
    env_eval,
    env_pdf,
    env_sample,
    face_to_dir,
    face_to_index,
    has_environment,
    index_to_face,
    load_environment,
    set_environment_image,
    set_environment_scale,
)
from .pfm import read_pfm, write_pfm
from .point import (
    add_point_light,
    clear_point_lights,
    get_point_light_count,
    sample_point_light,
)
from .record import EnvironmentSample, LightSample
from .rectangle import (
    RectangleLight,
    add_rectangle_light,
    clear_rectangle_lights,
    eval_rectangle_light,
    get_rectangle_light_count,
    rectangle_light_quad,
    sample_rectangle_light,
)
from .sampling import (
    MAX_LIGHTS,
    LightType,
    clear_light_registry,
    get_light_count,
    is_delta_light,
    light_eval,
    light_pdf,
    light_sample,
    register_light,
)

__all__ = [
    # Records
    "LightSample",
    "EnvironmentSample",
    # Point lights
    "add_point_light",
    "clear_point_lights",
    "get_point_light_count",
    "sample_point_light",
    # Rectangle lights
    "RectangleLight",
    "add_rectangle_light",
    "clear_rectangle_lights",
    "get_rectangle_light_count",
    "eval_rectangle_light",
    "sample_rectangle_light",
    "rectangle_light_quad",
    # Dispatch
    "LightType",
    "MAX_LIGHTS",
    "register_light",
    "clear_light_registry",
    "get_light_count",
    "is_delta_light",
    "light_eval",
    "light_sample",
    "light_pdf",
    # Environment
    "MAX_ENVIRONMENT_BLOCK",
    "read_pfm",
    "write_pfm",
    "load_environment",
    "set_environment_image",
    "set_environment_scale",
    "clear_environment",
    "has_environment",
    "dir_to_face",
    "face_to_dir",
    "face_to_index",
    "index_to_face",
    "env_eval",
    "env_sample",
    "env_pdf",
]
