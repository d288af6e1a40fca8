"""Unified scene manager for coordinating primitives, materials and lights.

This module provides a high-level scene management API that coordinates
primitive storage (spheres, quads) with material assignment, light
registration and the environment. It tracks which material type
(Lambertian, Microfacet, Glass, Glazed) each material ID corresponds to and
which light type each light ID corresponds to, enabling proper dispatch in
the integrators.

The SceneManager maintains:
- A unified material_id space across all material types
- A unified light_id space across all light types
- The emissive quads that make rectangle lights visible to rays
- Scene serialization/configuration support

Example:
    >>> from mcshade.core.runtime import init
    >>> init()
    >>> from mcshade.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> scene.add_point_light(position=(0, 3, 0), intensity=(10, 10, 10))
"""

import logging
from dataclasses import dataclass, field
from os import PathLike
from typing import Any

from mcshade.lights.environment import (
    clear_environment,
    load_environment,
    set_environment_image,
)
from mcshade.lights.point import add_point_light, clear_point_lights
from mcshade.lights.rectangle import (
    add_rectangle_light,
    clear_rectangle_lights,
    rectangle_light_quad,
)
from mcshade.lights.sampling import (
    MAX_LIGHTS,
    LightType,
    clear_light_registry,
    get_light_count,
    register_light,
)
from mcshade.materials.bsdf import (
    MAX_MATERIALS,
    MaterialType,
    clear_material_registry,
    get_material_count,
    register_material,
)
from mcshade.materials.distribution import DistributionType
from mcshade.materials.glass import add_glass_material, clear_glass_materials
from mcshade.materials.glazed import add_glazed_material, clear_glazed_materials
from mcshade.materials.lambertian import add_lambertian_material, clear_lambertian_materials
from mcshade.materials.microfacet import add_microfacet_material, clear_microfacet_materials
from mcshade.scene.intersection import (
    MAX_QUADS,
    MAX_SPHERES,
    add_quad,
    add_sphere,
    clear_scene,
    get_quad_count,
    get_sphere_count,
)

logger = logging.getLogger(__name__)

Color = tuple[float, float, float]
Point = tuple[float, float, float]


def reset_scene_state() -> None:
    """Clear every registry: primitives, materials, lights and environment."""
    clear_scene()
    clear_lambertian_materials()
    clear_microfacet_materials()
    clear_glass_materials()
    clear_glazed_materials()
    clear_material_registry()
    clear_point_lights()
    clear_rectangle_lights()
    clear_light_registry()
    clear_environment()


def _as_triple(values) -> tuple[float, float, float]:
    return (float(values[0]), float(values[1]), float(values[2]))


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center: The center of the sphere.
        radius: The radius of the sphere.
        material_id: The material ID assigned to the sphere.
    """

    sphere_index: int
    center: Point
    radius: float
    material_id: int


@dataclass
class QuadInfo:
    """Information about a quad in the scene.

    Attributes:
        quad_index: The index in the quad storage arrays.
        corner: The corner point (Q) of the quad.
        edge_u: The first edge vector.
        edge_v: The second edge vector.
        material_id: The material ID assigned to the quad.
    """

    quad_index: int
    corner: Point
    edge_u: Point
    edge_v: Point
    material_id: int


@dataclass
class LightInfo:
    """Information about a registered light.

    Attributes:
        light_id: The unified light ID.
        light_type: The type of light.
        type_index: The index within the type-specific light array.
        params: The light parameters as provided during creation.
        quad_index: Index of the emissive quad for area lights, else None.
    """

    light_id: int
    light_type: LightType
    type_index: int
    params: dict[str, Any]
    quad_index: int | None = None


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        materials: List of material configurations.
        spheres: List of sphere configurations.
        quads: List of quad configurations (emitter quads excluded).
        lights: List of light configurations.
        environment: Environment file and scale, or None.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    quads: list[dict[str, Any]] = field(default_factory=list)
    lights: list[dict[str, Any]] = field(default_factory=list)
    environment: dict[str, Any] | None = None


class SceneManager:
    """Unified scene manager coordinating primitives, materials and lights.

    Attributes:
        materials: List of MaterialInfo for all registered materials.
        spheres: List of SphereInfo for all spheres in the scene.
        quads: List of QuadInfo for all user quads in the scene.
        lights: List of LightInfo for all registered lights.
        environment: Parameters of the current environment, or None.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_lambertian_material(reflectance=(0.8, 0.1, 0.1))
        >>> glass = scene.add_glass_material(ior=1.5)
        >>> scene.add_sphere((0, 0, -1), 0.5, red)
        >>> scene.add_sphere((1, 0, -1), 0.5, glass)
        >>> scene.add_rectangle_light((0, 2, -1), normal_dir=(0, -1, 0), up_dir=(0, 0, 1))
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.quads: list[QuadInfo] = []
        self.lights: list[LightInfo] = []
        self.environment: dict[str, Any] | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        reset_scene_state()
        self.materials.clear()
        self.spheres.clear()
        self.quads.clear()
        self.lights.clear()
        self.environment = None

    def clear(self) -> None:
        """Clear the entire scene (primitives, materials, lights, environment)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _track_material(
        self, material_type: MaterialType, type_index: int, params: dict[str, Any]
    ) -> int:
        material_id = register_material(material_type, type_index)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def _check_material_capacity(self) -> None:
        if get_material_count() >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    def add_lambertian_material(self, reflectance: Color) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Args:
            reflectance: The diffuse reflectance color as (R, G, B), each in [0, 1].

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any reflectance component is outside [0, 1].
        """
        self._check_material_capacity()
        type_index = add_lambertian_material(reflectance)
        return self._track_material(
            MaterialType.LAMBERTIAN, type_index, {"reflectance": _as_triple(reflectance)}
        )

    def add_microfacet_material(
        self,
        diffuse: Color,
        specular: Color = (1.0, 1.0, 1.0),
        roughness: float = 0.5,
        ior: float = 1.5,
        distribution: DistributionType | str = DistributionType.BECKMANN,
    ) -> int:
        """Add a microfacet (diffuse plus rough specular) material to the scene.

        Args:
            diffuse: Diffuse reflectance as (R, G, B).
            specular: Specular color as (R, G, B).
            roughness: Distribution width alpha, positive.
            ior: Refractive index for the Fresnel factor, positive.
            distribution: DistributionType or its name ("beckmann", "ggx").

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If a parameter is out of range or the distribution
                is unknown.
        """
        if isinstance(distribution, str):
            try:
                distribution = DistributionType[distribution.upper()]
            except KeyError:
                raise ValueError(f"Unknown microfacet distribution: {distribution}") from None
        self._check_material_capacity()
        type_index = add_microfacet_material(diffuse, specular, roughness, ior, distribution)
        return self._track_material(
            MaterialType.MICROFACET,
            type_index,
            {
                "diffuse": _as_triple(diffuse),
                "specular": _as_triple(specular),
                "roughness": roughness,
                "ior": ior,
                "distribution": DistributionType(distribution).name.lower(),
            },
        )

    def add_glass_material(self, ior: float = 1.5) -> int:
        """Add a glass (smooth dielectric) material to the scene.

        Args:
            ior: Index of refraction. Common values: Water=1.33, Glass=1.5,
                Diamond=2.4

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is not positive.
        """
        self._check_material_capacity()
        type_index = add_glass_material(ior)
        return self._track_material(MaterialType.GLASS, type_index, {"ior": ior})

    def add_glazed_material(self, substrate_id: int, ior: float = 1.5) -> int:
        """Add a glazed material: a clear coat over an existing material.

        Args:
            substrate_id: Unified ID of a Lambertian or Microfacet material.
            ior: Index of refraction of the coat.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the substrate is not a Lambertian or Microfacet
                material, or IOR is not positive.
        """
        substrate = self.get_material_info(substrate_id)
        if substrate is None or substrate.material_type not in (
            MaterialType.LAMBERTIAN,
            MaterialType.MICROFACET,
        ):
            raise ValueError(
                f"Glazed substrate must be a Lambertian or Microfacet material, got id {substrate_id}"
            )
        self._check_material_capacity()
        type_index = add_glazed_material(ior, substrate_id)
        return self._track_material(
            MaterialType.GLAZED, type_index, {"ior": ior, "substrate_id": substrate_id}
        )

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return get_material_count()

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For device-side lookup, use ``mcshade.materials.bsdf.get_material_type``.
        """
        info = self.get_material_info(material_id)
        if info is None:
            return None
        return info.material_type

    def _validate_material_id(self, material_id: int) -> None:
        if material_id < 0 or material_id >= len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def add_sphere(self, center: Point, radius: float, material_id: int) -> int:
        """Add a sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere (must be positive).
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If material_id is invalid or radius is not positive.
        """
        self._validate_material_id(material_id)
        sphere_index = add_sphere(center, radius, material_id)
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=_as_triple(center),
                radius=radius,
                material_id=material_id,
            )
        )
        return sphere_index

    def add_quad(self, corner: Point, edge_u: Point, edge_v: Point, material_id: int) -> int:
        """Add a quad (parallelogram) to the scene.

        The quad has vertices corner, corner+edge_u, corner+edge_v and
        corner+edge_u+edge_v.

        Returns:
            The index of the added quad.

        Raises:
            RuntimeError: If the maximum number of quads is exceeded.
            ValueError: If material_id is invalid.
        """
        self._validate_material_id(material_id)
        quad_index = add_quad(corner, edge_u, edge_v, material_id)
        self.quads.append(
            QuadInfo(
                quad_index=quad_index,
                corner=_as_triple(corner),
                edge_u=_as_triple(edge_u),
                edge_v=_as_triple(edge_v),
                material_id=material_id,
            )
        )
        return quad_index

    def add_lambertian_sphere(
        self, center: Point, radius: float, reflectance: Color
    ) -> tuple[int, int]:
        """Add a sphere with a new Lambertian material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_lambertian_material(reflectance)
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    def add_lambertian_quad(
        self, corner: Point, edge_u: Point, edge_v: Point, reflectance: Color
    ) -> tuple[int, int]:
        """Add a quad with a new Lambertian material.

        Returns:
            Tuple of (quad_index, material_id).
        """
        material_id = self.add_lambertian_material(reflectance)
        quad_index = self.add_quad(corner, edge_u, edge_v, material_id)
        return quad_index, material_id

    # =========================================================================
    # Light Management
    # =========================================================================

    def _check_light_capacity(self) -> None:
        if get_light_count() >= MAX_LIGHTS:
            raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")

    def add_point_light(self, position: Point, intensity: Color = (1.0, 1.0, 1.0)) -> int:
        """Add a point light.

        Returns:
            The unified light ID.

        Raises:
            RuntimeError: If the maximum number of lights is exceeded.
            ValueError: If the intensity is negative.
        """
        self._check_light_capacity()
        type_index = add_point_light(position, intensity)
        light_id = register_light(LightType.POINT, type_index)
        self.lights.append(
            LightInfo(
                light_id=light_id,
                light_type=LightType.POINT,
                type_index=type_index,
                params={"position": _as_triple(position), "intensity": _as_triple(intensity)},
            )
        )
        return light_id

    def add_rectangle_light(
        self,
        position: Point,
        normal_dir: Point = (0.0, 0.0, -1.0),
        up_dir: Point = (0.0, 1.0, 0.0),
        width: float = 1.0,
        height: float = 1.0,
        intensity: Color = (1.0, 1.0, 1.0),
        material_id: int | None = None,
    ) -> int:
        """Add a rectangle light and the emissive quad that rays can hit.

        The quad is given a black Lambertian material so that it reflects
        nothing and only emits.

        Args:
            position: Centre of the rectangle.
            normal_dir: Direction the light faces.
            up_dir: Direction of the height axis.
            width: Extent along the width axis.
            height: Extent along the height axis.
            intensity: Emitted radiance (RGB).
            material_id: Existing material for the emissive quad. A new
                black Lambertian material is created when None.

        Returns:
            The unified light ID.

        Raises:
            RuntimeError: If a registry is full.
            ValueError: If a parameter is out of range.
        """
        self._check_light_capacity()
        if material_id is not None:
            self._validate_material_id(material_id)
        type_index = add_rectangle_light(position, normal_dir, up_dir, width, height, intensity)
        if material_id is None:
            material_id = self.add_lambertian_material((0.0, 0.0, 0.0))
        light_id = register_light(LightType.RECTANGLE, type_index)
        corner, edge_u, edge_v = rectangle_light_quad(position, normal_dir, up_dir, width, height)
        quad_index = add_quad(corner, edge_u, edge_v, material_id, light_id)
        self.lights.append(
            LightInfo(
                light_id=light_id,
                light_type=LightType.RECTANGLE,
                type_index=type_index,
                params={
                    "position": _as_triple(position),
                    "normal_dir": _as_triple(normal_dir),
                    "up_dir": _as_triple(up_dir),
                    "width": width,
                    "height": height,
                    "intensity": _as_triple(intensity),
                    "material_id": material_id,
                },
                quad_index=quad_index,
            )
        )
        return light_id

    def get_light_count(self) -> int:
        """Get the total number of lights in the scene."""
        return get_light_count()

    def get_light_info(self, light_id: int) -> LightInfo | None:
        """Get information about a light by ID, or None if not found."""
        if 0 <= light_id < len(self.lights):
            return self.lights[light_id]
        return None

    # =========================================================================
    # Environment
    # =========================================================================

    def set_environment(self, path: str | PathLike, scale_factor: float = 1.0) -> None:
        """Load a cross cubemap PFM file as the environment.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not a valid cross cubemap.
        """
        load_environment(path, scale_factor)
        self.environment = {"path": str(path), "scale_factor": scale_factor}

    def set_environment_image(self, image, scale_factor: float = 1.0) -> None:
        """Use an in-memory (4B, 3B, 3) cross cubemap as the environment.

        Environments set this way are not part of the exported configuration.
        """
        set_environment_image(image, scale_factor)
        self.environment = {"path": None, "scale_factor": scale_factor}

    def clear_environment(self) -> None:
        """Remove the environment."""
        clear_environment()
        self.environment = None

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_quad_count(self) -> int:
        """Get the number of quads in the scene, emitter quads included."""
        return get_quad_count()

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return self.get_sphere_count() + self.get_quad_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all materials, primitives and lights.
        """
        config = SceneConfig()

        for mat in self.materials:
            mat_config: dict[str, Any] = {"type": mat.material_type.name.lower()}
            for key, value in mat.params.items():
                mat_config[key] = list(value) if isinstance(value, tuple) else value
            config.materials.append(mat_config)

        for sphere in self.spheres:
            config.spheres.append(
                {
                    "center": list(sphere.center),
                    "radius": sphere.radius,
                    "material_id": sphere.material_id,
                }
            )

        for quad in self.quads:
            config.quads.append(
                {
                    "corner": list(quad.corner),
                    "edge_u": list(quad.edge_u),
                    "edge_v": list(quad.edge_v),
                    "material_id": quad.material_id,
                }
            )

        for light in self.lights:
            light_config: dict[str, Any] = {"type": light.light_type.name.lower()}
            for key, value in light.params.items():
                light_config[key] = list(value) if isinstance(value, tuple) else value
            config.lights.append(light_config)

        if self.environment is not None and self.environment["path"] is not None:
            config.environment = dict(self.environment)

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration. Materials are
        created first so that primitive and light material ids resolve.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            if mat_type == "lambertian":
                self.add_lambertian_material(
                    _as_triple(mat_config.get("reflectance", [0.5, 0.5, 0.5]))
                )
            elif mat_type == "microfacet":
                self.add_microfacet_material(
                    diffuse=_as_triple(mat_config.get("diffuse", [0.5, 0.5, 0.5])),
                    specular=_as_triple(mat_config.get("specular", [1.0, 1.0, 1.0])),
                    roughness=mat_config.get("roughness", 0.5),
                    ior=mat_config.get("ior", 1.5),
                    distribution=mat_config.get("distribution", "beckmann"),
                )
            elif mat_type == "glass":
                self.add_glass_material(mat_config.get("ior", 1.5))
            elif mat_type == "glazed":
                if "substrate_id" not in mat_config:
                    raise ValueError("Glazed material configuration requires 'substrate_id'")
                self.add_glazed_material(mat_config["substrate_id"], mat_config.get("ior", 1.5))
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            self.add_sphere(
                _as_triple(sphere_config.get("center", [0, 0, 0])),
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )

        for quad_config in config.quads:
            self.add_quad(
                _as_triple(quad_config.get("corner", [0, 0, 0])),
                _as_triple(quad_config.get("edge_u", [1, 0, 0])),
                _as_triple(quad_config.get("edge_v", [0, 1, 0])),
                quad_config.get("material_id", 0),
            )

        for light_config in config.lights:
            light_type = light_config.get("type", "").lower()
            intensity = _as_triple(light_config.get("intensity", [1.0, 1.0, 1.0]))
            if light_type == "point":
                self.add_point_light(_as_triple(light_config.get("position", [0, 0, 0])), intensity)
            elif light_type == "rectangle":
                self.add_rectangle_light(
                    position=_as_triple(light_config.get("position", [0, 0, 0])),
                    normal_dir=_as_triple(light_config.get("normal_dir", [0, 0, -1])),
                    up_dir=_as_triple(light_config.get("up_dir", [0, 1, 0])),
                    width=light_config.get("width", 1.0),
                    height=light_config.get("height", 1.0),
                    intensity=intensity,
                    material_id=light_config.get("material_id"),
                )
            else:
                raise ValueError(f"Unknown light type: {light_type}")

        if config.environment is not None:
            path = config.environment.get("path")
            if path is None:
                raise ValueError("Environment configuration requires 'path'")
            self.set_environment(path, config.environment.get("scale_factor", 1.0))

        logger.info(
            "Scene loaded: %d materials, %d spheres, %d quads, %d lights",
            len(self.materials),
            len(self.spheres),
            len(self.quads),
            len(self.lights),
        )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "spheres": config.spheres,
            "quads": config.quads,
            "lights": config.lights,
            "environment": config.environment,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Args:
            data: Dictionary with 'materials', 'spheres', 'quads', 'lights'
                and 'environment' keys; missing keys are treated as empty.
        """
        config = SceneConfig(
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            quads=data.get("quads", []),
            lights=data.get("lights", []),
            environment=data.get("environment"),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_quads() -> int:
        """Get the maximum number of quads supported."""
        return MAX_QUADS

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

    @staticmethod
    def get_max_lights() -> int:
        """Get the maximum number of lights supported."""
        return MAX_LIGHTS
