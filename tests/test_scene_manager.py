"""Unit tests for the SceneManager.

Tests cover:
- Material registration (Lambertian, Microfacet, Glass, Glazed)
- Material type tracking and lookup
- Primitive addition with materials
- Point and rectangle light registration
- Scene serialization (to_config, from_config)
- Scene clearing
- GPU-side material type dispatch
"""

import pytest
import taichi as ti


@pytest.fixture
def fresh_scene():
    """Create a fresh SceneManager for each test."""
    from mcshade.scene.manager import SceneManager

    scene = SceneManager()
    yield scene
    scene.clear()


class TestMaterialRegistration:
    """Tests for material registration."""

    def test_add_lambertian_material(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        assert mat_id == 0
        assert fresh_scene.get_material_count() == 1

    def test_add_microfacet_material(self, fresh_scene):
        mat_id = fresh_scene.add_microfacet_material(diffuse=(0.2, 0.2, 0.2), roughness=0.3, distribution="ggx")
        assert mat_id == 0
        info = fresh_scene.get_material_info(mat_id)
        assert info.params["distribution"] == "ggx"
        assert info.params["roughness"] == 0.3

    def test_add_glass_material(self, fresh_scene):
        mat_id = fresh_scene.add_glass_material(ior=1.5)
        assert mat_id == 0
        assert fresh_scene.get_material_count() == 1

    def test_add_multiple_materials(self, fresh_scene):
        """Material ids are shared across all types."""
        id0 = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        id1 = fresh_scene.add_microfacet_material(diffuse=(0.5, 0.5, 0.5))
        id2 = fresh_scene.add_glass_material(ior=1.5)
        id3 = fresh_scene.add_glazed_material(id0, ior=1.4)
        id4 = fresh_scene.add_lambertian_material(reflectance=(0.1, 0.8, 0.1))

        assert (id0, id1, id2, id3, id4) == (0, 1, 2, 3, 4)
        assert fresh_scene.get_material_count() == 5

    def test_material_validation(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_lambertian_material(reflectance=(1.5, 0.0, 0.0))
        with pytest.raises(ValueError):
            fresh_scene.add_microfacet_material(diffuse=(0.5, 0.5, 0.5), roughness=-0.1)
        with pytest.raises(ValueError):
            fresh_scene.add_glass_material(ior=0.0)
        assert fresh_scene.get_material_count() == 0

    def test_unknown_distribution_name(self, fresh_scene):
        with pytest.raises(ValueError, match="Unknown microfacet distribution"):
            fresh_scene.add_microfacet_material(diffuse=(0.5, 0.5, 0.5), distribution="phong")


class TestMaterialTypeTracking:
    """Tests for material type tracking."""

    def test_get_material_type_python(self, fresh_scene):
        from mcshade.materials.bsdf import MaterialType

        fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))
        fresh_scene.add_microfacet_material(diffuse=(0.5, 0.5, 0.5))
        fresh_scene.add_glass_material(ior=1.5)
        fresh_scene.add_glazed_material(0)

        assert fresh_scene.get_material_type_python(0) == MaterialType.LAMBERTIAN
        assert fresh_scene.get_material_type_python(1) == MaterialType.MICROFACET
        assert fresh_scene.get_material_type_python(2) == MaterialType.GLASS
        assert fresh_scene.get_material_type_python(3) == MaterialType.GLAZED
        assert fresh_scene.get_material_type_python(99) is None

    def test_get_material_info(self, fresh_scene):
        from mcshade.materials.bsdf import MaterialType

        fresh_scene.add_lambertian_material(reflectance=(0.8, 0.6, 0.2))

        info = fresh_scene.get_material_info(0)
        assert info is not None
        assert info.material_id == 0
        assert info.material_type == MaterialType.LAMBERTIAN
        assert info.type_index == 0
        assert info.params["reflectance"] == (0.8, 0.6, 0.2)

    def test_get_material_type_gpu(self, fresh_scene):
        from mcshade.materials.bsdf import MaterialType, get_material_type

        fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))
        fresh_scene.add_microfacet_material(diffuse=(0.5, 0.5, 0.5))
        fresh_scene.add_glass_material(ior=1.5)
        fresh_scene.add_glazed_material(1)

        result = ti.field(dtype=ti.i32, shape=5)

        @ti.kernel
        def test_kernel():
            result[0] = get_material_type(0)
            result[1] = get_material_type(1)
            result[2] = get_material_type(2)
            result[3] = get_material_type(3)
            result[4] = get_material_type(99)  # Invalid

        test_kernel()

        assert result[0] == int(MaterialType.LAMBERTIAN)
        assert result[1] == int(MaterialType.MICROFACET)
        assert result[2] == int(MaterialType.GLASS)
        assert result[3] == int(MaterialType.GLAZED)
        assert result[4] == -1

    def test_get_material_type_index_gpu(self, fresh_scene):
        from mcshade.materials.bsdf import get_material_type_index

        # Add materials in mixed order
        fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))  # id=0, lambertian[0]
        fresh_scene.add_glass_material(ior=1.5)  # id=1, glass[0]
        fresh_scene.add_lambertian_material(reflectance=(0.2, 0.2, 0.8))  # id=2, lambertian[1]
        fresh_scene.add_glass_material(ior=1.33)  # id=3, glass[1]

        result = ti.field(dtype=ti.i32, shape=5)

        @ti.kernel
        def test_kernel():
            result[0] = get_material_type_index(0)
            result[1] = get_material_type_index(1)
            result[2] = get_material_type_index(2)
            result[3] = get_material_type_index(3)
            result[4] = get_material_type_index(-1)  # Invalid

        test_kernel()

        assert result[0] == 0
        assert result[1] == 0
        assert result[2] == 1
        assert result[3] == 1
        assert result[4] == -1


class TestPrimitiveAddition:
    """Tests for adding primitives with materials."""

    def test_add_sphere_with_material(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        sphere_idx = fresh_scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=mat_id)

        assert sphere_idx == 0
        assert fresh_scene.get_sphere_count() == 1

    def test_add_quad_with_material(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))
        quad_idx = fresh_scene.add_quad(
            corner=(-1.0, -1.0, -2.0),
            edge_u=(2.0, 0.0, 0.0),
            edge_v=(0.0, 2.0, 0.0),
            material_id=mat_id,
        )

        assert quad_idx == 0
        assert fresh_scene.get_quad_count() == 1

    def test_add_sphere_invalid_material(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_sphere(center=(0.0, 0.0, 0.0), radius=1.0, material_id=999)

    def test_add_quad_invalid_material(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_quad(
                corner=(0.0, 0.0, 0.0),
                edge_u=(1.0, 0.0, 0.0),
                edge_v=(0.0, 1.0, 0.0),
                material_id=999,
            )

    def test_add_lambertian_sphere(self, fresh_scene):
        sphere_idx, mat_id = fresh_scene.add_lambertian_sphere(
            center=(0.0, 0.0, -1.0), radius=0.5, reflectance=(0.8, 0.3, 0.3)
        )

        assert sphere_idx == 0
        assert mat_id == 0
        assert fresh_scene.get_material_count() == 1

    def test_add_lambertian_quad(self, fresh_scene):
        quad_idx, mat_id = fresh_scene.add_lambertian_quad(
            corner=(-1.0, -1.0, -2.0),
            edge_u=(2.0, 0.0, 0.0),
            edge_v=(0.0, 2.0, 0.0),
            reflectance=(0.8, 0.8, 0.8),
        )

        assert quad_idx == 0
        assert mat_id == 0
        assert fresh_scene.get_quad_count() == 1


class TestLightRegistration:
    """Tests for light registration."""

    def test_light_ids_are_shared(self, fresh_scene):
        from mcshade.lights.sampling import LightType

        point_id = fresh_scene.add_point_light((0.0, 3.0, 0.0), (5.0, 5.0, 5.0))
        rect_id = fresh_scene.add_rectangle_light((0.0, 2.0, 0.0), normal_dir=(0.0, -1.0, 0.0), up_dir=(0.0, 0.0, 1.0))

        assert (point_id, rect_id) == (0, 1)
        assert fresh_scene.get_light_count() == 2
        assert fresh_scene.get_light_info(point_id).light_type == LightType.POINT
        assert fresh_scene.get_light_info(rect_id).light_type == LightType.RECTANGLE
        assert fresh_scene.get_light_info(5) is None

    def test_rectangle_light_creates_black_emitter_material(self, fresh_scene):
        from mcshade.materials.bsdf import MaterialType

        light_id = fresh_scene.add_rectangle_light((0.0, 2.0, 0.0), normal_dir=(0.0, -1.0, 0.0), up_dir=(0.0, 0.0, 1.0))
        info = fresh_scene.get_light_info(light_id)
        material = fresh_scene.get_material_info(info.params["material_id"])

        assert material.material_type == MaterialType.LAMBERTIAN
        assert material.params["reflectance"] == (0.0, 0.0, 0.0)
        assert info.quad_index == 0
        # Emitter quads are not user quads
        assert fresh_scene.quads == []
        assert fresh_scene.get_quad_count() == 1

    def test_rectangle_light_reuses_material(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.1, 0.1, 0.1))
        light_id = fresh_scene.add_rectangle_light((0.0, 2.0, 0.0), material_id=mat_id)

        assert fresh_scene.get_material_count() == 1
        assert fresh_scene.get_light_info(light_id).params["material_id"] == mat_id

    def test_rectangle_light_invalid_material(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_rectangle_light((0.0, 2.0, 0.0), material_id=7)
        assert fresh_scene.get_light_count() == 0
        assert fresh_scene.get_quad_count() == 0

    def test_invalid_light_parameters(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_point_light((0.0, 0.0, 0.0), (-1.0, 0.0, 0.0))
        with pytest.raises(ValueError):
            fresh_scene.add_rectangle_light((0.0, 2.0, 0.0), width=0.0)
        assert fresh_scene.get_light_count() == 0


class TestSceneClearing:
    """Tests for scene clearing."""

    def test_clear_scene(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))
        fresh_scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=mat_id)
        fresh_scene.add_point_light((0.0, 3.0, 0.0))
        fresh_scene.add_rectangle_light((0.0, 2.0, 0.0))

        assert fresh_scene.get_material_count() == 2
        assert fresh_scene.get_sphere_count() == 1
        assert fresh_scene.get_quad_count() == 1
        assert fresh_scene.get_light_count() == 2

        fresh_scene.clear()

        assert fresh_scene.get_material_count() == 0
        assert fresh_scene.get_sphere_count() == 0
        assert fresh_scene.get_quad_count() == 0
        assert fresh_scene.get_light_count() == 0
        assert fresh_scene.lights == []


class TestSceneSerialization:
    """Tests for scene serialization."""

    def test_to_config(self, fresh_scene):
        mat0 = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        mat1 = fresh_scene.add_microfacet_material(diffuse=(0.2, 0.2, 0.2), roughness=0.3)
        fresh_scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=mat0)
        fresh_scene.add_quad(
            corner=(-1.0, -1.0, -2.0),
            edge_u=(2.0, 0.0, 0.0),
            edge_v=(0.0, 2.0, 0.0),
            material_id=mat1,
        )
        fresh_scene.add_point_light((0.0, 3.0, 0.0), (2.0, 2.0, 2.0))

        config = fresh_scene.to_config()

        assert len(config.materials) == 2
        assert config.materials[0] == {"type": "lambertian", "reflectance": [0.8, 0.3, 0.3]}
        assert config.materials[1]["type"] == "microfacet"
        assert config.materials[1]["distribution"] == "beckmann"
        assert len(config.spheres) == 1
        assert len(config.quads) == 1
        assert config.lights == [{"type": "point", "position": [0.0, 3.0, 0.0], "intensity": [2.0, 2.0, 2.0]}]
        assert config.environment is None

    def test_from_config(self, fresh_scene):
        from mcshade.materials.bsdf import MaterialType
        from mcshade.scene.manager import SceneConfig

        config = SceneConfig(
            materials=[
                {"type": "lambertian", "reflectance": [0.8, 0.3, 0.3]},
                {"type": "microfacet", "diffuse": [0.2, 0.2, 0.2], "distribution": "ggx"},
                {"type": "glass", "ior": 1.5},
                {"type": "glazed", "substrate_id": 1, "ior": 1.3},
            ],
            spheres=[
                {"center": [0.0, 0.0, -1.0], "radius": 0.5, "material_id": 0},
                {"center": [1.0, 0.0, -1.0], "radius": 0.5, "material_id": 3},
            ],
            quads=[
                {
                    "corner": [-1.0, -1.0, -2.0],
                    "edge_u": [2.0, 0.0, 0.0],
                    "edge_v": [0.0, 2.0, 0.0],
                    "material_id": 2,
                }
            ],
            lights=[{"type": "point", "position": [0.0, 4.0, 0.0], "intensity": [3.0, 3.0, 3.0]}],
        )

        fresh_scene.from_config(config)

        assert fresh_scene.get_material_count() == 4
        assert fresh_scene.get_sphere_count() == 2
        assert fresh_scene.get_quad_count() == 1
        assert fresh_scene.get_light_count() == 1
        assert fresh_scene.get_material_type_python(1) == MaterialType.MICROFACET
        assert fresh_scene.get_material_type_python(3) == MaterialType.GLAZED
        assert fresh_scene.get_material_info(3).params["substrate_id"] == 1

    def test_to_dict_from_dict(self, fresh_scene):
        """Round trip keeps material ids, including rectangle light emitters."""
        from mcshade.lights.sampling import LightType
        from mcshade.materials.bsdf import MaterialType
        from mcshade.scene.manager import SceneManager

        mat0 = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        fresh_scene.add_rectangle_light(
            (0.0, 2.0, 0.0), (0.0, -1.0, 0.0), (0.0, 0.0, 1.0), 2.0, 1.0, (4.0, 4.0, 4.0)
        )
        mat2 = fresh_scene.add_glazed_material(mat0)
        fresh_scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=mat2)

        data = fresh_scene.to_dict()

        scene2 = SceneManager()
        scene2.from_dict(data)

        assert scene2.get_material_count() == 3
        assert scene2.get_sphere_count() == 1
        assert scene2.get_quad_count() == 1
        assert scene2.get_light_count() == 1
        assert scene2.get_material_type_python(2) == MaterialType.GLAZED
        light = scene2.get_light_info(0)
        assert light.light_type == LightType.RECTANGLE
        assert light.params["material_id"] == 1
        assert light.params["width"] == 2.0
        assert scene2.to_dict() == data

        scene2.clear()

    def test_from_config_invalid_material_type(self, fresh_scene):
        from mcshade.scene.manager import SceneConfig

        config = SceneConfig(materials=[{"type": "unknown_material"}])

        with pytest.raises(ValueError, match="Unknown material type"):
            fresh_scene.from_config(config)

    def test_from_config_invalid_light_type(self, fresh_scene):
        from mcshade.scene.manager import SceneConfig

        config = SceneConfig(lights=[{"type": "spot"}])

        with pytest.raises(ValueError, match="Unknown light type"):
            fresh_scene.from_config(config)

    def test_glazed_config_requires_substrate(self, fresh_scene):
        from mcshade.scene.manager import SceneConfig

        with pytest.raises(ValueError):
            fresh_scene.from_config(SceneConfig(materials=[{"type": "glazed"}]))

    def test_environment_round_trip(self, fresh_scene, tmp_path):
        import numpy as np

        from mcshade.lights.environment import has_environment
        from mcshade.lights.pfm import write_pfm

        path = tmp_path / "sky.pfm"
        write_pfm(path, np.ones((8, 6, 3)))
        fresh_scene.set_environment(path, scale_factor=2.0)

        data = fresh_scene.to_dict()
        assert data["environment"] == {"path": str(path), "scale_factor": 2.0}

        fresh_scene.clear()
        assert not has_environment()
        fresh_scene.from_dict(data)
        assert has_environment()

    def test_in_memory_environment_not_exported(self, fresh_scene):
        import numpy as np

        fresh_scene.set_environment_image(np.ones((8, 6, 3)))
        assert fresh_scene.to_dict()["environment"] is None


class TestSceneQueries:
    """Tests for scene query methods."""

    def test_get_primitive_count(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(reflectance=(0.5, 0.5, 0.5))
        fresh_scene.add_sphere(center=(0.0, 0.0, -1.0), radius=0.5, material_id=mat_id)
        fresh_scene.add_sphere(center=(1.0, 0.0, -1.0), radius=0.5, material_id=mat_id)
        fresh_scene.add_quad(
            corner=(-1.0, -1.0, -2.0),
            edge_u=(2.0, 0.0, 0.0),
            edge_v=(0.0, 2.0, 0.0),
            material_id=mat_id,
        )

        assert fresh_scene.get_primitive_count() == 3

    def test_capacity_methods(self, fresh_scene):
        assert fresh_scene.get_max_spheres() > 0
        assert fresh_scene.get_max_quads() > 0
        assert fresh_scene.get_max_materials() > 0
        assert fresh_scene.get_max_lights() > 0


class TestIntegrationWithIntersection:
    """Tests that SceneManager works with the intersection system."""

    def test_intersection_returns_correct_material_id(self, fresh_scene):
        from mcshade.core.ray import make_ray, vec3
        from mcshade.scene.intersection import intersect_scene

        mat0 = fresh_scene.add_lambertian_material(reflectance=(0.8, 0.3, 0.3))
        mat1 = fresh_scene.add_glass_material(ior=1.5)

        fresh_scene.add_sphere(center=(0.0, 0.0, -3.0), radius=0.5, material_id=mat0)
        fresh_scene.add_sphere(center=(0.0, 0.0, -5.0), radius=0.5, material_id=mat1)

        hit = ti.field(dtype=ti.i32, shape=())
        material_id = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = intersect_scene(make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0)))
            hit[None] = rec.hit
            material_id[None] = rec.material_id

        test_kernel()

        assert hit[None] == 1
        assert material_id[None] == mat0
