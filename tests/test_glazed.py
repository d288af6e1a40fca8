"""Unit tests for the glazed (coat over substrate) BSDF.

Tests cover:
- eval forwarding to the substrate
- pdf = (1 - R) * substrate pdf
- Fresnel-weighted choice between the mirror coat and the substrate
- Sample/pdf consistency for continuous substrate samples
- Substrate validation in the SceneManager

The mixture is pinned deliberately: overwriting the Fresnel-weighted choice
with a plain mirror reflection (probability 1, always discrete) would make
the substrate invisible.
"""

import math

import numpy as np
import pytest
import taichi as ti

IOR = 1.5
R_NORMAL = ((IOR - 1.0) / (IOR + 1.0)) ** 2


@pytest.fixture
def glazed_scene():
    """A glazed material over a Lambertian substrate; yields (scene, glazed_id, substrate_id)."""
    from mcshade.scene.manager import SceneManager

    scene = SceneManager()
    substrate_id = scene.add_lambertian_material((0.6, 0.4, 0.2))
    glazed_id = scene.add_glazed_material(substrate_id, ior=IOR)
    yield scene, glazed_id, substrate_id
    scene.clear()


class TestGlazedEval:
    def test_eval_forwards_to_substrate(self, glazed_scene):
        from mcshade.core.ray import vec3
        from mcshade.materials.bsdf import bsdf_eval

        _, glazed_id, substrate_id = glazed_scene
        result = ti.field(dtype=vec3, shape=2)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            d1 = vec3(0.6, 0.0, 0.8)
            d2 = vec3(0.0, 0.6, 0.8)
            result[0] = bsdf_eval(glazed_id, d1, d2, n)
            result[1] = bsdf_eval(substrate_id, d1, d2, n)

        test_kernel()
        for i in range(3):
            assert result[0][i] == pytest.approx(result[1][i])
        assert result[0][0] == pytest.approx(0.6 / math.pi)

    def test_pdf_scaled_by_substrate_probability(self, glazed_scene):
        from mcshade.core.ray import vec3
        from mcshade.materials.bsdf import bsdf_pdf

        _, glazed_id, substrate_id = glazed_scene
        result = ti.field(dtype=ti.f64, shape=2)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            d2 = vec3(0.0, 0.6, 0.8)
            result[0] = bsdf_pdf(glazed_id, n, d2, n)
            result[1] = bsdf_pdf(substrate_id, n, d2, n)

        test_kernel()
        assert result[1] == pytest.approx(0.8 / math.pi)
        assert result[0] == pytest.approx((1.0 - R_NORMAL) * result[1])


class TestGlazedSampling:
    def _sample(self, material_id, seed_x, seed_y=0.3):
        from mcshade.core.ray import vec2, vec3
        from mcshade.materials.bsdf import bsdf_sample

        direction = ti.field(dtype=vec3, shape=())
        scalars = ti.field(dtype=ti.f64, shape=2)
        discrete = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            s = bsdf_sample(material_id, n, n, vec2(seed_x, seed_y))
            direction[None] = s.direction
            scalars[0] = s.value.x
            scalars[1] = s.pdf
            discrete[None] = s.is_discrete

        test_kernel()
        d = direction[None]
        return (d[0], d[1], d[2]), scalars[0], scalars[1], discrete[None]

    def test_coat_branch_is_discrete_mirror(self, glazed_scene):
        _, glazed_id, _ = glazed_scene
        direction, value, pdf, discrete = self._sample(glazed_id, 0.5 * R_NORMAL)
        assert discrete == 1
        assert direction == pytest.approx((0.0, 0.0, 1.0))
        assert pdf == pytest.approx(R_NORMAL)
        assert value / pdf == pytest.approx(1.0)

    def test_substrate_branch_is_continuous(self, glazed_scene):
        """Seeds above R reach the substrate instead of the mirror."""
        _, glazed_id, _ = glazed_scene
        direction, value, pdf, discrete = self._sample(glazed_id, 0.7)
        assert discrete == 0
        assert direction[2] > 0.0
        assert value == pytest.approx(0.6 / math.pi)
        assert pdf == pytest.approx((1.0 - R_NORMAL) * direction[2] / math.pi)

    def test_substrate_seed_is_rescaled(self, glazed_scene):
        """seed.x just above R maps to a substrate seed near 0, i.e. near the normal."""
        _, glazed_id, _ = glazed_scene
        direction, _, _, discrete = self._sample(glazed_id, R_NORMAL + 1e-9)
        assert discrete == 0
        assert direction == pytest.approx((0.0, 0.0, 1.0), abs=1e-3)

    def test_branch_frequency_matches_fresnel(self, glazed_scene):
        """Oblique incidence: the coat is chosen with probability R(dir1)."""
        from mcshade.core.ray import vec2, vec3
        from mcshade.materials.bsdf import bsdf_pdf, bsdf_sample

        _, glazed_id, _ = glazed_scene
        angle = math.radians(75.0)
        n_samples = 20000
        discrete = ti.field(dtype=ti.i32, shape=n_samples)
        sampled = ti.field(dtype=ti.f64, shape=n_samples)
        evaluated = ti.field(dtype=ti.f64, shape=n_samples)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            d1 = vec3(ti.sin(angle), 0.0, ti.cos(angle))
            for i in range(n_samples):
                s = bsdf_sample(glazed_id, d1, n, vec2(ti.random(ti.f64), ti.random(ti.f64)))
                discrete[i] = s.is_discrete
                sampled[i] = s.pdf
                evaluated[i] = 0.0
                if s.is_discrete == 0:
                    evaluated[i] = bsdf_pdf(glazed_id, d1, s.direction, n)

        test_kernel()
        cos_1 = math.cos(angle)
        cos_2 = math.sqrt(1.0 - (1.0 - cos_1 * cos_1) / (IOR * IOR))
        f_p = (IOR * cos_1 - cos_2) / (IOR * cos_1 + cos_2)
        f_s = (cos_1 - IOR * cos_2) / (cos_1 + IOR * cos_2)
        reflectance = 0.5 * (f_p * f_p + f_s * f_s)

        is_discrete = discrete.to_numpy() == 1
        fraction = is_discrete.mean()
        sigma = math.sqrt(reflectance * (1.0 - reflectance) / n_samples)
        assert abs(fraction - reflectance) < 5.0 * sigma

        continuous = ~is_discrete
        np.testing.assert_allclose(
            sampled.to_numpy()[continuous], evaluated.to_numpy()[continuous], rtol=1e-6, atol=1e-9
        )


class TestGlazedPdfChecks:
    def test_nan_ior_fails_assertion(self, glazed_scene):
        """A NaN coat index yields a NaN pdf, which debug mode rejects."""
        from mcshade.core.ray import vec2, vec3
        from mcshade.materials.bsdf import bsdf_sample
        from mcshade.materials.glazed import glazed_iors

        scene, glazed_id, _ = glazed_scene
        glazed_iors[scene.get_material_info(glazed_id).type_index] = float("nan")
        pdf = ti.field(dtype=ti.f64, shape=())

        @ti.kernel
        def test_kernel():
            s = bsdf_sample(glazed_id, vec3(0.6, 0.0, 0.8), vec3(0.0, 0.0, 1.0), vec2(0.3, 0.3))
            pdf[None] = s.pdf

        with pytest.raises(ti.TaichiAssertionError):
            test_kernel()
            ti.sync()


class TestGlazedValidation:
    def test_glass_substrate_rejected(self):
        from mcshade.scene.manager import SceneManager

        scene = SceneManager()
        glass_id = scene.add_glass_material(1.5)
        with pytest.raises(ValueError):
            scene.add_glazed_material(glass_id)

    def test_nested_glaze_rejected(self, glazed_scene):
        scene, glazed_id, _ = glazed_scene
        with pytest.raises(ValueError):
            scene.add_glazed_material(glazed_id)

    def test_unknown_substrate_rejected(self):
        from mcshade.scene.manager import SceneManager

        scene = SceneManager()
        with pytest.raises(ValueError):
            scene.add_glazed_material(5)

    def test_microfacet_substrate_accepted(self):
        from mcshade.scene.manager import SceneManager

        scene = SceneManager()
        substrate_id = scene.add_microfacet_material((0.2, 0.2, 0.2))
        glazed_id = scene.add_glazed_material(substrate_id, ior=1.4)
        info = scene.get_material_info(glazed_id)
        assert info.params["substrate_id"] == substrate_id
