"""Unit tests for the Lambertian material module.

Tests cover:
- Lambertian BSDF evaluation (reflectance / pi, zero below the surface)
- PDF of cosine-weighted sampling
- Cosine-hemisphere law of generated samples (chi-squared test)
- Hemisphere normalization of the pdf
- Material registry operations
"""

import math

import numpy as np
import pytest
import taichi as ti
from scipy.stats import chi2


class TestLambertianBsdf:
    """Tests for Lambertian BSDF evaluation."""

    def test_eval_colored(self):
        """Test BSDF for colored (0.5, 0.3, 0.1) reflectance."""
        from mcshade.core.ray import vec3
        from mcshade.materials.lambertian import eval_lambertian

        result = ti.field(dtype=vec3, shape=())

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            result[None] = eval_lambertian(
                vec3(0.5, 0.3, 0.1), vec3(0.6, 0.0, 0.8), vec3(0.0, 0.6, 0.8), n
            )

        test_kernel()
        r = result[None]
        assert r[0] == pytest.approx(0.5 / math.pi)
        assert r[1] == pytest.approx(0.3 / math.pi)
        assert r[2] == pytest.approx(0.1 / math.pi)

    def test_eval_back_side_is_zero(self):
        """Test either direction below the surface gives exactly zero."""
        from mcshade.core.ray import vec3
        from mcshade.materials.lambertian import eval_lambertian

        result = ti.field(dtype=vec3, shape=2)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            up = vec3(0.0, 0.0, 1.0)
            down = vec3(0.0, 0.6, -0.8)
            result[0] = eval_lambertian(vec3(1.0, 1.0, 1.0), up, down, n)
            result[1] = eval_lambertian(vec3(1.0, 1.0, 1.0), down, up, n)

        test_kernel()
        for i in range(2):
            assert (result[i][0], result[i][1], result[i][2]) == (0.0, 0.0, 0.0)

    def test_pdf_cosine(self):
        from mcshade.core.ray import vec3
        from mcshade.materials.lambertian import pdf_lambertian

        result = ti.field(dtype=ti.f64, shape=2)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            result[0] = pdf_lambertian(n, vec3(0.6, 0.0, 0.8), n)
            result[1] = pdf_lambertian(n, vec3(0.6, 0.0, -0.8), n)

        test_kernel()
        assert result[0] == pytest.approx(0.8 / math.pi)
        assert result[1] == 0.0


class TestLambertianSampling:
    """Statistical tests for sample_lambertian."""

    def test_sample_matches_pdf(self):
        from mcshade.core.ray import vec2, vec3
        from mcshade.materials.lambertian import pdf_lambertian, sample_lambertian

        n_tests = 256
        sampled = ti.field(dtype=ti.f64, shape=n_tests)
        evaluated = ti.field(dtype=ti.f64, shape=n_tests)
        discrete = ti.field(dtype=ti.i32, shape=n_tests)

        @ti.kernel
        def test_kernel():
            for i in range(n_tests):
                n = vec3(ti.random(ti.f64) - 0.5, ti.random(ti.f64) - 0.5, ti.random(ti.f64) - 0.5).normalized()
                d1 = n
                s = sample_lambertian(vec3(0.5, 0.5, 0.5), d1, n, vec2(ti.random(ti.f64), ti.random(ti.f64)))
                sampled[i] = s.pdf
                evaluated[i] = pdf_lambertian(d1, s.direction, n)
                discrete[i] = s.is_discrete

        test_kernel()
        np.testing.assert_allclose(sampled.to_numpy(), evaluated.to_numpy(), atol=1e-6)
        assert np.all(discrete.to_numpy() == 0)

    def test_cosine_hemisphere_law(self):
        """Polar angles follow the CDF 0.5 - 0.5 cos(2 theta) = sin^2(theta)."""
        from mcshade.core.ray import vec2, vec3
        from mcshade.materials.lambertian import sample_lambertian

        n_samples = 20000
        n_bins = 20
        thetas = ti.field(dtype=ti.f64, shape=n_samples)

        @ti.kernel
        def test_kernel():
            n = vec3(0.3, -0.4, 0.5).normalized()
            for i in range(n_samples):
                s = sample_lambertian(vec3(1.0, 1.0, 1.0), n, n, vec2(ti.random(ti.f64), ti.random(ti.f64)))
                thetas[i] = ti.acos(ti.min(1.0, ti.max(-1.0, s.direction.dot(n))))

        test_kernel()
        edges = np.linspace(0.0, math.pi / 2.0, n_bins + 1)
        observed, _ = np.histogram(np.clip(thetas.to_numpy(), 0.0, math.pi / 2.0), bins=edges)
        cdf = 0.5 - 0.5 * np.cos(2.0 * edges)
        expected = n_samples * np.diff(cdf)

        statistic = np.sum((observed - expected) ** 2 / expected)
        p_value = chi2.sf(statistic, n_bins - 1)
        assert p_value > 0.01

    def test_pdf_normalization(self):
        """Midpoint quadrature of the pdf over the hemisphere equals one."""
        from mcshade.core.ray import vec3
        from mcshade.materials.lambertian import pdf_lambertian

        res = 256
        total = ti.field(dtype=ti.f64, shape=())

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 0.0, 1.0)
            for k, j in ti.ndrange(res, res):
                phi = (k + 0.5) * 2.0 * math.pi / res
                cos_theta = (j + 0.5) / res
                sin_theta = ti.sqrt(1.0 - cos_theta * cos_theta)
                wo = vec3(sin_theta * ti.cos(phi), sin_theta * ti.sin(phi), cos_theta)
                total[None] += pdf_lambertian(n, wo, n)

        test_kernel()
        assert total[None] * 2.0 * math.pi / (res * res) == pytest.approx(1.0, abs=1e-4)


class TestLambertianRegistry:
    """Tests for Lambertian material storage."""

    def test_add_and_count(self):
        from mcshade.materials.lambertian import add_lambertian_material, get_lambertian_material_count

        assert add_lambertian_material((0.5, 0.5, 0.5)) == 0
        assert add_lambertian_material((0.1, 0.2, 0.3)) == 1
        assert get_lambertian_material_count() == 2

    def test_read_back(self):
        from mcshade.core.ray import vec3
        from mcshade.materials.lambertian import add_lambertian_material, get_lambertian_reflectance

        idx = add_lambertian_material((0.1, 0.2, 0.3))
        result = ti.field(dtype=vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = get_lambertian_reflectance(idx)

        test_kernel()
        assert result[None][2] == pytest.approx(0.3)

    def test_clear(self):
        from mcshade.materials.lambertian import (
            add_lambertian_material,
            clear_lambertian_materials,
            get_lambertian_material_count,
        )

        add_lambertian_material((0.5, 0.5, 0.5))
        clear_lambertian_materials()
        assert get_lambertian_material_count() == 0

    @pytest.mark.parametrize("reflectance", [(1.1, 0.5, 0.5), (0.5, -0.1, 0.5), (0.5, 0.5)])
    def test_invalid_reflectance(self, reflectance):
        from mcshade.materials.lambertian import add_lambertian_material

        with pytest.raises(ValueError):
            add_lambertian_material(reflectance)
