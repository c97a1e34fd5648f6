#!/usr/bin/env python3
"""
Tests for the inlined math helpers: the numpy evaluations of the emitted
algorithms against numpy/scipy, helper ordering and C rendering.
"""

import numpy as np
import pytest
from scipy import special

from simdgen.backends.math_helpers import (
    DIALECTS, c_literal, order_helpers, reference_erf, reference_exp,
    reference_log, reference_sigmoid, render_helper, render_helpers,
)
from simdgen.passes.base import HelperRef
from simdgen.shared.errors import SimdgenImplementationError


class TestReferenceAccuracy:
    """The helper algorithms track the library functions closely."""

    @pytest.mark.parametrize("precision,dtype,rtol", [
        ("f32", np.float32, 2e-6),
        ("f64", np.float64, 1e-13),
    ])
    def test_exp(self, precision, dtype, rtol):
        x = np.linspace(-80, 80, 2001).astype(dtype)
        np.testing.assert_allclose(reference_exp(x, precision), np.exp(x), rtol=rtol)

    def test_exp_saturates(self):
        out = reference_exp(np.array([100.0, -100.0], dtype=np.float32), "f32")
        assert np.isinf(out[0]) and out[0] > 0
        assert out[1] == 0.0

    @pytest.mark.parametrize("precision,x,rtol", [
        ("f32", [88.4, 88.6, 88.7, 88.72], 2e-6),
        ("f64", [709.0, 709.5, 709.78], 1e-13),
    ])
    def test_exp_is_finite_up_to_the_overflow_bound(self, precision, x, rtol):
        x = np.array(x, dtype=np.float32 if precision == "f32" else np.float64)
        out = reference_exp(x, precision)
        assert np.all(np.isfinite(out))
        np.testing.assert_allclose(out, np.exp(x), rtol=rtol)

    @pytest.mark.parametrize("precision,dtype,tol", [
        ("f32", np.float32, 2e-6),
        ("f64", np.float64, 1e-12),
    ])
    def test_log(self, precision, dtype, tol):
        x = np.geomspace(1e-6, 1e6, 2001).astype(dtype)
        np.testing.assert_allclose(reference_log(x, precision), np.log(x), rtol=tol, atol=tol)

    def test_log_of_one_is_zero(self):
        assert reference_log(np.array([1.0], dtype=np.float64), "f64")[0] == 0.0

    @pytest.mark.parametrize("precision,dtype", [("f32", np.float32), ("f64", np.float64)])
    def test_sigmoid(self, precision, dtype):
        x = np.linspace(-30, 30, 601).astype(dtype)
        expected = 1.0 / (1.0 + np.exp(-x.astype(np.float64)))
        np.testing.assert_allclose(reference_sigmoid(x, precision), expected, rtol=1e-5, atol=1e-7)

    @pytest.mark.parametrize("precision,dtype", [("f32", np.float32), ("f64", np.float64)])
    def test_erf(self, precision, dtype):
        # Abramowitz-Stegun 7.1.26 is good to about 1.5e-7 absolute
        x = np.linspace(-4, 4, 801).astype(dtype)
        np.testing.assert_allclose(reference_erf(x, precision), special.erf(x), atol=1e-6)

    def test_erf_is_odd(self):
        x = np.linspace(0.1, 3, 30)
        np.testing.assert_allclose(reference_erf(-x, "f64"), -reference_erf(x, "f64"))


class TestHelperOrdering:
    def test_dependencies_come_first(self):
        refs = [HelperRef("vector", "sigmoid", "f32"), HelperRef("vector", "log", "f32")]
        names = [r.c_name for r in order_helpers(refs)]
        assert names == ["_v_exp_f32", "_v_sigmoid_f32", "_v_log_f32"]

    def test_bit_helpers_lead_and_duplicates_collapse(self):
        refs = [
            HelperRef("scalar", "erf", "f64"),
            HelperRef("scalar", "exp", "f64"),
            HelperRef("bits", "float_to_bits"),
            HelperRef("scalar", "erf", "f64"),
        ]
        names = [r.c_name for r in order_helpers(refs)]
        assert names == ["float_to_bits", "_s_exp_f64", "_s_erf_f64"]

    def test_c_names(self):
        assert HelperRef("vector", "exp", "f32").c_name == "_v_exp_f32"
        assert HelperRef("scalar", "log", "f64").c_name == "_s_log_f64"
        assert HelperRef("bits", "bits_to_float").c_name == "bits_to_float"


class TestHelperRendering:
    @pytest.mark.parametrize("vec_type", sorted(DIALECTS))
    def test_every_dialect_renders_every_function(self, vec_type):
        precision = DIALECTS[vec_type].precision
        for name in ("exp", "log", "sigmoid", "erf"):
            text = render_helper(HelperRef("vector", name, precision), vec_type)
            assert text.startswith(f"static inline {vec_type} _v_{name}_{precision}({vec_type} x) {{")
            assert text.endswith("}")
            assert text.count("{") == text.count("}")

    def test_vector_sigmoid_calls_exp(self):
        text = render_helper(HelperRef("vector", "sigmoid", "f32"), "float32x4_t")
        assert "_v_exp_f32(" in text
        assert "vdivq_f32" in text

    def test_scalar_helpers(self):
        exp32 = render_helper(HelperRef("scalar", "exp", "f32"))
        assert exp32.startswith("static inline float _s_exp_f32(float x) {")
        assert "__builtin_rintf(" in exp32
        exp64 = render_helper(HelperRef("scalar", "exp", "f64"))
        assert "__builtin_rint(" in exp64 and "rintf" not in exp64
        erf64 = render_helper(HelperRef("scalar", "erf", "f64"))
        assert "_s_exp_f64(-ax * ax)" in erf64

    def test_exp_scales_by_two_factors(self):
        scalar = render_helper(HelperRef("scalar", "exp", "f32"))
        assert "__builtin_rintf(kf * 0.5f)" in scalar
        assert "return ep * scale_h * scale_r;" in scalar
        vector = render_helper(HelperRef("vector", "exp", "f32"), "float32x4_t")
        assert "scale_h" in vector and "scale_r" in vector

    def test_no_external_calls(self):
        for name in ("exp", "log", "sigmoid", "erf"):
            text = render_helper(HelperRef("scalar", name, "f32"))
            for libm in ("expf(", "logf(", "erff("):
                assert libm not in text

    def test_bit_helper(self):
        text = render_helper(HelperRef("bits", "float_to_bits"))
        assert text.startswith("static inline unsigned int float_to_bits(float f) {")

    def test_precision_mismatch(self):
        with pytest.raises(SimdgenImplementationError):
            render_helper(HelperRef("vector", "exp", "f64"), "float32x4_t")
        with pytest.raises(SimdgenImplementationError):
            render_helper(HelperRef("vector", "exp", "f32"), None)

    def test_render_helpers_expands_dependencies(self):
        texts = render_helpers([HelperRef("vector", "erf", "f32")], "__m256")
        assert len(texts) == 2
        assert "_v_exp_f32(__m256 x)" in texts[0]
        assert "_v_erf_f32(__m256 x)" in texts[1]


class TestCLiterals:
    @pytest.mark.parametrize("value,precision,expected", [
        (0.5, "f32", "0.5f"),
        (1.0, "f32", "1.0f"),
        (1.0, "f64", "1.0"),
        (0.1, "f32", "0.1f"),
        (-2.0, "f64", "-2.0"),
    ])
    def test_literal(self, value, precision, expected):
        assert c_literal(value, precision) == expected
