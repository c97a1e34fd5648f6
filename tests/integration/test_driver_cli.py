#!/usr/bin/env python3
"""
Tests for the compiler driver (translation units, target resolution,
diagnostics, IR dumps) and the command-line entry point.
"""

import pytest
from tests.test_utils import kernel
from simdgen.__main__ import main
from simdgen.compiler.driver import CompilerDriver, parse_target, write_units
from simdgen.passes.base import LoweringOptions
from simdgen.profiles.registry import ProfileRegistry, build_default_registry
from simdgen.shared.errors import ConfigurationError, ProfileNotFoundError
from simdgen.utils.config import ENV_DUMP_IR

pytestmark = pytest.mark.integration

SOURCE = kernel("""
    func BaseScale[T hwy.Floats](a, out []T, s T, n int) {
        vs := hwy.Set(s)
        for i := 0; i+4 <= n; i += 4 {
            hwy.Store(hwy.Mul(hwy.Load(a[i:]), vs), out[i:])
        }
    }

    func BaseSigmoid(a, out []float32, n int) {
        for i := 0; i+4 <= n; i += 4 {
            hwy.Store(hwy.Sigmoid(hwy.Load(a[i:])), out[i:])
        }
    }
""")

DEFER = kernel("""
    func BaseDeferred(a []float32) {
        defer cleanup(a)
    }
""")


class TestTargets:
    def test_parse_target(self):
        assert parse_target("NEON:float32") == ("NEON", "float32")
        assert parse_target(" AVX2 : hwy.Float16 ") == ("AVX2", "hwy.Float16")

    @pytest.mark.parametrize("spec", ["NEON", ":float32", "NEON:", ""])
    def test_invalid_target(self, spec):
        with pytest.raises(ConfigurationError, match="expected ARCH:ELEMENT"):
            parse_target(spec)

    def test_default_targets_are_all_profiles(self, driver, registry):
        assert driver.resolve_targets(None) == list(registry)

    def test_duplicates_collapse(self, driver):
        profiles = driver.resolve_targets(["NEON:float32", "neon:f32", ("NEON", "float32")])
        assert len(profiles) == 1

    def test_unknown_element(self, driver):
        with pytest.raises(ConfigurationError, match="unknown element type"):
            driver.resolve_targets(["NEON:float128"])

    def test_missing_profile(self, driver):
        with pytest.raises(ProfileNotFoundError):
            driver.resolve_targets(["AVX2:uint64"])

    def test_configuration_errors_precede_parsing(self, driver):
        with pytest.raises(ConfigurationError):
            driver.compile("this is not a kernel", "bad.go", ["RISCV:float32"])


class TestCompile:
    def test_units_per_function_and_target(self, driver):
        result = driver.compile(SOURCE, "scale.go", ["NEON:float32", "AVX2:float32"])
        assert result.success and not result.has_errors()
        assert [u.c_function_name for u in result.units] == [
            "scale_c_f32_neon", "scale_c_f32_avx2", "sigmoid_c_f32_neon", "sigmoid_c_f32_avx2",
        ]
        assert result.unit("scale_c_f32_avx2").filename == "scale_c_f32_avx2.c"
        assert result.unit("missing") is None

    def test_unit_layout(self, driver):
        result = driver.compile(SOURCE, "scale.go", ["NEON:float32"], function_names=["BaseSigmoid"])
        text = result.units[0].text
        assert text.startswith(
            "// Code generated by simdgen from scale.go. DO NOT EDIT.\n"
            "// Target: NEON:float32 (tier q, 4 lanes)\n"
            "// Compiler flags: -march=armv8-a+simd+fp\n"
            "#include <arm_neon.h>\n"
        )
        exp = text.index("_v_exp_f32(float32x4_t x) {")
        sigmoid = text.index("_v_sigmoid_f32(float32x4_t x) {")
        fn = text.index("void sigmoid_c_f32_neon(float *a, float *out, long *pn) {")
        assert exp < sigmoid < fn
        assert text.endswith("}\n")

    def test_profile_helpers_included(self, driver):
        source = kernel("""
            func BaseCount(a []uint64) {
                v := hwy.Load(a)
                hwy.Store(hwy.PopCount(v), a)
            }
        """)
        text = driver.compile(source, "count.go", ["NEON:uint64"]).units[0].text
        assert "static inline uint64x2_t neon_popcnt_u64(uint64x2_t v) {" in text
        assert "vst1q_u64((uint64_t *)(a), neon_popcnt_u64(v));" in text

    def test_all_registered_targets_by_default(self, driver, registry):
        result = driver.compile(SOURCE, "scale.go", function_names=["BaseScale"])
        assert len(result.units) == len(list(registry))
        assert {u.profile.architecture for u in result.units} == {"NEON", "AVX2", "AVX512"}

    def test_unknown_function(self, driver):
        result = driver.compile(SOURCE, "scale.go", ["NEON:float32"], function_names=["BaseNope"])
        assert not result.success
        assert [d.code for d in result.reporter.errors] == ["E0300"]
        assert result.units == []

    def test_parse_error_is_reported(self, driver):
        result = driver.compile("package kernels\nfunc Broken( {\n", "broken.go", ["NEON:float32"])
        assert not result.success
        assert result.ir is None
        assert len(result.reporter.errors) == 1

    def test_permissive_mode_warns(self, driver):
        result = driver.compile(DEFER, "defer.go", ["NEON:float32"])
        assert result.success
        assert [d.code for d in result.reporter.warnings] == ["W0200"]
        assert "cleanup" not in result.units[0].text

    def test_strict_mode_fails_the_unit(self, driver):
        result = driver.compile(DEFER, "defer.go", ["NEON:float32"], LoweringOptions(strict=True))
        assert not result.success
        assert result.units == []
        assert [d.code for d in result.reporter.errors] == ["E0200"]

    def test_write_units(self, driver, tmp_path):
        result = driver.compile(SOURCE, "scale.go", ["NEON:float32"])
        written = write_units(result.units, tmp_path / "out")
        assert [p.name for p in written] == ["scale_c_f32_neon.c", "sigmoid_c_f32_neon.c"]
        assert written[0].read_text(encoding="utf-8") == result.units[0].text

    def test_custom_registry(self):
        registry = build_default_registry()
        driver = CompilerDriver(registry)
        assert driver.resolve_targets(["NEON:float32"])[0] is registry.lookup("NEON", "float32")


class TestIRDump:
    def test_dump_to_directory(self, driver, tmp_path, monkeypatch):
        dump_dir = tmp_path / "dumps"
        monkeypatch.setenv(ENV_DUMP_IR, str(dump_dir))
        driver.compile(SOURCE, "kernels/scale.go", ["NEON:float32"])
        dumped = (dump_dir / "scale.sexpr").read_text(encoding="utf-8")
        assert dumped.startswith('(file\n  (package "kernels")')
        assert '"BaseSigmoid"' in dumped

    def test_no_dump_by_default(self, driver, tmp_path, monkeypatch):
        monkeypatch.delenv(ENV_DUMP_IR, raising=False)
        monkeypatch.chdir(tmp_path)
        driver.compile(SOURCE, "scale.go", ["NEON:float32"])
        assert list(tmp_path.iterdir()) == []


class TestCommandLine:
    def test_list_profiles(self, capsys):
        assert main(["--list-profiles"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert len(out) == len(list(ProfileRegistry.default()))
        assert out[0] == "NEON:float32  primary=q (4 lanes)  tiers=[qx4, qx4, scalarx1]"

    def test_dump_ir(self, kernel_file, capsys):
        path = kernel_file(SOURCE)
        assert main([str(path), "--dump-ir"]) == 0
        assert capsys.readouterr().out.startswith("(file")

    def test_stdout_output(self, kernel_file, capsys):
        path = kernel_file(SOURCE)
        assert main([str(path), "-t", "NEON:float32", "--function", "BaseScale"]) == 0
        out = capsys.readouterr().out
        assert "void scale_c_f32_neon(float *a, float *out, float *ps, long *pn) {" in out
        assert "sigmoid" not in out

    def test_output_directory(self, kernel_file, tmp_path, capsys):
        path = kernel_file(SOURCE)
        out_dir = tmp_path / "gen"
        assert main([str(path), "-t", "AVX2:hwy.Float16", "-o", str(out_dir)]) == 0
        assert sorted(p.name for p in out_dir.iterdir()) == [
            "scale_c_f16_avx2.c", "sigmoid_c_f16_avx2.c"]
        assert "simdgen: wrote" in capsys.readouterr().err

    def test_tier_option(self, kernel_file, capsys):
        path = kernel_file(SOURCE)
        args = [str(path), "-t", "NEON:hwy.Float16", "--function", "BaseScale"]
        assert main(args + ["--tier", "q"]) == 0
        assert "(tier q, 8 lanes)" in capsys.readouterr().out
        assert main(args) == 0
        assert "(tier d, 4 lanes)" in capsys.readouterr().out

    def test_tier_missing_on_target(self, kernel_file, capsys):
        path = kernel_file(SOURCE)
        assert main([str(path), "-t", "NEON:float32", "--tier", "ymm"]) == 1
        assert "has no ymm tier" in capsys.readouterr().err

    def test_scalar_tier_not_selectable(self, kernel_file):
        with pytest.raises(SystemExit):
            main([str(kernel_file(SOURCE)), "--tier", "scalar"])

    def test_bad_target(self, kernel_file, capsys):
        assert main([str(kernel_file(SOURCE)), "-t", "NEON"]) == 1
        assert "simdgen: error: invalid target" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.go")]) == 1
        assert "file not found" in capsys.readouterr().err

    def test_parse_error_exit_code(self, kernel_file):
        path = kernel_file("package kernels\nfunc Broken( {\n")
        assert main([str(path), "-t", "NEON:float32"]) == 1

    def test_strict_flag(self, kernel_file):
        path = kernel_file(DEFER)
        assert main([str(path), "-t", "NEON:float32"]) == 0
        assert main([str(path), "-t", "NEON:float32", "--strict"]) == 1
