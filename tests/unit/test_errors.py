#!/usr/bin/env python3
"""
Tests for diagnostics: the rustc-style formatter, the reporter, parse
errors with locations, and the strict/permissive lowering policy.
"""

import re
import pytest
from tests.test_utils import kernel, lower_source, parse_source
from simdgen.shared.errors import (
    ConfigurationError,
    Error,
    ErrorReporter,
    ParseError,
    ProfileNotFoundError,
    SimdgenSourceError,
    UnsupportedConstructError,
)
from simdgen.shared.source_location import SourceLocation

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


class TestErrorReporterFormatting:
    """Edge cases for the diagnostic formatter."""

    def test_location_none(self):
        err = Error(message="something failed", location=None, code="E0001")
        out = ErrorReporter({}).format_error(err, color=False)
        assert "error[E0001]" in out
        assert "something failed" in out
        assert "unknown location" in out

    def test_file_not_in_source_files(self):
        loc = SourceLocation(file="missing.go", line=1, column=1)
        err = Error(message="oops", location=loc, code="E0100")
        out = ErrorReporter({}).format_error(err, color=False)
        assert "error[E0100]" in out
        assert "missing.go:1:1" in out

    def test_line_beyond_source(self):
        loc = SourceLocation(file="x.go", line=10, column=1)
        err = Error(message="bad", location=loc)
        out = ErrorReporter({"x.go": "package x\nfunc F() {}\n"}).format_error(err, color=False)
        assert " --> x.go:10:1" in out
        assert " |" in out

    def test_warning_with_span_and_label(self):
        source = "package k\nfunc F(v hwy.Vec[float32]) {\n    r := hwy.Sqrt(v)\n}"
        loc = SourceLocation(file="k.go", line=3, column=10, end_line=3, end_column=18)
        err = Error(message="no NEON mapping for Sqrt at tier d", location=loc,
                    code="W0100", severity="warning", label="emitted as placeholder",
                    help="add the operation to the profile table")
        out = ErrorReporter({"k.go": source}).format_error(err, color=False)
        assert out.startswith("warning[W0100]: no NEON mapping")
        assert "3 |     r := hwy.Sqrt(v)" in out
        assert "^^^^^^^^ emitted as placeholder" in out
        assert "= help: add the operation to the profile table" in out

    def test_span_guessed_without_end_column(self):
        loc = SourceLocation(file="f.go", line=1, column=6)
        err = Error(message="unknown", location=loc, label="here")
        out = ErrorReporter({"f.go": "x := frob(y)"}).format_error(err, color=False)
        assert "     ^^^^^^ here" in out

    def test_summary_counts_errors_only(self):
        reporter = ErrorReporter({"a.go": "x := ;"})
        loc = SourceLocation(file="a.go", line=1, column=6)
        reporter.report_error("first", loc, code="E0100")
        reporter.report_error("second", loc, code="E0200")
        reporter.report_warning("just a warning", loc, code="W0200")
        out = reporter.format_all(color=False)
        assert "error[E0100]" in out
        assert "error[E0200]" in out
        assert "warning[W0200]" in out
        assert "aborting due to 2 previous errors" in out

    def test_warnings_only_has_no_summary(self):
        reporter = ErrorReporter()
        reporter.report_warning("w", None, code="W0300")
        assert not reporter.has_errors()
        assert "aborting" not in reporter.format_all(color=False)

    def test_extend_merges_sources_and_diagnostics(self):
        a = ErrorReporter({"a.go": "a"})
        b = ErrorReporter({"b.go": "b"})
        b.report_warning("w", None)
        a.extend(b)
        assert set(a.source_files) == {"a.go", "b.go"}
        assert len(a.warnings) == 1 and not a.errors

    def test_color_codes_only_when_requested(self):
        err = Error(message="m", location=None, code="E0001")
        reporter = ErrorReporter()
        assert "\x1b[" in reporter.format_error(err, color=True)
        assert "\x1b[" not in reporter.format_error(err, color=False)

    def test_source_error_str_with_source(self):
        loc = SourceLocation(file="y.go", line=1, column=6, end_line=1, end_column=9)
        e = SimdgenSourceError("bad call", location=loc, source_code="x := foo()")
        plain = _strip_ansi(str(e))
        assert "bad call" in plain
        assert "1 | x := foo()" in plain
        assert "^^^" in plain

    def test_source_error_to_diagnostic(self):
        e = UnsupportedConstructError("`defer` statements cannot be lowered to C", None, help="remove it")
        diag = e.to_diagnostic()
        assert diag.code == "E0200"
        assert diag.help == "remove it"
        assert not diag.is_warning


class TestParseErrors:
    """Syntax errors carry a location on the offending line."""

    def test_unclosed_parameter_list(self):
        source = kernel("""
            func BaseBroken(a []float32 {
            }
        """)
        with pytest.raises(ParseError) as info:
            parse_source(source)
        err = info.value
        assert err.error_code == "E0100"
        assert err.location is not None
        assert err.location.line == 5
        assert "syntax error" in err.message
        assert "5 | func BaseBroken(a []float32 {" in _strip_ansi(str(err))

    def test_error_on_later_line(self):
        source = kernel("""
            func BaseBroken(a []float32) {
                x := a[0]
                y := *
            }
        """)
        with pytest.raises(ParseError) as info:
            parse_source(source)
        assert info.value.location is not None
        assert info.value.location.line in (7, 8)

    def test_multiple_indices_outside_type_arguments(self):
        source = kernel("""
            func BaseBad(a []float32) {
                x := a[1, 2]
            }
        """)
        with pytest.raises(ParseError) as info:
            parse_source(source)
        assert "type arguments" in info.value.message


class TestLoweringPolicy:
    """Strict mode raises; permissive mode warns and keeps going."""

    DEFER = kernel("""
        func BaseDefer(a []float32) {
            defer cleanup(a)
            a[0] = 1.0
        }
    """)

    def test_permissive_omits_and_warns(self):
        result = lower_source(self.DEFER)
        assert "cleanup" not in result.source
        assert "a[0] = 1.0f;" in result.source
        codes = [d.code for d in result.diagnostics]
        assert codes == ["W0200"]
        assert result.diagnostics[0].location.line == 6

    def test_strict_raises_with_location(self):
        with pytest.raises(UnsupportedConstructError) as info:
            lower_source(self.DEFER, strict=True)
        assert "defer" in info.value.message
        assert info.value.location.line == 6

    def test_reporter_receives_warnings(self):
        reporter = ErrorReporter()
        lower_source(self.DEFER, reporter=reporter)
        assert [d.code for d in reporter.warnings] == ["W0200"]

    def test_unknown_profile(self):
        with pytest.raises(ProfileNotFoundError) as info:
            lower_source(self.DEFER, arch="SVE", element="float32")
        assert isinstance(info.value, ConfigurationError)
        assert "SVE:float32" in str(info.value)
