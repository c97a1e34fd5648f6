"""
Diagnostics and exception types.

Rust Pattern: rustc_errors::Diagnostic

Lowering never aborts a batch for a missing intrinsic or an unsupported
statement in permissive mode; those become warnings collected by the
ErrorReporter. Configuration problems (no profile, unknown tier) are raised.
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional, List, Dict
from .source_location import SourceLocation


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get("SIMDGEN_COLOR", "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    return sys.stderr.isatty()

_BOLD   = "\033[1m"
_RED    = "\033[31m"
_BLUE   = "\033[34m"
_CYAN   = "\033[36m"
_YELLOW = "\033[33m"
_RESET  = "\033[0m"

def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color:
        return text
    prefix = "".join(codes)
    return f"{prefix}{text}{_RESET}" if prefix else text


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass
class Error:
    """
    A single diagnostic: an error or a warning.

    Rust Pattern: rustc_errors::Diagnostic
    """
    message: str
    location: Optional[SourceLocation]
    code: Optional[str] = None
    severity: str = SEVERITY_ERROR
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None

    @property
    def is_warning(self) -> bool:
        return self.severity == SEVERITY_WARNING


# ---------------------------------------------------------------------------
# Formatting engine
# ---------------------------------------------------------------------------

def _format_diagnostic(
    error: Error,
    source_files: Dict[str, str],
    color: bool = False,
) -> str:
    """
    Render a single diagnostic in rustc style.

    Example output (plain, no color)::

        warning[W0100]: hwy.Sqrt: no NEON mapping for Sqrt at tier d
         --> kernel.go:7:8
          |
        7 |     r := hwy.Sqrt(v)
          |          ^^^^^^^^ emitted as placeholder
          |
          = help: add the operation to the profile table
    """
    out: List[str] = []
    head_color = _YELLOW if error.is_warning else _RED

    code_str = f"[{error.code}]" if error.code else ""
    out.append(
        _style(f"{error.severity}{code_str}", _BOLD, head_color, color=color)
        + _style(f": {error.message}", _BOLD, color=color)
    )

    if error.location is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + "<unknown location>")
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    loc = error.location
    source = source_files.get(loc.file)
    if source is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + str(loc))
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    src_lines = source.split("\n")
    gw = max(len(str(loc.line)), 1)

    out.append(_style(" " * gw + "--> ", _BOLD, _BLUE, color=color) + str(loc))
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))

    idx = loc.line - 1
    code_line = src_lines[idx] if 0 <= idx < len(src_lines) else ""
    out.append(_style(str(loc.line).rjust(gw) + " | ", _BOLD, _BLUE, color=color) + code_line)

    col_start = max(loc.column, 1) - 1
    if loc.end_line in (0, loc.line) and loc.end_column > loc.column:
        span_len = loc.end_column - loc.column
    else:
        span_len = _guess_span(code_line, col_start)
    carets = " " * col_start + "^" * max(1, span_len)
    label_suffix = f" {error.label}" if error.label else ""
    out.append(
        _style(" " * (gw + 1) + "| ", _BOLD, _BLUE, color=color)
        + _style(carets + label_suffix, _BOLD, head_color, color=color)
    )

    _append_annotations(out, error, gw, color)
    return "\n".join(out)


def _guess_span(code_line: str, col_start: int) -> int:
    """Guess token length when end_column is unavailable."""
    if col_start >= len(code_line):
        return 1
    length = 0
    for ch in code_line[col_start:]:
        if ch in (" ", "\t", ";", ",", ")", "]", "}"):
            break
        length += 1
    return max(1, length)


def _append_annotations(out: List[str], error: Error, gw: int, color: bool) -> None:
    if not (error.help or error.note):
        return
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))
    pad = " " * (gw + 1)
    if error.help:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("help: ", _BOLD, color=color)
            + error.help
        )
    if error.note:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("note: ", _BOLD, color=color)
            + error.note
        )


# ---------------------------------------------------------------------------
# ErrorReporter
# ---------------------------------------------------------------------------

class ErrorReporter:
    """
    Collects diagnostics and renders them rustc-style.

    Rust Pattern: rustc_errors::Emitter
    """

    def __init__(self, source_files: Optional[Dict[str, str]] = None):
        self.source_files: Dict[str, str] = dict(source_files or {})
        self.diagnostics: List[Error] = []

    def report_error(
        self,
        message: str,
        location: Optional[SourceLocation],
        code: Optional[str] = None,
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.diagnostics.append(Error(
            message=message, location=location, code=code,
            severity=SEVERITY_ERROR, help=help, note=note, label=label,
        ))

    def report_warning(
        self,
        message: str,
        location: Optional[SourceLocation],
        code: Optional[str] = None,
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.diagnostics.append(Error(
            message=message, location=location, code=code,
            severity=SEVERITY_WARNING, help=help, note=note, label=label,
        ))

    @property
    def errors(self) -> List[Error]:
        return [d for d in self.diagnostics if not d.is_warning]

    @property
    def warnings(self) -> List[Error]:
        return [d for d in self.diagnostics if d.is_warning]

    def has_errors(self) -> bool:
        return any(not d.is_warning for d in self.diagnostics)

    def extend(self, other: "ErrorReporter") -> None:
        self.source_files.update(other.source_files)
        self.diagnostics.extend(other.diagnostics)

    def format_error(self, error: Error, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return _format_diagnostic(error, self.source_files, color=use_color)

    def format_all(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        parts = [self.format_error(d, color=use_color) for d in self.diagnostics]
        count = len(self.errors)
        if count:
            summary = f"aborting due to {count} previous error{'s' if count != 1 else ''}"
            parts.append(
                _style("error", _BOLD, _RED, color=use_color)
                + _style(f": {summary}", _BOLD, color=use_color)
            )
        return "\n\n".join(parts)

    def print_diagnostics(self) -> None:
        text = self.format_all()
        if text:
            print(text, file=sys.stderr)


# ============================================================================
# Exception Classes
# ============================================================================

class SimdgenError(Exception):
    """Base exception for all simdgen errors"""
    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self):
        if self.location:
            return f"{self.message}\n --> {self.location}"
        return self.message


class SimdgenSourceError(SimdgenError):
    """
    Error attributable to the portable kernel source.

    Carries an error code plus optional help/note text so it can be rendered
    with the same formatter as collected diagnostics.
    """
    def __init__(self,
                 message: str,
                 location: Optional[SourceLocation] = None,
                 error_code: str = "E0001",
                 source_code: Optional[str] = None,
                 help: Optional[str] = None,
                 note: Optional[str] = None,
                 label: Optional[str] = None):
        super().__init__(message, location)
        self.error_code = error_code
        self.source_code = source_code
        self.help_text = help
        self.note_text = note
        self.label_text = label

    def to_diagnostic(self) -> Error:
        return Error(
            message=self.message,
            location=self.location,
            code=self.error_code,
            help=self.help_text,
            note=self.note_text,
            label=self.label_text,
        )

    def __str__(self):
        source_files: Dict[str, str] = {}
        if self.source_code and self.location:
            source_files[self.location.file] = self.source_code
        return _format_diagnostic(self.to_diagnostic(), source_files, color=False)


class ParseError(SimdgenSourceError):
    """Syntax error in kernel source."""
    def __init__(self, message: str, source_file: str = "<input>",
                 location: Optional[SourceLocation] = None,
                 source_code: Optional[str] = None):
        super().__init__(message, location, error_code="E0100", source_code=source_code)
        self.source_file = source_file


class UnsupportedConstructError(SimdgenSourceError):
    """Raised in strict mode for constructs the C lowering cannot express."""
    def __init__(self, message: str, location: Optional[SourceLocation] = None,
                 help: Optional[str] = None):
        super().__init__(message, location, error_code="E0200", help=help)


class ConfigurationError(SimdgenError):
    """Invalid lowering request (missing profile, unknown tier, bad target spec)."""


class ProfileNotFoundError(ConfigurationError):
    def __init__(self, architecture: str, element_type: str):
        super().__init__(f"no intrinsic profile for {architecture}:{element_type}")
        self.architecture = architecture
        self.element_type = element_type


class SimdgenImplementationError(Exception):
    """
    Error in simdgen itself (invalid internal state, missing implementation).

    Never use this for problems in user kernels - use SimdgenSourceError.
    """
    def __init__(self, message: str, error_code: str = "E9999"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self):
        return f"[{self.error_code}] {self.message}"
