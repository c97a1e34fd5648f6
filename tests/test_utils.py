"""
Test utilities for the simdgen test suite.

Kernels are lowered straight through the parser and CBackend so tests can
assert on the emitted C function without going through the driver.
"""

import sys
import textwrap
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from simdgen.backends.c import CBackend, LoweringResult
from simdgen.frontend.parser import Parser
from simdgen.ir.nodes import FunctionIR, SourceFileIR
from simdgen.passes.base import LoweringOptions
from simdgen.profiles.base import Tier
from simdgen.profiles.registry import ProfileRegistry
from simdgen.shared.errors import ErrorReporter

HWY_IMPORT = 'import "github.com/ajroetker/go-highway/hwy"'


def kernel(functions: str, *imports: str) -> str:
    """Wrap function declarations in a package clause and the hwy import."""
    lines = ["package kernels", "", HWY_IMPORT]
    lines.extend(f'import "{path}"' for path in imports)
    lines.append("")
    lines.append(textwrap.dedent(functions).strip())
    return "\n".join(lines) + "\n"


@lru_cache(maxsize=None)
def shared_parser() -> Parser:
    return Parser()


def parse_source(source: str, source_file: str = "kernel.go") -> SourceFileIR:
    return shared_parser().parse(source, source_file)


def parse_function(source: str, name: Optional[str] = None) -> FunctionIR:
    ir = parse_source(source)
    if name is None:
        assert ir.functions, "source declares no functions"
        return ir.functions[0]
    fn = ir.function(name)
    assert fn is not None, f"no function {name} in source"
    return fn


def lower_source(
    source: str,
    arch: str = "NEON",
    element: str = "float32",
    function: Optional[str] = None,
    strict: bool = False,
    tier: Optional[Union[str, Tier]] = None,
    reporter: Optional[ErrorReporter] = None,
) -> LoweringResult:
    """Parse ``source`` and lower one function for ``arch:element``."""
    fn = parse_function(source, function)
    profile = ProfileRegistry.default().lookup(arch, element)
    if isinstance(tier, str):
        tier = Tier(tier)
    options = LoweringOptions(strict=strict, tier=tier)
    return CBackend().lower(fn, profile, profile.element_type, options, reporter)


def lower_c(source: str, arch: str = "NEON", element: str = "float32", **kwargs) -> str:
    return lower_source(source, arch, element, **kwargs).source


def code_lines(c_source: str) -> List[str]:
    """Non-blank lines with indentation stripped."""
    return [line.strip() for line in c_source.splitlines() if line.strip()]


def warning_codes(result: LoweringResult) -> List[str]:
    return [d.code for d in result.diagnostics if d.is_warning]


def line_index(c_source: str, needle: str) -> int:
    """Index of the first stripped line containing ``needle``."""
    for index, line in enumerate(code_lines(c_source)):
        if needle in line:
            return index
    raise AssertionError(f"{needle!r} not found in:\n{c_source}")
