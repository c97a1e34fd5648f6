"""
Compiler Driver

Rust Pattern: rustc_driver::driver
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..backends.c import CBackend, LoweringResult
from ..backends.math_helpers import render_helpers
from ..frontend.parser import Parser
from ..ir.nodes import FunctionIR, SourceFileIR
from ..ir.serialization import serialize_ir
from ..passes.base import LoweringOptions
from ..profiles.base import IntrinsicProfile
from ..profiles.registry import ProfileRegistry
from ..shared.errors import (
    ConfigurationError, ErrorReporter, ParseError, UnsupportedConstructError,
)
from ..shared.types import resolve_element_type
from ..utils.config import DEFAULT_SOURCE_NAME, ENV_DUMP_IR, OUTPUT_FILE_EXTENSION
from ..utils.io_utils import read_source_file, write_output_file

logger = logging.getLogger(__name__)

Target = Tuple[str, str]
_DEFAULT_DUMP_DIR = "ir_dumps"


def parse_target(spec: str) -> Target:
    """``"NEON:float32"`` -> ``("NEON", "float32")``."""
    arch, sep, element = spec.partition(":")
    if not sep or not arch.strip() or not element.strip():
        raise ConfigurationError(f"invalid target '{spec}': expected ARCH:ELEMENT")
    return arch.strip(), element.strip()


@dataclass
class TranslationUnit:
    """One generated C file: one function lowered for one profile."""
    function_name: str
    profile: IntrinsicProfile
    lowering: LoweringResult
    text: str

    @property
    def c_function_name(self) -> str:
        return self.lowering.c_function_name

    @property
    def filename(self) -> str:
        return self.c_function_name + OUTPUT_FILE_EXTENSION


@dataclass
class CompilationResult:
    """Compilation result"""
    units: List[TranslationUnit] = field(default_factory=list)
    reporter: ErrorReporter = field(default_factory=ErrorReporter)
    ir: Optional[SourceFileIR] = None
    success: bool = False

    def has_errors(self) -> bool:
        return self.reporter.has_errors() or not self.success

    def unit(self, c_function_name: str) -> Optional[TranslationUnit]:
        for unit in self.units:
            if unit.c_function_name == c_function_name:
                return unit
        return None


def assemble_unit(lowering: LoweringResult, source_file: str) -> str:
    """
    Lay out a complete C file.

    Header comment with the compiler flags, the profile's include, its
    inline helpers, the required bit and math helpers (dependencies
    first), then the function.
    """
    profile = lowering.profile
    lines = [
        f"// Code generated by simdgen from {source_file}. DO NOT EDIT.",
        f"// Target: {profile.architecture}:{profile.element_type} "
        f"(tier {lowering.loop_tier.tier.value}, {lowering.loop_tier.lanes} lanes)",
    ]
    if profile.compiler_flags:
        lines.append(f"// Compiler flags: {' '.join(profile.compiler_flags)}")
    lines.append(profile.include)
    sections = ["\n".join(lines)]
    sections.extend(profile.inline_helpers)
    sections.extend(render_helpers(lowering.required_helpers, lowering.math_vec_type))
    sections.append(lowering.source.rstrip("\n"))
    return "\n\n".join(sections) + "\n"


class CompilerDriver:
    """
    Compiler driver (Rust naming: rustc_driver::driver).

    Rust Pattern: rustc_driver::driver

    Implementation Alignment:
    - Parses once, lowers each function for each requested target
    - Resolves every target profile before any lowering starts
    - Collects diagnostics from all lowerings into one reporter
    """

    def __init__(self, registry: Optional[ProfileRegistry] = None):
        self.registry = registry or ProfileRegistry.default()
        self.parser = Parser()
        self.backend = CBackend()

    def resolve_targets(self, targets: Optional[Iterable[Union[str, Target]]]) -> List[IntrinsicProfile]:
        """Profiles for the requested targets (all registered profiles when none)."""
        if not targets:
            return list(self.registry)
        profiles: List[IntrinsicProfile] = []
        for target in targets:
            arch, element = parse_target(target) if isinstance(target, str) else target
            resolve_element_type(element)
            profile = self.registry.lookup(arch, element)
            if profile not in profiles:
                profiles.append(profile)
        return profiles

    def compile(
        self,
        source: str,
        source_file: str = DEFAULT_SOURCE_NAME,
        targets: Optional[Sequence[Union[str, Target]]] = None,
        options: Optional[LoweringOptions] = None,
        function_names: Optional[Sequence[str]] = None,
    ) -> CompilationResult:
        """
        Compile kernel source.

        Rust Pattern: rustc_driver::driver::compile_input()

        Phases:
        1. Target resolution (configuration errors raise here)
        2. Parsing (source -> IR)
        3. Lowering per (function, profile)
        4. Translation unit assembly
        """
        profiles = self.resolve_targets(targets)
        reporter = ErrorReporter({source_file: source})
        result = CompilationResult(reporter=reporter)

        try:
            ir = self.parser.parse(source, source_file)
        except ParseError as e:
            reporter.diagnostics.append(e.to_diagnostic())
            return result
        result.ir = ir
        self._maybe_dump_ir(ir, source_file)

        for fn in self._select_functions(ir, function_names, reporter):
            for profile in profiles:
                try:
                    lowering = self.backend.lower(fn, profile, profile.element_type,
                                                  options, reporter)
                except UnsupportedConstructError as e:
                    reporter.diagnostics.append(e.to_diagnostic())
                    continue
                result.units.append(TranslationUnit(
                    fn.name, profile, lowering, assemble_unit(lowering, source_file)))
                logger.debug("lowered %s -> %s", fn.name, lowering.c_function_name)

        result.success = not reporter.has_errors()
        return result

    def _select_functions(self, ir: SourceFileIR, names: Optional[Sequence[str]],
                          reporter: ErrorReporter) -> List[FunctionIR]:
        if not names:
            return list(ir.functions)
        selected: List[FunctionIR] = []
        for name in names:
            fn = ir.function(name)
            if fn is None:
                reporter.report_error(f"no function named `{name}`", None, code="E0300")
            else:
                selected.append(fn)
        return selected

    def _maybe_dump_ir(self, ir: SourceFileIR, source_file: str) -> None:
        setting = os.environ.get(ENV_DUMP_IR, "")
        if not setting:
            return
        dump_dir = Path(_DEFAULT_DUMP_DIR if setting.lower() in ("1", "true", "yes") else setting)
        path = dump_dir / (Path(source_file).stem + ".sexpr")
        write_output_file(path, serialize_ir(ir))
        logger.debug("IR dumped to %s", path)

    def translate_file(
        self,
        path: Union[Path, str],
        targets: Optional[Sequence[Union[str, Target]]] = None,
        options: Optional[LoweringOptions] = None,
        function_names: Optional[Sequence[str]] = None,
    ) -> CompilationResult:
        """Read ``path`` and compile it."""
        return self.compile(read_source_file(path), str(path), targets, options, function_names)


def write_units(units: Iterable[TranslationUnit], out_dir: Union[Path, str]) -> List[Path]:
    return [write_output_file(Path(out_dir) / unit.filename, unit.text) for unit in units]
