"""
Base Pass System and lowering context

Rust Pattern: rustc_mir::transform::MirPass
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Type

from ..ir.nodes import FunctionIR
from ..profiles.base import IntrinsicProfile, LoopTier, Tier
from ..shared.errors import (
    ConfigurationError, ErrorReporter, UnsupportedConstructError,
)
from ..shared.source_location import SourceLocation
from ..shared.types import ElementType, ParamKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoweringOptions:
    """
    Per-request lowering switches.

    strict: raise UnsupportedConstructError instead of omitting statements
        and emitting placeholders.
    tier: lower at this register class instead of the profile's primary tier.
    """
    strict: bool = False
    tier: Optional[Tier] = None


@dataclass(frozen=True)
class VariableTypeInfo:
    """
    Resolved C type of one lexical name; fixed at first definition.

    ``length`` is the element count of a local stack array.
    """
    c_type: str
    is_vector: bool = False
    is_pointer: bool = False
    length: Optional[str] = None


@dataclass(frozen=True)
class ParamInfo:
    """
    Target-side shape of one parameter or output.

    ``c_decl`` is the declaration in the C signature; ``local_decl`` the
    entry-time dereference for pointer-passed scalars (None for arrays).
    """
    name: str
    c_name: str
    c_decl: str
    kind: ParamKind
    local: Optional[VariableTypeInfo] = None
    local_decl: Optional[str] = None


@dataclass(frozen=True)
class DeferredAccumulator:
    """A scalar whose popcount reduction is carried in a vector accumulator."""
    variable: str
    accumulator: str
    c_type: str


@dataclass(frozen=True)
class HelperRef:
    """
    A self-contained C helper the lowered function calls.

    kind: "vector" / "scalar" polynomial math, or "bits" for float/bit casts.
    """
    kind: str
    name: str
    precision: Optional[str] = None

    @property
    def c_name(self) -> str:
        if self.kind == "vector":
            return f"_v_{self.name}_{self.precision}"
        if self.kind == "scalar":
            return f"_s_{self.name}_{self.precision}"
        return self.name


class LoweringContext:
    """
    All state of one lowering invocation (Rust naming: rustc_middle::ty::TyCtxt).

    Rust Pattern: rustc_middle::ty::TyCtxt

    Implementation Alignment:
    - Single owner of per-invocation state: variable types, parameter
      shapes, synthetic-name counter, active accumulators, helpers
    - Analysis results stored here (not in passes)
    - Discarded when the invocation returns; nothing is shared between calls
    """

    def __init__(self, function: FunctionIR, profile: IntrinsicProfile, element: ElementType,
                 options: Optional[LoweringOptions] = None,
                 reporter: Optional[ErrorReporter] = None):
        self.function = function
        self.profile = profile
        self.element = element
        self.options = options or LoweringOptions()
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.loop_tier: LoopTier = self._select_tier()

        self.variables: Dict[str, VariableTypeInfo] = {}
        self.params: Dict[str, ParamInfo] = {}
        self.outputs: List[ParamInfo] = []
        self.length_var: Optional[str] = None
        self.active_accumulators: Dict[str, DeferredAccumulator] = {}
        self.required_helpers: Dict[HelperRef, None] = {}
        self.omitted: Set[int] = set()
        self._counter = 0
        self._analysis_results: Dict[Type['BasePass'], Any] = {}

    def _select_tier(self) -> LoopTier:
        requested = self.options.tier
        if requested is None:
            return self.profile.primary_tier()
        if requested is Tier.SCALAR:
            raise ConfigurationError("the scalar tier cannot be used as the lowering tier")
        loop_tier = self.profile.find_tier(requested)
        if loop_tier is None:
            raise ConfigurationError(
                f"profile {self.profile.architecture}:{self.profile.element_type} "
                f"has no {requested.value} tier"
            )
        return loop_tier

    @property
    def tier(self) -> Tier:
        return self.loop_tier.tier

    @property
    def lanes(self) -> int:
        return self.loop_tier.lanes

    @property
    def strict(self) -> bool:
        return self.options.strict

    # -- names and types --------------------------------------------------

    def fresh_id(self) -> int:
        """Next value of the per-invocation synthetic-name counter."""
        value = self._counter
        self._counter += 1
        return value

    def fresh_name(self, prefix: str) -> str:
        return f"{prefix}{self.fresh_id()}"

    def define(self, name: str, info: VariableTypeInfo) -> VariableTypeInfo:
        """Register ``name``; a name keeps the type of its first definition."""
        return self.variables.setdefault(name, info)

    def lookup(self, name: str) -> Optional[VariableTypeInfo]:
        return self.variables.get(name)

    def require_helper(self, ref: HelperRef) -> str:
        self.required_helpers.setdefault(ref, None)
        return ref.c_name

    # -- analyses ---------------------------------------------------------

    def get_analysis(self, pass_class: Type['BasePass']) -> Any:
        """Get analysis results from a pass"""
        if pass_class not in self._analysis_results:
            raise RuntimeError(f"Analysis {pass_class.__name__} not available")
        return self._analysis_results[pass_class]

    def set_analysis(self, pass_class: Type['BasePass'], results: Any) -> None:
        """Store analysis results"""
        self._analysis_results[pass_class] = results

    # -- diagnostics ------------------------------------------------------

    def unsupported(self, message: str, location: Optional[SourceLocation],
                    help: Optional[str] = None) -> None:
        """
        Record a construct the lowering cannot express.

        Strict mode raises; permissive mode records a warning and lets the
        caller omit the construct.
        """
        if self.strict:
            raise UnsupportedConstructError(message, location, help=help)
        logger.warning("%s: %s (omitted)", location or self.function.name, message)
        self.reporter.report_warning(message, location, code="W0200", help=help,
                                     label="omitted from generated code")

    def placeholder(self, name: str, detail: str, location: Optional[SourceLocation]) -> str:
        """
        Return an annotated, non-compiling placeholder expression.

        The comment-only expression makes the generated C fail to compile at
        exactly the spot that needs attention.
        """
        message = f"{name}: {detail}"
        if self.strict:
            raise UnsupportedConstructError(message, location)
        logger.warning("%s: placeholder emitted for %s", location or self.function.name, message)
        self.reporter.report_warning(message, location, code="W0100",
                                     label="emitted as placeholder")
        return f"/* {message} */"


class BasePass(ABC):
    """
    Base class for lowering passes.

    Rust Pattern: rustc_mir::transform::MirPass

    Passes analyse one function against the LoweringContext and store
    results there; they do not rewrite IR.
    """
    requires: List[Type['BasePass']] = []

    @abstractmethod
    def run(self, function: FunctionIR, ctx: LoweringContext) -> FunctionIR:
        raise NotImplementedError


class PassManager:
    """
    Pass manager with dependency resolution.

    Rust Pattern: rustc driver with pass scheduling
    """

    def __init__(self):
        self.passes: List[Type[BasePass]] = []
        self._dependency_graph: Dict[Type[BasePass], List[Type[BasePass]]] = {}

    def register_pass(self, pass_class: Type[BasePass]) -> None:
        """Register a pass"""
        if pass_class not in self._dependency_graph:
            self.passes.append(pass_class)
        self._dependency_graph[pass_class] = list(pass_class.requires)

    def run_all(self, function: FunctionIR, ctx: LoweringContext) -> FunctionIR:
        """Run all passes in dependency order."""
        for pass_class in self._topological_sort():
            logger.debug("running %s on %s", pass_class.__name__, function.name)
            function = pass_class().run(function, ctx)
        return function

    def _topological_sort(self) -> List[Type[BasePass]]:
        """
        Registration order, with every pass placed after the passes it requires.

        An unregistered requirement or a requirement cycle raises, naming
        the passes involved.
        """
        ordered: List[Type[BasePass]] = []
        placed: Set[Type[BasePass]] = set()

        def place(pass_class: Type[BasePass], chain: List[Type[BasePass]]) -> None:
            if pass_class in placed:
                return
            if pass_class in chain:
                cycle = chain[chain.index(pass_class):] + [pass_class]
                raise RuntimeError("Circular pass dependency: "
                                   + " -> ".join(p.__name__ for p in cycle))
            if pass_class not in self._dependency_graph:
                raise RuntimeError(f"{chain[-1].__name__} requires unregistered pass "
                                   f"{pass_class.__name__}")
            for dependency in self._dependency_graph[pass_class]:
                place(dependency, chain + [pass_class])
            placed.add(pass_class)
            ordered.append(pass_class)

        for pass_class in self.passes:
            place(pass_class, [])
        return ordered
