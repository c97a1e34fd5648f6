"""C backend core: code writer, signature construction, scopes and hoisted lines."""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Set

from ..passes.base import LoweringContext, ParamInfo, VariableTypeInfo
from ..passes.deferred_accumulation import AccumulationPlan, DeferredAccumulationPass
from ..passes.visitor_helpers import collect_length_queries
from ..shared.types import ElementType, ParamKind
from ..utils.config import (
    BASE_NAME_PREFIX, DEFAULT_RESULT_NAME, INDENT, LENGTH_POINTER_PREFIX,
    LENGTH_VAR_PREFIX, OUTPUT_POINTER_PREFIX, SCALAR_POINTER_PREFIX,
)
from .c_types import LONG, pointer_to

logger = logging.getLogger(__name__)


def c_function_name(source_name: str, element: ElementType, architecture: str) -> str:
    """``BaseDotProduct`` -> ``dotproduct_c_f32_neon``."""
    name = source_name.lower()
    if name.startswith(BASE_NAME_PREFIX) and len(name) > len(BASE_NAME_PREFIX):
        name = name[len(BASE_NAME_PREFIX):]
    return f"{name}_c_{element.suffix}_{architecture.lower()}"


def c_declaration(c_type: str, name: str) -> str:
    """``float *x`` rather than ``float * x``."""
    if c_type.endswith("*"):
        return f"{c_type}{name}"
    return f"{c_type} {name}"


class CodeWriter:
    """Indented line buffer."""

    def __init__(self, indent: str = INDENT):
        self._indent = indent
        self._level = 0
        self.lines: List[str] = []

    def line(self, text: str = "") -> None:
        self.lines.append(self._indent * self._level + text if text else "")

    def indent(self) -> None:
        self._level += 1

    def dedent(self) -> None:
        self._level = max(0, self._level - 1)

    @contextmanager
    def block(self, opener: str, closer: str = "}") -> Iterator[None]:
        self.line(opener)
        self.indent()
        try:
            yield
        finally:
            self.dedent()
            self.line(closer)

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


class CoreLoweringMixin:
    """
    Function-level lowering: signature, entry dereferences, scopes.

    Expression lowering may need statements placed before the statement
    being emitted (spilling a vector to read a variable lane). Those lines
    are queued with ``hoist`` and flushed by ``emit`` ahead of the next
    line; loop headers have no such slot, so hoisting is refused there.
    """

    def __init__(self, ctx: LoweringContext):
        self.ctx = ctx
        self.profile = ctx.profile
        self.writer = CodeWriter()
        self.plan = AccumulationPlan()
        self._pending: List[str] = []
        self._scopes: List[Set[str]] = [set()]
        self._header_depth = 0

    # -- function ---------------------------------------------------------

    @property
    def c_name(self) -> str:
        return c_function_name(self.ctx.function.name, self.ctx.element, self.profile.architecture)

    def lower_function(self) -> str:
        fn = self.ctx.function
        self.plan = self.ctx.get_analysis(DeferredAccumulationPass)
        decls = self.build_signature()
        with self.writer.block(f"void {self.c_name}({', '.join(decls) or 'void'}) {{"):
            for info in self.ctx.params.values():
                if info.local_decl:
                    self.writer.line(info.local_decl)
            self._init_named_results()
            self.lower_statements(fn.body.statements, fn.body)
        return self.writer.text()

    def build_signature(self) -> List[str]:
        """
        Classify parameters and outputs into C declarations.

        Scalars and vectors are passed by pointer and dereferenced on entry;
        arrays become element pointers. A hidden ``long *plen_<array>`` is
        appended when the body asks for an array parameter's length, then
        one pointer per declared result.
        """
        fn = self.ctx.function
        decls: List[str] = []
        for param in fn.params:
            info = self._param_info(param)
            self.ctx.params[param.name] = info
            if info.local is not None:
                self.ctx.define(param.name, info.local)
                self.declare(param.name)
            decls.append(info.c_decl)

        arrays = [p.name for p in fn.params if p.kind is ParamKind.ARRAY]
        queried = [name for name in collect_length_queries(fn) if name in arrays]
        if queried:
            first = arrays[0]
            self.ctx.length_var = LENGTH_VAR_PREFIX + first
            pointer = LENGTH_POINTER_PREFIX + first
            decls.append(f"long *{pointer}")
            self.ctx.define(self.ctx.length_var, LONG)
            self.declare(self.ctx.length_var)
            self.ctx.params[self.ctx.length_var] = ParamInfo(
                self.ctx.length_var, pointer, f"long *{pointer}", ParamKind.SCALAR_INT,
                local=LONG, local_decl=f"long {self.ctx.length_var} = *{pointer};",
            )

        unnamed = [r for r in fn.returns if not r.name]
        for ret in fn.returns:
            if ret.name:
                name = ret.name
            elif len(unnamed) > 1:
                name = f"{DEFAULT_RESULT_NAME}{unnamed.index(ret)}"
            else:
                name = DEFAULT_RESULT_NAME
            local = self.output_type_for(ret.type_name)
            pointer = OUTPUT_POINTER_PREFIX + name
            decls.append(f"{local.c_type} *{pointer}")
            self.ctx.outputs.append(ParamInfo(name, pointer, f"{local.c_type} *{pointer}",
                                              ParamKind.OTHER, local=local))
            if ret.name:
                self.ctx.define(ret.name, local)
                self.declare(ret.name)
        logger.debug("%s: %d parameter(s), %d output pointer(s)",
                     fn.name, len(fn.params), len(self.ctx.outputs))
        return decls

    def _param_info(self, param) -> ParamInfo:
        name = param.name
        pointer = SCALAR_POINTER_PREFIX + name
        if param.kind is ParamKind.ARRAY:
            local = pointer_to(self.array_elem_c_type(param.elem_type_name))
            return ParamInfo(name, name, c_declaration(local.c_type, name), param.kind, local=local)
        if param.kind is ParamKind.SCALAR_INT:
            local = LONG
        elif param.kind is ParamKind.SCALAR_FLOAT:
            local = VariableTypeInfo(self.scalar_float_param_type(param.type_name))
        elif param.kind is ParamKind.VECTOR:
            local = self.vector_info()
        else:
            return ParamInfo(name, name, f"void *{name}", param.kind,
                             local=VariableTypeInfo("void *", is_pointer=True))
        return ParamInfo(name, pointer, f"{local.c_type} *{pointer}", param.kind,
                         local=local, local_decl=f"{local.c_type} {name} = *{pointer};")

    def _init_named_results(self) -> None:
        for ret in self.ctx.function.returns:
            if ret.name:
                info = self.ctx.lookup(ret.name)
                self.writer.line(f"{c_declaration(info.c_type, ret.name)} = {self.zero_value(info)};")

    def zero_value(self, info: VariableTypeInfo) -> str:
        if info.is_vector:
            return self.vector_zero()
        return "0"

    # -- scopes -----------------------------------------------------------

    @contextmanager
    def scope(self) -> Iterator[None]:
        self._scopes.append(set())
        try:
            yield
        finally:
            self._scopes.pop()

    def declare(self, name: str) -> None:
        self._scopes[-1].add(name)

    def declared_here(self, name: str) -> bool:
        return name in self._scopes[-1]

    # -- emission ---------------------------------------------------------

    def hoist(self, *lines: str) -> bool:
        """Queue lines to precede the current statement; False inside a loop header."""
        if self._header_depth:
            return False
        self._pending.extend(lines)
        return True

    @contextmanager
    def loop_header(self) -> Iterator[None]:
        self._header_depth += 1
        try:
            yield
        finally:
            self._header_depth -= 1

    def flush_pending(self) -> None:
        for line in self._pending:
            self.writer.line(line)
        self._pending = []

    def take_pending(self) -> List[str]:
        lines, self._pending = self._pending, []
        return lines

    def emit(self, text: str) -> None:
        self.flush_pending()
        self.writer.line(text)
