"""C backend statement visitors. Statements write lines; visit_* return None."""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from ..ir.nodes import (
    AssignIR, BinaryOpIR, BlockIR, BranchIR, CallIR, ExpressionIR, ExprStmtIR, ForIR,
    IdentifierIR, IfIR, IncDecIR, LiteralIR, RangeIR, ReturnStmtIR, SliceIR, StatementIR,
    UnsupportedStmtIR, VarDeclIR,
)
from ..passes.deferred_accumulation import match_popcount_idiom
from ..passes.visitor_helpers import is_panic_call, is_panic_only
from ..shared.types import ZERO_INIT_C_TYPES, AssignOp, ParamKind
from ..utils.config import (
    COPY_INDEX_PREFIX, NO_VECTORIZE_PRAGMA, RANGE_ITER_PREFIX, VOCABULARY_PACKAGE,
)
from .c_core import c_declaration
from .c_types import LONG, pointee

logger = logging.getLogger(__name__)


def _is_load4(node: AssignIR) -> Optional[CallIR]:
    if len(node.targets) != 4 or len(node.values) != 1:
        return None
    value = node.values[0]
    if (isinstance(value, CallIR) and value.package == VOCABULARY_PACKAGE
            and value.member == "Load4" and len(value.args) == 1):
        return value
    return None


def _target_name(target) -> Optional[str]:
    return target.name if isinstance(target, IdentifierIR) else None


class StatementLoweringMixin:
    """
    Lowers statements and control flow.

    Loops get the no-vectorize pragma unless they belong to a run of loops
    sharing deferred accumulators. Panic guards are dropped. Statements
    omitted by the unsupported-construct pass are skipped here.
    """

    # -- blocks -----------------------------------------------------------

    def lower_statements(self, statements: Sequence[StatementIR],
                         block: Optional[BlockIR] = None) -> None:
        run = self.plan.run_for(block) if (block is not None and self.plan.enabled) else None
        opened: List[str] = []
        for index, stmt in enumerate(statements):
            if run is not None and index == run.start:
                opened = self.open_accumulators(run.variables)
            self.lower_statement(stmt)
            if run is not None and index == run.end:
                self.close_accumulators(opened)
                opened = []

    def lower_statement(self, stmt: StatementIR) -> None:
        if id(stmt) in self.ctx.omitted:
            return
        stmt.accept(self)
        self.flush_pending()

    @contextmanager
    def braced(self, opener: str) -> Iterator[None]:
        self.flush_pending()
        with self.writer.block(opener):
            with self.scope():
                yield

    def visit_block(self, node: BlockIR) -> None:
        with self.braced("{"):
            self.lower_statements(node.statements, node)

    # -- assignment -------------------------------------------------------

    def visit_assign(self, node: AssignIR) -> None:
        match = match_popcount_idiom(node)
        if match is not None and match[0] in self.ctx.active_accumulators:
            self.accumulate(*match)
            return
        load4 = _is_load4(node)
        if load4 is not None and node.op in (AssignOp.DEFINE, AssignOp.ASSIGN):
            self._lower_load4_assign(node, load4)
            return
        if node.op is AssignOp.DEFINE:
            self._lower_define(node)
            return
        if len(node.targets) != 1 or len(node.values) != 1:
            self.ctx.unsupported(f"multi-value `{node.op.value}` assignment", node.location)
            return
        target, value = node.targets[0], self.expr(node.values[0])
        if node.op is AssignOp.ASSIGN:
            if _target_name(target) == "_":
                self.emit(f"(void)({value});")
            else:
                self.emit(f"{self.expr(target)} = {value};")
        elif node.op is AssignOp.AND_NOT:
            self.emit(f"{self.expr(target)} &= ~({value});")
        else:
            self.emit(f"{self.expr(target)} {node.op.value} {value};")

    def _lower_define(self, node: AssignIR) -> None:
        if len(node.targets) != len(node.values):
            self.ctx.unsupported("`:=` from a multi-value call", node.location)
            return
        # sequential: each right-hand side sees the names defined before it
        for target, value in zip(node.targets, node.values):
            name = _target_name(target)
            if (name not in (None, "_") and not self.declared_here(name)
                    and self._lower_make(name, value)):
                continue
            text = self.expr(value)
            if name is None or name == "_":
                self.emit(f"(void)({text});")
            elif self.declared_here(name):
                self.emit(f"{name} = {text};")
            else:
                info = self.ctx.define(name, self.infer_type(value))
                self.declare(name)
                self.emit(f"{c_declaration(info.c_type, name)} = {text};")

    def _lower_load4_assign(self, node: AssignIR, call: CallIR) -> None:
        values = self.load4_values(call)
        for target, value in zip(node.targets, values):
            name = _target_name(target)
            if name == "_":
                continue
            if node.op is AssignOp.DEFINE and name is not None and not self.declared_here(name):
                info = self.ctx.define(name, self.vector_info())
                self.declare(name)
                self.emit(f"{c_declaration(info.c_type, name)} = {value};")
            else:
                self.emit(f"{self.expr(target)} = {value};")

    def visit_var_decl(self, node: VarDeclIR) -> None:
        if node.values and len(node.values) != len(node.names):
            self.ctx.unsupported("`var` from a multi-value call", node.location)
            return
        for index, name in enumerate(node.names):
            value = node.values[index] if node.values else None
            if node.type_name:
                info = self.c_type_for(node.type_name)
            else:
                info = self.infer_type(value)
            if name == "_":
                if value is not None:
                    self.emit(f"(void)({self.expr(value)});")
                continue
            if value is not None and not node.type_name and self._lower_make(name, value):
                continue
            info = self.ctx.define(name, info)
            self.declare(name)
            if value is not None:
                init = self.expr(value)
            elif info.is_vector or info.c_type in ZERO_INIT_C_TYPES:
                init = self.zero_value(info)
            else:
                init = None
            decl = c_declaration(info.c_type, name)
            self.emit(f"{decl} = {init};" if init is not None else f"{decl};")

    def _lower_make(self, name: str, value: ExpressionIR) -> bool:
        """Declare ``name`` as a stack array when ``value`` is ``make([]E, n)``."""
        if not isinstance(value, CallIR):
            return False
        made = self.make_array(value)
        if made is None:
            return False
        elem_c_type, info = made
        self.ctx.define(name, info)
        self.declare(name)
        self.emit(f"{elem_c_type} {name}[{info.length}];")
        return True

    def visit_inc_dec(self, node: IncDecIR) -> None:
        self.emit(f"{self.expr(node.target)}{'++' if node.increment else '--'};")

    def visit_expr_stmt(self, node: ExprStmtIR) -> None:
        if is_panic_call(node):
            return
        call = node.expr
        if isinstance(call, CallIR) and call.qualified_name == "copy" and len(call.args) == 2:
            self._lower_copy(*call.args)
            return
        self.emit(f"{self.expr(node.expr)};")

    # -- copy -------------------------------------------------------------

    def _known_length(self, node: ExpressionIR) -> Optional[str]:
        if isinstance(node, SliceIR) and node.high is not None:
            high = self._operand(node.high)
            if node.low is None or (isinstance(node.low, LiteralIR) and node.low.text == "0"):
                return high
            low = self.expr(node.low)
            if not isinstance(node.low, (IdentifierIR, LiteralIR)):
                low = f"({low})"
            return f"{high} - {low}"
        if isinstance(node, IdentifierIR):
            info = self.ctx.lookup(node.name)
            if info is not None:
                return info.length
        return None

    def _element_base(self, node: ExpressionIR) -> str:
        text = self.expr(node)
        if isinstance(node, (SliceIR, BinaryOpIR)) and " " in text:
            return f"({text})"
        return text

    def _lower_copy(self, dst: ExpressionIR, src: ExpressionIR) -> None:
        """
        ``copy(dst, src)`` as an element loop.

        The count is the shorter of the known lengths (stack arrays and
        slices with an upper bound); with neither known it is one vector
        of lanes.
        """
        lengths = [n for n in (self._known_length(dst), self._known_length(src)) if n]
        if len(lengths) == 2 and lengths[0] != lengths[1]:
            a, b = lengths
            count = f"(({a}) < ({b}) ? ({a}) : ({b}))"
        elif lengths:
            count = lengths[0]
        else:
            count = str(self.ctx.lanes)
        target, source = self._element_base(dst), self._element_base(src)
        index = self.ctx.fresh_name(COPY_INDEX_PREFIX)
        self.emit(NO_VECTORIZE_PRAGMA)
        with self.braced(f"for (long {index} = 0; {index} < {count}; {index}++) {{"):
            self.emit(f"{target}[{index}] = {source}[{index}];")

    # -- loops ------------------------------------------------------------

    def _header_statement(self, stmt: Optional[StatementIR]) -> str:
        if stmt is None:
            return ""
        if isinstance(stmt, IncDecIR):
            return f"{self.expr(stmt.target)}{'++' if stmt.increment else '--'}"
        if isinstance(stmt, AssignIR) and len(stmt.targets) == 1 and len(stmt.values) == 1:
            target = stmt.targets[0]
            value = self.expr(stmt.values[0])
            name = _target_name(target)
            if stmt.op is AssignOp.DEFINE and name is not None:
                info = self.ctx.define(name, self.infer_type(stmt.values[0]))
                self.declare(name)
                return f"{c_declaration(info.c_type, name)} = {value}"
            if stmt.op is AssignOp.AND_NOT:
                return f"{self.expr(target)} &= ~({value})"
            op = "=" if stmt.op is AssignOp.DEFINE else stmt.op.value
            return f"{self.expr(target)} {op} {value}"
        return self.ctx.placeholder(type(stmt).__name__, "cannot appear in a loop header",
                                    stmt.location)

    def _open_loop_accumulators(self, loop: StatementIR) -> List[str]:
        if not self.plan.enabled:
            return []
        return self.open_accumulators(self.plan.variables_for(loop))

    def _loop_pragma(self, loop: StatementIR) -> None:
        if not (self.plan.enabled and self.plan.in_shared_run(loop)):
            self.emit(NO_VECTORIZE_PRAGMA)

    def visit_for(self, node: ForIR) -> None:
        opened = self._open_loop_accumulators(node)
        with self.scope():
            with self.loop_header():
                init = self._header_statement(node.init)
                cond = self.expr(node.cond) if node.cond is not None else ""
                post = self._header_statement(node.post)
            self._loop_pragma(node)
            header = f"for ({init};{' ' + cond if cond else ''};{' ' + post if post else ''})"
            with self.braced(header + " {"):
                self.lower_statements(node.body.statements, node.body)
        self.close_accumulators(opened)

    def _range_bound(self, node: RangeIR) -> str:
        iterable = node.iterable
        if isinstance(iterable, IdentifierIR):
            param = self.ctx.params.get(iterable.name)
            if param is not None and param.kind is ParamKind.ARRAY and self.ctx.length_var:
                return self.ctx.length_var
        if self.infer_type(iterable).is_pointer:
            return self.ctx.placeholder("range", "length is only known for slice parameters",
                                        iterable.location)
        return self.expr(iterable)

    def visit_range(self, node: RangeIR) -> None:
        opened = self._open_loop_accumulators(node)
        with self.scope():
            with self.loop_header():
                bound = self._range_bound(node)
            key = node.key or self.ctx.fresh_name(RANGE_ITER_PREFIX)
            if node.define or node.key is None:
                self.ctx.define(key, LONG)
                self.declare(key)
                init = f"long {key} = 0"
            else:
                init = f"{key} = 0"
            self._loop_pragma(node)
            with self.braced(f"for ({init}; {key} < {bound}; {key}++) {{"):
                if node.value:
                    element = f"{self.expr(node.iterable)}[{key}]"
                    if node.define:
                        info = self.ctx.define(node.value, pointee(self.infer_type(node.iterable)))
                        self.declare(node.value)
                        self.emit(f"{c_declaration(info.c_type, node.value)} = {element};")
                    else:
                        self.emit(f"{node.value} = {element};")
                self.lower_statements(node.body.statements, node.body)
        self.close_accumulators(opened)

    # -- conditionals -----------------------------------------------------

    def visit_if(self, node: IfIR) -> None:
        if node.init is not None:
            with self.braced("{"):
                self.lower_statement(node.init)
                self._lower_if_chain(node)
        else:
            self._lower_if_chain(node)

    def _lower_if_chain(self, node: IfIR, cond: Optional[str] = None) -> None:
        if is_panic_only(node.body):
            # a failed guard panics; the surviving path is the else branch
            if node.orelse is not None:
                self._lower_branch(node.orelse)
            return
        if cond is None:
            cond = self.expr(node.cond)
        self.emit(f"if ({cond}) {{")
        self._lower_branch_body(node.body)
        orelse = node.orelse
        while orelse is not None:
            if isinstance(orelse, IfIR) and orelse.init is None and not is_panic_only(orelse.body):
                cond = self.expr(orelse.cond)
                pending = self.take_pending()
                if pending:
                    self.writer.line("} else {")
                    self.writer.indent()
                    for line in pending:
                        self.writer.line(line)
                    with self.scope():
                        self._lower_if_chain(orelse, cond)
                    self.writer.dedent()
                    break
                self.writer.line(f"}} else if ({cond}) {{")
                self._lower_branch_body(orelse.body)
                orelse = orelse.orelse
                continue
            self.writer.line("} else {")
            self.writer.indent()
            with self.scope():
                if isinstance(orelse, BlockIR):
                    self.lower_statements(orelse.statements, orelse)
                else:
                    self.lower_statement(orelse)
            self.writer.dedent()
            break
        self.writer.line("}")

    def _lower_branch_body(self, body: BlockIR) -> None:
        self.writer.indent()
        with self.scope():
            self.lower_statements(body.statements, body)
        self.writer.dedent()

    def _lower_branch(self, branch: StatementIR) -> None:
        if isinstance(branch, BlockIR):
            self.visit_block(branch)
        else:
            self.lower_statement(branch)

    # -- exits ------------------------------------------------------------

    def visit_return(self, node: ReturnStmtIR) -> None:
        outputs = self.ctx.outputs
        if node.values:
            if len(node.values) != len(outputs):
                self.ctx.unsupported(
                    f"return of {len(node.values)} value(s) for {len(outputs)} result(s)",
                    node.location)
                return
            texts = [self.expr(value) for value in node.values]
            for output, text in zip(outputs, texts):
                self.emit(f"*{output.c_name} = {text};")
        else:
            named = {ret.name for ret in self.ctx.function.returns if ret.name}
            for output in outputs:
                if output.name in named:
                    self.emit(f"*{output.c_name} = {output.name};")
        self.emit("return;")

    def visit_branch(self, node: BranchIR) -> None:
        self.emit(f"{node.keyword};")

    def visit_unsupported(self, node: UnsupportedStmtIR) -> None:
        logger.debug("skipping unsupported %s statement", node.kind)
