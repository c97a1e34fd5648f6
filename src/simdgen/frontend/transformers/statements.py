"""
Statement transformation: lark parse tree -> statement IR.
"""

from typing import List, Optional, Tuple

from lark import Token, v_args

from ...ir.nodes import (
    AssignIR, BlockIR, BranchIR, ExprStmtIR, ExpressionIR, ForIR, IdentifierIR,
    IfIR, IncDecIR, RangeIR, ReturnStmtIR, StatementIR, UnsupportedStmtIR, VarDeclIR,
)
from ...shared.errors import ParseError
from ...shared.types import AssignOp
from ...utils.config import DEFAULT_SOURCE_NAME
from .expressions import ExpressionTransformer


@v_args(inline=True, meta=True)
class StatementTransformer(ExpressionTransformer):
    """Builds statement IR; unsupported statement kinds keep their source text."""

    def __init__(self, source_file: str = DEFAULT_SOURCE_NAME, source_text: str = ""):
        super().__init__(source_file)
        self.source_text = source_text

    def _text(self, meta) -> str:
        if getattr(meta, 'empty', True):
            return ""
        return self.source_text[meta.start_pos:meta.end_pos]

    def block(self, meta, statements: List[StatementIR]) -> BlockIR:
        return BlockIR(statements, self._loc(meta))

    def stmt_list(self, meta, *statements) -> List[StatementIR]:
        return [s for s in statements if s is not None]

    # -- simple statements ------------------------------------------------

    def expr_list(self, meta, *exprs) -> List[ExpressionIR]:
        return [self._expr(e) for e in exprs]

    def assign_op(self, meta, tok: Token) -> AssignOp:
        return AssignOp(str(tok))

    def define(self, meta, targets, values) -> AssignIR:
        for target in targets:
            if not isinstance(target, IdentifierIR):
                raise ParseError("non-name on left side of :=", self.current_file, target.location)
        return AssignIR(targets, AssignOp.DEFINE, values, self._loc(meta))

    def assign(self, meta, targets, op: AssignOp, values) -> AssignIR:
        return AssignIR(targets, op, values, self._loc(meta))

    def inc(self, meta, target) -> IncDecIR:
        return IncDecIR(target, True, self._loc(meta))

    def dec(self, meta, target) -> IncDecIR:
        return IncDecIR(target, False, self._loc(meta))

    def expr_stmt(self, meta, expr) -> ExprStmtIR:
        return ExprStmtIR(self._expr(expr), self._loc(meta))

    def name_list(self, meta, *names: Token) -> List[str]:
        return [str(n) for n in names]

    def var_typed(self, meta, names, type_name: str, values) -> VarDeclIR:
        return VarDeclIR(names, type_name, values or [], self._loc(meta))

    def var_untyped(self, meta, names, values) -> VarDeclIR:
        return VarDeclIR(names, None, values, self._loc(meta))

    # -- loops ------------------------------------------------------------

    def for_forever(self, meta, body) -> ForIR:
        return ForIR(None, None, None, body, self._loc(meta))

    def for_cond(self, meta, cond, body) -> ForIR:
        return ForIR(None, cond, None, body, self._loc(meta))

    def for_clause(self, meta, init, cond, post, body) -> ForIR:
        return ForIR(init, cond, post, body, self._loc(meta))

    def _range_names(self, meta, targets) -> Tuple[Optional[str], Optional[str]]:
        if len(targets) > 2:
            raise ParseError("range permits at most two iteration variables",
                             self.current_file, self._loc(meta))
        names: List[Optional[str]] = []
        for target in targets:
            if not isinstance(target, IdentifierIR):
                raise ParseError("range variables must be names", self.current_file, target.location)
            names.append(None if target.name == "_" else target.name)
        while len(names) < 2:
            names.append(None)
        return names[0], names[1]

    def for_range_define(self, meta, targets, iterable, body) -> RangeIR:
        key, value = self._range_names(meta, targets)
        return RangeIR(key, value, iterable, body, True, self._loc(meta))

    def for_range_assign(self, meta, targets, iterable, body) -> RangeIR:
        key, value = self._range_names(meta, targets)
        return RangeIR(key, value, iterable, body, False, self._loc(meta))

    def for_range_bare(self, meta, iterable, body) -> RangeIR:
        return RangeIR(None, None, iterable, body, True, self._loc(meta))

    # -- branches ---------------------------------------------------------

    def if_stmt(self, meta, init, cond, body, orelse) -> IfIR:
        return IfIR(init, self._expr(cond), body, orelse, self._loc(meta))

    def else_clause(self, meta, stmt) -> StatementIR:
        return stmt

    def return_stmt(self, meta, values) -> ReturnStmtIR:
        return ReturnStmtIR(values or [], self._loc(meta))

    def break_stmt(self, meta, label) -> BranchIR:
        return BranchIR("break", str(label) if label else None, self._loc(meta))

    def continue_stmt(self, meta, label) -> BranchIR:
        return BranchIR("continue", str(label) if label else None, self._loc(meta))

    def _unsupported(self, kind: str, meta) -> UnsupportedStmtIR:
        return UnsupportedStmtIR(kind, self._text(meta), self._loc(meta))

    def defer_stmt(self, meta, expr) -> UnsupportedStmtIR:
        return self._unsupported("defer", meta)

    def go_stmt(self, meta, expr) -> UnsupportedStmtIR:
        return self._unsupported("go", meta)

    def goto_stmt(self, meta, label) -> UnsupportedStmtIR:
        return self._unsupported("goto", meta)

    def fallthrough_stmt(self, meta) -> UnsupportedStmtIR:
        return self._unsupported("fallthrough", meta)
