"""
Expression transformation: lark parse tree -> expression IR.
"""

import logging
from typing import Any, List, Optional

from lark import Token, Transformer, v_args

from ...ir.nodes import (
    BinaryOpIR, CallIR, ExpressionIR, IdentifierIR, IndexIR, LiteralIR, ParenIR,
    SelectorIR, SliceIR, StarIR, TypeExprIR, UnaryOpIR,
)
from ...shared.errors import ParseError, SimdgenImplementationError
from ...shared.source_location import SourceLocation
from ...shared.types import GO_SCALAR_C_TYPES, BinaryOp, UnaryOp
from ...utils.config import DEFAULT_SOURCE_NAME

logger = logging.getLogger(__name__)


class TypeArgs:
    """``f[A, B]`` before the call that consumes it as instantiation arguments."""
    __slots__ = ('base', 'names', 'location')

    def __init__(self, base: ExpressionIR, names: List[str], location: Optional[SourceLocation]):
        self.base = base
        self.names = names
        self.location = location


def type_name_of(expr: Any) -> Optional[str]:
    """Return the type spelled by ``expr`` when it can only be a type, else None."""
    if isinstance(expr, TypeExprIR):
        return expr.text
    if isinstance(expr, IdentifierIR):
        name = expr.name
        if name in GO_SCALAR_C_TYPES or name[:1].isupper():
            return name
        return None
    if isinstance(expr, SelectorIR) and isinstance(expr.base, IdentifierIR):
        if expr.field[:1].isupper():
            return f"{expr.base.name}.{expr.field}"
    return None


@v_args(inline=True, meta=True)
class ExpressionTransformer(Transformer):
    """
    Builds expression IR nodes.

    Every callback receives the lark ``meta`` first; locations are attached
    from it when position propagation produced one.
    """

    def __init__(self, source_file: str = DEFAULT_SOURCE_NAME):
        super().__init__()
        self.current_file = source_file

    def _loc(self, meta) -> Optional[SourceLocation]:
        if meta is None or getattr(meta, 'empty', True):
            return None
        return SourceLocation(
            file=self.current_file,
            line=meta.line,
            column=meta.column,
            end_line=getattr(meta, 'end_line', 0) or 0,
            end_column=getattr(meta, 'end_column', 0) or 0,
        )

    def __default__(self, data, children, meta):
        raise SimdgenImplementationError(f"Missing transformer method for grammar rule '{data}'")

    # -- operators --------------------------------------------------------

    def _op(self, meta, tok: Token) -> str:
        return str(tok)

    lor_op = land_op = cmp_op = add_op = mul_op = unary_op = _op

    def binary(self, meta, left, op: str, right) -> BinaryOpIR:
        return BinaryOpIR(BinaryOp(op), left, right, self._loc(meta))

    def unary(self, meta, op: str, operand) -> ExpressionIR:
        # Fold -<literal> so negative constants stay literal
        if op == '-' and isinstance(operand, LiteralIR) and operand.kind in ('int', 'float'):
            return LiteralIR(operand.kind, '-' + operand.text, self._loc(meta))
        return UnaryOpIR(UnaryOp(op), operand, self._loc(meta))

    def star(self, meta, operand) -> StarIR:
        return StarIR(operand, self._loc(meta))

    # -- primaries --------------------------------------------------------

    # `[]hwy.Vec[T]` may also arrive as suffixes on `[]hwy`; fold them into the type
    def selector(self, meta, base, name: Token) -> ExpressionIR:
        if isinstance(base, TypeExprIR):
            return TypeExprIR(f"{base.text}.{name}", self._loc(meta))
        return SelectorIR(self._expr(base), str(name), self._loc(meta))

    def index(self, meta, base, idx) -> ExpressionIR:
        if isinstance(base, TypeExprIR):
            arg = type_name_of(idx)
            if arg is not None:
                return TypeExprIR(f"{base.text}[{arg}]", self._loc(meta))
        return IndexIR(self._expr(base), idx, self._loc(meta))

    def multi_index(self, meta, base, *indices) -> Any:
        names = []
        for idx in indices:
            name = type_name_of(idx)
            if name is None:
                raise ParseError("multiple indices are only valid as type arguments",
                                 self.current_file, self._loc(meta))
            names.append(name)
        if isinstance(base, TypeExprIR):
            return TypeExprIR(f"{base.text}[{', '.join(names)}]", self._loc(meta))
        return TypeArgs(self._expr(base), names, self._loc(meta))

    def slice(self, meta, base, low, high) -> SliceIR:
        return SliceIR(self._expr(base), low, high, self._loc(meta))

    def call(self, meta, func, args) -> CallIR:
        args = args or []
        if isinstance(func, TypeArgs):
            return CallIR(func.base, args, list(func.names), self._loc(meta))
        if isinstance(func, IndexIR) and isinstance(func.base, (IdentifierIR, SelectorIR)):
            type_arg = type_name_of(func.index)
            if type_arg is not None:
                return CallIR(func.base, args, [type_arg], self._loc(meta))
        return CallIR(func, args, None, self._loc(meta))

    def arg_list(self, meta, *items) -> List[ExpressionIR]:
        return [self._expr(item) for item in items if item is not None]

    def _expr(self, node):
        if isinstance(node, TypeArgs):
            raise ParseError("generic instantiation must be called",
                             self.current_file, node.location)
        return node

    # -- operands ---------------------------------------------------------

    def name(self, meta, tok: Token) -> IdentifierIR:
        return IdentifierIR(str(tok), self._loc(meta))

    def int_lit(self, meta, tok: Token) -> LiteralIR:
        return LiteralIR('int', str(tok), self._loc(meta))

    def float_lit(self, meta, tok: Token) -> LiteralIR:
        return LiteralIR('float', str(tok), self._loc(meta))

    def char_lit(self, meta, tok: Token) -> LiteralIR:
        return LiteralIR('char', str(tok), self._loc(meta))

    def string_lit(self, meta, tok: Token) -> LiteralIR:
        return LiteralIR('string', str(tok), self._loc(meta))

    def paren(self, meta, inner) -> ParenIR:
        return ParenIR(self._expr(inner), self._loc(meta))

    def slice_type_expr(self, meta, elem: str) -> TypeExprIR:
        return TypeExprIR("[]" + elem, self._loc(meta))

    # -- types ------------------------------------------------------------

    def slice_type(self, meta, elem: str) -> str:
        return "[]" + elem

    def array_type(self, meta, size: Token, elem: str) -> str:
        return f"[{size}]{elem}"

    def pointer_type(self, meta, elem: str) -> str:
        return "*" + elem

    def named_type(self, meta, name: str, *type_args) -> str:
        args = [a for a in type_args if a is not None]
        if args:
            return f"{name}[{', '.join(args)}]"
        return name

    def qualified_name(self, meta, *parts: Token) -> str:
        return ".".join(str(p) for p in parts)
