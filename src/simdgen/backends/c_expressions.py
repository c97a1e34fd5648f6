"""C backend expression visitors. Every visit_* returns C source text."""

import re
from typing import Callable, Dict

from ..ir.nodes import (
    BinaryOpIR, CallIR, ExpressionIR, IdentifierIR, IndexIR, LiteralIR, ParenIR,
    SelectorIR, SliceIR, StarIR, TypeExprIR, UnaryOpIR,
)
from ..passes.base import HelperRef
from ..profiles.vocabulary import LANE_COUNT_NAMES, MATH_FUNCTIONS, lookup_vocabulary
from ..shared.types import BITWISE_OPS, GO_SCALAR_C_TYPES, BinaryOp, ParamKind, UnaryOp
from ..utils.config import (
    BITS_PACKAGE, MATH_PACKAGES, PANIC_FUNCTION, VOCABULARY_PACKAGE,
)
from .c_types import MATH_CONSTANTS

_OCTAL_PREFIX = re.compile(r"^0[oO]")

_C_UNARY = {
    UnaryOp.POS: "+",
    UnaryOp.NEG: "-",
    UnaryOp.NOT: "!",
    UnaryOp.BIT_NOT: "~",
    UnaryOp.ADDR: "&",
}

_ALLOCATING_BUILTINS = frozenset({"append", "new"})

_POPCOUNT_BUILTINS = {
    "OnesCount64": "__builtin_popcountll",
    "OnesCount": "__builtin_popcountll",
    "OnesCount32": "__builtin_popcount",
    "OnesCount16": "__builtin_popcount",
    "OnesCount8": "__builtin_popcount",
}

_BIT_CAST_HELPERS = {
    "Float32bits": "float_to_bits",
    "Float32frombits": "bits_to_float",
}

_MATH_BUILTINS = {
    "Sqrt": "__builtin_sqrt",
    "Abs": "__builtin_fabs",
    "Floor": "__builtin_floor",
    "Ceil": "__builtin_ceil",
}


class ExpressionLoweringMixin:
    """
    Lowers expressions to C text.

    Calls resolve in a fixed priority: the vector vocabulary, lane-count
    queries, language built-ins, math functions, unknown ``hwy`` names (a
    warning and a best-effort call), then any other call verbatim.
    """

    def expr(self, node: ExpressionIR) -> str:
        return node.accept(self)

    def scalar_math_precision(self) -> str:
        return self.ctx.element.math_precision or "f64"

    def scalar_math_c_type(self) -> str:
        return "float" if self.scalar_math_precision() == "f32" else "double"

    # -- leaves -----------------------------------------------------------

    def visit_identifier(self, node: IdentifierIR) -> str:
        if node.name == "true":
            return "1"
        if node.name in ("false", "nil"):
            return "0"
        return node.name

    def visit_literal(self, node: LiteralIR) -> str:
        text = node.text
        if node.kind == "int":
            text = _OCTAL_PREFIX.sub("0", text.replace("_", ""))
            return text
        if node.kind == "float":
            text = text.replace("_", "")
            if self.ctx.element.name == "float32" and not self.profile.scalar_arith_type:
                return text + "f"
            return text
        return text

    def visit_type_expr(self, node: TypeExprIR) -> str:
        return self.ctx.placeholder(node.text, "types are not values in C", node.location)

    # -- operators --------------------------------------------------------

    def _operand(self, node: ExpressionIR) -> str:
        text = self.expr(node)
        if isinstance(node, BinaryOpIR) and node.operator in BITWISE_OPS:
            return f"({text})"
        return text

    def visit_binary_op(self, node: BinaryOpIR) -> str:
        left = self._operand(node.left)
        if node.operator is BinaryOp.AND_NOT:
            return f"{left} & ~({self.expr(node.right)})"
        return f"{left} {node.operator.value} {self._operand(node.right)}"

    def visit_unary_op(self, node: UnaryOpIR) -> str:
        return f"{_C_UNARY[node.operator]}{self._operand(node.operand)}"

    def visit_paren(self, node: ParenIR) -> str:
        return f"({self.expr(node.inner)})"

    def visit_star(self, node: StarIR) -> str:
        return f"*{self._operand(node.operand)}"

    # -- access -----------------------------------------------------------

    def visit_index(self, node: IndexIR) -> str:
        base = self.expr(node.base)
        if isinstance(node.base, SliceIR) and node.base.low is not None:
            base = f"({base})"
        return f"{base}[{self.expr(node.index)}]"

    def visit_slice(self, node: SliceIR) -> str:
        base = self.expr(node.base)
        if node.low is None or (isinstance(node.low, LiteralIR) and node.low.text == "0"):
            return base
        return f"{base} + {self._operand(node.low)}"

    def visit_selector(self, node: SelectorIR) -> str:
        if isinstance(node.base, IdentifierIR) and node.base.name in MATH_PACKAGES:
            constant = MATH_CONSTANTS.get(node.field)
            if constant is not None:
                return constant
        return f"{self.expr(node.base)}.{node.field}"

    # -- calls ------------------------------------------------------------

    def visit_call(self, node: CallIR) -> str:
        package, member = node.package, node.member
        name = node.qualified_name

        if package == VOCABULARY_PACKAGE:
            entry = lookup_vocabulary(member)
            if entry is not None:
                return self.lower_vocab_call(node, entry)
        if member in LANE_COUNT_NAMES and not node.args and isinstance(node.func, SelectorIR):
            return str(self.ctx.lanes)

        builtin = _BUILTINS.get(name)
        if builtin is not None:
            return builtin(self, node)
        if name in GO_SCALAR_C_TYPES and len(node.args) == 1:
            return f"({GO_SCALAR_C_TYPES[name]})({self.expr(node.args[0])})"
        if name is not None and self.is_type_param(name) and len(node.args) == 1:
            return f"({self.profile.lane_c_type})({self.expr(node.args[0])})"

        if member in MATH_FUNCTIONS and (package == VOCABULARY_PACKAGE or package in MATH_PACKAGES):
            return self._lower_math_function(node)
        if package in MATH_PACKAGES:
            return self._lower_math_package_call(node)
        if package == BITS_PACKAGE and member in _POPCOUNT_BUILTINS:
            return f"{_POPCOUNT_BUILTINS[member]}({self._args(node)})"

        if package == VOCABULARY_PACKAGE:
            return self._lower_unknown_vocabulary(node)
        return self._lower_generic_call(node)

    def _args(self, node: CallIR) -> str:
        return ", ".join(self.expr(arg) for arg in node.args)

    def _lower_math_function(self, node: CallIR) -> str:
        if node.args and self.infer_type(node.args[0]).is_vector:
            return self.lower_vector_math(node)
        if len(node.args) != 1:
            return self.ctx.placeholder(node.qualified_name,
                                        f"expects 1 argument(s), got {len(node.args)}",
                                        node.location)
        helper = self.ctx.require_helper(
            HelperRef("scalar", MATH_FUNCTIONS[node.member], self.scalar_math_precision()))
        return f"{helper}({self.expr(node.args[0])})"

    def _lower_math_package_call(self, node: CallIR) -> str:
        member = node.member
        if member in _BIT_CAST_HELPERS and len(node.args) == 1:
            helper = self.ctx.require_helper(HelperRef("bits", _BIT_CAST_HELPERS[member]))
            return f"{helper}({self.expr(node.args[0])})"
        if member == "Inf" and len(node.args) == 1:
            sign = node.args[0]
            # negative literals arrive folded ("-1")
            if isinstance(sign, LiteralIR):
                return "(-1.0f / 0.0f)" if sign.text.startswith("-") else "(1.0f / 0.0f)"
            return f"(({self.expr(sign)}) >= 0 ? (1.0f / 0.0f) : (-1.0f / 0.0f))"
        if member in _MATH_BUILTINS and len(node.args) == 1:
            return f"{_MATH_BUILTINS[member]}({self.expr(node.args[0])})"
        return self.ctx.placeholder(node.qualified_name, "no inline C equivalent", node.location)

    def _lower_unknown_vocabulary(self, node: CallIR) -> str:
        if self.ctx.strict:
            return self.ctx.placeholder(node.qualified_name, "not in the vector vocabulary",
                                        node.location)
        self.ctx.reporter.report_warning(
            f"`{node.qualified_name}` is not in the vector vocabulary", node.location,
            code="W0300", label="translated as a plain call",
        )
        return f"hwy_{node.member.lower()}({self._args(node)})"

    def _lower_generic_call(self, node: CallIR) -> str:
        if node.package is not None:
            callee = f"{node.package}_{node.member}"
        else:
            callee = self.expr(node.func)
        return f"{callee}({self._args(node)})"

    # -- built-ins --------------------------------------------------------

    def _builtin_len(self, node: CallIR) -> str:
        if len(node.args) == 1 and isinstance(node.args[0], IdentifierIR):
            param = self.ctx.params.get(node.args[0].name)
            if param is not None and param.kind is ParamKind.ARRAY and self.ctx.length_var:
                return self.ctx.length_var
        return self.ctx.placeholder("len", "length is only known for slice parameters",
                                    node.location)

    def _builtin_min_max(self, node: CallIR) -> str:
        if len(node.args) != 2:
            return self.ctx.placeholder(node.qualified_name, "only the two-argument form lowers",
                                        node.location)
        a, b = (self.expr(arg) for arg in node.args)
        op = "<" if node.qualified_name == "min" else ">"
        return f"(({a}) {op} ({b}) ? ({a}) : ({b}))"

    def _builtin_allocating(self, node: CallIR) -> str:
        return self.ctx.placeholder(node.qualified_name, "dynamic allocation is not supported",
                                    node.location)

    def _builtin_make(self, node: CallIR) -> str:
        return self.ctx.placeholder("make", "only `:=` or `var` from make([]E, n) lowers",
                                    node.location)

    def _builtin_copy(self, node: CallIR) -> str:
        return self.ctx.placeholder("copy", "copy only lowers as a statement", node.location)

    def _builtin_panic(self, node: CallIR) -> str:
        return self.ctx.placeholder(PANIC_FUNCTION, "panic is only dropped as a statement",
                                    node.location)


_BUILTINS: Dict[str, Callable[[ExpressionLoweringMixin, CallIR], str]] = {
    "len": ExpressionLoweringMixin._builtin_len,
    "min": ExpressionLoweringMixin._builtin_min_max,
    "max": ExpressionLoweringMixin._builtin_min_max,
    "make": ExpressionLoweringMixin._builtin_make,
    "copy": ExpressionLoweringMixin._builtin_copy,
    PANIC_FUNCTION: ExpressionLoweringMixin._builtin_panic,
}
_BUILTINS.update({name: ExpressionLoweringMixin._builtin_allocating
                  for name in _ALLOCATING_BUILTINS})
