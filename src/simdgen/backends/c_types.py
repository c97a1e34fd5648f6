"""C backend: static type inference for source expressions."""

from typing import Optional, Tuple

from ..ir.nodes import (
    BinaryOpIR, CallIR, ExpressionIR, IdentifierIR, IndexIR, LiteralIR, ParenIR,
    SelectorIR, SliceIR, StarIR, TypeExprIR, UnaryOpIR,
)
from ..passes.base import VariableTypeInfo
from ..profiles.base import Op
from ..profiles.vocabulary import (
    LANE_COUNT_NAMES, LANE_RESULT_OPS, MASK_OPS, MATH_FUNCTIONS, lookup_vocabulary,
)
from ..shared.types import (
    COMPARISON_OPS, GO_SCALAR_C_TYPES, INTEGER_GO_TYPES,
    UnaryOp, canonical_element_name, is_vector_type_name,
)
from ..utils.config import (
    BITS_PACKAGE, FALLBACK_SCALAR_C_TYPE, MATH_PACKAGES, VOCABULARY_PACKAGE,
)

LONG = VariableTypeInfo("long")
INT = VariableTypeInfo("int")
UNSIGNED_INT = VariableTypeInfo("unsigned int")

_POINTER_SUFFIX = " *"


def pointer_to(c_type: str) -> VariableTypeInfo:
    return VariableTypeInfo(c_type + _POINTER_SUFFIX, is_pointer=True)


def pointee(info: VariableTypeInfo) -> VariableTypeInfo:
    if info.is_pointer and info.c_type.endswith(_POINTER_SUFFIX):
        inner = info.c_type[:-len(_POINTER_SUFFIX)]
        nested = inner.endswith(_POINTER_SUFFIX)
        return VariableTypeInfo(inner, is_vector=info.is_vector and not nested, is_pointer=nested)
    return info


class TypeInferenceMixin:
    """
    Resolves the C type of an expression.

    Types come from the variable table first, then from the shape of the
    expression: vocabulary results are vectors (masks for comparisons,
    lanes for reductions), conversions name their type, arithmetic takes
    the type of its left operand.
    """

    # -- source type names ------------------------------------------------

    def is_type_param(self, name: str) -> bool:
        return name in self.ctx.function.type_params

    def vector_info(self) -> VariableTypeInfo:
        return VariableTypeInfo(self.profile.vec_type(self.ctx.tier) or FALLBACK_SCALAR_C_TYPE,
                                is_vector=True)

    def mask_info(self) -> VariableTypeInfo:
        return VariableTypeInfo(self.profile.mask_type(self.ctx.tier) or FALLBACK_SCALAR_C_TYPE,
                                is_vector=True)

    def lane_info(self) -> VariableTypeInfo:
        return VariableTypeInfo(self.profile.lane_c_type)

    def array_elem_c_type(self, elem: Optional[str]) -> str:
        """C element type behind a slice parameter ``[]elem``."""
        if elem is None or self.is_type_param(elem):
            return self.profile.c_type
        if canonical_element_name(elem) == self.profile.element_type:
            return self.profile.c_type
        return GO_SCALAR_C_TYPES.get(elem, self.profile.c_type)

    def c_type_for(self, type_name: str) -> VariableTypeInfo:
        """C type of a declared local (``var x T``)."""
        if type_name.startswith("[]"):
            return pointer_to(self.array_elem_c_type(type_name[2:]))
        if is_vector_type_name(type_name):
            return self.vector_info()
        if self.is_type_param(type_name):
            return self.lane_info()
        return VariableTypeInfo(GO_SCALAR_C_TYPES.get(type_name, FALLBACK_SCALAR_C_TYPE))

    def make_array(self, call: CallIR) -> Optional[Tuple[str, VariableTypeInfo]]:
        """
        ``(element C type, array info)`` for ``make([]E, n[, cap])``.

        Vector elements give an array of the tier's vector type; anything
        else an array of the scalar element. Other shapes return None.
        """
        if call.qualified_name != "make" or len(call.args) not in (2, 3):
            return None
        kind = call.args[0]
        if not isinstance(kind, TypeExprIR) or not kind.text.startswith("[]"):
            return None
        elem = kind.text[2:]
        length = self.expr(call.args[1])
        if is_vector_type_name(elem):
            c_type = self.vector_info().c_type
            return c_type, VariableTypeInfo(c_type + _POINTER_SUFFIX, is_vector=True,
                                            is_pointer=True, length=length)
        c_type = self.array_elem_c_type(elem)
        return c_type, VariableTypeInfo(c_type + _POINTER_SUFFIX, is_pointer=True, length=length)

    def output_type_for(self, type_name: str) -> VariableTypeInfo:
        """C type behind an output pointer for a declared result type."""
        if is_vector_type_name(type_name):
            return self.vector_info()
        if type_name in INTEGER_GO_TYPES or type_name == "bool":
            return LONG
        if type_name == "float32":
            return VariableTypeInfo("float")
        if type_name == "float64":
            return VariableTypeInfo("double")
        if self.is_type_param(type_name):
            return VariableTypeInfo(self.profile.scalar_param_type)
        return LONG

    def scalar_float_param_type(self, type_name: str) -> str:
        if type_name == "float32":
            return "float"
        if type_name == "float64":
            return "double"
        return self.profile.scalar_param_type

    # -- expressions ------------------------------------------------------

    def infer_type(self, expr: Optional[ExpressionIR]) -> VariableTypeInfo:
        if isinstance(expr, IdentifierIR):
            if expr.name in ("true", "false"):
                return INT
            return self.ctx.lookup(expr.name) or self.lane_info()
        if isinstance(expr, LiteralIR):
            return self._literal_type(expr)
        if isinstance(expr, ParenIR):
            return self.infer_type(expr.inner)
        if isinstance(expr, BinaryOpIR):
            if expr.operator in COMPARISON_OPS:
                return INT
            if isinstance(expr.left, LiteralIR) and expr.left.kind == "int":
                return self.infer_type(expr.right)
            return self.infer_type(expr.left)
        if isinstance(expr, UnaryOpIR):
            if expr.operator is UnaryOp.NOT:
                return INT
            inner = self.infer_type(expr.operand)
            if expr.operator is UnaryOp.ADDR:
                return pointer_to(inner.c_type)
            return inner
        if isinstance(expr, (IndexIR, StarIR)):
            base = expr.base if isinstance(expr, IndexIR) else expr.operand
            return pointee(self.infer_type(base))
        if isinstance(expr, SliceIR):
            return self.infer_type(expr.base)
        if isinstance(expr, CallIR):
            return self._call_type(expr)
        if isinstance(expr, SelectorIR):
            return VariableTypeInfo("double") if self._is_math_constant(expr) else self.lane_info()
        return self.lane_info()

    def _literal_type(self, expr: LiteralIR) -> VariableTypeInfo:
        if expr.kind == "int":
            return LONG
        if expr.kind == "float":
            return self.lane_info() if self.ctx.element.is_float else VariableTypeInfo("double")
        if expr.kind == "char":
            return INT
        return VariableTypeInfo("const char *", is_pointer=True)

    def _is_math_constant(self, expr: SelectorIR) -> bool:
        return (isinstance(expr.base, IdentifierIR) and expr.base.name in MATH_PACKAGES
                and expr.field in MATH_CONSTANTS)

    def _call_type(self, call: CallIR) -> VariableTypeInfo:
        package, member, name = call.package, call.member, call.qualified_name
        if member in LANE_COUNT_NAMES:
            return LONG
        if package == VOCABULARY_PACKAGE:
            if member in MATH_FUNCTIONS:
                return self._math_result_type(call)
            entry = lookup_vocabulary(member)
            if entry is None:
                return self.vector_info()
            if entry.op in MASK_OPS:
                return self.mask_info()
            if entry.op in LANE_RESULT_OPS:
                return self.lane_info()
            if entry.op is Op.BITS_FROM_MASK:
                return UNSIGNED_INT
            return self.vector_info()
        if package in MATH_PACKAGES:
            if member == "Float32bits":
                return UNSIGNED_INT
            if member == "Float32frombits":
                return VariableTypeInfo("float")
            if member in MATH_FUNCTIONS:
                return self._math_result_type(call)
            if member == "Inf":
                return VariableTypeInfo("float")
            return VariableTypeInfo("double")
        if package == BITS_PACKAGE:
            return INT
        if name == "len":
            return LONG
        if name in ("min", "max") and call.args:
            return self.infer_type(call.args[0])
        if name in GO_SCALAR_C_TYPES:
            return VariableTypeInfo(GO_SCALAR_C_TYPES[name])
        if name is not None and self.is_type_param(name):
            return self.lane_info()
        return self.lane_info()

    def _math_result_type(self, call: CallIR) -> VariableTypeInfo:
        if call.args and self.infer_type(call.args[0]).is_vector:
            return self.vector_info()
        return VariableTypeInfo(self.scalar_math_c_type())


# math.<Name> constants usable as expressions
MATH_CONSTANTS = {
    "Pi": "3.141592653589793",
    "E": "2.718281828459045",
    "Ln2": "0.6931471805599453",
    "Log2E": "1.4426950408889634",
    "Sqrt2": "1.4142135623730951",
    "MaxFloat32": "3.40282346638528859811704183484516925440e+38",
}
