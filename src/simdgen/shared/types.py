"""
Element types and source-level type classification.

Element types are a closed set: every lowering request names one of the
entries in ELEMENT_TYPES (or an alias of one). numpy dtypes give the storage
width used to validate profile tiers against register sizes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class ElementType:
    """
    One target element precision.

    ``math_precision`` names the helper family used for transcendental math
    ("f32" or "f64"); half formats compute in f32, integer types have none.
    """
    name: str
    suffix: str
    dtype: np.dtype
    is_float: bool
    math_precision: Optional[str] = None

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    def __str__(self) -> str:
        return self.name


# bfloat16 has no numpy dtype; its storage is a 16-bit pattern.
ELEMENT_TYPES: Dict[str, ElementType] = {
    et.name: et for et in (
        ElementType("float32", "f32", np.dtype(np.float32), True, "f32"),
        ElementType("float64", "f64", np.dtype(np.float64), True, "f64"),
        ElementType("hwy.Float16", "f16", np.dtype(np.float16), True, "f32"),
        ElementType("hwy.BFloat16", "bf16", np.dtype(np.uint16), True, "f32"),
        ElementType("int32", "s32", np.dtype(np.int32), False),
        ElementType("int64", "s64", np.dtype(np.int64), False),
        ElementType("uint64", "u64", np.dtype(np.uint64), False),
        ElementType("uint32", "u32", np.dtype(np.uint32), False),
        ElementType("uint8", "u8", np.dtype(np.uint8), False),
    )
}

ELEMENT_ALIASES: Dict[str, str] = {
    "float16": "hwy.Float16",
    "bfloat16": "hwy.BFloat16",
    "f32": "float32",
    "f64": "float64",
    "byte": "uint8",
}


def canonical_element_name(name: str) -> str:
    return ELEMENT_ALIASES.get(name, name)


def resolve_element_type(name: str) -> ElementType:
    """Look up an element type by canonical name or alias."""
    canonical = canonical_element_name(name)
    try:
        return ELEMENT_TYPES[canonical]
    except KeyError:
        raise ConfigurationError(f"unknown element type '{name}'") from None


# ---------------------------------------------------------------------------
# Source dialect scalar types
# ---------------------------------------------------------------------------

GO_SCALAR_C_TYPES: Dict[str, str] = {
    "float32": "float",
    "float64": "double",
    "uint64": "unsigned long",
    "uint32": "unsigned int",
    "uint16": "unsigned short",
    "uint8": "unsigned char",
    "byte": "unsigned char",
    "uint": "unsigned long",
    "uintptr": "unsigned long",
    "int64": "long",
    "int32": "int",
    "int16": "short",
    "int8": "signed char",
    "int": "long",
    "rune": "int",
    "bool": "int",
    "hwy.Float16": "unsigned short",
    "hwy.BFloat16": "unsigned short",
}

INTEGER_GO_TYPES: FrozenSet[str] = frozenset({
    "int", "int8", "int16", "int32", "int64",
    "uint", "uint8", "uint16", "uint32", "uint64", "uintptr", "byte", "rune",
})

FLOAT_GO_TYPES: FrozenSet[str] = frozenset({"float32", "float64"})

# C scalar types that get an explicit zero initialiser on declaration
ZERO_INIT_C_TYPES: FrozenSet[str] = frozenset({
    "long", "int", "short", "signed char",
    "unsigned long", "unsigned int", "unsigned short", "unsigned char",
    "float", "double", "float16_t", "_Float16",
})


class ParamKind(Enum):
    """Semantic parameter classes of a parsed function."""
    ARRAY = "array"
    SCALAR_INT = "scalar-int"
    SCALAR_FLOAT = "scalar-float"
    VECTOR = "vector"
    OTHER = "other"


def is_vector_type_name(type_name: str) -> bool:
    return type_name == "hwy.Vec" or type_name.startswith("hwy.Vec[")


def classify_param_type(type_name: str,
                        type_params: Sequence[str] = ()) -> Tuple[ParamKind, Optional[str]]:
    """
    Classify a source parameter type.

    Returns (kind, element type name); the element name is only set for
    arrays (``[]float32`` -> ``float32``).
    """
    if type_name.startswith("[]"):
        return ParamKind.ARRAY, type_name[2:]
    if type_name in INTEGER_GO_TYPES:
        return ParamKind.SCALAR_INT, None
    if type_name in FLOAT_GO_TYPES or type_name in type_params:
        return ParamKind.SCALAR_FLOAT, None
    if is_vector_type_name(type_name):
        return ParamKind.VECTOR, None
    return ParamKind.OTHER, None


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class BinaryOp(Enum):
    """Binary operators - compile-time checked enum"""
    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"

    # Bitwise
    BIT_AND = "&"
    BIT_OR = "|"
    BIT_XOR = "^"
    AND_NOT = "&^"
    SHL = "<<"
    SHR = ">>"

    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    # Logical
    AND = "&&"
    OR = "||"


BITWISE_OPS: FrozenSet[BinaryOp] = frozenset({
    BinaryOp.BIT_AND, BinaryOp.BIT_OR, BinaryOp.BIT_XOR,
    BinaryOp.AND_NOT, BinaryOp.SHL, BinaryOp.SHR,
})

COMPARISON_OPS: FrozenSet[BinaryOp] = frozenset({
    BinaryOp.EQ, BinaryOp.NE, BinaryOp.LT, BinaryOp.LE, BinaryOp.GT, BinaryOp.GE,
    BinaryOp.AND, BinaryOp.OR,
})


class UnaryOp(Enum):
    """Unary operators"""
    POS = "+"
    NEG = "-"
    NOT = "!"
    BIT_NOT = "^"
    ADDR = "&"


class AssignOp(Enum):
    """Assignment forms; compound ops carry the binary operator they apply."""
    DEFINE = ":="
    ASSIGN = "="
    ADD = "+="
    SUB = "-="
    MUL = "*="
    DIV = "/="
    MOD = "%="
    AND = "&="
    OR = "|="
    XOR = "^="
    SHL = "<<="
    SHR = ">>="
    AND_NOT = "&^="

    @property
    def is_compound(self) -> bool:
        return self not in (AssignOp.DEFINE, AssignOp.ASSIGN)
