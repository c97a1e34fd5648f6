"""
Portable vector vocabulary: source call names -> profile operations.
"""

from typing import Dict, NamedTuple, Optional

from .base import Op


class VocabEntry(NamedTuple):
    op: Op
    arity: int


VOCABULARY: Dict[str, VocabEntry] = {
    "Load": VocabEntry(Op.LOAD, 1),
    "LoadSlice": VocabEntry(Op.LOAD, 1),
    "Store": VocabEntry(Op.STORE, 2),
    "StoreSlice": VocabEntry(Op.STORE, 2),
    "Set": VocabEntry(Op.SET, 1),
    "Zero": VocabEntry(Op.ZERO, 0),
    "MulAdd": VocabEntry(Op.MUL_ADD, 3),
    "FMA": VocabEntry(Op.MUL_ADD, 3),
    "Add": VocabEntry(Op.ADD, 2),
    "Sub": VocabEntry(Op.SUB, 2),
    "Mul": VocabEntry(Op.MUL, 2),
    "Div": VocabEntry(Op.DIV, 2),
    "Min": VocabEntry(Op.MIN, 2),
    "Max": VocabEntry(Op.MAX, 2),
    "Neg": VocabEntry(Op.NEG, 1),
    "Abs": VocabEntry(Op.ABS, 1),
    "Sqrt": VocabEntry(Op.SQRT, 1),
    "ReduceSum": VocabEntry(Op.REDUCE_SUM, 1),
    "ReduceMin": VocabEntry(Op.REDUCE_MIN, 1),
    "ReduceMax": VocabEntry(Op.REDUCE_MAX, 1),
    "InterleaveLower": VocabEntry(Op.INTERLEAVE_LOWER, 2),
    "InterleaveUpper": VocabEntry(Op.INTERLEAVE_UPPER, 2),
    "And": VocabEntry(Op.AND, 2),
    "Or": VocabEntry(Op.OR, 2),
    "Xor": VocabEntry(Op.XOR, 2),
    "PopCount": VocabEntry(Op.POP_COUNT, 1),
    "LessThan": VocabEntry(Op.LESS_THAN, 2),
    "Equal": VocabEntry(Op.EQUAL, 2),
    "GreaterThan": VocabEntry(Op.GREATER_THAN, 2),
    "IfThenElse": VocabEntry(Op.IF_THEN_ELSE, 3),
    "BitsFromMask": VocabEntry(Op.BITS_FROM_MASK, 1),
    "TableLookupBytes": VocabEntry(Op.TABLE_LOOKUP_BYTES, 2),
    "GetLane": VocabEntry(Op.GET_LANE, 2),
    "Load4": VocabEntry(Op.LOAD4, 1),
    "SlideUpLanes": VocabEntry(Op.SLIDE_UP, 2),
    "ShiftRight": VocabEntry(Op.SHIFT_RIGHT, 2),
}

# Calls (package functions or vector methods) that evaluate to the lane count
LANE_COUNT_NAMES = frozenset({"MaxLanes", "NumLanes", "NumElements"})

# Operations whose result is a mask vector
MASK_OPS = frozenset({Op.LESS_THAN, Op.EQUAL, Op.GREATER_THAN})

# Operations whose result is one lane
LANE_RESULT_OPS = frozenset({Op.REDUCE_SUM, Op.REDUCE_MIN, Op.REDUCE_MAX, Op.GET_LANE})

# Polynomial math functions (hwy.Exp, math.Exp, ...) -> helper base name
MATH_FUNCTIONS: Dict[str, str] = {
    "Exp": "exp",
    "Log": "log",
    "Sigmoid": "sigmoid",
    "Erf": "erf",
}


def lookup_vocabulary(name: str) -> Optional[VocabEntry]:
    return VOCABULARY.get(name)
