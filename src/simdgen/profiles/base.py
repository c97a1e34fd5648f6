"""
Intrinsic profile model.

A profile is the complete per-(architecture, element type) table the C
lowering consults: C spellings for every portable operation per tier, the
vector/mask/multi-register types, operand-order conventions and the
promotion path for element types without native arithmetic. Profiles are
data; adding a target never touches lowering logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple


class Tier(Enum):
    """Vector register classes a tier can use."""
    Q = "q"          # NEON 128-bit
    D = "d"          # NEON 64-bit
    XMM = "xmm"      # x86 128-bit
    YMM = "ymm"      # x86 256-bit
    ZMM = "zmm"      # x86 512-bit
    SCALAR = "scalar"

    @property
    def register_bytes(self) -> int:
        return _REGISTER_BYTES[self]


_REGISTER_BYTES = {Tier.Q: 16, Tier.D: 8, Tier.XMM: 16, Tier.YMM: 32, Tier.ZMM: 64, Tier.SCALAR: 0}


@dataclass(frozen=True)
class LoopTier:
    """One rung of the width ladder: lanes per vector and unroll factor."""
    tier: Tier
    lanes: int
    unroll: int = 1

    @property
    def is_scalar(self) -> bool:
        return self.tier is Tier.SCALAR


def scalar_tier() -> LoopTier:
    return LoopTier(Tier.SCALAR, 1, 1)


class Op(Enum):
    """Portable operations plus the conversion/accumulator entries profiles provide."""
    LOAD = "Load"
    STORE = "Store"
    SET = "Set"
    ZERO = "Zero"
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    DIV = "Div"
    MUL_ADD = "MulAdd"
    NEG = "Neg"
    ABS = "Abs"
    SQRT = "Sqrt"
    MIN = "Min"
    MAX = "Max"
    REDUCE_SUM = "ReduceSum"
    REDUCE_MIN = "ReduceMin"
    REDUCE_MAX = "ReduceMax"
    INTERLEAVE_LOWER = "InterleaveLower"
    INTERLEAVE_UPPER = "InterleaveUpper"
    AND = "And"
    OR = "Or"
    XOR = "Xor"
    POP_COUNT = "PopCount"
    LESS_THAN = "LessThan"
    EQUAL = "Equal"
    GREATER_THAN = "GreaterThan"
    IF_THEN_ELSE = "IfThenElse"
    BITS_FROM_MASK = "BitsFromMask"
    TABLE_LOOKUP_BYTES = "TableLookupBytes"
    GET_LANE = "GetLane"
    LOAD4 = "Load4"
    SLIDE_UP = "SlideUpLanes"
    SHIFT_RIGHT = "ShiftRight"
    # Store used to spill a vector for variable-index lane access
    SPILL_STORE = "SpillStore"
    # Storage <-> compute conversions
    PROMOTE = "Promote"
    DEMOTE = "Demote"
    PROMOTE_LOWER = "PromoteLower"
    PROMOTE_UPPER = "PromoteUpper"
    COMBINE = "Combine"
    # Deferred popcount accumulation
    POP_COUNT_PARTIAL = "PopCountPartial"
    ACC_ADD = "AccAdd"
    ACC_REDUCE = "AccReduce"
    ACC_ZERO = "AccZero"


class MathStrategy(Enum):
    NATIVE = "native"
    PROMOTED = "promoted"


class ArgOrder(Enum):
    """Operand order of the target's fused multiply-add."""
    ACC_FIRST = "acc_first"   # fma(acc, a, b)
    ACC_LAST = "acc_last"     # fma(a, b, acc)


class SelectOrder(Enum):
    """Operand order of the target's lane select."""
    MASK_FIRST = "mask_first"  # select(mask, yes, no)
    MASK_LAST = "mask_last"    # select(no, yes, mask)


def render_spelling(spelling: str, args: Sequence[str]) -> str:
    """
    Render a table spelling.

    A spelling containing ``{`` is a positional template
    (``"vcvt_f32_f16(vget_low_f16({0}))"``); anything else is a function
    name applied to the arguments in order.
    """
    if "{" in spelling:
        return spelling.format(*args)
    return f"{spelling}({', '.join(args)})"


OpTable = Mapping[Op, Mapping[Tier, str]]
TypeTable = Mapping[Tier, str]


def _freeze_table(table) -> Mapping:
    return MappingProxyType({
        k: MappingProxyType(dict(v)) if isinstance(v, Mapping) else v
        for k, v in dict(table).items()
    })


@dataclass(frozen=True, eq=False)
class IntrinsicProfile:
    """
    Registry entry for one (architecture, element type) pair.

    ``vec_types`` are the types vector variables are declared with (the
    compute type). When the element type has no native arithmetic,
    ``storage_vec_types`` give the in-memory vector type and loads/stores go
    through PROMOTE/DEMOTE. ``wide_vec_types`` name the promoted compute
    type used around math helpers for natively computed half formats (for
    tiers that only split, the type of one promoted half).
    """
    architecture: str
    element_type: str
    include: str
    c_type: str
    tiers: Tuple[LoopTier, ...]
    vec_types: TypeTable
    ops: OpTable
    storage_vec_types: TypeTable = field(default_factory=dict)
    wide_vec_types: TypeTable = field(default_factory=dict)
    mask_types: TypeTable = field(default_factory=dict)
    x4_types: TypeTable = field(default_factory=dict)
    acc_vec_types: TypeTable = field(default_factory=dict)
    inline_helpers: Tuple[str, ...] = ()
    math_strategy: MathStrategy = MathStrategy.NATIVE
    native_arithmetic: bool = True
    scalar_arith_type: Optional[str] = None
    cast_expr: Optional[str] = None
    fma_order: ArgOrder = ArgOrder.ACC_FIRST
    select_order: SelectOrder = SelectOrder.MASK_FIRST
    compiler_flags: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("vec_types", "ops", "storage_vec_types", "wide_vec_types",
                     "mask_types", "x4_types", "acc_vec_types"):
            object.__setattr__(self, name, _freeze_table(getattr(self, name)))
        object.__setattr__(self, "tiers", tuple(self.tiers))
        object.__setattr__(self, "inline_helpers", tuple(self.inline_helpers))
        object.__setattr__(self, "compiler_flags", tuple(self.compiler_flags))

    @property
    def key(self) -> Tuple[str, str]:
        return self.architecture, self.element_type

    def __repr__(self) -> str:
        return f"IntrinsicProfile({self.architecture}:{self.element_type})"

    # -- tiers ------------------------------------------------------------

    def primary_tier(self) -> LoopTier:
        """Smallest-lane vector tier; the first one listed wins ties."""
        best: Optional[LoopTier] = None
        for tier in self.tiers:
            if tier.is_scalar:
                continue
            if best is None or tier.lanes < best.lanes:
                best = tier
        if best is None:
            return scalar_tier()
        return best

    def find_tier(self, tier: Tier) -> Optional[LoopTier]:
        """Smallest-lane LoopTier using register class ``tier`` (first on ties)."""
        best: Optional[LoopTier] = None
        for loop_tier in self.tiers:
            if loop_tier.tier is tier and (best is None or loop_tier.lanes < best.lanes):
                best = loop_tier
        return best

    # -- lookups ----------------------------------------------------------

    def intrinsic(self, op: Op, tier: Tier) -> Optional[str]:
        return self.ops.get(op, {}).get(tier)

    def has(self, op: Op, tier: Tier) -> bool:
        return self.intrinsic(op, tier) is not None

    def render(self, op: Op, tier: Tier, args: Sequence[str]) -> Optional[str]:
        spelling = self.intrinsic(op, tier)
        if spelling is None:
            return None
        return render_spelling(spelling, args)

    def vec_type(self, tier: Tier) -> Optional[str]:
        return self.vec_types.get(tier)

    def storage_type(self, tier: Tier) -> Optional[str]:
        return self.storage_vec_types.get(tier) or self.vec_types.get(tier)

    def mask_type(self, tier: Tier) -> Optional[str]:
        return self.mask_types.get(tier) or self.vec_types.get(tier)

    def cast_pointer(self, ptr: str) -> str:
        if self.cast_expr:
            return f"{self.cast_expr}({ptr})"
        return ptr

    # -- precision --------------------------------------------------------

    @property
    def is_promoted(self) -> bool:
        return self.math_strategy is MathStrategy.PROMOTED

    @property
    def promotes_on_load(self) -> bool:
        """Vectors live in the compute type; memory holds the narrow storage type."""
        return self.is_promoted and not self.native_arithmetic

    @property
    def lane_c_type(self) -> str:
        """C type of one lane as seen by scalar code (reductions, lane reads)."""
        if self.scalar_arith_type:
            return self.scalar_arith_type
        if self.promotes_on_load:
            return "float"
        return self.c_type

    @property
    def scalar_param_type(self) -> str:
        """C type behind a pointer-passed scalar of the kernel's element type."""
        return self.scalar_arith_type or self.c_type

    def math_vec_type(self, tier: Tier) -> Optional[str]:
        """Vector type the polynomial math helpers operate on at ``tier``."""
        if self.is_promoted and self.native_arithmetic:
            return self.wide_vec_types.get(tier)
        return self.vec_types.get(tier)


def ops_at(tier: Tier, ops: Mapping[Op, str]) -> Dict[Op, Dict[Tier, str]]:
    """Place a flat op table at one tier."""
    return {op: {tier: spelling} for op, spelling in ops.items()}


def merge_ops(*tables: Mapping[Op, Mapping[Tier, str]]) -> Dict[Op, Dict[Tier, str]]:
    merged: Dict[Op, Dict[Tier, str]] = {}
    for table in tables:
        for op, per_tier in table.items():
            merged.setdefault(op, {}).update(per_tier)
    return merged
