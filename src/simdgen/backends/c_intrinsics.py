"""
C backend: portable vector vocabulary -> profile intrinsics.

Every ``hwy.<Name>(...)`` call resolves through the profile tables at the
lowering tier. Operations with target-specific shape (operand order,
promotion around loads and stores, lane access, multi-register loads,
deferred popcount accumulators) get a dedicated handler; everything else
is rendered straight from the table.
"""

import logging
from typing import List, Optional, Sequence

from ..ir.nodes import CallIR, ExpressionIR, LiteralIR
from ..passes.base import DeferredAccumulator, HelperRef, VariableTypeInfo
from ..profiles.base import ArgOrder, Op, SelectOrder
from ..profiles.vocabulary import MATH_FUNCTIONS, VocabEntry
from ..utils.config import ACCUMULATOR_PREFIX, GETLANE_BUFFER_PREFIX, LOAD4_PREFIX
from .math_helpers import dialect_for

logger = logging.getLogger(__name__)


def _int_literal(expr: ExpressionIR) -> Optional[int]:
    if isinstance(expr, LiteralIR) and expr.kind == "int":
        try:
            return int(expr.text.replace("_", ""), 0)
        except ValueError:
            return None
    return None


class IntrinsicLoweringMixin:
    """Vocabulary dispatch against the active profile and tier."""

    # -- table access -----------------------------------------------------

    def render_op(self, op: Op, args: Sequence[str], call: Optional[CallIR] = None,
                  name: Optional[str] = None) -> str:
        """Render ``op`` at the lowering tier, or a placeholder when the table has no entry."""
        spelling = self.profile.render(op, self.ctx.tier, list(args))
        if spelling is not None:
            return spelling
        label = name or f"hwy.{op.value}"
        return self.ctx.placeholder(
            label,
            f"no {self.profile.architecture} mapping for {op.value} at tier {self.ctx.tier.value}",
            call.location if call is not None else None,
        )

    def zero_literal(self) -> str:
        if self.ctx.element.is_float:
            if self.ctx.element.name == "float32" or self.profile.promotes_on_load:
                return "0.0f"
            return "0.0"
        return "0"

    def vector_zero(self, call: Optional[CallIR] = None) -> str:
        if self.profile.has(Op.ZERO, self.ctx.tier):
            return self.profile.render(Op.ZERO, self.ctx.tier, [])
        return self.render_op(Op.SET, [self.zero_literal()], call, name="hwy.Zero")

    # -- dispatch ---------------------------------------------------------

    def lower_vocab_call(self, call: CallIR, entry: VocabEntry) -> str:
        label = f"hwy.{call.member}"
        if len(call.args) != entry.arity:
            return self.ctx.placeholder(
                label, f"expects {entry.arity} argument(s), got {len(call.args)}", call.location)
        handler = _OP_HANDLERS.get(entry.op)
        if handler is not None:
            return handler(self, call)
        args = [self.expr(arg) for arg in call.args]
        return self.render_op(entry.op, args, call, name=label)

    def _lower_load(self, call: CallIR) -> str:
        return self.load_from(self.expr(call.args[0]), call)

    def load_from(self, ptr: str, call: Optional[CallIR] = None) -> str:
        raw = self.render_op(Op.LOAD, [self.profile.cast_pointer(ptr)], call, name="hwy.Load")
        if not self.profile.promotes_on_load:
            return raw
        return self.render_op(Op.PROMOTE, [raw], call, name="hwy.Load")

    def _lower_store(self, call: CallIR) -> str:
        value = self.expr(call.args[0])
        ptr = self.expr(call.args[1])
        if self.profile.promotes_on_load:
            value = self.render_op(Op.DEMOTE, [value], call, name="hwy.Store")
        return self.render_op(Op.STORE, [self.profile.cast_pointer(ptr), value], call,
                              name="hwy.Store")

    def _lower_zero(self, call: CallIR) -> str:
        return self.vector_zero(call)

    def _lower_mul_add(self, call: CallIR) -> str:
        a, b, acc = (self.expr(arg) for arg in call.args)
        if self.profile.fma_order is ArgOrder.ACC_FIRST:
            args = [acc, a, b]
        else:
            args = [a, b, acc]
        return self.render_op(Op.MUL_ADD, args, call, name=f"hwy.{call.member}")

    def _lower_if_then_else(self, call: CallIR) -> str:
        mask, yes, no = (self.expr(arg) for arg in call.args)
        if self.profile.select_order is SelectOrder.MASK_FIRST:
            args = [mask, yes, no]
        else:
            args = [no, yes, mask]
        return self.render_op(Op.IF_THEN_ELSE, args, call, name="hwy.IfThenElse")

    def _lower_get_lane(self, call: CallIR) -> str:
        vector = self.expr(call.args[0])
        index = call.args[1]
        if _int_literal(index) is not None:
            return self.render_op(Op.GET_LANE, [vector, self.expr(index)], call,
                                  name="hwy.GetLane")
        return self.spill_lane(vector, self.expr(index), call)

    def spill_lane(self, vector: str, index: str, call: CallIR) -> str:
        """
        Read a lane at a runtime index through a stack buffer.

        The vector is stored into ``volatile <lane> buf[lanes]`` ahead of the
        current statement and the lane is read back from memory.
        """
        store_op = Op.SPILL_STORE if self.profile.has(Op.SPILL_STORE, self.ctx.tier) else Op.STORE
        if not self.profile.has(store_op, self.ctx.tier):
            return self.render_op(store_op, [], call, name="hwy.GetLane")
        lane = self.profile.lane_c_type
        buffer = self.ctx.fresh_name(GETLANE_BUFFER_PREFIX)
        store = self.profile.render(store_op, self.ctx.tier, [f"({lane} *){buffer}", vector])
        if not self.hoist(f"volatile {lane} {buffer}[{self.ctx.lanes}];", f"{store};"):
            return self.ctx.placeholder("hwy.GetLane",
                                        "variable lane index inside a loop header",
                                        call.location)
        return f"{buffer}[{index}]"

    def _lower_slide_up(self, call: CallIR) -> str:
        offset = _int_literal(call.args[1])
        if offset is None:
            return self.ctx.placeholder("hwy.SlideUpLanes", "offset must be an integer literal",
                                        call.location)
        vector = self.expr(call.args[0])
        if offset <= 0:
            return vector
        if offset >= self.ctx.lanes:
            return self.vector_zero(call)
        return self.render_op(Op.SLIDE_UP, [self.vector_zero(call), vector,
                                            str(self.ctx.lanes - offset)],
                              call, name="hwy.SlideUpLanes")

    def _lower_load4(self, call: CallIR) -> str:
        return self.ctx.placeholder("hwy.Load4", "result must be destructured into four variables",
                                    call.location)

    # -- multi-register loads ---------------------------------------------

    def load4_values(self, call: CallIR) -> List[str]:
        """
        Four consecutive vectors starting at the call's pointer.

        With a multi-register load the values come from one ``x4`` load
        hoisted before the statement; otherwise four single loads at
        ``ptr + lanes * i``.
        """
        ptr = self.expr(call.args[0])
        x4_type = self.profile.x4_types.get(self.ctx.tier)
        if x4_type and self.profile.has(Op.LOAD4, self.ctx.tier):
            name = self.ctx.fresh_name(LOAD4_PREFIX)
            load = self.render_op(Op.LOAD4, [self.profile.cast_pointer(ptr)], call, name="hwy.Load4")
            self.emit(f"{x4_type} {name} = {load};")
            return [f"{name}.val[{i}]" for i in range(4)]
        logger.debug("no multi-register load at tier %s; using four loads", self.ctx.tier.value)
        values = [self.load_from(ptr, call)]
        for i in range(1, 4):
            values.append(self.load_from(f"{ptr} + {self.ctx.lanes * i}", call))
        return values

    # -- transcendental math ----------------------------------------------

    def lower_vector_math(self, call: CallIR) -> str:
        """
        ``hwy.Exp(v)`` and friends: call the polynomial helper for the vector type.

        Half formats with native arithmetic widen to f32 around the helper,
        splitting the register in two when the tier has no single-step
        conversion.
        """
        label = f"{call.package}.{call.member}"
        if len(call.args) != 1:
            return self.ctx.placeholder(label, f"expects 1 argument(s), got {len(call.args)}",
                                        call.location)
        tier = self.ctx.tier
        dialect = dialect_for(self.profile.math_vec_type(tier))
        if dialect is None or not self.ctx.element.is_float:
            return self.ctx.placeholder(
                label, f"no vector math for {self.profile.architecture}:"
                       f"{self.profile.element_type} at tier {tier.value}", call.location)
        helper = self.ctx.require_helper(
            HelperRef("vector", MATH_FUNCTIONS[call.member], dialect.precision))
        x = self.expr(call.args[0])
        if not (self.profile.is_promoted and self.profile.native_arithmetic):
            return f"{helper}({x})"
        if self.profile.has(Op.PROMOTE, tier) and self.profile.has(Op.DEMOTE, tier):
            widened = self.profile.render(Op.PROMOTE, tier, [x])
            return self.profile.render(Op.DEMOTE, tier, [f"{helper}({widened})"])
        if all(self.profile.has(op, tier) for op in
               (Op.PROMOTE_LOWER, Op.PROMOTE_UPPER, Op.DEMOTE, Op.COMBINE)):
            halves = [
                self.profile.render(Op.DEMOTE, tier,
                                    [f"{helper}({self.profile.render(op, tier, [x])})"])
                for op in (Op.PROMOTE_LOWER, Op.PROMOTE_UPPER)
            ]
            return self.profile.render(Op.COMBINE, tier, halves)
        return self.ctx.placeholder(label, f"no f32 widening at tier {tier.value}", call.location)

    # -- deferred popcount accumulation -----------------------------------

    def open_accumulators(self, variables: Sequence[str]) -> List[str]:
        """Declare one vector accumulator per variable; returns the names activated."""
        opened: List[str] = []
        tier = self.ctx.tier
        acc_type = self.profile.acc_vec_types[tier]
        for variable in variables:
            if variable in self.ctx.active_accumulators:
                continue
            name = self.ctx.fresh_name(ACCUMULATOR_PREFIX)
            zero = self.profile.render(Op.ACC_ZERO, tier, ["0"])
            self.emit(f"{acc_type} {name} = {zero};")
            info = self.ctx.lookup(variable) or VariableTypeInfo("unsigned long")
            self.ctx.active_accumulators[variable] = DeferredAccumulator(variable, name, info.c_type)
            opened.append(variable)
        return opened

    def close_accumulators(self, variables: Sequence[str]) -> None:
        for variable in variables:
            acc = self.ctx.active_accumulators.pop(variable)
            total = self.profile.render(Op.ACC_REDUCE, self.ctx.tier, [acc.accumulator])
            self.emit(f"{variable} += ({acc.c_type})({total});")

    def accumulate(self, variable: str, and_call: CallIR) -> None:
        acc = self.ctx.active_accumulators[variable].accumulator
        tier = self.ctx.tier
        partial = self.profile.render(Op.POP_COUNT_PARTIAL, tier, [self.expr(and_call)])
        self.emit(f"{acc} = {self.profile.render(Op.ACC_ADD, tier, [acc, partial])};")


_OP_HANDLERS = {
    Op.LOAD: IntrinsicLoweringMixin._lower_load,
    Op.STORE: IntrinsicLoweringMixin._lower_store,
    Op.ZERO: IntrinsicLoweringMixin._lower_zero,
    Op.MUL_ADD: IntrinsicLoweringMixin._lower_mul_add,
    Op.IF_THEN_ELSE: IntrinsicLoweringMixin._lower_if_then_else,
    Op.GET_LANE: IntrinsicLoweringMixin._lower_get_lane,
    Op.SLIDE_UP: IntrinsicLoweringMixin._lower_slide_up,
    Op.LOAD4: IntrinsicLoweringMixin._lower_load4,
}
