"""
Deferred Accumulation Pass

Rust Pattern: rustc_mir::transform::MirPass (analysis)

Recognises the per-iteration popcount reduction

    x += [uint64(]hwy.ReduceSum(hwy.PopCount(hwy.And(a, b)))[)]

at the top level of loop bodies. For a matched variable the backend keeps a
vector accumulator alive across the loop, adds partial popcounts into it
and reduces once after the loop. Consecutive loops whose matched variables
transitively overlap share one block-scoped accumulator set.

The pass only plans; the rewrite happens during C lowering.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..ir.nodes import (
    AssignIR, BlockIR, CallIR, ExpressionIR, ForIR, FunctionIR, IdentifierIR,
    IRWalker, ParenIR, RangeIR, StatementIR,
)
from ..profiles.base import IntrinsicProfile, Op, Tier
from ..shared.types import INTEGER_GO_TYPES, AssignOp
from ..utils.config import VOCABULARY_PACKAGE
from .base import BasePass, LoweringContext
from .unsupported import UnsupportedConstructPass
from .visitor_helpers import collect_names, statement_names

logger = logging.getLogger(__name__)

_ACCUMULATOR_OPS = (Op.POP_COUNT_PARTIAL, Op.ACC_ADD, Op.ACC_REDUCE, Op.ACC_ZERO)


@dataclass(frozen=True)
class AccumulationRun:
    """Loops ``start..end`` (statement indices) of one block share accumulators."""
    start: int
    end: int
    variables: Tuple[str, ...]
    members: Tuple[int, ...] = ()


@dataclass
class AccumulationPlan:
    enabled: bool = False
    loop_variables: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    block_runs: Dict[int, AccumulationRun] = field(default_factory=dict)
    shared_loops: Set[int] = field(default_factory=set)

    def run_for(self, block: BlockIR) -> Optional[AccumulationRun]:
        return self.block_runs.get(id(block))

    def in_shared_run(self, loop: StatementIR) -> bool:
        return id(loop) in self.shared_loops

    def variables_for(self, loop: StatementIR) -> Tuple[str, ...]:
        return self.loop_variables.get(id(loop), ())


def supports_deferred_accumulation(profile: IntrinsicProfile, tier: Tier) -> bool:
    return (all(profile.has(op, tier) for op in _ACCUMULATOR_OPS)
            and tier in profile.acc_vec_types)


def _vocab_call(expr: ExpressionIR, member: str, arity: int) -> Optional[CallIR]:
    if (isinstance(expr, CallIR) and expr.package == VOCABULARY_PACKAGE
            and expr.member == member and len(expr.args) == arity):
        return expr
    return None


def popcount_and_operand(expr: ExpressionIR) -> Optional[CallIR]:
    """Return the ``hwy.And`` call of a matching reduction expression."""
    while isinstance(expr, ParenIR):
        expr = expr.inner
    if (isinstance(expr, CallIR) and expr.qualified_name in INTEGER_GO_TYPES
            and len(expr.args) == 1):
        expr = expr.args[0]
    reduce_sum = _vocab_call(expr, "ReduceSum", 1)
    if reduce_sum is None:
        return None
    pop_count = _vocab_call(reduce_sum.args[0], "PopCount", 1)
    if pop_count is None:
        return None
    return _vocab_call(pop_count.args[0], "And", 2)


def match_popcount_idiom(stmt: StatementIR) -> Optional[Tuple[str, CallIR]]:
    """``(variable, And call)`` when ``stmt`` is ``x += ReduceSum(PopCount(And(..)))``."""
    if not isinstance(stmt, AssignIR) or stmt.op is not AssignOp.ADD:
        return None
    if len(stmt.targets) != 1 or len(stmt.values) != 1:
        return None
    target = stmt.targets[0]
    if not isinstance(target, IdentifierIR):
        return None
    and_call = popcount_and_operand(stmt.values[0])
    if and_call is None:
        return None
    return target.name, and_call


def _scan_loop(loop: StatementIR,
               named_results: Sequence[str]) -> Tuple[List[str], Set[str]]:
    """Idiom variables in first-match order, and every name touched elsewhere."""
    matched: List[str] = []
    others: Set[str] = set()
    if isinstance(loop, ForIR):
        for part in (loop.init, loop.cond, loop.post):
            others |= collect_names(part)
    else:
        others |= collect_names(loop.iterable)
    for stmt in loop.body.statements:
        match = match_popcount_idiom(stmt)
        if match is None:
            others |= statement_names(stmt, named_results)
            continue
        name, and_call = match
        if name not in matched:
            matched.append(name)
        others |= collect_names(and_call)
    return matched, others


def loop_idiom_variables(loop: StatementIR,
                         named_results: Sequence[str] = ()) -> Tuple[str, ...]:
    """
    Variables a loop accumulates only through the idiom.

    A variable that the loop reads or writes anywhere else (including the
    loop header) is excluded: its scalar value must stay current. A bare
    ``return`` in the body reads every named result.
    """
    if not isinstance(loop, (ForIR, RangeIR)):
        return ()
    matched, others = _scan_loop(loop, named_results)
    return tuple(name for name in matched if name not in others)


def find_accumulation_run(block: BlockIR,
                          loop_variables: Dict[int, Tuple[str, ...]],
                          named_results: Sequence[str] = ()) -> Optional[AccumulationRun]:
    """
    Longest run (length >= 2, first on ties) of consecutive idiom loops.

    Loops join a run while their variables overlap the run's merged set,
    no statement between them touches those variables, and the joining
    loop itself touches no merged variable outside its idiom statements.
    """
    loops = [(idx, loop_variables[id(stmt)], _scan_loop(stmt, named_results)[1])
             for idx, stmt in enumerate(block.statements)
             if loop_variables.get(id(stmt))]
    best: Optional[Tuple[int, int]] = None
    for start in range(len(loops)):
        merged = set(loops[start][1])
        end = start
        for j in range(start + 1, len(loops)):
            candidate = set(loops[j][1])
            if not candidate & merged or loops[j][2] & merged:
                break
            between = block.statements[loops[j - 1][0] + 1:loops[j][0]]
            if any(statement_names(stmt, named_results) & (merged | candidate)
                   for stmt in between):
                break
            merged |= candidate
            end = j
        if end > start and (best is None or end - start > best[1] - best[0]):
            best = (start, end)
    if best is None:
        return None

    members = loops[best[0]:best[1] + 1]
    ordered: List[str] = []
    for _, names, _ in members:
        for name in names:
            if name not in ordered:
                ordered.append(name)
    return AccumulationRun(loops[best[0]][0], loops[best[1]][0], tuple(ordered),
                           tuple(idx for idx, _, _ in members))


class _LoopCollector(IRWalker):
    def __init__(self):
        self.loops: List[StatementIR] = []
        self.blocks: List[BlockIR] = []

    def visit_block(self, node: BlockIR) -> None:
        self.blocks.append(node)
        super().visit_block(node)

    def visit_for(self, node: ForIR) -> None:
        self.loops.append(node)
        super().visit_for(node)

    def visit_range(self, node: RangeIR) -> None:
        self.loops.append(node)
        super().visit_range(node)


class DeferredAccumulationPass(BasePass):
    """Plan vector accumulators for the popcount reduction idiom."""
    requires = [UnsupportedConstructPass]

    def run(self, function: FunctionIR, ctx: LoweringContext) -> FunctionIR:
        plan = AccumulationPlan(enabled=supports_deferred_accumulation(ctx.profile, ctx.tier))
        if plan.enabled:
            named_results = [ret.name for ret in function.returns if ret.name]
            collector = _LoopCollector()
            collector.walk(function.body)
            for loop in collector.loops:
                names = loop_idiom_variables(loop, named_results)
                if names:
                    plan.loop_variables[id(loop)] = names
            for block in collector.blocks:
                run = find_accumulation_run(block, plan.loop_variables, named_results)
                if run is not None:
                    plan.block_runs[id(block)] = run
                    plan.shared_loops.update(id(block.statements[idx]) for idx in run.members)
            logger.debug("%s: %d idiom loop(s), %d shared run(s)",
                         function.name, len(plan.loop_variables), len(plan.block_runs))
        ctx.set_analysis(DeferredAccumulationPass, plan)
        return function
