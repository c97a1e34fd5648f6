#!/usr/bin/env python3
"""
Tests for the lowering context and the analysis passes: unsupported
construct detection, popcount idiom planning and pass scheduling.
"""

import pytest
from tests.test_utils import kernel, parse_function
from simdgen.ir.nodes import IfIR
from simdgen.passes.base import (
    BasePass, HelperRef, LoweringContext, LoweringOptions, PassManager, VariableTypeInfo,
)
from simdgen.passes.deferred_accumulation import (
    AccumulationPlan, DeferredAccumulationPass, find_accumulation_run,
    loop_idiom_variables, match_popcount_idiom, supports_deferred_accumulation,
)
from simdgen.passes.unsupported import UnsupportedConstructPass
from simdgen.passes.visitor_helpers import collect_length_queries, collect_names, is_panic_only
from simdgen.profiles.base import Tier
from simdgen.profiles.registry import ProfileRegistry
from simdgen.shared.errors import ConfigurationError, UnsupportedConstructError
from simdgen.shared.types import resolve_element_type


def _context(fn, arch="NEON", element="uint64", **options) -> LoweringContext:
    profile = ProfileRegistry.default().lookup(arch, element)
    return LoweringContext(fn, profile, resolve_element_type(element), LoweringOptions(**options))


POPCOUNT_LOOP = """
    for i := 0; i+2 <= n; i += 2 {{
        va := hwy.Load(a[i:])
        vb := hwy.Load(b[i:])
        {target} += uint64(hwy.ReduceSum(hwy.PopCount(hwy.And(va, vb))))
        {extra}
    }}
"""


def _popcount_kernel(*loops: str, between: str = "") -> str:
    body = ("\n" + between + "\n").join(loops)
    return kernel(f"""
        func BasePop(a, b []uint64, n int) uint64 {{
            var sum uint64
            var other uint64
            {body}
            return sum + other
        }}
    """)


def _loop(target="sum", extra="") -> str:
    return POPCOUNT_LOOP.format(target=target, extra=extra)


class TestLoweringContext:
    def test_primary_tier_by_default(self):
        fn = parse_function(kernel("func BaseNop(a []float32) {}"))
        ctx = _context(fn, element="hwy.Float16")
        assert (ctx.tier, ctx.lanes) == (Tier.D, 4)

    def test_tier_override(self):
        fn = parse_function(kernel("func BaseNop(a []float32) {}"))
        ctx = _context(fn, element="hwy.Float16", tier=Tier.Q)
        assert (ctx.tier, ctx.lanes) == (Tier.Q, 8)

    @pytest.mark.parametrize("tier,message", [
        (Tier.SCALAR, "scalar tier"),
        (Tier.YMM, "has no ymm tier"),
    ])
    def test_rejected_tiers(self, tier, message):
        fn = parse_function(kernel("func BaseNop(a []float32) {}"))
        with pytest.raises(ConfigurationError, match=message):
            _context(fn, element="float32", tier=tier)

    def test_fresh_names_share_one_counter(self):
        ctx = _context(parse_function(kernel("func BaseNop() {}")))
        assert [ctx.fresh_name("_r_"), ctx.fresh_name("_pacc_"), ctx.fresh_id()] == ["_r_0", "_pacc_1", 2]

    def test_first_definition_wins(self):
        ctx = _context(parse_function(kernel("func BaseNop() {}")))
        ctx.define("x", VariableTypeInfo("float"))
        kept = ctx.define("x", VariableTypeInfo("long"))
        assert kept.c_type == "float"
        assert ctx.lookup("x").c_type == "float"
        assert ctx.lookup("y") is None

    def test_helpers_are_recorded_once(self):
        ctx = _context(parse_function(kernel("func BaseNop() {}")))
        ref = HelperRef("vector", "exp", "f32")
        assert ctx.require_helper(ref) == "_v_exp_f32"
        ctx.require_helper(ref)
        assert list(ctx.required_helpers) == [ref]

    def test_placeholder_policy(self):
        ctx = _context(parse_function(kernel("func BaseNop() {}")))
        assert ctx.placeholder("hwy.Div", "no NEON mapping", None) == "/* hwy.Div: no NEON mapping */"
        assert [d.code for d in ctx.reporter.warnings] == ["W0100"]

        strict = _context(parse_function(kernel("func BaseNop() {}")), strict=True)
        with pytest.raises(UnsupportedConstructError):
            strict.placeholder("hwy.Div", "no NEON mapping", None)

    def test_missing_analysis(self):
        ctx = _context(parse_function(kernel("func BaseNop() {}")))
        with pytest.raises(RuntimeError, match="DeferredAccumulationPass"):
            ctx.get_analysis(DeferredAccumulationPass)


class TestUnsupportedConstructPass:
    SOURCE = kernel("""
        func BaseOdd(a []float32, m map) {
            defer cleanup(a)
            for i := 0; i < 4; i++ {
                if i > 2 {
                    break
                }
                continue outer
            }
        }
    """)

    def test_permissive_records_and_omits(self):
        fn = parse_function(self.SOURCE)
        ctx = _context(fn, element="float32")
        UnsupportedConstructPass().run(fn, ctx)
        found = ctx.get_analysis(UnsupportedConstructPass)
        assert [type(node).__name__ for node in found] == ["UnsupportedStmtIR", "BranchIR"]
        assert ctx.omitted == {id(node) for node in found}
        messages = [d.message for d in ctx.reporter.warnings]
        assert messages[0] == "parameter `m` has unsupported type `map`"
        assert "`defer` statements cannot be lowered to C" in messages
        assert "labelled `continue outer` cannot be lowered to C" in messages
        assert {d.code for d in ctx.reporter.warnings} == {"W0200"}

    def test_strict_raises_on_first(self):
        fn = parse_function(self.SOURCE)
        with pytest.raises(UnsupportedConstructError, match="parameter `m`"):
            UnsupportedConstructPass().run(fn, _context(fn, element="float32", strict=True))


class TestPopcountIdiom:
    def test_match_with_and_without_conversion(self):
        fn = parse_function(_popcount_kernel(_loop(), _loop()))
        loop = fn.body.statements[2]
        name, and_call = match_popcount_idiom(loop.body.statements[2])
        assert name == "sum"
        assert and_call.member == "And"

        bare = parse_function(kernel("""
            func BaseOne(a []uint64) {
                var s uint64
                s += hwy.ReduceSum(hwy.PopCount(hwy.And(a, a)))
            }
        """))
        assert match_popcount_idiom(bare.body.statements[1])[0] == "s"

    @pytest.mark.parametrize("statement", [
        "s = hwy.ReduceSum(hwy.PopCount(hwy.And(a, a)))",
        "s += hwy.ReduceSum(hwy.PopCount(a))",
        "s += hwy.ReduceSum(hwy.And(a, a))",
        "s -= hwy.ReduceSum(hwy.PopCount(hwy.And(a, a)))",
    ])
    def test_near_misses(self, statement):
        fn = parse_function(kernel(f"func BaseOne(a []uint64) {{\nvar s uint64\n{statement}\n}}"))
        assert match_popcount_idiom(fn.body.statements[1]) is None

    def test_loop_variables(self):
        fn = parse_function(_popcount_kernel(_loop()))
        assert loop_idiom_variables(fn.body.statements[2]) == ("sum",)
        assert loop_idiom_variables(fn.body.statements[0]) == ()

    def test_other_reads_exclude_variable(self):
        fn = parse_function(_popcount_kernel(_loop(extra="if sum > 100 {\nbreak\n}")))
        assert loop_idiom_variables(fn.body.statements[2]) == ()

    def test_header_reads_exclude_variable(self):
        fn = parse_function(kernel("""
            func BasePop(a []uint64) uint64 {
                var sum uint64
                for i := 0; sum < 1000; i += 2 {
                    va := hwy.Load(a[i:])
                    sum += hwy.ReduceSum(hwy.PopCount(hwy.And(va, va)))
                }
                return sum
            }
        """))
        assert loop_idiom_variables(fn.body.statements[1]) == ()

    def test_range_loop(self):
        fn = parse_function(kernel("""
            func BasePop(a []uint64) uint64 {
                var sum uint64
                for i := range a {
                    va := hwy.Load(a[i:])
                    sum += hwy.ReduceSum(hwy.PopCount(hwy.And(va, va)))
                }
                return sum
            }
        """))
        assert loop_idiom_variables(fn.body.statements[1]) == ("sum",)

    def test_bare_return_reads_named_results(self):
        fn = parse_function(kernel("""
            func BasePop(a, b []uint64, n int) (sum uint64) {
                for i := 0; i+2 <= n; i += 2 {
                    va := hwy.Load(a[i:])
                    vb := hwy.Load(b[i:])
                    sum += uint64(hwy.ReduceSum(hwy.PopCount(hwy.And(va, vb))))
                    if i > 100 {
                        return
                    }
                }
                return
            }
        """))
        loop = fn.body.statements[0]
        assert loop_idiom_variables(loop) == ("sum",)
        assert loop_idiom_variables(loop, ["sum"]) == ()

        ctx = _context(fn)
        DeferredAccumulationPass().run(fn, ctx)
        assert ctx.get_analysis(DeferredAccumulationPass).loop_variables == {}


class TestAccumulationRuns:
    def _plan(self, source: str, element: str = "uint64") -> AccumulationPlan:
        fn = parse_function(source)
        ctx = _context(fn, element=element)
        DeferredAccumulationPass().run(fn, ctx)
        self.fn = fn
        return ctx.get_analysis(DeferredAccumulationPass)

    def test_consecutive_loops_share_run(self):
        plan = self._plan(_popcount_kernel(_loop(), _loop()))
        run = plan.run_for(self.fn.body)
        assert (run.start, run.end, run.variables) == (2, 3, ("sum",))
        assert plan.variables_for(self.fn.body.statements[3]) == ("sum",)

    def test_overlapping_variables_merge(self):
        plan = self._plan(_popcount_kernel(
            _loop(), _loop(extra="other += hwy.ReduceSum(hwy.PopCount(hwy.And(va, va)))")))
        assert plan.run_for(self.fn.body).variables == ("sum", "other")

    def test_disjoint_variables_do_not_share(self):
        plan = self._plan(_popcount_kernel(_loop(), _loop(target="other")))
        assert plan.run_for(self.fn.body) is None
        assert len(plan.loop_variables) == 2

    def test_intervening_use_breaks_run(self):
        plan = self._plan(_popcount_kernel(_loop(), _loop(), between="sum = sum * 2"))
        assert plan.run_for(self.fn.body) is None

    def test_unrelated_statement_between_keeps_run(self):
        plan = self._plan(_popcount_kernel(_loop(), _loop(), between="n = n - 2"))
        run = plan.run_for(self.fn.body)
        assert (run.start, run.end) == (2, 4)
        assert run.members == (2, 4)
        assert plan.in_shared_run(self.fn.body.statements[2])
        assert not plan.in_shared_run(self.fn.body.statements[3])

    def test_later_loop_reading_pending_total_ends_run(self):
        first = _loop(extra="other += uint64(hwy.ReduceSum(hwy.PopCount(hwy.And(va, va))))")
        plan = self._plan(_popcount_kernel(first, _loop(extra="b[i] = other")))
        assert plan.variables_for(self.fn.body.statements[2]) == ("sum", "other")
        assert plan.variables_for(self.fn.body.statements[3]) == ("sum",)
        assert plan.run_for(self.fn.body) is None
        assert plan.shared_loops == set()

    def test_later_loop_reading_own_total_elsewhere_is_excluded(self):
        plan = self._plan(_popcount_kernel(_loop(), _loop(extra="b[i] = sum")))
        assert plan.variables_for(self.fn.body.statements[3]) == ()
        assert plan.run_for(self.fn.body) is None

    def test_bare_return_between_loops_breaks_run(self):
        plan = self._plan(kernel(f"""
            func BasePop(a, b []uint64, n int) (sum uint64) {{
                {_loop()}
                if n == 0 {{
                    return
                }}
                {_loop()}
                return
            }}
        """))
        assert plan.run_for(self.fn.body) is None
        assert len(plan.loop_variables) == 2

    def test_single_loop_has_no_run(self):
        plan = self._plan(_popcount_kernel(_loop()))
        assert plan.enabled
        assert plan.run_for(self.fn.body) is None
        assert find_accumulation_run(self.fn.body, plan.loop_variables) is None

    def test_disabled_without_accumulator_ops(self):
        registry = ProfileRegistry.default()
        assert supports_deferred_accumulation(registry.lookup("NEON", "uint64"), Tier.Q)
        assert not supports_deferred_accumulation(registry.lookup("NEON", "uint32"), Tier.Q)
        plan = self._plan(_popcount_kernel(_loop(), _loop()), element="uint32")
        assert not plan.enabled
        assert plan.loop_variables == {}


class TestPassManager:
    def test_dependencies_run_first(self):
        manager = PassManager()
        manager.register_pass(DeferredAccumulationPass)
        manager.register_pass(UnsupportedConstructPass)
        assert manager._topological_sort() == [UnsupportedConstructPass, DeferredAccumulationPass]

        fn = parse_function(_popcount_kernel(_loop()))
        ctx = _context(fn)
        manager.run_all(fn, ctx)
        assert ctx.get_analysis(UnsupportedConstructPass) == []
        assert ctx.get_analysis(DeferredAccumulationPass).enabled

    def test_unregistered_dependency(self):
        manager = PassManager()
        manager.register_pass(DeferredAccumulationPass)
        with pytest.raises(RuntimeError, match="DeferredAccumulationPass requires "
                                               "unregistered pass UnsupportedConstructPass"):
            manager._topological_sort()

    def test_registering_twice_keeps_one_entry(self):
        manager = PassManager()
        manager.register_pass(UnsupportedConstructPass)
        manager.register_pass(UnsupportedConstructPass)
        assert manager._topological_sort() == [UnsupportedConstructPass]

    def test_cycle(self):
        class First(BasePass):
            def run(self, function, ctx):
                return function

        class Second(BasePass):
            requires = [First]

            def run(self, function, ctx):
                return function

        First.requires = [Second]
        manager = PassManager()
        manager.register_pass(First)
        manager.register_pass(Second)
        with pytest.raises(RuntimeError, match="Circular pass dependency: First -> Second -> First"):
            manager._topological_sort()


class TestVisitorHelpers:
    def test_length_queries_in_first_use_order(self):
        fn = parse_function(kernel("""
            func BaseLen(a, b []float32) {
                for _, x := range b {
                    a[0] = x
                }
                n := len(a) + len(b)
            }
        """))
        assert collect_length_queries(fn) == ["b", "a"]

    def test_collect_names_includes_declarations(self):
        fn = parse_function(kernel("""
            func BaseNames(a []float32) {
                var s float32
                for i, x := range a {
                    s += x
                }
            }
        """))
        assert collect_names(fn.body) >= {"s", "i", "x", "a"}

    def test_panic_only(self):
        fn = parse_function(kernel("""
            func BasePanic(n int) {
                if n < 0 {
                    panic("negative")
                }
                if n > 8 {
                    panic("big")
                    n = 8
                }
            }
        """))
        first, second = fn.body.statements
        assert isinstance(first, IfIR) and is_panic_only(first.body)
        assert not is_panic_only(second.body)
        assert not is_panic_only(None)
