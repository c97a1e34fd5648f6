#!/usr/bin/env python3
"""
Tests for the front end: comment stripping, semicolon insertion and the
source -> IR transformation of every construct the kernels use.
"""

import pytest
from tests.test_utils import kernel, parse_function, parse_source
from simdgen.frontend.preprocessor import insert_semicolons, preprocess, strip_comments
from simdgen.ir.nodes import (
    AssignIR, BinaryOpIR, BlockIR, BranchIR, CallIR, ExprStmtIR, ForIR, IfIR,
    IncDecIR, LiteralIR, RangeIR, ReturnStmtIR, SliceIR, TypeExprIR, UnaryOpIR,
    UnsupportedStmtIR, VarDeclIR,
)
from simdgen.shared.types import AssignOp, BinaryOp, ParamKind, UnaryOp


class TestPreprocessor:
    """Comment stripping keeps positions; semicolons follow Go's rule."""

    def test_line_comment_replaced_by_spaces(self):
        src = "x := 1 // note\ny := 2"
        out = strip_comments(src)
        first = out.split("\n")[0]
        assert first.rstrip() == "x := 1"
        assert len(first) == len("x := 1 // note")
        assert out.split("\n")[1] == "y := 2"

    def test_block_comment_keeps_newlines(self):
        out = strip_comments("a /* one\ntwo */ b")
        assert out.count("\n") == 1
        assert out.endswith(" b")

    def test_comment_markers_inside_strings(self):
        src = 'panic("// not a comment")'
        assert strip_comments(src) == src

    def test_semicolon_after_statement_enders(self):
        src = "x := a[i]\ni++\nreturn\nfoo(\n  a,\n)\n{"
        lines = insert_semicolons(src).split("\n")
        assert lines[0] == "x := a[i];"
        assert lines[1] == "i++;"
        assert lines[2] == "return;"
        assert lines[3] == "foo("
        assert lines[4] == "  a,"
        assert lines[5] == ");"
        assert lines[6] == "{"

    def test_raw_string_lines_untouched(self):
        src = "s := `first\nsecond\nthird`"
        lines = insert_semicolons(src).split("\n")
        assert lines[1] == "second"
        assert lines[2] == "third`;"

    def test_preprocess_combines_both(self):
        assert preprocess("x := 1 // c") == "x := 1;"
        assert preprocess("x := 1\n").split("\n")[0] == "x := 1;"


class TestDeclarations:
    """Package, imports, type parameters, parameters and results."""

    def test_package_and_imports(self):
        ir = parse_source(kernel("func BaseNop() {}", "math"))
        assert ir.package == "kernels"
        assert ir.imports == ["github.com/ajroetker/go-highway/hwy", "math"]
        assert [fn.name for fn in ir.functions] == ["BaseNop"]

    def test_grouped_imports(self):
        source = 'package k\n\nimport (\n\t"math"\n\tstdmath "math"\n)\n\nfunc F() {}\n'
        assert parse_source(source).imports == ["math", "math"]

    def test_type_params_and_param_kinds(self):
        fn = parse_function(kernel("""
            func BaseMix[T hwy.Floats](a, b []T, s T, n int, f float64, v hwy.Vec[T], m map) {
            }
        """))
        assert fn.type_params == ["T"]
        kinds = {p.name: p.kind for p in fn.params}
        assert kinds == {
            "a": ParamKind.ARRAY, "b": ParamKind.ARRAY, "s": ParamKind.SCALAR_FLOAT,
            "n": ParamKind.SCALAR_INT, "f": ParamKind.SCALAR_FLOAT,
            "v": ParamKind.VECTOR, "m": ParamKind.OTHER,
        }
        assert fn.param("a").elem_type_name == "T"
        assert fn.param("v").type_name == "hwy.Vec[T]"

    def test_constraint_union(self):
        fn = parse_function(kernel("func BaseU[T float32 | float64](a []T) {}"))
        assert fn.type_params == ["T"]

    def test_single_result(self):
        fn = parse_function(kernel("func BaseR(a []float32) float32 { return a[0] }"))
        assert [(r.name, r.type_name) for r in fn.returns] == [(None, "float32")]

    def test_named_results(self):
        fn = parse_function(kernel("func BaseR(a []float32) (lo, hi float32, n int) { return }"))
        assert [(r.name, r.type_name) for r in fn.returns] == [
            ("lo", "float32"), ("hi", "float32"), ("n", "int")]

    def test_unnamed_results(self):
        fn = parse_function(kernel("func BaseR(a []float32) (float32, int) { return a[0], 1 }"))
        assert [(r.name, r.type_name) for r in fn.returns] == [(None, "float32"), (None, "int")]

    def test_function_location(self):
        fn = parse_function(kernel("func BaseLoc() {}"))
        assert fn.location.line == 5
        assert fn.location.file == "kernel.go"


class TestStatements:
    """Statement forms and their IR."""

    def _body(self, text: str):
        fn = parse_function(kernel(f"func BaseS(a, b []float32, n int) {{\n{text}\n}}"))
        return fn.body.statements

    def test_define_and_compound_assign(self):
        stmts = self._body("x := a[0]\nx += 1.5\nx &^= 3")
        assert isinstance(stmts[0], AssignIR) and stmts[0].op is AssignOp.DEFINE
        assert stmts[1].op is AssignOp.ADD
        assert stmts[2].op is AssignOp.AND_NOT

    def test_multi_define(self):
        stmt = self._body("x, y := a[0], b[0]")[0]
        assert len(stmt.targets) == 2 and len(stmt.values) == 2

    def test_inc_dec_and_expr_stmt(self):
        stmts = self._body("n++\nn--\nfoo(a)")
        assert isinstance(stmts[0], IncDecIR) and stmts[0].increment
        assert isinstance(stmts[1], IncDecIR) and not stmts[1].increment
        assert isinstance(stmts[2], ExprStmtIR)

    def test_var_declarations(self):
        stmts = self._body("var s float32\nvar t = n\nvar u, w int = 1, 2")
        assert isinstance(stmts[0], VarDeclIR)
        assert (stmts[0].names, stmts[0].type_name, stmts[0].values) == (["s"], "float32", [])
        assert stmts[1].type_name is None and len(stmts[1].values) == 1
        assert stmts[2].names == ["u", "w"] and len(stmts[2].values) == 2

    def test_for_clause(self):
        loop = self._body("for i := 0; i < n; i += 4 {\n}")[0]
        assert isinstance(loop, ForIR)
        assert isinstance(loop.init, AssignIR)
        assert isinstance(loop.cond, BinaryOpIR) and loop.cond.operator is BinaryOp.LT
        assert isinstance(loop.post, AssignIR) and loop.post.op is AssignOp.ADD

    def test_for_cond_and_forever(self):
        stmts = self._body("for n > 0 {\nn--\n}\nfor {\nbreak\n}")
        assert stmts[0].init is None and stmts[0].cond is not None
        assert stmts[1].cond is None
        assert isinstance(stmts[1].body.statements[0], BranchIR)

    def test_range_forms(self):
        stmts = self._body(
            "for i, x := range a {\n}\nfor _, x := range a {\n}\nfor i = range a {\n}\nfor range a {\n}")
        assert all(isinstance(s, RangeIR) for s in stmts)
        assert (stmts[0].key, stmts[0].value, stmts[0].define) == ("i", "x", True)
        assert (stmts[1].key, stmts[1].value) == (None, "x")
        assert (stmts[2].key, stmts[2].define) == ("i", False)
        assert (stmts[3].key, stmts[3].value) == (None, None)

    def test_if_with_init_and_else_chain(self):
        stmt = self._body("if m := n * 2; m > 4 {\nn = m\n} else if n > 2 {\nn = 2\n} else {\nn = 0\n}")[0]
        assert isinstance(stmt, IfIR)
        assert isinstance(stmt.init, AssignIR)
        assert isinstance(stmt.orelse, IfIR)
        assert isinstance(stmt.orelse.orelse, BlockIR)

    def test_return_and_labelled_branch(self):
        stmts = self._body("for {\ncontinue outer\n}\nreturn")
        branch = stmts[0].body.statements[0]
        assert (branch.keyword, branch.label) == ("continue", "outer")
        assert isinstance(stmts[1], ReturnStmtIR) and stmts[1].values == []

    def test_unsupported_statements_keep_text(self):
        stmts = self._body("defer foo(a)\ngo foo(b)\ngoto done")
        assert [s.kind for s in stmts] == ["defer", "go", "goto"]
        assert all(isinstance(s, UnsupportedStmtIR) for s in stmts)
        assert stmts[0].text == "defer foo(a)"


class TestExpressions:
    """Expression IR: calls, type arguments, slices, literals, operators."""

    def _expr(self, text: str):
        fn = parse_function(kernel(f"func BaseE[T hwy.Floats](a []T, v hwy.Vec[T], n int) {{\nx := {text}\n}}"))
        return fn.body.statements[0].values[0]

    def test_package_call(self):
        call = self._expr("hwy.Add(v, v)")
        assert isinstance(call, CallIR)
        assert (call.package, call.member, call.qualified_name) == ("hwy", "Add", "hwy.Add")
        assert len(call.args) == 2

    def test_type_argument_call(self):
        call = self._expr("hwy.Zero[T]()")
        assert isinstance(call, CallIR)
        assert call.type_args == ["T"] and call.args == []
        assert call.member == "Zero"

    def test_index_is_not_type_argument(self):
        call = self._expr("a[n](1)")
        assert call.type_args == []

    def test_slice(self):
        sl = self._expr("a[n:]")
        assert isinstance(sl, SliceIR)
        assert sl.high is None

    @pytest.mark.parametrize("text,type_text", [
        ("make([]float32, n)", "[]float32"),
        ("make([]T, 2*n)", "[]T"),
        ("make([]hwy.Vec[T], 4)", "[]hwy.Vec[T]"),
        ("make([]hwy.Vec[float32], n, n)", "[]hwy.Vec[float32]"),
    ])
    def test_make_type_argument(self, text, type_text):
        call = self._expr(text)
        assert call.qualified_name == "make"
        assert isinstance(call.args[0], TypeExprIR)
        assert call.args[0].text == type_text

    def test_negative_literal_folded(self):
        lit = self._expr("-1.5")
        assert isinstance(lit, LiteralIR) and (lit.kind, lit.text) == ("float", "-1.5")

    def test_literal_kinds(self):
        assert self._expr("0x1F").kind == "int"
        assert self._expr("1e-3").kind == "float"
        assert self._expr("'a'").kind == "char"
        assert self._expr('"s"').kind == "string"

    def test_unary_operators(self):
        assert self._expr("^n").operator is UnaryOp.BIT_NOT
        assert self._expr("!true").operator is UnaryOp.NOT
        assert isinstance(self._expr("&n"), UnaryOpIR)

    def test_precedence(self):
        e = self._expr("n + 2 * n < 8 && n > 0")
        assert e.operator is BinaryOp.AND
        assert e.left.operator is BinaryOp.LT
        assert e.left.left.operator is BinaryOp.ADD
        assert e.left.left.right.operator is BinaryOp.MUL

    def test_and_not_is_multiplicative(self):
        e = self._expr("n | n &^ 3")
        assert e.operator is BinaryOp.BIT_OR
        assert e.right.operator is BinaryOp.AND_NOT

    def test_expression_locations(self):
        call = self._expr("hwy.Add(v, v)")
        assert call.location.line == 6
        assert call.location.column == 6


class TestParseStability:
    def test_same_source_same_ir(self):
        from simdgen.ir.serialization import serialize_ir
        source = kernel("""
            func BaseAdd(a, b []float32, n int) {
                for i := 0; i < n; i++ {
                    a[i] += b[i]
                }
            }
        """)
        assert serialize_ir(parse_source(source)) == serialize_ir(parse_source(source))

    @pytest.mark.parametrize("source", ["", "package k\n"])
    def test_empty_sources(self, source):
        ir = parse_source(source)
        assert ir.functions == []
