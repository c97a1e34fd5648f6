#!/usr/bin/env python3
"""
Tests for the S-expression IR dump.
"""

import sexpdata
from tests.test_utils import kernel, parse_function, parse_source
from simdgen.ir.serialization import IRSerializer, serialize_ir

SOURCE = kernel("""
    func BaseScale(a []float32, s float32, n int) {
        for i := 0; i < n; i++ {
            a[i] = a[i] * s
        }
    }
""")


class TestSerialization:
    def test_file_header(self):
        text = serialize_ir(parse_source(SOURCE))
        assert text.startswith('(file\n  (package "kernels")')
        assert '(import "github.com/ajroetker/go-highway/hwy")' in text

    def test_function_shape(self):
        text = serialize_ir(parse_function(SOURCE))
        assert text.startswith('(function\n  "BaseScale"')
        assert '(param "a" "[]float32" array)' in text
        assert '(param "n" "int" scalar-int)' in text

    def test_short_forms_stay_on_one_line(self):
        text = serialize_ir(parse_function(SOURCE).body.statements[0].cond)
        assert text == '(< (ident "i") (ident "n"))'

    def test_compact_form_reads_back(self):
        compact = serialize_ir(parse_source(SOURCE), pretty=False)
        assert "\n" not in compact
        data = sexpdata.loads(compact)
        assert data[0] == sexpdata.Symbol("file")
        assert data[1] == [sexpdata.Symbol("package"), "kernels"]
        function = data[-1]
        assert function[0] == sexpdata.Symbol("function")
        assert function[1] == "BaseScale"

    def test_structure_without_text(self):
        sexpr = IRSerializer().serialize(parse_function(SOURCE).body)
        loop = sexpr[1]
        assert loop[0] == sexpdata.Symbol("for")
        assert loop[3] == [sexpdata.Symbol("++"), [sexpdata.Symbol("ident"), "i"]]

    def test_unsupported_and_none(self):
        fn = parse_function(kernel("""
            func BaseOdd(a []float32) {
                defer cleanup(a)
            }
        """))
        stmt = IRSerializer().serialize(fn.body.statements[0])
        assert stmt == [sexpdata.Symbol("unsupported"), sexpdata.Symbol("defer"), "defer cleanup(a)"]
        assert IRSerializer().serialize(None) == sexpdata.Symbol("nil")
