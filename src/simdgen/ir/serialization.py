"""
IR Serialization to S-Expressions
=================================

Renders parsed kernels as S-expressions for ``--dump-ir`` and the
SIMDGEN_DUMP_IR environment hook. Keywords are ``sexpdata.Symbol`` so they
print unquoted; source names are strings and print quoted.
"""

from typing import Any, List, Optional

import sexpdata

from .nodes import (
    IRNode, IRVisitor, IdentifierIR, LiteralIR, BinaryOpIR, UnaryOpIR, IndexIR,
    SliceIR, SelectorIR, ParenIR, StarIR, CallIR, TypeExprIR, BlockIR, AssignIR,
    VarDeclIR, IncDecIR, ExprStmtIR, ForIR, RangeIR, IfIR, ReturnStmtIR, BranchIR,
    UnsupportedStmtIR, FunctionIR, SourceFileIR,
)


def _pretty_dumps(sexpr: Any, indent: int = 0, indent_str: str = "  ", max_line: int = 100) -> str:
    """
    Pretty-print structured sexpr. Keeps short forms on one line; breaks only when needed.
    """
    if sexpr is None:
        return "()"
    if isinstance(sexpr, bool):
        return "true" if sexpr else "false"
    if isinstance(sexpr, (int, float)):
        return str(sexpr)
    # Symbol subclasses str, check it first
    if isinstance(sexpr, sexpdata.Symbol):
        return sexpr.value()
    if isinstance(sexpr, str):
        escaped = sexpr.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(sexpr, list):
        if not sexpr:
            return "()"
        parts = [_pretty_dumps(e, indent + 1, indent_str, max_line) for e in sexpr]
        one_line = "(" + " ".join(parts) + ")"
        if len(one_line) <= max_line and "\n" not in one_line:
            return one_line
        prefix = indent_str * indent
        next_prefix = indent_str * (indent + 1)
        rest = "\n".join(next_prefix + p for p in parts[1:])
        inner = parts[0] + ("\n" + rest if rest else "")
        return f"({inner}\n{prefix})"
    return str(sexpr)


def serialize_ir(node: IRNode, pretty: bool = True) -> str:
    """
    Serialize an IR node (file, function, statement or expression).

    Args:
        node: IR node to serialize
        pretty: Use pretty-printed format (default True). Set False for sexpdata's compact form.
    """
    sexpr = IRSerializer().serialize(node)
    if pretty:
        return _pretty_dumps(sexpr)
    return sexpdata.dumps(sexpr)


def _sym(s: str) -> sexpdata.Symbol:
    return sexpdata.Symbol(s)


class IRSerializer(IRVisitor[Any]):
    """IR to structured S-expression (nested lists of Symbols and strings)."""

    def serialize(self, node: Optional[IRNode]) -> Any:
        if node is None:
            return _sym("nil")
        if isinstance(node, SourceFileIR):
            return self._serialize_file(node)
        if isinstance(node, FunctionIR):
            return self._serialize_function(node)
        return node.accept(self)

    def _many(self, nodes: List[Optional[IRNode]]) -> List[Any]:
        return [self.serialize(n) for n in nodes]

    def _serialize_file(self, node: SourceFileIR) -> Any:
        out: List[Any] = [_sym("file")]
        if node.package:
            out.append([_sym("package"), node.package])
        for imp in node.imports:
            out.append([_sym("import"), imp])
        out.extend(self._serialize_function(fn) for fn in node.functions)
        return out

    def _serialize_function(self, node: FunctionIR) -> Any:
        params = [[_sym("param"), p.name, p.type_name, _sym(p.kind.value)] for p in node.params]
        returns = [[_sym("result"), r.name or _sym("_"), r.type_name] for r in node.returns]
        out: List[Any] = [_sym("function"), node.name]
        if node.type_params:
            out.append([_sym("type-params")] + list(node.type_params))
        out.append([_sym("params")] + params)
        out.append([_sym("results")] + returns)
        out.append(self.serialize(node.body))
        return out

    # -- expressions ------------------------------------------------------

    def visit_identifier(self, node: IdentifierIR) -> Any:
        return [_sym("ident"), node.name]

    def visit_literal(self, node: LiteralIR) -> Any:
        return [_sym("literal"), _sym(node.kind), node.text]

    def visit_binary_op(self, node: BinaryOpIR) -> Any:
        return [_sym(node.operator.value), self.serialize(node.left), self.serialize(node.right)]

    def visit_unary_op(self, node: UnaryOpIR) -> Any:
        return [_sym("unary"), _sym(node.operator.value), self.serialize(node.operand)]

    def visit_index(self, node: IndexIR) -> Any:
        return [_sym("index"), self.serialize(node.base), self.serialize(node.index)]

    def visit_slice(self, node: SliceIR) -> Any:
        return [_sym("slice")] + self._many([node.base, node.low, node.high])

    def visit_selector(self, node: SelectorIR) -> Any:
        return [_sym("select"), self.serialize(node.base), node.field]

    def visit_paren(self, node: ParenIR) -> Any:
        return [_sym("paren"), self.serialize(node.inner)]

    def visit_star(self, node: StarIR) -> Any:
        return [_sym("deref"), self.serialize(node.operand)]

    def visit_call(self, node: CallIR) -> Any:
        out: List[Any] = [_sym("call"), self.serialize(node.func)]
        if node.type_args:
            out.append([_sym("type-args")] + list(node.type_args))
        out.extend(self._many(node.args))
        return out

    def visit_type_expr(self, node: TypeExprIR) -> Any:
        return [_sym("type"), node.text]

    # -- statements -------------------------------------------------------

    def visit_block(self, node: BlockIR) -> Any:
        return [_sym("block")] + self._many(node.statements)

    def visit_assign(self, node: AssignIR) -> Any:
        return [_sym(node.op.value), self._many(node.targets), self._many(node.values)]

    def visit_var_decl(self, node: VarDeclIR) -> Any:
        out: List[Any] = [_sym("var"), list(node.names), node.type_name or _sym("nil")]
        if node.values:
            out.append(self._many(node.values))
        return out

    def visit_inc_dec(self, node: IncDecIR) -> Any:
        return [_sym("++" if node.increment else "--"), self.serialize(node.target)]

    def visit_expr_stmt(self, node: ExprStmtIR) -> Any:
        return [_sym("expr"), self.serialize(node.expr)]

    def visit_for(self, node: ForIR) -> Any:
        return [_sym("for")] + self._many([node.init, node.cond, node.post, node.body])

    def visit_range(self, node: RangeIR) -> Any:
        return [
            _sym("range"),
            node.key or _sym("_"),
            node.value or _sym("_"),
            self.serialize(node.iterable),
            self.serialize(node.body),
        ]

    def visit_if(self, node: IfIR) -> Any:
        out: List[Any] = [_sym("if")]
        if node.init is not None:
            out.append([_sym("init"), self.serialize(node.init)])
        out.extend([self.serialize(node.cond), self.serialize(node.body)])
        if node.orelse is not None:
            out.append([_sym("else"), self.serialize(node.orelse)])
        return out

    def visit_return(self, node: ReturnStmtIR) -> Any:
        return [_sym("return")] + self._many(node.values)

    def visit_branch(self, node: BranchIR) -> Any:
        out: List[Any] = [_sym(node.keyword)]
        if node.label:
            out.append(node.label)
        return out

    def visit_unsupported(self, node: UnsupportedStmtIR) -> Any:
        return [_sym("unsupported"), _sym(node.kind), node.text]
