"""
Visitor Helper Utilities

Common IR queries shared by the passes and the C lowering.
"""

from typing import List, Optional, Sequence, Set

from ..ir.nodes import (
    BlockIR, CallIR, ExprStmtIR, FunctionIR, IdentifierIR, IRNode, IRWalker,
    RangeIR, ReturnStmtIR, StatementIR, VarDeclIR,
)
from ..utils.config import PANIC_FUNCTION


class NameCollector(IRWalker):
    """Collect every name an IR subtree mentions (uses and declarations)."""

    def __init__(self):
        self.names: Set[str] = set()

    def visit_identifier(self, node: IdentifierIR) -> None:
        self.names.add(node.name)

    def visit_var_decl(self, node: VarDeclIR) -> None:
        self.names.update(node.names)
        super().visit_var_decl(node)

    def visit_range(self, node: RangeIR) -> None:
        for name in (node.key, node.value):
            if name:
                self.names.add(name)
        super().visit_range(node)


def collect_names(node: Optional[IRNode]) -> Set[str]:
    collector = NameCollector()
    collector.walk(node)
    return collector.names


class _BareReturnFinder(IRWalker):
    def __init__(self):
        self.found = False

    def visit_return(self, node: ReturnStmtIR) -> None:
        if not node.values:
            self.found = True
        super().visit_return(node)


def contains_bare_return(node: Optional[IRNode]) -> bool:
    finder = _BareReturnFinder()
    finder.walk(node)
    return finder.found


def statement_names(stmt: Optional[IRNode], named_results: Sequence[str] = ()) -> Set[str]:
    """Names ``stmt`` touches; a bare ``return`` reads every named result."""
    names = collect_names(stmt)
    if named_results and contains_bare_return(stmt):
        names.update(named_results)
    return names


class LengthQueryCollector(IRWalker):
    """Names whose length the body asks for: ``len(x)`` and ``range x``."""

    def __init__(self):
        self.queried: List[str] = []

    def _add(self, name: str) -> None:
        if name not in self.queried:
            self.queried.append(name)

    def visit_call(self, node: CallIR) -> None:
        if node.qualified_name == "len" and len(node.args) == 1:
            arg = node.args[0]
            if isinstance(arg, IdentifierIR):
                self._add(arg.name)
        super().visit_call(node)

    def visit_range(self, node: RangeIR) -> None:
        if isinstance(node.iterable, IdentifierIR):
            self._add(node.iterable.name)
        super().visit_range(node)


def collect_length_queries(function: FunctionIR) -> List[str]:
    collector = LengthQueryCollector()
    collector.walk(function.body)
    return collector.queried


def is_panic_call(stmt: StatementIR) -> bool:
    return (isinstance(stmt, ExprStmtIR) and isinstance(stmt.expr, CallIR)
            and stmt.expr.qualified_name == PANIC_FUNCTION)


def is_panic_only(block: Optional[StatementIR]) -> bool:
    """True for a non-empty block made solely of ``panic(...)`` calls."""
    if not isinstance(block, BlockIR) or not block.statements:
        return False
    return all(is_panic_call(stmt) for stmt in block.statements)
