"""
Unsupported Construct Pass

Rust Pattern: rustc_mir::transform::MirPass (validation)

Finds statements and parameters the C lowering cannot express and applies
the lowering policy to each: strict mode raises on the first one,
permissive mode records a located warning. Omitted statement nodes are
recorded in ``ctx.omitted`` so the backend skips them.
"""

import logging
from typing import List

from ..ir.nodes import BranchIR, FunctionIR, IRNode, IRWalker, UnsupportedStmtIR
from ..shared.types import ParamKind
from .base import BasePass, LoweringContext

logger = logging.getLogger(__name__)


class _UnsupportedFinder(IRWalker):
    def __init__(self):
        self.found: List[IRNode] = []

    def visit_unsupported(self, node: UnsupportedStmtIR) -> None:
        self.found.append(node)

    def visit_branch(self, node: BranchIR) -> None:
        if node.label:
            self.found.append(node)


def _describe(node: IRNode) -> str:
    if isinstance(node, UnsupportedStmtIR):
        return f"`{node.kind}` statements cannot be lowered to C"
    if isinstance(node, BranchIR):
        return f"labelled `{node.keyword} {node.label}` cannot be lowered to C"
    return f"{type(node).__name__} cannot be lowered to C"


class UnsupportedConstructPass(BasePass):
    """Report unsupported statements and parameter types before lowering."""
    requires = []

    def run(self, function: FunctionIR, ctx: LoweringContext) -> FunctionIR:
        for param in function.params:
            if param.kind is ParamKind.OTHER:
                ctx.unsupported(
                    f"parameter `{param.name}` has unsupported type `{param.type_name}`",
                    param.location,
                    help="kernels take slices, integer or float scalars, and hwy.Vec values",
                )

        finder = _UnsupportedFinder()
        finder.walk(function.body)
        for node in finder.found:
            ctx.unsupported(_describe(node), node.location)
            ctx.omitted.add(id(node))

        logger.debug("%s: %d unsupported statement(s)", function.name, len(finder.found))
        ctx.set_analysis(UnsupportedConstructPass, finder.found)
        return function
