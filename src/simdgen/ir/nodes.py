"""
IR Nodes

Rust Pattern: rustc_hir::Node

One class per statement/expression kind the C lowering understands. The
front end is the only producer; passes and backends treat nodes as
read-only and dispatch through IRVisitor.
"""

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Sequence, TypeVar

from ..shared.source_location import SourceLocation
from ..shared.types import AssignOp, BinaryOp, ParamKind, UnaryOp

T = TypeVar('T')


class IRNode:
    """
    Base class for all IR nodes.

    Rust Pattern: rustc_hir::Node

    Implementation Alignment: every node carries a ``SourceLocation`` so
    diagnostics raised during lowering point back at kernel source.
    Regular classes with ``__slots__`` rather than dataclasses, matching
    the rest of the IR.
    """
    __slots__ = ('location',)

    def __init__(self, location: Optional[SourceLocation]):
        self.location = location

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        """
        Accept visitor (Rust pattern: visitor pattern).

        Rust Pattern: rustc_hir::intravisit::Visitor
        """
        raise NotImplementedError(f"accept() not implemented for {self.__class__.__name__}")

    def __repr__(self) -> str:
        fields = []
        for cls in type(self).__mro__:
            for slot in getattr(cls, '__slots__', ()):
                if slot != 'location':
                    fields.append(f"{slot}={getattr(self, slot, None)!r}")
        return f"{type(self).__name__}({', '.join(fields)})"


class ExpressionIR(IRNode):
    """
    Expression in IR.

    Rust Pattern: rustc_hir::Expr
    """
    __slots__ = ()


class StatementIR(IRNode):
    """
    Statement in IR.

    Rust Pattern: rustc_hir::Stmt
    """
    __slots__ = ()


# ============================================================================
# Expressions
# ============================================================================

class IdentifierIR(ExpressionIR):
    """Bare name (variable, parameter, package or builtin)."""
    __slots__ = ('name',)

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.name = name

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_identifier(self)


class LiteralIR(ExpressionIR):
    """
    Literal as written in source.

    ``kind`` is one of "int", "float", "char", "string"; ``text`` keeps the
    original spelling so hex and exponent forms survive lowering.
    """
    __slots__ = ('kind', 'text')

    def __init__(self, kind: str, text: str, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.kind = kind
        self.text = text

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_literal(self)


class BinaryOpIR(ExpressionIR):
    __slots__ = ('operator', 'left', 'right')

    def __init__(self, operator: BinaryOp, left: ExpressionIR, right: ExpressionIR,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.operator = operator
        self.left = left
        self.right = right

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_binary_op(self)


class UnaryOpIR(ExpressionIR):
    __slots__ = ('operator', 'operand')

    def __init__(self, operator: UnaryOp, operand: ExpressionIR,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.operator = operator
        self.operand = operand

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_unary_op(self)


class IndexIR(ExpressionIR):
    """``base[index]``"""
    __slots__ = ('base', 'index')

    def __init__(self, base: ExpressionIR, index: ExpressionIR,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.base = base
        self.index = index

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_index(self)


class SliceIR(ExpressionIR):
    """``base[low:high]``; either bound may be None."""
    __slots__ = ('base', 'low', 'high')

    def __init__(self, base: ExpressionIR, low: Optional[ExpressionIR],
                 high: Optional[ExpressionIR], location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.base = base
        self.low = low
        self.high = high

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_slice(self)


class SelectorIR(ExpressionIR):
    """``base.field`` (package member, method value or struct field)."""
    __slots__ = ('base', 'field')

    def __init__(self, base: ExpressionIR, field: str,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.base = base
        self.field = field

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_selector(self)


class ParenIR(ExpressionIR):
    __slots__ = ('inner',)

    def __init__(self, inner: ExpressionIR, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.inner = inner

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_paren(self)


class StarIR(ExpressionIR):
    """Pointer dereference ``*x``."""
    __slots__ = ('operand',)

    def __init__(self, operand: ExpressionIR, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.operand = operand

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_star(self)


class TypeExprIR(ExpressionIR):
    """A type used in expression position (``[]float32`` in ``make``)."""
    __slots__ = ('text',)

    def __init__(self, text: str, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.text = text

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_type_expr(self)


class CallIR(ExpressionIR):
    """
    Function, method or conversion call.

    ``type_args`` holds explicit instantiation arguments (``hwy.Zero[T]()``).
    """
    __slots__ = ('func', 'args', 'type_args')

    def __init__(self, func: ExpressionIR, args: List[ExpressionIR],
                 type_args: Optional[List[str]] = None,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.func = func
        self.args = args
        self.type_args = type_args or []

    @property
    def qualified_name(self) -> Optional[str]:
        """``name`` or ``pkg.name`` when the callee is a plain (qualified) identifier."""
        func = self.func
        if isinstance(func, IdentifierIR):
            return func.name
        if isinstance(func, SelectorIR) and isinstance(func.base, IdentifierIR):
            return f"{func.base.name}.{func.field}"
        return None

    @property
    def package(self) -> Optional[str]:
        func = self.func
        if isinstance(func, SelectorIR) and isinstance(func.base, IdentifierIR):
            return func.base.name
        return None

    @property
    def member(self) -> Optional[str]:
        func = self.func
        if isinstance(func, SelectorIR):
            return func.field
        if isinstance(func, IdentifierIR):
            return func.name
        return None

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_call(self)


# ============================================================================
# Statements
# ============================================================================

class BlockIR(StatementIR):
    __slots__ = ('statements',)

    def __init__(self, statements: List[StatementIR], location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.statements = statements

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_block(self)


class AssignIR(StatementIR):
    """``targets op values`` for ``:=``, ``=`` and compound assignment."""
    __slots__ = ('targets', 'op', 'values')

    def __init__(self, targets: List[ExpressionIR], op: AssignOp, values: List[ExpressionIR],
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.targets = targets
        self.op = op
        self.values = values

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_assign(self)


class VarDeclIR(StatementIR):
    """``var a, b T [= x, y]``"""
    __slots__ = ('names', 'type_name', 'values')

    def __init__(self, names: List[str], type_name: Optional[str], values: List[ExpressionIR],
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.names = names
        self.type_name = type_name
        self.values = values

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_var_decl(self)


class IncDecIR(StatementIR):
    __slots__ = ('target', 'increment')

    def __init__(self, target: ExpressionIR, increment: bool,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.target = target
        self.increment = increment

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_inc_dec(self)


class ExprStmtIR(StatementIR):
    __slots__ = ('expr',)

    def __init__(self, expr: ExpressionIR, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.expr = expr

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_expr_stmt(self)


class ForIR(StatementIR):
    """Counting loop; any of init/cond/post may be None (``for {}`` has none)."""
    __slots__ = ('init', 'cond', 'post', 'body')

    def __init__(self, init: Optional[StatementIR], cond: Optional[ExpressionIR],
                 post: Optional[StatementIR], body: BlockIR,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.init = init
        self.cond = cond
        self.post = post
        self.body = body

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_for(self)


class RangeIR(StatementIR):
    """``for key, value := range iterable``; key/value are None when omitted or ``_``."""
    __slots__ = ('key', 'value', 'iterable', 'body', 'define')

    def __init__(self, key: Optional[str], value: Optional[str], iterable: ExpressionIR,
                 body: BlockIR, define: bool = True,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.key = key
        self.value = value
        self.iterable = iterable
        self.body = body
        self.define = define

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_range(self)


class IfIR(StatementIR):
    """``if [init;] cond body [else orelse]``; orelse is a BlockIR or a nested IfIR."""
    __slots__ = ('init', 'cond', 'body', 'orelse')

    def __init__(self, init: Optional[StatementIR], cond: ExpressionIR, body: BlockIR,
                 orelse: Optional[StatementIR] = None,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.init = init
        self.cond = cond
        self.body = body
        self.orelse = orelse

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_if(self)


class ReturnStmtIR(StatementIR):
    __slots__ = ('values',)

    def __init__(self, values: List[ExpressionIR], location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.values = values

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_return(self)


class BranchIR(StatementIR):
    """``break`` / ``continue`` with an optional label."""
    __slots__ = ('keyword', 'label')

    def __init__(self, keyword: str, label: Optional[str] = None,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.keyword = keyword
        self.label = label

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_branch(self)


class UnsupportedStmtIR(StatementIR):
    """A statement the front end recognised but the C lowering does not support."""
    __slots__ = ('kind', 'text')

    def __init__(self, kind: str, text: str, location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.kind = kind
        self.text = text

    def accept(self, visitor: 'IRVisitor[T]') -> T:
        return visitor.visit_unsupported(self)


# ============================================================================
# Declarations
# ============================================================================

class ParamIR(IRNode):
    """Function parameter with its semantic classification."""
    __slots__ = ('name', 'type_name', 'kind', 'elem_type_name')

    def __init__(self, name: str, type_name: str, kind: ParamKind,
                 elem_type_name: Optional[str] = None,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.name = name
        self.type_name = type_name
        self.kind = kind
        self.elem_type_name = elem_type_name


class ReturnIR(IRNode):
    """Declared result; ``name`` is None for unnamed results."""
    __slots__ = ('name', 'type_name')

    def __init__(self, name: Optional[str], type_name: str,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.name = name
        self.type_name = type_name


class FunctionIR(IRNode):
    """
    Parsed function: the unit of lowering.

    Rust Pattern: rustc_hir::FnDecl + Body
    """
    __slots__ = ('name', 'type_params', 'params', 'returns', 'body')

    def __init__(self, name: str, type_params: List[str], params: List[ParamIR],
                 returns: List[ReturnIR], body: BlockIR,
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.name = name
        self.type_params = type_params
        self.params = params
        self.returns = returns
        self.body = body

    def param(self, name: str) -> Optional[ParamIR]:
        for p in self.params:
            if p.name == name:
                return p
        return None


class SourceFileIR(IRNode):
    __slots__ = ('package', 'imports', 'functions')

    def __init__(self, package: Optional[str], imports: List[str], functions: List[FunctionIR],
                 location: Optional[SourceLocation] = None):
        super().__init__(location)
        self.package = package
        self.imports = imports
        self.functions = functions

    def function(self, name: str) -> Optional[FunctionIR]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None


# ============================================================================
# Visitors
# ============================================================================

class IRVisitor(ABC, Generic[T]):
    """
    Visitor for IR nodes (no isinstance needed).

    Rust Pattern: rustc_hir::intravisit::Visitor
    """

    @abstractmethod
    def visit_identifier(self, node: IdentifierIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_literal(self, node: LiteralIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_binary_op(self, node: BinaryOpIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_unary_op(self, node: UnaryOpIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_index(self, node: IndexIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_slice(self, node: SliceIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_selector(self, node: SelectorIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_paren(self, node: ParenIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_star(self, node: StarIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_call(self, node: CallIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_type_expr(self, node: TypeExprIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_block(self, node: BlockIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_assign(self, node: AssignIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_var_decl(self, node: VarDeclIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_inc_dec(self, node: IncDecIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_expr_stmt(self, node: ExprStmtIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_for(self, node: ForIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_range(self, node: RangeIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_if(self, node: IfIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_return(self, node: ReturnStmtIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_branch(self, node: BranchIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_unsupported(self, node: UnsupportedStmtIR) -> T:
        raise NotImplementedError


class IRWalker(IRVisitor[None]):
    """
    Depth-first traversal of every statement and expression.

    Subclasses override the visit_* methods they care about and call
    ``super()`` to keep descending.
    """

    def walk(self, node: Optional[IRNode]) -> None:
        if node is not None:
            node.accept(self)

    def walk_all(self, nodes: Sequence[Optional[IRNode]]) -> None:
        for node in nodes:
            self.walk(node)

    def visit_identifier(self, node: IdentifierIR) -> None:
        pass

    def visit_literal(self, node: LiteralIR) -> None:
        pass

    def visit_type_expr(self, node: TypeExprIR) -> None:
        pass

    def visit_binary_op(self, node: BinaryOpIR) -> None:
        self.walk(node.left)
        self.walk(node.right)

    def visit_unary_op(self, node: UnaryOpIR) -> None:
        self.walk(node.operand)

    def visit_index(self, node: IndexIR) -> None:
        self.walk(node.base)
        self.walk(node.index)

    def visit_slice(self, node: SliceIR) -> None:
        self.walk_all([node.base, node.low, node.high])

    def visit_selector(self, node: SelectorIR) -> None:
        self.walk(node.base)

    def visit_paren(self, node: ParenIR) -> None:
        self.walk(node.inner)

    def visit_star(self, node: StarIR) -> None:
        self.walk(node.operand)

    def visit_call(self, node: CallIR) -> None:
        self.walk(node.func)
        self.walk_all(node.args)

    def visit_block(self, node: BlockIR) -> None:
        self.walk_all(node.statements)

    def visit_assign(self, node: AssignIR) -> None:
        self.walk_all(node.targets)
        self.walk_all(node.values)

    def visit_var_decl(self, node: VarDeclIR) -> None:
        self.walk_all(node.values)

    def visit_inc_dec(self, node: IncDecIR) -> None:
        self.walk(node.target)

    def visit_expr_stmt(self, node: ExprStmtIR) -> None:
        self.walk(node.expr)

    def visit_for(self, node: ForIR) -> None:
        self.walk_all([node.init, node.cond, node.post, node.body])

    def visit_range(self, node: RangeIR) -> None:
        self.walk(node.iterable)
        self.walk(node.body)

    def visit_if(self, node: IfIR) -> None:
        self.walk_all([node.init, node.cond, node.body, node.orelse])

    def visit_return(self, node: ReturnStmtIR) -> None:
        self.walk_all(node.values)

    def visit_branch(self, node: BranchIR) -> None:
        pass

    def visit_unsupported(self, node: UnsupportedStmtIR) -> None:
        pass
