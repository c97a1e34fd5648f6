"""C backend (facade): one function + one profile -> one C function."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from ..ir.nodes import FunctionIR, IRVisitor
from ..passes.base import HelperRef, LoweringContext, LoweringOptions, PassManager
from ..passes.deferred_accumulation import DeferredAccumulationPass
from ..passes.unsupported import UnsupportedConstructPass
from ..profiles.base import IntrinsicProfile, LoopTier
from ..shared.errors import ConfigurationError, Error, ErrorReporter
from ..shared.types import ElementType, resolve_element_type
from .base import Backend
from .c_core import CoreLoweringMixin
from .c_expressions import ExpressionLoweringMixin
from .c_intrinsics import IntrinsicLoweringMixin
from .c_statements import StatementLoweringMixin
from .c_types import TypeInferenceMixin

logger = logging.getLogger(__name__)


@dataclass
class LoweringResult:
    """
    Output of one lowering invocation.

    ``source`` is the C function alone; the helpers it calls are listed in
    ``required_helpers`` and rendered by the caller against
    ``math_vec_type``.
    """
    source: str
    c_function_name: str
    profile: IntrinsicProfile
    loop_tier: LoopTier
    math_vec_type: Optional[str]
    required_helpers: Tuple[HelperRef, ...] = ()
    diagnostics: List[Error] = field(default_factory=list)


class CLowering(
    CoreLoweringMixin,
    StatementLoweringMixin,
    ExpressionLoweringMixin,
    IntrinsicLoweringMixin,
    TypeInferenceMixin,
    IRVisitor[Any],
):
    """
    Per-invocation C lowering (facade). Composes:
    - CoreLoweringMixin: signature, entry dereferences, scopes, hoisted lines
    - StatementLoweringMixin: statement visit_*, loops, conditionals, returns
    - ExpressionLoweringMixin: expression visit_*, built-ins, math calls
    - IntrinsicLoweringMixin: vocabulary -> profile intrinsics, accumulators
    - TypeInferenceMixin: C types of expressions and declared names
    """

    def __init__(self, ctx: LoweringContext):
        CoreLoweringMixin.__init__(self, ctx)


def build_pass_manager() -> PassManager:
    manager = PassManager()
    manager.register_pass(UnsupportedConstructPass)
    manager.register_pass(DeferredAccumulationPass)
    return manager


class CBackend(Backend):
    """
    C-with-intrinsics backend.

    Stateless between calls: each ``lower`` builds a fresh LoweringContext
    and CLowering, so concurrent calls on one backend are independent.
    """

    def lower(
        self,
        function: FunctionIR,
        profile: IntrinsicProfile,
        element_type: Union[str, ElementType],
        options: Optional[LoweringOptions] = None,
        reporter: Optional[ErrorReporter] = None,
    ) -> LoweringResult:
        element = (element_type if isinstance(element_type, ElementType)
                   else resolve_element_type(element_type))
        if element.name != profile.element_type:
            raise ConfigurationError(
                f"profile {profile.architecture}:{profile.element_type} cannot lower "
                f"element type {element.name}")
        local_reporter = ErrorReporter()
        ctx = LoweringContext(function, profile, element, options, local_reporter)
        logger.debug("lowering %s for %s:%s at tier %s (%d lanes)", function.name,
                     profile.architecture, element.name, ctx.tier.value, ctx.lanes)

        build_pass_manager().run_all(function, ctx)
        lowering = CLowering(ctx)
        source = lowering.lower_function()

        if reporter is not None:
            reporter.extend(local_reporter)
        return LoweringResult(
            source=source,
            c_function_name=lowering.c_name,
            profile=profile,
            loop_tier=ctx.loop_tier,
            math_vec_type=profile.math_vec_type(ctx.tier),
            required_helpers=tuple(ctx.required_helpers),
            diagnostics=list(local_reporter.diagnostics),
        )

    def translate(
        self,
        function: FunctionIR,
        profile: IntrinsicProfile,
        element_type: Union[str, ElementType],
        options: Optional[LoweringOptions] = None,
    ) -> str:
        return self.lower(function, profile, element_type, options).source
