"""
Backend Interface

Rust Pattern: LLVM TargetMachine
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from ..ir.nodes import FunctionIR
from ..passes.base import LoweringOptions
from ..profiles.base import IntrinsicProfile
from ..shared.errors import ErrorReporter
from ..shared.types import ElementType


class Backend(ABC):
    """
    Backend interface (Rust naming: rustc_codegen_llvm::Backend).

    Rust Pattern: rustc_codegen_llvm::Backend trait
    LLVM Pattern: TargetMachine interface

    Implementation Alignment: Follows LLVM's backend interface:
    - All backends implement same interface
    - A backend lowers one function against one intrinsic profile
    - Backend trusts the front end's IR (parameter kinds, element names)
    - Every invocation gets fresh state; nothing leaks between calls
    """

    @abstractmethod
    def lower(
        self,
        function: FunctionIR,
        profile: IntrinsicProfile,
        element_type: Union[str, ElementType],
        options: Optional[LoweringOptions] = None,
        reporter: Optional[ErrorReporter] = None,
    ) -> Any:
        """
        Lower one function for one profile.

        Rust Pattern: codegen of a single monomorphized item

        Implementation Alignment:
        - Resolves the loop tier (primary or requested)
        - Runs the analysis passes, then emits target code
        - Returns the emitted text together with the helpers it needs
        """
        raise NotImplementedError

    @abstractmethod
    def translate(
        self,
        function: FunctionIR,
        profile: IntrinsicProfile,
        element_type: Union[str, ElementType],
        options: Optional[LoweringOptions] = None,
    ) -> str:
        """
        Lower and return only the function text.

        Rust Pattern: Backend generates target code
        """
        raise NotImplementedError
