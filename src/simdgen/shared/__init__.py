"""
Shared components: diagnostics, source locations and element types.
"""

from .source_location import SourceLocation
from .errors import (
    Error, ErrorReporter, SimdgenError, SimdgenSourceError, ParseError,
    UnsupportedConstructError, ConfigurationError, ProfileNotFoundError,
    SimdgenImplementationError,
)
from .types import (
    ElementType, ELEMENT_TYPES, ELEMENT_ALIASES, resolve_element_type,
    canonical_element_name, ParamKind, classify_param_type,
    BinaryOp, UnaryOp, AssignOp,
)
