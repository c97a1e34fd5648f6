"""
Source Location (Span)

Rust Pattern: rustc_span::Span
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourceLocation:
    """
    Position of an IR node in the portable kernel source.

    Rust Pattern: rustc_span::Span

    Implementation Alignment: line/column based, frozen so locations can be
    shared freely between IR nodes and diagnostics. ``end_line`` and
    ``end_column`` are 0 when the span end is unknown.
    """
    file: str
    line: int
    column: int
    end_line: int = 0
    end_column: int = 0

    def __str__(self) -> str:
        """Format as file:line:column"""
        return f"{self.file}:{self.line}:{self.column}"
