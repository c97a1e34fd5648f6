"""
Parser

Rust Pattern: rustc_parse
"""

import logging
from pathlib import Path

from lark import Lark
from lark.exceptions import (
    UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken,
    ParseError as LarkParseError, VisitError,
)

from ..ir.nodes import SourceFileIR
from ..shared.errors import ParseError, SimdgenSourceError
from ..shared.source_location import SourceLocation
from ..utils.config import DEFAULT_SOURCE_NAME, GRAMMAR_FILE, PARSER_ALGORITHM, PARSER_LEXER
from .preprocessor import preprocess
from .transformers import KernelTransformer

logger = logging.getLogger("simdgen.frontend.parser")


class Parser:
    """
    Parser (Rust naming: rustc_parse).

    Rust Pattern: rustc_parse::parse()

    Implementation Alignment:
    - Takes kernel source, returns SourceFileIR
    - Preserves source locations (propagate_positions)
    - Converts lark errors into ParseError with a location
    """

    def __init__(self):
        grammar_path = Path(__file__).parent / GRAMMAR_FILE
        self.parser = Lark.open(
            str(grammar_path),
            start='start',
            parser=PARSER_ALGORITHM,
            lexer=PARSER_LEXER,
            propagate_positions=True,
            maybe_placeholders=True,
        )

    def parse(self, source: str, source_file: str = DEFAULT_SOURCE_NAME) -> SourceFileIR:
        """
        Parse kernel source to IR.

        Rust Pattern: rustc_parse::parse()
        """
        text = preprocess(source)
        try:
            tree = self.parser.parse(text)
        except (UnexpectedToken, UnexpectedCharacters, UnexpectedEOF, LarkParseError) as e:
            location = None
            if isinstance(e, UnexpectedInput) and getattr(e, 'line', -1) not in (None, -1):
                location = SourceLocation(file=source_file, line=e.line, column=e.column)
            message = f"syntax error: {_describe(e)}"
            logger.debug("parse failed in %s: %s", source_file, e)
            raise ParseError(message, source_file, location, source_code=source) from e

        transformer = KernelTransformer(source_file, text)
        try:
            ir = transformer.transform(tree)
        except VisitError as e:
            # lark wraps exceptions raised inside transformer callbacks
            if isinstance(e.orig_exc, SimdgenSourceError):
                if e.orig_exc.source_code is None:
                    e.orig_exc.source_code = source
                raise e.orig_exc from None
            raise
        logger.debug("parsed %s: %d function(s)", source_file, len(ir.functions))
        return ir


def _describe(error: Exception) -> str:
    if isinstance(error, UnexpectedToken):
        token = error.token
        if token.type == '$END':
            return "unexpected end of input"
        return f"unexpected token {str(token)!r}"
    if isinstance(error, UnexpectedCharacters):
        return f"unexpected character {error.char!r}"
    if isinstance(error, UnexpectedEOF):
        return "unexpected end of input"
    return str(error).splitlines()[0]
