from __future__ import annotations

from pathlib import Path
from typing import Optional

from lark import Lark, Tree, UnexpectedInput

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_PARSER: Optional[Lark] = None

class ParseError(Exception):
    """Source that does not match the grammar."""

    def __init__(self, message: str, line: Optional[int]=None, column: Optional[int]=None, context: str=""):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.context = context

    def __str__(self) -> str:
        if self.line is None:
            return self.message

        return f"{self.message} (line {self.line}, col {self.column})"

def build_parser(grammar_text: Optional[str]=None) -> Lark:
    if grammar_text is None:
        grammar_text = GRAMMAR_PATH.read_text(encoding="utf-8")

    return Lark(
        grammar_text,
        parser="lalr",
        lexer="basic",
        start="program",
        maybe_placeholders=False,
        propagate_positions=True,
    )

def get_parser() -> Lark:
    global _PARSER

    if _PARSER is None:
        _PARSER = build_parser()

    return _PARSER

def parse_source(src: str) -> Tree:
    """Parse program text into a `program` tree."""
    try:
        return get_parser().parse(src)
    except UnexpectedInput as exc:
        line = getattr(exc, "line", None)
        column = getattr(exc, "column", None)

        if isinstance(line, int) and line < 0:
            line, column = None, None

        try:
            context = exc.get_context(src)
        except (AttributeError, IndexError, TypeError):
            context = ""

        saw = getattr(exc, "token", None) or getattr(exc, "char", None)
        message = f"Unexpected {str(saw)!r}" if saw else "Unexpected end of input"

        raise ParseError(message, line, column, context) from exc
