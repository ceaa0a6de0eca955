from __future__ import annotations

from typing import Any, Optional

from lark import Token

from ..types import (
    BuiltinFunction,
    Frame,
    TypeMismatch,
    UslArray,
    UslBool,
    UslFn,
    UslNull,
    UslNumber,
    UslPromise,
    UslRecord,
    UslText,
    UslValue,
)
from ..tree import is_token, token_kind

def expect_ident_token(node: Any, context: str) -> str:
    if is_token(node) and token_kind(node) == 'IDENT':
        return str(node.value)

    raise TypeMismatch(f"{context} must be an identifier")

def token_number(t: Token, _frame: Frame) -> UslNumber:
    return UslNumber(float(t.value))

def token_string(t: Token, _frame: Frame) -> UslText:
    raw = str(t.value)

    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        raw = raw[1:-1]

    return UslText(raw)

def expect_integer(value: UslValue, context: str) -> int:
    if not isinstance(value, UslNumber) or not float(value.value).is_integer():
        raise TypeMismatch(f"{context} expects a whole number, got {describe(value)}")

    return int(value.value)

def expect_text(value: UslValue, context: str) -> str:
    if not isinstance(value, UslText):
        raise TypeMismatch(f"{context} expects text, got {describe(value)}")

    return value.value

def describe(value: Optional[UslValue]) -> str:
    """Name of a value's shape for error messages."""
    match value:
        case UslNumber():
            return "number"
        case UslText():
            return "text"
        case UslBool():
            return "boolean"
        case UslNull() | None:
            return "null"
        case UslArray():
            return "array"
        case UslRecord():
            return "record"
        case UslFn() | BuiltinFunction():
            return "function"
        case UslPromise():
            return "promise"
        case _:
            return type(value).__name__

def stringify(value: Optional[UslValue]) -> str:
    if isinstance(value, UslText):
        return value.value

    if value is None:
        return "null"

    return repr(value)
