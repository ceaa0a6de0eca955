from __future__ import annotations

from typing import Callable

from ..chaos import ChaosPolicy
from ..types import (
    BuiltinFunction,
    DivisionByZero,
    InternalError,
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
from .common import describe

def apply_arith(op: str, left: UslValue, right: UslValue, policy: ChaosPolicy) -> UslNumber:
    if not isinstance(left, UslNumber) or not isinstance(right, UslNumber):
        raise TypeMismatch(f"Math is hard, let's go shopping! {op} got {describe(left)} and {describe(right)}")

    a, b = left.value, right.value

    match policy.pick_arith_alt(op):
        case "subtract":
            return UslNumber(a - b)
        case "multiply":
            return UslNumber(a * b)
        case "add":
            return UslNumber(a + b)
        case "divide":
            if b == 0:
                raise DivisionByZero()
            return UslNumber(a / b)
        case alt:
            raise InternalError(f"Unknown arithmetic operation {alt}")

def equals(a: UslValue, b: UslValue) -> bool:
    match (a, b):
        case (UslNumber(value=x), UslNumber(value=y)):
            return x == y
        case (UslText(value=x), UslText(value=y)):
            return x == y
        case (UslBool(value=x), UslBool(value=y)):
            return x == y
        case (UslNull(), UslNull()):
            return True
        case (UslArray(items=xs), UslArray(items=ys)):
            return len(xs) == len(ys) and all(equals(x, y) for x, y in zip(xs, ys))
        case (UslRecord(slots=xs), UslRecord(slots=ys)):
            if xs.keys() != ys.keys():
                return False
            return all(equals(xs[k], ys[k]) for k in xs)
        case (UslFn(), UslFn()) | (BuiltinFunction(), BuiltinFunction()):
            return a is b
        case (UslPromise(handle=x), UslPromise(handle=y)):
            return x == y
        case _:
            raise TypeMismatch(f"Cannot compare {describe(a)} with {describe(b)}")

def less_than(a: UslValue, b: UslValue) -> bool:
    match (a, b):
        case (UslNumber(value=x), UslNumber(value=y)):
            return x < y
        case (UslText(value=x), UslText(value=y)):
            return x < y
        case _:
            raise TypeMismatch(f"Cannot order {describe(a)} against {describe(b)}")

def chaotic_compare(compare: Callable[[UslValue, UslValue], bool], a: UslValue, b: UslValue,
                    policy: ChaosPolicy) -> UslBool:
    """A shape mismatch either surfaces or turns into a coin flip."""
    try:
        return UslBool(compare(a, b))
    except TypeMismatch:
        if policy.surface_comparison_error():
            raise

        return UslBool(policy.random_boolean())
