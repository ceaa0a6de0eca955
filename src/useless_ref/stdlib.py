"""Built-in functions bound into every global frame via register_builtin."""

from __future__ import annotations

import logging
import math
from typing import List

from .runtime import register_builtin
from .types import (
    FieldNotFound,
    Frame,
    SaveAlwaysFails,
    TypeMismatch,
    UslArray,
    UslNull,
    UslNumber,
    UslPromise,
    UslRecord,
    UslValue,
)
from .eval.common import describe, expect_integer, expect_text
from .eval.expr import apply_arith, chaotic_compare, equals, less_than

logger = logging.getLogger(__name__)

BROWSER_ERROR = (
    "Failed to open browser tab. Either your internet is as reliable as a chocolate teapot, "
    "or the universe is working exactly as intended."
)

@register_builtin("add", arity=(2, 2))
def std_add(frame: Frame, args: List[UslValue]) -> UslValue:
    left, right = args
    return apply_arith("add", left, right, frame.runtime.policy)

@register_builtin("multiply", arity=(2, 2))
def std_multiply(frame: Frame, args: List[UslValue]) -> UslValue:
    left, right = args
    return apply_arith("multiply", left, right, frame.runtime.policy)

@register_builtin("equals", arity=(2, 2))
def std_equals(frame: Frame, args: List[UslValue]) -> UslValue:
    a, b = args
    return chaotic_compare(equals, a, b, frame.runtime.policy)

@register_builtin("lessThan", arity=(2, 2))
def std_less_than(frame: Frame, args: List[UslValue]) -> UslValue:
    a, b = args
    return chaotic_compare(less_than, a, b, frame.runtime.policy)

@register_builtin("index", arity=(2, 2))
def std_index(frame: Frame, args: List[UslValue]) -> UslValue:
    container, position = args

    if not isinstance(container, UslArray):
        raise TypeMismatch(f"index expects an array, got {describe(container)}")

    requested = expect_integer(position, "index")
    chosen = frame.runtime.policy.pick_container_index(len(container.items), requested)

    return container.items[chosen]

@register_builtin("access", arity=(2, 2))
def std_access(frame: Frame, args: List[UslValue]) -> UslValue:
    container, key = args

    if not isinstance(container, UslRecord):
        raise TypeMismatch(f"access expects a record, got {describe(container)}")

    requested = expect_text(key, "access")
    chosen = frame.runtime.policy.pick_field(container.slots, requested)

    if chosen not in container.slots:
        raise FieldNotFound(chosen)

    return container.slots[chosen]

@register_builtin("print", arity=(1, 1))
def std_print(frame: Frame, args: List[UslValue]) -> UslNull:
    runtime = frame.runtime

    if runtime.policy.print_fails():
        runtime.presenter.present_error(BROWSER_ERROR)
    else:
        runtime.presenter.present(args[0])

    return UslNull()

@register_builtin("save", arity=(1, 1))
def std_save(_frame: Frame, args: List[UslValue]) -> UslValue:
    logger.debug("refusing to save %r", args[0])
    raise SaveAlwaysFails()

@register_builtin("exit", arity=(0, 0))
def std_exit(_frame: Frame, _args: List[UslValue]) -> UslNull:
    return UslNull()

@register_builtin("promise", arity=(1, 2))
def std_promise(frame: Frame, args: List[UslValue]) -> UslPromise:
    value, *rest = args
    timeout_ms = None

    if rest:
        timeout = rest[0]

        if not isinstance(timeout, UslNumber):
            raise TypeMismatch(f"promise timeout must be a number, got {describe(timeout)}")
        if math.isnan(timeout.value):
            raise TypeMismatch("promise timeout must be a real number of milliseconds, got NaN")
        timeout_ms = timeout.value

    return frame.runtime.scheduler.create(value, timeout_ms)
