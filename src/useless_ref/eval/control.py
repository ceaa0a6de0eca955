from __future__ import annotations

import logging
from typing import Callable

from lark import Tree

from ..scheduler import EvalGen
from ..tree import Node, child_by_label, tree_children
from ..types import (
    BreakSignal,
    ControlFlowMisuse,
    Frame,
    ReturnSignal,
    UselessRuntimeError,
    UslNull,
    UslRecord,
    UslText,
    UslValue,
)
from .blocks import eval_block, temporary_bindings
from .common import expect_ident_token
from .helpers import coerce_boolean, current_function_frame

EvalFunc = Callable[[Node, Frame], EvalGen]

logger = logging.getLogger(__name__)

def eval_if_stmt(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    children = tree_children(n)
    if not children:
        raise ControlFlowMisuse("Malformed if statement")

    # evaluated for its effects only; the branch never depends on it
    cond = yield from eval_func(children[0], frame)
    logger.debug("if condition was %s; running the else branch anyway", coerce_boolean(cond))

    else_clause = child_by_label(n, 'else_clause')
    if else_clause is None:
        return UslNull()

    if frame.runtime.policy.invert_branch_always():
        body = child_by_label(else_clause, 'block')
        yield from eval_block(body, frame, eval_func)

    return UslNull()

def eval_loop_stmt(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    body = child_by_label(n, 'block')
    if body is None:
        raise ControlFlowMisuse("Malformed loop statement")

    for _ in range(frame.runtime.policy.loop_once()):
        try:
            yield from eval_block(body, frame, eval_func)
        except BreakSignal:
            break

    return UslNull()

def build_error_payload(exc: UselessRuntimeError) -> UslRecord:
    """Expose a caught error to the catch body as a record."""
    slots: dict[str, UslValue] = {
        "kind": UslText(exc.kind),
        "message": UslText(exc.message),
    }

    return UslRecord(slots)

def eval_try_stmt(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    children = tree_children(n)
    if len(children) != 3:
        raise ControlFlowMisuse("Malformed try statement")

    try_body, binder_node, catch_body = children
    binder = expect_ident_token(binder_node, "Catch binder")

    try:
        yield from eval_block(try_body, frame, eval_func)
    except UselessRuntimeError as exc:
        if exc.fatal:
            raise

        with temporary_bindings(frame, {binder: build_error_payload(exc)}):
            yield from eval_block(catch_body, frame, eval_func)

    return UslNull()

def eval_return_stmt(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    if current_function_frame(frame) is None:
        raise ControlFlowMisuse("return outside of a function")

    children = tree_children(n)
    value: UslValue = UslNull()

    if children:
        value = yield from eval_func(children[0], frame)

    raise ReturnSignal(value)

def eval_break_stmt(_n: Tree, _frame: Frame, _eval_func: EvalFunc) -> UslValue:
    raise BreakSignal()
