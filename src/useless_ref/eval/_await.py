from __future__ import annotations

from typing import Callable

from lark import Tree

from ..scheduler import AwaitRequest, EvalGen, PromiseState
from ..tree import Node, tree_children
from ..types import Frame, TypeMismatch, UslPromise, UslValue

EvalFunc = Callable[[Node, Frame], EvalGen]

def resolve_await_result(value: UslValue, frame: Frame) -> EvalGen:
    """Suspend the current task until `value` settles; non-promises pass through."""
    if not isinstance(value, UslPromise):
        return value

    scheduler = frame.runtime.scheduler

    if scheduler.state_of(value) is PromiseState.PENDING:
        result = yield AwaitRequest(value.handle)
        return result

    return scheduler.claim(value.handle)

def eval_await_expr(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    children = tree_children(n)
    if len(children) != 1:
        raise TypeMismatch("Malformed await expression")

    value = yield from eval_func(children[0], frame)
    result = yield from resolve_await_result(value, frame)

    return result
