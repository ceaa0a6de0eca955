from __future__ import annotations

import inspect
from typing import Callable, List, Optional

from lark import Tree

from ..runtime import call_builtin, call_uslfn
from ..scheduler import EvalGen
from ..tree import Node, child_by_label, tree_children
from ..types import BuiltinFunction, Frame, TypeMismatch, UslFn, UslNull, UslValue
from .common import describe, expect_ident_token

EvalFunc = Callable[[Node, Frame], EvalGen]

def extract_param_names(params_node: Optional[Tree]) -> List[str]:
    if params_node is None:
        return []

    names = [expect_ident_token(p, "Parameter") for p in tree_children(params_node)]

    if len(set(names)) != len(names):
        raise TypeMismatch(f"Duplicate parameter names in ({', '.join(names)})")

    return names

def eval_fn_def(n: Tree, frame: Frame, is_async: bool=False) -> UslValue:
    children = tree_children(n)
    if not children:
        raise TypeMismatch("Malformed function definition")

    name = expect_ident_token(children[0], "Function name")
    body = child_by_label(n, 'block')

    if body is None:
        body = Tree('block', [])

    params = extract_param_names(child_by_label(n, 'params'))
    fn_value = UslFn(name=name, params=params, body=body, frame=frame, is_async=is_async)
    frame.define(name, fn_value)

    return UslNull()

def eval_call(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    children = tree_children(n)
    name = expect_ident_token(children[0], "Callee")
    callee = frame.get(name)
    args: List[UslValue] = []

    for arg_node in children[1:]:
        arg = yield from eval_func(arg_node, frame)
        args.append(arg)

    result = yield from call_value(callee, args, frame)
    return result

def call_value(callee: UslValue, args: List[UslValue], frame: Frame) -> EvalGen:
    match callee:
        case BuiltinFunction():
            return call_builtin(callee, args, frame)
        case UslFn():
            result = call_uslfn(callee, args, frame)

            if inspect.isgenerator(result):
                result = yield from result

            return result
        case _:
            raise TypeMismatch(f"A {describe(callee)} is not callable")
