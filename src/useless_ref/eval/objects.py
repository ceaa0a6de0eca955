from __future__ import annotations

from typing import Callable

from lark import Tree

from ..scheduler import EvalGen
from ..tree import Node, tree_children
from ..types import Frame, TypeMismatch, UslArray, UslRecord, UslValue
from .common import token_string

EvalFunc = Callable[[Node, Frame], EvalGen]

def eval_array(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    items: list[UslValue] = []

    for child in tree_children(n):
        item = yield from eval_func(child, frame)
        items.append(item)

    return UslArray(items)

def eval_record(n: Tree, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    slots: dict[str, UslValue] = {}

    for pair in tree_children(n):
        parts = tree_children(pair)
        if len(parts) != 2:
            raise TypeMismatch("Malformed record field")

        key_node, value_node = parts
        key = token_string(key_node, frame).value
        slots[key] = yield from eval_func(value_node, frame)

    return UslRecord(slots)
