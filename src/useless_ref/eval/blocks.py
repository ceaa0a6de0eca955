from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, List

from ..scheduler import EvalGen
from ..tree import Node, tree_children
from ..types import BreakSignal, ControlFlowMisuse, Frame, UslNull, UslValue

EvalFunc = Callable[[Node, Frame], EvalGen]

def eval_block(n: Node, frame: Frame, eval_func: EvalFunc) -> EvalGen:
    """Run a statement list in `frame`, returning the last statement's value."""
    result: UslValue = UslNull()

    for child in tree_children(n):
        result = yield from eval_func(child, frame)

    return result

def eval_program(children: List[Node], frame: Frame, eval_func: EvalFunc) -> EvalGen:
    result: UslValue = UslNull()

    try:
        for child in children:
            result = yield from eval_func(child, frame)
    except BreakSignal:
        raise ControlFlowMisuse("break outside of a loop") from None

    return result

@contextmanager
def temporary_bindings(frame: Frame, bindings: dict[str, UslValue]) -> Iterator[None]:
    """Bind names in `frame` for the duration of the block, then restore."""
    records: list[tuple[str, UslValue | None, bool]] = []

    for name, value in bindings.items():
        existed = name in frame.vars
        records.append((name, frame.vars.get(name), existed))
        frame.define(name, value)

    try:
        yield
    finally:
        for name, prev, existed in reversed(records):
            if existed and prev is not None:
                frame.vars[name] = prev
            else:
                frame.vars.pop(name, None)
