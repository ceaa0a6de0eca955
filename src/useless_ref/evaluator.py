from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from lark import Token

from .runtime import Runtime, RuntimeConfig
from .scheduler import EvalGen
from .presenter import Presenter
from .tree import Node, Tree, is_token, node_span, tree_children

from .types import (
    ExitCode,
    Frame,
    InternalError,
    NameNotFound,
    RecursionTooDeep,
    UselessRuntimeError,
    UslBool,
    UslNull,
    UslValue,
)

from .eval.common import expect_ident_token, token_number, token_string
from .eval.blocks import eval_block as _eval_block, eval_program
from .eval.control import eval_break_stmt, eval_if_stmt, eval_loop_stmt, eval_return_stmt, eval_try_stmt
from .eval.fn import eval_call, eval_fn_def
from .eval._await import eval_await_expr
from .eval.objects import eval_array, eval_record

logger = logging.getLogger(__name__)

# Tree labels whose results pass through expression chaos.
_EXPRESSION_LABELS = frozenset({'call', 'await_expr', 'array', 'record'})

def _maybe_attach_location(exc: UselessRuntimeError, node: Node) -> None:
    if exc.span is not None:
        return

    exc.span = node_span(node)

def eval_expr(ast: Node, frame: Optional[Frame]=None, runtime: Optional[Runtime]=None) -> UslValue:
    """Evaluate a single node to completion, driving the promise scheduler."""
    if frame is None:
        runtime = runtime or Runtime.from_config()
        frame = runtime.global_frame()

    return frame.runtime.scheduler.run(eval_node(ast, frame))

@dataclass
class RunResult:
    exit_code: ExitCode
    value: UslValue
    error: Optional[UselessRuntimeError]
    seed: int

def execute(program: Tree, runtime: Optional[Runtime]=None, config: Optional[RuntimeConfig]=None,
            presenter: Optional[Presenter]=None) -> RunResult:
    """
    Run a parsed program as the main task. Uncaught program errors are
    reported through the presenter and mapped to an exit code; internal
    defects propagate.
    """
    if runtime is None:
        runtime = Runtime.from_config(config, presenter)

    frame = runtime.global_frame()
    main = eval_program(tree_children(program), frame, eval_node)

    try:
        value = runtime.scheduler.run(main)
    except UselessRuntimeError as err:
        return _report_uncaught(err, runtime)
    except RecursionError:
        return _report_uncaught(RecursionTooDeep(), runtime)

    return RunResult(exit_code=ExitCode.OK, value=value, error=None, seed=runtime.policy.state.seed)

def _report_uncaught(err: UselessRuntimeError, runtime: Runtime) -> RunResult:
    logger.warning("uncaught %s: %s", err.kind, err)
    runtime.presenter.present_error(str(err))
    code = ExitCode.FATAL if err.fatal else ExitCode.CHAOS

    return RunResult(exit_code=code, value=UslNull(), error=err, seed=runtime.policy.state.seed)

def eval_block(body: Node, frame: Frame) -> EvalGen:
    return _eval_block(body, frame, eval_node)

# ---------------- Core evaluator ----------------

def eval_node(n: Node, frame: Frame) -> EvalGen:
    try:
        if is_token(n):
            value = _eval_token(n, frame)
        else:
            value = yield from _eval_tree(n, frame)
    except UselessRuntimeError as e:
        _maybe_attach_location(e, n)
        raise

    if is_token(n) or n.data in _EXPRESSION_LABELS:
        value = frame.runtime.policy.perturb(value)

    return value

def _eval_tree(n: Tree, frame: Frame) -> EvalGen:
    handler = _NODE_DISPATCH.get(n.data)
    if handler is None:
        raise InternalError(f"No evaluator for node '{n.data}'")

    result = handler(n, frame)

    if inspect.isgenerator(result):
        result = yield from result

    return result

def _eval_token(t: Token, frame: Frame) -> UslValue:
    handler = _TOKEN_DISPATCH.get(t.type)
    if handler is None:
        raise InternalError(f"Unhandled token {t.type}:{t.value}")

    return handler(t, frame)

def _eval_number(t: Token, frame: Frame) -> UslValue:
    return frame.runtime.policy.maybe_party(token_number(t, frame))

def _eval_ident(t: Token, frame: Frame) -> UslValue:
    name = str(t.value)

    if frame.runtime.policy.variable_on_vacation():
        raise NameNotFound(f"Variable '{name}' is on vacation. Try again later.")

    return frame.get(name)

# ---------------- Statements ----------------

def _eval_let_stmt(n: Tree, frame: Frame) -> EvalGen:
    name_node, expr = tree_children(n)
    name = expect_ident_token(name_node, "Binding name")
    value = yield from eval_node(expr, frame)

    if frame.runtime.policy.lose_binding():
        raise NameNotFound(f"Variable '{name}' not found. Have you tried looking under the couch?")

    frame.define(name, value)

    return UslNull()

def _eval_assign_stmt(n: Tree, frame: Frame) -> EvalGen:
    name_node, expr = tree_children(n)
    name = expect_ident_token(name_node, "Assignment target")
    value = yield from eval_node(expr, frame)
    frame.set(name, value)

    return UslNull()

def _eval_expr_stmt(n: Tree, frame: Frame) -> EvalGen:
    children = tree_children(n)
    result = yield from eval_node(children[0], frame)
    return result

_NODE_DISPATCH: Dict[str, Callable[[Tree, Frame], UslValue | EvalGen]] = {
    'let_stmt': _eval_let_stmt,
    'assign_stmt': _eval_assign_stmt,
    'expr_stmt': _eval_expr_stmt,
    'if_stmt': lambda n, frame: eval_if_stmt(n, frame, eval_node),
    'loop_stmt': lambda n, frame: eval_loop_stmt(n, frame, eval_node),
    'fn_def': lambda n, frame: eval_fn_def(n, frame),
    'async_fn_def': lambda n, frame: eval_fn_def(n, frame, is_async=True),
    'return_stmt': lambda n, frame: eval_return_stmt(n, frame, eval_node),
    'break_stmt': lambda n, frame: eval_break_stmt(n, frame, eval_node),
    'try_stmt': lambda n, frame: eval_try_stmt(n, frame, eval_node),
    'block': lambda n, frame: _eval_block(n, frame, eval_node),
    'program': lambda n, frame: eval_program(tree_children(n), frame, eval_node),
    'call': lambda n, frame: eval_call(n, frame, eval_node),
    'await_expr': lambda n, frame: eval_await_expr(n, frame, eval_node),
    'array': lambda n, frame: eval_array(n, frame, eval_node),
    'record': lambda n, frame: eval_record(n, frame, eval_node),
}

_TOKEN_DISPATCH: Dict[str, Callable[[Token, Frame], UslValue]] = {
    'NUMBER': _eval_number,
    'STRING': token_string,
    'TRUE': lambda _t, _frame: UslBool(True),
    'FALSE': lambda _t, _frame: UslBool(False),
    'NULL': lambda _t, _frame: UslNull(),
    'IDENT': _eval_ident,
}
