from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .chaos import ChaosPolicy, ChaosState, ChaosTable
from .presenter import ConsolePresenter, Presenter
from .scheduler import EvalGen, PromiseScheduler
from .types import (
    BuiltinFn,
    BuiltinFunction,
    Builtins,
    ControlFlowMisuse,
    Frame,
    BreakSignal,
    RecursionTooDeep,
    ReturnSignal,
    TeapotError,
    TypeMismatch,
    UslFn,
    UslNull,
    UslPromise,
    UslValue,
)

_STDLIB_INITIALIZED = False

def init_stdlib() -> None:
    """Load the builtin module (idempotent) so register_builtin hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    importlib.import_module("useless_ref.stdlib")
    _STDLIB_INITIALIZED = True

def register_builtin(name: str, *, arity: Optional[Tuple[int, int]]=None) -> Callable[[BuiltinFn], BuiltinFn]:
    def dec(fn: BuiltinFn) -> BuiltinFn:
        Builtins.functions[name] = BuiltinFunction(name=name, fn=fn, arity=arity)
        return fn

    return dec

@dataclass(frozen=True)
class RuntimeConfig:
    seed: Optional[int] = None
    table: ChaosTable = field(default_factory=ChaosTable)
    tick_ms: int = 100
    default_timeout_ms: int = 5000

@dataclass
class Runtime:
    """Everything one program run owns: chaos state, promise table, presenter."""
    policy: ChaosPolicy
    scheduler: PromiseScheduler
    presenter: Presenter

    @classmethod
    def from_config(cls, config: Optional[RuntimeConfig]=None, presenter: Optional[Presenter]=None) -> 'Runtime':
        config = config or RuntimeConfig()
        policy = ChaosPolicy(ChaosState(config.seed), config.table)
        scheduler = PromiseScheduler(policy, tick_ms=config.tick_ms, default_timeout_ms=config.default_timeout_ms)

        return cls(policy=policy, scheduler=scheduler, presenter=presenter or ConsolePresenter())

    def global_frame(self) -> Frame:
        init_stdlib()
        return Frame(runtime=self)

def call_builtin(builtin: BuiltinFunction, args: List[UslValue], frame: Frame) -> UslValue:
    if builtin.arity is not None:
        lo, hi = builtin.arity

        if not lo <= len(args) <= hi:
            expected = str(lo) if lo == hi else f"{lo} to {hi}"
            raise TypeMismatch(f"{builtin.name} expects {expected} argument(s); got {len(args)}")

    result = builtin.fn(frame, args)

    if frame.runtime.policy.teapot():
        raise TeapotError()

    return result

def call_uslfn(fn: UslFn, positional: List[UslValue], caller_frame: Frame) -> UslValue | EvalGen:
    """
    Plain functions return a generator the caller drives with `yield from`.
    Async functions are handed to the scheduler and return their promise.
    """
    if len(positional) != len(fn.params):
        raise TypeMismatch(f"Function {fn.name} expects {len(fn.params)} args; got {len(positional)}")

    if fn.is_async:
        scheduler = caller_frame.runtime.scheduler
        promise: UslPromise = scheduler.spawn(_call_uslfn_raw(fn, positional), label=fn.name)
        return promise

    return _call_uslfn_raw(fn, positional)

def _call_uslfn_raw(fn: UslFn, positional: List[UslValue]) -> EvalGen:
    from .evaluator import eval_block  # local import to avoid cycle

    callee_frame = fn.frame.child()

    for name, val in zip(fn.params, positional):
        callee_frame.define(name, val)

    callee_frame.mark_function_frame()

    try:
        yield from eval_block(fn.body, callee_frame)
    except ReturnSignal as signal:
        return signal.value
    except BreakSignal:
        raise ControlFlowMisuse("break outside of a loop") from None
    except RecursionError:
        raise RecursionTooDeep(f"{fn.name} recursed deeper than anyone is willing to follow") from None

    return UslNull()
