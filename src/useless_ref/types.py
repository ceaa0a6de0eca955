from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from lark import Tree
from typing_extensions import TypeAlias

if TYPE_CHECKING:
    from .runtime import Runtime

# ---------- Value Model ----------

@dataclass
class UslNull:
    def __repr__(self) -> str:
        return "null"

@dataclass
class UslNumber:
    value: float
    def __repr__(self) -> str:
        v = self.value
        return str(int(v)) if float(v).is_integer() else str(v)

@dataclass
class UslText:
    value: str
    def __repr__(self) -> str:
        return f'"{self.value}"'

@dataclass
class UslBool:
    value: bool
    def __repr__(self) -> str:
        return "true" if self.value else "false"

@dataclass
class UslArray:
    items: List['UslValue']
    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

@dataclass
class UslRecord:
    slots: Dict[str, 'UslValue']
    def __repr__(self) -> str:
        pairs = []

        for k, v in self.slots.items():
            pairs.append(f'"{k}": {repr(v)}')

        return "{ " + ", ".join(pairs) + " }"

@dataclass(eq=False)
class UslFn:
    name: str
    params: List[str]
    body: Tree                # block node
    frame: 'Frame'            # captured defining scope, shared
    is_async: bool = False
    def __repr__(self) -> str:
        label = "async fn" if self.is_async else "fn"
        return f"<{label} {self.name}({', '.join(self.params)})>"

BuiltinFn = Callable[['Frame', List['UslValue']], 'UslValue']

@dataclass(frozen=True)
class BuiltinFunction:
    name: str
    fn: BuiltinFn
    arity: Optional[Tuple[int, int]] = None
    def __repr__(self) -> str:
        return f"<builtin {self.name}>"

@dataclass(frozen=True)
class UslPromise:
    """Handle into the scheduler's promise table."""
    handle: int
    def __repr__(self) -> str:
        return f"<promise #{self.handle}>"

UslValue: TypeAlias = (
    UslNull
    | UslNumber
    | UslText
    | UslBool
    | UslArray
    | UslRecord
    | UslFn
    | BuiltinFunction
    | UslPromise
)

# ---------- Environment ----------

class Frame:
    """One lexical scope. Closures keep their defining Frame alive."""

    def __init__(self, parent: Optional['Frame']=None, runtime: Optional['Runtime']=None):
        self.parent = parent
        self.vars: Dict[str, UslValue] = {}
        self._is_function_frame = False

        if runtime is not None:
            self.runtime = runtime
        elif parent is not None:
            self.runtime = parent.runtime
        else:
            self.runtime = None

        if parent is None and Builtins.functions:
            for name, builtin in Builtins.functions.items():
                self.vars[name] = builtin

    def define(self, name: str, val: UslValue) -> None:
        self.vars[name] = val

    def get(self, name: str) -> UslValue:
        if name in self.vars:
            return self.vars[name]

        if self.parent is not None:
            return self.parent.get(name)

        raise NameNotFound(f"Variable '{name}' not found. Have you tried looking under the couch?")

    def set(self, name: str, val: UslValue) -> None:
        if name in self.vars:
            self.vars[name] = val
            return

        if self.parent is not None:
            self.parent.set(name, val)
            return

        raise NameNotFound(f"Variable '{name}' not found. Have you tried looking under the couch?")

    def child(self) -> 'Frame':
        return Frame(parent=self)

    def mark_function_frame(self) -> None:
        self._is_function_frame = True

    def is_function_frame(self) -> bool:
        return self._is_function_frame

class Builtins:
    functions: Dict[str, BuiltinFunction] = {}

# ---------- Errors ----------

class UselessRuntimeError(Exception):
    fatal = False

    def __init__(self, message: str, span: Optional[Tuple[int, int]]=None):
        super().__init__(message)
        self.message = message
        self.span = span

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.span is None:
            return self.message

        line, col = self.span
        return f"{self.message} (line {line}, col {col})"

class NameNotFound(UselessRuntimeError):
    pass

class TypeMismatch(UselessRuntimeError):
    pass

class DivisionByZero(UselessRuntimeError):
    def __init__(self, message: str = "Division by zero. Congratulations, you've broken mathematics!"):
        super().__init__(message)

class IndexOutOfVacation(UselessRuntimeError):
    pass

class EmptyRecordAccess(UselessRuntimeError):
    def __init__(self, message: str = "This record is empty. Its fields are all on vacation."):
        super().__init__(message)

class FieldNotFound(UselessRuntimeError):
    def __init__(self, key: str):
        super().__init__(f"Field '{key}' not found. It probably never existed.")
        self.key = key

class PromiseAbandoned(UselessRuntimeError):
    pass

class PromiseRejected(UselessRuntimeError):
    pass

class ControlFlowMisuse(UselessRuntimeError):
    pass

class RecursionTooDeep(UselessRuntimeError):
    def __init__(self, message: str = "Recursion went deeper than anyone is willing to follow. Try fewer mirrors."):
        super().__init__(message)

class TeapotError(UselessRuntimeError):
    def __init__(self, message: str = "Error 418: I'm a teapot. Yes, really. No, I won't make coffee."):
        super().__init__(message)

class SaveAlwaysFails(UselessRuntimeError):
    fatal = True

    def __init__(self, message: str = "Saving is overrated. Maybe try writing it down with a crayon instead?"):
        super().__init__(message)

class InternalError(RuntimeError):
    """Engine defect; never part of the program-visible taxonomy."""

class UnknownPromiseHandle(InternalError):
    def __init__(self, handle: int):
        super().__init__(f"No promise with handle {handle}")
        self.handle = handle

class SchedulerDeadlock(InternalError):
    pass

class ReturnSignal(Exception):
    """Internal control-flow exception used to implement `return`."""
    def __init__(self, value: UslValue):
        self.value = value

class BreakSignal(Exception):
    """Internal control flow for `break`."""

class ExitCode(IntEnum):
    OK = 0
    CHAOS = 1
    FATAL = 2
    PARSE = 3
