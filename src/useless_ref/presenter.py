"""Presenter capability: where `print` output and uncaught errors go."""
from __future__ import annotations

import sys
from typing import List, Optional, TextIO, Tuple

from typing_extensions import Protocol

from .types import UslValue

class Presenter(Protocol):
    def present(self, value: UslValue) -> None: ...

    def present_error(self, message: str) -> None: ...

class ConsolePresenter:
    def __init__(self, out: Optional[TextIO]=None, err: Optional[TextIO]=None):
        self._out = out
        self._err = err

    def present(self, value: UslValue) -> None:
        from .eval.common import stringify
        print(stringify(value), file=self._out or sys.stdout)

    def present_error(self, message: str) -> None:
        print(message, file=self._err or sys.stderr)

class RecordingPresenter:
    """Keeps every call in order; used by tests and embedders."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, object]] = []

    def present(self, value: UslValue) -> None:
        self.calls.append(("present", value))

    def present_error(self, message: str) -> None:
        self.calls.append(("present_error", message))

    @property
    def values(self) -> List[UslValue]:
        return [payload for kind, payload in self.calls if kind == "present"]  # type: ignore[misc]

    @property
    def errors(self) -> List[str]:
        return [str(payload) for kind, payload in self.calls if kind == "present_error"]
