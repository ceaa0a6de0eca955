"""Cooperative promise scheduler.

Tasks are evaluator generators. A task runs until it yields an
:class:`AwaitRequest` for a pending promise; the scheduler parks the
continuation on that promise and resumes it once a tick (or another task)
moves the promise out of ``PENDING``. There is no other suspension point.
"""
from __future__ import annotations

import itertools
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Generator, List, Optional, Tuple

from .chaos import ChaosPolicy
from .types import (
    InternalError,
    PromiseAbandoned,
    PromiseRejected,
    SchedulerDeadlock,
    UnknownPromiseHandle,
    UselessRuntimeError,
    UslNull,
    UslPromise,
    UslValue,
)

logger = logging.getLogger(__name__)

class PromiseState(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    ABANDONED = "abandoned"

@dataclass(frozen=True)
class AwaitRequest:
    handle: int

EvalGen = Generator[AwaitRequest, Any, UslValue]

@dataclass(eq=False)
class Task:
    gen: EvalGen
    label: str
    promise: UslPromise
    is_main: bool = False

@dataclass(eq=False)
class PromiseEntry:
    handle: int
    created_at: int
    timeout_ms: Optional[int]
    mind_change: bool = False
    task_backed: bool = False
    state: PromiseState = PromiseState.PENDING
    value: UslValue = field(default_factory=UslNull)
    error: Optional[UselessRuntimeError] = None
    settled_at: Optional[int] = None
    flipped: bool = False
    waiters: List[Tuple[int, Task]] = field(default_factory=list)

Released = List[Tuple[int, Task, PromiseEntry]]

class PromiseScheduler:
    def __init__(self, policy: ChaosPolicy, tick_ms: int=100, default_timeout_ms: int=5000):
        self.policy = policy
        self.tick_ms = tick_ms
        self.default_timeout_ms = default_timeout_ms
        self.clock = 0
        self.ticks = 0
        self._entries: Dict[int, PromiseEntry] = {}
        self._handles = itertools.count(1)
        self._suspensions = itertools.count()
        self._ready: Deque[Tuple[Task, PromiseEntry]] = deque()

    # ---------- promise table ----------

    def create(self, value: UslValue, timeout_ms: Optional[float]=None) -> UslPromise:
        """Register a chance-settled promise carrying `value`."""
        timeout = self._timeout_for(timeout_ms)
        entry = PromiseEntry(
            handle=next(self._handles),
            created_at=self.clock,
            timeout_ms=timeout,
            value=value,
            mind_change=self.policy.flag_mind_change(),
        )
        self._entries[entry.handle] = entry
        logger.debug("promise #%d created (timeout=%sms, mind_change=%s)", entry.handle, timeout, entry.mind_change)

        return UslPromise(entry.handle)

    def _timeout_for(self, timeout_ms: Optional[float]) -> Optional[int]:
        """None picks the default; an infinite timeout never expires."""
        if timeout_ms is None:
            return self.default_timeout_ms

        if math.isnan(timeout_ms):
            raise InternalError("Promise timeout is not a number")

        if math.isinf(timeout_ms):
            return None if timeout_ms > 0 else 0

        return max(0, int(timeout_ms))

    def entry(self, handle: int) -> PromiseEntry:
        try:
            return self._entries[handle]
        except KeyError:
            raise UnknownPromiseHandle(handle) from None

    def state_of(self, promise: UslPromise) -> PromiseState:
        return self.entry(promise.handle).state

    def claim(self, handle: int) -> UslValue:
        """Outcome of a settled promise: its value, or the error it carries."""
        entry = self.entry(handle)

        match entry.state:
            case PromiseState.RESOLVED:
                return entry.value
            case PromiseState.REJECTED:
                if entry.error is None:
                    raise InternalError(f"Promise #{handle} rejected without an error")
                raise entry.error
            case PromiseState.ABANDONED:
                raise PromiseAbandoned(f"Promise #{handle} was abandoned. It might never have resolved anyway.")
            case _:
                raise InternalError(f"Promise #{handle} claimed while pending")

    def has_pending(self) -> bool:
        return any(e.state is PromiseState.PENDING for e in self._entries.values())

    def _has_pending_chance(self) -> bool:
        return any(e.state is PromiseState.PENDING and not e.task_backed for e in self._entries.values())

    def _settle(self, entry: PromiseEntry, state: PromiseState, value: Optional[UslValue]=None,
                error: Optional[UselessRuntimeError]=None) -> Released:
        entry.state = state
        entry.settled_at = self.ticks

        if value is not None:
            entry.value = value
        entry.error = error

        logger.debug("promise #%d %s at t=%dms", entry.handle, state.value, self.clock)
        released = [(seq, task, entry) for seq, task in entry.waiters]
        entry.waiters = []

        return released

    def _flip(self, entry: PromiseEntry) -> None:
        entry.flipped = True

        if entry.state is PromiseState.RESOLVED:
            entry.state = PromiseState.REJECTED
            entry.error = PromiseRejected(f"Promise #{entry.handle} changed its mind.")
        else:
            entry.state = PromiseState.RESOLVED
            entry.error = None

        logger.debug("promise #%d changed its mind: now %s", entry.handle, entry.state.value)

    # ---------- tasks ----------

    def spawn(self, gen: EvalGen, label: str, is_main: bool=False) -> UslPromise:
        """Run `gen` up to its first suspension; its outcome settles the returned promise."""
        entry = PromiseEntry(handle=next(self._handles), created_at=self.clock, timeout_ms=None, task_backed=True)
        self._entries[entry.handle] = entry
        task = Task(gen=gen, label=label, promise=UslPromise(entry.handle), is_main=is_main)
        logger.debug("task %s spawned as promise #%d", label, entry.handle)
        self._step(task)

        return task.promise

    def _step(self, task: Task, send: Optional[UslValue]=None, error: Optional[UselessRuntimeError]=None) -> None:
        entry = self.entry(task.promise.handle)

        try:
            if error is not None:
                request = task.gen.throw(error)
            else:
                request = task.gen.send(send)
        except StopIteration as stop:
            value = stop.value if stop.value is not None else UslNull()
            self._release(self._settle(entry, PromiseState.RESOLVED, value=value))
            return
        except UselessRuntimeError as err:
            if err.fatal or task.is_main:
                raise
            logger.debug("task %s rejected: %s", task.label, err)
            self._release(self._settle(entry, PromiseState.REJECTED, error=err))
            return

        self._suspend(task, request)

    def _suspend(self, task: Task, request: object) -> None:
        if not isinstance(request, AwaitRequest):
            raise InternalError(f"Task {task.label} yielded {request!r}")

        target = self.entry(request.handle)
        if target.state is not PromiseState.PENDING:
            self._ready.append((task, target))
            return

        target.waiters.append((next(self._suspensions), task))

    def _release(self, released: Released) -> None:
        released.sort(key=lambda item: item[0])
        self._ready.extend((task, entry) for _, task, entry in released)

    def _drain(self) -> None:
        while self._ready:
            task, entry = self._ready.popleft()

            match entry.state:
                case PromiseState.RESOLVED:
                    self._step(task, send=entry.value)
                case PromiseState.REJECTED:
                    self._step(task, error=entry.error)
                case PromiseState.ABANDONED:
                    self._step(task, error=PromiseAbandoned(f"Promise #{entry.handle} was abandoned. It might never have resolved anyway."))
                case _:
                    raise InternalError(f"Task {task.label} resumed on pending promise #{entry.handle}")

    # ---------- clock ----------

    def tick(self) -> None:
        self.ticks += 1
        self.clock += self.tick_ms
        released: Released = []

        for entry in list(self._entries.values()):
            if entry.task_backed:
                continue

            if entry.state is PromiseState.PENDING:
                outcome = self.policy.pick_settlement()

                if outcome == "resolve":
                    released += self._settle(entry, PromiseState.RESOLVED)
                elif outcome == "abandon":
                    released += self._settle(entry, PromiseState.ABANDONED)
                elif entry.timeout_ms is not None and self.clock - entry.created_at > entry.timeout_ms:
                    logger.debug("promise #%d timed out after %dms", entry.handle, entry.timeout_ms)
                    released += self._settle(entry, PromiseState.ABANDONED)
                continue

            if (entry.mind_change and not entry.flipped
                    and entry.state in (PromiseState.RESOLVED, PromiseState.REJECTED)
                    and entry.settled_at is not None and entry.settled_at < self.ticks):
                if self.policy.change_mind():
                    self._flip(entry)

        self._release(released)

    def run(self, gen: EvalGen, label: str="main") -> UslValue:
        """Drive `gen` as the main task until it finishes and nothing is pending."""
        main = self.spawn(gen, label, is_main=True)

        while True:
            self._drain()

            if not self.has_pending():
                break

            if not self._has_pending_chance():
                raise SchedulerDeadlock("Tasks are suspended on promises that can never settle")

            self.tick()

        return self.claim(main.handle)
