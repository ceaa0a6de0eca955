"""Seeded decision engine behind every chaos point in the runtime.

Each public method on :class:`ChaosPolicy` is one named decision. Decisions
consume draws from a single :class:`ChaosState`, so a fixed seed and the same
sequence of chaos points replay identically. Deterministic rules (bounds
errors, else-always, loop-once) never consume a draw.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Optional

from .types import (
    EmptyRecordAccess,
    IndexOutOfVacation,
    InternalError,
    UslBool,
    UslNumber,
    UslText,
    UslValue,
)

logger = logging.getLogger(__name__)

PARTY = "\N{PARTY POPPER}\N{CONFETTI BALL}\N{BALLOON}"
# a huge literal parties this many times and no more
PARTY_LIMIT = 100

@dataclass(frozen=True)
class ChaosTable:
    """Probability of each misbehavior. Defaults are the language contract."""

    randomize_expression: float = 0.25
    flip_opposite: float = 0.30
    flip_text: float = 0.20
    flip_number: float = 0.20
    add_multiply: float = 0.20
    multiply_add: float = 0.20
    index_shuffle: float = 0.70
    field_shuffle: float = 0.30
    comparison_error_surfaces: float = 0.50
    variable_vacation: float = 0.15
    number_party: float = 0.10
    let_lost: float = 0.20
    print_browser_error: float = 0.10
    teapot: float = 0.02
    settle_resolve: float = 0.50
    settle_abandon: float = 0.10
    mind_change: float = 0.10
    mind_change_flip: float = 0.50

    @classmethod
    def calm(cls) -> 'ChaosTable':
        """Everything optional switched off; add still subtracts and multiply still divides."""
        return cls(
            randomize_expression=0.0,
            flip_opposite=0.0,
            flip_text=0.0,
            flip_number=0.0,
            add_multiply=0.0,
            multiply_add=0.0,
            index_shuffle=0.0,
            field_shuffle=0.0,
            comparison_error_surfaces=1.0,
            variable_vacation=0.0,
            number_party=0.0,
            let_lost=0.0,
            print_browser_error=0.0,
            teapot=0.0,
            settle_resolve=1.0,
            settle_abandon=0.0,
            mind_change=0.0,
            mind_change_flip=0.0,
        )

class ChaosState:
    """Owned RNG state. Seeded lazily on the first draw."""

    def __init__(self, seed: Optional[int]=None):
        self._seed = seed
        self._rng: Optional[random.Random] = None
        self.draws = 0

    @property
    def seed(self) -> int:
        self._ensure()
        if self._seed is None:
            raise InternalError("Chaos state has no seed after seeding")
        return self._seed

    def _ensure(self) -> random.Random:
        if self._rng is None:
            if self._seed is None:
                self._seed = random.SystemRandom().getrandbits(64)
                logger.info("no seed given; chose %d", self._seed)
            self._rng = random.Random(self._seed)

        return self._rng

    def random(self) -> float:
        self.draws += 1
        return self._ensure().random()

    def randrange(self, stop: int) -> int:
        self.draws += 1
        return self._ensure().randrange(stop)

class ChaosPolicy:
    def __init__(self, state: Optional[ChaosState]=None, table: Optional[ChaosTable]=None):
        self.state = state if state is not None else ChaosState()
        self.table = table if table is not None else ChaosTable()

    def _roll(self, probability: float) -> bool:
        return self.state.random() < probability

    def random_boolean(self) -> bool:
        return self._roll(0.5)

    # ---------- expression results ----------

    def maybe_randomize_expression_result(self, value: UslValue) -> UslValue:
        if self._roll(self.table.randomize_expression):
            replaced = UslBool(self.random_boolean())
            logger.debug("expression result %r replaced by %r", value, replaced)
            return replaced

        return value

    def maybe_flip_boolean(self, value: UslValue) -> UslValue:
        if not isinstance(value, UslBool):
            return value

        t = self.table
        b = value.value
        x = self.state.random()

        if x < t.flip_opposite:
            flipped: UslValue = UslBool(not b)
        # the text and number spellings encode the opposite truth value
        elif x < t.flip_opposite + t.flip_text:
            flipped = UslText("false" if b else "true")
        elif x < t.flip_opposite + t.flip_text + t.flip_number:
            flipped = UslNumber(0.0 if b else 1.0)
        else:
            return value

        logger.debug("boolean %r flipped to %r", value, flipped)
        return flipped

    def perturb(self, value: UslValue) -> UslValue:
        """Both expression-result rules, in order."""
        return self.maybe_flip_boolean(self.maybe_randomize_expression_result(value))

    # ---------- arithmetic ----------

    def pick_arith_alt(self, op: str) -> str:
        match op:
            case "add":
                alt = "multiply" if self._roll(self.table.add_multiply) else "subtract"
            case "multiply":
                alt = "add" if self._roll(self.table.multiply_add) else "divide"
            case _:
                raise InternalError(f"No alternate operation for {op!r}")

        logger.debug("%s performed as %s", op, alt)
        return alt

    # ---------- containers ----------

    def pick_container_index(self, length: int, requested: int) -> int:
        if not 0 <= requested < length:
            bounds = f"0..{length - 1}" if length else "nothing"
            raise IndexOutOfVacation(f"Index {requested} is on vacation (valid range is {bounds})")

        if self._roll(self.table.index_shuffle):
            chosen = self.state.randrange(length)
            logger.debug("index %d redirected to %d", requested, chosen)
            return chosen

        return requested

    def pick_field(self, slots: Dict[str, UslValue], requested: str) -> str:
        if not slots:
            raise EmptyRecordAccess()

        if self._roll(self.table.field_shuffle):
            keys = list(slots)
            chosen = keys[self.state.randrange(len(keys))]
            logger.debug("field %r redirected to %r", requested, chosen)
            return chosen

        return requested

    def surface_comparison_error(self) -> bool:
        return self._roll(self.table.comparison_error_surfaces)

    # ---------- control flow ----------

    def invert_branch_always(self) -> bool:
        return True

    def loop_once(self) -> int:
        return 1

    # ---------- side channels ----------

    def _side_channel(self, label: str, probability: float) -> bool:
        fired = self._roll(probability)
        if fired:
            logger.debug("%s fired", label)
        return fired

    def variable_on_vacation(self) -> bool:
        return self._side_channel("variable vacation", self.table.variable_vacation)

    def print_fails(self) -> bool:
        return self._side_channel("print browser error", self.table.print_browser_error)

    def teapot(self) -> bool:
        return self._side_channel("teapot", self.table.teapot)

    def lose_binding(self) -> bool:
        return self._side_channel("lost let binding", self.table.let_lost)

    # ---------- literals ----------

    def maybe_party(self, value: UslNumber) -> UslValue:
        """A number literal may turn into one party per unit of its magnitude."""
        if not self._roll(self.table.number_party):
            return value

        magnitude = abs(value.value)
        repeats = PARTY_LIMIT if not math.isfinite(magnitude) else min(int(magnitude), PARTY_LIMIT)
        partied = UslText(PARTY * repeats)
        logger.debug("number %r became %d parties", value, repeats)

        return partied

    # ---------- promises ----------

    def pick_settlement(self) -> str:
        x = self.state.random()

        if x < self.table.settle_resolve:
            return "resolve"

        if x < self.table.settle_resolve + self.table.settle_abandon:
            return "abandon"

        return "pending"

    def flag_mind_change(self) -> bool:
        return self._roll(self.table.mind_change)

    def change_mind(self) -> bool:
        return self._roll(self.table.mind_change_flip)
