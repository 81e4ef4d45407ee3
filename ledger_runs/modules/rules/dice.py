from __future__ import annotations

import random
from dataclasses import dataclass

CRIT_SUCCESS = "crit_success"
SUCCESS = "success"
FAIL = "fail"
CRIT_FAIL = "crit_fail"
OUTCOME_KINDS = (CRIT_SUCCESS, SUCCESS, FAIL, CRIT_FAIL)

DIE_FACES = 20


@dataclass(slots=True, frozen=True)
class RollResult:
    kind: str
    roll: int
    dc: int

    def as_dict(self) -> dict:
        return {"kind": self.kind, "roll": self.roll, "dc": self.dc}


def classify_roll(roll: int, dc: int) -> str:
    # Crit bounds are checked before the DC so they hold for any dc.
    if roll >= DIE_FACES:
        return CRIT_SUCCESS
    if roll == 1:
        return CRIT_FAIL
    if roll >= dc:
        return SUCCESS
    return FAIL


def roll_die(rng: random.Random | None = None) -> int:
    source = rng if rng is not None else random
    return int(source.randint(1, DIE_FACES))


def roll_check(dc_base: int, dc_offset: int, rng: random.Random | None = None) -> RollResult:
    roll = roll_die(rng)
    dc = int(dc_base) + int(dc_offset)
    return RollResult(kind=classify_roll(roll, dc), roll=roll, dc=dc)
