from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger_runs.modules.content.aliases import normalize_scene_code

EffectType = Literal["hp", "focus", "coins", "xp", "flag", "item", "fragment", "gem", "buff", "debuff"]
EffectOp = Literal["+", "-", "="]
OutcomeKind = Literal["crit_success", "success", "fail", "crit_fail"]
NEUTRAL_TAG = "neutral"


class _ContentModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Effect(_ContentModel):
    type: EffectType
    op: EffectOp = "+"
    value: int | float | bool | str | None = None
    id: str | None = None
    target: str | None = None


class Outcome(_ContentModel):
    effects: list[Effect] = Field(default_factory=list)
    narration: str | None = None
    next_hint: str | None = None


class RollSpec(_ContentModel):
    kind: str = "phi_d20"
    tags: list[str] = Field(default_factory=list)


class ActionDef(_ContentModel):
    id: str
    label: str = ""
    roll: RollSpec | None = None
    outcomes: dict[OutcomeKind, Outcome] = Field(default_factory=dict)
    banter: dict[str, str] = Field(default_factory=dict)
    telemetry_tags: list[str] = Field(default_factory=list)

    @property
    def roll_tags(self) -> list[str]:
        return list(self.roll.tags) if self.roll else []

    @property
    def is_neutral(self) -> bool:
        return NEUTRAL_TAG in self.telemetry_tags or NEUTRAL_TAG in self.roll_tags


class RoundDef(_ContentModel):
    round_id: str
    description: str = ""
    actions: list[ActionDef] = Field(default_factory=list)

    def action(self, action_id: str) -> ActionDef | None:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def default_action(self) -> ActionDef | None:
        """Action forced on an idle player: first neutral-tagged, else first."""
        for action in self.actions:
            if action.is_neutral:
                return action
        return self.actions[0] if self.actions else None


class ThresholdReward(_ContentModel):
    sleight_gte: int | None = None
    rewards: list[Effect] = Field(default_factory=list)


class Arrival(_ContentModel):
    when: str
    goto: str

    @field_validator("goto", mode="before")
    @classmethod
    def _normalize_goto(cls, value: object) -> str:
        return normalize_scene_code(str(value or ""))

    @property
    def flag_name(self) -> str | None:
        when = self.when.strip()
        if not when.startswith("flags"):
            return None
        _, _, name = when.partition(".")
        return name or None

    @property
    def is_else(self) -> bool:
        return self.when.strip() == "else"


class SceneDef(_ContentModel):
    scene_id: str
    content_id: str = ""
    book_id: str = ""
    title: str = ""
    narration: str = ""
    rounds: list[RoundDef] = Field(default_factory=list)
    threshold_rewards: list[ThresholdReward] = Field(default_factory=list)
    arrivals: list[Arrival] = Field(default_factory=list)

    @property
    def round_ids(self) -> list[str]:
        return [r.round_id for r in self.rounds]

    def round(self, round_id: str) -> RoundDef | None:
        for round_def in self.rounds:
            if round_def.round_id == round_id:
                return round_def
        return None


class Manifest(_ContentModel):
    content_id: str
    version: str = "1"
    book_name: str = ""
    scenes: list[str] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: object) -> str:
        return str(value if value is not None else "1")
