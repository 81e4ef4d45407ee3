from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ledger_runs.db.models import Run


class RunCreateRequest(BaseModel):
    guild_id: str = Field(min_length=1)
    channel_id: str = ""
    party_ids: list[str] = Field(default_factory=list)
    content_id: str | None = None
    start_scene: str | None = None


class RunStateResponse(BaseModel):
    run_id: str
    guild_id: str
    channel_id: str
    party_ids: list[str]
    content_id: str
    content_version: str
    scene_id: str
    round_id: str
    micro_ix: int
    flags: dict
    sleight_score: int
    turn_order: list[str]
    active_user_id: str | None
    turn_expires_at: datetime | None
    afk_misses: dict
    created_at: datetime
    updated_at: datetime

    @field_serializer("turn_expires_at", "created_at", "updated_at")
    def serialize_utc_datetime(self, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_run(cls, run: Run) -> "RunStateResponse":
        return cls(
            run_id=run.run_id,
            guild_id=run.guild_id,
            channel_id=run.channel_id or "",
            party_ids=list(run.party_ids or []),
            content_id=run.content_id,
            content_version=run.content_version or "",
            scene_id=run.scene_id,
            round_id=run.round_id,
            micro_ix=int(run.micro_ix or 0),
            flags=dict(run.flags or {}),
            sleight_score=int(run.sleight_score or 0),
            turn_order=list(run.turn_order or []),
            active_user_id=run.active_user_id,
            turn_expires_at=run.turn_expires_at,
            afk_misses=dict(run.afk_misses or {}),
            created_at=run.created_at,
            updated_at=run.updated_at,
        )


class ActionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1)
    action_id: str = Field(min_length=1)


class RollOut(BaseModel):
    kind: Literal["crit_success", "success", "fail", "crit_fail"]
    roll: int
    dc: int


class ActionResponse(BaseModel):
    roll: RollOut
    outcome: dict
    summary: str
    tier: str
    completed_scene: str | None = None
    run: RunStateResponse


class AfkSweepRequest(BaseModel):
    now: datetime | None = None


class AfkNotificationOut(BaseModel):
    run_id: str
    user_id: str
    message: str
    channel_id: str


class AfkSweepResponse(BaseModel):
    processed: int
    notifications: list[AfkNotificationOut]


class CheckpointCreateRequest(BaseModel):
    name: str = Field(default="manual", min_length=1, max_length=100)
    note: str = ""


class CheckpointOut(BaseModel):
    checkpoint_id: str
    run_id: str
    name: str
    note: str
    created_at: datetime


class RollbackRequest(BaseModel):
    checkpoint_id: str = Field(min_length=1)


class IntegrityResponse(BaseModel):
    run_id: str
    ok: bool
    issues: list[str]
