import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_runs.db.base import Base
from ledger_runs.db.types import GUID, JSONType
from ledger_runs.utils.time import utc_now_naive


class Run(Base):
    __tablename__ = "runs"

    run_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    guild_id: Mapped[str] = mapped_column(String(64), index=True)
    channel_id: Mapped[str] = mapped_column(String(64), default="")
    party_ids: Mapped[list] = mapped_column(JSONType, default=list)
    content_id: Mapped[str] = mapped_column(String(64))
    content_version: Mapped[str] = mapped_column(String(32), default="")
    scene_id: Mapped[str] = mapped_column(String(64))
    round_id: Mapped[str] = mapped_column(String(96))
    micro_ix: Mapped[int] = mapped_column(Integer, default=1)
    rng_seed: Mapped[str] = mapped_column(String(32), default="")
    flags: Mapped[dict] = mapped_column(JSONType, default=dict)
    sleight_score: Mapped[int] = mapped_column(Integer, default=0)
    sleight_history: Mapped[list] = mapped_column(JSONType, default=list)
    turn_order: Mapped[list] = mapped_column(JSONType, default=list)
    active_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    turn_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    afk_misses: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, default=1)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    hp: Mapped[int] = mapped_column(Integer, default=20)
    hp_max: Mapped[int] = mapped_column(Integer, default=20)
    focus: Mapped[int] = mapped_column(Integer, default=10)
    focus_max: Mapped[int] = mapped_column(Integer, default=10)
    coins: Mapped[int] = mapped_column(Integer, default=0)
    gems: Mapped[int] = mapped_column(Integer, default=0)
    fragments: Mapped[int] = mapped_column(Integer, default=0)
    selected_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    downed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(32), index=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    type: Mapped[str] = mapped_column(String(64), index=True)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict)
    ts: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)


class InventoryItem(Base):
    __tablename__ = "inventories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    item_id: Mapped[str] = mapped_column(String(96))
    kind: Mapped[str] = mapped_column(String(16), default="item")
    rarity: Mapped[str] = mapped_column(String(32), default="common")
    qty: Mapped[int] = mapped_column(Integer, default=1)
    source_run_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)


class EquipmentLoadout(Base):
    __tablename__ = "equipment_loadouts"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slot: Mapped[str] = mapped_column(String(16), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(96))
    durability: Mapped[int] = mapped_column(Integer, default=100)
    max_durability: Mapped[int] = mapped_column(Integer, default=100)
    set_key: Mapped[str | None] = mapped_column(String(32), nullable=True)
    equipped_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)


class GuildSettings(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    difficulty_bias: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class DifficultySnapshot(Base):
    __tablename__ = "difficulty_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(32), index=True)
    user_id: Mapped[str] = mapped_column(String(64))
    action_id: Mapped[str] = mapped_column(String(96))
    tier: Mapped[str] = mapped_column(String(16))
    dc_offset: Mapped[int] = mapped_column(Integer, default=0)
    avg_level: Mapped[float] = mapped_column(Float, default=1.0)
    avg_power: Mapped[float] = mapped_column(Float, default=0.0)
    debuff_bias: Mapped[float] = mapped_column(Float, default=0.0)
    guild_bias: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)


class RunCheckpoint(Base):
    __tablename__ = "run_checkpoints"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    run_id: Mapped[str] = mapped_column(String(32), index=True)
    name: Mapped[str] = mapped_column(String(100), default="manual")
    state_blob: Mapped[dict] = mapped_column(JSONType, default=dict)
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)


Index("ix_events_run_type_ts", Event.run_id, Event.type, Event.ts)
