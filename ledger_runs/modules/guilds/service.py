from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from ledger_runs.db.models import GuildSettings
from ledger_runs.utils.time import utc_now_naive

GLOBAL_GUILD_ID = "global"


@dataclass(slots=True, frozen=True)
class GuildSettingsView:
    guild_id: str
    difficulty_bias: float = 0.0


def get_guild_settings(db: Session, guild_id: str | None) -> GuildSettingsView:
    if not guild_id:
        return GuildSettingsView(guild_id=GLOBAL_GUILD_ID)
    row = db.get(GuildSettings, guild_id)
    if row is None:
        return GuildSettingsView(guild_id=guild_id)
    bias = float(row.difficulty_bias) if row.difficulty_bias is not None else 0.0
    return GuildSettingsView(guild_id=guild_id, difficulty_bias=bias)


def upsert_guild_settings(db: Session, guild_id: str, *, difficulty_bias: float) -> GuildSettingsView:
    now = utc_now_naive()
    row = db.get(GuildSettings, guild_id)
    if row is None:
        row = GuildSettings(guild_id=guild_id, created_at=now)
        db.add(row)
    row.difficulty_bias = float(difficulty_bias)
    row.updated_at = now
    db.flush()
    return GuildSettingsView(guild_id=guild_id, difficulty_bias=row.difficulty_bias)
