from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from ledger_runs.db.models import InventoryItem, Profile
from ledger_runs.modules.rules.effects import DEFAULT_FOCUS, DEFAULT_HP, LiveStats, PendingDeltas
from ledger_runs.modules.run.errors import ProfileNotFoundError
from ledger_runs.utils.time import utc_now_naive


def hp_max_of(profile: Profile) -> int:
    return int(profile.hp_max) if profile.hp_max and profile.hp_max > 0 else DEFAULT_HP


def focus_max_of(profile: Profile) -> int:
    return int(profile.focus_max) if profile.focus_max and profile.focus_max > 0 else DEFAULT_FOCUS


def level_of(profile: Profile | None) -> int:
    if profile is None:
        return 1
    try:
        level = int(profile.level)
    except (TypeError, ValueError):
        return 1
    return level if level > 0 else 1


def is_downed(profile: Profile | None) -> bool:
    return bool(profile is not None and profile.downed_at is not None)


def write_hp(profile: Profile, hp: int, now: datetime | None = None) -> None:
    """Clamp hp into ``[0, hp_max]`` and keep ``downed_at`` in step with it."""
    profile.hp = max(0, min(hp_max_of(profile), int(hp)))
    if profile.hp == 0:
        if profile.downed_at is None:
            profile.downed_at = now or utc_now_naive()
    else:
        profile.downed_at = None


def write_focus(profile: Profile, focus: int) -> None:
    profile.focus = max(0, min(focus_max_of(profile), int(focus)))


class ProfileStore:
    """Read/update access to externally owned profiles; never creates rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: str) -> Profile | None:
        return self.db.get(Profile, user_id)

    def require(self, user_id: str) -> Profile:
        profile = self.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile

    def commit(
        self,
        user_id: str,
        *,
        stats: LiveStats | None = None,
        deltas: PendingDeltas | None = None,
        coin_loss_protection: bool = False,
        fragments_boost: int = 0,
        rarity_of: Callable[[str], str] | None = None,
        source_run_id: str | None = None,
        now: datetime | None = None,
    ) -> Profile:
        profile = self.require(user_id)
        now = now or utc_now_naive()
        if stats is not None:
            write_hp(profile, stats.hp, now)
            write_focus(profile, stats.focus)
        if deltas is not None:
            coins = int(deltas.coins)
            if coins < 0 and coin_loss_protection:
                coins = 0
            profile.coins = max(0, int(profile.coins or 0) + coins)
            profile.xp = max(0, int(profile.xp or 0) + int(deltas.xp))
            profile.gems = max(0, int(profile.gems or 0) + int(deltas.gems))
            fragments = int(deltas.fragments)
            if fragments > 0:
                fragments += max(0, int(fragments_boost))
            profile.fragments = max(0, int(profile.fragments or 0) + fragments)
            self._append_inventory(user_id, "item", deltas.items, rarity_of, source_run_id, now)
            self._append_inventory(user_id, "buff", deltas.buffs, rarity_of, source_run_id, now)
            self._append_inventory(user_id, "debuff", deltas.debuffs, rarity_of, source_run_id, now)
        self.db.flush()
        return profile

    def _append_inventory(
        self,
        user_id: str,
        kind: str,
        ids: list[str],
        rarity_of: Callable[[str], str] | None,
        source_run_id: str | None,
        now: datetime,
    ) -> None:
        for item_id in ids:
            if not item_id:
                continue
            self.db.add(
                InventoryItem(
                    user_id=user_id,
                    item_id=item_id,
                    kind=kind,
                    rarity=rarity_of(item_id) if rarity_of and kind == "item" else "common",
                    qty=1,
                    source_run_id=source_run_id,
                    created_at=now,
                )
            )
