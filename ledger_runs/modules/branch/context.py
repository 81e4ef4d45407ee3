from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_runs.db.models import InventoryItem, Run
from ledger_runs.modules.events.service import (
    CHOICE_EVENT_TYPES,
    EVENT_MORAL_CHOICE,
    EVENT_ROLE_SPECIFIC_ACTION,
    EventLog,
)
from ledger_runs.modules.profiles.service import ProfileStore, focus_max_of, hp_max_of, is_downed, level_of
from ledger_runs.modules.rules.effects import DEFAULT_FOCUS, DEFAULT_HP

DEFAULT_ROLE = "normie"
REDEMPTION_ALIGNMENT = -3
REDEMPTION_STREAK = 3


@dataclass(slots=True, frozen=True)
class ItemView:
    id: str
    rarity: str = "common"


@dataclass(slots=True, frozen=True)
class ChoiceRecord:
    action: str | None
    outcome: str | None
    tags: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class PlayerView:
    id: str
    role: str = DEFAULT_ROLE
    hp: int = DEFAULT_HP
    level: int = 1
    downed: bool = False


@dataclass(slots=True)
class BranchContext:
    run_id: str
    active_player: str
    flags: dict[str, Any] = field(default_factory=dict)
    sleight: int = 0
    items: list[ItemView] = field(default_factory=list)
    choice_history: list[ChoiceRecord] = field(default_factory=list)
    party_size: int = 1
    players: list[PlayerView] = field(default_factory=list)
    hp: int = DEFAULT_HP
    hp_max: int = DEFAULT_HP
    focus: int = DEFAULT_FOCUS
    focus_max: int = DEFAULT_FOCUS
    coins: int = 0

    def active_player_view(self) -> PlayerView | None:
        for player in self.players:
            if player.id == self.active_player:
                return player
        return None

    def has_item(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self.items)

    def legendary_count(self) -> int:
        return sum(1 for item in self.items if item.rarity == "legendary")

    def snapshot(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class EnhancedBranchContext(BranchContext):
    karma_alignment: int = 0
    redemption_arc: bool = False
    total_sleight: int = 0
    party_deaths: int = 0
    party_strength: float = 0.0
    role_interactions: int = 0
    gremlin_interactions: int = 0


def _choice_history(events: EventLog, run_id: str) -> list[ChoiceRecord]:
    out: list[ChoiceRecord] = []
    for event in events.query(run_id, types=CHOICE_EVENT_TYPES):
        payload = event.payload or {}
        roll = payload.get("roll") or {}
        out.append(
            ChoiceRecord(
                action=payload.get("action_id"),
                outcome=roll.get("kind") if isinstance(roll, dict) else None,
                tags=tuple(str(tag) for tag in (payload.get("telemetry_tags") or [])),
            )
        )
    return out


def _inventory_items(db: Session, user_id: str) -> list[ItemView]:
    rows = db.execute(
        select(InventoryItem)
        .where(InventoryItem.user_id == user_id, InventoryItem.kind == "item")
        .order_by(InventoryItem.id.asc())
    ).scalars().all()
    return [ItemView(id=row.item_id, rarity=row.rarity or "common") for row in rows]


def build_branch_context(db: Session, run: Run, events: EventLog | None = None) -> BranchContext:
    events = events or EventLog(db)
    profiles = ProfileStore(db)
    party = [str(uid) for uid in (run.party_ids or []) if uid]
    active = run.active_user_id or (party[0] if party else "")

    players: list[PlayerView] = []
    for user_id in party:
        profile = profiles.get(user_id)
        if profile is None:
            players.append(PlayerView(id=user_id))
            continue
        players.append(
            PlayerView(
                id=user_id,
                role=profile.selected_role or DEFAULT_ROLE,
                hp=int(profile.hp if profile.hp is not None else DEFAULT_HP),
                level=level_of(profile),
                downed=is_downed(profile),
            )
        )

    ctx = BranchContext(
        run_id=run.run_id,
        active_player=active,
        flags=dict(run.flags or {}),
        sleight=int(run.sleight_score or 0),
        items=_inventory_items(db, active) if active else [],
        choice_history=_choice_history(events, run.run_id),
        party_size=len(party),
        players=players,
    )
    active_profile = profiles.get(active) if active else None
    if active_profile is not None:
        ctx.hp = int(active_profile.hp if active_profile.hp is not None else DEFAULT_HP)
        ctx.hp_max = hp_max_of(active_profile)
        ctx.focus = int(active_profile.focus if active_profile.focus is not None else DEFAULT_FOCUS)
        ctx.focus_max = focus_max_of(active_profile)
        ctx.coins = int(active_profile.coins or 0)
    return ctx


def karma_from_choices(choices: list[str]) -> tuple[int, bool]:
    """Alignment and redemption arc from moral choices, newest first."""
    alignment = sum(1 if c == "good" else -1 if c == "evil" else 0 for c in choices)
    recent = choices[:REDEMPTION_STREAK]
    redemption = (
        alignment < REDEMPTION_ALIGNMENT
        and len(recent) == REDEMPTION_STREAK
        and all(c == "good" for c in recent)
    )
    return alignment, redemption


def party_strength(players: list[PlayerView]) -> float:
    total = 0.0
    for player in players:
        health = min(player.hp / DEFAULT_HP, 1.0) if player.hp > 0 else 0.0
        total += health * player.level * 10
    return total


def build_enhanced_context(db: Session, run: Run, events: EventLog | None = None) -> EnhancedBranchContext:
    events = events or EventLog(db)
    base = build_branch_context(db, run, events)

    choices = [
        str((event.payload or {}).get("choice") or "")
        for event in events.query(run.run_id, types=[EVENT_MORAL_CHOICE], newest_first=True)
    ]
    alignment, redemption = karma_from_choices(choices)

    values = {f.name: getattr(base, f.name) for f in fields(BranchContext)}
    return EnhancedBranchContext(
        **values,
        karma_alignment=alignment,
        redemption_arc=redemption,
        total_sleight=base.sleight,
        party_deaths=sum(1 for player in base.players if player.downed),
        party_strength=party_strength(base.players),
        role_interactions=events.count(run.run_id, type=EVENT_ROLE_SPECIFIC_ACTION),
        gremlin_interactions=sum(1 for choice in base.choice_history if "gremlin" in choice.tags),
    )
