from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ledger_runs.modules.content.schemas import Effect, Outcome, ThresholdReward
from ledger_runs.modules.rules.dice import FAIL, SUCCESS

DEFAULT_HP = 20
DEFAULT_FOCUS = 10


@dataclass(slots=True)
class LiveStats:
    """Authoritative hp/focus values, floor-clamped while effects fold in."""

    hp: int = DEFAULT_HP
    focus: int = DEFAULT_FOCUS


@dataclass(slots=True)
class PendingDeltas:
    """Accumulated changes that are only applied when the profile commits."""

    coins: int = 0
    xp: int = 0
    fragments: int = 0
    gems: int = 0
    items: list[str] = field(default_factory=list)
    buffs: list[str] = field(default_factory=list)
    debuffs: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.coins or self.xp or self.fragments or self.gems or self.items or self.buffs or self.debuffs)


@dataclass(slots=True)
class EffectScratch:
    flags: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, LiveStats] = field(default_factory=dict)
    deltas: dict[str, PendingDeltas] = field(default_factory=dict)

    def seed(self, user_id: str, *, hp: int, focus: int) -> LiveStats:
        stats = LiveStats(hp=int(hp), focus=int(focus))
        self.stats[user_id] = stats
        return stats

    def stats_for(self, user_id: str) -> LiveStats:
        stats = self.stats.get(user_id)
        if stats is None:
            stats = LiveStats()
            self.stats[user_id] = stats
        return stats

    def deltas_for(self, user_id: str) -> PendingDeltas:
        deltas = self.deltas.get(user_id)
        if deltas is None:
            deltas = PendingDeltas()
            self.deltas[user_id] = deltas
        return deltas


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _signed(effect: Effect) -> int:
    amount = _as_int(effect.value)
    return -amount if effect.op == "-" else amount


def _fmt(delta: int) -> str:
    return f"+{delta}" if delta >= 0 else str(delta)


def apply_effects(effects: Iterable[Effect] | None, scratch: EffectScratch, user_id: str) -> str:
    """Fold outcome effects into ``scratch`` and return a human-readable summary.

    ``=`` is an absolute assignment only for hp and focus. Coins, xp, fragments and
    gems are pending deltas, so ``=`` on them adds the value the same way ``+`` does.
    """
    summary: list[str] = []
    for effect in effects or []:
        match effect.type:
            case "hp":
                stats = scratch.stats_for(user_id)
                if effect.op == "=":
                    stats.hp = max(0, _as_int(effect.value))
                    summary.append(f"HP ={stats.hp}")
                else:
                    delta = _signed(effect)
                    stats.hp = max(0, stats.hp + delta)
                    summary.append(f"HP {_fmt(delta)}")
            case "focus":
                stats = scratch.stats_for(user_id)
                if effect.op == "=":
                    stats.focus = max(0, _as_int(effect.value))
                    summary.append(f"Focus ={stats.focus}")
                else:
                    delta = _signed(effect)
                    stats.focus = max(0, stats.focus + delta)
                    summary.append(f"Focus {_fmt(delta)}")
            case "coins":
                delta = _signed(effect)
                scratch.deltas_for(user_id).coins += delta
                summary.append(f"Coins {_fmt(delta)}")
            case "xp":
                delta = _signed(effect)
                scratch.deltas_for(user_id).xp += delta
                summary.append(f"XP {_fmt(delta)}")
            case "fragment":
                delta = _signed(effect)
                scratch.deltas_for(user_id).fragments += delta
                summary.append(f"Fragment {_fmt(delta)}")
            case "gem":
                delta = _signed(effect)
                scratch.deltas_for(user_id).gems += delta
                summary.append(f"Gems {_fmt(delta)}")
            case "flag":
                key = str(effect.id or "")
                scratch.flags[key] = effect.value
                summary.append(f"Flag {key}={effect.value}")
            case "item":
                scratch.deltas_for(user_id).items.append(str(effect.id or ""))
                summary.append(f"Item +{effect.id}")
            case "buff":
                scratch.deltas_for(user_id).buffs.append(str(effect.id or ""))
                summary.append(f"Buff +{effect.id}")
            case "debuff":
                scratch.deltas_for(user_id).debuffs.append(str(effect.id or ""))
                summary.append(f"Debuff +{effect.id}")
            case _:
                raise ValueError(f"unhandled effect type: {effect.type!r}")
    return ", ".join(summary)


def pick_outcome(outcomes: Mapping[str, Outcome] | None, kind: str) -> Outcome:
    table = outcomes or {}
    for candidate in (kind, SUCCESS, FAIL):
        outcome = table.get(candidate)
        if outcome is not None:
            return outcome
    return Outcome()


def threshold_rewards(sleight: int, thresholds: Iterable[ThresholdReward] | None) -> list[Effect]:
    """Rewards of the highest sleight threshold met, or nothing."""
    met = [t for t in (thresholds or []) if t.sleight_gte is not None and sleight >= t.sleight_gte]
    if not met:
        return []
    best = max(met, key=lambda t: t.sleight_gte)
    return list(best.rewards)


def group_bonus_all_survive() -> list[Effect]:
    return [Effect(type="coins", value=500), Effect(type="xp", value=0, id="xp_mult_20")]


def lone_survivor_bonus() -> list[Effect]:
    return [Effect(type="coins", value=250), Effect(type="xp", value=250)]
