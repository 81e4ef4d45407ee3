from __future__ import annotations

from dataclasses import dataclass, field

from ledger_runs.db.models import Run
from ledger_runs.modules.equipment.service import AggregatedBonus, EquipmentService
from ledger_runs.modules.profiles.service import ProfileStore, focus_max_of, hp_max_of, is_downed, level_of

PHI = (1 + 5 ** 0.5) / 2
DEBUFF_RATIO_FLOOR = 0.6
DEBUFF_RATIO_WEIGHT = 4.0
DEBUFF_DOWNED = 3.0

# (scale strictly above, tier, dc offset), highest first.
_TIER_STEPS = (
    (2.8, "mythic", 7),
    (2.0, "epic", 5),
    (1.2, "tough", 2),
)

_TIER_FLAVOR = {
    "normal": "The runes breathe steady, like the vault is listening.",
    "tough": "The runes tighten; challenges sharpen like fresh-cut crystal.",
    "epic": "Even the air crackles; the vault stares back and does not blink.",
    "mythic": "The room sings in a pitch that rattles molars; the Ledger bares old teeth.",
}


@dataclass(slots=True, frozen=True)
class DifficultyTier:
    tier: str
    dc_offset: int
    scale: float


@dataclass(slots=True, frozen=True)
class MemberDifficulty:
    user_id: str
    level: int
    equipment_power: float
    hp_ratio: float
    focus_ratio: float
    downed: bool


@dataclass(slots=True)
class PartyDifficultyInputs:
    avg_level: float = 1.0
    avg_power: float = 0.0
    debuff_bias: float = 0.0
    members: list[MemberDifficulty] = field(default_factory=list)


def compute_hidden_tier(
    avg_level: float,
    avg_power: float,
    debuff_bias: float = 0.0,
    guild_bias: float = 0.0,
) -> DifficultyTier:
    scale = (float(avg_level) + float(avg_power) / 100.0) / 10.0 / PHI
    scale = scale - float(debuff_bias) * 0.2 + float(guild_bias)
    for threshold, tier, dc_offset in _TIER_STEPS:
        if scale > threshold:
            return DifficultyTier(tier=tier, dc_offset=dc_offset, scale=scale)
    return DifficultyTier(tier="normal", dc_offset=0, scale=scale)


def flavor_for_tier(tier: str) -> str:
    return _TIER_FLAVOR.get(tier, _TIER_FLAVOR["normal"])


def equipment_power_score(agg: AggregatedBonus) -> float:
    score = 0.0
    score += abs(agg.dc_offset) * 40
    score += abs(agg.dc_shift) * 25
    score += agg.focus_bonus * 15
    score += agg.hp_bonus * 6
    score += agg.sleight_bonus * 20
    if agg.reroll_fail:
        score += 35
    if agg.neutralize_crit_fail:
        score += 30
    if agg.fragments_boost:
        score += agg.fragments_boost * 5
    if agg.prevents_coin_loss:
        score += 10
    score += len(agg.advantage_tags) * 6
    score -= len(agg.disadvantage_tags) * 4
    return score


def _ratio(current: int | None, maximum: int) -> float:
    value = maximum if current is None else current
    return max(0.0, min(1.0, float(value) / float(maximum)))


def _member_debuff(hp_ratio: float, focus_ratio: float, downed: bool) -> float:
    debuff = 0.0
    if hp_ratio < DEBUFF_RATIO_FLOOR:
        debuff += (DEBUFF_RATIO_FLOOR - hp_ratio) * DEBUFF_RATIO_WEIGHT
    if focus_ratio < DEBUFF_RATIO_FLOOR:
        debuff += (DEBUFF_RATIO_FLOOR - focus_ratio) * DEBUFF_RATIO_WEIGHT
    if downed:
        debuff += DEBUFF_DOWNED
    return debuff


def calculate_party_difficulty_inputs(
    run: Run,
    profiles: ProfileStore,
    equipment: EquipmentService,
) -> PartyDifficultyInputs:
    party = [str(uid) for uid in (run.party_ids or []) if uid]
    if not party:
        return PartyDifficultyInputs()

    inputs = PartyDifficultyInputs(avg_level=0.0)
    debuff_sum = 0.0
    for user_id in party:
        profile = profiles.get(user_id)
        level = level_of(profile)
        if profile is None:
            hp_ratio, focus_ratio = 1.0, 1.0
        else:
            hp_ratio = _ratio(profile.hp, hp_max_of(profile))
            focus_ratio = _ratio(profile.focus, focus_max_of(profile))
        downed = is_downed(profile)
        power = equipment_power_score(equipment.aggregate_bonus(user_id))

        inputs.members.append(
            MemberDifficulty(
                user_id=user_id,
                level=level,
                equipment_power=power,
                hp_ratio=hp_ratio,
                focus_ratio=focus_ratio,
                downed=downed,
            )
        )
        inputs.avg_level += level
        inputs.avg_power += power
        debuff_sum += _member_debuff(hp_ratio, focus_ratio, downed)

    count = float(len(party))
    inputs.avg_level /= count
    inputs.avg_power /= count
    inputs.debuff_bias = debuff_sum / count
    return inputs
