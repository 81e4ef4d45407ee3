import pytest

from ledger_runs.db.models import Run
from ledger_runs.modules.difficulty.engine import (
    calculate_party_difficulty_inputs,
    compute_hidden_tier,
    equipment_power_score,
    flavor_for_tier,
)
from ledger_runs.modules.equipment.registry import default_equipment_registry
from ledger_runs.modules.equipment.service import AggregatedBonus, EquipmentService
from ledger_runs.modules.profiles.service import ProfileStore
from ledger_runs.utils.time import utc_now_naive
from tests.support.engine_fixtures import seed_profile


@pytest.mark.parametrize(
    ("avg_level", "tier", "dc_offset"),
    [
        (1, "normal", 0),
        (19, "normal", 0),
        (20, "tough", 2),
        (33, "epic", 5),
        (46, "mythic", 7),
    ],
)
def test_hidden_tier_staircase(avg_level: int, tier: str, dc_offset: int) -> None:
    result = compute_hidden_tier(avg_level, 0)
    assert result.tier == tier
    assert result.dc_offset == dc_offset


def test_hidden_tier_is_monotonic_in_scale() -> None:
    offsets = [compute_hidden_tier(level, 0).dc_offset for level in range(1, 80)]
    assert offsets == sorted(offsets)


def test_debuff_and_guild_bias_shift_the_scale() -> None:
    assert compute_hidden_tier(20, 0, debuff_bias=1.0).tier == "normal"
    assert compute_hidden_tier(19, 0, guild_bias=0.5).tier == "tough"
    assert compute_hidden_tier(1, 0, guild_bias=2.0).tier == "epic"


def test_flavor_for_unknown_tier_falls_back_to_normal() -> None:
    assert flavor_for_tier("legendary") == flavor_for_tier("normal")


def test_equipment_power_score_weights() -> None:
    spear = AggregatedBonus(dc_offset=-1, sleight_bonus=1, advantage_tags=["rush", "momentum", "gremlin"])
    assert equipment_power_score(spear) == 40 + 20 + 18

    kit = AggregatedBonus(
        reroll_fail=True,
        neutralize_crit_fail=True,
        fragments_boost=2,
        prevents_coin_loss=True,
        disadvantage_tags=["ritual"],
    )
    assert equipment_power_score(kit) == 35 + 30 + 10 + 10 - 4


def test_party_inputs_average_level_power_and_debuff(db) -> None:
    seed_profile(db, "a", level=3)
    seed_profile(db, "b", level=5, hp=6)
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("a", "wp_liquidity_spear")
    db.commit()

    run = Run(party_ids=["a", "b"])
    inputs = calculate_party_difficulty_inputs(run, ProfileStore(db), equipment)

    assert inputs.avg_level == pytest.approx(4.0)
    assert inputs.avg_power == pytest.approx(39.0)
    # b sits at 30% hp: (0.6 - 0.3) * 4 = 1.2, averaged over two members.
    assert inputs.debuff_bias == pytest.approx(0.6)
    assert [m.user_id for m in inputs.members] == ["a", "b"]


def test_party_inputs_count_downed_and_missing_members(db) -> None:
    seed_profile(db, "a", hp=0, downed_at=utc_now_naive())
    run = Run(party_ids=["a", "ghost"])
    inputs = calculate_party_difficulty_inputs(run, ProfileStore(db), EquipmentService(db, default_equipment_registry()))

    # a: hp ratio 0 -> 0.6 * 4 = 2.4, plus 3 for being downed; ghost defaults to full health at level 1.
    assert inputs.debuff_bias == pytest.approx((2.4 + 3.0) / 2)
    assert inputs.avg_level == pytest.approx(1.0)


def test_empty_party_uses_neutral_inputs(db) -> None:
    inputs = calculate_party_difficulty_inputs(
        Run(party_ids=[]), ProfileStore(db), EquipmentService(db, default_equipment_registry())
    )
    assert (inputs.avg_level, inputs.avg_power, inputs.debuff_bias) == (1.0, 0.0, 0.0)
