import pytest

from ledger_runs.db.models import EquipmentLoadout
from ledger_runs.modules.equipment.registry import (
    EquipmentBonus,
    EquipmentDefinition,
    EquipmentRegistry,
    default_equipment_registry,
)
from ledger_runs.modules.equipment.service import EquipmentService
from ledger_runs.modules.rules.dice import CRIT_SUCCESS, FAIL, SUCCESS


def test_set_bonus_applies_at_threshold(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("u1", "wp_liquidity_spear")
    assert equipment.aggregate_bonus("u1").sleight_bonus == 1

    equipment.equip_item("u1", "helm_forked_crown")
    agg = equipment.aggregate_bonus("u1")
    assert agg.sleight_bonus == 2
    assert agg.reroll_fail is True
    assert equipment.should_reroll_fails("u1") is True


def test_advantage_state_is_scoped_to_action_tags(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("u1", "wp_liquidity_spear")
    equipment.equip_item("u1", "trinket_ledger_amulet")

    rushed = equipment.equipment_advantage_state("u1", ["rush"])
    assert rushed.advantage is True
    assert rushed.disadvantage is False
    assert rushed.dc_offset == -1
    assert rushed.dc_shift == -1
    assert rushed.focus_bonus == 2

    assert equipment.equipment_advantage_state("u1", ["stealth"]).advantage is False


def test_loadout_sleight_bonus_only_on_success(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("u1", "wp_liquidity_spear")

    assert equipment.loadout_sleight_bonus("u1", CRIT_SUCCESS) == 1
    assert equipment.loadout_sleight_bonus("u1", SUCCESS) == 1
    assert equipment.loadout_sleight_bonus("u1", FAIL) == 0


def test_audit_set_protects_coins_and_neutralizes_crits(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("u1", "gear_ledger_plate")
    equipment.equip_item("u1", "trinket_hardware_wallet")

    agg = equipment.aggregate_bonus("u1")
    assert agg.dc_offset == -1
    assert "integrity" in agg.advantage_tags
    assert equipment.has_coin_loss_protection("u1") is True
    assert equipment.neutralizes_crit_fail("u1") is True
    assert equipment.fragments_boost("u1") == 2


def test_tick_durability_wears_every_slot_and_drops_broken_items(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    equipment.equip_item("u1", "wp_liquidity_spear")
    plate = equipment.equip_item("u1", "gear_ledger_plate")
    plate.durability = 1
    db.commit()

    equipment.tick_durability("u1")
    db.commit()

    assert db.get(EquipmentLoadout, ("u1", "armor")) is None
    assert db.get(EquipmentLoadout, ("u1", "weapon")).durability == 99


def test_unknown_items_and_slots_are_rejected(db) -> None:
    equipment = EquipmentService(db, default_equipment_registry())
    with pytest.raises(ValueError):
        equipment.equip_item("u1", "not_an_item")
    with pytest.raises(ValueError):
        EquipmentRegistry(items=[EquipmentDefinition(id="x", slot="boots", name="X", rarity="common")])


def test_unregistered_loadout_rows_are_ignored(db) -> None:
    registry = EquipmentRegistry(
        items=[
            EquipmentDefinition(
                id="deck_dual",
                slot="deck",
                name="Dual Deck",
                rarity="rare",
                bonuses=EquipmentBonus(advantage_tags=("rush",), disadvantage_tags=("rush",)),
            )
        ]
    )
    db.add(EquipmentLoadout(user_id="u1", slot="weapon", item_id="retired_blade"))
    db.commit()
    equipment = EquipmentService(db, registry)
    equipment.equip_item("u1", "deck_dual")

    assert [item.definition.id for item in equipment.equipped_loadout("u1")] == ["deck_dual"]
    state = equipment.equipment_advantage_state("u1", ["rush"])
    assert state.advantage and state.disadvantage
