from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ledger_runs.db.models import EquipmentLoadout
from ledger_runs.modules.equipment.registry import (
    EQUIPMENT_SLOTS,
    EquipmentBonus,
    EquipmentDefinition,
    EquipmentRegistry,
)
from ledger_runs.modules.rules.dice import CRIT_SUCCESS, SUCCESS
from ledger_runs.utils.time import utc_now_naive


@dataclass(slots=True)
class EquippedItem:
    slot: str
    definition: EquipmentDefinition
    durability: int
    max_durability: int


@dataclass(slots=True)
class AggregatedBonus:
    dc_shift: int = 0
    dc_offset: int = 0
    focus_bonus: int = 0
    hp_bonus: int = 0
    sleight_bonus: int = 0
    reroll_fail: bool = False
    neutralize_crit_fail: bool = False
    fragments_boost: int = 0
    prevents_coin_loss: bool = False
    advantage_tags: list[str] = field(default_factory=list)
    disadvantage_tags: list[str] = field(default_factory=list)

    def add(self, bonus: EquipmentBonus) -> None:
        self.dc_shift += bonus.dc_shift
        self.dc_offset += bonus.dc_offset
        self.focus_bonus += bonus.focus_bonus
        self.hp_bonus += bonus.hp_bonus
        self.sleight_bonus += bonus.sleight_bonus
        self.reroll_fail = self.reroll_fail or bonus.reroll_fail
        self.neutralize_crit_fail = self.neutralize_crit_fail or bonus.neutralize_crit_fail
        self.fragments_boost += bonus.fragments_boost
        self.prevents_coin_loss = self.prevents_coin_loss or bonus.prevents_coin_loss
        for tag in bonus.advantage_tags:
            if tag not in self.advantage_tags:
                self.advantage_tags.append(tag)
        for tag in bonus.disadvantage_tags:
            if tag not in self.disadvantage_tags:
                self.disadvantage_tags.append(tag)


@dataclass(slots=True, frozen=True)
class AdvantageState:
    advantage: bool = False
    disadvantage: bool = False
    dc_shift: int = 0
    dc_offset: int = 0
    focus_bonus: int = 0
    hp_bonus: int = 0


class EquipmentService:
    """Equipped-item bonuses for a user, backed by ``equipment_loadouts``."""

    def __init__(self, db: Session, registry: EquipmentRegistry) -> None:
        self.db = db
        self.registry = registry

    def equipped_loadout(self, user_id: str) -> list[EquippedItem]:
        rows = self.db.execute(
            select(EquipmentLoadout).where(EquipmentLoadout.user_id == user_id).order_by(EquipmentLoadout.slot.asc())
        ).scalars().all()
        out: list[EquippedItem] = []
        for row in rows:
            definition = self.registry.get(row.item_id)
            if definition is None:
                continue
            out.append(
                EquippedItem(
                    slot=row.slot,
                    definition=definition,
                    durability=int(row.durability),
                    max_durability=int(row.max_durability),
                )
            )
        return out

    def equipment_bonuses(self, user_id: str) -> list[EquipmentBonus]:
        bonuses: list[EquipmentBonus] = []
        set_counts: dict[str, int] = {}
        for item in self.equipped_loadout(user_id):
            bonuses.append(item.definition.bonuses)
            if item.definition.set_key:
                set_counts[item.definition.set_key] = set_counts.get(item.definition.set_key, 0) + 1
        for set_key, count in set_counts.items():
            equipment_set = self.registry.set_bonus(set_key)
            if equipment_set is not None and count >= equipment_set.threshold:
                bonuses.append(equipment_set.bonus)
        return bonuses

    def aggregate_bonus(self, user_id: str) -> AggregatedBonus:
        agg = AggregatedBonus()
        for bonus in self.equipment_bonuses(user_id):
            agg.add(bonus)
        return agg

    def equipment_advantage_state(self, user_id: str, tags: Iterable[str] = ()) -> AdvantageState:
        agg = self.aggregate_bonus(user_id)
        tag_set = set(tags or ())
        return AdvantageState(
            advantage=any(tag in tag_set for tag in agg.advantage_tags),
            disadvantage=any(tag in tag_set for tag in agg.disadvantage_tags),
            dc_shift=agg.dc_shift,
            dc_offset=agg.dc_offset,
            focus_bonus=agg.focus_bonus,
            hp_bonus=agg.hp_bonus,
        )

    def loadout_sleight_bonus(self, user_id: str, outcome_kind: str) -> int:
        if outcome_kind not in (CRIT_SUCCESS, SUCCESS):
            return 0
        return self.aggregate_bonus(user_id).sleight_bonus

    def neutralizes_crit_fail(self, user_id: str) -> bool:
        return self.aggregate_bonus(user_id).neutralize_crit_fail

    def should_reroll_fails(self, user_id: str) -> bool:
        return self.aggregate_bonus(user_id).reroll_fail

    def has_coin_loss_protection(self, user_id: str) -> bool:
        return self.aggregate_bonus(user_id).prevents_coin_loss

    def fragments_boost(self, user_id: str) -> int:
        return self.aggregate_bonus(user_id).fragments_boost

    def rarity_of(self, item_id: str) -> str:
        definition = self.registry.get(item_id)
        return definition.rarity if definition else "common"

    def tick_durability(self, user_id: str, slots: Iterable[str] | None = None, amount: int = 1) -> None:
        """Wear every listed slot by ``amount``; broken items are unequipped."""
        wanted = set(slots if slots is not None else EQUIPMENT_SLOTS)
        rows = self.db.execute(select(EquipmentLoadout).where(EquipmentLoadout.user_id == user_id)).scalars().all()
        for row in rows:
            if row.slot not in wanted:
                continue
            row.durability = max(0, int(row.durability) - int(amount))
            if row.durability <= 0:
                self.db.delete(row)
        self.db.flush()

    def equip_item(self, user_id: str, item_id: str) -> EquipmentLoadout:
        definition = self.registry.get(item_id)
        if definition is None:
            raise ValueError(f"unknown equipment item: {item_id}")
        row = self.db.get(EquipmentLoadout, (user_id, definition.slot))
        if row is None:
            row = EquipmentLoadout(user_id=user_id, slot=definition.slot)
            self.db.add(row)
        row.item_id = definition.id
        row.durability = 100
        row.max_durability = 100
        row.set_key = definition.set_key
        row.equipped_at = utc_now_naive()
        self.db.flush()
        return row

    def unequip_slot(self, user_id: str, slot: str) -> None:
        self.db.execute(
            delete(EquipmentLoadout).where(EquipmentLoadout.user_id == user_id, EquipmentLoadout.slot == slot)
        )
        self.db.flush()
