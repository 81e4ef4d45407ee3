from __future__ import annotations

from dataclasses import dataclass, field

EQUIPMENT_SLOTS = ("weapon", "armor", "helm", "trinket", "deck")


@dataclass(slots=True, frozen=True)
class EquipmentBonus:
    dc_shift: int = 0
    dc_offset: int = 0
    advantage_tags: tuple[str, ...] = ()
    disadvantage_tags: tuple[str, ...] = ()
    focus_bonus: int = 0
    hp_bonus: int = 0
    sleight_bonus: int = 0
    reroll_fail: bool = False
    neutralize_crit_fail: bool = False
    fragments_boost: int = 0
    prevents_coin_loss: bool = False


@dataclass(slots=True, frozen=True)
class EquipmentDefinition:
    id: str
    slot: str
    name: str
    rarity: str
    description: str = ""
    set_key: str | None = None
    bonuses: EquipmentBonus = field(default_factory=EquipmentBonus)


@dataclass(slots=True, frozen=True)
class EquipmentSet:
    label: str
    threshold: int
    description: str
    bonus: EquipmentBonus


class EquipmentRegistry:
    def __init__(
        self,
        items: list[EquipmentDefinition] | None = None,
        sets: dict[str, EquipmentSet] | None = None,
    ) -> None:
        self._items: dict[str, EquipmentDefinition] = {}
        self._sets: dict[str, EquipmentSet] = dict(sets or {})
        for item in items or []:
            self.register(item)

    def register(self, item: EquipmentDefinition) -> None:
        if item.slot not in EQUIPMENT_SLOTS:
            raise ValueError(f"unknown equipment slot: {item.slot}")
        self._items[item.id] = item

    def get(self, item_id: str) -> EquipmentDefinition | None:
        return self._items.get(item_id)

    def set_bonus(self, set_key: str) -> EquipmentSet | None:
        return self._sets.get(set_key)


def default_equipment_registry() -> EquipmentRegistry:
    items = [
        EquipmentDefinition(
            id="wp_liquidity_spear",
            slot="weapon",
            name="Liquidity Spear",
            rarity="epic",
            description="Flows through gaps in consensus. Advantage on rush and momentum tags.",
            set_key="liquidity",
            bonuses=EquipmentBonus(dc_offset=-1, advantage_tags=("rush", "momentum", "gremlin"), sleight_bonus=1),
        ),
        EquipmentDefinition(
            id="gear_ledger_plate",
            slot="armor",
            name="Ledger Plate",
            rarity="uncommon",
            description="Flat HP protection that also mitigates critical failures.",
            set_key="audit",
            bonuses=EquipmentBonus(hp_bonus=5, neutralize_crit_fail=True),
        ),
        EquipmentDefinition(
            id="trinket_hardware_wallet",
            slot="trinket",
            name="Hardware Wallet",
            rarity="uncommon",
            description="Protects coins and adds fragments when duplicates drop.",
            set_key="audit",
            bonuses=EquipmentBonus(prevents_coin_loss=True, fragments_boost=2),
        ),
        EquipmentDefinition(
            id="trinket_ledger_amulet",
            slot="trinket",
            name="Ledger Amulet",
            rarity="rare",
            description="Adds focus each scene and eases ritual tags.",
            set_key="harmony",
            bonuses=EquipmentBonus(focus_bonus=2, dc_shift=-1, advantage_tags=("ritual", "insight")),
        ),
        EquipmentDefinition(
            id="helm_oracle_hood",
            slot="helm",
            name="Oracle Hood",
            rarity="rare",
            description="Lowers DC for insight and puzzle actions.",
            set_key="harmony",
            bonuses=EquipmentBonus(dc_offset=-2, advantage_tags=("insight", "puzzle")),
        ),
        EquipmentDefinition(
            id="helm_forked_crown",
            slot="helm",
            name="Forked Crown",
            rarity="epic",
            description="Splits perception. Grants a reroll on fails.",
            set_key="liquidity",
            bonuses=EquipmentBonus(reroll_fail=True),
        ),
    ]
    sets = {
        "audit": EquipmentSet(
            label="Audit Set",
            threshold=2,
            description="Small DC reduction on integrity tags.",
            bonus=EquipmentBonus(dc_offset=-1, advantage_tags=("integrity",)),
        ),
        "liquidity": EquipmentSet(
            label="Flow State Set",
            threshold=2,
            description="Sleight bonus on successes.",
            bonus=EquipmentBonus(sleight_bonus=1),
        ),
        "harmony": EquipmentSet(
            label="Harmony Set",
            threshold=2,
            description="Focus recovery on successes.",
            bonus=EquipmentBonus(focus_bonus=1),
        ),
    }
    return EquipmentRegistry(items=items, sets=sets)
