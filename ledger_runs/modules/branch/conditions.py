"""Branch conditions as a closed set of dataclasses.

Every kind is matched explicitly in :func:`evaluate_condition`; adding a new
kind without a ``case`` raises ``TypeError`` at evaluation time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ledger_runs.modules.branch.context import BranchContext, EnhancedBranchContext

NUMERIC_OPS = ("eq", "neq", "gt", "gte", "lt", "lte")
CHAOS_TAGS = ("chaos", "gremlin")


@dataclass(slots=True, frozen=True)
class FlagCondition:
    field: str
    op: str = "eq"
    value: Any = True


@dataclass(slots=True, frozen=True)
class SleightCondition:
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class PartySizeCondition:
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class ItemCondition:
    field: str | None
    op: str
    value: Any = None


@dataclass(slots=True, frozen=True)
class StatCondition:
    field: str
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class ChoiceHistoryCondition:
    field: str
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class ClassCondition:
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class KarmaCondition:
    field: str
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class RoleCondition:
    field: str
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class HistoryCondition:
    field: str
    op: str
    value: Any


@dataclass(slots=True, frozen=True)
class CombinedCondition:
    op: str
    conditions: tuple["Condition", ...] = ()


Condition = (
    FlagCondition
    | SleightCondition
    | PartySizeCondition
    | ItemCondition
    | StatCondition
    | ChoiceHistoryCondition
    | ClassCondition
    | KarmaCondition
    | RoleCondition
    | HistoryCondition
    | CombinedCondition
)

_KIND_NAMES: dict[type, str] = {
    FlagCondition: "flag",
    SleightCondition: "sleight",
    PartySizeCondition: "party_size",
    ItemCondition: "item",
    StatCondition: "stat",
    ChoiceHistoryCondition: "choice_history",
    ClassCondition: "class",
    KarmaCondition: "karma",
    RoleCondition: "role",
    HistoryCondition: "history",
    CombinedCondition: "combined",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same(actual: Any, target: Any) -> bool:
    if isinstance(actual, bool) or isinstance(target, bool):
        return isinstance(actual, bool) and isinstance(target, bool) and actual is target
    return actual == target


def compare(actual: Any, op: str, target: Any) -> bool:
    if op == "eq":
        return _same(actual, target)
    if op == "neq":
        return not _same(actual, target)
    if op == "contains":
        return isinstance(actual, (list, tuple, set)) and target in actual
    if op in ("gt", "gte", "lt", "lte"):
        if not (_is_number(actual) and _is_number(target)):
            return False
        if op == "gt":
            return actual > target
        if op == "gte":
            return actual >= target
        if op == "lt":
            return actual < target
        return actual <= target
    return False


def _percentage(current: float, maximum: float) -> float:
    if maximum <= 0:
        return 0.0
    return float(current) / float(maximum) * 100.0


def _stat_value(field: str, ctx: BranchContext) -> float | None:
    if field == "hp_percentage":
        return _percentage(ctx.hp, ctx.hp_max)
    if field == "focus_percentage":
        return _percentage(ctx.focus, ctx.focus_max)
    if field == "sleight":
        return ctx.sleight
    if field == "coins":
        return ctx.coins
    if isinstance(ctx, EnhancedBranchContext):
        if field == "total_sleight":
            return ctx.total_sleight
        if field == "party_strength":
            return ctx.party_strength
        if field == "party_deaths":
            return ctx.party_deaths
    return None


def _choice_history_value(field: str, ctx: BranchContext) -> int | None:
    if field == "chaos_count":
        return sum(1 for choice in ctx.choice_history if any(tag in choice.tags for tag in CHAOS_TAGS))
    if field == "moral_score":
        score = 0
        for choice in ctx.choice_history:
            if "integrity" in choice.tags:
                score += 1
            elif "deception" in choice.tags:
                score -= 1
        return score
    return None


def _role_value(field: str, ctx: BranchContext) -> Any:
    player = ctx.active_player_view()
    if player is None:
        return None
    if field in ("selected_role", "role", "class"):
        return player.role
    if field == "level":
        return player.level
    if field == "hp":
        return player.hp
    return None


def evaluate_condition(condition: Condition, ctx: BranchContext) -> bool:
    match condition:
        case FlagCondition(field=field, op=op, value=value):
            actual = ctx.flags.get(field)
            if op == "has":
                return actual is not None
            if op == "lacks":
                return actual is None
            return compare(actual, op, value)
        case SleightCondition(op=op, value=value):
            return compare(ctx.sleight, op, value)
        case PartySizeCondition(op=op, value=value):
            return compare(ctx.party_size, op, value)
        case ItemCondition(field=field, op=op, value=value):
            if field == "legendary_count":
                return compare(ctx.legendary_count(), op, value)
            if op == "has":
                return ctx.has_item(str(value))
            if op == "lacks":
                return not ctx.has_item(str(value))
            if field:
                return compare(ctx.has_item(field), op, value)
            return False
        case StatCondition(field=field, op=op, value=value):
            actual = _stat_value(field, ctx)
            return actual is not None and compare(actual, op, value)
        case ChoiceHistoryCondition(field=field, op=op, value=value):
            actual = _choice_history_value(field, ctx)
            return actual is not None and compare(actual, op, value)
        case ClassCondition(op=op, value=value):
            player = ctx.active_player_view()
            return compare(player.role if player else None, op, value)
        case KarmaCondition(field=field, op=op, value=value):
            if not isinstance(ctx, EnhancedBranchContext):
                return False
            if field == "alignment":
                return compare(ctx.karma_alignment, op, value)
            if field == "redemption_arc":
                return compare(ctx.redemption_arc, op, value)
            return False
        case RoleCondition(field=field, op=op, value=value):
            return compare(_role_value(field, ctx), op, value)
        case HistoryCondition(field=field, op=op, value=value):
            if not isinstance(ctx, EnhancedBranchContext):
                return False
            if field == "gremlin_interactions":
                return compare(ctx.gremlin_interactions, op, value)
            if field == "role_interactions":
                return compare(ctx.role_interactions, op, value)
            return False
        case CombinedCondition(op="and", conditions=children):
            return all(evaluate_condition(child, ctx) for child in children)
        case CombinedCondition(op="or", conditions=children):
            return any(evaluate_condition(child, ctx) for child in children)
        case CombinedCondition():
            return False
        case _:
            raise TypeError(f"unhandled branch condition: {condition!r}")


def all_conditions_met(conditions: tuple[Condition, ...] | list[Condition], ctx: BranchContext) -> bool:
    return all(evaluate_condition(condition, ctx) for condition in conditions)


def parse_condition(raw: dict) -> Condition:
    """Build a condition from its authored dict form (``type``/``field``/``operator``/``value``)."""
    kind = str(raw.get("type") or "").strip()
    op = str(raw.get("operator") or raw.get("op") or "eq").strip()
    field = raw.get("field")
    value = raw.get("value")
    match kind:
        case "flag":
            return FlagCondition(field=str(field or ""), op=op, value=value)
        case "sleight":
            return SleightCondition(op=op, value=value)
        case "party_size":
            return PartySizeCondition(op=op, value=value)
        case "item":
            return ItemCondition(field=str(field) if field else None, op=op, value=value)
        case "stat":
            return StatCondition(field=str(field or ""), op=op, value=value)
        case "choice_history":
            return ChoiceHistoryCondition(field=str(field or ""), op=op, value=value)
        case "class":
            return ClassCondition(op=op, value=value)
        case "karma":
            return KarmaCondition(field=str(field or ""), op=op, value=value)
        case "role":
            return RoleCondition(field=str(field or ""), op=op, value=value)
        case "history":
            return HistoryCondition(field=str(field or ""), op=op, value=value)
        case "combined":
            children = tuple(parse_condition(child) for child in (raw.get("conditions") or []))
            return CombinedCondition(op=op, conditions=children)
        case _:
            raise ValueError(f"unknown branch condition type: {kind!r}")


def condition_to_dict(condition: Condition) -> dict:
    kind = _KIND_NAMES.get(type(condition))
    if kind is None:
        raise TypeError(f"unhandled branch condition: {condition!r}")
    if isinstance(condition, CombinedCondition):
        return {
            "type": kind,
            "operator": condition.op,
            "conditions": [condition_to_dict(child) for child in condition.conditions],
        }
    out: dict[str, Any] = {"type": kind, "operator": condition.op, "value": condition.value}
    field = getattr(condition, "field", None)
    if field is not None:
        out["field"] = field
    return out
