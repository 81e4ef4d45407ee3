from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from ledger_runs.config import Settings, settings
from ledger_runs.db.models import Profile
from ledger_runs.modules.branch.dynamic import DynamicBranchingEngine, RouteRegistry
from ledger_runs.modules.branch.engine import BranchingEngine, BranchRegistry
from ledger_runs.modules.content.provider import InMemoryContentProvider
from ledger_runs.modules.equipment.registry import EquipmentRegistry, default_equipment_registry
from ledger_runs.modules.equipment.service import EquipmentService
from ledger_runs.modules.notifications.sink import InMemoryNotificationSink
from ledger_runs.modules.run.service import RunService

T0 = datetime(2026, 1, 1, 12, 0, 0)


class ScriptedRng:
    """Die source that replays a fixed list and fails loudly on an unexpected draw."""

    def __init__(self, rolls: Iterable[int] = ()) -> None:
        self.rolls = list(rolls)

    def randint(self, low: int, high: int) -> int:
        assert self.rolls, "unexpected extra die roll"
        value = self.rolls.pop(0)
        assert low <= value <= high
        return value


def seed_profile(db: Session, user_id: str, **fields) -> Profile:
    values = {"level": 1, "hp": 20, "hp_max": 20, "focus": 10, "focus_max": 10, "coins": 0}
    values.update(fields)
    profile = Profile(user_id=user_id, **values)
    db.add(profile)
    db.commit()
    return profile


def strike_action(**overrides) -> dict:
    action = {
        "id": "strike",
        "label": "Strike the vault door",
        "roll": {"kind": "phi_d20", "tags": ["rush"]},
        "outcomes": {
            "crit_success": {"effects": [{"type": "coins", "op": "+", "value": 10}]},
            "success": {"effects": [{"type": "coins", "op": "+", "value": 5}]},
            "fail": {"effects": [{"type": "hp", "op": "-", "value": 3}]},
            "crit_fail": {"effects": [{"type": "hp", "op": "-", "value": 5}]},
        },
        "telemetry_tags": ["chaos"],
    }
    action.update(overrides)
    return action


def wait_action(**overrides) -> dict:
    action = {
        "id": "wait",
        "label": "Hold position",
        "outcomes": {
            "success": {"effects": [{"type": "focus", "op": "+", "value": 1}]},
            "fail": {"effects": []},
        },
        "telemetry_tags": ["neutral"],
    }
    action.update(overrides)
    return action


def scene_dict(
    scene_id: str,
    *,
    rounds: int = 2,
    actions: list[dict] | None = None,
    arrivals: list[dict] | None = None,
    threshold_rewards: list[dict] | None = None,
) -> dict:
    round_actions = actions if actions is not None else [strike_action(), wait_action()]
    return {
        "scene_id": scene_id,
        "title": f"Scene {scene_id}",
        "rounds": [
            {"round_id": f"{scene_id}-R{ix}", "actions": round_actions} for ix in range(1, rounds + 1)
        ],
        "arrivals": arrivals or [],
        "threshold_rewards": threshold_rewards or [],
    }


def make_content(*scenes: dict, version: str = "1") -> InMemoryContentProvider:
    provider = InMemoryContentProvider(content_id="genesis", version=version)
    for scene in scenes:
        provider.add_scene(scene)
    return provider


def make_service(
    db: Session,
    content: InMemoryContentProvider,
    *,
    rolls: Iterable[int] = (),
    registry: EquipmentRegistry | None = None,
    static_registry: BranchRegistry | None = None,
    dynamic_registry: RouteRegistry | None = None,
    notifier: InMemoryNotificationSink | None = None,
    config: Settings | None = None,
) -> RunService:
    return RunService(
        db,
        content=content,
        equipment=EquipmentService(db, registry or default_equipment_registry()),
        static_router=BranchingEngine(static_registry or BranchRegistry()),
        dynamic_router=DynamicBranchingEngine(dynamic_registry or RouteRegistry()),
        rng=ScriptedRng(rolls),
        notifier=notifier or InMemoryNotificationSink(),
        settings=config or settings,
    )
