from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ledger_runs.modules.branch.conditions import Condition, all_conditions_met, condition_to_dict
from ledger_runs.modules.branch.context import BranchContext
from ledger_runs.modules.content.aliases import normalize_scene_code
from ledger_runs.modules.events.service import EVENT_SCENE_BRANCH, EventLog

logger = logging.getLogger(__name__)

CHAPTER_LENGTH = 7


@dataclass(slots=True, frozen=True)
class SceneBranch:
    id: str
    goto: str
    priority: int = 0
    conditions: tuple[Condition, ...] = ()
    description: str = ""


def _parse_scene_number(scene_id: str) -> tuple[int, int] | None:
    parts = str(scene_id).split(".")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def structural_next_scene(scene_id: str) -> str:
    """``major.minor`` advances the minor until the chapter is full, then opens the next chapter."""
    parsed = _parse_scene_number(scene_id)
    if parsed is None:
        return scene_id
    major, minor = parsed
    if minor < CHAPTER_LENGTH:
        return f"{major}.{minor + 1}"
    return f"{major + 1}.1"


class BranchRegistry:
    """Priority-ordered branch tables keyed by canonical scene id."""

    def __init__(self) -> None:
        self._routes: dict[str, list[SceneBranch]] = {}

    def register(self, scene_id: str, branches: Iterable[SceneBranch]) -> None:
        normalized = [
            SceneBranch(
                id=b.id,
                goto=normalize_scene_code(b.goto),
                priority=b.priority,
                conditions=tuple(b.conditions),
                description=b.description,
            )
            for b in branches
        ]
        # sorted() is stable, so equal priorities keep registration order.
        self._routes[normalize_scene_code(scene_id)] = sorted(normalized, key=lambda b: -b.priority)

    def routes_for(self, scene_id: str) -> list[SceneBranch]:
        return list(self._routes.get(normalize_scene_code(scene_id), []))

    def __contains__(self, scene_id: object) -> bool:
        return isinstance(scene_id, str) and normalize_scene_code(scene_id) in self._routes


class BranchingEngine:
    def __init__(self, registry: BranchRegistry) -> None:
        self.registry = registry

    def handles(self, scene_id: str) -> bool:
        return scene_id in self.registry

    def select(self, scene_id: str, ctx: BranchContext) -> SceneBranch | None:
        for branch in self.registry.routes_for(scene_id):
            if all_conditions_met(branch.conditions, ctx):
                return branch
        return None

    def determine_branch(self, scene_id: str, ctx: BranchContext, events: EventLog) -> str:
        branch = self.select(scene_id, ctx)
        target = branch.goto if branch is not None else structural_next_scene(scene_id)
        events.append(
            run_id=ctx.run_id,
            user_id=ctx.active_player or None,
            type=EVENT_SCENE_BRANCH,
            payload={
                "from_scene": scene_id,
                "to_scene": target,
                "branch_id": branch.id if branch else None,
                "description": branch.description if branch else "",
                "conditions_met": [condition_to_dict(c) for c in branch.conditions] if branch else [],
                "fallback": branch is None,
                "context": ctx.snapshot(),
            },
        )
        logger.info(
            "branch %s -> %s via %s (run %s)",
            scene_id,
            target,
            branch.id if branch else "default",
            ctx.run_id,
        )
        return target
