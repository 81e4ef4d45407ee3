from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ledger_runs.modules.branch.conditions import Condition, all_conditions_met
from ledger_runs.modules.branch.context import EnhancedBranchContext
from ledger_runs.modules.branch.engine import structural_next_scene
from ledger_runs.modules.content.aliases import normalize_scene_code
from ledger_runs.modules.events.service import EVENT_SCENE_BRANCH_DYNAMIC, EventLog

logger = logging.getLogger(__name__)

TERMINAL_SCENE = "credits"
BOSS_PREFIX = "boss."
ENDING_PREFIX = "ending."


@dataclass(slots=True, frozen=True)
class DynamicRoute:
    scene_id: str
    weight: int = 0
    conditions: tuple[Condition, ...] = ()
    tags: tuple[str, ...] = ()


class RouteRegistry:
    """Weight-ordered routes for chapter checkpoint scenes."""

    def __init__(self) -> None:
        self._routes: dict[str, list[DynamicRoute]] = {}

    def register(self, scene_id: str, routes: Iterable[DynamicRoute]) -> None:
        normalized = [
            DynamicRoute(
                scene_id=normalize_scene_code(r.scene_id),
                weight=r.weight,
                conditions=tuple(r.conditions),
                tags=tuple(r.tags),
            )
            for r in routes
        ]
        self._routes[normalize_scene_code(scene_id)] = sorted(normalized, key=lambda r: -r.weight)

    def routes_for(self, scene_id: str) -> list[DynamicRoute]:
        return list(self._routes.get(normalize_scene_code(scene_id), []))

    def __contains__(self, scene_id: object) -> bool:
        return isinstance(scene_id, str) and normalize_scene_code(scene_id) in self._routes


class DynamicBranchingEngine:
    def __init__(self, registry: RouteRegistry, *, boss_exit_scene: str = "4.1") -> None:
        self.registry = registry
        self.boss_exit_scene = boss_exit_scene

    def handles(self, scene_id: str) -> bool:
        return scene_id in self.registry

    def fallback_scene(self, scene_id: str) -> str:
        if scene_id.startswith(BOSS_PREFIX):
            return self.boss_exit_scene
        if scene_id.startswith(ENDING_PREFIX):
            return TERMINAL_SCENE
        return structural_next_scene(scene_id)

    def select(self, scene_id: str, ctx: EnhancedBranchContext) -> DynamicRoute | None:
        for route in self.registry.routes_for(scene_id):
            if all_conditions_met(route.conditions, ctx):
                return route
        return None

    def determine_next_scene(
        self,
        scene_id: str,
        ctx: EnhancedBranchContext,
        events: EventLog,
    ) -> str:
        route = self.select(scene_id, ctx)
        target = route.scene_id if route is not None else self.fallback_scene(scene_id)
        events.append(
            run_id=ctx.run_id,
            user_id=ctx.active_player or None,
            type=EVENT_SCENE_BRANCH_DYNAMIC,
            payload={
                "from_scene": scene_id,
                "to_scene": target,
                "tags": list(route.tags) if route else [],
                "fallback": route is None,
                "context": ctx.snapshot(),
            },
        )
        logger.info("dynamic branch %s -> %s (run %s)", scene_id, target, ctx.run_id)
        return target
