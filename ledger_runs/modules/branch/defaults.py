"""Route tables shipped with the genesis content pack."""

from __future__ import annotations

from ledger_runs.modules.branch.conditions import (
    ChoiceHistoryCondition,
    ClassCondition,
    CombinedCondition,
    FlagCondition,
    HistoryCondition,
    ItemCondition,
    KarmaCondition,
    PartySizeCondition,
    RoleCondition,
    SleightCondition,
    StatCondition,
)
from ledger_runs.modules.branch.dynamic import DynamicRoute, RouteRegistry
from ledger_runs.modules.branch.engine import BranchRegistry, SceneBranch


def default_static_registry() -> BranchRegistry:
    registry = BranchRegistry()
    registry.register(
        "1.1",
        [
            SceneBranch(
                id="trust_path",
                priority=100,
                conditions=(FlagCondition("trustful", "eq", True), SleightCondition("gte", 8)),
                goto="2A",
                description="High trust and performance leads to cooperative path",
            ),
            SceneBranch(
                id="insight_path",
                priority=90,
                conditions=(FlagCondition("insight", "eq", True), FlagCondition("harmony", "eq", True)),
                goto="2C",
                description="Wisdom and harmony leads to enlightened path",
            ),
            SceneBranch(
                id="gremlin_chaos",
                priority=85,
                conditions=(
                    FlagCondition("gremlin", "eq", True),
                    ChoiceHistoryCondition("chaos_count", "gte", 2),
                ),
                goto="2D",
                description="Gremlin alliance and chaos leads to mischief path",
            ),
            SceneBranch(
                id="lone_wolf",
                priority=80,
                conditions=(FlagCondition("shy", "eq", True), PartySizeCondition("eq", 1)),
                goto="2B",
                description="Solo cautious player gets introspective path",
            ),
            SceneBranch(
                id="validator_special",
                priority=75,
                conditions=(ClassCondition("eq", "validator"), FlagCondition("integrity_boost", "eq", True)),
                goto="2A-V",
                description="Validator with high integrity gets special variant",
            ),
            SceneBranch(id="default_balanced", priority=1, goto="2B", description="Default balanced path"),
        ],
    )
    registry.register(
        "2A",
        [
            SceneBranch(
                id="trust_maintained",
                priority=100,
                conditions=(FlagCondition("betrayed_trust", "neq", True), SleightCondition("gte", 12)),
                goto="3A",
                description="Maintained trust through challenges",
            ),
            SceneBranch(
                id="trust_broken",
                priority=90,
                conditions=(FlagCondition("betrayed_trust", "eq", True),),
                goto="3C",
                description="Betrayal leads to redemption path",
            ),
        ],
    )
    registry.register(
        "3.1",
        [
            SceneBranch(
                id="perfect_run",
                priority=200,
                conditions=(
                    CombinedCondition(
                        "and",
                        (
                            StatCondition("hp_percentage", "gte", 80),
                            SleightCondition("gte", 15),
                            FlagCondition("no_deaths", "eq", True),
                            ItemCondition("legendary_count", "gte", 1),
                        ),
                    ),
                ),
                goto="4.GOLDEN",
                description="Perfect performance unlocks golden path",
            ),
            SceneBranch(
                id="struggle_path",
                priority=150,
                conditions=(
                    CombinedCondition(
                        "or",
                        (
                            StatCondition("hp_percentage", "lt", 30),
                            FlagCondition("party_wiped", "eq", True),
                        ),
                    ),
                ),
                goto="4.DARK",
                description="Struggling party gets darker path",
            ),
        ],
    )
    return registry


def default_dynamic_registry() -> RouteRegistry:
    registry = RouteRegistry()
    registry.register(
        "1.7",
        [
            DynamicRoute(
                scene_id="2.1.dev",
                weight=100,
                conditions=(RoleCondition("selected_role", "eq", "dev"), StatCondition("sleight", "gte", 10)),
                tags=("role_specific", "dev_path"),
            ),
            DynamicRoute(
                scene_id="2.1.trader",
                weight=100,
                conditions=(RoleCondition("selected_role", "eq", "trader"), StatCondition("coins", "gte", 5000)),
                tags=("role_specific", "trader_path"),
            ),
            DynamicRoute(
                scene_id="2.1.whale",
                weight=100,
                conditions=(
                    RoleCondition("selected_role", "eq", "whale"),
                    ItemCondition("legendary_count", "gte", 2),
                ),
                tags=("role_specific", "whale_path"),
            ),
            DynamicRoute(
                scene_id="2.1.karma_good",
                weight=90,
                conditions=(KarmaCondition("alignment", "gte", 5),),
                tags=("moral_path", "good_karma"),
            ),
            DynamicRoute(
                scene_id="2.1.karma_evil",
                weight=90,
                conditions=(KarmaCondition("alignment", "lte", -5),),
                tags=("moral_path", "evil_karma"),
            ),
            DynamicRoute(scene_id="2.1", weight=1, tags=("default",)),
        ],
    )
    registry.register(
        "3.7",
        [
            DynamicRoute(
                scene_id="boss.custodian",
                weight=100,
                conditions=(
                    FlagCondition("custodian_key", "eq", True),
                    StatCondition("party_strength", "gte", 100),
                ),
                tags=("boss", "custodian"),
            ),
            DynamicRoute(
                scene_id="boss.gremlin_king",
                weight=100,
                conditions=(
                    FlagCondition("gremlin_alliance", "eq", True),
                    HistoryCondition("gremlin_interactions", "gte", 10),
                ),
                tags=("boss", "gremlin"),
            ),
            DynamicRoute(
                scene_id="boss.shadow_ledger",
                weight=100,
                conditions=(FlagCondition("corrupted_path", "eq", True),),
                tags=("boss", "corruption"),
            ),
        ],
    )
    registry.register(
        "4.7",
        [
            DynamicRoute(
                scene_id="ending.transcendence",
                weight=200,
                conditions=(
                    StatCondition("total_sleight", "gte", 100),
                    FlagCondition("perfect_run", "eq", True),
                ),
                tags=("ending", "perfect"),
            ),
            DynamicRoute(
                scene_id="ending.redemption",
                weight=150,
                conditions=(
                    KarmaCondition("redemption_arc", "eq", True),
                    FlagCondition("saved_party", "eq", True),
                ),
                tags=("ending", "redemption"),
            ),
            DynamicRoute(
                scene_id="ending.corruption",
                weight=150,
                conditions=(
                    FlagCondition("embraced_darkness", "eq", True),
                    StatCondition("party_deaths", "gte", 2),
                ),
                tags=("ending", "dark"),
            ),
            DynamicRoute(scene_id="ending.neutral", weight=50, tags=("ending", "neutral")),
        ],
    )
    return registry
