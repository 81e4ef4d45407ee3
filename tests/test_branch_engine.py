import pytest

from ledger_runs.db.models import InventoryItem, Run
from ledger_runs.modules.branch.conditions import (
    CombinedCondition,
    FlagCondition,
    ItemCondition,
    StatCondition,
    compare,
    condition_to_dict,
    evaluate_condition,
    parse_condition,
)
from ledger_runs.modules.branch.context import (
    BranchContext,
    ChoiceRecord,
    ItemView,
    PlayerView,
    build_branch_context,
)
from ledger_runs.modules.branch.defaults import default_static_registry
from ledger_runs.modules.branch.engine import BranchingEngine, BranchRegistry, SceneBranch, structural_next_scene
from ledger_runs.modules.events.service import EVENT_SCENE_BRANCH, EVENT_SCENE_CHOICE, EventLog
from tests.support.engine_fixtures import seed_profile


def _ctx(**overrides) -> BranchContext:
    values = {
        "run_id": "run_test",
        "active_player": "u1",
        "players": [PlayerView(id="u1")],
        "party_size": 1,
    }
    values.update(overrides)
    return BranchContext(**values)


@pytest.fixture
def engine() -> BranchingEngine:
    return BranchingEngine(default_static_registry())


@pytest.fixture
def events(db) -> EventLog:
    return EventLog(db)


def test_trust_path_requires_flag_and_sleight(engine: BranchingEngine, events: EventLog) -> None:
    assert engine.determine_branch("1.1", _ctx(flags={"trustful": True}, sleight=8), events) == "2.1"
    assert engine.determine_branch("1.1", _ctx(flags={"trustful": True}, sleight=7), events) == "2.2"


def test_flag_equality_does_not_coerce_numbers_to_bools(engine: BranchingEngine, events: EventLog) -> None:
    assert engine.determine_branch("1.1", _ctx(flags={"trustful": 1}, sleight=9), events) == "2.2"


def test_gremlin_path_counts_chaos_choices(engine: BranchingEngine, events: EventLog) -> None:
    history = [
        ChoiceRecord(action="poke", outcome="success", tags=("chaos",)),
        ChoiceRecord(action="bribe", outcome="fail", tags=("gremlin", "deal")),
    ]
    assert engine.determine_branch("1.1", _ctx(flags={"gremlin": True}, choice_history=history), events) == "2.4"
    assert engine.determine_branch("1.1", _ctx(flags={"gremlin": True}, choice_history=history[:1]), events) == "2.2"


def test_validator_variant_reads_player_class(engine: BranchingEngine, events: EventLog) -> None:
    ctx = _ctx(flags={"integrity_boost": True}, players=[PlayerView(id="u1", role="validator")])
    assert engine.determine_branch("1.1", ctx, events) == "2.1.v"


def test_legacy_scene_keys_resolve_through_aliases(engine: BranchingEngine, events: EventLog) -> None:
    assert engine.handles("2A")
    assert engine.handles("2.1")
    assert engine.determine_branch("2.1", _ctx(flags={"betrayed_trust": True}), events) == "3.3"
    assert engine.determine_branch("2A", _ctx(sleight=12), events) == "3.1"


def test_combined_conditions_on_chapter_three(engine: BranchingEngine, events: EventLog) -> None:
    golden = _ctx(
        flags={"no_deaths": True},
        sleight=15,
        hp=17,
        hp_max=20,
        items=[ItemView(id="crown", rarity="legendary")],
    )
    assert engine.determine_branch("3.1", golden, events) == "4.golden"
    assert engine.determine_branch("3.1", _ctx(hp=5, hp_max=20), events) == "4.dark"
    assert engine.determine_branch("3.1", _ctx(flags={"party_wiped": True}), events) == "4.dark"
    assert engine.determine_branch("3.1", _ctx(), events) == "3.2"


def test_hp_percentage_uses_real_maximum() -> None:
    cond = StatCondition("hp_percentage", "gte", 80)
    assert evaluate_condition(cond, _ctx(hp=20, hp_max=25)) is True
    assert evaluate_condition(cond, _ctx(hp=19, hp_max=25)) is False


def test_structural_default_progression() -> None:
    assert structural_next_scene("1.3") == "1.4"
    assert structural_next_scene("1.6") == "1.7"
    assert structural_next_scene("1.7") == "2.1"
    assert structural_next_scene("boss.custodian") == "boss.custodian"


def test_equal_priorities_keep_registration_order(events: EventLog) -> None:
    registry = BranchRegistry()
    registry.register(
        "5.1",
        [
            SceneBranch(id="low", goto="5.9", priority=1),
            SceneBranch(id="first", goto="5.2", priority=10),
            SceneBranch(id="second", goto="5.3", priority=10),
        ],
    )
    assert [b.id for b in registry.routes_for("5.1")] == ["first", "second", "low"]
    assert BranchingEngine(registry).determine_branch("5.1", _ctx(), events) == "5.2"


def test_branch_selection_is_pure(engine: BranchingEngine, events: EventLog) -> None:
    ctx = _ctx(flags={"insight": True, "harmony": True})
    results = {engine.determine_branch("1.1", ctx, events) for _ in range(5)}
    assert results == {"2.3"}


def test_every_decision_is_written_to_the_event_log(db, engine: BranchingEngine, events: EventLog) -> None:
    engine.determine_branch("1.1", _ctx(flags={"shy": True}), events)
    engine.determine_branch("9.2", _ctx(), events)
    db.commit()

    logged = events.query("run_test", types=[EVENT_SCENE_BRANCH])
    assert len(logged) == 2
    first, second = (e.payload for e in logged)
    assert first["branch_id"] == "lone_wolf"
    assert first["to_scene"] == "2.2"
    assert first["context"]["flags"] == {"shy": True}
    assert [c["type"] for c in first["conditions_met"]] == ["flag", "party_size"]
    assert second["fallback"] is True
    assert second["to_scene"] == "9.3"


def test_each_decision_writes_one_branch_row(engine: BranchingEngine, events: EventLog) -> None:
    assert engine.determine_branch("9.2", _ctx(), events) == "9.3"
    assert events.count("run_test", type=EVENT_SCENE_BRANCH) == 1

    for _ in range(3):
        engine.determine_branch("1.1", _ctx(flags={"insight": True, "harmony": True}), events)
    assert events.count("run_test", type=EVENT_SCENE_BRANCH) == 4

    with pytest.raises(TypeError):
        engine.determine_branch("1.1", _ctx())  # type: ignore[call-arg]


def test_comparator_operators() -> None:
    assert compare(5, "gt", 4)
    assert compare(5, "gte", 5)
    assert compare(4, "lt", 5)
    assert compare(5, "lte", 5)
    assert compare("a", "neq", "b")
    assert compare(["x", "y"], "contains", "y")
    assert not compare("10", "gt", 4)
    assert not compare(True, "gt", 0)
    assert not compare(5, "between", 4)


def test_flag_presence_and_item_ownership() -> None:
    ctx = _ctx(flags={"seen_vault": False}, items=[ItemView(id="key")])
    assert evaluate_condition(FlagCondition("seen_vault", "has"), ctx)
    assert evaluate_condition(FlagCondition("missing", "lacks"), ctx)
    assert evaluate_condition(FlagCondition("missing", "neq", True), ctx)
    assert evaluate_condition(ItemCondition(None, "has", "key"), ctx)
    assert evaluate_condition(ItemCondition(None, "lacks", "lockpick"), ctx)
    assert evaluate_condition(ItemCondition("key", "eq", True), ctx)


def test_parse_condition_round_trips_nested_trees() -> None:
    raw = {
        "type": "combined",
        "operator": "or",
        "conditions": [
            {"type": "stat", "field": "hp_percentage", "operator": "lt", "value": 30},
            {"type": "flag", "field": "party_wiped", "operator": "eq", "value": True},
        ],
    }
    cond = parse_condition(raw)
    assert isinstance(cond, CombinedCondition)
    assert condition_to_dict(cond) == raw

    with pytest.raises(ValueError):
        parse_condition({"type": "weather", "operator": "eq", "value": "rain"})


def test_unknown_condition_objects_are_rejected() -> None:
    with pytest.raises(TypeError):
        evaluate_condition(object(), _ctx())


def test_build_branch_context_reads_store_and_history(db) -> None:
    seed_profile(db, "u1", hp=12, hp_max=24, coins=300, selected_role="validator", level=4)
    seed_profile(db, "u2")
    run = Run(
        run_id="run_ctx",
        guild_id="g1",
        party_ids=["u1", "u2"],
        content_id="genesis",
        scene_id="1.1",
        round_id="1.1-R1",
        flags={"trustful": True},
        sleight_score=6,
        turn_order=["u1", "u2"],
        active_user_id="u1",
    )
    db.add(run)
    db.add(InventoryItem(user_id="u1", item_id="crown", kind="item", rarity="legendary"))
    db.add(InventoryItem(user_id="u1", item_id="calm", kind="buff", rarity="common"))
    EventLog(db).append(
        run_id="run_ctx",
        user_id="u1",
        type=EVENT_SCENE_CHOICE,
        payload={"action_id": "poke", "roll": {"kind": "success"}, "telemetry_tags": ["chaos"]},
    )
    db.commit()

    ctx = build_branch_context(db, run)

    assert ctx.flags == {"trustful": True}
    assert ctx.sleight == 6
    assert ctx.party_size == 2
    assert ctx.items == [ItemView(id="crown", rarity="legendary")]
    assert ctx.choice_history == [ChoiceRecord(action="poke", outcome="success", tags=("chaos",))]
    assert (ctx.hp, ctx.hp_max, ctx.coins) == (12, 24, 300)
    assert ctx.active_player_view().role == "validator"
    assert ctx.active_player_view().level == 4
    assert [p.role for p in ctx.players] == ["validator", "normie"]
