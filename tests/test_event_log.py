from datetime import timedelta

from ledger_runs.modules.events.service import EVENT_MORAL_CHOICE, EVENT_SCENE_CHOICE, EventLog
from ledger_runs.modules.guilds.service import GLOBAL_GUILD_ID, get_guild_settings, upsert_guild_settings
from tests.support.engine_fixtures import T0


def test_event_queries_filter_by_type_and_time(db) -> None:
    events = EventLog(db)
    for minute, kind in enumerate([EVENT_SCENE_CHOICE, EVENT_MORAL_CHOICE, EVENT_SCENE_CHOICE]):
        events.append(run_id="run_a", user_id="u1", type=kind, payload={"n": minute}, ts=T0 + timedelta(minutes=minute))
    events.append(run_id="run_b", user_id="u1", type=EVENT_SCENE_CHOICE, ts=T0)
    db.commit()

    assert [e.payload["n"] for e in events.query("run_a")] == [0, 1, 2]
    assert [e.payload["n"] for e in events.query("run_a", types=[EVENT_SCENE_CHOICE], newest_first=True)] == [2, 0]
    window = events.query("run_a", since=T0 + timedelta(minutes=1), until=T0 + timedelta(minutes=1))
    assert [e.type for e in window] == [EVENT_MORAL_CHOICE]
    assert len(events.query("run_a", limit=1)) == 1
    assert events.count("run_a", type=EVENT_SCENE_CHOICE) == 2


def test_guild_settings_default_and_upsert(db) -> None:
    assert get_guild_settings(db, None).guild_id == GLOBAL_GUILD_ID
    assert get_guild_settings(db, "g1").difficulty_bias == 0.0

    upsert_guild_settings(db, "g1", difficulty_bias=0.5)
    db.commit()
    upsert_guild_settings(db, "g1", difficulty_bias=-0.25)
    db.commit()

    assert get_guild_settings(db, "g1").difficulty_bias == -0.25
