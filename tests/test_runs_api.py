from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from ledger_runs.main import app
from ledger_runs.modules.notifications.sink import InMemoryNotificationSink
from ledger_runs.modules.run.deps import get_content_provider, get_notification_sink
from tests.support.engine_fixtures import make_content, scene_dict, seed_profile, wait_action


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def client(sink: InMemoryNotificationSink) -> Iterator[TestClient]:
    content = make_content(
        scene_dict("1.1", rounds=2, actions=[wait_action()]),
        scene_dict("2.2", rounds=1, actions=[wait_action()]),
        version="3",
    )
    app.dependency_overrides[get_content_provider] = lambda: content
    app.dependency_overrides[get_notification_sink] = lambda: sink
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create(client: TestClient, party: list[str]) -> dict:
    resp = client.post("/runs", json={"guild_id": "g1", "channel_id": "c1", "party_ids": party})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_create_and_fetch_run(client: TestClient) -> None:
    body = _create(client, ["u1", "u2", "u1"])

    assert body["party_ids"] == ["u1", "u2"]
    assert body["scene_id"] == "1.1"
    assert body["round_id"] == "1.1-R1"
    assert body["content_version"] == "3"
    assert body["turn_expires_at"].endswith(("Z", "+00:00"))

    fetched = client.get(f"/runs/{body['run_id']}")
    assert fetched.status_code == 200
    assert fetched.json()["run_id"] == body["run_id"]


def test_unknown_run_is_404(client: TestClient) -> None:
    resp = client.get("/runs/run_missing")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "RUN_NOT_FOUND"


def test_action_flow_and_turn_enforcement(db, client: TestClient) -> None:
    seed_profile(db, "u1")
    seed_profile(db, "u2")
    run_id = _create(client, ["u1", "u2"])["run_id"]

    blocked = client.post(f"/runs/{run_id}/actions", json={"user_id": "u2", "action_id": "wait"})
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["code"] == "NOT_YOUR_TURN"

    resp = client.post(f"/runs/{run_id}/actions", json={"user_id": "u1", "action_id": "wait"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["roll"]["kind"] == "success"
    assert body["summary"] == "Focus +1"
    assert body["run"]["round_id"] == "1.1-R2"
    assert body["run"]["active_user_id"] == "u2"

    unknown = client.post(f"/runs/{run_id}/actions", json={"user_id": "u2", "action_id": "dance"})
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["code"] == "ACTION_NOT_FOUND"


def test_action_request_rejects_unknown_fields(client: TestClient) -> None:
    run_id = _create(client, ["u1"])["run_id"]
    resp = client.post(f"/runs/{run_id}/actions", json={"user_id": "u1", "action_id": "wait", "roll": 20})
    assert resp.status_code == 422


def test_checkpoint_rollback_and_integrity(db, client: TestClient) -> None:
    seed_profile(db, "u1")
    run_id = _create(client, ["u1"])["run_id"]

    saved = client.post(f"/runs/{run_id}/checkpoints", json={"name": "start"})
    assert saved.status_code == 201
    checkpoint_id = saved.json()["checkpoint_id"]

    client.post(f"/runs/{run_id}/actions", json={"user_id": "u1", "action_id": "wait"})
    client.post(f"/runs/{run_id}/actions", json={"user_id": "u1", "action_id": "wait"})
    assert client.get(f"/runs/{run_id}").json()["scene_id"] == "2.2"

    restored = client.post(f"/runs/{run_id}/rollback", json={"checkpoint_id": checkpoint_id})
    assert restored.status_code == 200
    assert restored.json()["scene_id"] == "1.1"
    assert restored.json()["micro_ix"] == 1

    missing = client.post(f"/runs/{run_id}/rollback", json={"checkpoint_id": "bogus"})
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "CHECKPOINT_NOT_FOUND"

    integrity = client.get(f"/runs/{run_id}/integrity")
    assert integrity.status_code == 200
    assert integrity.json() == {"run_id": run_id, "ok": True, "issues": []}


def test_afk_sweep_endpoint(db, client: TestClient, sink: InMemoryNotificationSink) -> None:
    seed_profile(db, "u1")
    seed_profile(db, "u2")
    run_id = _create(client, ["u1", "u2"])["run_id"]

    early = client.post("/runs/afk-sweep", json={})
    assert early.json() == {"processed": 0, "notifications": []}

    resp = client.post("/runs/afk-sweep", json={"now": "2099-01-01T00:00:00Z"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["processed"] == 1
    assert body["notifications"][0]["run_id"] == run_id
    assert body["notifications"][0]["user_id"] == "u1"
    assert len(sink.sent) == 1
    assert client.get(f"/runs/{run_id}").json()["afk_misses"] == {"u1": 1}
