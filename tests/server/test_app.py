"""Tests for the HTTP endpoints."""

import asyncio
import json
import time

import pytest
from fastapi.testclient import TestClient

from reel import __version__
from reel.core.config import ReelConfig
from reel.core.errors import StorageError
from reel.server.app import create_app
from reel.store.memory import InMemoryLedger, InMemoryRecipientStore


class BrokenLedger(InMemoryLedger):
    async def exists(self, content_id: str) -> bool:
        raise StorageError("database is locked")


def movie_json(item_id="42") -> dict:
    return {
        "NotificationType": "ItemAdded",
        "ItemType": "Movie",
        "ItemId": item_id,
        "ItemName": "Interstellar",
        "Year": 2014,
    }


@pytest.fixture
def server_config(tmp_path):
    return ReelConfig(
        logging={"log_dir": str(tmp_path / "logs")},
        broadcast={"send_delay": 0, "backoff_unit": 0},
    )


@pytest.fixture
def recipients():
    return InMemoryRecipientStore()


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# ━━━ Webhook ━━━


def test_accepted_webhook_is_broadcast(server_config, recipients, transport):
    asyncio.run(recipients.add_recipient(7))
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        resp = client.post("/webhook", json=movie_json())

        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "outcome": "accepted", "content_id": "42"}
        assert wait_for(lambda: transport.recipients == [7])


def test_duplicate_webhook(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        first = client.post("/webhook", json=movie_json())
        second = client.post("/webhook", json=movie_json())

    assert first.json()["outcome"] == "accepted"
    assert second.status_code == 200
    assert second.json()["outcome"] == "duplicate"


def test_rejected_webhook_is_still_200(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)
    body = {"NotificationType": "ItemAdded", "ItemType": "Audio", "ItemId": "9"}

    with TestClient(app) as client:
        resp = client.post("/webhook", json=body)

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "rejected"
    assert "Audio" in resp.json()["reason"]


def test_broken_template_body_is_repaired(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)
    body = (
        '{"NotificationType": "ItemAdded", "ItemType": "Episode", "ItemId": "ep",'
        ' "SeriesName": "Dark", "SeasonNumber": 01, "EpisodeNumber": }'
    )

    with TestClient(app) as client:
        resp = client.post("/webhook", content=body, headers={"Content-Type": "application/json"})

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "accepted"


def test_malformed_body_is_400(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        resp = client.post("/webhook", content=b"{nope")

    assert resp.status_code == 400


def test_storage_error_is_500(server_config, recipients, transport):
    app = create_app(server_config, ledger=BrokenLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        resp = client.post("/webhook", json=movie_json())

    assert resp.status_code == 500


def test_secret_checked_before_body(tmp_path, recipients, transport):
    config = ReelConfig(webhook={"secret": "s3cret"}, logging={"log_dir": str(tmp_path)})
    app = create_app(config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        missing = client.post("/webhook", content=b"{nope")
        wrong = client.post("/webhook", json=movie_json(), headers={"X-Webhook-Secret": "guess"})
        right = client.post("/webhook", json=movie_json(), headers={"X-Webhook-Secret": "s3cret"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert right.status_code == 200


# ━━━ Health ━━━


def test_health(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        client.post("/webhook", json=movie_json())
        client.post("/webhook", json=movie_json())
        resp = client.get("/health")

    data = resp.json()
    assert resp.status_code == 200
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["uptime"] >= 0
    assert data["stats"]["webhooks"] == {"accepted": 1, "duplicates": 1, "rejected": 0}


def test_event_log_written(server_config, tmp_path, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app) as client:
        client.post("/webhook", json=movie_json())

    files = list((tmp_path / "logs").glob("events_*.jsonl"))
    assert files
    types = [json.loads(line)["type"] for line in files[0].read_text(encoding="utf-8").splitlines()]
    assert "webhook:accepted" in types


def test_closes_collaborators_on_shutdown(server_config, recipients, transport):
    app = create_app(server_config, ledger=InMemoryLedger(), recipients=recipients, transport=transport)

    with TestClient(app):
        pass

    assert transport.closed is True
