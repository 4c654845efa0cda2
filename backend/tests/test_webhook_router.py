"""
backend/tests/test_webhook_router.py

Purpose:
    HTTP contract of the chain webhook and the admin endpoints. The app is
    used without its lifespan; components are attached to app.state directly.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from marketsync.config import settings
from marketsync.main import app
from marketsync.services.backfill_service import UnknownEventError


@pytest.fixture
def client(engine):
    app.state.engine = engine
    return TestClient(app)


def _stream_body(log):
    return {
        "block": {"number": log.block_number, "timestamp": 1_790_000_000},
        "logs": [
            {
                "topics": log.topics,
                "data": log.data,
                "transactionHash": log.tx_hash,
                "logIndex": log.log_index,
            }
        ],
    }


def test_webhook_rejects_get(client):
    assert client.get("/webhooks/chain-events").status_code == 405


def test_webhook_acknowledges_unknown_envelope(client):
    resp = client.post("/webhooks/chain-events", json={"type": "ping"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}


def test_webhook_rejects_malformed_json(client):
    resp = client.post("/webhooks/chain-events", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_webhook_projects_events_and_reports_counts(client, store, make_log):
    log = make_log(
        "LeaderboardCreated",
        leaderboard_id=8,
        entry_fee=1,
        start_time=1,
        end_time=2,
        safety_period_duration=0,
        roi_submission_window=0,
    )

    first = client.post("/webhooks/chain-events", json=_stream_body(log))
    second = client.post("/webhooks/chain-events", json=_stream_body(log))

    assert first.status_code == 200
    assert first.json()["applied"] == 1
    assert second.status_code == 200
    assert second.json()["duplicate"] == 1
    assert first.headers["X-Request-ID"]


def test_webhook_returns_500_when_processing_throws(engine, monkeypatch):
    async def _explode(_logs):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine, "process_logs", _explode)
    app.state.engine = engine
    resp = TestClient(app, raise_server_exceptions=False).post("/webhooks/chain-events", json={"logs": []})

    assert resp.status_code == 500
    assert resp.json() == {"detail": "An internal error occurred."}


class _FakeBackfill:
    def __init__(self):
        self.calls = []

    async def run(self, event_names=None, *, block_range=None):
        if event_names and "Nope" in event_names:
            raise UnknownEventError("unknown event types: Nope")
        self.calls.append((event_names, block_range))
        return {"from_block": 0, "to_block": 10, "events": {}}


def test_admin_backfill_validates_event_names(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "")
    backfill = _FakeBackfill()
    app.state.backfill = backfill

    ok = client.post("/api/admin/backfill", json={"event_names": ["ContestCreated"], "block_range": 50})
    bad = client.post("/api/admin/backfill", json={"event_names": ["Nope"]})

    assert ok.status_code == 200
    assert backfill.calls == [(["ContestCreated"], 50)]
    assert bad.status_code == 400


def test_admin_requires_key_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "s3cret")
    app.state.backfill = _FakeBackfill()

    assert client.post("/api/admin/backfill", json={}).status_code == 401
    resp = client.post("/api/admin/backfill", json={}, headers={"X-Admin-Key": "s3cret"})
    assert resp.status_code == 200


def test_admin_archive_runs_service(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "")

    class _FakeArchive:
        async def run(self):
            return {"contests": 2, "speculations": 0}

    app.state.archive = _FakeArchive()
    resp = client.post("/api/admin/archive")

    assert resp.status_code == 200
    assert resp.json() == {"contests": 2, "speculations": 0}
