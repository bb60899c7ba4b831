"""HTTP and WebSocket surface of the hub, run against in-memory storage."""

import time

import pytest
from fastapi.testclient import TestClient
from hub_fakes import ScriptedCollector

from pulse_hub.api.dependencies import get_collector
from pulse_hub.core.config import settings
from pulse_hub.main import app
from shared.constants import RealtimePaths
from shared.schemas.realtime import MetricsSnapshot

TRACK = "/v1/analytics/track"
SESSIONS = "/v1/analytics/sessions"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "storage_backend", "memory")
    monkeypatch.setattr(settings, "broadcast_interval_seconds", 0.1)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _wait_ready(client, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.get("/readyz").status_code == 200:
            return
        time.sleep(0.02)
    raise AssertionError("hub never became ready")


def _metrics_when(client, condition, timeout=3.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(RealtimePaths.METRICS_PATH).json()
        if condition(body) or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


class TestTrack:
    def test_track_returns_event_id(self, client):
        resp = client.post(
            TRACK, json={"eventType": "page_view", "eventName": "home", "page": "/"}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["eventId"]

    def test_invalid_event_is_rejected(self, client):
        resp = client.post(TRACK, json={"eventType": "teleport", "eventName": "x"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Invalid request data"
        assert body["details"]

    def test_missing_name_is_rejected(self, client):
        resp = client.post(TRACK, json={"eventType": "click"})

        assert resp.status_code == 400

    def test_batch_reports_partial_failures(self, client):
        events = [
            {"eventType": "click", "eventName": "a"},
            {"eventType": "bogus", "eventName": "b"},
            {"eventType": "purchase", "eventName": "c", "properties": {"value": 20}},
        ]

        resp = client.put(TRACK, json={"events": events})

        assert resp.status_code == 200
        body = resp.json()
        assert body["processed"] == 3
        assert body["successful"] == 2
        assert body["failed"] == 1
        assert body["errors"][0]["index"] == 1

    def test_batch_alias_route(self, client):
        resp = client.post(
            f"{TRACK}/batch", json={"events": [{"eventType": "login", "eventName": "x"}]}
        )

        assert resp.json()["successful"] == 1

    def test_batch_reports_non_object_items(self, client):
        resp = client.post(
            f"{TRACK}/batch",
            json={"events": ["oops", {"eventType": "click", "eventName": "ok"}]},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["processed"] == 2
        assert body["successful"] == 1
        assert body["failed"] == 1
        assert body["errors"][0]["index"] == 0

    def test_tracked_events_are_listed(self, client):
        client.post(TRACK, json={"eventType": "click", "eventName": "first"})
        client.post(TRACK, json={"eventType": "click", "eventName": "second"})

        events = client.get("/v1/realtime/events", params={"limit": 1}).json()["events"]

        assert [e["action"] for e in events] == ["second"]


class TestSessions:
    def test_session_lifecycle(self, client):
        started = client.post(
            SESSIONS,
            json={"sessionId": "s-1", "entryPage": "/", "utmSource": "newsletter"},
            headers={"user-agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0"},
        )
        assert started.status_code == 200
        assert started.json()["sessionId"] == "s-1"

        view = client.get(SESSIONS, params={"sessionId": "s-1"}).json()
        assert view["utmSource"] == "newsletter"
        assert view["browser"] == "Firefox"
        assert view["isActive"] is True

        ended = client.put(SESSIONS, json={"sessionId": "s-1", "exitPage": "/bye"})
        assert ended.status_code == 200
        assert ended.json()["duration"] >= 0

        view = client.get(SESSIONS, params={"sessionId": "s-1"}).json()
        assert view["isActive"] is False
        assert view["exitPage"] == "/bye"

    def test_end_unknown_session(self, client):
        resp = client.put(SESSIONS, json={"sessionId": "nope"})

        assert resp.status_code == 404

    def test_get_requires_session_id(self, client):
        resp = client.get(SESSIONS)

        assert resp.status_code == 400
        assert resp.json() == {"error": "sessionId parameter is required"}

    def test_get_unknown_session(self, client):
        assert client.get(SESSIONS, params={"sessionId": "nope"}).status_code == 404


class TestRealtime:
    def test_metrics_snapshot(self, client):
        client.post(TRACK, json={"eventType": "page_view", "eventName": "x"})

        # events are persisted in the background
        body = _metrics_when(client, lambda b: b["events"] == 1)

        assert body["pageViews"] == 1
        assert body["events"] == 1
        assert body["error"] is False

    def test_metrics_failure_is_500(self, client):
        app.dependency_overrides[get_collector] = lambda: ScriptedCollector(
            MetricsSnapshot.failed()
        )

        resp = client.get(RealtimePaths.METRICS_PATH)

        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to fetch metrics"}

    def test_history_fills_after_ticks(self, client):
        _wait_ready(client)

        points = client.get(RealtimePaths.METRICS_HISTORY_PATH).json()["points"]

        assert len(points) >= 1
        assert "activeUsers" in points[0]

    def test_websocket_streams_metrics_then_events(self, client):
        with client.websocket_connect(RealtimePaths.WS_PATH) as ws:
            first = ws.receive_json()
            assert first["type"] == "metrics"

            client.post(
                TRACK, json={"eventType": "signup", "eventName": "trial_started"}
            )

            for _ in range(50):
                message = ws.receive_json()
                if message["type"] == "event":
                    break
            else:
                pytest.fail("no event message received")

        assert message["data"]["type"] == "conversion"
        assert message["data"]["action"] == "trial_started"


class TestHealth:
    def test_healthz(self, client):
        body = client.get("/healthz").json()

        assert body["status"] == "ok"
        assert body["storage"] == "memory"

    def test_readyz_after_first_tick(self, client):
        _wait_ready(client)

        assert client.get("/readyz").json() == {"status": "ready"}
