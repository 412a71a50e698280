"""HTTP and WebSocket surface, with the platform replaced by fakes."""

from datetime import datetime, timezone

import pytest
from conftest import FakePlatform
from fastapi.testclient import TestClient

from citadel.api import create_app
from citadel.core.errors import AuthenticationFailed
from citadel.models import StreamStatus


class FakeStreamService:
    def __init__(self) -> None:
        self.closed = False

    async def get_stream_status(self, channel: str) -> StreamStatus:
        if channel == "offline":
            return StreamStatus(is_live=False)
        return StreamStatus(
            is_live=True,
            viewer_count=42,
            uptime="1h 5m",
            title="Speedrun",
            category="Celeste",
            started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def client(settings, platform):
    app = create_app(settings, platform_factory=platform, stream_service=FakeStreamService())
    with TestClient(app) as test_client:
        yield test_client


def _start(client, channel="testchan"):
    return client.post("/api/sessions", json={"channel": channel, "access_token": "tok"})


def test_service_endpoints(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/ping").text == "pong"

    status = client.get("/status").json()
    assert status["active_sessions"] == 0
    assert status["stream_status_enabled"] is True


def test_start_session(client):
    response = _start(client, "#TestChan")

    assert response.status_code == 201
    body = response.json()
    assert body["channel"] == "testchan"
    assert body["status"] == "active"
    assert client.get("/api/sessions").json() == {"channels": ["testchan"]}


def test_start_twice_conflicts(client):
    assert _start(client).status_code == 201
    assert _start(client).status_code == 409


def test_start_with_rejected_token(client, platform):
    platform.fail_next = AuthenticationFailed("bad token")
    response = _start(client)

    assert response.status_code == 502
    assert client.get("/api/sessions").json() == {"channels": []}


def test_start_validates_body(client):
    assert client.post("/api/sessions", json={"channel": "x"}).status_code == 422
    assert (
        client.post("/api/sessions", json={"channel": "#", "access_token": "tok"}).status_code
        == 422
    )


def test_pause_resume_stop(client):
    _start(client)

    assert client.post("/api/sessions/testchan/pause").json()["status"] == "paused"
    assert client.post("/api/sessions/testchan/resume").json()["status"] == "active"

    assert client.delete("/api/sessions/testchan").status_code == 204
    assert client.get("/api/sessions/testchan").json()["status"] == "stopped"
    assert client.post("/api/sessions/testchan/pause").status_code == 409


def test_stats(client):
    _start(client)
    stats = client.get("/api/sessions/testchan/stats").json()
    assert stats == {
        "chats_analyzed": 0,
        "timeouts_issued": 0,
        "bans_issued": 0,
        "messages_deleted": 0,
        "spam_blocked": 0,
        "toxicity_score": 0.0,
    }


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/sessions/nobody"),
        ("get", "/api/sessions/nobody/stats"),
        ("delete", "/api/sessions/nobody"),
        ("post", "/api/sessions/nobody/pause"),
        ("post", "/api/sessions/nobody/resume"),
    ],
)
def test_unknown_channel_is_404(client, method, path):
    assert getattr(client, method)(path).status_code == 404


def test_stream_status(client):
    live = client.get("/api/sessions/testchan/stream").json()
    assert live["is_live"] is True
    assert live["viewer_count"] == 42
    assert live["uptime"] == "1h 5m"

    offline = client.get("/api/sessions/offline/stream").json()
    assert offline["is_live"] is False
    assert offline["title"] == "Stream Offline"


def test_stream_status_disabled_without_credentials(settings, platform):
    app = create_app(settings, platform_factory=platform)
    with TestClient(app) as test_client:
        assert test_client.get("/api/sessions/testchan/stream").status_code == 503
