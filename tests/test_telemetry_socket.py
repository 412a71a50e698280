"""Telemetry WebSocket handler, driven through an in-memory socket."""

import asyncio
from types import SimpleNamespace

import pytest
from conftest import FakePlatform

from citadel.api.routers.telemetry_router import telemetry_socket
from citadel.models import BotCredentials
from citadel.session import SessionRegistry

CREDS = BotCredentials(access_token="tok")


class FakeWebSocket:
    def __init__(self, registry: SessionRegistry) -> None:
        self.app = SimpleNamespace(
            state=SimpleNamespace(broadcaster=registry.broadcaster, registry=registry)
        )
        self.accepted = False
        self.sent: asyncio.Queue = asyncio.Queue()
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict) -> None:
        self.sent.put_nowait(data)

    async def receive(self) -> dict:
        return await self._incoming.get()

    def push_text(self, text: str) -> None:
        self._incoming.put_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self) -> None:
        self._incoming.put_nowait({"type": "websocket.disconnect", "code": 1000})

    async def next_json(self) -> dict:
        return await asyncio.wait_for(self.sent.get(), timeout=1.0)


@pytest.fixture
async def registry(broadcaster, settings):
    reg = SessionRegistry(broadcaster, settings, platform_factory=FakePlatform())
    yield reg
    await reg.shutdown()


async def _open(registry, channel=None):
    websocket = FakeWebSocket(registry)
    task = asyncio.create_task(telemetry_socket(websocket, channel))
    await asyncio.sleep(0)
    return websocket, task


@pytest.mark.asyncio
async def test_sends_current_state_then_updates(registry):
    await registry.start_session("testchan", CREDS)
    websocket, task = await _open(registry, "testchan")

    status = await websocket.next_json()
    stats = await websocket.next_json()
    assert websocket.accepted
    assert status["type"] == "connection_status"
    assert status["data"]["status"] == "active"
    assert stats["type"] == "stats_snapshot"
    assert stats["data"]["chats_analyzed"] == 0

    registry.pause_session("testchan")
    update = await websocket.next_json()
    assert update["type"] == "connection_status"
    assert update["data"]["status"] == "paused"

    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_filters_other_channels(registry):
    await registry.start_session("chana", CREDS)
    websocket, task = await _open(registry, "#ChanB")

    await registry.start_session("chanb", CREDS)
    event = await websocket.next_json()
    assert event["channel"] == "chanb"

    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_disconnect_unsubscribes_observer(registry, broadcaster):
    websocket, task = await _open(registry)
    await asyncio.sleep(0.01)
    assert broadcaster.observer_count == 1

    # Inbound text is ignored
    websocket.push_text("hello")
    websocket.disconnect()
    await asyncio.wait_for(task, timeout=1.0)

    assert broadcaster.observer_count == 0


@pytest.mark.asyncio
async def test_cancelled_handler_releases_observer(registry, broadcaster):
    websocket, task = await _open(registry)
    await asyncio.sleep(0.01)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert broadcaster.observer_count == 0
