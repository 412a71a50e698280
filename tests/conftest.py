import asyncio
import itertools

import pytest

from citadel.core.config import ModeratorSettings
from citadel.models import (
    BotCredentials,
    ChatMessage,
    ConnectionState,
    EventKind,
    SenderFlags,
    TelemetryEvent,
)
from citadel.moderation import RuleBasedClassifier
from citadel.session import PlatformBinding, SessionController
from citadel.telemetry import ObserverHandle, TelemetryBroadcaster
from citadel.twitch import ChatConnection

_ids = itertools.count(1)


def make_message(
    text: str,
    *,
    channel: str = "testchan",
    username: str = "viewer",
    moderator: bool = False,
    subscriber: bool = False,
    message_id: str | None = None,
    synthesized: bool = False,
    badges: frozenset[str] = frozenset(),
) -> ChatMessage:
    return ChatMessage(
        id=message_id or f"msg-{next(_ids)}",
        id_synthesized=synthesized,
        channel=channel,
        username=username,
        text=text,
        flags=SenderFlags(is_moderator=moderator, is_subscriber=subscriber),
        badges=badges,
        user_id="200",
        room_id="100",
    )


class FakeConnection(ChatConnection):
    """In-memory chat connection fed by the test."""

    def __init__(self, channel: str = "testchan", *, fail_connect: Exception | None = None):
        super().__init__(channel)
        self.queue: asyncio.Queue = asyncio.Queue()
        self.fail_connect = fail_connect
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.connect_delay = 0.0

    async def connect(self) -> None:
        self.connect_calls += 1
        self._set_state(ConnectionState.CONNECTING)
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect is not None:
            raise self.fail_connect
        self._set_state(ConnectionState.CONNECTED)

    async def messages(self):
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.queue.put_nowait(None)
        self._set_state(ConnectionState.DISCONNECTED)

    def feed(self, item) -> None:
        self.queue.put_nowait(item)


class FakeModerationAPI:
    """Records moderation calls; failures and delays are configurable."""

    def __init__(self) -> None:
        self.deleted: list[tuple[str, str]] = []
        self.timeouts: list[tuple[str, str, int, str]] = []
        self.fail_delete: Exception | None = None
        self.fail_timeout: Exception | None = None
        self.delay = 0.0
        self.closed = False

    async def delete_message(self, broadcaster_id: str, message_id: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_delete is not None:
            raise self.fail_delete
        self.deleted.append((broadcaster_id, message_id))

    async def timeout_user(
        self, broadcaster_id: str, user_id: str, duration: int, reason: str
    ) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_timeout is not None:
            raise self.fail_timeout
        self.timeouts.append((broadcaster_id, user_id, duration, reason))

    async def close(self) -> None:
        self.closed = True


class FakePlatform:
    """Platform factory that remembers what it built."""

    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.fail_next: Exception | None = None
        self.connect_delay = 0.0

    def __call__(self, channel: str, credentials: BotCredentials) -> PlatformBinding:
        connection = FakeConnection(channel, fail_connect=self.fail_next)
        connection.connect_delay = self.connect_delay
        self.fail_next = None
        self.connections.append(connection)
        api = FakeModerationAPI()
        return PlatformBinding(connection=connection, api=api, cleanup=api.close)


async def next_event(
    handle: ObserverHandle, kind: EventKind, timeout: float = 2.0
) -> TelemetryEvent:
    """Skip ahead to the next event of *kind*."""

    async def _wait() -> TelemetryEvent:
        while True:
            event = await handle.get()
            if event.kind is kind:
                return event

    return await asyncio.wait_for(_wait(), timeout=timeout)


@pytest.fixture
def settings() -> ModeratorSettings:
    return ModeratorSettings(
        _env_file=None,
        stats_interval=60.0,
        connect_timeout=1.0,
        action_timeout=0.5,
        twitch_client_id="",
        twitch_client_secret="",
    )


@pytest.fixture
def broadcaster() -> TelemetryBroadcaster:
    return TelemetryBroadcaster(queue_size=256)


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def api() -> FakeModerationAPI:
    return FakeModerationAPI()


@pytest.fixture
def make_controller(broadcaster, connection, api):
    def _make(**kwargs) -> SessionController:
        kwargs.setdefault("stats_interval", 60.0)
        kwargs.setdefault("action_timeout", 0.5)
        kwargs.setdefault("connect_timeout", 1.0)
        classifier = kwargs.pop("classifier", None) or RuleBasedClassifier()
        return SessionController(
            connection.channel,
            PlatformBinding(connection=connection, api=api, cleanup=api.close),
            broadcaster,
            classifier,
            **kwargs,
        )

    return _make
