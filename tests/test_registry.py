import asyncio

import pytest
from conftest import FakePlatform

from citadel.core.errors import (
    AlreadyActive,
    ConnectFailed,
    SessionNotFound,
    SessionStartFailed,
)
from citadel.models import BotCredentials, SessionStatus
from citadel.session import SessionRegistry, normalize_channel, twitch_platform
from citadel.twitch import TwitchEventSubConnection, TwitchIRCConnection

CREDS = BotCredentials(access_token="tok")


@pytest.fixture
async def registry(broadcaster, settings):
    platform = FakePlatform()
    reg = SessionRegistry(broadcaster, settings, platform_factory=platform)
    reg.platform = platform
    yield reg
    await reg.shutdown()


def test_normalize_channel():
    assert normalize_channel("#SomeChannel ") == "somechannel"
    with pytest.raises(ValueError):
        normalize_channel("#")


@pytest.mark.asyncio
async def test_start_and_list(registry):
    ref = await registry.start_session("#TestChan", CREDS)

    assert ref.channel == "testchan"
    assert ref.status is SessionStatus.ACTIVE
    assert registry.get_active_channels() == ["testchan"]
    assert registry.get_session("TESTCHAN").status is SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_second_start_is_already_active(registry):
    await registry.start_session("testchan", CREDS)
    with pytest.raises(AlreadyActive):
        await registry.start_session("#testchan", CREDS)
    assert len(registry.platform.connections) == 1


@pytest.mark.asyncio
async def test_concurrent_starts_create_one_session(registry):
    results = await asyncio.gather(
        registry.start_session("testchan", CREDS),
        registry.start_session("testchan", CREDS),
        return_exceptions=True,
    )

    assert sum(isinstance(r, AlreadyActive) for r in results) == 1
    assert len(registry.platform.connections) == 1


@pytest.mark.asyncio
async def test_stop_then_restart(registry):
    await registry.start_session("testchan", CREDS)
    await registry.stop_session("testchan")

    assert registry.get_active_channels() == []
    assert registry.get_session("testchan").status is SessionStatus.STOPPED
    assert registry.get_stats("testchan").messages_analyzed == 0

    ref = await registry.start_session("testchan", CREDS)
    assert ref.status is SessionStatus.ACTIVE
    assert len(registry.platform.connections) == 2


@pytest.mark.asyncio
async def test_failed_start_allows_retry(registry):
    registry.platform.fail_next = ConnectFailed("refused")
    with pytest.raises(SessionStartFailed):
        await registry.start_session("testchan", CREDS)

    assert registry.get_active_channels() == []
    ref = await registry.start_session("testchan", CREDS)
    assert ref.status is SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_unknown_channel(registry):
    with pytest.raises(SessionNotFound):
        await registry.stop_session("nobody")
    with pytest.raises(SessionNotFound):
        registry.pause_session("nobody")
    with pytest.raises(SessionNotFound):
        registry.get_stats("nobody")


@pytest.mark.asyncio
async def test_pause_resume_through_registry(registry):
    await registry.start_session("testchan", CREDS)

    registry.pause_session("testchan")
    assert registry.get_session("testchan").status is SessionStatus.PAUSED
    # Paused sessions still block a new start
    with pytest.raises(AlreadyActive):
        await registry.start_session("testchan", CREDS)

    registry.resume_session("testchan")
    assert registry.get_session("testchan").status is SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_channels_are_independent(registry):
    await registry.start_session("chana", CREDS)
    await registry.start_session("chanb", CREDS)
    await registry.stop_session("chana")

    assert registry.get_active_channels() == ["chanb"]


@pytest.mark.asyncio
async def test_shutdown_stops_everything(registry):
    await registry.start_session("chana", CREDS)
    await registry.start_session("chanb", CREDS)

    await registry.shutdown()

    assert registry.get_active_channels() == []
    assert all(c.disconnect_calls == 1 for c in registry.platform.connections)


@pytest.mark.asyncio
async def test_channel_locks_are_released_after_use(registry):
    for name in ("chana", "chanb", "chanc"):
        await registry.start_session(name, CREDS)
        await registry.stop_session(name)

    registry.platform.fail_next = ConnectFailed("refused")
    with pytest.raises(SessionStartFailed):
        await registry.start_session("chand", CREDS)

    assert registry._locks == {}


@pytest.mark.asyncio
async def test_shutdown_waits_for_inflight_start(registry):
    registry.platform.connect_delay = 0.1
    starting = asyncio.create_task(registry.start_session("testchan", CREDS))
    await asyncio.sleep(0.02)

    await registry.shutdown()
    await starting

    assert registry.get_active_channels() == []
    assert registry.get_session("testchan").status is SessionStatus.STOPPED
    assert registry._locks == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "transport, expected",
    [("eventsub", TwitchEventSubConnection), ("irc", TwitchIRCConnection)],
)
async def test_twitch_platform_uses_configured_transport(settings, transport, expected):
    binding = twitch_platform(
        "testchan", CREDS, settings.model_copy(update={"chat_transport": transport})
    )
    assert isinstance(binding.connection, expected)
    await binding.cleanup()
