"""Channel → session map and the control surface over it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from citadel.core.config import ModeratorSettings, get_settings
from citadel.core.errors import AlreadyActive, SessionNotFound
from citadel.models import BotCredentials, SessionRef, SessionStats, SessionStatus
from citadel.moderation import Classifier, RuleBasedClassifier
from citadel.telemetry import TelemetryBroadcaster
from citadel.twitch import (
    ChatConnection,
    HelixModerationClient,
    TwitchEventSubConnection,
    TwitchIRCConnection,
)

from .controller import PlatformBinding, SessionController

LOGGER = logging.getLogger("SessionRegistry")

PlatformFactory = Callable[[str, BotCredentials], PlatformBinding]
ClassifierFactory = Callable[[], Classifier]


@dataclass
class _ChannelLock:
    lock: asyncio.Lock
    users: int = 0


def normalize_channel(channel: str) -> str:
    """``#SomeChannel `` → ``somechannel``"""
    name = channel.strip().lstrip("#").lower()
    if not name:
        raise ValueError("channel name must not be empty")
    return name


def twitch_platform(
    channel: str, credentials: BotCredentials, settings: ModeratorSettings
) -> PlatformBinding:
    """Bind a channel to Twitch chat (inbound) and Helix (outbound)."""
    helix = HelixModerationClient(
        credentials,
        helix_url=settings.helix_url,
        oauth_url=settings.oauth_url,
        timeout=settings.action_timeout,
    )
    connection: ChatConnection
    if settings.chat_transport == "irc":
        connection = TwitchIRCConnection(
            channel,
            credentials,
            helix,
            url=settings.irc_url,
            connect_timeout=settings.connect_timeout,
            reconnect_base_delay=settings.reconnect_base_delay,
            reconnect_max_delay=settings.reconnect_max_delay,
            reconnect_max_attempts=settings.reconnect_max_attempts,
        )
    else:
        connection = TwitchEventSubConnection(
            channel,
            credentials,
            client_id=settings.twitch_client_id,
            client_secret=settings.twitch_client_secret,
        )
    return PlatformBinding(connection=connection, api=helix, cleanup=helix.close)


class SessionRegistry:
    """Owns every session of the process.

    Start and stop for one channel are serialized by that channel's lock;
    different channels never wait on each other.
    """

    def __init__(
        self,
        broadcaster: TelemetryBroadcaster,
        settings: ModeratorSettings | None = None,
        *,
        platform_factory: PlatformFactory | None = None,
        classifier_factory: ClassifierFactory | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.broadcaster = broadcaster
        self._platform_factory = platform_factory or (
            lambda channel, credentials: twitch_platform(channel, credentials, self.settings)
        )
        self._classifier_factory = classifier_factory or (
            lambda: RuleBasedClassifier(exempt_roles=self.settings.exempt_roles)
        )
        self._sessions: dict[str, SessionController] = {}
        self._locks: dict[str, _ChannelLock] = {}

    @asynccontextmanager
    async def _channel_lock(self, channel: str) -> AsyncIterator[None]:
        """Hold *channel*'s lock. The entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(channel)
        if entry is None:
            entry = self._locks[channel] = _ChannelLock(asyncio.Lock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[channel]

    def _require(self, channel: str) -> SessionController:
        name = normalize_channel(channel)
        session = self._sessions.get(name)
        if session is None:
            raise SessionNotFound(name)
        return session

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def start_session(self, channel: str, credentials: BotCredentials) -> SessionRef:
        """Start moderating *channel*.

        Raises:
            AlreadyActive: a live session already exists for the channel
            SessionStartFailed: the chat connection could not be opened
        """
        name = normalize_channel(channel)
        async with self._channel_lock(name):
            existing = self._sessions.get(name)
            if existing is not None:
                if existing.status.is_live:
                    raise AlreadyActive(name, existing.status.value)
                if existing.status is SessionStatus.DISCONNECTING:
                    await existing.wait_stopped()

            session = SessionController(
                name,
                self._platform_factory(name, credentials),
                self.broadcaster,
                self._classifier_factory(),
                connect_timeout=self.settings.connect_timeout,
                action_timeout=self.settings.action_timeout,
                stats_interval=self.settings.stats_interval,
            )
            self._sessions[name] = session
            return await session.start()

    async def stop_session(self, channel: str) -> None:
        await self._stop_channel(self._require(channel).channel, "stopped by request")

    async def _stop_channel(self, channel: str, reason: str) -> None:
        # Re-read under the lock: a start may have replaced the session meanwhile
        async with self._channel_lock(channel):
            session = self._sessions.get(channel)
            if session is not None:
                await session.stop(reason)

    def pause_session(self, channel: str) -> None:
        self._require(channel).pause()

    def resume_session(self, channel: str) -> None:
        self._require(channel).resume()

    def get_stats(self, channel: str) -> SessionStats:
        return self._require(channel).stats()

    def get_session(self, channel: str) -> SessionRef:
        return self._require(channel).ref()

    def get_active_channels(self) -> list[str]:
        return sorted(name for name, s in self._sessions.items() if s.status.is_live)

    def live_sessions(self) -> list[SessionController]:
        return [s for s in self._sessions.values() if s.status.is_live]

    async def shutdown(self) -> None:
        """Stop every session; used on process exit."""
        channels = list(self._sessions)
        if not channels:
            return
        LOGGER.info(f"Stopping {len(channels)} session(s)")
        results = await asyncio.gather(
            *(self._stop_channel(name, "server shutting down") for name in channels),
            return_exceptions=True,
        )
        for name, result in zip(channels, results):
            if isinstance(result, Exception):
                LOGGER.error(f"[#{name}] Error during shutdown: {result}")
