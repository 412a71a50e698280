"""Per-channel moderation session.

One controller owns one chat connection, one receive loop and one stats
ticker. Messages are handled strictly in arrival order; the controller is
the only writer of its ``SessionStats``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from citadel.core.errors import ConnectionLost, InvalidSessionState, SessionStartFailed
from citadel.models import (
    CLEAN_VERDICT,
    ActionResult,
    ActionType,
    ChatMessage,
    ConnectionState,
    EventKind,
    ModerationNotice,
    ModerationVerdict,
    NoticeKind,
    SessionRef,
    SessionStats,
    SessionStatus,
    TelemetryEvent,
    VerdictCategory,
)
from citadel.models.chat import utcnow
from citadel.moderation import ActionExecutor, Classifier, ModerationAPI, build_actions
from citadel.telemetry import TelemetryBroadcaster
from citadel.twitch import ChatConnection

LOGGER = logging.getLogger("Session")


@dataclass
class PlatformBinding:
    """Inbound connection and outbound moderation API for one channel."""

    connection: ChatConnection
    api: ModerationAPI
    cleanup: Callable[[], Awaitable[None]] | None = None


class SessionController:
    def __init__(
        self,
        channel: str,
        binding: PlatformBinding,
        broadcaster: TelemetryBroadcaster,
        classifier: Classifier,
        *,
        connect_timeout: float = 15.0,
        action_timeout: float = 10.0,
        stats_interval: float = 5.0,
    ) -> None:
        self.channel = channel
        self.session_id = uuid.uuid4().hex
        self.started_at: datetime = utcnow()
        self.status = SessionStatus.STOPPED
        self.connection_state = ConnectionState.DISCONNECTED

        self._binding = binding
        self.connection = binding.connection
        self.connection.on_status = self._on_connection_status
        self.executor = ActionExecutor(binding.api, timeout=action_timeout)
        self.classifier = classifier
        self.broadcaster = broadcaster
        self.connect_timeout = connect_timeout
        self.stats_interval = stats_interval

        self._stats = SessionStats()
        self._loop_task: asyncio.Task | None = None
        self._ticker_task: asyncio.Task | None = None
        self._self_stop_task: asyncio.Task | None = None
        self._action_tasks: set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ref(self) -> SessionRef:
        return SessionRef(
            session_id=self.session_id,
            channel=self.channel,
            status=self.status,
            started_at=self.started_at,
            connection=self.connection_state,
        )

    async def start(self) -> SessionRef:
        """Connect and begin moderating.

        Raises:
            SessionStartFailed: the connection could not be opened; the
                session ends up STOPPED with nothing left running
        """
        self.status = SessionStatus.CONNECTING
        self.started_at = utcnow()
        LOGGER.info(f"[#{self.channel}] Starting session {self.session_id}")

        try:
            await asyncio.wait_for(self.connection.connect(), timeout=self.connect_timeout)
        except Exception as e:
            reason = "connect timed out" if isinstance(e, TimeoutError) else str(e) or type(e).__name__
            LOGGER.error(f"[#{self.channel}] Connect failed: {type(e).__name__}: {reason}")
            try:
                await self.connection.disconnect()
            except Exception as close_error:
                LOGGER.debug(f"[#{self.channel}] Error closing failed connection: {close_error}")
            await self._release_platform()
            self.status = SessionStatus.STOPPED
            self._stopped.set()
            self._publish_status(reason)
            raise SessionStartFailed(self.channel, reason) from e

        self.status = SessionStatus.ACTIVE
        self._loop_task = asyncio.create_task(
            self._receive_loop(), name=f"session-{self.channel}-receive"
        )
        self._ticker_task = asyncio.create_task(
            self._stats_ticker(), name=f"session-{self.channel}-stats"
        )
        LOGGER.info(f"[#{self.channel}] Session active")
        self._publish_status()
        self._publish_stats()
        return self.ref()

    def pause(self) -> None:
        if self.status is SessionStatus.PAUSED:
            return
        if self.status is not SessionStatus.ACTIVE:
            raise InvalidSessionState(self.channel, self.status.value, "pause")
        self.status = SessionStatus.PAUSED
        LOGGER.info(f"[#{self.channel}] Moderation paused")
        self._publish_status()

    def resume(self) -> None:
        if self.status is SessionStatus.ACTIVE:
            return
        if self.status is not SessionStatus.PAUSED:
            raise InvalidSessionState(self.channel, self.status.value, "resume")
        self.status = SessionStatus.ACTIVE
        LOGGER.info(f"[#{self.channel}] Moderation resumed")
        self._publish_status()

    async def stop(self, reason: str | None = None) -> None:
        """Tear the session down. Safe to call more than once."""
        if self.status is SessionStatus.STOPPED:
            return
        if self.status is SessionStatus.DISCONNECTING:
            await self._stopped.wait()
            return

        self.status = SessionStatus.DISCONNECTING
        LOGGER.info(f"[#{self.channel}] Stopping session{f' ({reason})' if reason else ''}")
        self._publish_status(reason)

        try:
            await self.connection.disconnect()
        except Exception as e:
            LOGGER.exception(f"[#{self.channel}] Error disconnecting: {e}")

        current = asyncio.current_task()
        tasks = [
            t
            for t in (self._loop_task, self._ticker_task, *self._action_tasks)
            if t is not None and t is not current and not t.done()
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._action_tasks.clear()

        await self._release_platform()

        self._stats.reset()
        self.status = SessionStatus.STOPPED
        self._stopped.set()
        LOGGER.info(f"[#{self.channel}] Session stopped")
        self._publish_status(reason)
        self._publish_stats()

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    def stats(self) -> SessionStats:
        return self._stats.snapshot()

    # ------------------------------------------------------------------
    # Receive path
    # ------------------------------------------------------------------

    async def _receive_loop(self) -> None:
        try:
            async for event in self.connection.messages():
                try:
                    if isinstance(event, ModerationNotice):
                        self._handle_notice(event)
                    else:
                        await self._handle_message(event)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    LOGGER.exception(f"[#{self.channel}] Error handling chat event: {e}")
        except asyncio.CancelledError:
            raise
        except ConnectionLost as e:
            LOGGER.error(f"[#{self.channel}] Connection lost: {e}")
            self._stop_in_background(f"connection lost: {e}")
        except Exception as e:
            LOGGER.exception(f"[#{self.channel}] Receive loop failed: {e}")
            self._stop_in_background(f"receive loop failed: {type(e).__name__}")

    def _stop_in_background(self, reason: str) -> None:
        # stop() cancels the receive loop, so it cannot run inside it
        self._self_stop_task = asyncio.create_task(
            self.stop(reason), name=f"session-{self.channel}-stop"
        )

    def _classify(self, message: ChatMessage) -> ModerationVerdict:
        try:
            return self.classifier.classify(message)
        except Exception as e:
            LOGGER.exception(f"[#{self.channel}] Classifier failed, treating as clean: {e}")
            return CLEAN_VERDICT

    async def _handle_message(self, message: ChatMessage) -> None:
        if self.status not in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
            return

        self._stats.messages_analyzed += 1

        if self.status is SessionStatus.PAUSED:
            self._publish_chat(message, None, [], moderated=False)
            return

        verdict = self._classify(message)
        results: list[ActionResult] = []
        actions = build_actions(verdict, message)
        if actions:
            LOGGER.info(
                f"[#{self.channel}] {verdict.category.value} from {message.username}: "
                f"{verdict.reason} ({verdict.matched_term})"
            )
            task = asyncio.create_task(self.executor.execute_all(actions))
            self._action_tasks.add(task)
            try:
                results = await task
            finally:
                self._action_tasks.discard(task)

        self._record(verdict, results)

        self._publish_chat(message, verdict, results, moderated=True)
        for result in results:
            self._publish(EventKind.MODERATION_ACTION, result.to_dict())
        self._publish_stats()

    def _record(self, verdict: ModerationVerdict, results: list[ActionResult]) -> None:
        stats = self._stats
        if verdict.is_violation:
            stats.record_violation()
            if verdict.category is VerdictCategory.SPAM:
                stats.spam_blocked += 1
        else:
            stats.record_clean()

        for result in results:
            if not result.applied:
                continue
            if result.action.type is ActionType.DELETE:
                stats.messages_deleted += 1
            elif result.action.type is ActionType.TIMEOUT:
                stats.timeouts_issued += 1

    def _handle_notice(self, notice: ModerationNotice) -> None:
        if notice.kind is NoticeKind.BAN:
            self._stats.bans_issued += 1
            LOGGER.info(f"[#{self.channel}] {notice.target_username} was banned")
        self._publish(EventKind.MODERATION_ACTION, notice.to_dict())
        if notice.kind is NoticeKind.BAN:
            self._publish_stats()

    async def _stats_ticker(self) -> None:
        while True:
            await asyncio.sleep(self.stats_interval)
            try:
                if self.status in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
                    self._publish_stats()
            except Exception as e:
                LOGGER.exception(f"[#{self.channel}] Stats tick failed: {e}")

    async def _release_platform(self) -> None:
        if self._binding.cleanup is None:
            return
        try:
            await self._binding.cleanup()
        except Exception as e:
            LOGGER.warning(f"[#{self.channel}] Error releasing platform client: {e}")

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _on_connection_status(self, state: ConnectionState, detail: str | None) -> None:
        self.connection_state = state
        self._publish_status(detail)

    def status_payload(self, detail: str | None = None) -> dict:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "connection": self.connection_state.value,
            "detail": detail,
        }

    def _publish(self, kind: EventKind, payload: dict) -> None:
        self.broadcaster.publish(TelemetryEvent(kind=kind, channel=self.channel, payload=payload))

    def _publish_status(self, detail: str | None = None) -> None:
        self._publish(EventKind.CONNECTION_STATUS, self.status_payload(detail))

    def _publish_stats(self) -> None:
        self._publish(EventKind.STATS_SNAPSHOT, self._stats.to_dict())

    def _publish_chat(
        self,
        message: ChatMessage,
        verdict: ModerationVerdict | None,
        results: list[ActionResult],
        *,
        moderated: bool,
    ) -> None:
        self._publish(
            EventKind.CHAT_EVENT,
            {
                "message": message.to_dict(),
                "verdict": verdict.to_dict() if verdict else None,
                "actions": [r.to_dict() for r in results],
                "moderated": moderated,
            },
        )
