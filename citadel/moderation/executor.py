"""Applies moderation actions against the platform moderation API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from citadel.models import ActionResult, ActionType, ModerationAction

LOGGER = logging.getLogger("ActionExecutor")


class ModerationAPI(Protocol):
    """Outbound moderation calls of a chat platform."""

    async def delete_message(self, broadcaster_id: str, message_id: str) -> None: ...

    async def timeout_user(
        self, broadcaster_id: str, user_id: str, duration: int, reason: str
    ) -> None: ...


class ActionExecutor:
    """Runs each action as one time-bounded platform call.

    Never raises for platform faults: every error, including a hung call,
    becomes a FAILED result. There is no retry on this path.
    """

    def __init__(self, api: ModerationAPI, *, timeout: float = 10.0) -> None:
        self.api = api
        self.timeout = timeout

    async def execute(self, action: ModerationAction) -> ActionResult:
        try:
            await asyncio.wait_for(self._dispatch(action), timeout=self.timeout)
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            LOGGER.warning(
                f"[#{action.channel}] {action.type.value} {action.target_username} "
                f"timed out after {self.timeout}s"
            )
            return ActionResult.failed(action, f"timed out after {self.timeout}s")
        except Exception as e:
            LOGGER.warning(
                f"[#{action.channel}] {action.type.value} {action.target_username} failed: "
                f"{type(e).__name__}: {e}"
            )
            return ActionResult.failed(action, f"{type(e).__name__}: {e}")

        if action.type is ActionType.TIMEOUT:
            LOGGER.info(
                f"[#{action.channel}] Timed out {action.target_username} "
                f"for {action.duration_seconds}s"
            )
        else:
            LOGGER.info(f"[#{action.channel}] Deleted message from {action.target_username}")
        return ActionResult.ok(action)

    async def execute_all(self, actions: Iterable[ModerationAction]) -> list[ActionResult]:
        """Run independent actions concurrently; one failing never blocks another."""
        return list(await asyncio.gather(*(self.execute(a) for a in actions)))

    async def _dispatch(self, action: ModerationAction) -> None:
        if not action.broadcaster_id:
            raise ValueError("missing broadcaster id")

        if action.type is ActionType.DELETE:
            if not action.target_message_id:
                raise ValueError("missing message id")
            await self.api.delete_message(action.broadcaster_id, action.target_message_id)
        elif action.type is ActionType.TIMEOUT:
            if not action.target_user_id:
                raise ValueError("missing user id")
            await self.api.timeout_user(
                action.broadcaster_id,
                action.target_user_id,
                action.duration_seconds or 0,
                action.reason,
            )
        else:
            raise ValueError(f"Unsupported action type: {action.type}")
