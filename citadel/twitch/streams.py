"""Stream status lookups through twitchio's Helix client (app token)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import twitchio

from citadel.models import StreamStatus

LOGGER = logging.getLogger("StreamStatus")


def format_uptime(started_at: datetime | None, now: datetime | None = None) -> str:
    """``2h 5m`` when an hour or more, otherwise ``5m``."""
    if started_at is None:
        return "0m"
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - started_at).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


class StreamStatusService:
    """Reports whether a channel is live, with viewers, uptime and title."""

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        *,
        client: Any = None,
    ) -> None:
        self._client = client or twitchio.Client(client_id=client_id, client_secret=client_secret)
        self._logged_in = client is not None
        self._login_lock = asyncio.Lock()

    async def _ensure_login(self) -> None:
        if self._logged_in:
            return
        async with self._login_lock:
            if not self._logged_in:
                # App token only; no user tokens are stored
                await self._client.login(load_tokens=False, save_tokens=False)
                self._logged_in = True

    async def get_stream_status(self, channel: str) -> StreamStatus:
        try:
            await self._ensure_login()
            streams = await self._client.fetch_streams(user_logins=[channel])
        except Exception as e:
            LOGGER.warning(f"Stream lookup for #{channel} failed: {type(e).__name__}: {e}")
            return StreamStatus(is_live=False, title="Unable to fetch stream info")

        if not streams:
            return StreamStatus(is_live=False)

        stream = streams[0]
        return StreamStatus(
            is_live=True,
            viewer_count=stream.viewer_count or 0,
            uptime=format_uptime(stream.started_at),
            title=stream.title or "",
            category=stream.game_name or "N/A",
            started_at=stream.started_at,
        )

    async def close(self) -> None:
        if self._logged_in:
            await self._client.close()
