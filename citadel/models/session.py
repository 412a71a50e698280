"""Data models for moderation sessions, their stats and stream status."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

TOXICITY_INCREMENT = 0.1
TOXICITY_DECAY = 0.001


class SessionStatus(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    PAUSED = "paused"
    DISCONNECTING = "disconnecting"
    STOPPED = "stopped"

    @property
    def is_live(self) -> bool:
        """Live sessions block a new start for the same channel."""
        return self not in (SessionStatus.STOPPED, SessionStatus.DISCONNECTING)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class BotCredentials:
    """OAuth token of the moderation bot account."""

    access_token: str
    refresh_token: str | None = None

    def __repr__(self) -> str:
        return "BotCredentials(access_token='***')"


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass
class SessionStats:
    """Running aggregate for one channel.

    Mutated only by the channel's controller; everyone else reads
    ``snapshot()`` copies.
    """

    messages_analyzed: int = 0
    timeouts_issued: int = 0
    bans_issued: int = 0
    messages_deleted: int = 0
    spam_blocked: int = 0
    toxicity_score: float = 0.0

    def record_violation(self) -> None:
        self.toxicity_score = _clamp(self.toxicity_score + TOXICITY_INCREMENT)

    def record_clean(self) -> None:
        self.toxicity_score = _clamp(self.toxicity_score - TOXICITY_DECAY)

    def reset(self) -> None:
        for f in dataclasses.fields(self):
            setattr(self, f.name, f.default)

    def snapshot(self) -> SessionStats:
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chats_analyzed": self.messages_analyzed,
            "timeouts_issued": self.timeouts_issued,
            "bans_issued": self.bans_issued,
            "messages_deleted": self.messages_deleted,
            "spam_blocked": self.spam_blocked,
            "toxicity_score": round(self.toxicity_score, 4),
        }


@dataclass(frozen=True)
class SessionRef:
    """What a start-session caller gets back."""

    session_id: str
    channel: str
    status: SessionStatus
    started_at: datetime
    connection: ConnectionState = ConnectionState.DISCONNECTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "channel": self.channel,
            "status": self.status.value,
            "connection": self.connection.value,
            "started_at": self.started_at.isoformat(),
        }


@dataclass
class StreamStatus:
    """Live status of a channel's broadcast."""

    is_live: bool
    viewer_count: int = 0
    uptime: str = "0m"
    title: str = "Stream Offline"
    category: str = "N/A"
    started_at: datetime | None = None
