"""Data models for inbound chat lines and platform moderation notices."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SenderFlags:
    """Role flags the platform attaches to a chat line."""

    is_moderator: bool = False
    is_subscriber: bool = False


@dataclass(frozen=True)
class ChatMessage:
    """One inbound chat line. Immutable once built by the connection."""

    id: str
    channel: str
    username: str
    text: str
    received_at: datetime = field(default_factory=utcnow)
    flags: SenderFlags = field(default_factory=SenderFlags)
    badges: frozenset[str] = frozenset()
    user_id: str | None = None
    room_id: str | None = None
    display_name: str | None = None
    # True when the platform sent no id and the connection generated one
    id_synthesized: bool = False

    @property
    def platform_message_id(self) -> str | None:
        """Id usable against the platform API, None for synthesized ids."""
        return None if self.id_synthesized else self.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channel": self.channel,
            "username": self.username,
            "display_name": self.display_name or self.username,
            "text": self.text,
            "timestamp": self.received_at.isoformat(),
            "is_moderator": self.flags.is_moderator,
            "is_subscriber": self.flags.is_subscriber,
            "badges": sorted(self.badges),
        }


class NoticeKind(str, Enum):
    BAN = "ban"
    TIMEOUT = "timeout"
    DELETE = "delete"
    CLEAR = "clear"  # whole chat cleared


@dataclass(frozen=True)
class ModerationNotice:
    """A moderation event observed in the channel (issued by anyone)."""

    channel: str
    kind: NoticeKind
    target_username: str | None = None
    target_user_id: str | None = None
    target_message_id: str | None = None
    duration_seconds: int | None = None
    received_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "username": self.target_username,
            "message_id": self.target_message_id,
            "duration": self.duration_seconds,
            "channel": self.channel,
            "source": "platform",
        }
