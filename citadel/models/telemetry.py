"""Telemetry records fanned out to observers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .chat import utcnow


class EventKind(str, Enum):
    CHAT_EVENT = "chat_event"
    MODERATION_ACTION = "moderation_action"
    STATS_SNAPSHOT = "stats_snapshot"
    CONNECTION_STATUS = "connection_status"


@dataclass(frozen=True)
class TelemetryEvent:
    kind: EventKind
    channel: str
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "channel": self.channel,
            "timestamp": self.timestamp.isoformat(),
            "data": self.payload,
        }
