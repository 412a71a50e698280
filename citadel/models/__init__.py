"""Data models shared across the moderator service."""

from .chat import ChatMessage, ModerationNotice, NoticeKind, SenderFlags
from .moderation import (
    CLEAN_VERDICT,
    ActionResult,
    ActionStatus,
    ActionType,
    ModerationAction,
    ModerationVerdict,
    VerdictCategory,
)
from .session import (
    BotCredentials,
    ConnectionState,
    SessionRef,
    SessionStats,
    SessionStatus,
    StreamStatus,
)
from .telemetry import EventKind, TelemetryEvent

__all__ = [
    "ChatMessage",
    "SenderFlags",
    "ModerationNotice",
    "NoticeKind",
    "ModerationVerdict",
    "VerdictCategory",
    "CLEAN_VERDICT",
    "ModerationAction",
    "ActionType",
    "ActionStatus",
    "ActionResult",
    "BotCredentials",
    "ConnectionState",
    "SessionRef",
    "SessionStats",
    "SessionStatus",
    "StreamStatus",
    "EventKind",
    "TelemetryEvent",
]
