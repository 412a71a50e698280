"""Data models for verdicts, moderation actions and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class VerdictCategory(str, Enum):
    CLEAN = "clean"
    BANNED_CONTENT = "banned_content"
    SPAM = "spam"


@dataclass(frozen=True)
class ModerationVerdict:
    """Classification outcome for one message. Exactly one category."""

    category: VerdictCategory
    severity: float = 0.0
    reason: str = ""
    # Banned term or spam sub-rule that triggered the verdict
    matched_term: str | None = None

    @property
    def is_violation(self) -> bool:
        return self.category is not VerdictCategory.CLEAN

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity,
            "reason": self.reason,
            "matched": self.matched_term,
        }


CLEAN_VERDICT = ModerationVerdict(VerdictCategory.CLEAN)


class ActionType(str, Enum):
    DELETE = "delete"
    TIMEOUT = "timeout"


class ActionStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"


@dataclass(frozen=True)
class ModerationAction:
    """A side effect to apply against the platform."""

    type: ActionType
    channel: str
    target_username: str
    reason: str
    target_user_id: str | None = None
    target_message_id: str | None = None
    broadcaster_id: str | None = None
    duration_seconds: int | None = None  # timeout only

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "username": self.target_username,
            "message_id": self.target_message_id,
            "duration": self.duration_seconds,
            "reason": self.reason,
            "channel": self.channel,
        }


@dataclass(frozen=True)
class ActionResult:
    action: ModerationAction
    status: ActionStatus
    error: str | None = None

    @property
    def applied(self) -> bool:
        return self.status is ActionStatus.APPLIED

    @classmethod
    def ok(cls, action: ModerationAction) -> ActionResult:
        return cls(action, ActionStatus.APPLIED)

    @classmethod
    def failed(cls, action: ModerationAction, error: str) -> ActionResult:
        return cls(action, ActionStatus.FAILED, error)

    def to_dict(self) -> dict[str, Any]:
        data = self.action.to_dict()
        data["status"] = self.status.value
        data["error"] = self.error
        data["source"] = "moderator"
        return data
