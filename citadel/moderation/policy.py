"""Moderation policy: exempt roles, timeout durations, verdict → actions."""

from __future__ import annotations

from collections.abc import Iterable
from typing import assert_never

from citadel.models import (
    ActionType,
    ChatMessage,
    ModerationAction,
    ModerationVerdict,
    VerdictCategory,
)

# Role hierarchy (higher index = higher privilege)
ROLE_HIERARCHY = ["everyone", "subscriber", "vip", "moderator", "broadcaster"]

BANNED_CONTENT_SEVERITY = 1.0
SPAM_SEVERITY = 0.5

# Policy constants, not user-configurable
TIMEOUT_SECONDS: dict[VerdictCategory, int] = {
    VerdictCategory.BANNED_CONTENT: 600,
    VerdictCategory.SPAM: 300,
}

TIMEOUT_REASONS: dict[VerdictCategory, str] = {
    VerdictCategory.BANNED_CONTENT: "Inappropriate language detected by AI moderator",
    VerdictCategory.SPAM: "Spam detected by AI moderator",
}


def sender_roles(message: ChatMessage) -> set[str]:
    """Collect the roles a chatter holds from flags and badges."""
    roles = {"everyone"}
    flags = getattr(message, "flags", None)
    if flags is not None:
        if flags.is_moderator:
            roles.add("moderator")
        if flags.is_subscriber:
            roles.add("subscriber")

    badges = getattr(message, "badges", None) or ()
    for role in ROLE_HIERARCHY[1:]:
        if role in badges:
            roles.add(role)
    return roles


def is_exempt(message: ChatMessage, exempt_roles: Iterable[str]) -> bool:
    """Exempt senders bypass classification entirely."""
    return not sender_roles(message).isdisjoint(exempt_roles)


def build_actions(verdict: ModerationVerdict, message: ChatMessage) -> list[ModerationAction]:
    """Translate a verdict into the side effects to apply, delete first."""
    category = verdict.category
    if category is VerdictCategory.CLEAN:
        return []
    elif category is VerdictCategory.BANNED_CONTENT or category is VerdictCategory.SPAM:
        reason = TIMEOUT_REASONS[category]
        actions: list[ModerationAction] = []

        # Best effort: only ids the platform assigned can be deleted
        if message.platform_message_id:
            actions.append(
                ModerationAction(
                    type=ActionType.DELETE,
                    channel=message.channel,
                    target_username=message.username,
                    target_user_id=message.user_id,
                    target_message_id=message.platform_message_id,
                    broadcaster_id=message.room_id,
                    reason=reason,
                )
            )

        actions.append(
            ModerationAction(
                type=ActionType.TIMEOUT,
                channel=message.channel,
                target_username=message.username,
                target_user_id=message.user_id,
                target_message_id=message.platform_message_id,
                broadcaster_id=message.room_id,
                duration_seconds=TIMEOUT_SECONDS[category],
                reason=reason,
            )
        )
        return actions
    else:
        assert_never(category)
