"""Twitch IRC line parsing and translation into internal chat events."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from citadel.models import ChatMessage, ModerationNotice, NoticeKind, SenderFlags

_TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}
_TAG_ESCAPE_RE = re.compile(r"\\(.)")

AUTH_FAILURE_NOTICES = (
    "login authentication failed",
    "improperly formatted auth",
    "login unsuccessful",
)


@dataclass
class IRCMessage:
    """One parsed IRC line: ``[@tags] [:prefix] COMMAND [params] [:trailing]``."""

    command: str
    params: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    prefix: str | None = None

    @property
    def nick(self) -> str | None:
        if not self.prefix or self.prefix.startswith("tmi.twitch.tv"):
            return None
        return self.prefix.split("!", 1)[0]

    @property
    def channel(self) -> str | None:
        for param in self.params:
            if param.startswith("#"):
                return param[1:]
        return None

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""


def _unescape_tag(value: str) -> str:
    return _TAG_ESCAPE_RE.sub(lambda m: _TAG_ESCAPES.get(m.group(1), m.group(1)), value)


def parse_irc_message(line: str) -> IRCMessage | None:
    """Parse a raw IRC line; returns None for blank input."""
    line = line.rstrip("\r\n")
    if not line.strip():
        return None

    tags: dict[str, str] = {}
    if line.startswith("@"):
        raw_tags, _, line = line[1:].partition(" ")
        for item in raw_tags.split(";"):
            if not item:
                continue
            key, _, value = item.partition("=")
            tags[key] = _unescape_tag(value)

    prefix = None
    if line.startswith(":"):
        prefix, _, line = line[1:].partition(" ")

    trailing = None
    if " :" in line:
        line, _, trailing = line.partition(" :")
    elif line.startswith(":"):
        trailing = line[1:]
        line = ""

    parts = line.split()
    if not parts:
        return None

    params = parts[1:]
    if trailing is not None:
        params.append(trailing)
    return IRCMessage(command=parts[0].upper(), params=params, tags=tags, prefix=prefix)


def parse_badges(raw: str | None) -> frozenset[str]:
    """``moderator/1,subscriber/12`` → ``{"moderator", "subscriber"}``"""
    if not raw:
        return frozenset()
    return frozenset(b.split("/", 1)[0] for b in raw.split(",") if b)


def is_auth_failure(msg: IRCMessage) -> bool:
    if msg.command != "NOTICE":
        return False
    text = msg.trailing.lower()
    return any(notice in text for notice in AUTH_FAILURE_NOTICES)


def to_chat_message(
    msg: IRCMessage, channel: str, synthesize_id: Callable[[], str]
) -> ChatMessage:
    """Build a ChatMessage from a PRIVMSG line."""
    tags = msg.tags
    message_id = tags.get("id") or ""
    badges = parse_badges(tags.get("badges"))
    username = msg.nick or tags.get("login") or "unknown"

    return ChatMessage(
        id=message_id or synthesize_id(),
        id_synthesized=not message_id,
        channel=msg.channel or channel,
        username=username.lower(),
        display_name=tags.get("display-name") or None,
        text=msg.trailing,
        flags=SenderFlags(
            is_moderator=tags.get("mod") == "1" or "moderator" in badges,
            is_subscriber=tags.get("subscriber") == "1" or "subscriber" in badges,
        ),
        badges=badges,
        user_id=tags.get("user-id") or None,
        room_id=tags.get("room-id") or None,
    )


def to_moderation_notice(msg: IRCMessage, channel: str) -> ModerationNotice | None:
    """Translate CLEARCHAT / CLEARMSG into a notice; None for anything else."""
    tags = msg.tags
    target_channel = msg.channel or channel

    if msg.command == "CLEARMSG":
        return ModerationNotice(
            channel=target_channel,
            kind=NoticeKind.DELETE,
            target_username=tags.get("login"),
            target_message_id=tags.get("target-msg-id"),
        )

    if msg.command == "CLEARCHAT":
        # No target user means the whole chat was cleared
        if len(msg.params) < 2:
            return ModerationNotice(channel=target_channel, kind=NoticeKind.CLEAR)

        duration = tags.get("ban-duration")
        return ModerationNotice(
            channel=target_channel,
            kind=NoticeKind.TIMEOUT if duration else NoticeKind.BAN,
            target_username=msg.trailing,
            target_user_id=tags.get("target-user-id"),
            duration_seconds=int(duration) if duration and duration.isdigit() else None,
        )

    return None
