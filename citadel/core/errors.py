"""Typed errors raised by the moderation core."""

from __future__ import annotations


class ModerationError(Exception):
    """Base class for moderation core errors."""


class AlreadyActive(ModerationError):
    def __init__(self, channel: str, status: str) -> None:
        super().__init__(f"Session for #{channel} is already {status}")
        self.channel = channel
        self.status = status


class SessionNotFound(ModerationError):
    def __init__(self, channel: str) -> None:
        super().__init__(f"No session for #{channel}")
        self.channel = channel


class InvalidSessionState(ModerationError):
    """A control operation is not allowed from the session's current state."""

    def __init__(self, channel: str, status: str, operation: str) -> None:
        super().__init__(f"Cannot {operation} session for #{channel} while {status}")
        self.channel = channel
        self.status = status
        self.operation = operation


class SessionStartFailed(ModerationError):
    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"Failed to start session for #{channel}: {reason}")
        self.channel = channel
        self.reason = reason


class ConnectFailed(ModerationError):
    """The chat connection could not be established."""


class AuthenticationFailed(ConnectFailed):
    """The platform rejected the bot credential."""


class ConnectionLost(ModerationError):
    """An established connection dropped and could not be re-established."""


class PlatformError(ModerationError):
    """The moderation API answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
