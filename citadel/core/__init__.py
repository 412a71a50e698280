"""Core modules for the moderator service."""

from .config import BOT_SCOPES, CHAT_SCOPES, ModeratorSettings, get_settings
from .errors import (
    AlreadyActive,
    AuthenticationFailed,
    ConnectFailed,
    ConnectionLost,
    InvalidSessionState,
    ModerationError,
    PlatformError,
    SessionNotFound,
    SessionStartFailed,
)
from .logging import setup_logging

__all__ = [
    # Settings
    "get_settings",
    "ModeratorSettings",
    "BOT_SCOPES",
    "CHAT_SCOPES",
    # Setup functions
    "setup_logging",
    # Errors
    "ModerationError",
    "AlreadyActive",
    "SessionNotFound",
    "InvalidSessionState",
    "SessionStartFailed",
    "ConnectFailed",
    "AuthenticationFailed",
    "ConnectionLost",
    "PlatformError",
]
