"""Moderation sessions and the registry that owns them."""

from .controller import PlatformBinding, SessionController
from .registry import SessionRegistry, normalize_channel, twitch_platform

__all__ = [
    "PlatformBinding",
    "SessionController",
    "SessionRegistry",
    "normalize_channel",
    "twitch_platform",
]
