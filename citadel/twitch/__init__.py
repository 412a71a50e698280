"""Twitch platform bindings: chat connections, Helix moderation, stream status."""

from .connection import ChatConnection, TwitchIRCConnection
from .eventsub import ChatEventClient, TwitchEventSubConnection
from .helix import HelixModerationClient, TokenInfo
from .streams import StreamStatusService, format_uptime

__all__ = [
    "ChatConnection",
    "ChatEventClient",
    "TwitchEventSubConnection",
    "TwitchIRCConnection",
    "HelixModerationClient",
    "TokenInfo",
    "StreamStatusService",
    "format_uptime",
]
