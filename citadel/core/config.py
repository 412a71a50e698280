"""Moderator service configuration"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
PACKAGE_DIR = Path(__file__).parent.parent
PROJECT_DIR = PACKAGE_DIR.parent

# Scopes the bot token needs for issuing deletes/timeouts
BOT_SCOPES = [
    "moderator:manage:chat_messages",  # Delete messages
    "moderator:manage:banned_users",  # Timeout / ban users
]

# Extra scopes per chat transport
CHAT_SCOPES = {
    "eventsub": [
        "user:read:chat",  # Chat messages, deletes and clears
        "channel:moderate",  # Ban / timeout notifications (optional)
    ],
    "irc": ["chat:read", "chat:edit"],
}

VALID_ROLES = {"moderator", "broadcaster", "vip", "subscriber"}


class ModeratorSettings(BaseSettings):
    """Moderator service settings"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch app credentials (EventSub chat and stream status)
    twitch_client_id: str = Field(default="", description="Twitch OAuth Client ID")
    twitch_client_secret: str = Field(default="", description="Twitch OAuth Client Secret")

    # Chat transport: EventSub through twitchio, or IRC for tokens without an app
    chat_transport: Literal["eventsub", "irc"] = Field(
        default="eventsub", description="How sessions read chat"
    )

    # Platform endpoints
    irc_url: str = Field(
        default="wss://irc-ws.chat.twitch.tv:443", description="Twitch IRC WebSocket URL"
    )
    helix_url: str = Field(default="https://api.twitch.tv/helix", description="Helix base URL")
    oauth_url: str = Field(default="https://id.twitch.tv/oauth2", description="OAuth base URL")

    # Timeouts
    connect_timeout: float = Field(default=15.0, description="Chat connect timeout (s)")
    action_timeout: float = Field(default=10.0, description="Moderation API call timeout (s)")

    # Reconnect backoff
    reconnect_base_delay: float = Field(default=1.0, description="First reconnect delay (s)")
    reconnect_max_delay: float = Field(default=60.0, description="Reconnect delay cap (s)")
    reconnect_max_attempts: int = Field(default=10, description="Reconnect attempts before giving up")

    # Telemetry
    stats_interval: float = Field(default=5.0, description="Periodic stats snapshot interval (s)")
    observer_queue_size: int = Field(default=256, description="Per-observer event queue size")

    # Moderation policy
    exempt_roles: list[str] = Field(
        default=["moderator"], description="Sender roles never classified"
    )

    # Server
    frontend_url: str = Field(default="http://localhost:5173", description="Frontend URL for CORS")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("exempt_roles")
    @classmethod
    def validate_exempt_roles(cls, v: list[str]) -> list[str]:
        """Reject roles the classifier does not know about"""
        roles = [role.lower() for role in v]
        unknown = set(roles) - VALID_ROLES
        if unknown:
            raise ValueError(f"Unknown exempt roles: {sorted(unknown)}")
        return roles

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        return [self.frontend_url]

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    @property
    def stream_status_enabled(self) -> bool:
        return bool(self.twitch_client_id and self.twitch_client_secret)


@lru_cache
def get_settings() -> ModeratorSettings:
    """Get cached settings instance"""
    return ModeratorSettings()
