import pytest
from pydantic import ValidationError

from citadel.core.config import ModeratorSettings


def test_defaults():
    settings = ModeratorSettings(_env_file=None)
    assert settings.chat_transport == "eventsub"
    assert settings.irc_url == "wss://irc-ws.chat.twitch.tv:443"
    assert settings.action_timeout == 10.0
    assert settings.exempt_roles == ["moderator"]
    assert settings.stream_status_enabled is False


def test_invalid_log_level_falls_back_to_info():
    assert ModeratorSettings(_env_file=None, log_level="loud").log_level == "INFO"
    assert ModeratorSettings(_env_file=None, log_level="debug").log_level == "DEBUG"


def test_exempt_roles_are_validated():
    assert ModeratorSettings(_env_file=None, exempt_roles=["VIP", "moderator"]).exempt_roles == [
        "vip",
        "moderator",
    ]
    with pytest.raises(ValidationError):
        ModeratorSettings(_env_file=None, exempt_roles=["admin"])


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STATS_INTERVAL", "2.5")
    monkeypatch.setenv("TWITCH_CLIENT_ID", "cid")
    monkeypatch.setenv("TWITCH_CLIENT_SECRET", "secret")

    settings = ModeratorSettings(_env_file=None)

    assert settings.stats_interval == 2.5
    assert settings.stream_status_enabled is True
    assert settings.cors_origins == [settings.frontend_url]


def test_unknown_chat_transport_is_rejected():
    assert ModeratorSettings(_env_file=None, chat_transport="irc").chat_transport == "irc"
    with pytest.raises(ValidationError):
        ModeratorSettings(_env_file=None, chat_transport="pubsub")
