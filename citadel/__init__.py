"""Citadel: real-time chat moderation sessions for Twitch channels."""

__version__ = "1.0.0"
