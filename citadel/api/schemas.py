"""Request and response models for the HTTP control surface"""

from datetime import datetime

from pydantic import BaseModel, Field

from citadel.models import SessionRef, SessionStats, StreamStatus


class StartSessionRequest(BaseModel):
    """Start moderating a channel with the bot's OAuth token"""

    channel: str = Field(min_length=1)
    access_token: str = Field(min_length=1, repr=False)
    # Lets twitchio renew the access token on EventSub sessions
    refresh_token: str | None = Field(default=None, repr=False)


class SessionResponse(BaseModel):
    session_id: str
    channel: str
    status: str
    connection: str
    started_at: datetime

    @classmethod
    def from_ref(cls, ref: SessionRef) -> "SessionResponse":
        return cls(
            session_id=ref.session_id,
            channel=ref.channel,
            status=ref.status.value,
            connection=ref.connection.value,
            started_at=ref.started_at,
        )


class ActiveChannelsResponse(BaseModel):
    channels: list[str]


class SessionStatsResponse(BaseModel):
    chats_analyzed: int
    timeouts_issued: int
    bans_issued: int
    messages_deleted: int
    spam_blocked: int
    toxicity_score: float

    @classmethod
    def from_stats(cls, stats: SessionStats) -> "SessionStatsResponse":
        return cls(**stats.to_dict())


class StreamStatusResponse(BaseModel):
    is_live: bool
    viewer_count: int
    uptime: str
    title: str
    category: str
    started_at: datetime | None = None

    @classmethod
    def from_status(cls, status: StreamStatus) -> "StreamStatusResponse":
        return cls(
            is_live=status.is_live,
            viewer_count=status.viewer_count,
            uptime=status.uptime,
            title=status.title,
            category=status.category,
            started_at=status.started_at,
        )
