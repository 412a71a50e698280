"""Chat over EventSub, through twitchio.

Each session gets its own ``twitchio.Client``: app login, the bot's user
token added with ``add_token``, then websocket subscriptions for the channel.
twitchio owns the EventSub socket, including keepalives and reconnects.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import twitchio
from twitchio import eventsub

from citadel.core.config import CHAT_SCOPES
from citadel.core.errors import AuthenticationFailed, ConnectFailed
from citadel.models import (
    BotCredentials,
    ChatMessage,
    ConnectionState,
    ModerationNotice,
    NoticeKind,
    SenderFlags,
)

from .connection import ChatConnection, ChatEvent, StatusCallback

LOGGER = logging.getLogger("TwitchEventSub")

ClientFactory = Callable[["TwitchEventSubConnection"], Any]


class ChatEventClient(twitchio.Client):
    """twitchio client that hands every chat event to one connection."""

    def __init__(self, connection: TwitchEventSubConnection, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._connection = connection

    async def event_message(self, payload: twitchio.ChatMessage) -> None:
        self._connection.on_chat_message(payload)

    async def event_message_delete(self, payload: Any) -> None:
        self._connection.on_message_delete(payload)

    async def event_chat_clear(self, payload: Any) -> None:
        self._connection.on_chat_clear(payload)

    async def event_ban(self, payload: Any) -> None:
        self._connection.on_ban(payload)


class TwitchEventSubConnection(ChatConnection):
    def __init__(
        self,
        channel: str,
        credentials: BotCredentials,
        *,
        client_id: str,
        client_secret: str,
        client_factory: ClientFactory | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        super().__init__(channel, on_status)
        self._credentials = credentials
        self._client_id = client_id
        self._client_secret = client_secret
        self._client_factory = client_factory or self._default_client

        self.bot_id: str | None = None
        self.bot_login: str | None = None
        self.broadcaster_id: str | None = None
        self._client: Any = None
        self._events: asyncio.Queue[ChatEvent | None] = asyncio.Queue()

    def _default_client(self, connection: TwitchEventSubConnection) -> ChatEventClient:
        return ChatEventClient(
            connection, client_id=self._client_id, client_secret=self._client_secret
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        if not (self._client_id and self._client_secret):
            self._set_state(ConnectionState.DISCONNECTED, "connect failed")
            raise ConnectFailed(
                "TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET are required for EventSub chat"
            )

        self._events = asyncio.Queue()
        self._client = self._client_factory(self)
        try:
            await self._subscribe(self._client)
        except AuthenticationFailed:
            await self._close_client()
            self._set_state(ConnectionState.DISCONNECTED, "authentication failed")
            raise
        except ConnectFailed:
            await self._close_client()
            self._set_state(ConnectionState.DISCONNECTED, "connect failed")
            raise
        except (twitchio.TwitchioException, OSError) as e:
            await self._close_client()
            self._set_state(ConnectionState.DISCONNECTED, "connect failed")
            raise ConnectFailed(f"Could not subscribe to #{self.channel} chat: {e}") from e

        LOGGER.info(f"[#{self.channel}] Subscribed to chat as {self.bot_login}")
        self._set_state(ConnectionState.CONNECTED)

    async def disconnect(self) -> None:
        self._events.put_nowait(None)
        await self._close_client()
        self._set_state(ConnectionState.DISCONNECTED)

    async def messages(self) -> AsyncIterator[ChatEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    async def _subscribe(self, client: Any) -> None:
        # App token first: user lookups go through it
        await client.login(load_tokens=False, save_tokens=False)
        try:
            token = await client.add_token(
                self._credentials.access_token, self._credentials.refresh_token or ""
            )
        except twitchio.TwitchioException as e:
            raise AuthenticationFailed(f"Twitch rejected the bot token: {e}") from e
        self.bot_id = token.user_id
        self.bot_login = (token.login or "").lower()
        missing = [s for s in CHAT_SCOPES["eventsub"] if s not in (token.scopes or [])]
        if missing:
            LOGGER.warning(f"[#{self.channel}] Bot token is missing chat scopes: {missing}")

        users = await client.fetch_users(logins=[self.channel])
        if not users:
            raise ConnectFailed(f"Unknown channel #{self.channel}")
        self.broadcaster_id = users[0].id

        await client.subscribe_websocket(
            eventsub.ChatMessageSubscription(
                broadcaster_user_id=self.broadcaster_id, user_id=self.bot_id
            ),
            token_for=self.bot_id,
        )

        # Moderation feeds are optional; a token without the scope still moderates
        optional = (
            eventsub.ChatMessageDeleteSubscription(
                broadcaster_user_id=self.broadcaster_id, user_id=self.bot_id
            ),
            eventsub.ChatClearSubscription(
                broadcaster_user_id=self.broadcaster_id, user_id=self.bot_id
            ),
            eventsub.ChannelBanSubscription(broadcaster_user_id=self.broadcaster_id),
        )
        for subscription in optional:
            try:
                await client.subscribe_websocket(subscription, token_for=self.bot_id)
            except twitchio.TwitchioException as e:
                LOGGER.warning(
                    f"[#{self.channel}] {type(subscription).__name__} unavailable: {e}"
                )

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except Exception as e:
            LOGGER.debug(f"[#{self.channel}] Error closing twitchio client: {e}")

    # ------------------------------------------------------------------
    # Event mapping
    # ------------------------------------------------------------------

    def on_chat_message(self, payload: Any) -> None:
        chatter = payload.chatter
        # Skip our own messages
        if chatter.id == self.bot_id:
            return

        badges = frozenset(badge.set_id for badge in (chatter.badges or ()))
        message_id = payload.id or self._synthesize_id()
        self._events.put_nowait(
            ChatMessage(
                id=message_id,
                id_synthesized=not payload.id,
                channel=self.channel,
                username=(chatter.name or "").lower(),
                display_name=chatter.display_name,
                text=payload.text,
                flags=SenderFlags(
                    is_moderator=bool(chatter.moderator) or "moderator" in badges,
                    is_subscriber=bool(chatter.subscriber) or "subscriber" in badges,
                ),
                badges=badges,
                user_id=chatter.id,
                room_id=self.broadcaster_id,
            )
        )

    def on_message_delete(self, payload: Any) -> None:
        self._events.put_nowait(
            ModerationNotice(
                channel=self.channel,
                kind=NoticeKind.DELETE,
                target_username=payload.user.name,
                target_user_id=payload.user.id,
                target_message_id=payload.message_id,
            )
        )

    def on_chat_clear(self, payload: Any) -> None:
        self._events.put_nowait(ModerationNotice(channel=self.channel, kind=NoticeKind.CLEAR))

    def on_ban(self, payload: Any) -> None:
        duration = None
        if not payload.permanent and payload.ends_at is not None:
            duration = int((payload.ends_at - payload.banned_at).total_seconds())
        self._events.put_nowait(
            ModerationNotice(
                channel=self.channel,
                kind=NoticeKind.BAN if payload.permanent else NoticeKind.TIMEOUT,
                target_username=payload.user.name,
                target_user_id=payload.user.id,
                duration_seconds=duration,
            )
        )
