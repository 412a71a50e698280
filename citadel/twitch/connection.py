"""Chat connection adapters.

``ChatConnection`` is the contract a session reads chat through.
``TwitchIRCConnection`` speaks Twitch IRC over a WebSocket and turns lines
into ``ChatMessage`` / ``ModerationNotice`` events for one channel. The
EventSub transport lives in ``eventsub.py``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

import aiohttp

from citadel.core.config import CHAT_SCOPES
from citadel.core.errors import AuthenticationFailed, ConnectFailed, ConnectionLost
from citadel.models import BotCredentials, ChatMessage, ConnectionState, ModerationNotice

from .irc import (
    IRCMessage,
    is_auth_failure,
    parse_irc_message,
    to_chat_message,
    to_moderation_notice,
)

LOGGER = logging.getLogger("TwitchIRC")

StatusCallback = Callable[[ConnectionState, str | None], None]
ChatEvent = ChatMessage | ModerationNotice

IRC_URL = "wss://irc-ws.chat.twitch.tv:443"
CAPABILITIES = "twitch.tv/tags twitch.tv/commands"


class TokenValidator(Protocol):
    async def validate_token(self) -> Any: ...


class _SocketClosed(Exception):
    """The WebSocket closed underneath the reader."""


class ChatConnection(ABC):
    """Connection to one channel's chat.

    Every state change goes through ``_set_state`` so the owner is told via
    ``on_status``.
    """

    def __init__(self, channel: str, on_status: StatusCallback | None = None) -> None:
        self.channel = channel
        self.on_status = on_status
        self.state = ConnectionState.DISCONNECTED
        self._seq = itertools.count(1)

    def _set_state(self, state: ConnectionState, detail: str | None = None) -> None:
        if state is self.state and detail is None:
            return
        self.state = state
        if self.on_status is not None:
            try:
                self.on_status(state, detail)
            except Exception:
                LOGGER.exception(f"[#{self.channel}] Status callback failed")

    def _synthesize_id(self) -> str:
        """Local id for a line the platform sent without one."""
        return f"local-{int(time.time() * 1000)}-{next(self._seq)}"

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and join the channel.

        Raises ``AuthenticationFailed`` or ``ConnectFailed``.
        """

    @abstractmethod
    def messages(self) -> AsyncIterator[ChatEvent]:
        """Yield chat events until disconnected.

        Raises ``ConnectionLost`` when a dropped connection cannot be restored.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Stop reading and close the connection. Idempotent."""


class TwitchIRCConnection(ChatConnection):
    def __init__(
        self,
        channel: str,
        credentials: BotCredentials,
        identity: TokenValidator,
        *,
        url: str = IRC_URL,
        connect_timeout: float = 15.0,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 60.0,
        reconnect_max_attempts: int = 10,
        on_status: StatusCallback | None = None,
    ) -> None:
        super().__init__(channel, on_status)
        self._credentials = credentials
        self._identity = identity
        self.url = url
        self.connect_timeout = connect_timeout
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.reconnect_max_attempts = reconnect_max_attempts

        self.bot_login: str | None = None
        self._http: aiohttp.ClientSession | None = None
        self._ws: Any = None
        self._pending: deque[IRCMessage] = deque()
        self._stopping = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._stopping.clear()
        self._set_state(ConnectionState.CONNECTING)

        try:
            token = await self._identity.validate_token()
            self.bot_login = (token.login or "").lower()
            granted = getattr(token, "scopes", None) or []
            missing = [s for s in CHAT_SCOPES["irc"] if s not in granted]
            if missing:
                LOGGER.warning(f"[#{self.channel}] Bot token is missing chat scopes: {missing}")
            await asyncio.wait_for(self._open(), timeout=self.connect_timeout)
        except AuthenticationFailed:
            await self._close_socket()
            self._set_state(ConnectionState.DISCONNECTED, "authentication failed")
            raise
        except TimeoutError as e:
            await self._close_socket()
            self._set_state(ConnectionState.DISCONNECTED, "connect timed out")
            raise ConnectFailed(f"Timed out joining #{self.channel}") from e
        except ConnectFailed:
            await self._close_socket()
            self._set_state(ConnectionState.DISCONNECTED, "connect failed")
            raise
        except (aiohttp.ClientError, OSError, _SocketClosed) as e:
            await self._close_socket()
            self._set_state(ConnectionState.DISCONNECTED, "connect failed")
            raise ConnectFailed(f"Could not connect to {self.url}: {e}") from e

        LOGGER.info(f"[#{self.channel}] Joined as {self.bot_login}")
        self._set_state(ConnectionState.CONNECTED)

    async def disconnect(self) -> None:
        self._stopping.set()
        await self._close_socket()
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def messages(self) -> AsyncIterator[ChatEvent]:
        while not self._stopping.is_set():
            if not self._pending:
                try:
                    self._pending.extend(await self._read())
                except (_SocketClosed, aiohttp.ClientError, OSError) as e:
                    if self._stopping.is_set():
                        break
                    await self._reconnect(f"connection dropped: {e}")
                continue

            msg = self._pending.popleft()
            if msg.command == "PING":
                try:
                    await self._send(f"PONG :{msg.trailing or 'tmi.twitch.tv'}")
                except (_SocketClosed, aiohttp.ClientError, OSError) as e:
                    if self._stopping.is_set():
                        break
                    await self._reconnect(f"keepalive failed: {e}")
            elif msg.command == "RECONNECT":
                await self._reconnect("server requested reconnect")
            elif msg.command == "PRIVMSG":
                message = to_chat_message(msg, self.channel, self._synthesize_id)
                # Skip our own messages
                if message.username != self.bot_login:
                    yield message
            elif msg.command in ("CLEARCHAT", "CLEARMSG"):
                notice = to_moderation_notice(msg, self.channel)
                if notice is not None:
                    yield notice
            elif msg.command == "NOTICE":
                LOGGER.debug(f"[#{self.channel}] NOTICE: {msg.trailing}")

    # ------------------------------------------------------------------
    # Socket helpers
    # ------------------------------------------------------------------

    async def _open_socket(self) -> Any:
        """Open the raw WebSocket. Anything with send_str/receive/close works."""
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
        return await self._http.ws_connect(self.url)

    async def _open(self) -> None:
        """Connect, authenticate and wait until the channel is joined."""
        self._ws = await self._open_socket()
        self._pending.clear()
        await self._send(f"CAP REQ :{CAPABILITIES}")
        await self._send(f"PASS oauth:{self._credentials.access_token}")
        await self._send(f"NICK {self.bot_login}")
        await self._send(f"JOIN #{self.channel}")

        while True:
            lines = deque(await self._read())
            while lines:
                msg = lines.popleft()
                if msg.command == "PING":
                    await self._send(f"PONG :{msg.trailing or 'tmi.twitch.tv'}")
                elif is_auth_failure(msg):
                    raise AuthenticationFailed(msg.trailing)
                elif msg.command == "ROOMSTATE" or (
                    msg.command == "JOIN" and msg.nick == self.bot_login
                ):
                    # Keep anything that arrived in the same frame
                    self._pending.extend(lines)
                    return

    async def _send(self, line: str) -> None:
        if self._ws is None:
            raise _SocketClosed("not connected")
        await self._ws.send_str(line + "\r\n")

    async def _read(self) -> list[IRCMessage]:
        if self._ws is None:
            raise _SocketClosed("not connected")

        frame = await self._ws.receive()
        if frame.type == aiohttp.WSMsgType.TEXT:
            return [m for m in map(parse_irc_message, frame.data.split("\r\n")) if m]
        if frame.type in (
            aiohttp.WSMsgType.CLOSE,
            aiohttp.WSMsgType.CLOSING,
            aiohttp.WSMsgType.CLOSED,
            aiohttp.WSMsgType.ERROR,
        ):
            raise _SocketClosed(f"socket {frame.type.name.lower()}")
        return []

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                LOGGER.debug(f"[#{self.channel}] Error closing socket: {e}")

    async def _reconnect(self, reason: str) -> None:
        """Re-open with bounded exponential backoff.

        Raises ``ConnectionLost`` once attempts are exhausted or the token is
        rejected. Returns early if ``disconnect()`` is called meanwhile.
        """
        LOGGER.warning(f"[#{self.channel}] {reason}, reconnecting")
        self._set_state(ConnectionState.RECONNECTING, reason)
        await self._close_socket()

        delay = self.reconnect_base_delay
        for attempt in range(1, self.reconnect_max_attempts + 1):
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                return
            except TimeoutError:
                pass

            try:
                await asyncio.wait_for(self._open(), timeout=self.connect_timeout)
            except AuthenticationFailed as e:
                await self._close_socket()
                self._set_state(ConnectionState.DISCONNECTED, "authentication failed")
                raise ConnectionLost(f"#{self.channel}: credentials rejected on reconnect") from e
            except (TimeoutError, _SocketClosed, aiohttp.ClientError, OSError) as e:
                await self._close_socket()
                LOGGER.warning(
                    f"[#{self.channel}] Reconnect attempt {attempt}/{self.reconnect_max_attempts} "
                    f"failed: {type(e).__name__}: {e}, next retry in "
                    f"{min(delay * 2, self.reconnect_max_delay)}s"
                )
                delay = min(delay * 2, self.reconnect_max_delay)
                continue

            LOGGER.info(f"[#{self.channel}] Reconnected after {attempt} attempt(s)")
            self._set_state(ConnectionState.CONNECTED)
            return

        self._set_state(ConnectionState.DISCONNECTED, "reconnect attempts exhausted")
        raise ConnectionLost(
            f"#{self.channel}: gave up after {self.reconnect_max_attempts} reconnect attempts"
        )
