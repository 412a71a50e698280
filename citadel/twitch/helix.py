"""Twitch Helix moderation client.

Token validation resolves who the bot is (login, user id and the client id
the token was issued to); the moderation endpoints act as that user.
"""

import logging
from dataclasses import dataclass, field

import httpx

from citadel.core.config import BOT_SCOPES
from citadel.core.errors import AuthenticationFailed, ConnectFailed, PlatformError
from citadel.models import BotCredentials

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


@dataclass
class TokenInfo:
    """Result of ``GET /oauth2/validate``."""

    client_id: str
    login: str
    user_id: str
    scopes: list[str] = field(default_factory=list)
    expires_in: int = 0


class HelixModerationClient:
    """Client for the Helix moderation endpoints.

    Manages a shared httpx client for connection reuse. ``validate_token``
    must succeed before any moderation call.
    """

    def __init__(
        self,
        credentials: BotCredentials,
        *,
        helix_url: str = HELIX_BASE,
        oauth_url: str = OAUTH_BASE,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ):
        self._credentials = credentials
        self.helix_url = helix_url.rstrip("/")
        self.oauth_url = oauth_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self.token_info: TokenInfo | None = None

    async def close(self) -> None:
        """Close the shared HTTP client."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _identity(self) -> TokenInfo:
        if self.token_info is None:
            raise RuntimeError("Bot token has not been validated")
        return self.token_info

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._credentials.access_token}",
            "Client-Id": self._identity().client_id,
        }

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text
        raise PlatformError(response.status_code, message)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def validate_token(self) -> TokenInfo:
        """Validate the bot token and cache the identity it belongs to.

        Raises:
            AuthenticationFailed: the token was rejected (401)
            ConnectFailed: the validation endpoint could not be reached
        """
        try:
            response = await self._http.get(
                f"{self.oauth_url}/validate",
                headers={"Authorization": f"OAuth {self._credentials.access_token}"},
            )
        except httpx.HTTPError as e:
            raise ConnectFailed(f"Token validation request failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationFailed("Bot access token is invalid or expired")
        if response.status_code != 200:
            raise ConnectFailed(f"Token validation returned HTTP {response.status_code}")

        data = response.json()
        info = TokenInfo(
            client_id=data.get("client_id", ""),
            login=data.get("login", ""),
            user_id=data.get("user_id", ""),
            scopes=data.get("scopes") or [],
            expires_in=data.get("expires_in", 0),
        )

        missing = [s for s in BOT_SCOPES if s not in info.scopes]
        if missing:
            logger.warning(f"Bot token for {info.login} is missing scopes: {missing}")

        self.token_info = info
        return info

    @property
    def moderator_id(self) -> str:
        return self._identity().user_id

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def delete_message(self, broadcaster_id: str, message_id: str) -> None:
        response = await self._http.delete(
            f"{self.helix_url}/moderation/chat",
            params={
                "broadcaster_id": broadcaster_id,
                "moderator_id": self.moderator_id,
                "message_id": message_id,
            },
            headers=self._headers(),
        )
        self._raise_for_status(response)

    async def timeout_user(
        self, broadcaster_id: str, user_id: str, duration: int, reason: str
    ) -> None:
        response = await self._http.post(
            f"{self.helix_url}/moderation/bans",
            params={"broadcaster_id": broadcaster_id, "moderator_id": self.moderator_id},
            json={"data": {"user_id": user_id, "duration": duration, "reason": reason}},
            headers=self._headers(),
        )
        self._raise_for_status(response)
