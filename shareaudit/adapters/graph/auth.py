"""Access token providers for the Graph client."""

import asyncio
import time
from typing import Optional

import aiohttp

from ...config import Settings
from ...errors import AuthenticationError
from ...logging import get_logger
from .client import TokenProvider

logger = get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
AUTHORITY = "https://login.microsoftonline.com"


class StaticTokenProvider:
    """Hands out a token acquired elsewhere (browser, az cli, ...)."""

    def __init__(self, token: str):
        if not token:
            raise AuthenticationError("Access token cannot be empty")
        self._token = token.strip()

    async def __call__(self) -> str:
        return self._token


class ClientCredentialsTokenProvider:
    """OAuth2 client-credentials flow with an in-memory cached token."""

    # Refresh this many seconds before the token actually expires
    REFRESH_MARGIN = 60

    def __init__(
        self,
        session: aiohttp.ClientSession,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        *,
        authority: str = AUTHORITY,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._authority = authority.rstrip("/")
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def __call__(self) -> str:
        async with self._lock:
            if self._token is None or time.monotonic() + self.REFRESH_MARGIN >= self._expires_at:
                logger.debug("Refreshing access token", tenant_id=self._tenant_id)
                self._token, expires_in = await self._acquire()
                self._expires_at = time.monotonic() + expires_in
            return self._token

    async def _acquire(self) -> tuple[str, int]:
        url = f"{self._authority}/{self._tenant_id}/oauth2/v2.0/token"
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": GRAPH_SCOPE,
            "grant_type": "client_credentials",
        }
        try:
            async with self._session.post(url, data=data) as response:
                if response.status != 200:
                    text = await response.text()
                    raise AuthenticationError(f"Token request failed: {response.status} {text[:200]}")
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise AuthenticationError(f"Token request failed: {e}") from e

        token = payload.get("access_token")
        if not token:
            raise AuthenticationError("Token response did not contain an access_token")
        return token, int(payload.get("expires_in", 3600))


def build_token_provider(settings: Settings, session: aiohttp.ClientSession) -> TokenProvider:
    """Pick a token provider for the configured auth mode."""
    if settings.auth_mode == "client_credentials":
        missing = [
            name for name in ("tenant_id", "client_id", "client_secret")
            if not getattr(settings, name)
        ]
        if missing:
            raise AuthenticationError(
                f"client_credentials auth requires {', '.join('SHAREAUDIT_' + m.upper() for m in missing)}"
            )
        return ClientCredentialsTokenProvider(
            session,
            settings.tenant_id,
            settings.client_id,
            settings.client_secret,
        )

    if not settings.access_token:
        raise AuthenticationError("No access token configured (set SHAREAUDIT_ACCESS_TOKEN)")
    return StaticTokenProvider(settings.access_token)
