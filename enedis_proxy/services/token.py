"""OAuth client-credentials token acquisition for the Enedis API."""

import asyncio
import logging
import time
from typing import Callable

import aiohttp
from cachetools import TLRUCache

from enedis_proxy.config import get_settings

_LOGGER = logging.getLogger(__name__)

_APP_TOKEN_KEY = "app"


class TokenUnavailableError(Exception):
    """Raised when no bearer token can be produced for a request."""


class TokenProvider:
    """Hand out bearer tokens, caching the app token until shortly before expiry."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_url: str,
        scope: str,
        margin_seconds: float = 300,
        timeout_seconds: float = 10.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize the provider.

        Args:
            client_id: Enedis application client id.
            client_secret: Enedis application client secret.
            token_url: OAuth2 token endpoint.
            scope: Space separated scopes requested with the token.
            margin_seconds: How long before Enedis' expiry the token is dropped.
            timeout_seconds: Timeout for the token request.
            timer: Clock used for expiry, replaceable in tests.
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._scope = scope
        self._margin = margin_seconds
        self._timeout = timeout_seconds
        self._lock = asyncio.Lock()
        # Values are (access_token, lifetime_seconds)
        self._cache: TLRUCache[str, tuple[str, float]] = TLRUCache(
            maxsize=1, ttu=self._time_to_use, timer=timer
        )

    def _time_to_use(self, key: str, value: tuple[str, float], now: float) -> float:
        return now + max(value[1] - self._margin, 0)

    @property
    def is_configured(self) -> bool:
        """Check if app credentials are available."""
        return bool(self._client_id and self._client_secret)

    async def get_token(self, provided_token: str | None = None) -> str:
        """Get a bearer token, preferring one supplied by the caller.

        Raises:
            TokenUnavailableError: No token was supplied and none could be
                obtained from the token endpoint.
        """
        if provided_token and provided_token.strip():
            return provided_token.strip()

        cached = self._cache.get(_APP_TOKEN_KEY)
        if cached is not None:
            return cached[0]

        async with self._lock:
            # Another request may have refreshed it while we waited
            cached = self._cache.get(_APP_TOKEN_KEY)
            if cached is not None:
                return cached[0]

            if not self.is_configured:
                raise TokenUnavailableError(
                    "No access token provided and Enedis credentials are not configured"
                )

            try:
                access_token, lifetime = await self._request_token()
            except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, ValueError) as e:
                _LOGGER.error("Failed to obtain Enedis app token: %s", e)
                raise TokenUnavailableError("Unable to obtain an Enedis token") from e

            self._cache[_APP_TOKEN_KEY] = (access_token, lifetime)
            _LOGGER.info("Obtained Enedis app token valid for %d seconds", lifetime)
            return access_token

    async def _request_token(self) -> tuple[str, float]:
        """Request a new app token from the OAuth endpoint."""
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": self._scope,
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self._token_url,
                data=form,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if response.status != 200:
                    raise ValueError(f"Token endpoint returned {response.status}")
                data = await response.json()

        return data["access_token"], float(data.get("expires_in", 0))


# Global token provider instance
_token_provider: TokenProvider | None = None


def get_token_provider() -> TokenProvider:
    """Get the global token provider instance."""
    global _token_provider
    if _token_provider is None:
        settings = get_settings()
        _token_provider = TokenProvider(
            client_id=settings.enedis_client_id,
            client_secret=settings.enedis_client_secret,
            token_url=f"{settings.enedis_base_url}/oauth2/v3/token",
            scope=settings.enedis_token_scope,
            margin_seconds=settings.token_refresh_margin_seconds,
            timeout_seconds=settings.token_timeout_seconds,
        )
    return _token_provider
