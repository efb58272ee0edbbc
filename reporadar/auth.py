"""
Access-token resolution for upstream requests.

The identity provider hands off a GitHub token with the session, but drops it
when the session is refreshed. Tokens are therefore persisted locally as soon
as they are handed off, and resolved from a fixed chain of sources.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx

from reporadar.exceptions import ReauthRequiredError
from reporadar.logging import get_logger, truncate_token
from reporadar.storage import KeyValueStorage, SafeStorage
from reporadar.types.auth import ProviderSession, TokenRefreshResult

logger = get_logger("auth")

ACCESS_TOKEN_KEY = "github_access_token"
REFRESH_TOKEN_KEY = "github_refresh_token"


class TokenStore:
    """Persists the fallback access token and the refresh token."""

    def __init__(self, storage: KeyValueStorage | SafeStorage) -> None:
        self._storage = storage if isinstance(storage, SafeStorage) else SafeStorage(storage)

    def get_access_token(self) -> str | None:
        return self._storage.get(ACCESS_TOKEN_KEY) or None

    def store_access_token(self, token: str) -> None:
        self._storage.set(ACCESS_TOKEN_KEY, token)

    def clear_access_token(self) -> None:
        self._storage.remove(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> str | None:
        return self._storage.get(REFRESH_TOKEN_KEY) or None

    def store_refresh_token(self, token: str) -> None:
        self._storage.set(REFRESH_TOKEN_KEY, token)

    def clear_refresh_token(self) -> None:
        self._storage.remove(REFRESH_TOKEN_KEY)


class TokenRefresher:
    """Client for the identity provider's token refresh endpoint."""

    def __init__(
        self,
        refresh_url: str,
        timeout: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.refresh_url = refresh_url
        client_kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json"}}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if http_transport is not None:
            client_kwargs["transport"] = http_transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def close(self) -> None:
        await self._client.aclose()

    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        """
        Exchange a refresh token for a new access token.

        Raises:
            ReauthRequiredError: With the provider's message when the refresh is rejected
        """
        try:
            response = await self._client.post(
                self.refresh_url, json={"refresh_token": refresh_token}
            )
        except httpx.RequestError as e:
            raise ReauthRequiredError(f"Token refresh failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            raise ReauthRequiredError(_provider_message(data, response))

        try:
            return TokenRefreshResult(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_in=int(data.get("expires_in", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ReauthRequiredError("Token refresh returned an incomplete response") from e


def _provider_message(data: Any, response: httpx.Response) -> str:
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            if data.get(key):
                return str(data[key])
    return f"Token refresh failed: {response.status_code} {response.reason_phrase}"


@dataclass
class TokenResolverState:
    """Fallback logging flags and the lock serializing refresh-token exchanges."""

    logged_override: bool = False
    logged_stored: bool = False
    refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class TokenResolver:
    """
    Supplies a usable access token, trying sources in strict priority order:

    1. the token handed off by the identity-provider session
    2. an override token configured out-of-band
    3. the token persisted from a previous session
    4. a refresh-token exchange with the identity provider
    """

    def __init__(
        self,
        store: TokenStore,
        override_token: str | None = None,
        refresher: TokenRefresher | None = None,
        state: TokenResolverState | None = None,
    ) -> None:
        self.store = store
        self.override_token = override_token
        self.refresher = refresher
        self.state = state or TokenResolverState()

    def accept_session(self, session: ProviderSession | None) -> None:
        """Persist freshly handed-off tokens so they survive a session refresh."""
        if session is None:
            return
        if session.provider_token:
            self.store.store_access_token(session.provider_token)
        if session.provider_refresh_token:
            self.store.store_refresh_token(session.provider_refresh_token)

    def sign_out(self) -> None:
        self.store.clear_access_token()
        self.store.clear_refresh_token()

    async def resolve(self, session_token: str | None) -> str:
        """
        Return an access token.

        Args:
            session_token: Token from the identity-provider session, if any

        Raises:
            ReauthRequiredError: When no source yields a token
        """
        if session_token:
            return session_token

        if self.override_token:
            if not self.state.logged_override:
                logger.info("Using override GitHub token")
                self.state.logged_override = True
            return self.override_token

        stored = self.store.get_access_token()
        if stored:
            if not self.state.logged_stored:
                logger.info("Session token is absent, using stored access token")
                self.state.logged_stored = True
            return stored

        if self.refresher is not None and self.store.get_refresh_token():
            return await self._refresh()

        raise ReauthRequiredError()

    async def _refresh(self) -> str:
        # Refresh tokens are single use; concurrent callers wait for one exchange.
        async with self.state.refresh_lock:
            stored = self.store.get_access_token()
            if stored:
                return stored
            refresh_token = self.store.get_refresh_token()
            if not refresh_token:
                raise ReauthRequiredError()

            logger.info(
                "Refreshing access token with refresh token %s", truncate_token(refresh_token)
            )
            try:
                result = await self.refresher.refresh(refresh_token)
            except ReauthRequiredError as e:
                logger.warning("Token refresh rejected: %s", e.message)
                if self.store.get_refresh_token() == refresh_token:
                    self.store.clear_refresh_token()
                raise

            self.store.store_access_token(result.access_token)
            self.store.store_refresh_token(result.refresh_token)
            return result.access_token
