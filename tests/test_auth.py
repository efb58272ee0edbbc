"""
Tests for access-token resolution and the refresh flow.
"""

import asyncio
import json

import httpx
import pytest

from reporadar.auth import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    TokenRefresher,
    TokenResolver,
    TokenStore,
)
from reporadar.exceptions import ReauthRequiredError
from reporadar.storage import MemoryStorage, StorageError
from reporadar.testing import REFRESH_PATH, FakeGitHub
from reporadar.types.auth import ProviderSession

REFRESH_URL = f"https://auth.test{REFRESH_PATH}"


def make_resolver(storage=None, override=None, github: FakeGitHub | None = None):
    storage = storage if storage is not None else MemoryStorage()
    refresher = None
    if github is not None:
        refresher = TokenRefresher(REFRESH_URL, http_transport=github.transport)
    return TokenResolver(TokenStore(storage), override_token=override, refresher=refresher)


class BrokenStorage(MemoryStorage):
    def get_item(self, key):
        raise StorageError("storage unavailable")

    def set_item(self, key, value):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_session_token_wins() -> None:
    """
    Property 4: Token priority

    A session token SHALL be returned even when every fallback is populated.
    """
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "stored", REFRESH_TOKEN_KEY: "refresh"})
    github = FakeGitHub()
    resolver = make_resolver(storage, override="override", github=github)

    assert await resolver.resolve("session") == "session"
    assert github.call_count() == 0


@pytest.mark.asyncio
async def test_override_before_stored() -> None:
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "stored"})
    resolver = make_resolver(storage, override="override")

    assert await resolver.resolve(None) == "override"


@pytest.mark.asyncio
async def test_stored_token_never_contacts_refresh_endpoint() -> None:
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "stored", REFRESH_TOKEN_KEY: "refresh"})
    github = FakeGitHub()
    resolver = make_resolver(storage, github=github)

    assert await resolver.resolve(None) == "stored"
    assert await resolver.resolve("") == "stored"
    assert not github.was_called("POST", REFRESH_PATH)


@pytest.mark.asyncio
async def test_stored_fallback_logged_once(caplog) -> None:
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "stored"})
    resolver = make_resolver(storage)

    with caplog.at_level("INFO", logger="reporadar.auth"):
        await resolver.resolve(None)
        await resolver.resolve(None)

    messages = [r.message for r in caplog.records if "stored access token" in r.message]
    assert len(messages) == 1


@pytest.mark.asyncio
async def test_no_source_requires_reauth() -> None:
    resolver = make_resolver()

    with pytest.raises(ReauthRequiredError):
        await resolver.resolve(None)


@pytest.mark.asyncio
async def test_refresh_flow_persists_rotated_refresh_token() -> None:
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    github = FakeGitHub()
    resolver = make_resolver(storage, github=github)

    token = await resolver.resolve(None)

    assert token == "gho_refreshed"
    assert storage.get_item(REFRESH_TOKEN_KEY) == "refresh-2"
    call = github.get_calls("POST", REFRESH_PATH)[0]
    assert call.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_refresh_rejection_clears_refresh_token() -> None:
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    github = FakeGitHub()
    github.refresh_response = (400, {"error_description": "Invalid Refresh Token: Already Used"})
    resolver = make_resolver(storage, github=github)

    with pytest.raises(ReauthRequiredError) as exc_info:
        await resolver.resolve(None)

    assert exc_info.value.message == "Invalid Refresh Token: Already Used"
    assert storage.get_item(REFRESH_TOKEN_KEY) is None


@pytest.mark.asyncio
async def test_refresh_incomplete_response() -> None:
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    github = FakeGitHub()
    github.refresh_response = (200, {"access_token": "only"})
    resolver = make_resolver(storage, github=github)

    with pytest.raises(ReauthRequiredError):
        await resolver.resolve(None)


@pytest.mark.asyncio
async def test_refresh_connection_error() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    refresher = TokenRefresher(REFRESH_URL, http_transport=httpx.MockTransport(unreachable))
    resolver = TokenResolver(TokenStore(storage), refresher=refresher)

    with pytest.raises(ReauthRequiredError):
        await resolver.resolve(None)
    await refresher.close()


def test_accept_session_persists_tokens() -> None:
    storage = MemoryStorage()
    resolver = make_resolver(storage)

    resolver.accept_session(
        ProviderSession(provider_token="gho_abc", provider_refresh_token="refresh")
    )

    assert storage.get_item(ACCESS_TOKEN_KEY) == "gho_abc"
    assert storage.get_item(REFRESH_TOKEN_KEY) == "refresh"


def test_accept_session_without_provider_token_keeps_stored() -> None:
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "old"})
    resolver = make_resolver(storage)

    resolver.accept_session(ProviderSession(provider_token=None))
    resolver.accept_session(None)

    assert storage.get_item(ACCESS_TOKEN_KEY) == "old"


def test_sign_out_clears_tokens() -> None:
    storage = MemoryStorage({ACCESS_TOKEN_KEY: "a", REFRESH_TOKEN_KEY: "r"})
    resolver = make_resolver(storage)

    resolver.sign_out()

    assert storage.get_item(ACCESS_TOKEN_KEY) is None
    assert storage.get_item(REFRESH_TOKEN_KEY) is None


@pytest.mark.asyncio
async def test_broken_storage_degrades_to_reauth(caplog) -> None:
    resolver = make_resolver(BrokenStorage())

    resolver.accept_session(ProviderSession(provider_token="gho_abc"))
    with pytest.raises(ReauthRequiredError):
        await resolver.resolve(None)

    assert any("local storage" in r.message for r in caplog.records)


class RotatingProvider:
    """Identity provider whose refresh tokens are single use."""

    def __init__(self, initial: str) -> None:
        self.valid = initial
        self.generation = 1
        self.exchanges = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.exchanges += 1
        await asyncio.sleep(0.01)
        presented = json.loads(request.content)["refresh_token"]
        if presented != self.valid:
            return httpx.Response(400, json={"error_description": "Already Used"})
        self.generation += 1
        self.valid = f"refresh-{self.generation}"
        return httpx.Response(
            200,
            json={
                "access_token": f"gho_access-{self.generation}",
                "refresh_token": self.valid,
                "expires_in": 28800,
            },
        )


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_refresh() -> None:
    """
    Property 18: Refresh exchanges are serialized

    Concurrent resolves SHALL perform a single exchange, all receive its
    access token, and leave the rotated refresh token stored.
    """
    provider = RotatingProvider("refresh-1")
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    refresher = TokenRefresher(REFRESH_URL, http_transport=httpx.MockTransport(provider.handler))
    resolver = TokenResolver(TokenStore(storage), refresher=refresher)

    tokens = await asyncio.gather(resolver.resolve(None), resolver.resolve(None))

    assert tokens == ["gho_access-2", "gho_access-2"]
    assert provider.exchanges == 1
    assert storage.get_item(REFRESH_TOKEN_KEY) == "refresh-2"
    assert storage.get_item(ACCESS_TOKEN_KEY) == "gho_access-2"
    await refresher.close()


@pytest.mark.asyncio
async def test_refreshed_access_token_is_reused() -> None:
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})
    github = FakeGitHub()
    resolver = make_resolver(storage, github=github)

    assert await resolver.resolve(None) == "gho_refreshed"
    assert await resolver.resolve(None) == "gho_refreshed"
    assert github.call_count("POST", REFRESH_PATH) == 1


@pytest.mark.asyncio
async def test_rejection_keeps_refresh_token_rotated_meanwhile() -> None:
    storage = MemoryStorage({REFRESH_TOKEN_KEY: "refresh-1"})

    async def reject_after_rotation(request: httpx.Request) -> httpx.Response:
        storage.set_item(REFRESH_TOKEN_KEY, "refresh-2")
        return httpx.Response(400, json={"error_description": "Already Used"})

    refresher = TokenRefresher(REFRESH_URL, http_transport=httpx.MockTransport(reject_after_rotation))
    resolver = TokenResolver(TokenStore(storage), refresher=refresher)

    with pytest.raises(ReauthRequiredError):
        await resolver.resolve(None)

    assert storage.get_item(REFRESH_TOKEN_KEY) == "refresh-2"
    await refresher.close()
