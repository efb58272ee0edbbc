"""
Pytest fixtures and factories for testing code built on reporadar.
"""

from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

import pytest

from reporadar.cache import CacheStore, MemoryCacheBackend
from reporadar.client import RepoRadarClient
from reporadar.config import RadarConfig
from reporadar.reconciler import PendingUnstarReconciler
from reporadar.storage import MemoryStorage
from reporadar.testing.mock import FakeClock, FakeGitHub
from reporadar.types.repos import RepositorySnapshot

TEST_TOKEN = "gho_testtoken0123456789"


# ============================================================================
# Factories
# ============================================================================


def make_repo_json(
    repo_id: int,
    full_name: str | None = None,
    stars: int = 0,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a repository payload shaped like the upstream API's."""
    full_name = full_name or f"owner{repo_id}/repo{repo_id}"
    owner, name = full_name.split("/", 1)
    data: dict[str, Any] = {
        "id": repo_id,
        "name": name,
        "full_name": full_name,
        "owner": {"login": owner, "avatar_url": f"https://avatars.test/{owner}"},
        "html_url": f"https://github.com/{full_name}",
        "description": f"Description of {name}",
        "language": "Python",
        "license": {"spdx_id": "MIT", "name": "MIT License"},
        "topics": ["radar"],
        "stargazers_count": stars,
        "forks_count": 0,
        "watchers_count": stars,
        "subscribers_count": 1,
        "open_issues_count": 0,
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "pushed_at": "2024-01-01T00:00:00Z",
    }
    data.update(overrides)
    return data


def make_release_json(release_id: int, tag_name: str, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": release_id,
        "tag_name": tag_name,
        "name": tag_name,
        "html_url": f"https://github.com/releases/{tag_name}",
        "published_at": "2024-01-01T00:00:00Z",
        "prerelease": False,
        "draft": False,
    }
    data.update(overrides)
    return data


def create_snapshot(
    repo_id: int = 1,
    full_name: str | None = None,
    stars: int = 0,
    **overrides: Any,
) -> RepositorySnapshot:
    """Create a RepositorySnapshot with sensible defaults."""
    full_name = full_name or f"owner{repo_id}/repo{repo_id}"
    owner, name = full_name.split("/", 1)
    fields: dict[str, Any] = {
        "id": repo_id,
        "name": name,
        "full_name": full_name,
        "owner_login": owner,
        "owner_avatar_url": f"https://avatars.test/{owner}",
        "html_url": f"https://github.com/{full_name}",
        "description": None,
        "language": None,
        "license": None,
        "topics": (),
        "stars": stars,
        "forks": 0,
        "watchers": 0,
        "open_issues": 0,
        "created_at": datetime(2020, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "pushed_at": None,
    }
    fields.update(overrides)
    return RepositorySnapshot(**fields)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_github() -> Iterator[FakeGitHub]:
    """
    Provide a FakeGitHub to mount on a client.

    Example:
        ```python
        async def test_starred(fake_github):
            fake_github.add_starred(make_repo_json(1, stars=5))
            stars = StarsClient(AsyncGitHubTransport(http_transport=fake_github.transport))
            assert await stars.count("token") == 1
        ```
    """
    github = FakeGitHub()
    yield github
    github.reset()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def cache_store(fake_clock: FakeClock) -> CacheStore:
    """An in-memory CacheStore driven by fake_clock."""
    return CacheStore(MemoryCacheBackend(), clock=fake_clock)


@pytest.fixture
def reconciler(memory_storage: MemoryStorage, fake_clock: FakeClock) -> PendingUnstarReconciler:
    """A PendingUnstarReconciler driven by fake_clock."""
    return PendingUnstarReconciler(memory_storage, clock=fake_clock.timestamp)


@pytest.fixture
def radar_client(
    fake_github: FakeGitHub, memory_storage: MemoryStorage, fake_clock: FakeClock
) -> RepoRadarClient:
    """
    A RepoRadarClient wired to fake_github with an override token.

    Tests should use it as ``async with radar_client:`` so it is closed.
    """
    return RepoRadarClient(
        config=RadarConfig(),
        storage=memory_storage,
        override_token=TEST_TOKEN,
        http_transport=fake_github.transport,
        clock=fake_clock.timestamp,
        cache_clock=fake_clock,
    )
