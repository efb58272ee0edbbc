"""Repository detail and releases client."""

import asyncio
from typing import TYPE_CHECKING

from reporadar.cache import CacheStore
from reporadar.classify import EndpointKind, treats_as_empty
from reporadar.exceptions import RateLimitedError
from reporadar.logging import get_logger
from reporadar.transport import raise_for_failure
from reporadar.types.cache import CacheEntry
from reporadar.types.repos import Release, RepositoryFetch, RepositorySnapshot
from reporadar.types.upstream import RepositoryResponse, parse_release

if TYPE_CHECKING:
    from reporadar.transport import AsyncGitHubTransport

logger = get_logger("repos")

RELEASES_PAGE_SIZE = 10


def snapshot_from_entry(entry: CacheEntry) -> RepositorySnapshot:
    """Rebuild a snapshot from a cached upstream body."""
    return RepositoryResponse.from_dict(entry.data).to_snapshot()


class ReposClient:
    """Client for single-repository lookups, backed by the repository cache."""

    def __init__(self, transport: "AsyncGitHubTransport", cache: CacheStore) -> None:
        """
        Initialize the repos client.

        Args:
            transport: Async HTTP transport for making requests
            cache: Cache store consulted before any upstream request
        """
        self.transport = transport
        self.cache = cache

    async def get(self, token: str, repo_id: int) -> RepositoryFetch:
        """
        Get a repository by its numeric id.

        A valid cache entry is returned without a request. Otherwise the
        request carries the stored ETag; a 304 only extends the entry's
        lifetime, a 200 replaces it. When rate limited, an expired entry is
        served instead of failing.

        Raises:
            NotFoundError: If the repository does not exist or is inaccessible
            RateLimitedError: If rate limited with nothing cached
        """
        cached = await asyncio.to_thread(self.cache.get, repo_id)
        if cached is not None:
            return RepositoryFetch(snapshot=snapshot_from_entry(cached), previous=None, source="cache")

        headers: dict[str, str] = {}
        etag = await asyncio.to_thread(self.cache.get_etag, repo_id)
        if etag:
            headers["If-None-Match"] = etag

        response = await self.transport.request(
            "GET", f"/repositories/{repo_id}", token, headers=headers
        )

        if response.status_code == 304:
            stale = await asyncio.to_thread(self.cache.get_stale, repo_id)
            if stale is not None:
                await asyncio.to_thread(self.cache.refresh_timestamp, repo_id)
                return RepositoryFetch(
                    snapshot=snapshot_from_entry(stale), previous=None, source="revalidated"
                )
            # Entry vanished between the ETag read and now: fetch unconditionally
            response = await self.transport.request("GET", f"/repositories/{repo_id}", token)

        try:
            raise_for_failure(response)
        except RateLimitedError:
            stale = await asyncio.to_thread(self.cache.get_stale, repo_id)
            if stale is None:
                raise
            logger.warning(
                "Rate limited fetching repository %s, serving cache from %s",
                repo_id,
                stale.fetched_at.isoformat(),
            )
            return RepositoryFetch(snapshot=snapshot_from_entry(stale), previous=None, source="stale")

        previous_entry = await asyncio.to_thread(self.cache.get_stale, repo_id)
        body = response.json()
        snapshot = RepositoryResponse.from_dict(body).to_snapshot()
        await asyncio.to_thread(self.cache.set, repo_id, body, response.headers.get("etag"))

        return RepositoryFetch(
            snapshot=snapshot,
            previous=snapshot_from_entry(previous_entry) if previous_entry else None,
            source="network",
        )

    async def releases(
        self,
        token: str,
        owner: str,
        name: str,
        per_page: int = RELEASES_PAGE_SIZE,
    ) -> list[Release]:
        """
        Latest releases of a repository.

        A 404 from the releases endpoint means the repository has none.
        """
        response = await self.transport.request(
            "GET",
            f"/repos/{owner}/{name}/releases",
            token,
            params={"per_page": per_page},
        )
        if treats_as_empty(response.status_code, EndpointKind.RELEASES):
            return []
        raise_for_failure(response)
        return [parse_release(item) for item in response.json()]
