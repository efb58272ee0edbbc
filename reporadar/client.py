"""
reporadar async client.

Ties token resolution, the starred-list fetcher, the repository cache, the
metrics engine and the pending-unstar overlay into one entry point.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import httpx

from reporadar.auth import TokenRefresher, TokenResolver, TokenStore
from reporadar.cache import CacheBackend, CacheStore, MemoryCacheBackend, utc_now
from reporadar.clients import RateLimitClient, ReposClient, SearchClient, StarsClient
from reporadar.clients.repos import snapshot_from_entry
from reporadar.config import RadarConfig, override_token_from_env
from reporadar.logging import get_logger
from reporadar.metrics import MetricsEngine
from reporadar.reconciler import PendingUnstarReconciler
from reporadar.sql_backend import SqlCacheBackend
from reporadar.storage import JsonFileStorage, KeyValueStorage, MemoryStorage, SafeStorage
from reporadar.transport import AsyncGitHubTransport, RetryConfig
from reporadar.types.auth import ProviderSession
from reporadar.types.metrics import MetricsThresholds
from reporadar.types.repos import (
    RateLimitStatus,
    Release,
    RepositorySnapshot,
    StarredPage,
    StarredRepositories,
    TrackedRepository,
)
from reporadar.types.search import SearchResults

logger = get_logger()


class RepoRadarClient:
    """
    Async client for the Repo Radar star-synchronization engine.

    Example:
        ```python
        import asyncio
        from reporadar import RepoRadarClient
        from reporadar.types import ProviderSession

        async def main():
            async with RepoRadarClient.from_env() as radar:
                radar.accept_session(ProviderSession(provider_token="gho_..."))
                starred = await radar.starred_repositories()
                for repo in starred.repositories[:10]:
                    print(repo.snapshot.full_name, repo.snapshot.stars)

        asyncio.run(main())
        ```
    """

    def __init__(
        self,
        config: RadarConfig | None = None,
        storage: KeyValueStorage | None = None,
        cache_backend: CacheBackend | None = None,
        override_token: str | None = None,
        refresher: TokenRefresher | None = None,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        thresholds: MetricsThresholds | None = None,
        clock: Callable[[], float] = time.time,
        cache_clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Tunables; defaults to RadarConfig()
            storage: Local key-value storage for tokens and pending unstars
                (default: JSON file at config.storage_path, else in-memory)
            cache_backend: Repository cache backend
                (default: SQLAlchemy at config.database_url, else in-memory)
            override_token: Out-of-band token tried after the session token
            refresher: Identity-provider refresh client
                (default: built from config.refresh_url when set)
            retry_config: Transport retry behavior
            http_transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            thresholds: Hot/trending thresholds for the metrics engine
            clock: Epoch-seconds clock for the pending-unstar window
            cache_clock: Aware-datetime clock for cache expiry
        """
        self.config = config or RadarConfig()
        self._owned: list[Any] = []

        if storage is None:
            storage = (
                JsonFileStorage(self.config.storage_path)
                if self.config.storage_path
                else MemoryStorage()
            )
        self.storage = SafeStorage(storage)

        if cache_backend is None:
            if self.config.database_url:
                cache_backend = SqlCacheBackend(self.config.database_url)
                self._owned.append(cache_backend)
            else:
                cache_backend = MemoryCacheBackend()

        if refresher is None and self.config.refresh_url:
            refresher = TokenRefresher(
                self.config.refresh_url,
                timeout=self.config.timeout,
                http_transport=http_transport,
            )
            self._owned.append(refresher)

        self._transport = AsyncGitHubTransport(
            base_url=self.config.api_base_url,
            timeout=self.config.timeout,
            retry_config=retry_config,
            http_transport=http_transport,
        )

        self.tokens = TokenResolver(
            TokenStore(self.storage), override_token=override_token, refresher=refresher
        )
        self.cache = CacheStore(
            cache_backend,
            ttl=self.config.cache_ttl,
            retention=self.config.cache_retention,
            clock=cache_clock,
        )
        self.reconciler = PendingUnstarReconciler(
            self.storage, max_age=self.config.pending_unstar_max_age, clock=clock
        )
        self.metrics = MetricsEngine(thresholds)

        # Resource clients
        self.stars = StarsClient(
            self._transport,
            page_size=self.config.page_size,
            max_repos=self.config.max_starred_repos,
        )
        self.repos = ReposClient(self._transport, self.cache)
        self.search_client = SearchClient(self._transport)
        self.rate_limits = RateLimitClient(self._transport)

    @classmethod
    def from_env(
        cls,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RepoRadarClient":
        """
        Create a client from environment variables.

        See RadarConfig.from_env for the variables read. The override token
        comes from REPORADAR_TEST_TOKEN.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        return cls(
            config=RadarConfig.from_env(),
            override_token=override_token_from_env(),
            retry_config=retry_config,
            http_transport=http_transport,
        )

    @property
    def transport(self) -> AsyncGitHubTransport:
        """Get the underlying async HTTP transport (for advanced use cases)."""
        return self._transport

    # Session handling

    def accept_session(self, session: ProviderSession | None) -> None:
        """Persist tokens handed off by the identity provider."""
        self.tokens.accept_session(session)

    def sign_out(self) -> None:
        self.tokens.sign_out()

    async def resolve_token(self, session_token: str | None = None) -> str:
        return await self.tokens.resolve(session_token)

    # Starred repositories

    async def _track(
        self, snapshots: list[RepositorySnapshot], is_starred: bool
    ) -> list[TrackedRepository]:
        previous = await asyncio.to_thread(
            self.cache.get_stale_many, [snapshot.id for snapshot in snapshots]
        )
        tracked = []
        for snapshot in snapshots:
            entry = previous.get(snapshot.id)
            tracked.append(
                TrackedRepository(
                    snapshot=snapshot,
                    metrics=self.metrics.compute(
                        snapshot, snapshot_from_entry(entry) if entry else None
                    ),
                    is_starred=is_starred,
                )
            )
        return tracked

    async def starred_repositories(
        self, session_token: str | None = None
    ) -> StarredRepositories:
        """
        All starred repositories, most-starred first.

        Repositories pending unstar are left out. Metrics are attached by
        comparing with the cached snapshot of each repository, if any.

        Raises:
            ReauthRequiredError: If no access token is available
            AuthenticationFailedError: If upstream rejects the token
            RateLimitedError: If the rate limit is exhausted
        """
        token = await self.resolve_token(session_token)
        result = await self.stars.fetch_all(token)
        visible = self.reconciler.filter(result.repositories)
        tracked = await self._track(visible, is_starred=True)
        return StarredRepositories(
            repositories=tracked,
            total_fetched=len(tracked),
            total_starred=result.total_starred,
            is_limited=result.is_limited,
            failed_pages=result.failed_pages,
        )

    async def starred_page(
        self,
        session_token: str | None = None,
        page: int = 1,
        per_page: int | None = None,
        sort: str = "updated",
        direction: str = "desc",
    ) -> StarredPage:
        """One page of starred repositories for incremental loading."""
        token = await self.resolve_token(session_token)
        result = await self.stars.fetch_next_page(
            token,
            page=page,
            per_page=per_page or self.config.incremental_page_size,
            sort=sort,
            direction=direction,
        )
        visible = self.reconciler.filter(result.repositories)
        return StarredPage(
            repositories=await self._track(visible, is_starred=True),
            page=result.page,
            next_page=result.next_page,
        )

    # Single repository

    async def repository(
        self, repo_id: int, session_token: str | None = None
    ) -> TrackedRepository:
        """
        A repository by id, served from the cache when possible.

        Raises:
            NotFoundError: If the repository does not exist
        """
        token = await self.resolve_token(session_token)
        fetch = await self.repos.get(token, repo_id)
        snapshot = fetch.snapshot

        is_starred = False
        if snapshot.id not in self.reconciler.pending_ids():
            is_starred = await self.stars.is_starred(token, snapshot.owner_login, snapshot.name)

        return TrackedRepository(
            snapshot=snapshot,
            metrics=self.metrics.compute(snapshot, fetch.previous),
            is_starred=is_starred,
        )

    async def releases(
        self, owner: str, name: str, session_token: str | None = None
    ) -> list[Release]:
        token = await self.resolve_token(session_token)
        return await self.repos.releases(
            token, owner, name, per_page=self.config.releases_page_size
        )

    # Search

    async def search(
        self,
        query: str,
        session_token: str | None = None,
        page: int = 1,
        per_page: int = 30,
        sort: str = "best-match",
        starred_ids: Iterable[int] = (),
        cancel: asyncio.Event | None = None,
    ) -> SearchResults:
        """
        Search upstream repositories.

        Raises:
            InvalidQueryError: If upstream rejects the query
            RequestCancelledError: If ``cancel`` fires before the response
        """
        token = await self.resolve_token(session_token)
        pending = self.reconciler.pending_ids()
        return await self.search_client.search(
            token,
            query,
            page=page,
            per_page=per_page,
            sort=sort,
            starred_ids=[repo_id for repo_id in starred_ids if repo_id not in pending],
            cancel=cancel,
        )

    async def rate_limit(self, session_token: str | None = None) -> RateLimitStatus:
        token = await self.resolve_token(session_token)
        return await self.rate_limits.get(token)

    # Star / unstar

    async def unstar(
        self, repository: RepositorySnapshot, session_token: str | None = None
    ) -> None:
        """
        Unstar a repository, hiding it from starred lists immediately.

        The repository is marked pending before the upstream call. If the call
        fails the mark is removed and the error re-raised.
        """
        token = await self.resolve_token(session_token)
        self.reconciler.mark_pending(repository.id)
        try:
            await self.stars.unstar(token, repository.owner_login, repository.name)
        except Exception:
            self.reconciler.clear_pending(repository.id)
            raise
        logger.info("Unstarred %s", repository.full_name)

    async def star(
        self, repository: RepositorySnapshot, session_token: str | None = None
    ) -> None:
        """Star a repository; a pending unstar of it is dropped first."""
        token = await self.resolve_token(session_token)
        self.reconciler.clear_pending(repository.id)
        await self.stars.star(token, repository.owner_login, repository.name)
        logger.info("Starred %s", repository.full_name)

    # Maintenance

    async def cleanup_cache(self) -> int:
        """Delete cache entries expired for longer than the retention window."""
        return await asyncio.to_thread(self.cache.cleanup)

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._transport.close()
        for resource in self._owned:
            if isinstance(resource, TokenRefresher):
                await resource.close()
            elif isinstance(resource, SqlCacheBackend):
                resource.dispose()

    async def __aenter__(self) -> "RepoRadarClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
