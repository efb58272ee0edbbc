"""Starred-repository resource client."""

import asyncio
from typing import TYPE_CHECKING

from reporadar.classify import is_fatal_for_bulk_fetch
from reporadar.exceptions import NotFoundError
from reporadar.logging import get_logger
from reporadar.pagination import last_page_number, pages_needed
from reporadar.transport import ACCEPT_JSON, ACCEPT_STAR_JSON, raise_for_failure
from reporadar.types.repos import RepositorySnapshot, StarredPage, StarredRepositories
from reporadar.types.upstream import StarredRepoResponse

if TYPE_CHECKING:
    from reporadar.transport import AsyncGitHubTransport

logger = get_logger("stars")

BULK_PAGE_SIZE = 100
MAX_STARRED_REPOS = 500
INCREMENTAL_PAGE_SIZE = 30

STARRED_SORT_OPTIONS = ("created", "updated")
SORT_DIRECTIONS = ("asc", "desc")


class StarsClient:
    """Client for the authenticated user's starred repositories."""

    def __init__(
        self,
        transport: "AsyncGitHubTransport",
        page_size: int = BULK_PAGE_SIZE,
        max_repos: int = MAX_STARRED_REPOS,
    ) -> None:
        """
        Initialize the stars client.

        Args:
            transport: Async HTTP transport for making requests
            page_size: Page size of the parallel bulk fetch
            max_repos: Cap on repositories fetched by fetch_all and fetch_next_page
        """
        self.transport = transport
        self.page_size = page_size
        self.max_repos = max_repos

    async def count(self, token: str) -> int:
        """
        Total number of starred repositories.

        The list endpoint has no count field. With ``per_page=1`` the page
        number of the ``last`` link equals the number of items, so a single
        tiny request is enough.
        """
        data, response = await self.transport.get_json(
            "/user/starred", token, params={"per_page": 1}, accept=ACCEPT_JSON
        )
        last_page = last_page_number(response.headers.get("link"))
        if last_page is None:
            # Everything fits on one page
            return len(data)
        return last_page

    async def fetch_page(
        self,
        token: str,
        page: int = 1,
        per_page: int = INCREMENTAL_PAGE_SIZE,
        sort: str = "updated",
        direction: str = "desc",
    ) -> list[RepositorySnapshot]:
        """
        Fetch one page of starred repositories, with starred-at timestamps.

        Args:
            token: GitHub access token
            page: Page number (1-indexed)
            per_page: Items per page (max 100)
            sort: "created" (when starred) or "updated"
            direction: "asc" or "desc"
        """
        if sort not in STARRED_SORT_OPTIONS:
            raise ValueError(f"sort must be one of {STARRED_SORT_OPTIONS}, got {sort!r}")
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"direction must be one of {SORT_DIRECTIONS}, got {direction!r}")

        data, _ = await self.transport.get_json(
            "/user/starred",
            token,
            params={"page": page, "per_page": per_page, "sort": sort, "direction": direction},
            accept=ACCEPT_STAR_JSON,
        )
        return [StarredRepoResponse.from_dict(item).to_snapshot() for item in data]

    async def fetch_all(self, token: str, max_repos: int | None = None) -> StarredRepositories:
        """
        Fetch every starred repository, most-starred first.

        A probe request learns the total, then all pages are requested
        concurrently. Authentication and rate-limit failures on any page abort
        the whole fetch.

        Args:
            token: GitHub access token
            max_repos: Cap on repositories fetched (default: client max_repos)

        Returns:
            StarredRepositories sorted by star count, descending
        """
        cap = max_repos if max_repos is not None else self.max_repos
        total_starred = await self.count(token)

        if total_starred == 0:
            return StarredRepositories(repositories=[], total_fetched=0, total_starred=0)

        pages = list(range(1, pages_needed(min(total_starred, cap), self.page_size) + 1))
        results = await asyncio.gather(
            *(self.fetch_page(token, page, self.page_size) for page in pages),
            return_exceptions=True,
        )

        repositories: list[RepositorySnapshot] = []
        failures: list[tuple[int, BaseException]] = []
        for page, result in zip(pages, results):
            if isinstance(result, BaseException):
                failures.append((page, result))
            else:
                repositories.extend(result)

        for page, error in failures:
            if is_fatal_for_bulk_fetch(error):
                raise error
            if not isinstance(error, Exception):
                # CancelledError and friends are not page failures
                raise error
            logger.error("Failed to fetch starred repositories page %d: %s", page, error)

        if failures and len(failures) == len(pages):
            raise failures[0][1]

        # sorted() is stable, so equal star counts keep upstream order
        ranked = sorted(repositories, key=lambda repo: repo.stars, reverse=True)[:cap]
        is_limited = total_starred > cap

        notes = []
        if is_limited:
            notes.append(f"limited to {cap}")
        if failures:
            notes.append(f"{len(failures)} pages failed")
        logger.info(
            "Bulk-fetched %d of %d starred repositories%s",
            len(ranked),
            total_starred,
            f" ({', '.join(notes)})" if notes else "",
        )

        return StarredRepositories(
            repositories=ranked,
            total_fetched=len(ranked),
            total_starred=total_starred,
            is_limited=is_limited,
            failed_pages=[page for page, _ in failures],
        )

    async def fetch_next_page(
        self,
        token: str,
        page: int = 1,
        per_page: int = INCREMENTAL_PAGE_SIZE,
        sort: str = "updated",
        direction: str = "desc",
    ) -> StarredPage:
        """
        Fetch one page for incremental (infinite scroll) loading.

        ``next_page`` is None once a short page comes back or the
        max_repos cap is reached.
        """
        repositories = await self.fetch_page(token, page, per_page, sort, direction)
        has_more = len(repositories) == per_page and page * per_page < self.max_repos
        return StarredPage(
            repositories=repositories,
            page=page,
            next_page=page + 1 if has_more else None,
        )

    async def star(self, token: str, owner: str, name: str) -> None:
        """Star a repository for the authenticated user."""
        await self._write("PUT", token, owner, name)

    async def unstar(self, token: str, owner: str, name: str) -> None:
        """Unstar a repository for the authenticated user."""
        await self._write("DELETE", token, owner, name)

    async def _write(self, method: str, token: str, owner: str, name: str) -> None:
        response = await self.transport.request(method, f"/user/starred/{owner}/{name}", token)
        if response.status_code == 404:
            raise NotFoundError(f"Repository {owner}/{name} not found")
        raise_for_failure(response)

    async def is_starred(self, token: str | None, owner: str, name: str) -> bool:
        """
        Whether the authenticated user has starred a repository.

        Returns False without a request when there is no token.
        """
        if not token:
            return False
        response = await self.transport.request("GET", f"/user/starred/{owner}/{name}", token)
        if response.status_code == 404:
            return False
        raise_for_failure(response)
        return response.status_code == 204
