"""Repository search: upstream search and client-side search of starred repositories."""

import asyncio
import contextlib
from collections.abc import Awaitable, Iterable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

from reporadar.exceptions import RequestCancelledError
from reporadar.pagination import (
    GITHUB_SEARCH_LIMIT,
    calculate_pagination,
    calculate_search_pagination,
)
from reporadar.types.repos import RepositorySnapshot, TrackedRepository
from reporadar.types.search import SearchResults
from reporadar.types.upstream import SearchResultItem

if TYPE_CHECKING:
    from reporadar.transport import AsyncGitHubTransport

T = TypeVar("T")

# "best-match" sends no sort parameter: upstream relevance ranking
SEARCH_SORT_PARAMS: dict[str, str | None] = {
    "best-match": None,
    "stars": "stars",
    "forks": "forks",
    "updated": "updated",
    "help-wanted": "help-wanted-issues",
}

STARRED_SEARCH_SORTS = ("updated", "stars", "created")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def build_search_query(query: str) -> str:
    """
    Turn user input into an upstream search query.

    A query wrapped in double quotes is an exact name match; anything else is
    passed through for fuzzy matching.

    Example:
        ```python
        build_search_query('"typescript"')  # 'typescript in:name'
        build_search_query("typescript")    # 'typescript'
        ```
    """
    if len(query) >= 2 and query.startswith('"') and query.endswith('"'):
        return f"{query[1:-1]} in:name"
    return query


async def run_cancellable(awaitable: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """
    Await ``awaitable`` unless ``cancel`` fires first.

    Raises:
        RequestCancelledError: If the event is set before the request completes
    """
    if cancel is None:
        return await awaitable
    if cancel.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCancelledError()

    request_task = asyncio.ensure_future(awaitable)
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait(
            {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        cancel_task.cancel()
        if not request_task.done():
            request_task.cancel()

    if request_task in done:
        return request_task.result()

    with contextlib.suppress(asyncio.CancelledError):
        await request_task
    raise RequestCancelledError()


def _matches(repo: RepositorySnapshot, needle: str) -> bool:
    haystack = " ".join(
        [repo.name, repo.full_name, repo.description or "", repo.language or "", *repo.topics]
    ).lower()
    return needle in haystack


def _sort_starred(repos: Iterable[RepositorySnapshot], sort: str) -> list[RepositorySnapshot]:
    if sort == "stars":
        return sorted(repos, key=lambda r: r.stars, reverse=True)
    if sort == "created":
        return sorted(repos, key=lambda r: r.starred_at or _EPOCH, reverse=True)
    return sorted(repos, key=lambda r: r.updated_at, reverse=True)


class SearchClient:
    """Client for repository search."""

    def __init__(self, transport: "AsyncGitHubTransport") -> None:
        """
        Initialize the search client.

        Args:
            transport: Async HTTP transport for making requests
        """
        self.transport = transport

    async def search(
        self,
        token: str,
        query: str,
        page: int = 1,
        per_page: int = 30,
        sort: str = "best-match",
        starred_ids: Iterable[int] = (),
        cancel: asyncio.Event | None = None,
    ) -> SearchResults:
        """
        Search all upstream repositories.

        Args:
            token: GitHub access token
            query: User query; wrap in double quotes for an exact name match
            page: Page number (1-indexed)
            per_page: Results per page
            sort: One of "best-match", "stars", "forks", "updated", "help-wanted"
            starred_ids: Ids of repositories the user has starred, for marking results
            cancel: Event that abandons the request when set (e.g. the user typed again)

        Returns:
            SearchResults for the requested page

        Raises:
            InvalidQueryError: If upstream rejects the query
            RequestCancelledError: If ``cancel`` fires first
        """
        if sort not in SEARCH_SORT_PARAMS:
            raise ValueError(f"sort must be one of {sorted(SEARCH_SORT_PARAMS)}, got {sort!r}")

        params: dict[str, Any] = {
            "q": build_search_query(query),
            "page": page,
            "per_page": per_page,
        }
        sort_param = SEARCH_SORT_PARAMS[sort]
        if sort_param:
            params["sort"] = sort_param
            params["order"] = "desc"

        data, _ = await run_cancellable(
            self.transport.get_json("/search/repositories", token, params=params), cancel
        )

        starred = set(starred_ids)
        repositories = [
            TrackedRepository(snapshot=snapshot, is_starred=snapshot.id in starred)
            for snapshot in (
                SearchResultItem.from_dict(item).to_snapshot() for item in data.get("items") or []
            )
        ]
        total_count = int(data.get("total_count") or 0)

        return SearchResults(
            repositories=repositories,
            total_count=total_count,
            api_search_result_total=min(total_count, GITHUB_SEARCH_LIMIT),
            pagination=calculate_search_pagination(total_count, page, per_page),
        )


def search_starred(
    repositories: Sequence[RepositorySnapshot],
    query: str,
    page: int = 1,
    per_page: int = 30,
    sort: str = "updated",
    cancel: asyncio.Event | None = None,
) -> SearchResults:
    """
    Search within already-fetched starred repositories.

    Matches case-insensitively across name, full name, description, language
    and topics, then sorts ("updated", "stars" or "created", i.e. when starred)
    and paginates locally.

    Raises:
        RequestCancelledError: If ``cancel`` is already set
    """
    if cancel is not None and cancel.is_set():
        raise RequestCancelledError()
    if sort not in STARRED_SEARCH_SORTS:
        raise ValueError(f"sort must be one of {STARRED_SEARCH_SORTS}, got {sort!r}")

    needle = query.lower()
    matched = _sort_starred((r for r in repositories if _matches(r, needle)), sort)

    start = (page - 1) * per_page
    page_items = matched[start : start + per_page]
    return SearchResults(
        repositories=[TrackedRepository(snapshot=r, is_starred=True) for r in page_items],
        total_count=len(matched),
        api_search_result_total=len(matched),
        pagination=calculate_pagination(len(matched), page, per_page),
    )
