"""Repository-related data models."""

from dataclasses import dataclass, field
from datetime import datetime

from reporadar.types.metrics import DerivedMetrics


@dataclass(frozen=True)
class RepositorySnapshot:
    """One fetched state of an upstream repository."""

    id: int
    name: str
    full_name: str
    owner_login: str
    owner_avatar_url: str
    html_url: str
    description: str | None
    language: str | None
    license: str | None
    topics: tuple[str, ...]
    stars: int
    forks: int
    watchers: int
    open_issues: int
    created_at: datetime
    updated_at: datetime
    pushed_at: datetime | None
    starred_at: datetime | None = None  # when the viewing user starred it


@dataclass(frozen=True)
class TrackedRepository:
    """A snapshot ready for display: metrics and starred state attached."""

    snapshot: RepositorySnapshot
    metrics: DerivedMetrics | None = None
    is_starred: bool = False

    @property
    def id(self) -> int:
        return self.snapshot.id


@dataclass
class StarredRepositories:
    """Result of a bulk starred-list fetch. The facade returns tracked repositories."""

    repositories: list[RepositorySnapshot] | list[TrackedRepository]
    total_fetched: int
    total_starred: int
    is_limited: bool = False
    failed_pages: list[int] = field(default_factory=list)


@dataclass
class StarredPage:
    """One page of the incremental starred-list feed."""

    repositories: list[RepositorySnapshot] | list[TrackedRepository]
    page: int
    next_page: int | None

    @property
    def has_more(self) -> bool:
        return self.next_page is not None


@dataclass
class RepositoryFetch:
    """Outcome of a cache-aware single-repository fetch."""

    snapshot: RepositorySnapshot
    previous: RepositorySnapshot | None
    source: str  # "cache", "revalidated", "network" or "stale"


@dataclass(frozen=True)
class Release:
    """A published release of a repository."""

    id: int
    tag_name: str
    name: str | None
    html_url: str
    published_at: datetime | None
    prerelease: bool
    draft: bool


@dataclass(frozen=True)
class RateLimitStatus:
    """Core rate-limit quota for the current token."""

    limit: int
    remaining: int
    reset_at: datetime
