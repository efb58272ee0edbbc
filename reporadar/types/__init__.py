"""reporadar type definitions.

This module exports all data model types used by the package.
"""

from reporadar.types.auth import ProviderSession, TokenRefreshResult
from reporadar.types.cache import CacheEntry, PendingUnstar
from reporadar.types.metrics import DerivedMetrics, MetricsThresholds
from reporadar.types.repos import (
    RateLimitStatus,
    Release,
    RepositoryFetch,
    RepositorySnapshot,
    StarredPage,
    StarredRepositories,
    TrackedRepository,
)
from reporadar.types.search import PaginationInfo, SearchResults
from reporadar.types.upstream import (
    RepositoryResponse,
    SearchResultItem,
    StarredRepoResponse,
)

__all__ = [
    # Repository types
    "RepositorySnapshot",
    "TrackedRepository",
    "StarredRepositories",
    "StarredPage",
    "RepositoryFetch",
    "Release",
    "RateLimitStatus",
    # Metrics
    "DerivedMetrics",
    "MetricsThresholds",
    # Cache and reconciliation
    "CacheEntry",
    "PendingUnstar",
    # Auth handoff
    "ProviderSession",
    "TokenRefreshResult",
    # Search
    "PaginationInfo",
    "SearchResults",
    # Upstream shapes
    "RepositoryResponse",
    "StarredRepoResponse",
    "SearchResultItem",
]
