"""reporadar - star synchronization and repository cache engine for Repo Radar."""

from reporadar.auth import TokenRefresher, TokenResolver, TokenStore
from reporadar.cache import CacheStore, MemoryCacheBackend
from reporadar.classify import EndpointKind, classify_failure, is_auth_error, treats_as_empty
from reporadar.client import RepoRadarClient
from reporadar.clients.search import build_search_query, search_starred
from reporadar.config import RadarConfig
from reporadar.exceptions import (
    AuthenticationFailedError,
    CacheError,
    ConfigurationError,
    InvalidQueryError,
    NotFoundError,
    RateLimitedError,
    ReauthRequiredError,
    RepoRadarError,
    RequestCancelledError,
    ServerError,
    UnknownError,
)
from reporadar.logging import configure_logging, get_logger
from reporadar.metrics import MetricsEngine
from reporadar.reconciler import PendingUnstarReconciler
from reporadar.sql_backend import SqlCacheBackend
from reporadar.storage import JsonFileStorage, MemoryStorage
from reporadar.transport import AsyncGitHubTransport, RetryConfig

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Main client
    "RepoRadarClient",
    "RadarConfig",
    # Engine components
    "TokenResolver",
    "TokenStore",
    "TokenRefresher",
    "CacheStore",
    "MemoryCacheBackend",
    "SqlCacheBackend",
    "MetricsEngine",
    "PendingUnstarReconciler",
    # Error classification
    "EndpointKind",
    "classify_failure",
    "treats_as_empty",
    "is_auth_error",
    # Search
    "build_search_query",
    "search_starred",
    # Exceptions
    "RepoRadarError",
    "AuthenticationFailedError",
    "ReauthRequiredError",
    "RateLimitedError",
    "InvalidQueryError",
    "NotFoundError",
    "UnknownError",
    "ServerError",
    "CacheError",
    "RequestCancelledError",
    "ConfigurationError",
    # Storage
    "MemoryStorage",
    "JsonFileStorage",
    # Transport
    "AsyncGitHubTransport",
    "RetryConfig",
    # Logging
    "configure_logging",
    "get_logger",
]
