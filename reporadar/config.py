"""Runtime configuration for reporadar."""

import os
from dataclasses import dataclass
from datetime import timedelta

from reporadar.exceptions import ConfigurationError

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

OVERRIDE_TOKEN_ENV = "REPORADAR_TEST_TOKEN"


@dataclass
class RadarConfig:
    """Tunable constants for fetching, caching and reconciliation."""

    api_base_url: str = GITHUB_API_BASE
    cache_ttl: timedelta = timedelta(hours=24)
    # Expired entries are kept this long as a rate-limit fallback
    cache_retention: timedelta = timedelta(days=7)
    pending_unstar_max_age: timedelta = timedelta(seconds=60)
    page_size: int = 100
    max_starred_repos: int = 500
    incremental_page_size: int = 30
    releases_page_size: int = 10
    timeout: float | None = None
    database_url: str | None = None
    storage_path: str | None = None
    refresh_url: str | None = None

    @classmethod
    def from_env(cls) -> "RadarConfig":
        """
        Build a configuration from environment variables.

        Environment variables:
            REPORADAR_API_BASE_URL: Upstream API base URL
            REPORADAR_CACHE_TTL_HOURS: Cache entry lifetime in hours
            REPORADAR_CACHE_RETENTION_DAYS: How long expired entries are kept
            REPORADAR_MAX_STARRED_REPOS: Cap on the bulk starred fetch
            REPORADAR_TIMEOUT: Request timeout in seconds (unset: httpx default)
            REPORADAR_DATABASE_URL: SQLAlchemy URL for the repository cache
            REPORADAR_STORAGE_PATH: JSON file used as local token/pending storage
            REPORADAR_REFRESH_URL: Identity-provider token refresh endpoint

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        config = cls()
        config.api_base_url = os.environ.get("REPORADAR_API_BASE_URL", GITHUB_API_BASE)

        ttl_hours = _env_number("REPORADAR_CACHE_TTL_HOURS", float)
        if ttl_hours is not None:
            config.cache_ttl = timedelta(hours=ttl_hours)

        retention_days = _env_number("REPORADAR_CACHE_RETENTION_DAYS", float)
        if retention_days is not None:
            config.cache_retention = timedelta(days=retention_days)

        max_repos = _env_number("REPORADAR_MAX_STARRED_REPOS", int)
        if max_repos is not None:
            if max_repos < 1:
                raise ConfigurationError("REPORADAR_MAX_STARRED_REPOS must be positive")
            config.max_starred_repos = max_repos

        config.timeout = _env_number("REPORADAR_TIMEOUT", float)
        config.database_url = os.environ.get("REPORADAR_DATABASE_URL") or None
        config.storage_path = os.environ.get("REPORADAR_STORAGE_PATH") or None
        config.refresh_url = os.environ.get("REPORADAR_REFRESH_URL") or None
        return config


def _env_number(name: str, kind: type[int] | type[float]) -> int | float | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid {name}: {raw!r}") from None


def override_token_from_env() -> str | None:
    """Out-of-band token for non-interactive environments (tests, CI)."""
    token = os.environ.get(OVERRIDE_TOKEN_ENV, "").strip()
    return token or None
