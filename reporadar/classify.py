"""
Classification of upstream HTTP failures into typed errors.

The classifier is a pure function of the status code and response headers.
It never performs I/O, so every fetcher can share it.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum

from reporadar.exceptions import (
    AuthenticationFailedError,
    InvalidQueryError,
    NotFoundError,
    RateLimitedError,
    ReauthRequiredError,
    RepoRadarError,
    UnknownError,
)

RATE_LIMIT_REMAINING_HEADER = "x-ratelimit-remaining"
RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"


class EndpointKind(Enum):
    """Upstream endpoint families with distinct failure semantics."""

    DEFAULT = "default"
    RELEASES = "releases"
    SEARCH = "search"


def _header(headers: Mapping[str, str], name: str) -> str | None:
    # httpx.Headers is case-insensitive already; plain dicts are not
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def parse_reset_time(value: str | None, now: datetime | None = None) -> datetime:
    """
    Convert an ``x-ratelimit-reset`` header (Unix seconds) to an aware datetime.

    Missing or unparseable values fall back to ``now``.
    """
    if value is not None:
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            pass
    return now or datetime.now(timezone.utc)


def is_rate_limited(status_code: int, headers: Mapping[str, str]) -> bool:
    """True for a 403 whose remaining-quota header is exactly ``0``."""
    return status_code == 403 and _header(headers, RATE_LIMIT_REMAINING_HEADER) == "0"


def classify_failure(
    status_code: int,
    headers: Mapping[str, str],
    status_text: str = "",
) -> RepoRadarError:
    """
    Map a non-success upstream response to a typed error.

    Args:
        status_code: HTTP status code (expected to be >= 400)
        headers: Response headers
        status_text: Reason phrase, kept for diagnostics on unknown failures

    Returns:
        The matching RepoRadarError subclass instance
    """
    if status_code == 401:
        return AuthenticationFailedError()
    if is_rate_limited(status_code, headers):
        return RateLimitedError(parse_reset_time(_header(headers, RATE_LIMIT_RESET_HEADER)))
    if status_code == 422:
        return InvalidQueryError()
    if status_code == 404:
        return NotFoundError()
    return UnknownError(status_code, status_text)


def treats_as_empty(status_code: int, kind: EndpointKind) -> bool:
    """
    Whether a response status means "no results" rather than failure.

    A releases listing that 404s means the repository has no releases.
    """
    return kind is EndpointKind.RELEASES and status_code == 404


def is_auth_error(error: BaseException | None) -> bool:
    """True for the failures that should sign the user out."""
    return isinstance(error, (AuthenticationFailedError, ReauthRequiredError))


def is_fatal_for_bulk_fetch(error: BaseException) -> bool:
    """Failures that abort a multi-page fetch instead of yielding partial data."""
    return isinstance(error, (AuthenticationFailedError, RateLimitedError))
