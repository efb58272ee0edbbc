"""reporadar exception classes."""

from datetime import datetime


class RepoRadarError(Exception):
    """Base exception for all reporadar errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(RepoRadarError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AuthenticationFailedError(RepoRadarError):
    """Raised when the upstream API rejects the access token (HTTP 401)."""

    def __init__(
        self, message: str = "GitHub authentication failed. Please sign in again."
    ) -> None:
        super().__init__("AUTHENTICATION_FAILED", message)


class ReauthRequiredError(RepoRadarError):
    """Raised when no credential source can supply an access token."""

    def __init__(
        self, message: str = "No GitHub token available - re-authentication required"
    ) -> None:
        super().__init__("REAUTH_REQUIRED", message)


class RateLimitedError(RepoRadarError):
    """Raised when the upstream rate limit is exhausted."""

    def __init__(self, reset_at: datetime, message: str | None = None) -> None:
        if message is None:
            message = f"GitHub API rate limit exceeded. Resets at {reset_at.isoformat()}"
        super().__init__("RATE_LIMITED", message)
        self.reset_at = reset_at


class InvalidQueryError(RepoRadarError):
    """Raised when a search query is rejected (HTTP 422)."""

    def __init__(
        self, message: str = "Invalid search query. Please check your search terms."
    ) -> None:
        super().__init__("INVALID_QUERY", message)


class NotFoundError(RepoRadarError):
    """Raised when a resource is not found."""

    def __init__(self, message: str = "Repository not found") -> None:
        super().__init__("NOT_FOUND", message)


class UnknownError(RepoRadarError):
    """Raised for any other non-success upstream response."""

    def __init__(self, status_code: int, status_text: str = "") -> None:
        super().__init__(
            "UNKNOWN_ERROR", f"GitHub API error: {status_code} {status_text}".rstrip()
        )
        self.status_code = status_code
        self.status_text = status_text


class ServerError(RepoRadarError):
    """Raised when the transport gives up on connection errors or 5xx responses."""

    pass


class CacheError(RepoRadarError):
    """Raised when the persistent cache backend fails."""

    def __init__(self, message: str) -> None:
        super().__init__("CACHE_ERROR", message)


class RequestCancelledError(RepoRadarError):
    """Raised when a cancellable request is superseded before it completes."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__("CANCELLED", message)
