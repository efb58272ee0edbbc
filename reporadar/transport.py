"""
Async HTTP transport for the upstream GitHub API.

Handles bearer authentication, bounded retry of transient failures and
classification of error responses using an httpx async client.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from reporadar.classify import RATE_LIMIT_REMAINING_HEADER, classify_failure
from reporadar.config import GITHUB_API_BASE, GITHUB_API_VERSION
from reporadar.exceptions import ServerError
from reporadar.logging import log_http_request, log_http_response

ACCEPT_JSON = "application/vnd.github.v3+json"
ACCEPT_STAR_JSON = "application/vnd.github.star+json"


@dataclass
class RetryConfig:
    """
    Configuration for automatic retry behavior.

    Only connection errors and server errors are retried. Rate limiting is
    surfaced to the caller immediately.
    """

    max_retries: int = 2
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [500, 502, 503, 504])
    max_backoff: float = 30.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


class AsyncGitHubTransport:
    """
    Async HTTP transport layer for the GitHub REST API.

    Handles:
    - Bearer token authentication per request
    - Exponential backoff with jitter for transient failures
    - Error response parsing into typed exceptions
    """

    def __init__(
        self,
        base_url: str = GITHUB_API_BASE,
        timeout: float | None = None,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize async HTTP transport.

        Args:
            base_url: Base URL for API requests (e.g., "https://api.github.com")
            timeout: Request timeout in seconds; None keeps the httpx default
            retry_config: Configuration for retry behavior
            http_transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

        client_kwargs: dict[str, Any] = {
            "base_url": self.base_url,
            "headers": {"X-GitHub-Api-Version": GITHUB_API_VERSION},
        }
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if http_transport is not None:
            client_kwargs["transport"] = http_transport

        self._client = httpx.AsyncClient(**client_kwargs)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncGitHubTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        token: str | None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        accept: str = ACCEPT_JSON,
    ) -> httpx.Response:
        """
        Make a request and return the raw response, whatever its status.

        Args:
            method: HTTP method
            path: API path (e.g., "/user/starred")
            token: Bearer token, or None for an anonymous request
            params: Query parameters
            headers: Extra request headers (e.g. If-None-Match)
            accept: Accept media type

        Returns:
            The final httpx.Response after any retries

        Raises:
            ServerError: When the connection keeps failing
        """
        request_headers = {"Accept": accept}
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        for attempt in range(self.retry_config.max_retries + 1):
            log_http_request(method, f"{self.base_url}{path}", request_headers, params)
            started = time.monotonic()
            try:
                response = await self._client.request(
                    method, path, params=params, headers=request_headers
                )
            except httpx.RequestError as e:
                if attempt >= self.retry_config.max_retries:
                    raise ServerError("CONNECTION_ERROR", str(e)) from e
                await asyncio.sleep(self._get_backoff_time(attempt))
                continue

            log_http_response(
                response.status_code,
                f"{self.base_url}{path}",
                elapsed_ms=(time.monotonic() - started) * 1000,
                rate_limit_remaining=response.headers.get(RATE_LIMIT_REMAINING_HEADER),
            )

            if not self._should_retry(response.status_code, attempt):
                return response

            await asyncio.sleep(self._get_backoff_time(attempt))

        # Unreachable: the final attempt always returns or raises
        raise ServerError("MAX_RETRIES_EXCEEDED", f"{method} {path} failed")

    async def get_json(
        self,
        path: str,
        token: str | None,
        params: dict[str, Any] | None = None,
        accept: str = ACCEPT_JSON,
    ) -> tuple[Any, httpx.Response]:
        """
        GET a path and decode its JSON body.

        Returns:
            Tuple of (parsed JSON, response) so callers can read headers

        Raises:
            RepoRadarError: Classified failure for any status >= 400
        """
        response = await self.request("GET", path, token, params=params, accept=accept)
        raise_for_failure(response)
        return response.json(), response

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        if attempt >= self.retry_config.max_retries:
            return False

        return status_code in self.retry_config.retry_on

    def _get_backoff_time(self, attempt: int) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Time to wait in seconds
        """
        base_wait = self.retry_config.backoff_factor ** attempt

        jitter_range = base_wait * self.retry_config.jitter
        wait_time = base_wait + random.uniform(-jitter_range, jitter_range)

        return min(wait_time, self.retry_config.max_backoff)


def raise_for_failure(response: httpx.Response) -> None:
    """Raise the classified error for a failed response; no-op on success."""
    if response.status_code >= 400:
        raise classify_failure(response.status_code, response.headers, response.reason_phrase)
