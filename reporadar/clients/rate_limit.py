"""Rate-limit status client."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from reporadar.types.repos import RateLimitStatus

if TYPE_CHECKING:
    from reporadar.transport import AsyncGitHubTransport


class RateLimitClient:
    """Client for the rate-limit status endpoint."""

    def __init__(self, transport: "AsyncGitHubTransport") -> None:
        self.transport = transport

    async def get(self, token: str) -> RateLimitStatus:
        """Core API quota for the token. Querying it does not consume quota."""
        data, _ = await self.transport.get_json("/rate_limit", token)
        core = data.get("rate") or data.get("resources", {}).get("core", {})
        return RateLimitStatus(
            limit=int(core["limit"]),
            remaining=int(core["remaining"]),
            reset_at=datetime.fromtimestamp(int(core["reset"]), tz=timezone.utc),
        )
