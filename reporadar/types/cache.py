"""Cache and reconciliation records."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class CacheEntry:
    """Cached upstream body for one repository."""

    repo_id: int
    data: Any
    etag: str | None
    fetched_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass(frozen=True)
class PendingUnstar:
    """A repository the user just unstarred, hidden until upstream catches up."""

    repository_id: int
    timestamp: float  # epoch seconds
