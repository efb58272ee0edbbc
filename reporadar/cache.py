"""
TTL + ETag cache of per-repository upstream responses.

Entries stay readable for conditional requests and rate-limit fallback after
they expire; only the maintenance sweep removes them, once they have been
expired for longer than the retention window.
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection
from datetime import datetime, timedelta, timezone
from typing import Any

from reporadar.logging import get_logger
from reporadar.types.cache import CacheEntry

logger = get_logger("cache")

DEFAULT_TTL = timedelta(hours=24)
DEFAULT_RETENTION = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheBackend(ABC):
    """Persistent table of cache entries keyed by repository id."""

    @abstractmethod
    def fetch(self, repo_id: int, valid_at: datetime | None = None) -> CacheEntry | None:
        """Return the entry; when ``valid_at`` is given, only if it expires after it."""
        pass

    @abstractmethod
    def fetch_many(self, repo_ids: Collection[int]) -> dict[int, CacheEntry]:
        """Return the stored entries for ``repo_ids`` regardless of expiry."""
        pass

    @abstractmethod
    def exists(self, repo_id: int, valid_at: datetime) -> bool:
        """Whether an entry expiring after ``valid_at`` exists, without loading its body."""
        pass

    @abstractmethod
    def fetch_etag(self, repo_id: int) -> str | None:
        """Return the stored ETag regardless of expiry."""
        pass

    @abstractmethod
    def upsert(self, entry: CacheEntry) -> CacheEntry:
        """Insert or fully replace the entry for ``entry.repo_id``."""
        pass

    @abstractmethod
    def touch(self, repo_id: int, fetched_at: datetime, expires_at: datetime) -> bool:
        """Update only the timestamps. Returns False when no entry exists."""
        pass

    @abstractmethod
    def delete_expired_before(self, cutoff: datetime) -> int:
        """Delete entries with ``expires_at < cutoff`` and return how many."""
        pass


class MemoryCacheBackend(CacheBackend):
    """In-process backend for tests and single-run tools."""

    def __init__(self) -> None:
        self._entries: dict[int, CacheEntry] = {}

    def fetch(self, repo_id: int, valid_at: datetime | None = None) -> CacheEntry | None:
        entry = self._entries.get(repo_id)
        if entry is None:
            return None
        if valid_at is not None and not entry.is_valid(valid_at):
            return None
        return copy.deepcopy(entry)

    def fetch_many(self, repo_ids: Collection[int]) -> dict[int, CacheEntry]:
        return {
            rid: copy.deepcopy(self._entries[rid]) for rid in repo_ids if rid in self._entries
        }

    def exists(self, repo_id: int, valid_at: datetime) -> bool:
        entry = self._entries.get(repo_id)
        return entry is not None and entry.is_valid(valid_at)

    def fetch_etag(self, repo_id: int) -> str | None:
        entry = self._entries.get(repo_id)
        return entry.etag if entry else None

    def upsert(self, entry: CacheEntry) -> CacheEntry:
        self._entries[entry.repo_id] = copy.deepcopy(entry)
        return copy.deepcopy(entry)

    def touch(self, repo_id: int, fetched_at: datetime, expires_at: datetime) -> bool:
        entry = self._entries.get(repo_id)
        if entry is None:
            return False
        entry.fetched_at = fetched_at
        entry.expires_at = expires_at
        return True

    def delete_expired_before(self, cutoff: datetime) -> int:
        doomed = [rid for rid, entry in self._entries.items() if entry.expires_at < cutoff]
        for rid in doomed:
            del self._entries[rid]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


class CacheStore:
    """Cache operations with TTL bookkeeping on top of a CacheBackend."""

    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttl: timedelta = DEFAULT_TTL,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.backend = backend or MemoryCacheBackend()
        self.ttl = ttl
        self.retention = retention
        self._clock = clock

    def get(self, repo_id: int) -> CacheEntry | None:
        """The entry if it has not expired, else None."""
        return self.backend.fetch(repo_id, valid_at=self._clock())

    def get_stale(self, repo_id: int) -> CacheEntry | None:
        """The entry regardless of expiry."""
        return self.backend.fetch(repo_id)

    def get_stale_many(self, repo_ids: Collection[int]) -> dict[int, CacheEntry]:
        """Entries for several repositories in one lookup, regardless of expiry."""
        if not repo_ids:
            return {}
        return self.backend.fetch_many(repo_ids)

    def get_etag(self, repo_id: int) -> str | None:
        return self.backend.fetch_etag(repo_id)

    def is_valid(self, repo_id: int) -> bool:
        """Whether a valid entry exists, checked without loading its body."""
        return self.backend.exists(repo_id, valid_at=self._clock())

    def set(self, repo_id: int, data: Any, etag: str | None = None) -> CacheEntry:
        """Store a fresh body, replacing any prior entry."""
        now = self._clock()
        entry = CacheEntry(
            repo_id=repo_id,
            data=data,
            etag=etag,
            fetched_at=now,
            expires_at=now + self.ttl,
        )
        return self.backend.upsert(entry)

    def refresh_timestamp(self, repo_id: int) -> None:
        """Extend an entry after a 304; body and ETag are left as they are."""
        now = self._clock()
        if not self.backend.touch(repo_id, fetched_at=now, expires_at=now + self.ttl):
            logger.debug("No cache entry to refresh for repository %s", repo_id)

    def cleanup(self) -> int:
        """Delete entries expired for longer than the retention window."""
        deleted = self.backend.delete_expired_before(self._clock() - self.retention)
        if deleted:
            logger.info("Removed %d expired cache entries", deleted)
        return deleted
