"""
Optimistic overlay for unstarred repositories.

Upstream does not guarantee that the starred list reflects an unstar right
away. Repositories the user just unstarred are kept in a short-lived pending
list and filtered out of every starred list until the entry ages out.
"""

import json
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from operator import attrgetter
from typing import Any, TypeVar

from reporadar.logging import get_logger
from reporadar.storage import KeyValueStorage, SafeStorage
from reporadar.types.cache import PendingUnstar

logger = get_logger("reconciler")

PENDING_UNSTARS_KEY = "pending_unstars"

T = TypeVar("T")


class PendingUnstarReconciler:
    """Time-bounded exclusion set keyed by repository id."""

    def __init__(
        self,
        storage: KeyValueStorage | SafeStorage,
        max_age: timedelta = timedelta(seconds=60),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage if isinstance(storage, SafeStorage) else SafeStorage(storage)
        self.max_age = max_age
        self._clock = clock

    def _load(self) -> list[PendingUnstar]:
        raw = self._storage.get(PENDING_UNSTARS_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
            return [
                PendingUnstar(
                    repository_id=int(item["repositoryId"]),
                    timestamp=float(item["timestamp"]),
                )
                for item in items
            ]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Discarding unreadable pending-unstar list: %s", e)
            return []

    def _save(self, entries: list[PendingUnstar]) -> None:
        payload = [{"repositoryId": e.repository_id, "timestamp": e.timestamp} for e in entries]
        self._storage.set(PENDING_UNSTARS_KEY, json.dumps(payload))

    def pending(self) -> list[PendingUnstar]:
        """Unexpired entries; expired ones are pruned from storage."""
        entries = self._load()
        cutoff = self._clock() - self.max_age.total_seconds()
        valid = [e for e in entries if e.timestamp > cutoff]
        if len(valid) != len(entries):
            self._save(valid)
        return valid

    def pending_ids(self) -> set[int]:
        return {e.repository_id for e in self.pending()}

    def mark_pending(self, repository_id: int) -> None:
        """Add an entry; marking the same id again restarts its window."""
        entries = [e for e in self.pending() if e.repository_id != repository_id]
        entries.append(PendingUnstar(repository_id=repository_id, timestamp=self._clock()))
        self._save(entries)

    def clear_pending(self, repository_id: int) -> None:
        entries = self.pending()
        remaining = [e for e in entries if e.repository_id != repository_id]
        if len(remaining) != len(entries):
            self._save(remaining)

    def filter(
        self, repositories: Iterable[T], key: Callable[[T], Any] = attrgetter("id")
    ) -> list[T]:
        """Drop every repository whose id is pending unstar."""
        excluded = self.pending_ids()
        if not excluded:
            return list(repositories)
        return [repo for repo in repositories if key(repo) not in excluded]
