"""
Local key-value storage for tokens and the pending-unstar list.

Every consumer goes through SafeStorage: a broken storage layer degrades to
"empty" reads and no-op writes, logged as warnings.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from reporadar.logging import get_logger

logger = get_logger("storage")


class StorageError(Exception):
    """Raised by storage backends that cannot complete an operation."""


class KeyValueStorage(ABC):
    """Abstract string key-value surface."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value or None."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        pass


class MemoryStorage(KeyValueStorage):
    """Process-local storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Storage persisted as a flat JSON object in a single file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Corrupt storage file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self.path} does not hold an object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".reporadar-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_path, self.path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._save(items)


class SafeStorage:
    """Wraps a KeyValueStorage so failures are logged instead of raised."""

    def __init__(self, backend: KeyValueStorage) -> None:
        self.backend = backend

    def get(self, key: str) -> str | None:
        try:
            return self.backend.get_item(key)
        except (OSError, StorageError) as e:
            logger.warning("Failed to read %s from local storage: %s", key, e)
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            self.backend.set_item(key, value)
            return True
        except (OSError, StorageError) as e:
            logger.warning("Failed to write %s to local storage: %s", key, e)
            return False

    def remove(self, key: str) -> bool:
        try:
            self.backend.remove_item(key)
            return True
        except (OSError, StorageError) as e:
            logger.warning("Failed to remove %s from local storage: %s", key, e)
            return False
