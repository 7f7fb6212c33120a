"""
Key/value storage backends.

The engine never touches a concrete storage medium directly: every component
receives a ``KeyValueStorage`` holding string values under string keys, the
same contract a browser's ``localStorage`` offers. Two backends are provided:
an in-memory one for tests and embedding, and a JSON file on disk.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from lifeos_storage.utils.exceptions import StorageReadError, StorageWriteError
from lifeos_storage.utils.parameters import StorageConfig

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """
    Abstract string key/value storage port.

    Implementations must raise ``StorageWriteError`` when a write or delete is
    refused; reads of missing keys return None.
    """

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """
        Read the raw value stored under a key.

        Args:
            key: Storage key.

        Returns:
            The stored string, or None if the key does not exist.
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a raw string under a key, replacing any previous value.

        Raises:
            StorageWriteError: If the medium refuses the write.
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """
        Remove a key. Removing a missing key is not an error.

        Raises:
            StorageWriteError: If the medium refuses the delete.
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """Return all keys currently stored."""
        pass

    def has_item(self, key: str) -> bool:
        """Check whether a key exists."""
        return self.get_item(key) is not None


class InMemoryStorage(KeyValueStorage):
    """Dictionary-backed storage, used by tests and short-lived sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Storage values must be strings, got {type(value).__name__}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of every stored entry."""
        return dict(self._items)


class JsonFileStorage(KeyValueStorage):
    """
    Storage persisted as a single JSON object on disk.

    The whole file is rewritten on every mutation through a temporary file and
    ``os.replace``, so an interrupted write leaves the previous file intact.
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize file storage.

        Args:
            path: Location of the JSON store file (created on first write).

        Raises:
            StorageReadError: If an existing store file cannot be read.
        """
        self.path = Path(path)
        self._items: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        """Load the store file from disk."""
        if not self.path.exists():
            self._items = {}
            return

        try:
            with open(self.path, encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageReadError(f"Failed to read storage file {self.path}: {e}") from e

        if not isinstance(content, dict):
            raise StorageReadError(f"Storage file {self.path} does not hold a JSON object")

        self._items = {str(k): v for k, v in content.items() if isinstance(v, str)}
        logger.debug(f"Loaded storage with {len(self._items)} keys from {self.path}")

    def _flush(self, items: dict[str, str]) -> None:
        """
        Atomically write the given items to disk.

        Raises:
            StorageWriteError: If the file cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageWriteError(f"Failed to write storage file {self.path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Storage values must be strings, got {type(value).__name__}")
        items = dict(self._items)
        items[key] = value
        self._flush(items)
        self._items = items

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        items = dict(self._items)
        del items[key]
        self._flush(items)
        self._items = items

    def keys(self) -> list[str]:
        return list(self._items)


def create_storage(config: StorageConfig) -> KeyValueStorage:
    """
    Build the storage backend selected by configuration.

    Args:
        config: Storage configuration.

    Returns:
        A ready-to-use storage backend.
    """
    if config.backend == "memory":
        logger.info("Using in-memory storage")
        return InMemoryStorage()

    logger.info(f"Using file storage at {config.path}")
    return JsonFileStorage(config.path)
