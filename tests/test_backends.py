"""Unit tests for key/value storage backends."""

import json

import pytest

from lifeos_storage.infrastructure.storage.backends import (
    InMemoryStorage,
    JsonFileStorage,
    create_storage,
)
from lifeos_storage.utils.exceptions import StorageReadError, StorageWriteError
from lifeos_storage.utils.parameters import StorageConfig


def test_in_memory_storage() -> None:
    """Test basic in-memory operations."""
    storage = InMemoryStorage({"a": "1"})
    storage.set_item("b", "2")
    storage.remove_item("a")
    storage.remove_item("missing")

    if storage.snapshot() != {"b": "2"}:
        raise AssertionError(f"Unexpected content: {storage.snapshot()}")

    if not storage.has_item("b") or storage.has_item("a"):
        raise AssertionError("has_item does not reflect storage content")

    with pytest.raises(StorageWriteError):
        storage.set_item("c", 3)


def test_json_file_storage_persists(tmp_path) -> None:
    """Test that writes survive reopening the store file."""
    path = tmp_path / "store" / "lifeos.json"
    storage = JsonFileStorage(path)

    if storage.keys():
        raise AssertionError("New store should be empty")

    storage.set_item("lifeos", '{"version": "2.0.0"}')
    storage.set_item("lifeos_first_time", "completed")
    storage.remove_item("lifeos_first_time")

    reopened = JsonFileStorage(path)
    if reopened.get_item("lifeos") != '{"version": "2.0.0"}':
        raise AssertionError("Value not persisted")

    if reopened.get_item("lifeos_first_time") is not None:
        raise AssertionError("Removed key was persisted")

    if json.loads(path.read_text(encoding="utf-8")) != {"lifeos": '{"version": "2.0.0"}'}:
        raise AssertionError("Unexpected file content")

    if [p.name for p in path.parent.iterdir()] != ["lifeos.json"]:
        raise AssertionError("Temporary files were left behind")


def test_json_file_storage_rejects_corrupt_file(tmp_path) -> None:
    """Test that an unreadable store file raises instead of being overwritten."""
    path = tmp_path / "lifeos.json"
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(StorageReadError):
        JsonFileStorage(path)

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(StorageReadError):
        JsonFileStorage(path)


def test_json_file_storage_write_failure(tmp_path) -> None:
    """Test that a write into an unusable location raises StorageWriteError."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    storage = JsonFileStorage(blocker / "lifeos.json")

    with pytest.raises(StorageWriteError):
        storage.set_item("lifeos", "{}")

    if storage.get_item("lifeos") is not None:
        raise AssertionError("Failed write must not change the in-memory view")


def test_create_storage(tmp_path) -> None:
    """Test backend selection from configuration."""
    memory = create_storage(StorageConfig(backend="memory"))
    if not isinstance(memory, InMemoryStorage):
        raise AssertionError("Expected in-memory backend")

    file_backend = create_storage(StorageConfig(backend="file", path=str(tmp_path / "s.json")))
    if not isinstance(file_backend, JsonFileStorage):
        raise AssertionError("Expected file backend")
