"""Test helpers shared by the storage engine tests."""

from datetime import datetime, timedelta

import pytz

from lifeos_storage.infrastructure.storage.backends import InMemoryStorage
from lifeos_storage.utils.exceptions import StorageWriteError

FIXED_TIME = datetime(2024, 1, 15, 10, 30, 0, tzinfo=pytz.UTC)
FIXED_ISO = "2024-01-15T10:30:00.000Z"


def fixed_clock() -> datetime:
    return FIXED_TIME


class TickingClock:
    """Clock that advances one minute on every call."""

    def __init__(self, start: datetime = FIXED_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


class FailingStorage(InMemoryStorage):
    """In-memory storage refusing writes to selected keys."""

    def __init__(self, fail_keys: set[str], initial: dict[str, str] | None = None) -> None:
        super().__init__(initial)
        self.fail_keys = fail_keys

    def set_item(self, key: str, value: str) -> None:
        if key in self.fail_keys:
            raise StorageWriteError(f"Quota exceeded writing {key}")
        super().set_item(key, value)
