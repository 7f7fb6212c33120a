"""
Migration audit log.

Each migration attempt appends one immutable ``MigrationStatus`` record to the
status key; earlier records are never edited.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lifeos_storage.domain.schema import MIGRATION_STATUS_KEY, MigrationStatus
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage
from lifeos_storage.utils.exceptions import StorageWriteError

logger = logging.getLogger(__name__)


class MigrationAuditLog:
    """Append-only store of migration attempts."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def history(self) -> list[MigrationStatus]:
        """
        Return every recorded attempt, oldest first.

        Unreadable entries are skipped. A single record stored on its own
        (older clients overwrote one status object) counts as a history of one.
        """
        raw = self.storage.get_item(MIGRATION_STATUS_KEY)
        if raw is None:
            return []

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Migration status entry is not valid JSON; ignoring it")
            return []

        entries = parsed if isinstance(parsed, list) else [parsed]
        records: list[MigrationStatus] = []
        for entry in entries:
            try:
                records.append(MigrationStatus.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping unreadable migration status record: {e}")
        return records

    def latest(self) -> MigrationStatus | None:
        """Return the most recent attempt, if any."""
        records = self.history()
        return records[-1] if records else None

    def _stored_entries(self) -> list[Any]:
        """
        Return the persisted entries exactly as stored.

        Entries that cannot be read as records are kept as they are; an entry
        that is not JSON at all is kept as its raw string.
        """
        raw = self.storage.get_item(MIGRATION_STATUS_KEY)
        if raw is None:
            return []

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Migration status entry is not valid JSON; keeping it verbatim")
            return [raw]

        return parsed if isinstance(parsed, list) else [parsed]

    def record(self, status: MigrationStatus) -> bool:
        """
        Append a record for a new attempt.

        Earlier entries are written back unchanged, including ones
        ``history`` cannot read.

        Returns:
            True if the record was persisted. Audit failures are logged, not
            raised, so they never mask the outcome of the migration itself.
        """
        entries = self._stored_entries()
        entries.append(status.to_storage_dict())

        try:
            self.storage.set_item(MIGRATION_STATUS_KEY, json.dumps(entries))
        except StorageWriteError as e:
            logger.error(f"Failed to record migration status: {e}")
            return False
        return True
