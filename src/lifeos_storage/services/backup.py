"""
Legacy backup and rollback.

Before V1 data is migrated, the raw strings of all six fragments are
snapshotted under a dedicated key. Rollback writes them back verbatim and drops
the V2 document so the next load detects V1 again.
"""

import json
import logging

from lifeos_storage.domain.schema import BACKUP_KEY, V2_STORAGE_KEY, BackupInfo, LegacyKey
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage
from lifeos_storage.utils.exceptions import StorageWriteError
from lifeos_storage.utils.hashing import compute_text_size

logger = logging.getLogger(__name__)


class BackupManager:
    """Owns the single V1 backup entry."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def has_backup(self) -> bool:
        """Check whether a backup exists."""
        return self.storage.get_item(BACKUP_KEY) is not None

    def _read_snapshot(self) -> dict[str, str | None] | None:
        """Parse the stored snapshot, or return None if it is missing or unreadable."""
        raw = self.storage.get_item(BACKUP_KEY)
        if raw is None:
            return None

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"V1 backup is not valid JSON: {e}")
            return None

        if not isinstance(parsed, dict):
            logger.error("V1 backup does not hold a JSON object")
            return None

        return parsed

    def backup(self, overwrite: bool = False) -> bool:
        """
        Snapshot all six legacy fragments.

        Absent keys are recorded as null. The snapshot is serialized in full
        before the single storage write, so a failure never leaves a partial
        backup behind.

        Args:
            overwrite: Replace an existing backup. When False, an existing
                backup is kept untouched.

        Returns:
            True if a usable backup exists afterwards.
        """
        if self.has_backup() and not overwrite:
            logger.warning("V1 backup already exists; keeping the existing snapshot")
            return True

        snapshot = {key.name: self.storage.get_item(key.value) for key in LegacyKey}

        try:
            payload = json.dumps(snapshot)
            self.storage.set_item(BACKUP_KEY, payload)
        except (TypeError, ValueError, StorageWriteError) as e:
            logger.error(f"Failed to create V1 backup: {e}")
            return False

        logger.info("V1 backup created")
        return True

    def restore(self) -> bool:
        """
        Restore V1 fragments from the backup.

        Fragments whose backed-up value is null are left as they are. The V2
        document is removed afterwards so the next load migrates again.

        Returns:
            False if no readable backup exists or a write fails, True otherwise.
        """
        snapshot = self._read_snapshot()
        if snapshot is None:
            logger.error("No V1 backup found")
            return False

        try:
            for key in LegacyKey:
                value = snapshot.get(key.name)
                if isinstance(value, str):
                    self.storage.set_item(key.value, value)

            self.storage.remove_item(V2_STORAGE_KEY)
        except StorageWriteError as e:
            logger.error(f"Failed to restore V1 backup: {e}")
            return False

        logger.info("V1 data restored from backup")
        return True

    def backup_info(self, created: str | None = None) -> BackupInfo | None:
        """
        Describe the stored backup.

        Args:
            created: Time the backup was taken, when known to the caller.

        Returns:
            Backup metadata, or None if no backup exists.
        """
        raw = self.storage.get_item(BACKUP_KEY)
        if raw is None:
            return None

        snapshot = self._read_snapshot() or {}
        fragments = [key.name for key in LegacyKey if isinstance(snapshot.get(key.name), str)]

        return BackupInfo(size=compute_text_size(raw), fragments=fragments, created=created)

    def delete(self) -> None:
        """Delete the backup. Only ever called on explicit operator request."""
        self.storage.remove_item(BACKUP_KEY)
        logger.info("V1 backup deleted")
