"""
Unified (V2) store.

Owns the ``lifeos`` key. ``load`` runs the startup decision tree (fresh
install, V1 migration, or V2 read with merge-with-defaults and field
migrations); ``save`` wraps the payload in a timestamped envelope.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lifeos_storage.domain.defaults import create_default_app_data, merge_with_defaults
from lifeos_storage.domain.schema import (
    V1_VERSION,
    V2_STORAGE_KEY,
    V2_VERSION,
    AppData,
    MigrationStatus,
    StorageVersion,
    StoredDocument,
)
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage
from lifeos_storage.services.audit import MigrationAuditLog
from lifeos_storage.services.backup import BackupManager
from lifeos_storage.services.detection import VersionDetector
from lifeos_storage.services.legacy_reader import LegacyReader
from lifeos_storage.services.migration import Migrator
from lifeos_storage.utils.exceptions import LifeOSStorageError, StorageWriteError
from lifeos_storage.utils.timestamps import Clock, clamp_created, format_timestamp, utc_now

logger = logging.getLogger(__name__)


class UnifiedStore:
    """
    Read/write API for the unified V2 document.

    Version detection and migration degrade silently: whatever happens while
    loading, ``load`` returns usable data, and the outcome of a migration is
    only visible through the audit log. Save errors always propagate.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Clock = utc_now,
        migrator: Migrator | None = None,
        overwrite_backup: bool = False,
    ) -> None:
        """
        Initialize the store.

        Args:
            storage: Key/value storage port.
            clock: Source of the current time.
            migrator: Migrator to use (defaults to one sharing ``clock``).
            overwrite_backup: Replace an existing V1 backup when migrating again.
        """
        self.storage = storage
        self.clock = clock
        self.migrator = migrator or Migrator(clock=clock)
        self.overwrite_backup = overwrite_backup
        self.detector = VersionDetector(storage)
        self.reader = LegacyReader(storage)
        self.backups = BackupManager(storage)
        self.audit = MigrationAuditLog(storage)

    def merge_with_defaults(self, partial: Any) -> AppData:
        """Backfill every missing field of ``partial`` from the module defaults."""
        return merge_with_defaults(partial)

    def load_document(self) -> StoredDocument | None:
        """
        Read the stored V2 document.

        Returns:
            The document, or None if it is absent, corrupt, or not V2.
        """
        raw = self.storage.get_item(V2_STORAGE_KEY)
        if raw is None:
            return None

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to parse V2 storage: {e}")
            return None

        if not isinstance(parsed, dict) or parsed.get("version") != V2_VERSION:
            logger.warning(f"Storage version mismatch, expected {V2_VERSION}")
            return None

        now = format_timestamp(self.clock())

        def timestamp_field(name: str) -> str:
            value = parsed.get(name)
            return value if isinstance(value, str) and value else now

        try:
            return StoredDocument.model_validate(
                {
                    "version": V2_VERSION,
                    "created": timestamp_field("created"),
                    "lastModified": timestamp_field("lastModified"),
                    "data": parsed.get("data") if isinstance(parsed.get("data"), dict) else {},
                }
            )
        except PydanticValidationError as e:
            logger.error(f"V2 storage has an invalid envelope: {e}")
            return None

    def _write(self, document: StoredDocument) -> None:
        """
        Persist a document.

        Raises:
            StorageWriteError: If the storage medium refuses the write.
        """
        try:
            payload = json.dumps(document.to_storage_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageWriteError(f"Document is not JSON serializable: {e}") from e
        self.storage.set_item(V2_STORAGE_KEY, payload)

    def save(self, data: AppData, created: str | None = None) -> StoredDocument:
        """
        Save application data as the V2 document.

        ``created`` is preserved from the stored document (or taken from the
        argument) and never later than ``lastModified``.

        Args:
            data: Complete application data.
            created: Creation time to use when no document is stored yet.

        Returns:
            The document that was written.

        Raises:
            StorageWriteError: If the write fails.
        """
        now_dt = self.clock()
        now = format_timestamp(now_dt)

        existing = self.load_document()
        created = clamp_created(existing.created if existing else created, now_dt)

        document = StoredDocument(version=V2_VERSION, created=created, last_modified=now, data=data)
        self._write(document)
        logger.debug("V2 storage saved")
        return document

    def load(self) -> AppData:
        """
        Load application data, migrating or initializing storage as needed.

        Returns:
            Complete application data.
        """
        version = self.detector.detect()

        if version is StorageVersion.V2:
            document = self.load_document()
            if document is not None:
                return self._load_v2(document)

        if version is StorageVersion.V1:
            return self._migrate_v1()

        logger.info("Fresh install - creating default storage")
        data = create_default_app_data()
        try:
            self.save(data)
        except StorageWriteError as e:
            logger.error(f"Failed to persist default storage: {e}")
        return data

    def _load_v2(self, document: StoredDocument) -> AppData:
        """Merge a stored V2 document with defaults and apply pending field migrations."""
        upgraded, changed = self.migrator.upgrade(document)
        if changed:
            try:
                self._write(upgraded)
                logger.info("Saved V2 storage after field migrations")
            except StorageWriteError as e:
                logger.error(f"Failed to persist field migrations: {e}")
        return upgraded.data

    def _migrate_v1(self) -> AppData:
        """
        Back up, migrate and persist V1 storage.

        On failure the V1 keys are left untouched, a failed status is recorded,
        and the migrated data is returned without being persisted.
        """
        logger.info(f"Migrating from V{V1_VERSION} to V{V2_VERSION} storage")
        timestamp = format_timestamp(self.clock())

        had_backup = self.backups.has_backup()
        if not self.backups.backup(overwrite=self.overwrite_backup):
            self.audit.record(
                MigrationStatus(
                    success=False,
                    timestamp=timestamp,
                    error="Backup creation failed",
                    backup_created=False,
                )
            )
            logger.error("Backup failed; migration aborted before any change")
            return self.migrator.migrate(self.reader.load_fragments()).data
        backup_created = self.overwrite_backup or not had_backup

        document: StoredDocument | None = None
        try:
            document = self.migrator.migrate(self.reader.load_fragments())
            self._write(document)
        except (LifeOSStorageError, PydanticValidationError) as e:
            self.audit.record(
                MigrationStatus(
                    success=False,
                    timestamp=timestamp,
                    error=str(e),
                    backup_created=backup_created,
                )
            )
            logger.error(f"Migration failed; V1 data is still intact: {e}")
            if document is None:
                return self.migrator.consolidate(self.reader.load_fragments())
            return document.data

        self.audit.record(
            MigrationStatus(success=True, timestamp=timestamp, backup_created=backup_created)
        )
        logger.info("Migration to V2 complete")
        return document.data
