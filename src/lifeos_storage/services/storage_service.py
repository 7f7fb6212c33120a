"""
Storage service.

The narrow contract exposed to the surrounding application: load, save,
export, import, first-run tracking, and the operator-facing rollback panel
operations. Callers never write storage keys themselves.
"""

import json
import logging
from pathlib import Path
from typing import Any

from lifeos_storage.domain.schema import (
    FIRST_TIME_COMPLETED,
    FIRST_TIME_KEY,
    MIGRATION_STATUS_KEY,
    V2_STORAGE_KEY,
    V2_VERSION,
    AppData,
    BackupInfo,
    LegacyKey,
    MigrationStatus,
    StorageVersion,
    ValidationReport,
)
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage, create_storage
from lifeos_storage.services.codec import ImportExportCodec
from lifeos_storage.services.store import UnifiedStore
from lifeos_storage.utils.parameters import AppConfig, ExportConfig
from lifeos_storage.utils.timestamps import Clock, utc_now

logger = logging.getLogger(__name__)

REQUIRED_MODULES = (
    "university",
    "freelancing",
    "programming",
    "finance",
    "home",
    "misc",
    "settings",
)
FREELANCING_COLLECTIONS = ("profile", "applications", "projects", "projectTasks", "standaloneTasks")
PROGRAMMING_COLLECTIONS = ("learningItems", "skills", "tools", "projects")


def validate_v2_storage(document: Any) -> ValidationReport:
    """
    Check the structure of a V2 document.

    Args:
        document: Decoded document (envelope included).

    Returns:
        Validation report listing every problem found.
    """
    if not isinstance(document, dict):
        return ValidationReport(valid=False, errors=["Document is not a JSON object"])

    errors: list[str] = []

    if document.get("version") != V2_VERSION:
        errors.append(f"Invalid version: {document.get('version')}")

    data = document.get("data")
    if not isinstance(data, dict) or not data:
        errors.append("Missing 'data' field")
        return ValidationReport(valid=False, errors=errors)

    for module in REQUIRED_MODULES:
        if not data.get(module):
            errors.append(f"Missing module: {module}")

    freelancing = data.get("freelancing")
    if isinstance(freelancing, dict):
        for name in FREELANCING_COLLECTIONS:
            if freelancing.get(name) is None:
                errors.append(f"Missing freelancing.{name}")

    programming = data.get("programming")
    if isinstance(programming, dict):
        for name in PROGRAMMING_COLLECTIONS:
            if programming.get(name) is None:
                errors.append(f"Missing programming.{name}")

    return ValidationReport(valid=not errors, errors=errors)


class LifeOSStorage:
    """Facade over the unified store, backups and the import/export codec."""

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Clock = utc_now,
        export_config: ExportConfig | None = None,
        overwrite_backup: bool = False,
    ) -> None:
        self.storage = storage
        self.store = UnifiedStore(storage, clock=clock, overwrite_backup=overwrite_backup)
        self.codec = ImportExportCodec(self.store, export_config)

    @classmethod
    def from_config(cls, config: AppConfig) -> "LifeOSStorage":
        """Build the service from application configuration."""
        return cls(
            create_storage(config.storage),
            export_config=config.export,
            overwrite_backup=config.backup.overwrite_existing,
        )

    def load_data(self) -> AppData:
        """Load application data, migrating or initializing storage if needed."""
        return self.store.load()

    def save_data(self, data: AppData) -> None:
        """
        Save application data.

        Raises:
            StorageWriteError: If the write fails.
        """
        self.store.save(data)

    def export_json(self) -> str:
        """Return the current data as a V2 JSON document."""
        return self.codec.export_document()

    def export_data(self, directory: str | Path | None = None) -> Path:
        """Write an export file and return its path."""
        return self.codec.export_to_file(directory)

    def import_json(self, blob: str | bytes) -> AppData:
        """
        Import a serialized document.

        Raises:
            ImportRejectedError: If the document is rejected.
        """
        return self.codec.import_document(blob)

    def import_data(self, path: str | Path) -> AppData:
        """
        Import a document from a file.

        Raises:
            ImportRejectedError: If the file is unreadable or rejected.
        """
        return self.codec.import_file(path)

    def is_first_time(self) -> bool:
        """Check whether first-time setup has not been completed yet."""
        return self.storage.get_item(FIRST_TIME_KEY) is None

    def mark_first_time_complete(self) -> None:
        """Record that first-time setup is complete."""
        self.storage.set_item(FIRST_TIME_KEY, FIRST_TIME_COMPLETED)

    def detect_storage_version(self) -> StorageVersion | None:
        """Detect the generation currently in storage."""
        return self.store.detector.detect()

    def has_v1_backup(self) -> bool:
        """Check whether a V1 backup exists."""
        return self.store.backups.has_backup()

    def restore_v1_from_backup(self) -> bool:
        """Roll back to the V1 backup. Returns False if none exists."""
        return self.store.backups.restore()

    def get_v1_backup_info(self) -> BackupInfo | None:
        """Describe the V1 backup, dated by the first migration attempt that took it."""
        created = next(
            (s.timestamp for s in self.get_migration_history() if s.backup_created), None
        )
        return self.store.backups.backup_info(created=created)

    def get_migration_status(self) -> MigrationStatus | None:
        """Return the latest migration attempt."""
        return self.store.audit.latest()

    def get_migration_history(self) -> list[MigrationStatus]:
        """Return every migration attempt, oldest first."""
        return self.store.audit.history()

    def validate_v2_storage(self) -> ValidationReport:
        """Validate the stored V2 document."""
        raw = self.storage.get_item(V2_STORAGE_KEY)
        if raw is None:
            return ValidationReport(valid=False, errors=["No V2 storage found"])

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            return ValidationReport(valid=False, errors=[f"Invalid JSON: {e}"])

        return validate_v2_storage(document)

    def cleanup_v1_storage(self, keep_backup: bool = True) -> None:
        """
        Remove the six V1 fragments once a migration has been confirmed.

        The V2 document, the migration log and the first-run marker are kept.

        Args:
            keep_backup: Keep the V1 backup so rollback stays possible.
        """
        for key in LegacyKey:
            self.storage.remove_item(key.value)

        if not keep_backup:
            self.store.backups.delete()

        logger.info("V1 storage cleaned up")

    def clear_all_data(self, keep_backup: bool = True) -> None:
        """
        Remove the V2 document, the V1 fragments, the migration log and the
        first-run marker.

        The V1 backup is only removed when ``keep_backup`` is False.
        """
        self.storage.remove_item(V2_STORAGE_KEY)
        for key in LegacyKey:
            self.storage.remove_item(key.value)
        self.storage.remove_item(MIGRATION_STATUS_KEY)
        self.storage.remove_item(FIRST_TIME_KEY)

        if not keep_backup:
            self.store.backups.delete()

        logger.info("All storage cleared")
