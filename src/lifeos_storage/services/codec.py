"""
Import/export codec.

Exports always emit the current V2 envelope. Imports accept three formats and
go through three stages: detect the format, normalize it into AppData, then
commit it. Nothing is written unless detection and normalization succeed.
"""

import json
import logging
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from lifeos_storage.domain.defaults import create_default_freelancer_profile
from lifeos_storage.domain.schema import (
    FINANCE_COLLECTIONS,
    MODULE_NAMES,
    V1_VERSION,
    V2_VERSION,
    AppData,
    StoredDocument,
)
from lifeos_storage.services.store import UnifiedStore
from lifeos_storage.utils.exceptions import ImportRejectedError
from lifeos_storage.utils.parameters import ExportConfig
from lifeos_storage.utils.timestamps import format_timestamp

logger = logging.getLogger(__name__)

# Module keys that never appear in a finance-only export
APP_ONLY_MODULES = tuple(name for name in MODULE_NAMES if name != "settings")


class ExportFormat(str, Enum):
    """Formats accepted by ``import_document``."""

    V2 = "v2"
    V1 = "v1"
    LEGACY = "legacy"


def detect_export_format(payload: Any) -> ExportFormat:
    """
    Classify an imported payload.

    Args:
        payload: Decoded JSON value.

    Returns:
        V2 for a current envelope, V1 for an old export carrying extension
        fragments, LEGACY for anything else.
    """
    if not isinstance(payload, dict):
        return ExportFormat.LEGACY

    if payload.get("version") == V2_VERSION and payload.get("data"):
        return ExportFormat.V2

    if payload.get("version") == V1_VERSION and (
        payload.get("freelancingExtended") or payload.get("programmingExtended")
    ):
        return ExportFormat.V1

    return ExportFormat.LEGACY


def _require_object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ImportRejectedError(f"Invalid data format: {what} must be a JSON object")
    return value


def _optional_object(value: Any, what: str) -> dict[str, Any] | None:
    if value is None:
        return None
    return _require_object(value, what)


def normalize_v1_export(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Rebuild the unified module set from a V1 export.

    The ``data`` object is combined with its sibling fragments
    (``freelancingExtended``, ``programmingExtended``, ``financeData``).
    """
    data = dict(_require_object(payload.get("data") or {}, "'data'"))

    extended = _optional_object(payload.get("freelancingExtended"), "'freelancingExtended'")
    if extended:
        freelancing = _optional_object(data.get("freelancing"), "'data.freelancing'") or {}
        data["freelancing"] = {
            **freelancing,
            "profile": freelancing.get("profile") or create_default_freelancer_profile(),
            "applications": freelancing.get("applications") or [],
            "projects": extended.get("projects") or [],
            "projectTasks": extended.get("projectTasks") or [],
            "standaloneTasks": extended.get("standaloneTasks") or [],
        }

    programming = _optional_object(payload.get("programmingExtended"), "'programmingExtended'")
    if programming:
        data["programming"] = programming

    finance = _optional_object(payload.get("financeData"), "'financeData'")
    if finance:
        data["finance"] = finance

    return data


def normalize_legacy(payload: Any) -> dict[str, Any]:
    """
    Treat a bare object as partial AppData.

    An object carrying finance collections and no module key other than
    ``settings`` is a finance-only export (the finance screen writes its
    FinanceSettings under ``settings``) and becomes the finance module, its
    ``settings`` included.
    """
    payload = _require_object(payload, "the imported document")

    if not any(name in payload for name in APP_ONLY_MODULES) and any(
        name in payload for name in FINANCE_COLLECTIONS
    ):
        logger.info("Importing finance-only export")
        finance = {k: v for k, v in payload.items() if k not in ("exportedAt", "version")}
        return {"finance": finance}

    return payload


class ImportExportCodec:
    """Serializes the stored document for export and commits imported files."""

    def __init__(self, store: UnifiedStore, config: ExportConfig | None = None) -> None:
        self.store = store
        self.config = config or ExportConfig()

    def export_payload(self) -> StoredDocument:
        """
        Build the export envelope.

        ``load`` runs first so V1 storage is migrated before it is exported.
        """
        data = self.store.load()
        now = format_timestamp(self.store.clock())
        return StoredDocument(version=V2_VERSION, created=now, last_modified=now, data=data)

    def export_document(self) -> str:
        """Serialize the current data as a V2 JSON document."""
        payload = self.export_payload().to_storage_dict()
        return json.dumps(payload, indent=self.config.indent, ensure_ascii=False)

    def export_filename(self, today: date | None = None) -> str:
        """Return the export file name for the given date."""
        today = today or self.store.clock().date()
        return f"{self.config.filename_prefix}{today.isoformat()}.json"

    def export_to_file(self, directory: str | Path | None = None) -> Path:
        """
        Write an export file.

        Args:
            directory: Target directory (defaults to the configured one).

        Returns:
            Path of the written file.
        """
        target_dir = Path(directory or self.config.dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        path = target_dir / self.export_filename()
        path.write_text(self.export_document(), encoding="utf-8")

        logger.info(f"Data exported in V2 format to {path}")
        return path

    def normalize(self, blob: str | bytes) -> tuple[ExportFormat, AppData]:
        """
        Decode, detect and normalize an imported document without saving it.

        Raises:
            ImportRejectedError: If the document is not valid JSON or has an
                unusable shape.
        """
        try:
            payload = json.loads(blob)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
            raise ImportRejectedError(
                f"Invalid data format. Please check the file and try again. ({e})"
            ) from e

        export_format = detect_export_format(payload)
        logger.info(f"Importing {export_format.value} format data")

        if export_format is ExportFormat.V2:
            partial = _require_object(payload["data"], "'data'")
        elif export_format is ExportFormat.V1:
            partial = normalize_v1_export(payload)
        else:
            partial = normalize_legacy(payload)

        for name in MODULE_NAMES:
            if name in partial and not isinstance(partial[name], dict):
                raise ImportRejectedError(
                    f"Invalid data format: module '{name}' must be a JSON object"
                )

        data = self.store.merge_with_defaults(partial)
        data, _ = self.store.migrator.apply_field_migrations(data)
        return export_format, data

    def import_document(self, blob: str | bytes) -> AppData:
        """
        Import a document and save it as the V2 document.

        Args:
            blob: Serialized JSON document.

        Returns:
            The imported application data.

        Raises:
            ImportRejectedError: If the document is rejected; storage is left
                untouched.
            StorageWriteError: If the final save fails.
        """
        _, data = self.normalize(blob)
        self.store.save(data)
        logger.info("Import complete - saved as V2")
        return data

    def import_file(self, path: str | Path) -> AppData:
        """
        Import a document from a file.

        Raises:
            ImportRejectedError: If the file cannot be read or is rejected.
        """
        try:
            content = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ImportRejectedError(f"Failed to read file {path}: {e}") from e

        return self.import_document(content)
