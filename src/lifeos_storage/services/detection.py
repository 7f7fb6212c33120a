"""
Storage version detection.

Classifies the generation of the data currently held by the storage medium.
"""

import json
import logging

from lifeos_storage.domain.schema import V2_STORAGE_KEY, V2_VERSION, LegacyKey, StorageVersion
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage

logger = logging.getLogger(__name__)


class VersionDetector:
    """
    Detects whether storage holds a V2 document, V1 fragments, or nothing.

    A valid V2 document always wins over a V1 main bundle stored alongside it;
    the two are never reconciled.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def has_v2_document(self) -> bool:
        """Check for a parseable V2 document carrying the current version tag."""
        raw = self.storage.get_item(V2_STORAGE_KEY)
        if raw is None:
            return False

        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("V2 storage entry is not valid JSON; ignoring it")
            return False

        return isinstance(parsed, dict) and parsed.get("version") == V2_VERSION

    def has_v1_storage(self) -> bool:
        """Check whether the legacy main bundle exists, whatever its content."""
        return self.storage.get_item(LegacyKey.MAIN.value) is not None

    def detect(self) -> StorageVersion | None:
        """
        Detect the current storage generation.

        Returns:
            StorageVersion.V2, StorageVersion.V1, or None for a fresh install.
        """
        if self.has_v2_document():
            return StorageVersion.V2

        if self.has_v1_storage():
            return StorageVersion.V1

        return None
