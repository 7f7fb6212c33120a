"""
Legacy (V1) fragment reader.

V1 kept its data under six independent keys. Each fragment is parsed on its
own; a corrupt or wrongly-typed fragment is replaced by its default so the
other five still load.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from lifeos_storage.domain.defaults import create_default_programming_data
from lifeos_storage.domain.schema import LegacyKey
from lifeos_storage.infrastructure.storage.backends import KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass
class LegacyFragmentSet:
    """Parsed V1 fragments, one attribute per legacy key."""

    main: dict[str, Any] | None = None
    freelancing_projects: list[Any] = field(default_factory=list)
    freelancing_project_tasks: list[Any] = field(default_factory=list)
    freelancing_standalone_tasks: list[Any] = field(default_factory=list)
    programming: dict[str, Any] = field(default_factory=create_default_programming_data)
    finance: dict[str, Any] | None = None


class LegacyReader:
    """Read-only loader for the six V1 storage fragments."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def _parse(self, key: LegacyKey, expected: type) -> Any:
        """
        Parse a single fragment.

        Args:
            key: Legacy key to read.
            expected: JSON container type the fragment must decode to.

        Returns:
            The decoded value, or None if the key is absent, corrupt, or of the
            wrong type.
        """
        raw = self.storage.get_item(key.value)
        if raw is None:
            return None

        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to parse V1 fragment {key.name}: {e}")
            return None

        if not isinstance(value, expected):
            logger.warning(
                f"V1 fragment {key.name} has unexpected type {type(value).__name__}; "
                "using default"
            )
            return None

        return value

    def load_fragments(self) -> LegacyFragmentSet:
        """
        Load every V1 fragment, substituting defaults for unusable ones.

        Returns:
            The parsed fragment set.
        """
        fragments = LegacyFragmentSet(
            main=self._parse(LegacyKey.MAIN, dict),
            freelancing_projects=self._parse(LegacyKey.FREELANCING_PROJECTS, list) or [],
            freelancing_project_tasks=self._parse(LegacyKey.FREELANCING_PROJECT_TASKS, list)
            or [],
            freelancing_standalone_tasks=self._parse(
                LegacyKey.FREELANCING_STANDALONE_TASKS, list
            )
            or [],
            programming=self._parse(LegacyKey.PROGRAMMING, dict)
            or create_default_programming_data(),
            finance=self._parse(LegacyKey.FINANCE, dict),
        )

        logger.debug(
            f"Loaded V1 fragments: {len(fragments.freelancing_projects)} projects, "
            f"{len(fragments.freelancing_project_tasks)} project tasks, "
            f"{len(fragments.freelancing_standalone_tasks)} standalone tasks"
        )
        return fragments
