"""
Storage schema registry.

Defines the storage key names of both generations, the generation tags, and
the canonical envelope models persisted by the engine (the V2 stored document,
the migration audit record, and backup metadata).
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

V2_VERSION = "2.0.0"
V1_VERSION = "1.0.0"

V2_STORAGE_KEY = "lifeos"
BACKUP_KEY = "lifeos_v1_backup"
FIRST_TIME_KEY = "lifeos_first_time"
FIRST_TIME_COMPLETED = "completed"
MIGRATION_STATUS_KEY = "lifeos_migration_status"


class LegacyKey(str, Enum):
    """The six V1 fragment keys, named by their logical backup names."""

    MAIN = "lifeos_data"
    FREELANCING_PROJECTS = "lifeos-freelancing-projects"
    FREELANCING_PROJECT_TASKS = "lifeos-freelancing-project-tasks"
    FREELANCING_STANDALONE_TASKS = "lifeos-freelancing-standalone-tasks"
    PROGRAMMING = "lifeos-programming-data"
    FINANCE = "lifeos-finance-data"


class StorageVersion(str, Enum):
    """Storage generation tags."""

    V1 = V1_VERSION
    V2 = V2_VERSION


class TransactionNature(str, Enum):
    """Fixed/variable/emergency classification of an income or expense."""

    FIXED = "fixed"
    VARIABLE = "variable"
    EMERGENCY = "emergency"

    @classmethod
    def values(cls) -> frozenset[str]:
        return frozenset(member.value for member in cls)


MODULE_NAMES: tuple[str, ...] = (
    "university",
    "freelancing",
    "programming",
    "finance",
    "home",
    "misc",
    "settings",
    "notificationSettings",
)

FINANCE_COLLECTIONS: tuple[str, ...] = (
    "accounts",
    "transfers",
    "incomes",
    "expenses",
    "categories",
    "incomeCategories",
    "installments",
    "budgets",
    "goals",
    "alerts",
)

AppData = dict[str, Any]


class StoredDocument(BaseModel):
    """
    The single persisted V2 unit.

    Serialized with camelCase keys so documents stay readable by every client
    that ever wrote the ``lifeos`` key.
    """

    version: Literal["2.0.0"] = Field(default=V2_VERSION, description="Generation tag")
    last_modified: str = Field(
        alias="lastModified", description="ISO-8601 time of the latest save"
    )
    created: str = Field(description="ISO-8601 time of the first write")
    data: AppData = Field(description="Unified application payload")

    model_config = ConfigDict(populate_by_name=True)

    def to_storage_dict(self) -> dict[str, Any]:
        """Return the document in its persisted key order."""
        return {
            "version": self.version,
            "lastModified": self.last_modified,
            "created": self.created,
            "data": self.data,
        }


class MigrationStatus(BaseModel):
    """Write-once audit entry describing one migration attempt."""

    attempted: bool = True
    success: bool
    timestamp: str = Field(description="ISO-8601 time of the attempt")
    from_version: str = Field(default=V1_VERSION, alias="fromVersion")
    to_version: str = Field(default=V2_VERSION, alias="toVersion")
    error: str | None = None
    backup_created: bool = Field(alias="backupCreated")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_storage_dict(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if data["error"] is None:
            del data["error"]
        return data


class BackupInfo(BaseModel):
    """Metadata describing the stored legacy backup."""

    size: int = Field(description="Size of the serialized snapshot in bytes")
    fragments: list[str] = Field(
        default_factory=list, description="Logical names of the fragments holding data"
    )
    created: str | None = Field(
        None, description="Time of the migration attempt that created the backup, if known"
    )


class ValidationReport(BaseModel):
    """Result of a structural check of a V2 document."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
