"""Custom exceptions for the LifeOS storage engine."""


class LifeOSStorageError(Exception):
    """Base exception for all LifeOS storage errors."""

    pass


class ConfigurationError(LifeOSStorageError):
    """Raised when there is a configuration error."""

    pass


class StorageReadError(LifeOSStorageError):
    """Raised when the storage medium itself cannot be opened."""

    pass


class StorageWriteError(LifeOSStorageError):
    """Raised when the storage medium refuses a write or delete."""

    pass


class ImportRejectedError(LifeOSStorageError):
    """Raised when an imported document is unrecognized or corrupt."""

    pass
