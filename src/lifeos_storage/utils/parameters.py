"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the storage engine.
All parameters are loaded from YAML and validated using Pydantic models.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lifeos_storage.utils.exceptions import ConfigurationError


class StorageConfig(BaseModel):
    """Key/value storage backend configuration."""

    backend: str = Field(default="file", pattern="^(file|memory)$")
    path: str = "data/lifeos_storage.json"


class BackupConfig(BaseModel):
    """Legacy backup policy configuration."""

    overwrite_existing: bool = False


class ExportConfig(BaseModel):
    """Export file configuration."""

    dir: str = "exports"
    filename_prefix: str = "lifeos_backup_v2_"
    indent: int = Field(default=2, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="LIFEOS_", env_nested_delimiter="__", case_sensitive=False
    )


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            if not isinstance(config_dict, dict):
                raise ConfigurationError(
                    f"Configuration root must be a mapping: {self.config_path}"
                )

            self.config = AppConfig(**config_dict)

        except ConfigurationError:
            raise
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_storage_config(self) -> StorageConfig:
        """Get storage backend configuration."""
        return self.config.storage

    def get_backup_config(self) -> BackupConfig:
        """Get backup policy configuration."""
        return self.config.backup

    def get_export_config(self) -> ExportConfig:
        """Get export configuration."""
        return self.config.export

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging

    def get_raw_config(self) -> dict[str, Any]:
        """
        Get raw configuration dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return self.config.model_dump()
