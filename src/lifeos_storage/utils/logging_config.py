"""
Logging configuration and utilities.

Provides centralized logging setup for the storage engine and its CLI. Log
output never goes to stdout, which is reserved for exported documents.
"""

import logging
import sys
from pathlib import Path

from lifeos_storage.utils.exceptions import ConfigurationError
from lifeos_storage.utils.parameters import LoggingConfig


def resolve_level(name: str) -> int:
    """
    Translate a configured level name into a logging level.

    Raises:
        ConfigurationError: If the name is not a standard level.
    """
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown logging level: {name!r}")
    return level


def _replace_handlers(logger: logging.Logger) -> None:
    # Close replaced handlers so a reconfigured log file is released
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(config: LoggingConfig, logger_name: str | None = None) -> logging.Logger:
    """
    Set up logging for the engine.

    Calling it again replaces (and closes) the handlers installed by a
    previous call, so the CLI can reconfigure logging once per command.

    Args:
        config: Logging configuration.
        logger_name: Optional logger name. If None, configures the root logger.

    Returns:
        Configured logger instance.

    Raises:
        ConfigurationError: If the level is unknown or the log file cannot be opened.
    """
    level = resolve_level(config.level)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    _replace_handlers(logger)

    formatter = logging.Formatter(config.format)

    if config.console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if config.file:
        log_file = Path(config.file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot open log file {log_file}: {e}") from e

        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance by name.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
