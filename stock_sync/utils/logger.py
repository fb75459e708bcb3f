"""Named loggers for the sync service.

Every logger prints to stdout. Outside production, loggers with a file in
``logging.files`` also write to a rotating file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import get_config
from .exceptions import ConfigurationError


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ConfigurationError(
            f"Unknown log level: {level_name}",
            details={"level": level_name},
        )
    return level


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure a named logger once and return it.

    Args:
        name: Logger name
        log_file: Rotating log file, ignored in production
        level: Level name overriding ``logging.level``

    Raises:
        ConfigurationError: If the level name is not a logging level
    """
    config = get_config()
    log_level = _resolve_level(level or config.logging.level)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(config.logging.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Production runs as a managed service whose stdout is already captured.
    if log_file and not config.is_production:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def flush_handlers():
    """Flush every handler of every configured logger."""
    loggers = [logging.getLogger()] + [
        logger for logger in logging.Logger.manager.loggerDict.values()
        if isinstance(logger, logging.Logger)
    ]
    for logger in loggers:
        for handler in logger.handlers:
            handler.flush()


def get_sync_logger() -> logging.Logger:
    """Logger for cycle progress."""
    return setup_logger("sync", get_config().logging.files.sync)


def get_error_logger() -> logging.Logger:
    """Logger for per-item failures; always at ERROR."""
    return setup_logger("error", get_config().logging.files.error, "ERROR")


def get_api_logger() -> logging.Logger:
    return setup_logger("api")


def get_server_logger() -> logging.Logger:
    return setup_logger("server")


def get_scheduler_logger() -> logging.Logger:
    """Logger for APScheduler internals.

    Without this, exceptions raised inside scheduler worker threads never
    reach the service log.
    """
    return setup_logger("apscheduler")
