"""
Logging setup for PaneSync.

All loggers live under the ``panesync`` root logger. Handlers are attached
once to that root; module loggers only propagate to it.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .constants import (
    LOG_LEVEL, LOG_FORMAT, LOG_FILE,
    LOG_MAX_SIZE_MB, LOG_BACKUP_COUNT
)

ROOT_LOGGER_NAME = 'panesync'


def configure_logging(level: str = LOG_LEVEL, log_file: Optional[str] = LOG_FILE,
                      force: bool = False) -> logging.Logger:
    """
    Attach console and rotating file handlers to the package root logger.

    Usage:
        from config.logging_config import configure_logging
        configure_logging("DEBUG", log_file=None)

    Args:
        level: Level name applied to the root logger and console handler.
        log_file: Rotating log file path, or None for console only.
        force: Replace handlers that are already installed.

    Returns:
        The ``panesync`` root logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)

    if root.handlers and not force:
        return root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    root.setLevel(logging.DEBUG if log_file else numeric_level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(numeric_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    # File gets everything down to DEBUG
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_SIZE_MB * 1024 * 1024,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Module logger under the package root.

    Usage:
        from config.logging_config import get_logger
        logger = get_logger(__name__)
    """
    configure_logging()
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(ROOT_LOGGER_NAME + '.'):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


logger = get_logger()
