"""
Logging setup for the peerchat package logger.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from peerchat.common.config import Config

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logger(
    logger: logging.Logger, log_level: int, fmt: str = DEFAULT_FORMAT
) -> None:
    """
    Set the level of a logger and give it a console handler if it has none.

    Args:
        logger: The logger instance to configure
        log_level: The logging level to set
        fmt: Format string for the console handler
    """
    logger.setLevel(log_level)
    if logger.handlers:
        return
    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console)


def configure_logging(config: Config) -> logging.Logger:
    """Reset the package logger from a Config, adding a rotating log file if set."""
    logger = logging.getLogger("peerchat")
    logger.handlers.clear()
    setup_logger(logger, config.LOG_LEVEL, config.LOG_FORMAT)

    if config.LOG_FILE:
        log_path = Path(config.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
        file_handler.setLevel(config.LOG_LEVEL)
        file_handler.setFormatter(logging.Formatter(config.LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger
