"""
Logging setup for PalmGestureSelector.

All modules log through children of the "PalmGestureSelector" logger.
setup_logging() attaches a console handler and, optionally, a rotating
file in the log directory ($PALM_GESTURE_SELECTOR_LOG_DIR, else
~/.palm_gesture_selector/logs).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .config import (
    LOG_BACKUP_COUNT,
    LOG_DIR_DEFAULT,
    LOG_DIR_ENV,
    LOG_FILENAME,
    LOG_MAX_BYTES,
)

ROOT_LOGGER_NAME = "PalmGestureSelector"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def get_log_directory(log_dir: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve and create the log directory.

    Args:
        log_dir: Explicit directory; falls back to the LOG_DIR_ENV
                 environment variable, then LOG_DIR_DEFAULT.

    Returns:
        Existing log directory path.
    """
    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV) or LOG_DIR_DEFAULT).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def setup_logging(
    debug: bool = False,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Configure and return the package logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        debug: Enable debug-level logging if True.
        log_to_file: Also write a rotating log file if True.
        log_filename: Override default log filename.
        log_dir: Override the log directory.

    Returns:
        The "PalmGestureSelector" logger.
    """
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console)

    if log_to_file:
        log_path = get_log_directory(log_dir) / (log_filename or LOG_FILENAME)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)
        logger.debug(f"Logging to file: {log_path}")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the package logger, or the package logger itself."""
    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    return base_logger.getChild(name) if name else base_logger
