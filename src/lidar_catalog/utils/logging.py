"""
Logging Utilities

This module sets up logging for the project. Loggers are created per module
with a shared console format; a file handler can be added for long catalog
runs where per-process records are useful.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level}")
        return resolved
    return int(level)


def _file_handler(log_file: str, level: int) -> logging.Handler:
    # One record per line, tagged with the worker process
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def setup_logger(name: str,
                 level: Union[int, str] = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level, as int or name (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    level = _coerce_level(level)
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, level))

    return logger


def set_package_level(level: Union[int, str], log_file: Optional[str] = None) -> None:
    """
    Apply a level to every logger already created under ``lidar_catalog``.

    Module loggers are created at import time with INFO; the CLI and
    ``grid_catalog`` callers use this to honour ``logging.level`` from config.
    """
    level = _coerce_level(level)
    manager = logging.Logger.manager
    for name, logger in list(manager.loggerDict.items()):
        if not name.startswith("lidar_catalog") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)

    if log_file:
        logging.getLogger("lidar_catalog").addHandler(_file_handler(log_file, level))
