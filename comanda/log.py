"""Logging setup shared by the console and the library modules."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from comanda.config import LOG_LEVEL, LOG_PATH

LOGGER_NAME = "comanda"

_detailed_formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
_simple_formatter = logging.Formatter("%(levelname)s - %(message)s")


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(log_path: str | None = LOG_PATH, console: bool = False, level: str = LOG_LEVEL) -> logging.Logger:
    """
    Attach handlers to the package logger once.

    The console handler stays off while the Textual console owns the terminal.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(_level(level))
        file_handler.setFormatter(_detailed_formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(_simple_formatter)
        logger.addHandler(console_handler)

    logger.propagate = False
    logger.info("Logger initialized")
    return logger
