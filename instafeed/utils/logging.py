"""Logging configuration for Instafeed."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from instafeed.utils.config import APP_NAME, LOG_FILE


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure and return the application logger.

    Module loggers are created under the ``instafeed`` namespace, so the
    handlers are attached to that logger rather than the root one.

    Args:
        level: Logging level (default: INFO)
        log_file: Path to log file (default: from config)

    Returns:
        Configured logger instance
    """
    if log_file is None:
        log_file = LOG_FILE

    logger = logging.getLogger("instafeed")
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_formatter = logging.Formatter(
        fmt=f"{APP_NAME} | %(levelname)-8s | %(message)s"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default: the package logger)

    Returns:
        Logger instance
    """
    if name is None:
        name = "instafeed"
    return logging.getLogger(name)


def redact_token(text: str, token: Optional[str]) -> str:
    """Mask an access token inside a URL or message before it is logged."""
    if not token:
        return text
    return text.replace(token, "***")
