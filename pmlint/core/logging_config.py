"""
Logging configuration for plugin scans.

This module provides structured (JSON lines) logging of scan progress:
scan start and finish, each analyzer's completion or failure, and the
number of issues each step produced.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Any

SCAN_LOGGER_NAME = "pmlint.scan"


class ScanEventFormatter(logging.Formatter):
    """Custom formatter for scan event logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log records with structured data."""
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "event"):
            log_entry["event"] = record.event

        for field in ["plugin", "analyzer", "file", "files", "issues", "duration"]:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if hasattr(record, "error"):
            log_entry["error"] = record.error

        if record.exc_info:
            log_entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def configure_scan_logging(
    log_file: str | None = None,
    log_level: str = "INFO",
    enable_console: bool = True,
) -> None:
    """
    Configure logging for plugin scans.

    Args:
        log_file: Path to log file for scan events (optional)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_console: Whether to also log to console
    """
    logger = logging.getLogger(SCAN_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = ScanEventFormatter()

    if log_file:
        # Daily rotation, one week of history
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="D",
            interval=1,
            backupCount=7,
            encoding="utf-8",
            utc=False,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)


def get_scan_logger() -> logging.Logger:
    """Get the configured scan event logger."""
    return logging.getLogger(SCAN_LOGGER_NAME)
