"""
Logging configuration for watchrun.

CRITICAL: watchrun MUST NOT log to stdout! stdout carries the framed output
of the test runs, and a consumer splits it into one result document per run.
Any log line there corrupts a result document.

Logs go to stderr, and optionally to .watchrun/logs/watchrun-YYYY-MM-DD.log
(new file each day) when a log directory is configured.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.WARNING,
    backup_count: int = 7,  # Keep a week of logs
    console: bool = True,
) -> logging.Logger:
    """
    Set up logging for watchrun.

    Args:
        log_dir: Directory for daily log files (default: no file logging)
        level: Logging level (default: WARNING)
        backup_count: Number of daily backup files to keep
        console: If True, log to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("watchrun")
    logger.setLevel(level)

    # Check existing handlers to avoid duplicates
    has_file_handler = any(
        isinstance(h, logging.handlers.TimedRotatingFileHandler) for h in logger.handlers
    )
    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and h.stream is sys.stderr
        for h in logger.handlers
    )

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is not None and not has_file_handler:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"watchrun-{datetime.now().strftime('%Y-%m-%d')}.log"

        # Flush after each record so the log is complete even when the
        # process exits straight after an interrupt
        class FlushingHandler(logging.handlers.TimedRotatingFileHandler):
            """Handler that flushes after every emit for immediate visibility."""

            def emit(self, record):
                super().emit(record)
                self.flush()

        file_handler = FlushingHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info(f"Log file: {log_file}")

    if console and not has_console_handler:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter("watchrun: %(levelname)s: %(message)s"))
        logger.addHandler(console_handler)

    # Records stay in our handlers, never in a root handler bound to stdout
    logger.propagate = False
    return logger


def get_logger(name: str = "watchrun") -> logging.Logger:
    """
    Get watchrun logger instance.

    Args:
        name: Logger name (default: "watchrun")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
