"""
Storyteller - Logging

Rich console logging plus a plain-text session log under logs/.

Video locators carry the API key as a query parameter, and SDK error
messages sometimes echo request URLs, so every handler masks `key=...`
values before a record is written.

Environment Variables:
    STORYTELLER_LOG_LEVEL: DEBUG, INFO, WARNING... (default: INFO)
    STORYTELLER_LOG_FILE: Session log path (default: logs/storyteller.log)
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOG_DIR = Path(__file__).parent.parent / "logs"
DEFAULT_LOG_FILE = LOG_DIR / "storyteller.log"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

KEY_PARAM_PATTERN = re.compile(r"([?&]key=)[^&\s'\"]+")


def redact(text: str) -> str:
    """Mask API key query parameters in a message."""
    return KEY_PARAM_PATTERN.sub(r"\1***", text)


class RedactKeyFilter(logging.Filter):
    """Rewrites the formatted message with API keys masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = redact(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    name = os.environ.get("STORYTELLER_LOG_LEVEL", "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(
    name: str,
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Get a logger writing to the Rich console and the session log.

    Args:
        name: Name of the logger (usually __name__)
        level: Logging level (default: STORYTELLER_LOG_LEVEL or INFO)
        log_file: Session log path (default: STORYTELLER_LOG_FILE or logs/storyteller.log)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = _resolve_level(level)
    logger.setLevel(level)
    redactor = RedactKeyFilter()

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(level)
    rich_handler.addFilter(redactor)
    logger.addHandler(rich_handler)

    if log_file is None:
        log_file = Path(os.environ.get("STORYTELLER_LOG_FILE", DEFAULT_LOG_FILE))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    session_handler = logging.FileHandler(log_file, encoding="utf-8")
    session_handler.setLevel(level)
    session_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    session_handler.addFilter(redactor)
    logger.addHandler(session_handler)

    return logger


def get_console() -> Console:
    """Shared console, so CLI output and log lines interleave cleanly."""
    return console
