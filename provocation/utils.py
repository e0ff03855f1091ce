"""
Utility functions for provocation.

Includes logging setup, error message sanitizing, and temp file scrubbing.
"""

import json
import logging
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


# Global console for pretty output
console = Console()


def setup_logging(
    log_file: Optional[Path] = None,
    log_level: str = "INFO",
    log_format: str = "structured",
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for the invocation runtime.

    Args:
        log_file: Path to log file (None to skip file logging)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        console_output: Also log to console

    Returns:
        Configured logger
    """
    logger = logging.getLogger("provocation")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if log_format == "structured":
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(StructuredFormatter())

        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "bearer_token"):
            log_data["bearer_token"] = record.bearer_token
        if hasattr(record, "action"):
            log_data["action"] = record.action
        if hasattr(record, "metadata"):
            log_data["metadata"] = record.metadata

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def sanitize_error_message(error: BaseException, max_length: int = 500) -> str:
    """
    Sanitize an error message before it leaves the process.

    Args:
        error: Exception to sanitize
        max_length: Maximum message length

    Returns:
        Sanitized error message
    """
    message = str(error)

    if len(message) > max_length:
        message = message[:max_length] + "..."

    # Remove potential email addresses
    message = re.sub(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]", message)

    # Remove potential phone numbers
    message = re.sub(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b", "[PHONE]", message)

    return message


def scrub_directory(directory: Optional[Path] = None) -> int:
    """
    Remove every entry inside a directory, keeping the directory itself.

    Host sandboxes may be reused between invocations, so leftovers from a
    previous handler run are cleared before the next one starts.

    Args:
        directory: Directory to clean (defaults to the system temp dir)

    Returns:
        Number of entries removed

    Raises:
        OSError: If an entry cannot be removed
    """
    directory = directory or Path(tempfile.gettempdir())
    removed = 0
    for entry in directory.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    return removed


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1m 23s", "45s", "850ms")
    """
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{int(seconds)}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"
