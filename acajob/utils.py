"""
Utility functions for acajob.

Includes logging, job naming, command parsing, location normalization,
and the timed polling loop.
"""

import json
import logging
import random
import string
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from rich.console import Console
from rich.logging import RichHandler


# Global console for pretty output
console = Console(stderr=True)

LOG_FORMATS = ("pretty", "structured", "actions")

_BASE36 = string.digits + string.ascii_lowercase


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "pretty",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for a job run.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "pretty" (rich), "structured" (JSON) or "actions"
            (GitHub Actions workflow commands)
        log_file: Optional path to also write structured logs to

    Returns:
        Configured "acajob" logger
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format '{log_format}', expected one of {LOG_FORMATS}")

    logger = logging.getLogger("acajob")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    # Console handler
    if log_format == "pretty":
        console_handler: logging.Handler = RichHandler(
            console=console, rich_tracebacks=True, show_time=False, show_path=False
        )
    else:
        console_handler = logging.StreamHandler()
        if log_format == "structured":
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ActionsFormatter())

    logger.addHandler(console_handler)

    # File handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "job_name"):
            log_data["job_name"] = record.job_name
        if hasattr(record, "operation"):
            log_data["operation"] = record.operation

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ActionsFormatter(logging.Formatter):
    """
    Formatter emitting GitHub Actions workflow commands.

    Warnings and errors become ``::warning::`` / ``::error::`` annotations,
    debug records ``::debug::``; everything else is printed as-is.
    """

    PREFIXES = {
        logging.DEBUG: "::debug::",
        logging.WARNING: "::warning::",
        logging.ERROR: "::error::",
        logging.CRITICAL: "::error::",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        prefix = self.PREFIXES.get(record.levelno, "")
        if prefix:
            # Workflow commands are single-line; escape per the Actions toolkit.
            message = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        return f"{prefix}{message}"


def generate_job_name(prefix: str = "job") -> str:
    """
    Generate a job name unlikely to collide with concurrent runs.

    Format: ``<prefix>-<unix-millis>-<6 base36 chars>``. Uniqueness is
    probabilistic, not guaranteed.
    """
    timestamp = int(time.time() * 1000)
    suffix = "".join(random.choices(_BASE36, k=6))
    return f"{prefix}-{timestamp}-{suffix}"


def parse_command(command_string: Optional[str]) -> Optional[List[str]]:
    """
    Split a space-delimited command string into tokens.

    Returns None (use the image default) for empty or whitespace-only input.
    No shell quoting is interpreted.
    """
    if not command_string or not command_string.strip():
        return None
    return command_string.split()


def normalize_azure_location(location: Optional[str], default: str = "eastus") -> str:
    """Normalize an Azure location to its canonical form ('East US' -> 'eastus')."""
    if not location:
        return default
    return "".join(str(location).lower().split())


class TimedLoop:
    """
    Deadline-bounded loop that waits between iterations.

    Iterating yields the attempt number (1, 2, ...). The loop ends when
    the elapsed time exceeds ``timeout`` (``expired`` becomes True) or when
    it is cancelled (``cancelled`` becomes True). Waiting happens on a
    threading.Event, so ``cancel()`` from another thread wakes it
    immediately.

    Usage:
        loop = TimedLoop(timeout=1800, interval=10)
        for attempt in loop:
            if check():
                break
        if loop.expired:
            ...
    """

    def __init__(
        self,
        timeout: float,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        stop_event: Optional[threading.Event] = None,
    ):
        self.timeout = timeout
        self.interval = interval
        self._clock = clock
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._started: Optional[float] = None
        self.expired = False

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        """Stop the loop at its next check."""
        self._stop.set()

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return self._clock() - self._started

    def __iter__(self) -> Iterator[int]:
        self._started = self._clock()
        self.expired = False
        attempt = 0
        while not self._stop.is_set():
            if self.elapsed() > self.timeout:
                self.expired = True
                return
            attempt += 1
            yield attempt
            if self._stop.wait(self.interval):
                return
