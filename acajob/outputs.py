"""
Step outputs (job-name, execution-name).

On GitHub Actions, outputs are appended to the file named by
``$GITHUB_OUTPUT``. Elsewhere they are logged. The runner only sees the
OutputSink protocol.
"""

import logging
import uuid
from pathlib import Path
from typing import Dict, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Receives named step outputs."""

    def set_output(self, name: str, value: str) -> None:
        ...


class GitHubOutputFile:
    """
    Appends outputs to a GitHub Actions output file.

    Single-line values use ``name=value``; multi-line values use the
    heredoc form with a random delimiter.
    """

    def __init__(self, path: Path):
        self.path = path

    def set_output(self, name: str, value: str) -> None:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            line = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            line = f"{name}={value}\n"
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
        logger.debug(f"Set output {name}={value}")


class LoggingOutputs:
    """Logs outputs; used outside GitHub Actions."""

    def set_output(self, name: str, value: str) -> None:
        logger.info(f"Output {name}: {value}")


class InMemoryOutputs:
    """Collects outputs in a dict (tests, library use)."""

    def __init__(self) -> None:
        self.values: Dict[str, str] = {}

    def set_output(self, name: str, value: str) -> None:
        self.values[name] = value
