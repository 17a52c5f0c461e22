"""
Attempt - explicit failure policy for best-effort operations.

Some steps of a run are allowed to fail without failing the run:
- looking up the environment's location (falls back to a default)
- fetching logs from Log Analytics
- deleting the job, both on the happy path and during cleanup

Instead of scattering try/except blocks, these steps are wrapped with
``attempt()``, which captures the outcome as an ``Attempt`` value, and
``warn_on_failure()``, which logs a failed outcome as a warning.

Fatal steps (create, start, poll) do NOT go through this module; they
raise and the orchestrator handles them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """
    Outcome of a best-effort operation.

    Attributes:
        value: Return value of the operation (None on failure)
        error: Exception raised by the operation (None on success)
    """
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value on success, ``default`` otherwise."""
        if self.ok:
            return self.value  # type: ignore[return-value]
        return default


def attempt(op: Callable[[], T]) -> Attempt[T]:
    """
    Run ``op`` and capture its result or exception.

    Only ``Exception`` subclasses are captured; KeyboardInterrupt and
    SystemExit still propagate.
    """
    try:
        return Attempt(value=op())
    except Exception as e:
        return Attempt(error=e)


def warn_on_failure(result: Attempt[Any], message: str, logger: logging.Logger) -> Attempt[Any]:
    """
    Log a failed attempt as a warning and hand it back unchanged.

    Args:
        result: Outcome from ``attempt()``
        message: Context prefix, e.g. "Failed to delete job"
        logger: Logger to warn on

    Returns:
        The same Attempt, for chaining
    """
    if not result.ok:
        logger.warning(f"{message}: {result.error}")
    return result


def ignore_and_warn(op: Callable[[], T], message: str, logger: logging.Logger) -> Attempt[T]:
    """Shorthand for ``warn_on_failure(attempt(op), message, logger)``."""
    return warn_on_failure(attempt(op), message, logger)
