"""
Error classes for acajob runs.

These error types separate what can fail a run from what cannot:
- InputError: Bad or missing inputs. Raised before any remote call.
- ControlPlaneError: A create/start/poll call against Azure failed.
- ExecutionFailedError: The job ran, but its execution failed.

Best-effort operations (location lookup, log retrieval, delete) never
raise these; their failures are logged as warnings instead.
"""

from typing import Optional


class AcaJobError(Exception):
    """Base exception for acajob."""
    pass


class InputError(AcaJobError):
    """
    Invalid or missing input.

    Examples:
    - Required input not supplied
    - environment-variables / secrets is not a JSON object
    - timeout is not a positive integer

    Nothing has been created when this is raised, so no cleanup runs.
    """
    pass


class ControlPlaneError(AcaJobError):
    """
    A call against the Container Apps control plane failed.

    Carries the operation and the resource it targeted. The provider's
    own exception is kept as ``__cause__``.
    """

    def __init__(self, message: str, operation: str, resource_name: str):
        super().__init__(message)
        self.operation = operation
        self.resource_name = resource_name


class JobCreationError(ControlPlaneError):
    """Creating or updating the job resource failed."""
    pass


class ExecutionStartError(ControlPlaneError):
    """Starting an execution of the job failed."""
    pass


class ExecutionTimeoutError(ControlPlaneError):
    """The execution did not reach a terminal status within the timeout."""

    def __init__(self, message: str, operation: str, resource_name: str, timeout: int):
        super().__init__(message, operation, resource_name)
        self.timeout = timeout


class ExecutionCancelledError(ControlPlaneError):
    """Polling was cancelled before the execution reached a terminal status."""
    pass


class ExecutionFailedError(AcaJobError):
    """The execution finished with status Failed or a non-zero exit code."""

    def __init__(self, message: str, status: Optional[str], exit_code: int):
        super().__init__(message)
        self.status = status
        self.exit_code = exit_code
