"""
Lifecycle operations against the Container Apps control plane.

Four operations, issued strictly in sequence by the runner:
1. create_job: create or update the job resource (waits for the LRO)
2. start_execution: start one execution (waits until it is accepted)
3. poll_execution: wait for the execution to reach Succeeded/Failed
4. delete_job: delete the job resource (never raises)

Error classification:
- create/start failures -> JobCreationError / ExecutionStartError (fatal, no retry)
- status read failures while polling -> warning, polling continues
- poll deadline exceeded -> ExecutionTimeoutError (fatal)
- location lookup and delete failures -> warning only

``client`` is a ``ContainerAppsAPIClient`` (see acajob.azure_clients)
or anything with the same ``jobs`` / ``managed_environments`` /
``job_execution`` surface.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from acajob.config import JobSpec
from acajob.errors import (
    ExecutionCancelledError,
    ExecutionStartError,
    ExecutionTimeoutError,
    JobCreationError,
)
from acajob.job_config import build_job_config
from acajob.policy import ignore_and_warn
from acajob.utils import TimedLoop, normalize_azure_location

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "eastus"
POLL_INTERVAL_SECONDS = 10
START_POLLING_INTERVAL_SECONDS = 5
TERMINAL_STATUSES = frozenset({"Succeeded", "Failed"})


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal state of one job execution."""
    name: str
    status: Optional[str]
    exit_code: int = 0

    @property
    def failed(self) -> bool:
        return self.status == "Failed" or self.exit_code != 0


def _status_text(status: Any) -> Optional[str]:
    if status is None:
        return None
    if isinstance(status, Enum):
        return str(status.value)
    return str(status)


def _exit_code(execution: Any) -> int:
    """Exit code of the first container, 0 when Azure does not report one."""
    template = getattr(execution, "template", None)
    containers = getattr(template, "containers", None) or []
    if not containers:
        return 0
    code = getattr(containers[0], "exit_code", None)
    return int(code) if code else 0


def resolve_location(client: Any, resource_group: str, environment_name: str) -> str:
    """
    Look up the managed environment's region.

    Falls back to DEFAULT_LOCATION when the lookup fails; Azure rejects
    the create call later if the guess is wrong.
    """
    result = ignore_and_warn(
        lambda: client.managed_environments.get(resource_group, environment_name),
        "Could not get environment location, using default",
        logger,
    )
    environment = result.unwrap_or(None)
    if environment is None:
        return DEFAULT_LOCATION

    raw_location = getattr(environment, "location", None)
    location = normalize_azure_location(raw_location, default=DEFAULT_LOCATION)
    logger.info(f"Using location from environment: {raw_location} -> {location}")
    return location


def create_job(
    client: Any,
    subscription_id: str,
    resource_group: str,
    environment_name: str,
    job_name: str,
    spec: JobSpec,
) -> Any:
    """
    Create or update the job resource and wait for the operation to finish.

    Returns:
        The job resource returned by Azure

    Raises:
        JobCreationError: If Azure rejects the job
    """
    logger.info(f"Creating job: {job_name}")

    location = resolve_location(client, resource_group, environment_name)
    document = build_job_config(subscription_id, resource_group, environment_name, location, spec)

    try:
        poller = client.jobs.begin_create_or_update(resource_group, job_name, document)
        job = poller.result()
    except Exception as e:
        logger.error(f"Azure rejected job create with error: {e}")
        raise JobCreationError(
            f"Failed to create job: {e}", operation="create", resource_name=job_name
        ) from e

    logger.info(f"Job created successfully: {job_name}")
    return job


def start_execution(client: Any, resource_group: str, job_name: str) -> str:
    """
    Start one execution and wait until Azure has accepted it.

    Does not wait for the execution to finish; see poll_execution.

    Returns:
        The execution name

    Raises:
        ExecutionStartError: If the start operation fails
    """
    logger.info(f"Starting job execution: {job_name}")

    try:
        poller = client.jobs.begin_start(
            resource_group, job_name, polling_interval=START_POLLING_INTERVAL_SECONDS
        )
        execution = poller.result()
    except Exception as e:
        raise ExecutionStartError(
            f"Failed to start job execution: {e}", operation="start", resource_name=job_name
        ) from e

    execution_name = getattr(execution, "name", None)
    if not execution_name:
        raise ExecutionStartError(
            "Failed to start job execution: Azure returned no execution name",
            operation="start",
            resource_name=job_name,
        )

    logger.info(f"Job execution started: {execution_name}")
    return execution_name


def poll_execution(
    client: Any,
    resource_group: str,
    job_name: str,
    execution_name: str,
    timeout: int,
    interval: float = POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    stop_event: Optional[threading.Event] = None,
) -> ExecutionResult:
    """
    Poll an execution until it succeeds or fails.

    A failed status read is logged and counts as "not finished yet".

    Args:
        client: Container Apps client
        resource_group: Resource group name
        job_name: Job name
        execution_name: Execution to watch
        timeout: Seconds before giving up
        interval: Seconds between status reads
        clock: Monotonic clock, injectable for tests
        stop_event: Setting this event cancels the wait

    Returns:
        ExecutionResult with the terminal status and exit code

    Raises:
        ExecutionTimeoutError: If no terminal status within ``timeout``
        ExecutionCancelledError: If ``stop_event`` was set
    """
    logger.info(f"Polling for job completion (timeout: {timeout}s)")

    loop = TimedLoop(timeout=timeout, interval=interval, clock=clock, stop_event=stop_event)
    for _ in loop:
        try:
            execution = client.job_execution(resource_group, job_name, execution_name)
        except Exception as e:
            logger.warning(f"Error polling job status: {e}")
            continue

        status = _status_text(getattr(execution, "status", None))
        logger.info(f"Job status: {status}")
        if status in TERMINAL_STATUSES:
            return ExecutionResult(
                name=execution_name, status=status, exit_code=_exit_code(execution)
            )

    if loop.expired:
        raise ExecutionTimeoutError(
            f"Job execution timed out after {timeout} seconds",
            operation="poll",
            resource_name=job_name,
            timeout=timeout,
        )
    raise ExecutionCancelledError(
        f"Polling of execution {execution_name} was cancelled",
        operation="poll",
        resource_name=job_name,
    )


def delete_job(client: Any, resource_group: str, job_name: str) -> bool:
    """
    Delete the job resource and wait for the operation to finish.

    Failures are logged as warnings and never raised, so a cleanup
    problem cannot hide the job's real outcome.

    Returns:
        True if the delete completed, False otherwise
    """
    logger.info(f"Deleting job: {job_name}")

    result = ignore_and_warn(
        lambda: client.jobs.begin_delete(resource_group, job_name).result(),
        "Failed to delete job",
        logger,
    )
    if result.ok:
        logger.info(f"Job deleted successfully: {job_name}")
    return result.ok
