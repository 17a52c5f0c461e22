"""JobRunner - run-mode state machine for one Container App Job.

This module provides the main entry point for a run:
1. Selects the run mode from the RunConfig
2. Resolves the job name (explicit, or generated)
3. Drives the lifecycle operations for that mode
4. Deletes the job if anything fails (unless it is a scheduled job)
5. Publishes job-name / execution-name outputs

Run modes, in precedence order:
- delete-only: delete job-name and stop
- dry-run: print the payload, no Azure calls at all
- scheduled: create the job with a cron trigger, leave it alive
- manual: create the job, leave it alive for manual starts
- standard: create, start, poll, dump logs, delete

Usage:
    from acajob.config import load_run_config
    from acajob.runner import run_job

    outcome = run_job(load_run_config(inputs))
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from acajob.azure_clients import build_container_apps_client
from acajob.config import RunConfig
from acajob.errors import ExecutionFailedError
from acajob.job_config import build_job_config
from acajob.lifecycle import (
    DEFAULT_LOCATION,
    ExecutionResult,
    create_job,
    delete_job,
    poll_execution,
    start_execution,
)
from acajob.logs import fetch_job_logs
from acajob.outputs import LoggingOutputs, OutputSink
from acajob.utils import generate_job_name

logger = logging.getLogger(__name__)


class RunMode(str, Enum):
    STANDARD = "standard"
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    DELETE_ONLY = "delete-only"
    DRY_RUN = "dry-run"


@dataclass
class RunOutcome:
    """
    Result of a successful run.

    Attributes:
        mode: Run mode that was executed
        job_name: Resolved job name
        execution_name: Execution started (standard mode only)
        execution: Terminal execution state (standard mode only)
        document: Job payload that was (or would have been) submitted
        deleted: Whether the job was deleted by this run
    """
    mode: RunMode
    job_name: str
    execution_name: Optional[str] = None
    execution: Optional[ExecutionResult] = None
    document: Optional[Dict[str, Any]] = None
    deleted: bool = False


def select_mode(config: RunConfig) -> RunMode:
    """Pick the run mode; earlier checks win."""
    if config.only_delete_job:
        return RunMode.DELETE_ONLY
    if config.dry_run:
        return RunMode.DRY_RUN
    if config.spec.is_scheduled:
        return RunMode.SCHEDULED
    if config.manual_execution:
        return RunMode.MANUAL
    return RunMode.STANDARD


def resolve_job_name(config: RunConfig) -> str:
    """Explicit job name verbatim, otherwise a generated one."""
    return config.job_name or generate_job_name(config.job_name_prefix)


class JobRunner:
    """
    Runs one Container App Job according to a RunConfig.

    Collaborators are injected so that nothing touches Azure unless the
    mode needs it: the client is built lazily on first use.
    """

    def __init__(
        self,
        config: RunConfig,
        client_factory: Callable[[str], Any] = build_container_apps_client,
        logs_fetcher: Callable[[str, str], int] = fetch_job_logs,
        outputs: Optional[OutputSink] = None,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.client_factory = client_factory
        self.logs_fetcher = logs_fetcher
        self.outputs = outputs if outputs is not None else LoggingOutputs()
        self.stop_event = stop_event
        self.clock = clock
        self.mode = select_mode(config)
        self.job_name = resolve_job_name(config)
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            logger.info("Authenticating with Azure...")
            self._client = self.client_factory(self.config.subscription_id)
        return self._client

    def run(self) -> RunOutcome:
        """
        Execute the selected mode.

        Returns:
            RunOutcome describing what happened

        Raises:
            InputError, ControlPlaneError: Fatal failures (job cleaned up first)
            ExecutionFailedError: The execution failed or exited non-zero
            KeyboardInterrupt: Re-raised after the job is cleaned up
        """
        self._log_configuration()

        if self.mode == RunMode.DELETE_ONLY:
            return self._run_delete_only()
        if self.mode == RunMode.DRY_RUN:
            return self._run_dry_run()

        try:
            return self._run_with_create()
        except ExecutionFailedError:
            # Job already deleted on the normal path
            raise
        except Exception as e:
            logger.exception(f"Error: {e}")
            self._cleanup_after_failure()
            raise
        except KeyboardInterrupt:
            logger.warning(f"Interrupted, cleaning up job: {self.job_name}")
            self._cleanup_after_failure()
            raise

    # =========================================================================
    # MODES
    # =========================================================================

    def _run_delete_only(self) -> RunOutcome:
        if self.config.dry_run:
            logger.info(f"Dry run mode enabled, would delete job: {self.job_name}")
            return RunOutcome(mode=self.mode, job_name=self.job_name)

        deleted = delete_job(self.client, self.config.resource_group, self.job_name)
        return RunOutcome(mode=self.mode, job_name=self.job_name, deleted=deleted)

    def _run_dry_run(self) -> RunOutcome:
        config = self.config
        document = build_job_config(
            config.subscription_id,
            config.resource_group,
            config.environment_name,
            DEFAULT_LOCATION,
            config.spec,
        )
        logger.info("Dry-run preview of job payload:")
        logger.info(json.dumps(document, indent=2))
        self.outputs.set_output("job-name", self.job_name)
        logger.info("Dry run mode enabled, skipping Azure API calls.")
        return RunOutcome(mode=self.mode, job_name=self.job_name, document=document)

    def _run_with_create(self) -> RunOutcome:
        config = self.config

        create_job(
            self.client,
            config.subscription_id,
            config.resource_group,
            config.environment_name,
            self.job_name,
            config.spec,
        )
        self.outputs.set_output("job-name", self.job_name)

        if self.mode == RunMode.SCHEDULED:
            logger.info("Cron schedule provided, skipping execution start.")
            return RunOutcome(mode=self.mode, job_name=self.job_name)
        if self.mode == RunMode.MANUAL:
            logger.info("Manual execution requested, job created and left for manual starts.")
            return RunOutcome(mode=self.mode, job_name=self.job_name)

        return self._run_standard()

    def _run_standard(self) -> RunOutcome:
        config = self.config

        execution_name = start_execution(self.client, config.resource_group, self.job_name)
        self.outputs.set_output("execution-name", execution_name)

        execution = poll_execution(
            self.client,
            config.resource_group,
            self.job_name,
            execution_name,
            config.timeout,
            interval=config.poll_interval,
            clock=self.clock,
            stop_event=self.stop_event,
        )

        logger.info("=== Job Completed ===")
        logger.info(f"Status: {execution.status}")
        logger.info(f"Exit Code: {execution.exit_code}")

        self.logs_fetcher(config.log_analytics_workspace_id or "", self.job_name)

        deleted = delete_job(self.client, config.resource_group, self.job_name)

        if execution.failed:
            raise ExecutionFailedError(
                f"Job execution failed with exit code: {execution.exit_code}",
                status=execution.status,
                exit_code=execution.exit_code,
            )

        return RunOutcome(
            mode=self.mode,
            job_name=self.job_name,
            execution_name=execution_name,
            execution=execution,
            deleted=deleted,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _cleanup_after_failure(self) -> None:
        """Best-effort delete after a failure; scheduled jobs are left alone."""
        if self.config.spec.is_scheduled:
            logger.info(f"Cron schedule provided, leaving job {self.job_name} in place.")
            return
        if self._client is None:
            return
        if not delete_job(self._client, self.config.resource_group, self.job_name):
            logger.warning(f"Failed to cleanup job: {self.job_name}")

    def _log_configuration(self) -> None:
        config = self.config
        spec = config.spec
        logger.info("=== Azure Container App Job Configuration ===")
        logger.info(f"Subscription: {config.subscription_id}")
        logger.info(f"Resource Group: {config.resource_group}")
        logger.info(f"Environment: {config.environment_name}")
        logger.info(f"Job Name: {self.job_name}")
        logger.info(f"Mode: {self.mode.value}")
        if self.mode != RunMode.DELETE_ONLY:
            logger.info(f"Image: {spec.image}")
            logger.info(f"Command: {' '.join(spec.command) if spec.command else 'default'}")
            logger.info(f"CPU: {spec.cpu}")
            logger.info(f"Memory: {spec.memory}")
            logger.info(f"Timeout: {config.timeout}s")
        logger.info(f"Dry Run: {config.dry_run}")


def run_job(
    config: RunConfig,
    client_factory: Callable[[str], Any] = build_container_apps_client,
    logs_fetcher: Callable[[str, str], int] = fetch_job_logs,
    outputs: Optional[OutputSink] = None,
    stop_event: Optional[threading.Event] = None,
) -> RunOutcome:
    """
    Run a Container App Job.

    Args:
        config: Validated run configuration
        client_factory: Builds a Container Apps client from a subscription ID
        logs_fetcher: Best-effort log dump, ``(workspace_id, job_name) -> rows``
        outputs: Where job-name / execution-name go (logged if None)
        stop_event: Setting this cancels polling

    Returns:
        RunOutcome

    Raises:
        AcaJobError: If the run fails
    """
    runner = JobRunner(
        config,
        client_factory=client_factory,
        logs_fetcher=logs_fetcher,
        outputs=outputs,
        stop_event=stop_event,
    )
    return runner.run()
