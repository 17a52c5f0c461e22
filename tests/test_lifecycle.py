"""Tests for lifecycle operations against a mocked Container Apps client."""

import logging
import threading
from enum import Enum
from types import SimpleNamespace

import pytest

from acajob.config import JobSpec
from acajob.errors import (
    ExecutionCancelledError,
    ExecutionStartError,
    ExecutionTimeoutError,
    JobCreationError,
)
from acajob.lifecycle import (
    ExecutionResult,
    create_job,
    delete_job,
    poll_execution,
    resolve_location,
    start_execution,
)

SUB = "sub-123"


class RunningState(str, Enum):
    """Stand-in for the SDK's JobExecutionRunningState."""
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class SteppingClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


class TestResolveLocation:
    """Tests for resolve_location."""

    def test_normalizes_environment_location(self, mock_client):
        assert resolve_location(mock_client, "rg", "env") == "eastus"
        mock_client.managed_environments.get.assert_called_once_with("rg", "env")

    def test_falls_back_on_error(self, mock_client, caplog):
        mock_client.managed_environments.get.side_effect = RuntimeError("forbidden")

        assert resolve_location(mock_client, "rg", "env") == "eastus"
        assert "Could not get environment location, using default: forbidden" in caplog.text

    def test_no_environment_uses_default(self, mock_client, caplog):
        caplog.set_level(logging.INFO)
        mock_client.managed_environments.get.return_value = None

        assert resolve_location(mock_client, "rg", "env") == "eastus"
        assert "Using location from environment" not in caplog.text

    def test_missing_location_uses_default(self, mock_client):
        mock_client.managed_environments.get.return_value = SimpleNamespace(location=None)
        assert resolve_location(mock_client, "rg", "env") == "eastus"


class TestCreateJob:
    """Tests for create_job."""

    def test_submits_document_and_waits(self, mock_client):
        mock_client.managed_environments.get.return_value = SimpleNamespace(location="West Europe")
        spec = JobSpec(image="busybox", command=("echo", "hi"))

        create_job(mock_client, SUB, "rg", "env", "job-1", spec)

        mock_client.jobs.begin_create_or_update.assert_called_once()
        rg, job_name, document = mock_client.jobs.begin_create_or_update.call_args.args
        assert (rg, job_name) == ("rg", "job-1")
        assert document["location"] == "westeurope"
        assert document["properties"]["template"]["containers"][0]["command"] == ["echo", "hi"]
        assert SUB in document["properties"]["environmentId"]
        mock_client.jobs.begin_create_or_update.return_value.result.assert_called_once()

    def test_location_fallback_still_creates(self, mock_client):
        mock_client.managed_environments.get.side_effect = RuntimeError("nope")

        create_job(mock_client, SUB, "rg", "env", "job-1", JobSpec(image="busybox"))

        document = mock_client.jobs.begin_create_or_update.call_args.args[2]
        assert document["location"] == "eastus"

    def test_rejected_create(self, mock_client):
        provider_error = RuntimeError("ContainerAppInvalidMemory")
        mock_client.jobs.begin_create_or_update.return_value.result.side_effect = provider_error

        with pytest.raises(JobCreationError, match="Failed to create job: ContainerAppInvalidMemory") as exc_info:
            create_job(mock_client, SUB, "rg", "env", "job-1", JobSpec(image="busybox", memory="9Zi"))

        assert exc_info.value.operation == "create"
        assert exc_info.value.resource_name == "job-1"
        assert exc_info.value.__cause__ is provider_error

    def test_create_not_retried(self, mock_client):
        mock_client.jobs.begin_create_or_update.side_effect = RuntimeError("conflict")

        with pytest.raises(JobCreationError):
            create_job(mock_client, SUB, "rg", "env", "job-1", JobSpec(image="busybox"))

        assert mock_client.jobs.begin_create_or_update.call_count == 1


class TestStartExecution:
    """Tests for start_execution."""

    def test_returns_execution_name(self, mock_client):
        assert start_execution(mock_client, "rg", "job-1") == "test-job-exec1"
        mock_client.jobs.begin_start.assert_called_once_with("rg", "job-1", polling_interval=5)
        mock_client.jobs.begin_start.return_value.result.assert_called_once()

    def test_start_failure(self, mock_client):
        mock_client.jobs.begin_start.return_value.result.side_effect = RuntimeError("JobNotFound")

        with pytest.raises(ExecutionStartError, match="Failed to start job execution: JobNotFound") as exc_info:
            start_execution(mock_client, "rg", "job-1")

        assert exc_info.value.operation == "start"

    def test_missing_execution_name(self, mock_client):
        mock_client.jobs.begin_start.return_value.result.return_value = SimpleNamespace(name=None)

        with pytest.raises(ExecutionStartError, match="no execution name"):
            start_execution(mock_client, "rg", "job-1")


class TestPollExecution:
    """Tests for poll_execution."""

    def test_succeeded(self, mock_client, execution_factory):
        mock_client.job_execution.side_effect = [
            execution_factory("Running"),
            execution_factory("Running"),
            execution_factory("Succeeded"),
        ]

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result == ExecutionResult(name="exec-1", status="Succeeded", exit_code=0)
        assert result.failed is False
        assert mock_client.job_execution.call_count == 3
        mock_client.job_execution.assert_called_with("rg", "job-1", "exec-1")

    def test_failed_is_terminal(self, mock_client, execution_factory):
        mock_client.job_execution.return_value = execution_factory("Failed", exit_code=1)

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result.status == "Failed"
        assert result.exit_code == 1
        assert result.failed is True

    def test_enum_status(self, mock_client, execution_factory):
        mock_client.job_execution.return_value = execution_factory(RunningState.SUCCEEDED)

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result.status == "Succeeded"

    def test_nonzero_exit_code_with_success_status(self, mock_client, execution_factory):
        mock_client.job_execution.return_value = execution_factory("Succeeded", exit_code=3)

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result.exit_code == 3
        assert result.failed is True

    def test_missing_template_means_exit_code_zero(self, mock_client):
        mock_client.job_execution.return_value = SimpleNamespace(status="Succeeded")

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result.exit_code == 0

    def test_transient_errors_do_not_abort(self, mock_client, execution_factory, caplog):
        mock_client.job_execution.side_effect = [
            RuntimeError("429 Too Many Requests"),
            ConnectionError("reset"),
            execution_factory("Succeeded"),
        ]

        result = poll_execution(mock_client, "rg", "job-1", "exec-1", timeout=60, interval=0)

        assert result.status == "Succeeded"
        assert "Error polling job status: 429 Too Many Requests" in caplog.text
        assert "Error polling job status: reset" in caplog.text

    def test_timeout(self, mock_client, execution_factory):
        mock_client.job_execution.return_value = execution_factory("Running")

        with pytest.raises(ExecutionTimeoutError, match="timed out after 30 seconds") as exc_info:
            poll_execution(
                mock_client, "rg", "job-1", "exec-1",
                timeout=30, interval=0, clock=SteppingClock(step=10),
            )

        assert exc_info.value.timeout == 30
        assert exc_info.value.operation == "poll"
        assert mock_client.job_execution.call_count >= 1

    def test_timeout_when_every_read_fails(self, mock_client):
        mock_client.job_execution.side_effect = RuntimeError("unreachable")

        with pytest.raises(ExecutionTimeoutError):
            poll_execution(
                mock_client, "rg", "job-1", "exec-1",
                timeout=30, interval=0, clock=SteppingClock(step=10),
            )

    def test_cancelled(self, mock_client, execution_factory):
        stop_event = threading.Event()

        def read_then_cancel(*args):
            stop_event.set()
            return execution_factory("Running")

        mock_client.job_execution.side_effect = read_then_cancel

        with pytest.raises(ExecutionCancelledError):
            poll_execution(
                mock_client, "rg", "job-1", "exec-1",
                timeout=60, interval=0, stop_event=stop_event,
            )

        assert mock_client.job_execution.call_count == 1


class TestDeleteJob:
    """Tests for delete_job."""

    def test_deletes_and_waits(self, mock_client):
        assert delete_job(mock_client, "rg", "job-1") is True
        mock_client.jobs.begin_delete.assert_called_once_with("rg", "job-1")
        mock_client.jobs.begin_delete.return_value.result.assert_called_once()

    def test_failure_is_warning(self, mock_client, caplog):
        mock_client.jobs.begin_delete.side_effect = RuntimeError("locked")

        with caplog.at_level(logging.WARNING):
            assert delete_job(mock_client, "rg", "job-1") is False

        assert "Failed to delete job: locked" in caplog.text

    def test_lro_failure_is_warning(self, mock_client):
        mock_client.jobs.begin_delete.return_value.result.side_effect = RuntimeError("timeout")
        assert delete_job(mock_client, "rg", "job-1") is False
