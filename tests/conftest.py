import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from acajob.config import JobSpec, RunConfig
from acajob.outputs import InMemoryOutputs


@pytest.fixture(autouse=True)
def reset_acajob_logger():
    """CLI tests install handlers on the acajob logger; keep tests isolated."""
    logger = logging.getLogger("acajob")
    yield
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def job_spec():
    return JobSpec(image="mcr.microsoft.com/azuredocs/containerapps-helloworld:latest")


@pytest.fixture
def run_config(job_spec):
    return RunConfig(
        subscription_id="00000000-0000-0000-0000-000000000000",
        resource_group="test-rg",
        environment_name="test-env",
        spec=job_spec,
        job_name="test-job",
        poll_interval=0,
    )


def make_execution(status="Succeeded", exit_code=None):
    """Execution object shaped like the SDK's JobExecution."""
    containers = [SimpleNamespace(name="main", exit_code=exit_code)]
    return SimpleNamespace(
        name="test-job-exec1",
        status=status,
        template=SimpleNamespace(containers=containers),
    )


@pytest.fixture
def mock_client():
    """Container Apps client whose calls all succeed."""
    client = MagicMock()
    client.managed_environments.get.return_value = SimpleNamespace(location="East US")
    client.jobs.begin_create_or_update.return_value.result.return_value = SimpleNamespace(name="test-job")
    client.jobs.begin_start.return_value.result.return_value = SimpleNamespace(name="test-job-exec1")
    client.job_execution.return_value = make_execution()
    client.jobs.begin_delete.return_value.result.return_value = None
    return client


@pytest.fixture
def outputs():
    return InMemoryOutputs()


@pytest.fixture
def execution_factory():
    return make_execution
