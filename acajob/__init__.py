"""
acajob - Azure Container App Job runner for CI/CD pipelines.

Creates a single Container App Job, runs one execution, waits for it,
dumps its logs, and deletes it again. The job's exit status becomes the
pipeline step's pass/fail signal.
"""

__version__ = "0.1.0"
__author__ = "Local Pipeline Team"


__all__ = ["JobSpec", "RunConfig", "load_run_config", "run_job"]

from .config import JobSpec, RunConfig, load_run_config
from .runner import run_job
