"""
Container job log retrieval from Log Analytics.

Best-effort only: console logs reach Log Analytics minutes after the job
finishes, so an empty result is normal, and nothing here can fail a run.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Iterable

from azure.monitor.query import LogsQueryStatus

from acajob.azure_clients import build_logs_client
from acajob.policy import ignore_and_warn

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(hours=1)

LOG_QUERY_TEMPLATE = """
ContainerAppConsoleLogs_CL
| where ContainerJobName_s == "{job_name}"
| order by TimeGenerated asc
| project TimeGenerated, Log_s
"""

LAG_NOTE = "Note: Logs can take several minutes to appear in Log Analytics after job execution"


def build_log_query(job_name: str) -> str:
    """KQL query for one job's console logs, oldest first."""
    escaped = job_name.replace("\\", "\\\\").replace('"', '\\"')
    return LOG_QUERY_TEMPLATE.format(job_name=escaped)


def _print_rows(tables: Iterable[Any]) -> int:
    rows = [row for table in tables for row in table.rows]
    if not rows:
        return 0

    logger.info(f"========== Container Job Logs ({len(rows)} entries) ==========")
    for row in rows:
        timestamp, message = row[0], row[1]
        logger.info(f"[{timestamp}] {message}")
    logger.info("========== End of Logs ==========")
    return len(rows)


def fetch_job_logs(
    workspace_id: str,
    job_name: str,
    logs_client_factory: Callable[[], Any] = build_logs_client,
    lookback: timedelta = LOOKBACK,
) -> int:
    """
    Query and print a job's console logs.

    Args:
        workspace_id: Log Analytics workspace ID; empty skips retrieval
        job_name: Container App Job name to filter on
        logs_client_factory: Builds a LogsQueryClient
        lookback: Query timespan ending now

    Returns:
        Number of log rows printed (0 on any failure)
    """
    if not workspace_id or not workspace_id.strip():
        logger.info("No Log Analytics Workspace ID provided, skipping log dump")
        return 0

    logger.info("Querying container job logs from Log Analytics...")
    outcome = ignore_and_warn(
        lambda: _query_and_print(logs_client_factory(), workspace_id, job_name, lookback),
        "Failed to retrieve logs from Log Analytics",
        logger,
    )
    if not outcome.ok:
        logger.info(LAG_NOTE)
    return outcome.unwrap_or(0)


def _query_and_print(client: Any, workspace_id: str, job_name: str, lookback: timedelta) -> int:
    result = client.query_workspace(workspace_id, build_log_query(job_name), timespan=lookback)

    if result.status == LogsQueryStatus.SUCCESS:
        printed = _print_rows(result.tables or [])
        if printed == 0:
            logger.info(
                "No logs found for this job. Logs may take a few minutes to appear in Log Analytics."
            )
        return printed

    if result.status == LogsQueryStatus.PARTIAL:
        logger.warning("Partial error retrieving logs:")
        errors = result.partial_error or []
        for error in errors if isinstance(errors, list) else [errors]:
            logger.warning(getattr(error, "message", str(error)))
        return _print_rows(result.partial_data or [])

    logger.warning("No logs returned from query")
    return 0
