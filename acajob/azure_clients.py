"""
Azure client factories.

The only module that constructs Azure SDK clients. The runner takes
these factories as parameters so tests (and dry runs) never build a
credential or touch the network.
"""

from typing import Optional

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential
from azure.mgmt.appcontainers import ContainerAppsAPIClient
from azure.monitor.query import LogsQueryClient


def build_container_apps_client(
    subscription_id: str,
    credential: Optional[TokenCredential] = None,
) -> ContainerAppsAPIClient:
    """Create a Container Apps management client for a subscription."""
    return ContainerAppsAPIClient(credential or DefaultAzureCredential(), subscription_id)


def build_logs_client(credential: Optional[TokenCredential] = None) -> LogsQueryClient:
    """Create a Log Analytics query client."""
    return LogsQueryClient(credential or DefaultAzureCredential())
