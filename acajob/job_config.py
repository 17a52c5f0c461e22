"""
Container App Job payload builder.

Turns a JobSpec into the ARM body of a ``Microsoft.App/jobs`` resource,
as accepted by ``ContainerAppsAPIClient.jobs.begin_create_or_update``.

Pure: no network, no clock, no randomness. The same inputs always give
the same document, which is also what ``--dry-run`` prints.
"""

from typing import Any, Dict, List

from acajob.config import JobSpec

CONTAINER_NAME = "main"
WORKLOAD_PROFILE_NAME = "Consumption"
REGISTRY_PASSWORD_SECRET = "registry-password"

# Provider-side limits. The user's timeout input is enforced by polling,
# not by replicaTimeout.
REPLICA_TIMEOUT = 1800
REPLICA_RETRY_LIMIT = 0
PARALLELISM = 1
REPLICA_COMPLETION_COUNT = 1


def environment_id(subscription_id: str, resource_group: str, environment_name: str) -> str:
    """ARM resource ID of a managed environment."""
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.App/managedEnvironments/{environment_name}"
    )


def secret_name(key: str) -> str:
    """Azure secret names are lowercase with hyphens: DB_PASSWORD -> db-password."""
    return key.lower().replace("_", "-")


def parse_cpu(cpu: str) -> float:
    """Parse the CPU input. Malformed values become NaN and are left to Azure to reject."""
    try:
        return float(cpu)
    except (TypeError, ValueError):
        return float("nan")


def _trigger(spec: JobSpec) -> Dict[str, Any]:
    if spec.cron_schedule:
        return {
            "triggerType": "Schedule",
            "scheduleTriggerConfig": {
                "cronExpression": spec.cron_schedule,
                "parallelism": PARALLELISM,
                "replicaCompletionCount": REPLICA_COMPLETION_COUNT,
            },
        }
    return {
        "triggerType": "Manual",
        "manualTriggerConfig": {
            "parallelism": PARALLELISM,
            "replicaCompletionCount": REPLICA_COMPLETION_COUNT,
        },
    }


def build_job_config(
    subscription_id: str,
    resource_group: str,
    environment_name: str,
    location: str,
    spec: JobSpec,
) -> Dict[str, Any]:
    """
    Build the Container App Job resource document.

    Args:
        subscription_id: Azure subscription ID
        resource_group: Resource group of the managed environment
        environment_name: Managed environment name
        location: Normalized Azure region (e.g. "eastus")
        spec: Validated job spec

    Returns:
        ARM resource body (REST/camelCase keys)
    """
    env: List[Dict[str, Any]] = [
        {"name": name, "value": value}
        for name, value in spec.environment_variables.items()
    ]

    secrets: List[Dict[str, Any]] = []
    for key, url in spec.secrets.items():
        if not url:
            continue
        name = secret_name(key)
        secret: Dict[str, Any] = {"name": name, "keyVaultUrl": url}
        if spec.user_managed_identity:
            secret["identity"] = spec.user_managed_identity
        secrets.append(secret)
        env.append({"name": key, "secretRef": name})

    registries: List[Dict[str, Any]] = []
    if spec.registry_server and spec.registry_username and spec.registry_password:
        registries.append({
            "server": spec.registry_server,
            "username": spec.registry_username,
            "passwordSecretRef": REGISTRY_PASSWORD_SECRET,
        })
        secrets.append({"name": REGISTRY_PASSWORD_SECRET, "value": spec.registry_password})

    container: Dict[str, Any] = {
        "name": CONTAINER_NAME,
        "image": spec.image,
        "resources": {
            "cpu": parse_cpu(spec.cpu),
            "memory": spec.memory,
        },
        "env": env,
    }
    if spec.command:
        container["command"] = list(spec.command)

    configuration: Dict[str, Any] = {
        **_trigger(spec),
        "replicaTimeout": REPLICA_TIMEOUT,
        "replicaRetryLimit": REPLICA_RETRY_LIMIT,
        "secrets": secrets,
        "registries": registries,
    }

    document: Dict[str, Any] = {
        "location": location,
        "properties": {
            "environmentId": environment_id(subscription_id, resource_group, environment_name),
            "workloadProfileName": WORKLOAD_PROFILE_NAME,
            "configuration": configuration,
            "template": {
                "containers": [container],
            },
        },
    }

    if spec.user_managed_identity:
        document["identity"] = {
            "type": "UserAssigned",
            "userAssignedIdentities": {spec.user_managed_identity: {}},
        }

    return document
