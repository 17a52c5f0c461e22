"""
Configuration management for acajob runs.

Builds the immutable RunConfig for one invocation from a flat key/value
input mapping. Inputs use the action's names (``subscription-id``,
``environment-variables``, ...); ``_`` is accepted in place of ``-``.

Sources, all turned into plain mappings before validation:
- GitHub Actions style ``INPUT_<NAME>`` environment variables
- an optional YAML inputs file
- explicit overrides (CLI ``--input KEY=VALUE``)

Only the CLI touches ``os.environ``; everything below it receives the
RunConfig built here.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from acajob.errors import InputError
from acajob.utils import parse_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputDef:
    """Declaration of one supported input."""
    name: str
    description: str
    required: bool = False
    default: Optional[str] = None


INPUTS: Tuple[InputDef, ...] = (
    InputDef("subscription-id", "Azure subscription ID", required=True),
    InputDef("resource-group", "Resource group holding the environment", required=True),
    InputDef("environment-name", "Container Apps managed environment name", required=True),
    InputDef("job-name", "Job name (generated when omitted)"),
    InputDef("job-name-prefix", "Prefix for generated job names", default="gh-job"),
    InputDef("image", "Container image (required unless only-delete-job)"),
    InputDef("command", "Space-delimited command overriding the image entrypoint"),
    InputDef("user-managed-identity", "Resource ID of a user-assigned managed identity"),
    InputDef("environment-variables", "JSON object of plain environment variables", default="{}"),
    InputDef("secrets", "JSON object of env var name -> Key Vault secret URI", default="{}"),
    InputDef("cron-schedule", "Cron expression; creates a scheduled job and skips execution"),
    InputDef("cpu", "CPU cores", default="0.5"),
    InputDef("memory", "Memory size", default="1Gi"),
    InputDef("timeout", "Execution timeout in seconds", default="1800"),
    InputDef("registry-server", "Private registry server"),
    InputDef("registry-username", "Private registry username"),
    InputDef("registry-password", "Private registry password"),
    InputDef("manual-execution", "Create the job only, leave it for manual starts", default="false"),
    InputDef("only-delete-job", "Delete job-name and exit", default="false"),
    InputDef("dry-run", "Print the job payload without calling Azure", default="false"),
    InputDef("log-analytics-workspace-id", "Workspace to read container logs from"),
)

INPUT_NAMES = tuple(d.name for d in INPUTS)
_DEFAULTS = {d.name: d.default for d in INPUTS}


@dataclass(frozen=True)
class JobSpec:
    """
    What the user asked to run.

    Attributes:
        image: Container image reference
        command: Command tokens, or None for the image default
        cpu: CPU core count as given (parsed when the payload is built)
        memory: Memory size string, passed to Azure unvalidated
        user_managed_identity: User-assigned identity resource ID
        environment_variables: Plain environment variables
        secrets: Env var name -> Key Vault secret URI
        registry_server: Private registry server
        registry_username: Private registry username
        registry_password: Private registry password
        cron_schedule: Cron expression; selects the Schedule trigger
    """
    image: str = ""
    command: Optional[Tuple[str, ...]] = None
    cpu: str = "0.5"
    memory: str = "1Gi"
    user_managed_identity: Optional[str] = None
    environment_variables: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    registry_server: Optional[str] = None
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    cron_schedule: Optional[str] = None

    @property
    def is_scheduled(self) -> bool:
        return bool(self.cron_schedule)


@dataclass(frozen=True)
class RunConfig:
    """Complete configuration for one invocation."""
    subscription_id: str
    resource_group: str
    environment_name: str
    spec: JobSpec
    job_name: Optional[str] = None
    job_name_prefix: str = "gh-job"
    timeout: int = 1800
    manual_execution: bool = False
    only_delete_job: bool = False
    dry_run: bool = False
    log_analytics_workspace_id: Optional[str] = None
    poll_interval: float = 10

    def __repr__(self) -> str:
        return (
            f"RunConfig(resource_group={self.resource_group}, "
            f"environment_name={self.environment_name}, job_name={self.job_name})"
        )


def canonical_input_name(key: str) -> str:
    """Map ``registry_server`` / ``REGISTRY_SERVER`` to ``registry-server``."""
    return key.strip().lower().replace("_", "-")


def inputs_from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    """
    Collect inputs from GitHub Actions ``INPUT_<NAME>`` variables.

    Actions exposes ``with:`` values as ``INPUT_`` + the upper-cased input
    name, keeping its hyphens (``INPUT_SUBSCRIPTION-ID``). The underscore
    form (``INPUT_SUBSCRIPTION_ID``) is accepted too.
    """
    inputs: Dict[str, str] = {}
    for name in INPUT_NAMES:
        for env_name in (f"INPUT_{name.upper()}", f"INPUT_{name.replace('-', '_').upper()}"):
            value = environ.get(env_name)
            if value:
                inputs[name] = value
                break
    return inputs


def load_inputs_file(path: Path) -> Dict[str, Any]:
    """
    Load inputs from a YAML file.

    Args:
        path: YAML file with a top-level mapping of input name -> value

    Returns:
        Mapping keyed by canonical input names

    Raises:
        InputError: If the file is missing, invalid YAML, or not a mapping
    """
    if not path.exists():
        raise InputError(f"Inputs file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InputError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InputError(f"Inputs file {path} must contain a mapping, got {type(data).__name__}")

    inputs = {}
    for key, value in data.items():
        name = canonical_input_name(str(key))
        if name not in INPUT_NAMES:
            raise InputError(f"Unknown input '{key}' in {path}")
        inputs[name] = value
    return inputs


def parse_bool(value: Any) -> bool:
    """Case-insensitive "true" is True; anything else is False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


def parse_json_mapping(name: str, raw: Any) -> Dict[str, str]:
    """
    Parse a JSON object input into a string -> string mapping.

    Empty or missing input is an empty mapping. Non-string values are
    converted to strings (``1`` -> ``"1"``, ``null`` -> ``""``).

    Raises:
        InputError: If the text is not valid JSON or not a JSON object
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        parsed: Any = raw
    else:
        text = str(raw)
        if not text.strip():
            return {}
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise InputError(f"Failed to parse {name}: {e}") from e

    if not isinstance(parsed, Mapping):
        raise InputError(f"Failed to parse {name}: expected a JSON object, got {type(parsed).__name__}")

    return {str(k): _stringify(v) for k, v in parsed.items()}


def parse_timeout(raw: Any) -> int:
    """Parse the timeout input as a positive number of seconds."""
    try:
        timeout = int(str(raw).strip())
    except ValueError as e:
        raise InputError(f"Input 'timeout' must be an integer number of seconds, got '{raw}'") from e
    if timeout <= 0:
        raise InputError(f"Input 'timeout' must be positive, got {timeout}")
    return timeout


def _normalize(inputs: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for key, value in inputs.items():
        name = canonical_input_name(str(key))
        if name not in INPUT_NAMES:
            logger.warning(f"Ignoring unknown input '{key}'")
            continue
        if isinstance(value, str):
            value = value.strip()
        normalized[name] = value
    return normalized


def load_run_config(inputs: Mapping[str, Any]) -> RunConfig:
    """
    Validate inputs and build the RunConfig for one invocation.

    Args:
        inputs: Input name -> value. Missing and empty values take defaults.

    Returns:
        RunConfig instance

    Raises:
        InputError: If a required input is missing or a value is malformed
    """
    values = _normalize(inputs)

    def get(name: str) -> str:
        value = values.get(name)
        if value is None or value == "":
            return _DEFAULTS.get(name) or ""
        return _stringify(value)

    def optional(name: str) -> Optional[str]:
        return get(name) or None

    missing: List[str] = [d.name for d in INPUTS if d.required and not get(d.name)]
    if missing:
        raise InputError(f"Input required and not supplied: {', '.join(missing)}")

    only_delete_job = parse_bool(get("only-delete-job"))
    if only_delete_job:
        if not get("job-name"):
            raise InputError("Input 'job-name' is required when only-delete-job is true")
    elif not get("image"):
        raise InputError("Input required and not supplied: image")

    command = parse_command(get("command"))

    spec = JobSpec(
        image=get("image"),
        command=tuple(command) if command is not None else None,
        cpu=get("cpu"),
        memory=get("memory"),
        user_managed_identity=optional("user-managed-identity"),
        environment_variables=parse_json_mapping(
            "environment-variables", values.get("environment-variables")
        ),
        secrets=parse_json_mapping("secrets", values.get("secrets")),
        registry_server=optional("registry-server"),
        registry_username=optional("registry-username"),
        registry_password=optional("registry-password"),
        cron_schedule=optional("cron-schedule"),
    )

    return RunConfig(
        subscription_id=get("subscription-id"),
        resource_group=get("resource-group"),
        environment_name=get("environment-name"),
        spec=spec,
        job_name=optional("job-name"),
        job_name_prefix=get("job-name-prefix"),
        timeout=parse_timeout(get("timeout")),
        manual_execution=parse_bool(get("manual-execution")),
        only_delete_job=only_delete_job,
        dry_run=parse_bool(get("dry-run")),
        log_analytics_workspace_id=optional("log-analytics-workspace-id"),
    )
