"""
CLI interface for acajob.

Runs one Azure Container App Job from pipeline inputs.

Inputs are read, lowest precedence first, from:
- a YAML file (--inputs-file)
- GitHub Actions INPUT_<NAME> environment variables
- --input KEY=VALUE options
- the --dry-run flag
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from acajob import __version__


def _default_log_format() -> str:
    return "actions" if os.environ.get("GITHUB_ACTIONS") == "true" else "pretty"


def _parse_overrides(values: Tuple[str, ...]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for item in values:
        if "=" not in item:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'", param_hint="--input")
        key, value = item.split("=", 1)
        overrides[key.strip()] = value
    return overrides


@click.group()
@click.version_option(version=__version__, prog_name="acajob")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level")
@click.option("--log-format", default=None,
              type=click.Choice(["pretty", "structured", "actions"]),
              help="Log output format (default: actions on GitHub Actions, else pretty)")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path),
              help="Also write structured logs to this file")
@click.pass_context
def main(ctx, log_level: str, log_format: Optional[str], log_file: Optional[Path]):
    """
    acajob - Run a one-off Azure Container App Job.

    Creates the job, starts one execution, waits for it, dumps its logs,
    and deletes the job. Exits non-zero if the execution fails.
    """
    from acajob.utils import setup_logging

    ctx.ensure_object(dict)
    setup_logging(log_level, log_format or _default_log_format(), log_file)


@main.command("run")
@click.option("--inputs-file", type=click.Path(dir_okay=False, path_type=Path),
              help="YAML file of inputs")
@click.option("--input", "-i", "overrides", multiple=True, metavar="KEY=VALUE",
              help="Set an input (repeatable)")
@click.option("--dry-run", is_flag=True, help="Print the job payload without calling Azure")
def run(inputs_file: Optional[Path], overrides: Tuple[str, ...], dry_run: bool):
    """
    Run a job from inputs.

    Examples:

        INPUT_IMAGE=busybox acajob run -i subscription-id=... -i resource-group=rg -i environment-name=env

        acajob run --inputs-file job.yaml --dry-run

        acajob run --inputs-file job.yaml -i only-delete-job=true -i job-name=my-job
    """
    from acajob.config import inputs_from_environ, load_inputs_file, load_run_config
    from acajob.errors import AcaJobError
    from acajob.outputs import GitHubOutputFile, LoggingOutputs
    from acajob.runner import run_job

    input_overrides = _parse_overrides(overrides)

    try:
        inputs: Dict[str, Any] = {}
        if inputs_file is not None:
            inputs.update(load_inputs_file(inputs_file))
        inputs.update(inputs_from_environ(os.environ))
        inputs.update(input_overrides)
        if dry_run:
            inputs["dry-run"] = "true"

        config = load_run_config(inputs)

        output_path = os.environ.get("GITHUB_OUTPUT")
        outputs = GitHubOutputFile(Path(output_path)) if output_path else LoggingOutputs()

        outcome = run_job(config, outputs=outputs)
    except AcaJobError as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)
    except Exception as e:
        click.echo(f"✗ Unexpected error: {e!r}", err=True)
        raise SystemExit(1)
    except KeyboardInterrupt:
        click.echo("✗ Interrupted", err=True)
        raise SystemExit(130)

    click.echo(f"✓ {outcome.job_name} completed ({outcome.mode.value})")


@main.command("inputs")
def list_inputs():
    """List supported inputs and their defaults."""
    from acajob.config import INPUTS

    for d in INPUTS:
        flags = "required" if d.required else f"default: {d.default}" if d.default is not None else "optional"
        click.echo(f"  {d.name:<28} {d.description} ({flags})")


if __name__ == "__main__":
    main()
