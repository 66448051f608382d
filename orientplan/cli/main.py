"""
orientplan CLI - plan, validate and inspect the OrientDB ECS stack.
"""

import json
import sys

import click
import yaml

from orientplan import __version__
from orientplan.config import collect_raw_config, settings_table
from orientplan.core.plan import Plan, build_plan
from orientplan.exceptions import ConfigurationError, OrientPlanError
from orientplan.logging_config import configure_logging


def config_options(func):
    """Options shared by every command that builds a plan."""
    func = click.option(
        "--no-env",
        is_flag=True,
        help="Ignore the process environment and use only the config file",
    )(func)
    func = click.option(
        "--config",
        "-c",
        "config_file",
        type=click.Path(exists=True, dir_okay=False),
        help="YAML file with configuration keys (environment overrides it)",
    )(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default="WARNING", show_default=True, help="Logging level")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def cli(log_level: str, json_logs: bool):
    """
    orientplan - validated, ordered resource plans for OrientDB on ECS.

    Configuration comes from environment variables (VPC_ID, SUBNET_IDS,
    EC2_INSTANCE_TYPE, ORIENTDB_IMAGE, ORIENTDB_ROOT_PASSWORD, ...) and an
    optional YAML file.
    """
    configure_logging(log_level, json_output=json_logs)


@cli.command()
@config_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json", "yaml"]),
    default="text",
    show_default=True,
)
def plan(config_file: str | None, no_env: bool, output_format: str):
    """
    Build the plan and print it in provisioning order.

    Example:
        orientplan plan
        orientplan plan --config stack.yaml --format json
    """
    built = _build(config_file, no_env)

    if output_format == "json":
        click.echo(json.dumps(built.to_dict(), indent=2))
    elif output_format == "yaml":
        click.echo(yaml.safe_dump(built.to_dict(), sort_keys=False), nl=False)
    else:
        click.echo(f"Plan {built.fingerprint()} ({len(built)} resources)")
        click.echo("=" * 50)
        for i, descriptor in enumerate(built, 1):
            deps = ", ".join(sorted(descriptor.depends_on)) or "-"
            click.echo(f"  {i}. {descriptor.id}  (after: {deps})")


@cli.command()
@config_options
def validate(config_file: str | None, no_env: bool):
    """
    Validate configuration and the resource graph without printing the plan.

    Example:
        orientplan validate --config stack.yaml
    """
    built = _build(config_file, no_env)
    click.echo(f"✓ Configuration is valid ({len(built)} resources, plan {built.fingerprint()})")


@cli.command()
@config_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "mermaid"]),
    default="text",
    show_default=True,
)
def graph(config_file: str | None, no_env: bool, output_format: str):
    """
    Show the dependency graph.

    Text output groups resources into stages that can be provisioned in
    parallel.

    Example:
        orientplan graph --format mermaid
    """
    built = _build(config_file, no_env)

    if output_format == "mermaid":
        click.echo("```mermaid")
        click.echo("graph TD")
        for edge in built.edges:
            click.echo(f'  "{edge.dependency}" --> "{edge.dependent}"')
        click.echo("```")
        return

    for i, stage in enumerate(built.stages, 1):
        click.echo(f"Stage {i}:")
        for descriptor_id in stage:
            click.echo(f"  - {descriptor_id}")


@cli.command()
def settings():
    """List every recognized configuration key."""
    for row in settings_table():
        if row.required:
            status = "required"
        else:
            status = f"default: {row.default!r}"
        click.echo(f"{row.key:<24} {row.kind:<7} {status}")
        if row.description:
            click.echo(f"{'':<24} {row.description}")


def _build(config_file: str | None, no_env: bool) -> Plan:
    try:
        raw = collect_raw_config(config_file, use_env=not no_env)
        return build_plan(raw)
    except ConfigurationError as e:
        click.echo("✗ Invalid configuration:", err=True)
        for key, reason in e.problems.items():
            click.echo(f"  - {key}: {reason}", err=True)
        sys.exit(1)
    except OrientPlanError as e:
        click.echo(f"✗ Planning failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
