"""Click CLI commands for ecs_hosting."""

import sys

import click

from . import __version__
from .credentials import CredentialsError
from .deployer import (
    DeployerError,
    deploy_deployment,
    destroy_deployment,
    get_outputs,
    preview_deployment,
    refresh_deployment,
)
from .deployment_loader import (
    DeploymentNotFoundError,
    DeploymentParseError,
    discover_deployments,
    load_deployment,
)
from .status import StatusError, get_status

# Failures reported as "<label>: <message>" before exiting 1
KNOWN_ERRORS = (
    (DeploymentNotFoundError, "Error"),
    (DeploymentParseError, "Parse error"),
    (CredentialsError, "Credentials error"),
    (DeployerError, "Pulumi error"),
    (StatusError, "AWS error"),
)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Manage ECS app hosting on AWS."""
    pass


def _fail(e: Exception) -> None:
    for error_type, label in KNOWN_ERRORS:
        if isinstance(e, error_type):
            click.echo(f"{label}: {e}", err=True)
            break
    else:
        click.echo(f"Failed: {e}", err=True)
    sys.exit(1)


def _list_available(command: str) -> None:
    deployments = discover_deployments()
    if deployments:
        click.echo("Available deployments:")
        for name in deployments:
            click.echo(f"  - {name}")
        click.echo(f"\nRun: hosting {command} <deployment>")
    else:
        click.echo("No deployments found in deployments/")


@cli.command("list")
def list_deployments() -> None:
    """List all discovered deployments."""
    deployments = discover_deployments()
    if deployments:
        click.echo("Discovered deployments:")
        for name in deployments:
            click.echo(f"  - {name}")
    else:
        click.echo("No deployments found in deployments/")


@cli.command()
@click.argument("deployment", required=False)
@click.option("--all", "preview_all", is_flag=True, help="Preview all deployments")
def preview(deployment: str | None, preview_all: bool) -> None:
    """Preview changes to a deployment.

    Use --all to preview every discovered deployment.
    """
    if preview_all:
        deployments = discover_deployments()
        if not deployments:
            click.echo("No deployments found.", err=True)
            sys.exit(1)

        click.echo(f"Previewing {len(deployments)} deployments...\n")
        failed = False
        for name in deployments:
            click.echo(f"=== {name} ===")
            try:
                _print_change_summary(preview_deployment(name))
            except Exception as e:
                click.echo(f"Error: {e}", err=True)
                failed = True
            click.echo()
        if failed:
            sys.exit(1)
        return

    if not deployment:
        _list_available("preview")
        return

    try:
        click.echo(f"Previewing deployment: {deployment}")
        _print_change_summary(preview_deployment(deployment))
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("deployment", required=False)
@click.option("--all", "deploy_all", is_flag=True, help="Deploy all deployments")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def deploy(deployment: str | None, deploy_all: bool, yes: bool) -> None:
    """Create or update the AWS resources of a deployment.

    Use --all to deploy every discovered deployment.
    """
    if deploy_all:
        deployments = discover_deployments()
        if not deployments:
            click.echo("No deployments found.", err=True)
            sys.exit(1)

        if not yes:
            click.confirm(f"Deploy {len(deployments)} deployments?", abort=True)

        failed = False
        for name in deployments:
            click.echo(f"\n=== Deploying {name} ===")
            try:
                _print_deploy_result(deploy_deployment(name))
            except Exception as e:
                click.echo(f"Error deploying {name}: {e}", err=True)
                failed = True
        if failed:
            sys.exit(1)
        return

    if not deployment:
        _list_available("deploy")
        return

    if not yes:
        click.confirm(f"Deploy '{deployment}'?", abort=True)

    try:
        click.echo(f"Deploying: {deployment}")
        _print_deploy_result(deploy_deployment(deployment))
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("deployment", required=False)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def destroy(deployment: str | None, yes: bool) -> None:
    """Destroy every AWS resource of a deployment."""
    if not deployment:
        _list_available("destroy")
        return

    if not yes:
        click.confirm(
            f"Destroy '{deployment}'? This cannot be undone.", abort=True
        )

    try:
        click.echo(f"Destroying: {deployment}")
        result = destroy_deployment(deployment)
        click.echo("\nDestruction complete.")
        if result.summary.result == "succeeded":
            click.echo("All resources have been removed.")
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("deployment")
def refresh(deployment: str) -> None:
    """Refresh stack state from AWS to detect drift."""
    try:
        click.echo(f"Refreshing: {deployment}")
        result = refresh_deployment(deployment)
        _print_change_summary(result.summary)
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("deployment")
def outputs(deployment: str) -> None:
    """Show the stack outputs of a deployment."""
    try:
        values = get_outputs(deployment)
    except Exception as e:
        _fail(e)
        return

    if not values:
        click.echo("No outputs. Has the deployment been deployed?")
        return
    for key in sorted(values):
        click.echo(f"{key}: {values[key]}")


@cli.command()
@click.argument("deployment")
def status(deployment: str) -> None:
    """Compare desired and running tasks for each app."""
    try:
        statuses = get_status(load_deployment(deployment))
    except Exception as e:
        _fail(e)
        return

    unhealthy = False
    for svc in statuses:
        marker = "ok" if svc.healthy else "!!"
        click.echo(
            f"[{marker}] {svc.app}: {svc.status} "
            f"running {svc.running}/{svc.desired} (pending {svc.pending}), "
            f"targets {svc.healthy_targets} healthy / {svc.unhealthy_targets} unhealthy"
        )
        unhealthy = unhealthy or not svc.healthy
    if unhealthy:
        sys.exit(1)


def _print_change_summary(result) -> None:
    """Print a summary of changes from a preview or refresh."""
    summary = getattr(result, "change_summary", None)
    if summary is None:
        summary = getattr(result, "resource_changes", None)
    if summary:
        click.echo("\nChange summary:")
        for change_type, count in summary.items():
            if count > 0:
                click.echo(f"  {change_type}: {count}")
    else:
        click.echo("No changes detected.")


def _print_deploy_result(result) -> None:
    """Print deployment result."""
    if result.outputs:
        click.echo("\nOutputs:")
        for key, value in result.outputs.items():
            click.echo(f"  {key}: {'[secret]' if value.secret else value.value}")
    else:
        click.echo("\nDeployment complete.")
