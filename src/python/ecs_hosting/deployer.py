"""Pulumi Automation API orchestration for deployments."""

import os
from pathlib import Path
from typing import Callable

from pulumi import automation as auto

from .credentials import get_pulumi_config, resolve_app_secrets
from .deployment_loader import deployments_root, load_deployment
from .models import Deployment, PulumiConfig
from .program import build_deployment

# Pulumi project configuration
PROJECT_NAME = "ecs-hosting"


class DeployerError(Exception):
    """Raised when deployment operations fail."""

    pass


def _work_dir() -> Path:
    """Return the Pulumi working directory, creating it if needed."""
    work_dir = deployments_root() / ".pulumi-work"
    work_dir.mkdir(parents=True, exist_ok=True)
    return work_dir


def _resolve_secrets(
    deployment: Deployment, on_output: Callable[[str], None]
) -> dict[str, dict[str, str]]:
    """Resolve secret values for every app, reporting the ones left unset."""
    secret_values = {}
    for app in deployment.apps:
        if not app.secrets:
            continue
        resolved, unresolved = resolve_app_secrets(app)
        for key, reason in sorted(unresolved.items()):
            on_output(f"warning: {app.name}: no local value for {key}: {reason}")
        secret_values[app.name] = resolved
    return secret_values


def _create_pulumi_program(
    deployment: Deployment,
    secret_values: dict[str, dict[str, str]],
) -> Callable[[], None]:
    """Create a Pulumi program function for the given deployment.

    Args:
        deployment: Parsed deployment definition
        secret_values: Resolved secret values keyed by app name

    Returns:
        A callable that defines the Pulumi infrastructure
    """

    def pulumi_program() -> None:
        build_deployment(deployment, secret_values)

    return pulumi_program


def _get_or_create_stack(
    deployment: Deployment,
    pulumi_config: PulumiConfig,
    secret_values: dict[str, dict[str, str]],
) -> auto.Stack:
    """Get or create the Pulumi stack for a deployment.

    Args:
        deployment: Parsed deployment definition
        pulumi_config: Pulumi backend and AWS configuration
        secret_values: Resolved secret values keyed by app name

    Returns:
        Pulumi Stack instance
    """
    project_settings = auto.ProjectSettings(
        name=PROJECT_NAME,
        runtime="python",
        backend=auto.ProjectBackend(url=pulumi_config.backend),
    )

    env_vars = {
        # Passphrase for encrypting secrets in state
        "PULUMI_CONFIG_PASSPHRASE": os.environ.get("PULUMI_CONFIG_PASSPHRASE", ""),
        "AWS_REGION": deployment.region,
    }
    # Fall back to the ambient AWS credential chain when config.yaml has none
    if pulumi_config.aws.access_key_id:
        env_vars["AWS_ACCESS_KEY_ID"] = pulumi_config.aws.access_key_id
        env_vars["AWS_SECRET_ACCESS_KEY"] = pulumi_config.aws.secret_access_key

    # Each deployment gets its own stack for isolation
    try:
        stack = auto.create_or_select_stack(
            stack_name=deployment.id,
            project_name=PROJECT_NAME,
            program=_create_pulumi_program(deployment, secret_values),
            opts=auto.LocalWorkspaceOptions(
                work_dir=str(_work_dir()),
                project_settings=project_settings,
                env_vars=env_vars,
            ),
        )
        stack.set_config("aws:region", auto.ConfigValue(value=deployment.region))
    except auto.CommandError as e:
        raise DeployerError(f"Could not open stack '{deployment.id}': {e}") from e

    return stack


def _open_stack(
    deployment_name: str,
    on_output: Callable[[str], None],
    with_secrets: bool = True,
) -> auto.Stack:
    deployment = load_deployment(deployment_name)
    secret_values = _resolve_secrets(deployment, on_output) if with_secrets else {}
    pulumi_config = get_pulumi_config()
    return _get_or_create_stack(deployment, pulumi_config, secret_values)


def preview_deployment(
    deployment_name: str, on_output: Callable[[str], None] = print
) -> auto.PreviewResult:
    """Preview changes for a deployment without applying them.

    Args:
        deployment_name: Name of the deployment to preview
        on_output: Callback for output messages (default: print)

    Returns:
        PreviewResult containing change summary

    Raises:
        DeployerError: If preview fails
    """
    stack = _open_stack(deployment_name, on_output)
    try:
        return stack.preview(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Preview of '{deployment_name}' failed: {e}") from e


def deploy_deployment(
    deployment_name: str, on_output: Callable[[str], None] = print
) -> auto.UpResult:
    """Create or update every resource of a deployment.

    Args:
        deployment_name: Name of the deployment
        on_output: Callback for output messages (default: print)

    Returns:
        UpResult containing deployment outputs

    Raises:
        DeployerError: If deployment fails
    """
    stack = _open_stack(deployment_name, on_output)
    try:
        return stack.up(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Deployment of '{deployment_name}' failed: {e}") from e


def destroy_deployment(
    deployment_name: str, on_output: Callable[[str], None] = print
) -> auto.DestroyResult:
    """Destroy every resource of a deployment.

    Raises:
        DeployerError: If destruction fails
    """
    stack = _open_stack(deployment_name, on_output, with_secrets=False)
    try:
        return stack.destroy(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Destroy of '{deployment_name}' failed: {e}") from e


def refresh_deployment(
    deployment_name: str, on_output: Callable[[str], None] = print
) -> auto.RefreshResult:
    """Reconcile the stack state with what actually exists in AWS (drift).

    Raises:
        DeployerError: If the refresh fails
    """
    stack = _open_stack(deployment_name, on_output, with_secrets=False)
    try:
        return stack.refresh(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Refresh of '{deployment_name}' failed: {e}") from e


def get_outputs(deployment_name: str) -> dict:
    """Return the stack outputs of a deployment as plain values.

    Secret outputs are masked.
    """
    stack = _open_stack(deployment_name, print, with_secrets=False)
    try:
        outputs = stack.outputs()
    except auto.CommandError as e:
        raise DeployerError(f"Could not read outputs of '{deployment_name}': {e}") from e
    return {
        key: "[secret]" if output.secret else output.value
        for key, output in outputs.items()
    }
