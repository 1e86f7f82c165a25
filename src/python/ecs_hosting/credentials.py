"""Credential management via 1Password CLI and config.yaml."""

import subprocess
from functools import lru_cache

import yaml

from .deployment_loader import deployments_root
from .models import AppConfig, AwsCredentials, PulumiConfig


class CredentialsError(Exception):
    """Raised when credential retrieval fails."""

    pass


@lru_cache
def _load_config() -> dict:
    """Load and cache config.yaml.

    Returns:
        Parsed config dictionary

    Raises:
        CredentialsError: If config file cannot be loaded
    """
    config_path = deployments_root() / "config.yaml"
    if not config_path.exists():
        raise CredentialsError(f"Config file not found at {config_path}")

    try:
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise CredentialsError(f"Invalid YAML in {config_path}: {e}") from e


def _op_read(reference: str) -> str:
    """Execute 'op read' to fetch a secret from 1Password.

    Args:
        reference: 1Password secret reference (e.g., "op://vault/item/field")

    Returns:
        The secret value

    Raises:
        CredentialsError: If the op command fails or is not found
    """
    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise CredentialsError(
            f"Failed to read 1Password reference '{reference}': {e.stderr}"
        ) from e
    except FileNotFoundError:
        raise CredentialsError(
            "1Password CLI (op) not found. Please install it: "
            "https://developer.1password.com/docs/cli/get-started/"
        ) from None


def _resolve_value(value: str) -> str:
    """Resolve a value, fetching from 1Password if it's an op:// reference.

    Args:
        value: Either a literal value or an op:// reference

    Returns:
        The resolved value
    """
    if value.startswith("op://"):
        return _op_read(value)
    return value


def get_pulumi_config() -> PulumiConfig:
    """Retrieve Pulumi configuration from config.yaml and 1Password.

    Returns:
        PulumiConfig with backend URL and AWS credentials

    Raises:
        CredentialsError: If configuration cannot be retrieved
    """
    config = _load_config()
    pulumi_config = config.get("pulumi", {})

    backend = _resolve_value(pulumi_config.get("backend", ""))
    if not backend:
        raise CredentialsError("pulumi.backend is not set in config.yaml")

    access_key_id = _resolve_value(pulumi_config.get("aws_access_key_id", ""))
    secret_access_key = _resolve_value(pulumi_config.get("aws_secret_access_key", ""))

    return PulumiConfig(
        backend=backend,
        aws=AwsCredentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        ),
    )


def resolve_app_secrets(app: AppConfig) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve the secret values an app declares.

    Values that cannot be resolved locally (empty, or an op:// reference
    that fails) are left out and reported with the reason. The secret
    itself is still managed but its stored value is not touched for that
    deploy.

    Args:
        app: App whose secrets to resolve

    Returns:
        Tuple of (resolved values, reasons for unresolved keys), both
        keyed by environment variable name
    """
    resolved = {}
    unresolved = {}
    for key, value in app.secrets.items():
        try:
            secret = _resolve_value(value)
        except CredentialsError as e:
            unresolved[key] = str(e)
            continue
        if secret:
            resolved[key] = secret
        else:
            unresolved[key] = "empty value"
    return resolved, unresolved
