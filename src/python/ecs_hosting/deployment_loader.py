"""Deployment definition loader for YAML files."""

import os
import re
from pathlib import Path

import yaml

from .models import (
    AppConfig,
    ClusterConfig,
    Deployment,
    HealthCheckConfig,
    NetworkConfig,
)

# Used in resource names, DNS labels and secret paths
NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,30}[a-z0-9]$")


class DeploymentNotFoundError(Exception):
    """Raised when a deployment cannot be found."""

    pass


class DeploymentParseError(Exception):
    """Raised when a deployment.yaml is malformed."""

    pass


def deployments_root() -> Path:
    """Return the directory holding config.yaml and deployments/.

    Uses $ECS_HOSTING_HOME when set, otherwise the current directory.
    """
    return Path(os.environ.get("ECS_HOSTING_HOME", Path.cwd()))


def deployments_base_path() -> Path:
    return deployments_root() / "deployments"


def discover_deployments() -> list[str]:
    """Return list of available deployment names.

    Returns:
        Sorted list of deployment directory names that contain deployment.yaml
    """
    deployments = []
    base_path = deployments_base_path()
    if not base_path.exists():
        return deployments

    for deployment_dir in base_path.iterdir():
        if deployment_dir.is_dir() and (deployment_dir / "deployment.yaml").exists():
            deployments.append(deployment_dir.name)
    return sorted(deployments)


def get_deployment_path(deployment_name: str) -> Path:
    """Get the path to a deployment's deployment.yaml file.

    Args:
        deployment_name: Name of the deployment directory

    Returns:
        Path to deployment.yaml

    Raises:
        DeploymentNotFoundError: If directory or deployment.yaml doesn't exist
    """
    path = deployments_base_path() / deployment_name / "deployment.yaml"
    if not path.exists():
        raise DeploymentNotFoundError(
            f"Deployment '{deployment_name}' not found at {path}"
        )
    return path


def parse_size_to_mb(size_str: str) -> int:
    """Convert size string to MB.

    Args:
        size_str: Size with unit suffix (G, M) or a bare number of MB

    Returns:
        Size in MB
    """
    size_str = str(size_str).upper().strip()
    if size_str.endswith("M"):
        return int(size_str[:-1])
    elif size_str.endswith("G"):
        return int(size_str[:-1]) * 1024
    return int(size_str)


def _parse_network(data: dict, region: str) -> NetworkConfig:
    if not isinstance(data, dict):
        raise DeploymentParseError("network must be a mapping")
    network = NetworkConfig()
    try:
        if "vpc_cidr" in data:
            network.vpc_cidr = str(data["vpc_cidr"])
        if "public_subnet_cidrs" in data:
            network.public_subnet_cidrs = list(data["public_subnet_cidrs"])
        network.availability_zones = list(
            data.get("availability_zones") or [f"{region}a", f"{region}b"]
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise DeploymentParseError(f"Invalid network definition: {e}") from e

    if not network.public_subnet_cidrs:
        raise DeploymentParseError("network.public_subnet_cidrs must not be empty")
    # An ALB requires subnets in at least two availability zones
    if len(network.public_subnet_cidrs) < 2 or len(set(network.availability_zones)) < 2:
        raise DeploymentParseError(
            "network needs at least two public subnets in two availability zones"
        )
    return network


def _parse_cluster(data: dict) -> ClusterConfig:
    if not isinstance(data, dict):
        raise DeploymentParseError("cluster must be a mapping")
    try:
        cluster = ClusterConfig(
            instance_type=data.get("instance_type", "t3.small"),
            min_size=int(data.get("min_size", 1)),
            max_size=int(data.get("max_size", 2)),
            desired_capacity=int(data.get("desired_capacity", 1)),
            key_name=data.get("key_name"),
            ami_id=data.get("ami_id"),
            root_volume_size=int(data.get("root_volume_size", 30)),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise DeploymentParseError(f"Invalid cluster definition: {e}") from e
    if not cluster.min_size <= cluster.desired_capacity <= cluster.max_size:
        raise DeploymentParseError(
            "cluster sizes must satisfy min_size <= desired_capacity <= max_size "
            f"(got {cluster.min_size}, {cluster.desired_capacity}, {cluster.max_size})"
        )
    return cluster


def _parse_health_check(data: dict) -> HealthCheckConfig:
    defaults = HealthCheckConfig()
    return HealthCheckConfig(
        path=data.get("path", defaults.path),
        matcher=str(data.get("matcher", defaults.matcher)),
        interval=int(data.get("interval", defaults.interval)),
        timeout=int(data.get("timeout", defaults.timeout)),
        healthy_threshold=int(data.get("healthy_threshold", defaults.healthy_threshold)),
        unhealthy_threshold=int(
            data.get("unhealthy_threshold", defaults.unhealthy_threshold)
        ),
    )


def _parse_app(app_data: dict) -> AppConfig:
    """Parse a single app definition.

    Args:
        app_data: App dict from deployment.yaml

    Returns:
        AppConfig dataclass

    Raises:
        DeploymentParseError: If the app definition is invalid
    """
    try:
        app = AppConfig(
            name=str(app_data["name"]),
            image=app_data["image"],
            container_port=int(app_data["container_port"]),
            subdomain=app_data.get("subdomain"),
            cpu=int(app_data.get("cpu", 256)),
            memory=str(app_data.get("memory", "512M")),
            desired_count=int(app_data.get("desired_count", 1)),
            priority=app_data.get("priority"),
            environment={
                k: str(v) for k, v in (app_data.get("environment") or {}).items()
            },
            secrets={k: str(v) for k, v in (app_data.get("secrets") or {}).items()},
            health_check=_parse_health_check(app_data.get("health_check") or {}),
        )
    except KeyError as e:
        raise DeploymentParseError(f"App is missing required key {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise DeploymentParseError(f"Invalid app definition: {e}") from e

    if not NAME_PATTERN.match(app.name):
        raise DeploymentParseError(
            f"Invalid app name '{app.name}': use lowercase letters, digits and hyphens"
        )
    if app.subdomain is not None and not NAME_PATTERN.match(app.subdomain):
        raise DeploymentParseError(
            f"App '{app.name}': invalid subdomain '{app.subdomain}'"
        )
    if not 1 <= app.container_port <= 65535:
        raise DeploymentParseError(
            f"App '{app.name}': container_port {app.container_port} out of range"
        )
    if app.desired_count < 0:
        raise DeploymentParseError(
            f"App '{app.name}': desired_count must not be negative"
        )
    try:
        parse_size_to_mb(app.memory)
    except ValueError as e:
        raise DeploymentParseError(
            f"App '{app.name}': invalid memory size '{app.memory}'"
        ) from e
    if app.priority is not None:
        try:
            app.priority = int(app.priority)
        except (TypeError, ValueError) as e:
            raise DeploymentParseError(
                f"App '{app.name}': invalid priority '{app.priority}'"
            ) from e
        if not 1 <= app.priority <= 50000:
            raise DeploymentParseError(
                f"App '{app.name}': priority must be between 1 and 50000"
            )
    return app


def _check_unique(apps: list[AppConfig]) -> None:
    for label, values in (
        ("name", [a.name for a in apps]),
        ("subdomain", [a.host_label for a in apps]),
        ("priority", [a.priority for a in apps if a.priority is not None]),
    ):
        duplicates = sorted({str(v) for v in values if values.count(v) > 1})
        if duplicates:
            raise DeploymentParseError(
                f"Duplicate app {label}: {', '.join(duplicates)}"
            )


def load_deployment(deployment_name: str) -> Deployment:
    """Load and parse a deployment definition.

    Args:
        deployment_name: Name of the deployment to load

    Returns:
        Deployment dataclass with parsed configuration

    Raises:
        DeploymentNotFoundError: If deployment doesn't exist
        DeploymentParseError: If YAML is invalid or malformed
    """
    path = get_deployment_path(deployment_name)

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeploymentParseError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise DeploymentParseError(f"{path} must contain a mapping")

    for key in ("id", "region", "domain_name"):
        if key not in data:
            raise DeploymentParseError(f"{path} is missing required key '{key}'")

    if not NAME_PATTERN.match(str(data["id"])):
        raise DeploymentParseError(f"Invalid deployment id '{data['id']}'")

    apps = [_parse_app(a) for a in data.get("apps") or []]
    if not apps:
        raise DeploymentParseError(f"{path} must define at least one app")
    _check_unique(apps)

    try:
        log_retention_days = int(data.get("log_retention_days", 14))
    except (TypeError, ValueError) as e:
        raise DeploymentParseError(
            f"Invalid log_retention_days '{data['log_retention_days']}'"
        ) from e

    return Deployment(
        id=data["id"],
        description=data.get("description", ""),
        region=data["region"],
        domain_name=str(data["domain_name"]).rstrip("."),
        apps=apps,
        hosted_zone_id=data.get("hosted_zone_id"),
        certificate_arn=data.get("certificate_arn"),
        log_retention_days=log_retention_days,
        network=_parse_network(data.get("network") or {}, data["region"]),
        cluster=_parse_cluster(data.get("cluster") or {}),
    )
