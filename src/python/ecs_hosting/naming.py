"""Naming conventions for resources, hostnames, secrets and ARNs."""

import hashlib
import re

from .models import AppConfig

# Application Load Balancer target group names
TARGET_GROUP_NAME_LIMIT = 32

# Listener rule priorities assigned to apps without an explicit priority
BASE_PRIORITY = 100
PRIORITY_STEP = 10


def resource_name(deployment_id: str, *parts: str) -> str:
    """Build a Pulumi resource name, e.g. ("prod", "web", "tg") -> "prod-web-tg"."""
    return "-".join([deployment_id, *parts])


def app_fqdn(app: AppConfig, domain_name: str) -> str:
    """Hostname the load balancer routes to the app."""
    return f"{app.host_label}.{domain_name.rstrip('.')}"


def target_group_name(deployment_id: str, app_name: str) -> str:
    """Return an ALB-safe target group name.

    Names over the 32 character limit are truncated and suffixed with a short
    hash of the full name so two long app names never collide.
    """
    name = re.sub(r"[^A-Za-z0-9-]", "-", f"{deployment_id}-{app_name}").strip("-")
    if len(name) <= TARGET_GROUP_NAME_LIMIT:
        return name

    digest = hashlib.sha1(name.encode()).hexdigest()[:6]
    head = name[: TARGET_GROUP_NAME_LIMIT - len(digest) - 1].rstrip("-")
    return f"{head}-{digest}"


def secret_name(deployment_id: str, app_name: str) -> str:
    return f"{deployment_id}/{app_name}"


def secret_value_from(secret_arn: str, key: str) -> str:
    """Reference a single JSON key of a Secrets Manager secret from ECS."""
    # arn:aws:secretsmanager:region:account:secret:name:json-key:version-stage:version-id
    return f"{secret_arn}:{key}::"


def log_group_name(deployment_id: str, app_name: str) -> str:
    return f"/ecs/{deployment_id}/{app_name}"


def listener_priority(apps: list[AppConfig], app: AppConfig) -> int:
    """Return the HTTPS listener rule priority for an app.

    Explicit priorities are kept. The rest are numbered in name order from
    BASE_PRIORITY, skipping values already taken, so adding an app never
    reshuffles the existing rules ahead of it alphabetically.
    """
    if app.priority is not None:
        return app.priority

    taken = {a.priority for a in apps if a.priority is not None}
    priority = BASE_PRIORITY
    for other in sorted((a for a in apps if a.priority is None), key=lambda a: a.name):
        while priority in taken:
            priority += PRIORITY_STEP
        if other.name == app.name:
            return priority
        priority += PRIORITY_STEP
    raise ValueError(f"App '{app.name}' is not part of the deployment")


def default_tags(deployment_id: str, component: str) -> dict[str, str]:
    return {
        "Project": "ecs-hosting",
        "Deployment": deployment_id,
        "Component": component,
    }


def capacity_provider_name(deployment_id: str) -> str:
    """ECS rejects capacity provider names starting with aws, ecs or fargate."""
    name = f"{deployment_id}-capacity"
    if name.lower().startswith(("aws", "ecs", "fargate")):
        return f"cp-{name}"
    return name
