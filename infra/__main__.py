"""Pulumi program for running a deployment with the plain pulumi CLI.

    pulumi config set deployment production
    pulumi up
"""

import os
from pathlib import Path

import pulumi

from ecs_hosting.credentials import resolve_app_secrets
from ecs_hosting.deployment_loader import load_deployment
from ecs_hosting.program import build_deployment

# deployments/ and config.yaml live at the repository root
os.environ.setdefault("ECS_HOSTING_HOME", str(Path(__file__).resolve().parent.parent))

config = pulumi.Config()
deployment = load_deployment(config.get("deployment") or pulumi.get_stack())

secret_values = {}
for app in deployment.apps:
    if not app.secrets:
        continue
    resolved, unresolved = resolve_app_secrets(app)
    for key, reason in sorted(unresolved.items()):
        pulumi.log.warn(f"{app.name}: no local value for {key}: {reason}")
    secret_values[app.name] = resolved

build_deployment(deployment, secret_values)
