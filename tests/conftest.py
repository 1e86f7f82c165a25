"""
Pytest configuration and shared fixtures.

- make_data: builds a valid deployment.yaml document
- hosting_home: temporary ECS_HOSTING_HOME with an empty deployments/ dir
- write_deployment: writes deployments/<name>/deployment.yaml
- deployment: parsed two-app Deployment for program tests
"""

import pytest
import yaml

from ecs_hosting import credentials
from ecs_hosting.models import (
    AppConfig,
    ClusterConfig,
    Deployment,
    HealthCheckConfig,
    NetworkConfig,
)


def deployment_data(**overrides) -> dict:
    """Return a valid deployment.yaml document as a dict."""
    data = {
        "id": "staging",
        "description": "Test deployment",
        "region": "eu-west-1",
        "domain_name": "example.org",
        "apps": [
            {
                "name": "web",
                "image": "nginx:1.27",
                "container_port": 80,
                "subdomain": "www",
            },
            {
                "name": "api",
                "image": "example/api:1.0",
                "container_port": 8080,
                "memory": "1G",
                "environment": {"LOG_LEVEL": "debug"},
                "secrets": {"DATABASE_URL": "op://vault/db/url"},
                "health_check": {"path": "/healthz", "matcher": 200},
            },
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_data():
    """Return the deployment_data builder."""
    return deployment_data


@pytest.fixture
def hosting_home(tmp_path, monkeypatch):
    """Point ECS_HOSTING_HOME at an empty temporary directory."""
    monkeypatch.setenv("ECS_HOSTING_HOME", str(tmp_path))
    (tmp_path / "deployments").mkdir()
    credentials._load_config.cache_clear()
    yield tmp_path
    credentials._load_config.cache_clear()


@pytest.fixture
def write_deployment(hosting_home):
    """Write a deployment.yaml and return its path."""

    def _write(name: str, data=None, raw: str = None):
        directory = hosting_home / "deployments" / name
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "deployment.yaml"
        if raw is not None:
            path.write_text(raw)
        else:
            path.write_text(yaml.safe_dump(data if data is not None else deployment_data()))
        return path

    return _write


@pytest.fixture
def deployment() -> Deployment:
    """Return a parsed two-app deployment."""
    return Deployment(
        id="staging",
        description="Test deployment",
        region="eu-west-1",
        domain_name="example.org",
        hosted_zone_id="ZTESTZONE",
        network=NetworkConfig(availability_zones=["eu-west-1a", "eu-west-1b"]),
        cluster=ClusterConfig(ami_id="ami-0123456789abcdef0"),
        apps=[
            AppConfig(
                name="web",
                image="nginx:1.27",
                container_port=80,
                subdomain="www",
            ),
            AppConfig(
                name="api",
                image="example/api:1.0",
                container_port=8080,
                memory="1G",
                environment={"LOG_LEVEL": "debug"},
                secrets={"DATABASE_URL": "op://vault/db/url"},
                health_check=HealthCheckConfig(path="/healthz", matcher="200"),
            ),
        ],
    )
