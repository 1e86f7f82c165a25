"""Read-only health report for the ECS services of a deployment."""

from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import Deployment
from .naming import resource_name

# DescribeServices accepts at most 10 services per call
DESCRIBE_BATCH_SIZE = 10


class StatusError(Exception):
    """Raised when the AWS APIs cannot be queried."""

    pass


@dataclass
class ServiceStatus:
    """Desired vs. actual state of one app's ECS service."""

    app: str
    status: str  # ACTIVE, DRAINING, INACTIVE or MISSING
    desired: int = 0
    running: int = 0
    pending: int = 0
    healthy_targets: int = 0
    unhealthy_targets: int = 0
    target_group_arn: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return (
            self.status == "ACTIVE"
            and self.running == self.desired
            and self.unhealthy_targets == 0
        )


def _count_targets(elbv2, target_group_arn: str) -> tuple[int, int]:
    descriptions = elbv2.describe_target_health(TargetGroupArn=target_group_arn)
    states = [
        d["TargetHealth"]["State"]
        for d in descriptions.get("TargetHealthDescriptions", [])
    ]
    return states.count("healthy"), states.count("unhealthy")


def get_status(deployment: Deployment, session=None) -> list[ServiceStatus]:
    """Report desired, running and pending task counts plus target health.

    Args:
        deployment: Parsed deployment definition
        session: boto3 session to use (default: one for the deployment's region)

    Returns:
        One ServiceStatus per app, in deployment order

    Raises:
        StatusError: If an AWS call fails
    """
    session = session or boto3.session.Session(region_name=deployment.region)
    ecs = session.client("ecs")
    elbv2 = session.client("elbv2")
    cluster = resource_name(deployment.id, "cluster")

    names = [app.name for app in deployment.apps]
    services = {}
    try:
        for i in range(0, len(names), DESCRIBE_BATCH_SIZE):
            response = ecs.describe_services(
                cluster=cluster, services=names[i:i + DESCRIBE_BATCH_SIZE]
            )
            for service in response.get("services", []):
                services[service["serviceName"]] = service

        results = []
        for name in names:
            service = services.get(name)
            if service is None:
                results.append(ServiceStatus(app=name, status="MISSING"))
                continue

            status = ServiceStatus(
                app=name,
                status=service["status"],
                desired=service.get("desiredCount", 0),
                running=service.get("runningCount", 0),
                pending=service.get("pendingCount", 0),
            )
            load_balancers = service.get("loadBalancers", [])
            if load_balancers:
                status.target_group_arn = load_balancers[0]["targetGroupArn"]
                status.healthy_targets, status.unhealthy_targets = _count_targets(
                    elbv2, status.target_group_arn
                )
            results.append(status)
    except (BotoCoreError, ClientError) as e:
        raise StatusError(f"Could not read status of '{deployment.id}': {e}") from e

    return results
