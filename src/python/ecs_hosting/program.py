"""The Pulumi program describing a whole deployment."""

from typing import Optional

import pulumi

from .components import AppService, EcsCluster, LoadBalancer, Network
from .models import Deployment


def build_deployment(
    deployment: Deployment,
    secret_values: Optional[dict[str, dict[str, str]]] = None,
) -> dict[str, AppService]:
    """Declare every resource of a deployment and export its outputs.

    Args:
        deployment: Parsed deployment definition
        secret_values: Resolved secret values keyed by app name

    Returns:
        The app components keyed by app name
    """
    secret_values = secret_values or {}

    network = Network(deployment.id, deployment.network)

    cluster = EcsCluster(
        deployment.id,
        deployment.cluster,
        subnet_ids=network.public_subnet_ids,
        security_group_id=network.instance_security_group.id,
    )

    load_balancer = LoadBalancer(
        deployment.id,
        deployment.domain_name,
        subnet_ids=network.public_subnet_ids,
        security_group_id=network.alb_security_group.id,
        hosted_zone_id=deployment.hosted_zone_id,
        certificate_arn=deployment.certificate_arn,
    )

    pulumi.export("vpc_id", network.vpc.id)
    pulumi.export("cluster_name", cluster.cluster.name)
    pulumi.export("alb_dns_name", load_balancer.alb.dns_name)
    pulumi.export("https_listener_arn", load_balancer.https_listener.arn)

    apps = {}
    for app in deployment.apps:
        service = AppService(
            deployment,
            app,
            vpc_id=network.vpc.id,
            cluster=cluster,
            load_balancer=load_balancer,
            secret_values=secret_values.get(app.name),
        )
        apps[app.name] = service

        pulumi.export(f"{app.name}_url", f"https://{service.fqdn}")
        pulumi.export(f"{app.name}_service_name", service.service.name)
        pulumi.export(f"{app.name}_target_group_arn", service.target_group.arn)
        if service.secret is not None:
            pulumi.export(f"{app.name}_secret_arn", service.secret.arn)

    return apps
