"""One application: task definition, ECS service, routing, DNS and secrets."""

import json

import pulumi
from pulumi import ComponentResource, ResourceOptions
import pulumi_aws as aws

from .. import policies
from ..deployment_loader import parse_size_to_mb
from ..models import AppConfig, Deployment
from ..naming import (
    app_fqdn,
    default_tags,
    listener_priority,
    log_group_name,
    resource_name,
    secret_name,
    secret_value_from,
    target_group_name,
)


def container_definitions(app: AppConfig, region: str, log_group: str,
                          secret_arn: str = None) -> list[dict]:
    """Build the ECS container definitions for an app.

    The host port is 0 so Docker picks an ephemeral port on the instance
    and the target group registers whatever port it gets.
    """
    container = {
        "name": app.name,
        "image": app.image,
        "essential": True,
        "cpu": app.cpu,
        "memoryReservation": parse_size_to_mb(app.memory),
        "portMappings": [{
            "containerPort": app.container_port,
            "hostPort": 0,
            "protocol": "tcp",
        }],
        "environment": [
            {"name": key, "value": value}
            for key, value in sorted(app.environment.items())
        ],
        "logConfiguration": {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": log_group,
                "awslogs-region": region,
                "awslogs-stream-prefix": app.name,
            },
        },
    }
    if app.secrets and secret_arn:
        container["secrets"] = [
            {"name": key, "valueFrom": secret_value_from(secret_arn, key)}
            for key in sorted(app.secrets)
        ]
    return [container]


class AppService(ComponentResource):
    """An app served at ``<subdomain>.<domain>`` through the shared ALB."""

    def __init__(self, deployment: Deployment, app: AppConfig, vpc_id, cluster,
                 load_balancer, secret_values: dict = None, opts=None):
        super().__init__(
            "ecs-hosting:app", resource_name(deployment.id, app.name), None, opts
        )
        self.deployment = deployment
        self.app = app
        self.vpc_id = vpc_id
        self.cluster = cluster
        self.load_balancer = load_balancer
        self.secret_values = secret_values or {}
        self.tags = {**default_tags(deployment.id, "app"), "App": app.name}
        self.fqdn = app_fqdn(app, deployment.domain_name)

        self.log_group = None
        self.secret = None
        self.secret_version = None
        self.execution_secrets_policy = None
        self.execution_role = None
        self.task_role = None
        self.task_definition = None
        self.target_group = None
        self.listener_rule = None
        self.service = None

        self._create_resources()
        self.register_outputs({
            "url": f"https://{self.fqdn}",
            "service_name": self.service.name,
            "target_group_arn": self.target_group.arn,
            "secret_arn": self.secret.arn if self.secret else None,
        })

    def _create_resources(self):
        """Internal method to create all resources. Called from __init__."""
        self.create_log_group()
        if self.app.secrets:
            self.create_secret()
        self.create_roles()
        self.create_task_definition()
        self.create_routing()
        self.create_dns_record()
        self.create_service()

    def _child_name(self, *parts):
        return resource_name(self.deployment.id, self.app.name, *parts)

    def create_log_group(self):
        self.log_group = aws.cloudwatch.LogGroup(
            self._child_name("logs"),
            name=log_group_name(self.deployment.id, self.app.name),
            retention_in_days=self.deployment.log_retention_days,
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def create_secret(self):
        """Create the app's secret, seeding it when values are known locally."""
        self.secret = aws.secretsmanager.Secret(
            self._child_name("secret"),
            name=secret_name(self.deployment.id, self.app.name),
            description=f"Runtime secrets for {self.app.name}",
            recovery_window_in_days=7,
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        missing = sorted(set(self.app.secrets) - set(self.secret_values))
        if missing:
            pulumi.log.warn(
                f"No local value for {', '.join(missing)}; "
                f"leaving the stored value of {secret_name(self.deployment.id, self.app.name)} as is",
                resource=self,
            )

        # The version is always managed; with values missing locally the stored
        # string is kept and the local one only seeds a brand new secret
        version_opts = ResourceOptions(parent=self)
        if missing:
            version_opts = ResourceOptions(parent=self, ignore_changes=["secret_string"])
        self.secret_version = aws.secretsmanager.SecretVersion(
            self._child_name("secret-version"),
            secret_id=self.secret.id,
            secret_string=pulumi.Output.secret(json.dumps(self.secret_values, sort_keys=True)),
            opts=version_opts
        )

    def create_roles(self):
        # Execution role: pulls the image, writes logs, resolves secrets at launch
        self.execution_role = aws.iam.Role(
            self._child_name("execution-role"),
            assume_role_policy=policies.assume_role_policy("ecs-tasks.amazonaws.com"),
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        aws.iam.RolePolicyAttachment(
            self._child_name("execution-managed"),
            role=self.execution_role.name,
            policy_arn=policies.TASK_EXECUTION_POLICY_ARN,
            opts=ResourceOptions(parent=self)
        )

        if self.secret is not None:
            self.execution_secrets_policy = aws.iam.RolePolicy(
                self._child_name("execution-secrets"),
                role=self.execution_role.id,
                policy=self.secret.arn.apply(
                    lambda arn: policies.secrets_read_policy([arn])
                ),
                opts=ResourceOptions(parent=self)
            )

        # Task role: what the application itself may call
        self.task_role = aws.iam.Role(
            self._child_name("task-role"),
            assume_role_policy=policies.assume_role_policy("ecs-tasks.amazonaws.com"),
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        aws.iam.RolePolicy(
            self._child_name("task-logs"),
            role=self.task_role.id,
            policy=self.log_group.arn.apply(policies.log_write_policy),
            opts=ResourceOptions(parent=self)
        )

    def create_task_definition(self):
        secret_arn = self.secret.arn if self.secret is not None else None
        definitions = pulumi.Output.all(self.log_group.name, secret_arn).apply(
            lambda args: json.dumps(
                container_definitions(
                    self.app, self.deployment.region, args[0], secret_arn=args[1]
                )
            )
        )

        self.task_definition = aws.ecs.TaskDefinition(
            self._child_name("task"),
            family=self._child_name(),
            network_mode="bridge",
            requires_compatibilities=["EC2"],
            execution_role_arn=self.execution_role.arn,
            task_role_arn=self.task_role.arn,
            container_definitions=definitions,
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def create_routing(self):
        health_check = self.app.health_check
        self.target_group = aws.lb.TargetGroup(
            self._child_name("tg"),
            name=target_group_name(self.deployment.id, self.app.name),
            port=self.app.container_port,
            protocol="HTTP",
            target_type="instance",
            vpc_id=self.vpc_id,
            deregistration_delay=30,
            health_check=aws.lb.TargetGroupHealthCheckArgs(
                enabled=True,
                path=health_check.path,
                matcher=health_check.matcher,
                interval=health_check.interval,
                timeout=health_check.timeout,
                healthy_threshold=health_check.healthy_threshold,
                unhealthy_threshold=health_check.unhealthy_threshold,
                port="traffic-port",
                protocol="HTTP",
            ),
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        self.listener_rule = aws.lb.ListenerRule(
            self._child_name("rule"),
            listener_arn=self.load_balancer.https_listener.arn,
            priority=listener_priority(self.deployment.apps, self.app),
            actions=[
                aws.lb.ListenerRuleActionArgs(
                    type="forward",
                    target_group_arn=self.target_group.arn,
                ),
            ],
            conditions=[
                aws.lb.ListenerRuleConditionArgs(
                    host_header=aws.lb.ListenerRuleConditionHostHeaderArgs(
                        values=[self.fqdn],
                    ),
                ),
            ],
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def create_dns_record(self):
        """Point the app's hostname at the load balancer"""
        aws.route53.Record(
            self._child_name("record"),
            zone_id=self.load_balancer.zone_id,
            name=self.fqdn,
            type="A",
            aliases=[
                aws.route53.RecordAliasArgs(
                    name=self.load_balancer.alb.dns_name,
                    zone_id=self.load_balancer.alb.zone_id,
                    evaluate_target_health=True,
                ),
            ],
            opts=ResourceOptions(parent=self)
        )

    def create_service(self):
        self.service = aws.ecs.Service(
            self._child_name("service"),
            name=self.app.name,
            cluster=self.cluster.cluster.arn,
            task_definition=self.task_definition.arn,
            desired_count=self.app.desired_count,
            capacity_provider_strategies=[
                aws.ecs.ServiceCapacityProviderStrategyArgs(
                    capacity_provider=self.cluster.capacity_provider.name,
                    base=0,
                    weight=100,
                ),
            ],
            ordered_placement_strategies=[
                aws.ecs.ServiceOrderedPlacementStrategyArgs(
                    type="spread",
                    field="attribute:ecs.availability-zone",
                ),
                aws.ecs.ServiceOrderedPlacementStrategyArgs(
                    type="binpack",
                    field="memory",
                ),
            ],
            load_balancers=[
                aws.ecs.ServiceLoadBalancerArgs(
                    target_group_arn=self.target_group.arn,
                    container_name=self.app.name,
                    container_port=self.app.container_port,
                ),
            ],
            deployment_minimum_healthy_percent=50,
            deployment_maximum_percent=200,
            deployment_circuit_breaker=aws.ecs.ServiceDeploymentCircuitBreakerArgs(
                enable=True,
                rollback=True,
            ),
            health_check_grace_period_seconds=60,
            enable_ecs_managed_tags=True,
            propagate_tags="SERVICE",
            tags=self.tags,
            # The target group must be attached to a listener before the service uses it
            opts=ResourceOptions(
                parent=self,
                depends_on=[
                    self.listener_rule,
                    self.cluster.capacity_provider_association,
                ],
            )
        )
