"""EC2-backed ECS cluster."""

import base64
from pathlib import Path

import pulumi
from pulumi import ComponentResource, ResourceOptions
import pulumi_aws as aws

from .. import policies
from ..models import ClusterConfig
from ..naming import capacity_provider_name, default_tags, resource_name

ECS_AMI_PARAMETER = (
    "/aws/service/ecs/optimized-ami/amazon-linux-2023/recommended/image_id"
)
USER_DATA_TEMPLATE = Path(__file__).parent.parent / "data" / "user-data.sh"


def render_user_data(cluster_name: str) -> str:
    """Render the instance bootstrap script for a cluster."""
    with open(USER_DATA_TEMPLATE, "r") as f:
        return f.read().replace("{{ cluster_name }}", cluster_name)


class EcsCluster(ComponentResource):
    """ECS cluster with an Auto Scaling group as its capacity provider."""

    def __init__(self, deployment_id: str, config: ClusterConfig, subnet_ids,
                 security_group_id, opts=None):
        super().__init__(
            "ecs-hosting:cluster", resource_name(deployment_id, "cluster"), None, opts
        )
        self.deployment_id = deployment_id
        self.config = config
        self.subnet_ids = subnet_ids
        self.security_group_id = security_group_id
        self.tags = default_tags(deployment_id, "cluster")
        self.cluster_name = resource_name(deployment_id, "cluster")

        self.cluster = None
        self.capacity_provider = None
        self.capacity_provider_association = None

        self._create_resources()
        self.register_outputs({
            "cluster_arn": self.cluster.arn,
            "cluster_name": self.cluster.name,
            "capacity_provider_name": self.capacity_provider.name,
        })

    def _create_resources(self):
        """Internal method to create all resources. Called from __init__."""
        self.create_cluster()
        instance_profile = self.create_instance_profile()
        launch_template = self.create_launch_template(instance_profile)
        auto_scaling_group = self.create_auto_scaling_group(launch_template)
        self.create_capacity_provider(auto_scaling_group)

    def _child_name(self, *parts):
        return resource_name(self.deployment_id, *parts)

    def create_cluster(self):
        self.cluster = aws.ecs.Cluster(
            self.cluster_name,
            name=self.cluster_name,
            settings=[
                aws.ecs.ClusterSettingArgs(name="containerInsights", value="enabled"),
            ],
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def get_ami_id(self) -> str:
        if self.config.ami_id:
            return self.config.ami_id
        return aws.ssm.get_parameter(name=ECS_AMI_PARAMETER).value

    def create_instance_profile(self):
        # IAM role for container instances to register with the cluster
        instance_role = aws.iam.Role(
            self._child_name("instance-role"),
            assume_role_policy=policies.assume_role_policy("ec2.amazonaws.com"),
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        for suffix, policy_arn in (
            ("ecs", policies.ECS_INSTANCE_ROLE_POLICY_ARN),
            ("ssm-core", policies.SSM_CORE_POLICY_ARN),
        ):
            aws.iam.RolePolicyAttachment(
                self._child_name("instance", suffix),
                role=instance_role.name,
                policy_arn=policy_arn,
                opts=ResourceOptions(parent=self)
            )

        return aws.iam.InstanceProfile(
            self._child_name("instance-profile"),
            role=instance_role.name,
            opts=ResourceOptions(parent=self)
        )

    def create_launch_template(self, instance_profile):
        user_data = render_user_data(self.cluster_name)
        instance_tags = {**self.tags, "Name": self._child_name("ecs-instance")}

        return aws.ec2.LaunchTemplate(
            self._child_name("launch-template"),
            image_id=self.get_ami_id(),
            instance_type=self.config.instance_type,
            key_name=self.config.key_name,
            iam_instance_profile=aws.ec2.LaunchTemplateIamInstanceProfileArgs(
                arn=instance_profile.arn,
            ),
            vpc_security_group_ids=[self.security_group_id],
            user_data=base64.b64encode(user_data.encode()).decode(),
            block_device_mappings=[
                aws.ec2.LaunchTemplateBlockDeviceMappingArgs(
                    device_name="/dev/xvda",
                    ebs=aws.ec2.LaunchTemplateBlockDeviceMappingEbsArgs(
                        volume_size=self.config.root_volume_size,
                        volume_type="gp3",
                        encrypted="true",
                        delete_on_termination="true",
                    ),
                ),
            ],
            metadata_options=aws.ec2.LaunchTemplateMetadataOptionsArgs(
                http_endpoint="enabled",
                http_tokens="required",
                # Containers in bridge mode sit one hop behind the host
                http_put_response_hop_limit=2,
            ),
            tag_specifications=[
                aws.ec2.LaunchTemplateTagSpecificationArgs(
                    resource_type="instance",
                    tags=instance_tags,
                ),
            ],
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def create_auto_scaling_group(self, launch_template):
        return aws.autoscaling.Group(
            self._child_name("asg"),
            vpc_zone_identifiers=self.subnet_ids,
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            desired_capacity=self.config.desired_capacity,
            launch_template=aws.autoscaling.GroupLaunchTemplateArgs(
                id=launch_template.id,
                version="$Latest",
            ),
            health_check_type="EC2",
            protect_from_scale_in=False,
            tags=[
                aws.autoscaling.GroupTagArgs(
                    key="AmazonECSManaged",
                    value="true",
                    propagate_at_launch=True,
                ),
                *[
                    aws.autoscaling.GroupTagArgs(
                        key=key, value=value, propagate_at_launch=True
                    )
                    for key, value in self.tags.items()
                ],
            ],
            # Managed scaling owns the desired capacity once the group exists
            opts=ResourceOptions(parent=self, ignore_changes=["desired_capacity"])
        )

    def create_capacity_provider(self, auto_scaling_group):
        self.capacity_provider = aws.ecs.CapacityProvider(
            self._child_name("capacity-provider"),
            name=capacity_provider_name(self.deployment_id),
            auto_scaling_group_provider=aws.ecs.CapacityProviderAutoScalingGroupProviderArgs(
                auto_scaling_group_arn=auto_scaling_group.arn,
                managed_termination_protection="DISABLED",
                managed_scaling=aws.ecs.CapacityProviderAutoScalingGroupProviderManagedScalingArgs(
                    status="ENABLED",
                    target_capacity=100,
                    minimum_scaling_step_size=1,
                    maximum_scaling_step_size=self.config.max_size,
                ),
            ),
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        self.capacity_provider_association = aws.ecs.ClusterCapacityProviders(
            self._child_name("cluster-capacity-providers"),
            cluster_name=self.cluster.name,
            capacity_providers=[self.capacity_provider.name],
            default_capacity_provider_strategies=[
                aws.ecs.ClusterCapacityProvidersDefaultCapacityProviderStrategyArgs(
                    capacity_provider=self.capacity_provider.name,
                    base=1,
                    weight=100,
                ),
            ],
            opts=ResourceOptions(parent=self)
        )

        pulumi.log.info(
            f"ECS cluster {self.cluster_name} scales {self.config.min_size}"
            f"-{self.config.max_size} x {self.config.instance_type}",
            resource=self,
        )
