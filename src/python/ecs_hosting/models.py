"""Data models for ecs_hosting."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class AwsCredentials:
    """AWS credentials for the S3 state backend and the AWS provider."""

    access_key_id: str
    secret_access_key: str


@dataclass
class PulumiConfig:
    """Pulumi backend configuration."""

    backend: str
    aws: AwsCredentials


@dataclass
class NetworkConfig:
    """VPC layout."""

    vpc_cidr: str = "10.0.0.0/16"
    public_subnet_cidrs: list[str] = field(
        default_factory=lambda: ["10.0.0.0/24", "10.0.1.0/24"]
    )
    availability_zones: list[str] = field(default_factory=list)


@dataclass
class ClusterConfig:
    """EC2 capacity backing the ECS cluster."""

    instance_type: str = "t3.small"
    min_size: int = 1
    max_size: int = 2
    desired_capacity: int = 1
    key_name: Optional[str] = None
    ami_id: Optional[str] = None  # defaults to the ECS-optimized AMI
    root_volume_size: int = 30  # GB


@dataclass
class HealthCheckConfig:
    """Target group health check."""

    path: str = "/"
    matcher: str = "200-399"
    interval: int = 30
    timeout: int = 5
    healthy_threshold: int = 3
    unhealthy_threshold: int = 3


@dataclass
class AppConfig:
    """An application served behind the load balancer."""

    name: str
    image: str
    container_port: int
    subdomain: Optional[str] = None
    cpu: int = 256
    memory: str = "512M"
    desired_count: int = 1
    priority: Optional[int] = None
    environment: dict[str, str] = field(default_factory=dict)
    # env var name -> literal value or op:// reference
    secrets: dict[str, str] = field(default_factory=dict)
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)

    @property
    def host_label(self) -> str:
        return self.subdomain or self.name


@dataclass
class Deployment:
    """A deployment definition from deployment.yaml."""

    id: str
    description: str
    region: str
    domain_name: str
    apps: list[AppConfig]
    hosted_zone_id: Optional[str] = None
    certificate_arn: Optional[str] = None
    log_retention_days: int = 14
    network: NetworkConfig = field(default_factory=NetworkConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
