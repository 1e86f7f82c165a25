"""VPC, public subnets and security groups."""

from pulumi import ComponentResource, ResourceOptions
import pulumi_aws as aws

from ..models import NetworkConfig
from ..naming import default_tags, resource_name

# Docker assigns host ports from the Linux ephemeral range in bridge mode
DYNAMIC_PORT_RANGE = (32768, 65535)


class Network(ComponentResource):
    """Public VPC shared by the load balancer and the container instances."""

    def __init__(self, deployment_id: str, config: NetworkConfig, opts=None):
        name = resource_name(deployment_id, "network")
        super().__init__("ecs-hosting:network", name, None, opts)
        self.deployment_id = deployment_id
        self.config = config
        self.tags = default_tags(deployment_id, "network")

        self.vpc = None
        self.internet_gateway = None
        self.public_route_table = None
        self.public_subnets = []
        self.alb_security_group = None
        self.instance_security_group = None

        self._create_resources()
        self.register_outputs({
            "vpc_id": self.vpc.id,
            "public_subnet_ids": self.public_subnet_ids,
        })

    def _create_resources(self):
        self.create_vpc()
        self.create_public_subnets()
        self.create_security_groups()

    @property
    def public_subnet_ids(self):
        return [subnet.id for subnet in self.public_subnets]

    def _child_name(self, *parts):
        return resource_name(self.deployment_id, *parts)

    def _tagged(self, name):
        return {**self.tags, "Name": name}

    def create_vpc(self):
        self.vpc = aws.ec2.Vpc(
            self._child_name("vpc"),
            cidr_block=self.config.vpc_cidr,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            tags=self._tagged(self._child_name("vpc")),
            opts=ResourceOptions(parent=self)
        )

        self.internet_gateway = aws.ec2.InternetGateway(
            self._child_name("igw"),
            vpc_id=self.vpc.id,
            tags=self._tagged(self._child_name("igw")),
            opts=ResourceOptions(parent=self)
        )

        self.public_route_table = aws.ec2.RouteTable(
            self._child_name("public-rt"),
            vpc_id=self.vpc.id,
            routes=[
                aws.ec2.RouteTableRouteArgs(
                    cidr_block="0.0.0.0/0",
                    gateway_id=self.internet_gateway.id,
                )
            ],
            tags=self._tagged(self._child_name("public-rt")),
            opts=ResourceOptions(parent=self)
        )

    def create_public_subnets(self):
        zones = self.config.availability_zones
        for i, cidr in enumerate(self.config.public_subnet_cidrs):
            name = self._child_name("public-subnet", str(i + 1))
            subnet = aws.ec2.Subnet(
                name,
                vpc_id=self.vpc.id,
                cidr_block=cidr,
                availability_zone=zones[i % len(zones)],
                map_public_ip_on_launch=True,
                tags=self._tagged(name),
                opts=ResourceOptions(parent=self)
            )
            aws.ec2.RouteTableAssociation(
                self._child_name("public-rta", str(i + 1)),
                subnet_id=subnet.id,
                route_table_id=self.public_route_table.id,
                opts=ResourceOptions(parent=self)
            )
            self.public_subnets.append(subnet)

    def create_security_groups(self):
        self.alb_security_group = aws.ec2.SecurityGroup(
            self._child_name("alb-sg"),
            description="Load balancer: HTTP and HTTPS from anywhere",
            vpc_id=self.vpc.id,
            ingress=[
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=80,
                    to_port=80,
                    cidr_blocks=["0.0.0.0/0"],
                    ipv6_cidr_blocks=["::/0"],
                    description="Allow HTTP"
                ),
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=443,
                    to_port=443,
                    cidr_blocks=["0.0.0.0/0"],
                    ipv6_cidr_blocks=["::/0"],
                    description="Allow HTTPS"
                ),
            ],
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    protocol="-1",
                    from_port=0,
                    to_port=0,
                    cidr_blocks=["0.0.0.0/0"],
                    description="Allow all outbound traffic"
                ),
            ],
            tags=self._tagged(self._child_name("alb-sg")),
            opts=ResourceOptions(parent=self)
        )

        low, high = DYNAMIC_PORT_RANGE
        self.instance_security_group = aws.ec2.SecurityGroup(
            self._child_name("instance-sg"),
            description="Container instances: dynamic ports from the load balancer only",
            vpc_id=self.vpc.id,
            ingress=[
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=low,
                    to_port=high,
                    security_groups=[self.alb_security_group.id],
                    description="Allow dynamic host ports from the load balancer"
                ),
            ],
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    protocol="-1",
                    from_port=0,
                    to_port=0,
                    cidr_blocks=["0.0.0.0/0"],
                    description="Allow all outbound traffic"
                ),
            ],
            tags=self._tagged(self._child_name("instance-sg")),
            opts=ResourceOptions(parent=self)
        )
