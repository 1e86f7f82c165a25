"""Application Load Balancer, TLS certificate and listeners."""

from pulumi import ComponentResource, ResourceOptions
import pulumi_aws as aws

from ..naming import default_tags, resource_name

SSL_POLICY = "ELBSecurityPolicy-TLS13-1-2-2021-06"


class LoadBalancer(ComponentResource):
    """Internet-facing ALB shared by every app of a deployment.

    Apps attach host-header rules to ``https_listener``; requests for any
    other hostname get a plain 404.
    """

    def __init__(self, deployment_id: str, domain_name: str, subnet_ids,
                 security_group_id, hosted_zone_id=None, certificate_arn=None,
                 opts=None):
        super().__init__(
            "ecs-hosting:load-balancer", resource_name(deployment_id, "lb"), None, opts
        )
        self.deployment_id = deployment_id
        self.domain_name = domain_name
        self.subnet_ids = subnet_ids
        self.security_group_id = security_group_id
        self.tags = default_tags(deployment_id, "load-balancer")

        self.zone_id = hosted_zone_id or self.lookup_zone_id()
        self.certificate_arn = certificate_arn
        self.alb = None
        self.http_listener = None
        self.https_listener = None

        self._create_resources()
        self.register_outputs({
            "alb_arn": self.alb.arn,
            "alb_dns_name": self.alb.dns_name,
            "https_listener_arn": self.https_listener.arn,
        })

    def _create_resources(self):
        if self.certificate_arn is None:
            self.certificate_arn = self.create_certificate()
        self.create_alb()
        self.create_listeners()

    def _child_name(self, *parts):
        return resource_name(self.deployment_id, *parts)

    def lookup_zone_id(self) -> str:
        return aws.route53.get_zone(name=self.domain_name, private_zone=False).zone_id

    def create_certificate(self):
        """Request a wildcard certificate and validate it through DNS."""
        certificate = aws.acm.Certificate(
            self._child_name("certificate"),
            domain_name=f"*.{self.domain_name}",
            validation_method="DNS",
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

        # A single-name certificate has exactly one validation record
        option = certificate.domain_validation_options[0]
        validation_record = aws.route53.Record(
            self._child_name("certificate-validation"),
            zone_id=self.zone_id,
            name=option.resource_record_name,
            type=option.resource_record_type,
            records=[option.resource_record_value],
            ttl=60,
            allow_overwrite=True,
            opts=ResourceOptions(parent=self)
        )

        validation = aws.acm.CertificateValidation(
            self._child_name("certificate-validation"),
            certificate_arn=certificate.arn,
            validation_record_fqdns=[validation_record.fqdn],
            opts=ResourceOptions(parent=self)
        )
        return validation.certificate_arn

    def create_alb(self):
        self.alb = aws.lb.LoadBalancer(
            self._child_name("alb"),
            load_balancer_type="application",
            internal=False,
            security_groups=[self.security_group_id],
            subnets=self.subnet_ids,
            drop_invalid_header_fields=True,
            tags=self.tags,
            opts=ResourceOptions(parent=self)
        )

    def create_listeners(self):
        self.http_listener = aws.lb.Listener(
            self._child_name("http"),
            load_balancer_arn=self.alb.arn,
            port=80,
            protocol="HTTP",
            default_actions=[
                aws.lb.ListenerDefaultActionArgs(
                    type="redirect",
                    redirect=aws.lb.ListenerDefaultActionRedirectArgs(
                        port="443",
                        protocol="HTTPS",
                        status_code="HTTP_301",
                    ),
                ),
            ],
            opts=ResourceOptions(parent=self)
        )

        self.https_listener = aws.lb.Listener(
            self._child_name("https"),
            load_balancer_arn=self.alb.arn,
            port=443,
            protocol="HTTPS",
            ssl_policy=SSL_POLICY,
            certificate_arn=self.certificate_arn,
            default_actions=[
                aws.lb.ListenerDefaultActionArgs(
                    type="fixed-response",
                    fixed_response=aws.lb.ListenerDefaultActionFixedResponseArgs(
                        content_type="text/plain",
                        message_body="Not Found",
                        status_code="404",
                    ),
                ),
            ],
            opts=ResourceOptions(parent=self)
        )
