"""Unit tests for the ECS service health report."""

import boto3
import pytest
from botocore.stub import Stubber

from ecs_hosting.status import StatusError, get_status

TG_ARN = "arn:aws:elasticloadbalancing:eu-west-1:123456789012:targetgroup/staging-web/abc"


class FakeSession:
    """boto3 session handing out pre-stubbed clients."""

    def __init__(self, clients):
        self.clients = clients

    def client(self, name):
        return self.clients[name]


@pytest.fixture
def clients():
    session = boto3.session.Session(
        region_name="eu-west-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    ecs = session.client("ecs")
    elbv2 = session.client("elbv2")
    with Stubber(ecs) as ecs_stub, Stubber(elbv2) as elbv2_stub:
        yield {"ecs": ecs, "elbv2": elbv2}, ecs_stub, elbv2_stub
        ecs_stub.assert_no_pending_responses()
        elbv2_stub.assert_no_pending_responses()


def _service(name, desired, running, pending=0, target_group_arn=None):
    service = {
        "serviceName": name,
        "status": "ACTIVE",
        "desiredCount": desired,
        "runningCount": running,
        "pendingCount": pending,
        "loadBalancers": [],
    }
    if target_group_arn:
        service["loadBalancers"] = [{
            "targetGroupArn": target_group_arn,
            "containerName": name,
            "containerPort": 80,
        }]
    return service


def _targets(*states):
    return {
        "TargetHealthDescriptions": [
            {
                "Target": {"Id": f"i-{i:017d}", "Port": 32768 + i},
                "TargetHealth": {"State": state},
            }
            for i, state in enumerate(states)
        ]
    }


def test_healthy_and_missing_services(deployment, clients):
    client_map, ecs_stub, elbv2_stub = clients
    ecs_stub.add_response(
        "describe_services",
        {"services": [_service("web", 2, 2, target_group_arn=TG_ARN)], "failures": []},
        {"cluster": "staging-cluster", "services": ["web", "api"]},
    )
    elbv2_stub.add_response(
        "describe_target_health",
        _targets("healthy", "healthy"),
        {"TargetGroupArn": TG_ARN},
    )

    web, api = get_status(deployment, session=FakeSession(client_map))

    assert web.healthy
    assert (web.desired, web.running, web.healthy_targets) == (2, 2, 2)
    assert web.target_group_arn == TG_ARN
    assert api.status == "MISSING"
    assert not api.healthy


def test_unhealthy_targets(deployment, clients):
    client_map, ecs_stub, elbv2_stub = clients
    ecs_stub.add_response(
        "describe_services",
        {
            "services": [
                _service("web", 2, 1, pending=1, target_group_arn=TG_ARN),
                _service("api", 1, 1),
            ],
        },
        {"cluster": "staging-cluster", "services": ["web", "api"]},
    )
    elbv2_stub.add_response(
        "describe_target_health",
        _targets("healthy", "unhealthy", "initial"),
        {"TargetGroupArn": TG_ARN},
    )

    web, api = get_status(deployment, session=FakeSession(client_map))

    assert not web.healthy
    assert (web.running, web.pending) == (1, 1)
    assert (web.healthy_targets, web.unhealthy_targets) == (1, 1)
    assert api.healthy


def test_client_error(deployment, clients):
    client_map, ecs_stub, _ = clients
    ecs_stub.add_client_error(
        "describe_services",
        service_error_code="ClusterNotFoundException",
        service_message="Cluster not found.",
    )

    with pytest.raises(StatusError, match="staging"):
        get_status(deployment, session=FakeSession(client_map))
