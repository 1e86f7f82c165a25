"""Unit tests for IAM policy documents."""

import json

from ecs_hosting import policies


def test_assume_role_policy():
    document = json.loads(policies.assume_role_policy("ecs-tasks.amazonaws.com"))

    statement = document["Statement"][0]
    assert document["Version"] == "2012-10-17"
    assert statement["Principal"] == {"Service": "ecs-tasks.amazonaws.com"}
    assert statement["Action"] == "sts:AssumeRole"


def test_secrets_read_policy_scoped_to_given_arns():
    arns = [
        "arn:aws:secretsmanager:eu-west-1:123456789012:secret:staging/web-xyz",
        "arn:aws:secretsmanager:eu-west-1:123456789012:secret:staging/api-abc",
    ]

    document = json.loads(policies.secrets_read_policy(arns))

    statement = document["Statement"][0]
    assert statement["Action"] == "secretsmanager:GetSecretValue"
    assert statement["Resource"] == sorted(arns)
    assert "*" not in json.dumps(statement["Resource"])


def test_log_write_policy():
    arn = "arn:aws:logs:eu-west-1:123456789012:log-group:/ecs/staging/api"

    document = json.loads(policies.log_write_policy(arn))

    assert document["Statement"][0]["Resource"] == f"{arn}:*"


def test_log_write_policy_existing_wildcard():
    """A log group ARN that already ends in :* is not doubled."""
    arn = "arn:aws:logs:eu-west-1:123456789012:log-group:/ecs/staging/api"

    document = json.loads(policies.log_write_policy(f"{arn}:*"))

    assert document["Statement"][0]["Resource"] == f"{arn}:*"
