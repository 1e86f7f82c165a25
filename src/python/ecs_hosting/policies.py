"""IAM policy documents."""

import json

ECS_INSTANCE_ROLE_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AmazonEC2ContainerServiceforEC2Role"
)
SSM_CORE_POLICY_ARN = "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore"
TASK_EXECUTION_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
)


def assume_role_policy(service: str) -> str:
    """Trust policy letting an AWS service (e.g. ec2.amazonaws.com) assume a role."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": service},
            "Action": "sts:AssumeRole"
        }]
    })


def secrets_read_policy(secret_arns: list[str]) -> str:
    """Allow reading the given Secrets Manager secrets and nothing else."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": "secretsmanager:GetSecretValue",
            "Resource": sorted(secret_arns)
        }]
    })


def log_write_policy(log_group_arn: str) -> str:
    """Allow writing log streams and events to one log group."""
    # Log group ARNs from the provider may already carry a trailing ":*"
    log_group_arn = log_group_arn.removesuffix(":*")
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Action": [
                "logs:CreateLogStream",
                "logs:PutLogEvents"
            ],
            "Resource": f"{log_group_arn}:*"
        }]
    })
