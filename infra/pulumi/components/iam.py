"""IAM helpers shared by the site components.

Policy documents are built as plain JSON strings so they can be checked
without a Pulumi engine; the `create_*` helpers wrap them in resources
parented to the calling component.
"""

import hashlib
import json

import pulumi
import pulumi_aws as aws

BASIC_EXECUTION_ROLE_ARN = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)


def compute_hex_hash(value: str) -> str:
    """SHA-256 hex digest, used to derive stable resource names from paths."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


# =============================================================================
# Policy documents
# =============================================================================


def lambda_assume_role_policy() -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "sts:AssumeRole",
                    "Principal": {"Service": "lambda.amazonaws.com"},
                    "Effect": "Allow",
                }
            ],
        }
    )


def bucket_policy_document(bucket_arn: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": ["s3:PutObject", "s3:GetObject"],
                    "Resource": [f"{bucket_arn}/*"],
                }
            ],
        }
    )


def table_policy_document(table_arn: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": [
                        "dynamodb:GetItem",
                        "dynamodb:PutItem",
                        "dynamodb:UpdateItem",
                        "dynamodb:DeleteItem",
                        "dynamodb:BatchGetItem",
                        "dynamodb:BatchWriteItem",
                        "dynamodb:Query",
                        "dynamodb:Scan",
                    ],
                    "Resource": [table_arn, f"{table_arn}/index/*"],
                }
            ],
        }
    )


def queue_policy_document(queue_arn: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": [
                        "sqs:SendMessage",
                        "sqs:ReceiveMessage",
                        "sqs:DeleteMessage",
                        "sqs:GetQueueAttributes",
                        "sqs:GetQueueUrl",
                    ],
                    "Resource": queue_arn,
                }
            ],
        }
    )


def logging_policy_document() -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": [
                        "logs:CreateLogGroup",
                        "logs:CreateLogStream",
                        "logs:PutLogEvents",
                    ],
                    "Resource": ["arn:aws:logs:*:*:*"],
                }
            ],
        }
    )


# =============================================================================
# Resources
# =============================================================================


def create_lambda_role(
    name: str, parent: pulumi.Resource, tags: dict | None = None
) -> aws.iam.Role:
    return aws.iam.Role(
        f"{name}-lambda-role",
        assume_role_policy=lambda_assume_role_policy(),
        tags=tags or {},
        opts=pulumi.ResourceOptions(parent=parent),
    )


def attach_basic_lambda_execution_role(
    name: str, role: aws.iam.Role, parent: pulumi.Resource
) -> aws.iam.RolePolicyAttachment:
    return aws.iam.RolePolicyAttachment(
        f"{name}-lambda-basic-execution-role-policy-attachment",
        role=role.name,
        policy_arn=BASIC_EXECUTION_ROLE_ARN,
        opts=pulumi.ResourceOptions(parent=parent),
    )


def create_logging_policy(name: str, parent: pulumi.Resource) -> aws.iam.Policy:
    return aws.iam.Policy(
        f"{name}-logging-policy",
        path="/",
        description="IAM policy for logging from a lambda",
        policy=logging_policy_document(),
        opts=pulumi.ResourceOptions(parent=parent),
    )


def attach_logging_policy(
    name: str, role: aws.iam.Role, parent: pulumi.Resource
) -> aws.iam.Policy:
    """Create a logging policy and attach it to `role`."""
    policy = create_logging_policy(name, parent)
    aws.iam.RolePolicyAttachment(
        f"{name}-logging-policy-attachment",
        role=role.name,
        policy_arn=policy.arn,
        opts=pulumi.ResourceOptions(parent=parent),
    )
    return policy


def create_bucket_policy(
    name: str, bucket_arn: pulumi.Input[str], parent: pulumi.Resource
) -> aws.iam.Policy:
    return aws.iam.Policy(
        f"{name}-bucket-policy",
        description="S3 bucket read/write access",
        policy=pulumi.Output.from_input(bucket_arn).apply(bucket_policy_document),
        opts=pulumi.ResourceOptions(parent=parent),
    )


def create_table_policy(
    name: str, table_arn: pulumi.Input[str], parent: pulumi.Resource
) -> aws.iam.Policy:
    return aws.iam.Policy(
        f"{name}-table-policy",
        description="DynamoDB read/write access policy",
        policy=pulumi.Output.from_input(table_arn).apply(table_policy_document),
        opts=pulumi.ResourceOptions(parent=parent),
    )


def create_queue_policy(
    name: str, queue_arn: pulumi.Input[str], parent: pulumi.Resource
) -> aws.iam.Policy:
    return aws.iam.Policy(
        f"{name}-queue-policy",
        description="Allow sending messages to the SQS queue",
        policy=pulumi.Output.from_input(queue_arn).apply(queue_policy_document),
        opts=pulumi.ResourceOptions(parent=parent),
    )
