"""Database Component - DynamoDB tag cache for on-demand revalidation.

Creates:
- RevalidationTable (tag/path keys, `revalidate` GSI on path/revalidatedAt)
- A seeder Lambda from OpenNext's initialization bundle, invoked on every
  deploy so prerendered tags are present before the first request
"""

import json
import time
from pathlib import Path

import pulumi
import pulumi_aws as aws

from components.iam import attach_logging_policy, create_lambda_role, create_table_policy
from components.manifest import OpenNextOutput

TABLE_NAME = "RevalidationTable"


class DatabaseComponent(pulumi.ComponentResource):
    """DynamoDB revalidation table plus its seeder function."""

    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        path: str,
        seeder_required: bool = False,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Create the revalidation table.

        Args:
            name: Component resource name
            site_name: Site name used to prefix child resources
            open_next_output: Parsed OpenNext manifest
            path: Next.js app directory (bundles are resolved against it)
            seeder_required: Fail when the manifest has no initialization function
            tags: Tags applied to taggable children
            opts: Pulumi resource options
        """
        super().__init__("nextjs:database:Database", name, None, opts)

        self.site_name = site_name
        self.tags = tags or {}

        self.table = aws.dynamodb.Table(
            f"{site_name}-revalidation-table",
            name=TABLE_NAME,
            hash_key="tag",
            range_key="path",
            billing_mode="PAY_PER_REQUEST",
            point_in_time_recovery=aws.dynamodb.TablePointInTimeRecoveryArgs(
                enabled=True,
            ),
            attributes=[
                aws.dynamodb.TableAttributeArgs(name="tag", type="S"),
                aws.dynamodb.TableAttributeArgs(name="path", type="S"),
                aws.dynamodb.TableAttributeArgs(name="revalidatedAt", type="N"),
            ],
            global_secondary_indexes=[
                aws.dynamodb.TableGlobalSecondaryIndexArgs(
                    name="revalidate",
                    hash_key="path",
                    range_key="revalidatedAt",
                    projection_type="INCLUDE",
                    non_key_attributes=["tag"],
                ),
            ],
            tags=self.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.table_policy = create_table_policy(site_name, self.table.arn, self)

        self.seeder_function: aws.lambda_.Function | None = None
        init_function = open_next_output.props.initialization_function
        if init_function is not None:
            self._create_seeder(path, init_function.handler, init_function.bundle)
        elif seeder_required:
            raise ValueError(
                "openNextOutput.additionalProps.initializationFunction is required"
            )

        self.register_outputs(
            {
                "table_name": self.table.name,
                "table_arn": self.table.arn,
                "table_policy_arn": self.table_policy.arn,
            }
        )

    def _create_seeder(self, path: str, handler: str, bundle: str) -> None:
        name = self.site_name
        child_opts = pulumi.ResourceOptions(parent=self)

        aws.cloudwatch.LogGroup(
            f"{name}-revalidation-table-lambda-log-group",
            retention_in_days=1,
            tags=self.tags,
            opts=child_opts,
        )

        role = create_lambda_role(f"{name}-revalidation-table", self, self.tags)
        attach_logging_policy(f"{name}-revalidation-table-lambda", role, self)

        # Item-level access only; the seeder never scans
        dynamodb_policy = aws.iam.Policy(
            f"{name}-revalidation-table-lambda-dynamodb-policy",
            policy=self.table.arn.apply(
                lambda arn: json.dumps(
                    {
                        "Version": "2012-10-17",
                        "Statement": [
                            {
                                "Action": [
                                    "dynamodb:PutItem",
                                    "dynamodb:GetItem",
                                    "dynamodb:UpdateItem",
                                    "dynamodb:DeleteItem",
                                    "dynamodb:Query",
                                    "dynamodb:BatchWriteItem",
                                ],
                                "Effect": "Allow",
                                "Resource": arn,
                            }
                        ],
                    }
                )
            ),
            opts=child_opts,
        )

        aws.iam.RolePolicyAttachment(
            f"{name}-revalidation-table-lambda-dynamodb-role-policy-attachment",
            role=role.name,
            policy_arn=dynamodb_policy.arn,
            opts=child_opts,
        )

        self.seeder_function = aws.lambda_.Function(
            f"{name}-revalidation-table-lambda",
            description="Next.js revalidation data insert",
            handler=handler,
            runtime="nodejs20.x",
            environment=aws.lambda_.FunctionEnvironmentArgs(
                variables={"CACHE_DYNAMO_TABLE": TABLE_NAME},
            ),
            timeout=15,
            memory_size=128,
            role=role.arn,
            code=pulumi.FileArchive(str(Path(path, bundle))),
            tags=self.tags,
            opts=child_opts,
        )

        # Changing trigger forces a fresh invocation on every deploy
        self.seeder_invocation = aws.lambda_.Invocation(
            f"{name}-revalidation-table-seeder",
            function_name=self.seeder_function.name,
            triggers={"time": str(int(time.time() * 1000))},
            input=json.dumps({}),
            opts=child_opts,
        )
