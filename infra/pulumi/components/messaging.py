"""Messaging Component - SQS FIFO queue for ISR revalidation."""

import json
from pathlib import Path

import pulumi
import pulumi_aws as aws

from components.iam import attach_logging_policy, create_lambda_role, create_queue_policy
from components.manifest import OpenNextOutput

QUEUE_NAME = "revalidationQueue.fifo"


class RevalidationQueueComponent(pulumi.ComponentResource):
    """FIFO revalidation queue and the Lambda that consumes it.

    Server functions enqueue stale paths; the consumer re-renders them in
    the background.
    """

    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        path: str,
        consumer_required: bool = False,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("nextjs:queue:Queue", name, None, opts)

        self.site_name = site_name
        self.tags = tags or {}

        self.queue = aws.sqs.Queue(
            f"{site_name}-revalidation-queue",
            name=QUEUE_NAME,  # FIFO queue names must end with ".fifo"
            fifo_queue=True,
            content_based_deduplication=True,
            receive_wait_time_seconds=20,  # Long polling
            tags=self.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.queue_policy = create_queue_policy(site_name, self.queue.arn, self)

        self.consumer_function: aws.lambda_.Function | None = None
        revalidation_function = open_next_output.props.revalidation_function
        if revalidation_function is not None:
            self._create_consumer(
                path, revalidation_function.handler, revalidation_function.bundle
            )
        elif consumer_required:
            raise ValueError(
                "openNextOutput.additionalProps.revalidationFunction is required"
            )

        self.register_outputs(
            {
                "queue_url": self.queue.url,
                "queue_arn": self.queue.arn,
                "queue_policy_arn": self.queue_policy.arn,
            }
        )

    def _create_consumer(self, path: str, handler: str, bundle: str) -> None:
        name = self.site_name
        child_opts = pulumi.ResourceOptions(parent=self)

        role = create_lambda_role(f"{name}-revalidation-queue", self, self.tags)
        attach_logging_policy(f"{name}-revalidation-queue-lambda", role, self)

        sqs_policy = aws.iam.Policy(
            f"{name}-revalidation-queue-lambda-sqs-policy",
            policy=self.queue.arn.apply(
                lambda arn: json.dumps(
                    {
                        "Version": "2012-10-17",
                        "Statement": [
                            {
                                "Action": [
                                    "sqs:ReceiveMessage",
                                    "sqs:DeleteMessage",
                                    "sqs:GetQueueAttributes",
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
            f"{name}-revalidation-queue-lambda-sqs-role-policy-attachment",
            role=role.name,
            policy_arn=sqs_policy.arn,
            opts=child_opts,
        )

        self.consumer_function = aws.lambda_.Function(
            f"{name}-revalidation-queue-lambda",
            handler=handler,
            runtime="nodejs20.x",
            timeout=30,
            role=role.arn,
            code=pulumi.FileArchive(str(Path(path, bundle))),
            tags=self.tags,
            opts=child_opts,
        )

        self.event_source = aws.lambda_.EventSourceMapping(
            f"{name}-revalidation-queue-lambda-event-source",
            event_source_arn=self.queue.arn,
            function_name=self.consumer_function.arn,
            enabled=True,
            opts=child_opts,
        )
