"""Functions Component - one Lambda + Function URL per OpenNext function origin."""

from pathlib import Path

import pulumi
import pulumi_aws as aws

from components.function_config import FunctionConfigManager, ResolvedFunctionSettings
from components.iam import (
    attach_basic_lambda_execution_role,
    attach_logging_policy,
    create_lambda_role,
)
from components.manifest import FunctionOrigin, OpenNextOutput


def merge_environment(
    base: dict[str, pulumi.Input[str]], settings: ResolvedFunctionSettings
) -> dict[str, pulumi.Input[str]]:
    """Overlay function-specific variables on the site-wide environment."""
    return {**base, **settings.environment}


class FunctionsComponent(pulumi.ComponentResource):
    """Server, image optimizer and split-server Lambdas.

    Function URLs use IAM auth; only the CloudFront distribution (through
    its Lambda OAC) may invoke them.
    """

    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        path: str,
        environment: dict[str, pulumi.Input[str]],
        bucket_policy_arn: pulumi.Input[str],
        table_policy_arn: pulumi.Input[str],
        queue_policy_arn: pulumi.Input[str],
        config_manager: FunctionConfigManager | None = None,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("nextjs:functions:Functions", name, None, opts)

        self.site_name = site_name
        self.tags = tags or {}
        self.path = path
        self.environment = environment
        self.config_manager = config_manager or FunctionConfigManager()
        self._policy_arns = {
            "bucket-read-write": bucket_policy_arn,
            "table-read-write-data": table_policy_arn,
            "queue-send-message": queue_policy_arn,
        }

        self.functions: dict[str, aws.lambda_.Function] = {}
        self.function_urls: dict[str, pulumi.Output[str]] = {}
        self.function_url_resources: dict[str, aws.lambda_.FunctionUrl] = {}

        for key, origin in open_next_output.function_origins():
            self._create_function_origin(key, origin)

        self.register_outputs(
            {
                "function_names": pulumi.Output.all(
                    **{k: fn.name for k, fn in self.functions.items()}
                ),
                "function_urls": pulumi.Output.all(**self.function_urls),
            }
        )

    def _create_function_origin(self, key: str, origin: FunctionOrigin) -> None:
        prefix = f"{self.site_name}-{key}"
        settings = self.config_manager.get_function_settings(key)

        role = create_lambda_role(f"{prefix}-origin", self, self.tags)
        self._grant_permissions(prefix, role)

        fn = aws.lambda_.Function(
            f"{prefix}-origin-lambda",
            handler=origin.handler,
            runtime=settings.runtime,
            architectures=[settings.architecture],
            memory_size=settings.memory,
            timeout=settings.timeout,
            role=role.arn,
            code=pulumi.FileArchive(str(Path(self.path, origin.bundle))),
            environment=aws.lambda_.FunctionEnvironmentArgs(
                variables=merge_environment(self.environment, settings),
            ),
            tags=self.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

        function_url = aws.lambda_.FunctionUrl(
            f"{prefix}-origin-lambda-url",
            function_name=fn.arn,
            authorization_type="AWS_IAM",
            invoke_mode="RESPONSE_STREAM" if origin.streaming else "BUFFERED",
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.functions[key] = fn
        self.function_url_resources[key] = function_url
        self.function_urls[key] = function_url.function_url

    def _grant_permissions(self, prefix: str, role: aws.iam.Role) -> None:
        attach_basic_lambda_execution_role(prefix, role, self)
        attach_logging_policy(prefix, role, self)

        for label, policy_arn in self._policy_arns.items():
            aws.iam.RolePolicyAttachment(
                f"{prefix}-{label}-role-policy-attachment",
                role=role.name,
                policy_arn=policy_arn,
                opts=pulumi.ResourceOptions(parent=self),
            )
