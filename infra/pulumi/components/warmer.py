"""Warmer Component - scheduled invocations that keep Lambdas warm.

Uses OpenNext's warmer bundle. EventBridge triggers it on a schedule and it
invokes each target function `concurrency` times with a warmer event.
"""

import json
from pathlib import Path
from typing import Any

import pulumi
import pulumi_aws as aws
from pydantic import BaseModel, ConfigDict, Field

from components.iam import attach_logging_policy, create_lambda_role
from components.manifest import OpenNextOutput


class FunctionWarmerConfig(BaseModel):
    enabled: bool = True
    concurrency: int | None = Field(default=None, ge=1)


class WarmerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    # EventBridge rate() or cron() expression
    schedule: str = "rate(5 minutes)"
    concurrency: int = Field(default=1, ge=1)
    functions: dict[str, FunctionWarmerConfig] = Field(default_factory=dict)
    payload: dict[str, Any] | None = None


def build_warm_params(function_names: dict[str, str], config: WarmerConfig) -> list[dict]:
    """Build the WARM_PARAMS list for the warmer bundle.

    Functions are warmed unless explicitly disabled; per-function concurrency
    overrides the global value.
    """
    params = []
    for key, function_name in function_names.items():
        entry = config.functions.get(key)
        if entry is not None and not entry.enabled:
            continue
        concurrency = (
            entry.concurrency
            if entry is not None and entry.concurrency is not None
            else config.concurrency
        )
        params.append({"function": function_name, "concurrency": concurrency})
    return params


class WarmerComponent(pulumi.ComponentResource):
    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        path: str,
        functions: dict[str, aws.lambda_.Function],
        config: WarmerConfig | None = None,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("nextjs:warmer:Warmer", name, None, opts)

        self.site_name = site_name
        self.config = config or WarmerConfig()
        self.tags = tags or {}

        self.warmer_function: aws.lambda_.Function | None = None
        self.event_rule: aws.cloudwatch.EventRule | None = None
        self.event_target: aws.cloudwatch.EventTarget | None = None
        self.environment_variables: dict[str, pulumi.Input[str]] = {}

        warmer_bundle = open_next_output.props.warmer
        if not self.config.enabled or warmer_bundle is None:
            self.register_outputs({})
            return

        child_opts = pulumi.ResourceOptions(parent=self)

        self.warmer_function = self._create_warmer_function(
            path, warmer_bundle.handler, warmer_bundle.bundle, functions
        )

        self.event_rule = aws.cloudwatch.EventRule(
            f"{site_name}-warmer-rule",
            description="Periodic warming for Next.js Lambda functions",
            schedule_expression=self.config.schedule,
            state="ENABLED",
            tags=self.tags,
            opts=child_opts,
        )

        aws.lambda_.Permission(
            f"{site_name}-warmer-eventbridge-permission",
            action="lambda:InvokeFunction",
            function=self.warmer_function.name,
            principal="events.amazonaws.com",
            source_arn=self.event_rule.arn,
            opts=child_opts,
        )

        self.event_target = aws.cloudwatch.EventTarget(
            f"{site_name}-warmer-target",
            rule=self.event_rule.name,
            arn=self.warmer_function.arn,
            opts=child_opts,
        )

        self.register_outputs(
            {
                "warmer_function_name": self.warmer_function.name,
                "warmer_rule_arn": self.event_rule.arn,
            }
        )

    def _create_warmer_function(
        self,
        path: str,
        handler: str,
        bundle: str,
        functions: dict[str, aws.lambda_.Function],
    ) -> aws.lambda_.Function:
        name = self.site_name
        child_opts = pulumi.ResourceOptions(parent=self)

        role = create_lambda_role(f"{name}-warmer", self, self.tags)
        attach_logging_policy(f"{name}-warmer", role, self)

        invoke_policy = aws.iam.Policy(
            f"{name}-warmer-invoke-policy",
            description="Allow warmer to invoke Lambda functions",
            policy=pulumi.Output.all(*[fn.arn for fn in functions.values()]).apply(
                lambda arns: json.dumps(
                    {
                        "Version": "2012-10-17",
                        "Statement": [
                            {
                                "Effect": "Allow",
                                "Action": ["lambda:InvokeFunction"],
                                "Resource": list(arns),
                            }
                        ],
                    }
                )
            ),
            opts=child_opts,
        )

        aws.iam.RolePolicyAttachment(
            f"{name}-warmer-invoke-policy-attachment",
            role=role.name,
            policy_arn=invoke_policy.arn,
            opts=child_opts,
        )

        keys = list(functions)
        warm_params = pulumi.Output.all(*[functions[k].name for k in keys]).apply(
            lambda names: json.dumps(build_warm_params(dict(zip(keys, names)), self.config))
        )

        self.environment_variables["WARM_PARAMS"] = warm_params
        if self.config.payload is not None:
            self.environment_variables["WARMER_PAYLOAD"] = json.dumps(self.config.payload)

        return aws.lambda_.Function(
            f"{name}-warmer-lambda",
            handler=handler,
            runtime="nodejs20.x",
            environment=aws.lambda_.FunctionEnvironmentArgs(variables=self.environment_variables),
            # Warming every function can take a while
            timeout=900,
            memory_size=128,
            role=role.arn,
            code=pulumi.FileArchive(str(Path(path, bundle))),
            tags=self.tags,
            opts=child_opts,
        )
