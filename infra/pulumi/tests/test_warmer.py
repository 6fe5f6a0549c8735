"""Tests for the warmer."""

import json
from unittest.mock import patch

import pulumi
import pulumi_aws as aws
import pytest
from pydantic import ValidationError

from components.manifest import OpenNextOutput
from components.warmer import WarmerComponent, WarmerConfig, build_warm_params

FUNCTION_NAMES = {
    "default": "site-default-origin-lambda",
    "imageOptimizer": "site-imageOptimizer-origin-lambda",
    "api": "site-api-origin-lambda",
}


class TestWarmerConfig:
    """Tests for WarmerConfig validation."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = WarmerConfig()
        assert config.enabled is False
        assert config.schedule == "rate(5 minutes)"
        assert config.concurrency == 1
        assert config.functions == {}
        assert config.payload is None

    def test_concurrency_must_be_positive(self):
        """Test that zero concurrency is rejected."""
        with pytest.raises(ValidationError):
            WarmerConfig(concurrency=0)


class TestBuildWarmParams:
    """Tests for build_warm_params."""

    def test_warms_every_function_by_default(self):
        """Test that unlisted functions are warmed with the global concurrency."""
        params = build_warm_params(FUNCTION_NAMES, WarmerConfig(concurrency=2))
        assert params == [
            {"function": "site-default-origin-lambda", "concurrency": 2},
            {"function": "site-imageOptimizer-origin-lambda", "concurrency": 2},
            {"function": "site-api-origin-lambda", "concurrency": 2},
        ]

    def test_per_function_overrides(self):
        """Test that per-function concurrency and opt-outs apply."""
        config = WarmerConfig.model_validate(
            {
                "concurrency": 1,
                "functions": {
                    "api": {"concurrency": 5},
                    "imageOptimizer": {"enabled": False},
                },
            }
        )
        assert build_warm_params(FUNCTION_NAMES, config) == [
            {"function": "site-default-origin-lambda", "concurrency": 1},
            {"function": "site-api-origin-lambda", "concurrency": 5},
        ]

    def test_empty_functions(self):
        """Test that no functions means no params."""
        assert build_warm_params({}, WarmerConfig()) == []


def make_functions(prefix):
    """Stand-in origin functions registered against the mock engine."""
    return {
        key: aws.lambda_.Function(
            f"{prefix}-{key}-origin-lambda",
            role="arn:aws:iam::123456789012:role/stub",
            runtime="nodejs20.x",
            handler="index.handler",
        )
        for key in ("default", "api")
    }


class TestWarmerComponent:
    """Tests for WarmerComponent under Pulumi mocks."""

    @pulumi.runtime.test
    def test_disabled_creates_nothing(self, open_next_output, site_path):
        """Test that a disabled warmer creates no function."""
        warmer = WarmerComponent(
            "warmer-off",
            site_name="warmer-off",
            open_next_output=open_next_output,
            path=str(site_path),
            functions={},
            config=WarmerConfig(enabled=False),
        )
        assert warmer.warmer_function is None
        assert warmer.event_rule is None

    @pulumi.runtime.test
    def test_no_warmer_bundle_creates_nothing(self, manifest, site_path):
        """Test that a manifest without a warmer bundle is a no-op."""
        del manifest["additionalProps"]["warmer"]
        warmer = WarmerComponent(
            "warmer-nobundle",
            site_name="warmer-nobundle",
            open_next_output=OpenNextOutput.model_validate(manifest),
            path=str(site_path),
            functions={},
            config=WarmerConfig(enabled=True),
        )
        assert warmer.warmer_function is None

    @pulumi.runtime.test
    def test_enabled_wires_schedule_and_params(self, open_next_output, site_path):
        """Test the warmer function, its env and the EventBridge rule."""
        warmer = WarmerComponent(
            "warm",
            site_name="warm",
            open_next_output=open_next_output,
            path=str(site_path),
            functions=make_functions("warm"),
            config=WarmerConfig(
                enabled=True,
                schedule="cron(0/5 9-17 ? * MON-FRI *)",
                functions={"api": {"concurrency": 3}},
                payload={"source": "warmer"},
            ),
        )
        assert json.loads(warmer.environment_variables["WARMER_PAYLOAD"]) == {"source": "warmer"}

        def check(args):
            schedule, state, warm_params, timeout, memory = args
            assert schedule == "cron(0/5 9-17 ? * MON-FRI *)"
            assert state == "ENABLED"
            assert json.loads(warm_params) == [
                {"function": "warm-default-origin-lambda", "concurrency": 1},
                {"function": "warm-api-origin-lambda", "concurrency": 3},
            ]
            assert timeout == 900
            assert memory == 128

        return pulumi.Output.all(
            warmer.event_rule.schedule_expression,
            warmer.event_rule.state,
            warmer.environment_variables["WARM_PARAMS"],
            warmer.warmer_function.timeout,
            warmer.warmer_function.memory_size,
        ).apply(check)

    @pulumi.runtime.test
    def test_invoke_policy_and_schedule_permission(self, open_next_output, site_path):
        """Test that the warmer may invoke every function and EventBridge may invoke the warmer."""
        functions = make_functions("warm-iam")

        with patch.object(aws.iam, "Policy", wraps=aws.iam.Policy) as policy, patch.object(
            aws.lambda_, "Permission", wraps=aws.lambda_.Permission
        ) as permission:
            warmer = WarmerComponent(
                "warm-iam",
                site_name="warm-iam",
                open_next_output=open_next_output,
                path=str(site_path),
                functions=functions,
                config=WarmerConfig(enabled=True),
            )

        permission.assert_called_once()
        name = permission.call_args.args[0]
        kwargs = permission.call_args.kwargs
        assert name == "warm-iam-warmer-eventbridge-permission"
        assert kwargs["action"] == "lambda:InvokeFunction"
        assert kwargs["principal"] == "events.amazonaws.com"
        assert kwargs["function"] is warmer.warmer_function.name
        assert kwargs["source_arn"] is warmer.event_rule.arn

        policies = {call.args[0]: call.kwargs for call in policy.call_args_list}
        invoke_policy = policies["warm-iam-warmer-invoke-policy"]["policy"]

        def check(args):
            document, *arns = args
            statement = json.loads(document)["Statement"][0]
            assert statement["Effect"] == "Allow"
            assert statement["Action"] == ["lambda:InvokeFunction"]
            assert statement["Resource"] == arns
            assert len(arns) == 2

        return pulumi.Output.all(
            invoke_policy, *[fn.arn for fn in functions.values()]
        ).apply(check)

    @pulumi.runtime.test
    def test_warmer_resources_tagged(self, open_next_output, site_path):
        """Test that component tags reach the warmer function and rule."""
        warmer = WarmerComponent(
            "warm-tags",
            site_name="warm-tags",
            open_next_output=open_next_output,
            path=str(site_path),
            functions=make_functions("warm-tags"),
            config=WarmerConfig(enabled=True),
            tags={"Project": "nextjs-pulumi"},
        )

        def check(args):
            function_tags, rule_tags = args
            assert function_tags == {"Project": "nextjs-pulumi"}
            assert rule_tags == {"Project": "nextjs-pulumi"}

        return pulumi.Output.all(warmer.warmer_function.tags, warmer.event_rule.tags).apply(check)
