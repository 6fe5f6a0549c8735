"""WAF Component - WAFv2 WebACL for the CloudFront distribution.

CloudFront-scoped WAF resources only exist in us-east-1, so everything here
is created through a dedicated provider regardless of the stack region.
"""

import pulumi
import pulumi_aws as aws
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WAF_REGION = "us-east-1"


class WafConfig(BaseModel):
    """WAF settings, accepted in snake_case or camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    enabled: bool = False
    # Requests per IP per 5-minute window; 0 disables the rule
    rate_limit: int = Field(default=2000, ge=0)
    enable_common_rule_set: bool = True
    enable_known_bad_inputs: bool = True
    enable_anonymous_ip_list: bool = False
    enable_ip_reputation_list: bool = False
    block_ip_addresses: list[str] = Field(default_factory=list)
    allow_ip_addresses: list[str] = Field(default_factory=list)
    # ISO 3166-1 alpha-2
    block_countries: list[str] = Field(default_factory=list)
    enable_metrics: bool = True
    enable_sampled_requests: bool = True


MANAGED_RULE_GROUPS = [
    ("AWSManagedRulesCommonRuleSet", "common-rule-set", "enable_common_rule_set"),
    ("AWSManagedRulesKnownBadInputsRuleSet", "known-bad-inputs", "enable_known_bad_inputs"),
    ("AWSManagedRulesAnonymousIpList", "anonymous-ip-list", "enable_anonymous_ip_list"),
    ("AWSManagedRulesAmazonIpReputationList", "ip-reputation-list", "enable_ip_reputation_list"),
]


def _visibility(name: str, slug: str, config: WafConfig) -> dict:
    return {
        "cloudwatch_metrics_enabled": config.enable_metrics,
        "metric_name": f"{name}-{slug}-metric",
        "sampled_requests_enabled": config.enable_sampled_requests,
    }


def build_waf_rules(
    name: str,
    config: WafConfig,
    blocked_ip_set_arn: pulumi.Input[str] | None = None,
    allowed_ip_set_arn: pulumi.Input[str] | None = None,
) -> list[dict]:
    """Build WebACL rules in evaluation order.

    IP rules are only emitted when the matching IP set ARN is given.
    Priorities are assigned consecutively from 1 over the enabled rules.
    """
    rules: list[dict] = []

    def add(rule_name: str, slug: str, **rule) -> None:
        rules.append(
            {
                "name": rule_name,
                "priority": len(rules) + 1,
                **rule,
                "visibility_config": _visibility(name, slug, config),
            }
        )

    if config.rate_limit > 0:
        add(
            "RateLimitRule",
            "rate-limit",
            action={"block": {}},
            statement={
                "rate_based_statement": {
                    "limit": config.rate_limit,
                    "aggregate_key_type": "IP",
                }
            },
        )

    if blocked_ip_set_arn is not None:
        add(
            "BlockSpecificIPs",
            "blocked-ips",
            action={"block": {}},
            statement={"ip_set_reference_statement": {"arn": blocked_ip_set_arn}},
        )

    if allowed_ip_set_arn is not None:
        add(
            "AllowSpecificIPs",
            "allowed-ips",
            action={"allow": {}},
            statement={"ip_set_reference_statement": {"arn": allowed_ip_set_arn}},
        )

    if config.block_countries:
        add(
            "BlockCountries",
            "blocked-countries",
            action={"block": {}},
            statement={"geo_match_statement": {"country_codes": config.block_countries}},
        )

    for group_name, slug, flag in MANAGED_RULE_GROUPS:
        if getattr(config, flag):
            add(
                group_name,
                slug,
                override_action={"none": {}},
                statement={
                    "managed_rule_group_statement": {
                        "vendor_name": "AWS",
                        "name": group_name,
                    }
                },
            )

    return rules


class WafComponent(pulumi.ComponentResource):
    """CloudFront-scoped WebACL with rate limiting, IP/geo rules and AWS managed rules."""

    def __init__(
        self,
        name: str,
        config: WafConfig,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("nextjs:security:Waf", name, None, opts)

        self.tags = tags or {}

        if not config.enabled:
            raise ValueError("WAF is disabled. Do not create this resource.")

        self.provider = aws.Provider(
            f"{name}-{WAF_REGION}-provider",
            region=WAF_REGION,
            opts=pulumi.ResourceOptions(parent=self),
        )
        waf_opts = pulumi.ResourceOptions(parent=self, provider=self.provider)

        self.blocked_ip_set: aws.wafv2.IpSet | None = None
        if config.block_ip_addresses:
            self.blocked_ip_set = aws.wafv2.IpSet(
                f"{name}-blocked-ips",
                scope="CLOUDFRONT",
                ip_address_version="IPV4",
                addresses=config.block_ip_addresses,
                tags=self.tags,
                opts=waf_opts,
            )

        self.allowed_ip_set: aws.wafv2.IpSet | None = None
        if config.allow_ip_addresses:
            self.allowed_ip_set = aws.wafv2.IpSet(
                f"{name}-allowed-ips",
                scope="CLOUDFRONT",
                ip_address_version="IPV4",
                addresses=config.allow_ip_addresses,
                tags=self.tags,
                opts=waf_opts,
            )

        rules = build_waf_rules(
            name,
            config,
            blocked_ip_set_arn=self.blocked_ip_set.arn if self.blocked_ip_set else None,
            allowed_ip_set_arn=self.allowed_ip_set.arn if self.allowed_ip_set else None,
        )

        self.web_acl = aws.wafv2.WebAcl(
            f"{name}-waf",
            scope="CLOUDFRONT",
            description="WAF for Next.js application",
            default_action={"allow": {}},
            rules=rules,
            visibility_config=_visibility(name, "waf", config),
            tags={**self.tags, "Name": f"{name}-waf", "ManagedBy": "Pulumi"},
            opts=waf_opts,
        )

        self.register_outputs(
            {
                "web_acl_arn": self.web_acl.arn,
                "web_acl_id": self.web_acl.id,
            }
        )
