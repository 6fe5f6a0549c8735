"""Distribution Infrastructure Component - CloudFront in front of S3 and Lambda.

This module creates the CDN layer for the site:
- Origin Access Identity for the private asset bucket
- Origin Access Control for the IAM-authenticated Function URLs
- A viewer-request CloudFront Function forwarding the original host
- Server and API cache policies alongside managed static policies
- Cache behaviors mapped 1:1 from the OpenNext manifest
"""

import json

import pulumi
import pulumi_aws as aws

from components.manifest import Behavior, OpenNextOutput

# Managed-CachingOptimized
STATIC_CACHE_POLICY_ID = "658327ea-f89d-4fab-a63d-7e88639e58f6"
# Managed-AllViewerExceptHostHeader
ALL_VIEWER_EXCEPT_HOST_HEADER_POLICY_ID = "b689b0a8-53d0-40ab-baf2-68738e2966ac"

READ_METHODS = ["GET", "HEAD", "OPTIONS"]
ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]

SERVER_CACHE_HEADERS = [
    "accept",
    "rsc",
    "next-router-prefetch",
    "next-router-state-tree",
    "next-url",
    "x-prerender-revalidate",
]
API_CACHE_HEADERS = [
    "authorization",
    "content-type",
    "accept",
    "user-agent",
    "referer",
    "x-forwarded-for",
    "cloudfront-viewer-country",
]

VIEWER_REQUEST_FUNCTION_CODE = """
function handler(event) {
  var request = event.request;
  request.headers["x-forwarded-host"] = request.headers.host;
  return request;
}
"""


# =============================================================================
# Behavior mapping
# =============================================================================


def resolve_origin_id(behavior: Behavior) -> str:
    """Origin ID a behavior targets; `imageOptimization` is served by `imageOptimizer`."""
    if not behavior.origin:
        raise ValueError(f"Behavior '{behavior.pattern}' has no origin")
    if behavior.origin == "imageOptimization":
        return "imageOptimizer"
    return behavior.origin


def is_api_behavior(origin_id: str, pattern: str) -> bool:
    return "edge" in origin_id.lower() or pattern.startswith("api/")


def make_behavior(
    origin_id: str,
    cache_policy_id: pulumi.Input[str],
    function_arn: pulumi.Input[str],
    path_pattern: str | None = None,
    origin_request_policy_id: str | None = None,
    allowed_methods: list[str] | None = None,
    cached_methods: list[str] | None = None,
) -> dict:
    """Build a cache behavior as keyword arguments for the CloudFront args types."""
    behavior = {
        "target_origin_id": origin_id,
        "viewer_protocol_policy": "redirect-to-https",
        "allowed_methods": allowed_methods or list(READ_METHODS),
        "cached_methods": cached_methods or list(READ_METHODS),
        "cache_policy_id": cache_policy_id,
        "compress": True,
        "function_associations": [
            {"event_type": "viewer-request", "function_arn": function_arn}
        ],
    }
    if path_pattern is not None:
        behavior["path_pattern"] = path_pattern
    if origin_request_policy_id:
        behavior["origin_request_policy_id"] = origin_request_policy_id
    return behavior


def build_cache_behaviors(
    output: OpenNextOutput,
    server_cache_policy_id: pulumi.Input[str],
    api_cache_policy_id: pulumi.Input[str],
    function_arn: pulumi.Input[str],
) -> list[dict]:
    """Map every non-default manifest behavior to an ordered cache behavior.

    S3 paths use the managed static policy and never forward viewer headers.
    API and edge routes accept every method and skip the shared server cache.
    """
    behaviors = []
    for behavior in output.ordered_behaviors():
        origin_id = resolve_origin_id(behavior)

        if origin_id == "s3":
            behaviors.append(
                make_behavior(
                    origin_id,
                    STATIC_CACHE_POLICY_ID,
                    function_arn,
                    path_pattern=behavior.pattern,
                )
            )
        elif is_api_behavior(origin_id, behavior.pattern):
            behaviors.append(
                make_behavior(
                    origin_id,
                    api_cache_policy_id,
                    function_arn,
                    path_pattern=behavior.pattern,
                    origin_request_policy_id=ALL_VIEWER_EXCEPT_HOST_HEADER_POLICY_ID,
                    allowed_methods=list(ALL_METHODS),
                    cached_methods=["GET", "HEAD"],
                )
            )
        else:
            behaviors.append(
                make_behavior(
                    origin_id,
                    server_cache_policy_id,
                    function_arn,
                    path_pattern=behavior.pattern,
                    origin_request_policy_id=ALL_VIEWER_EXCEPT_HOST_HEADER_POLICY_ID,
                )
            )
    return behaviors


def build_default_behavior(
    output: OpenNextOutput,
    server_cache_policy_id: pulumi.Input[str],
    function_arn: pulumi.Input[str],
) -> dict:
    """The `*` behavior, without a path pattern."""
    default = output.default_behavior()
    if default is None:
        raise ValueError("OpenNext output has no default ('*') behavior")
    return make_behavior(
        resolve_origin_id(default),
        server_cache_policy_id,
        function_arn,
        origin_request_policy_id=ALL_VIEWER_EXCEPT_HOST_HEADER_POLICY_ID,
    )


def function_url_host(url: str) -> str:
    """`https://abc.lambda-url.us-east-1.on.aws/` -> `abc.lambda-url.us-east-1.on.aws`."""
    return url.split("//", 1)[1].split("/", 1)[0]


# =============================================================================
# Component
# =============================================================================


class DistributionComponent(pulumi.ComponentResource):
    """CloudFront distribution routing to the asset bucket and function URLs."""

    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        bucket_id: pulumi.Input[str],
        bucket_arn: pulumi.Input[str],
        bucket_regional_domain_name: pulumi.Input[str],
        functions: dict[str, aws.lambda_.Function],
        function_urls: dict[str, pulumi.Output[str]],
        web_acl_arn: pulumi.Input[str] | None = None,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Create the CloudFront distribution.

        Args:
            name: Component resource name
            site_name: Site name used to prefix child resources
            open_next_output: Parsed OpenNext manifest
            bucket_id: Asset bucket name
            bucket_arn: Asset bucket ARN
            bucket_regional_domain_name: Regional domain of the asset bucket
            functions: Origin key -> Lambda function
            function_urls: Origin key -> Function URL
            web_acl_arn: Optional WAFv2 WebACL ARN to attach
            tags: Tags for the distribution
            opts: Pulumi resource options
        """
        super().__init__("nextjs:distribution:Distribution", name, None, opts)

        self.site_name = site_name
        self.tags = tags or {}
        child_opts = pulumi.ResourceOptions(parent=self)

        # =====================================================================
        # Origin access
        # =====================================================================
        self.origin_access_identity = aws.cloudfront.OriginAccessIdentity(
            f"{site_name}-origin-identity",
            opts=child_opts,
        )

        self.bucket_policy = aws.s3.BucketPolicy(
            f"{site_name}-bucket-policy",
            bucket=bucket_id,
            policy=pulumi.Output.all(
                bucket_arn, self.origin_access_identity.iam_arn
            ).apply(lambda args: self._create_bucket_policy(args[0], args[1])),
            opts=child_opts,
        )

        self.origin_access_control = aws.cloudfront.OriginAccessControl(
            f"{site_name}-lambda-oac",
            name=f"{site_name}-lambda-oac",
            description="Origin Access Control for Lambda Function URLs",
            origin_access_control_origin_type="lambda",
            signing_behavior="always",
            signing_protocol="sigv4",
            opts=child_opts,
        )

        # =====================================================================
        # Edge function and cache policies
        # =====================================================================
        self.cloudfront_function = aws.cloudfront.Function(
            f"{site_name}-cloudfront-function",
            code=VIEWER_REQUEST_FUNCTION_CODE,
            runtime="cloudfront-js-1.0",
            publish=True,
            opts=child_opts,
        )

        self.server_cache_policy = self._create_cache_policy(
            f"{site_name}-cache-policy",
            comment="Pulumi Cloud server response cache policy",
            default_ttl=60,
            cookie_behavior="none",
            headers=SERVER_CACHE_HEADERS,
        )
        self.api_cache_policy = self._create_cache_policy(
            f"{site_name}-api-cache-policy",
            comment="API routes cache policy for edge functions",
            default_ttl=0,
            cookie_behavior="all",
            headers=API_CACHE_HEADERS,
        )

        # =====================================================================
        # CloudFront Distribution
        # =====================================================================
        ordered = build_cache_behaviors(
            open_next_output,
            self.server_cache_policy.id,
            self.api_cache_policy.id,
            self.cloudfront_function.arn,
        )
        default = build_default_behavior(
            open_next_output, self.server_cache_policy.id, self.cloudfront_function.arn
        )

        self.distribution = aws.cloudfront.Distribution(
            f"{site_name}-distribution",
            comment="Next.js site deployed with Pulumi",
            enabled=True,
            is_ipv6_enabled=True,
            http_version="http2",
            aliases=[],
            origins=self._create_origins(
                open_next_output, bucket_regional_domain_name, function_urls
            ),
            default_cache_behavior=aws.cloudfront.DistributionDefaultCacheBehaviorArgs(
                **{
                    **default,
                    "function_associations": [
                        aws.cloudfront.DistributionDefaultCacheBehaviorFunctionAssociationArgs(**fa)
                        for fa in default["function_associations"]
                    ],
                }
            ),
            ordered_cache_behaviors=[
                aws.cloudfront.DistributionOrderedCacheBehaviorArgs(
                    **{
                        **b,
                        "function_associations": [
                            aws.cloudfront.DistributionOrderedCacheBehaviorFunctionAssociationArgs(**fa)
                            for fa in b["function_associations"]
                        ],
                    }
                )
                for b in ordered
            ],
            restrictions=aws.cloudfront.DistributionRestrictionsArgs(
                geo_restriction=aws.cloudfront.DistributionRestrictionsGeoRestrictionArgs(
                    restriction_type="none",
                ),
            ),
            viewer_certificate=aws.cloudfront.DistributionViewerCertificateArgs(
                cloudfront_default_certificate=True,
                minimum_protocol_version="TLSv1.2_2021",
                ssl_support_method="sni-only",
            ),
            web_acl_id=web_acl_arn,
            tags=self.tags,
            opts=child_opts,
        )

        # Function URLs use AWS_IAM auth; let this distribution sign requests
        for key, fn in functions.items():
            aws.lambda_.Permission(
                f"{site_name}-{key}-cloudfront-oac-permission",
                action="lambda:InvokeFunctionUrl",
                function=fn.name,
                principal="cloudfront.amazonaws.com",
                source_arn=self.distribution.arn,
                opts=child_opts,
            )

        self.register_outputs(
            {
                "distribution_id": self.distribution.id,
                "distribution_domain": self.distribution.domain_name,
                "distribution_arn": self.distribution.arn,
            }
        )

    def _create_origins(
        self,
        output: OpenNextOutput,
        bucket_regional_domain_name: pulumi.Input[str],
        function_urls: dict[str, pulumi.Output[str]],
    ) -> list[aws.cloudfront.DistributionOriginArgs]:
        origins = [
            aws.cloudfront.DistributionOriginArgs(
                origin_id="s3",
                domain_name=bucket_regional_domain_name,
                origin_path=f"/{output.s3_origin.origin_path}",
                s3_origin_config=aws.cloudfront.DistributionOriginS3OriginConfigArgs(
                    origin_access_identity=self.origin_access_identity.cloudfront_access_identity_path,
                ),
            )
        ]

        # Origin IDs match the manifest keys so behaviors resolve directly
        for key, url in function_urls.items():
            origins.append(
                aws.cloudfront.DistributionOriginArgs(
                    origin_id=key,
                    domain_name=url.apply(function_url_host),
                    origin_access_control_id=self.origin_access_control.id,
                    custom_origin_config=aws.cloudfront.DistributionOriginCustomOriginConfigArgs(
                        http_port=80,
                        https_port=443,
                        origin_protocol_policy="https-only",
                        origin_read_timeout=10,
                        origin_ssl_protocols=["TLSv1.2"],
                    ),
                )
            )
        return origins

    def _create_cache_policy(
        self,
        resource_name: str,
        comment: str,
        default_ttl: int,
        cookie_behavior: str,
        headers: list[str],
    ) -> aws.cloudfront.CachePolicy:
        return aws.cloudfront.CachePolicy(
            resource_name,
            comment=comment,
            default_ttl=default_ttl,
            max_ttl=31536000,
            min_ttl=0,
            parameters_in_cache_key_and_forwarded_to_origin=aws.cloudfront.CachePolicyParametersInCacheKeyAndForwardedToOriginArgs(
                cookies_config=aws.cloudfront.CachePolicyParametersInCacheKeyAndForwardedToOriginCookiesConfigArgs(
                    cookie_behavior=cookie_behavior,
                ),
                headers_config=aws.cloudfront.CachePolicyParametersInCacheKeyAndForwardedToOriginHeadersConfigArgs(
                    header_behavior="whitelist",
                    headers=aws.cloudfront.CachePolicyParametersInCacheKeyAndForwardedToOriginHeadersConfigHeadersArgs(
                        items=headers,
                    ),
                ),
                query_strings_config=aws.cloudfront.CachePolicyParametersInCacheKeyAndForwardedToOriginQueryStringsConfigArgs(
                    query_string_behavior="all",
                ),
                enable_accept_encoding_brotli=True,
                enable_accept_encoding_gzip=True,
            ),
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _create_bucket_policy(self, bucket_arn: str, oai_iam_arn: str) -> str:
        """Create S3 bucket policy allowing the OAI to read assets."""
        policy = {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "s3:GetObject",
                    "Effect": "Allow",
                    "Principal": {"AWS": oai_iam_arn},
                    "Resource": f"{bucket_arn}/*",
                }
            ],
        }
        return json.dumps(policy)
