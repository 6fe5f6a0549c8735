"""Next.js on AWS Infrastructure - Main Entry Point.

Deploys an OpenNext build of the web app with Pulumi.

Architecture:
- CDN: CloudFront with an optional WAFv2 WebACL
- Server: AWS Lambda behind IAM-authenticated Function URLs
- Assets: S3 (private, read through an Origin Access Identity)
- ISR: DynamoDB tag cache + SQS FIFO revalidation queue
- Warmer: EventBridge schedule invoking OpenNext's warmer
"""

import pulumi

from components.site import NextJsSite, site_args_from_config

SITE_NAME = "nextjs-pulumi"

# Get configuration
config = pulumi.Config()
aws_config = pulumi.Config("aws")
aws_region = aws_config.require("region")  # Get from aws:region config

# Common tags for all resources
common_tags = {
    "Project": SITE_NAME,
    "Environment": pulumi.get_stack(),
    "ManagedBy": "pulumi",
}

# =============================================================================
# Site
# =============================================================================
site = NextJsSite(
    SITE_NAME,
    site_args_from_config(config, region=aws_region, tags=common_tags),
)

# Site outputs
pulumi.export("url", site.url)
pulumi.export("domain_name", site.domain_name)
pulumi.export("bucket_name", site.storage.bucket.bucket)
pulumi.export("distribution_id", site.distribution.distribution.id)
