"""Components package for the Next.js site infrastructure.

OpenNext on AWS:
- NextJsSite: Top-level component wiring everything below
- StorageComponent: S3 bucket for assets and the ISR cache
- DatabaseComponent: DynamoDB tag cache with its seeder function
- RevalidationQueueComponent: SQS FIFO queue with its consumer
- FunctionsComponent: Lambda + Function URL per server origin
- DistributionComponent: CloudFront routing to S3 and the functions
- WafComponent: WAFv2 WebACL for CloudFront
- WarmerComponent: Scheduled warmer for the server functions
"""

from components.database import DatabaseComponent
from components.distribution import DistributionComponent
from components.functions import FunctionsComponent
from components.messaging import RevalidationQueueComponent
from components.site import NextJsSite, SiteArgs
from components.storage import StorageComponent
from components.waf import WafComponent, WafConfig
from components.warmer import WarmerComponent, WarmerConfig

__all__ = [
    "DatabaseComponent",
    "DistributionComponent",
    "FunctionsComponent",
    "NextJsSite",
    "RevalidationQueueComponent",
    "SiteArgs",
    "StorageComponent",
    "WafComponent",
    "WafConfig",
    "WarmerComponent",
    "WarmerConfig",
]
