"""NextJsSite - the top-level component deploying an OpenNext build.

Wires the child components together:

    Storage, Database, Queue -> Functions -> (WAF) -> Distribution -> (Warmer)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pulumi
import pulumi_aws as aws
from bundles.symlinks import PnpmSymlinkFixer

from components.database import TABLE_NAME, DatabaseComponent
from components.distribution import DistributionComponent
from components.function_config import FunctionConfigManager, LambdaSettings
from components.functions import FunctionsComponent
from components.manifest import OPEN_NEXT_DIR, load_open_next_output
from components.messaging import RevalidationQueueComponent
from components.storage import StorageComponent
from components.waf import WafComponent, WafConfig
from components.warmer import WarmerComponent, WarmerConfig

DEFAULT_SITE_PATH = "../apps/web"
CACHE_KEY_PREFIX = "_cache"
ASSETS_KEY_PREFIX = "_assets"


@dataclass
class SiteArgs:
    path: str = DEFAULT_SITE_PATH
    environment: dict[str, pulumi.Input[str]] = field(default_factory=dict)
    warmer: WarmerConfig | None = None
    waf: WafConfig | None = None
    lambda_config: dict[str, LambdaSettings | dict[str, Any]] | None = None
    # Repair pnpm symlinks in the bundles before packaging them
    fix_sym_links: bool = False
    # Defaults to the provider region
    region: str | None = None
    # Applied to every taggable child resource
    tags: dict[str, str] = field(default_factory=dict)


def site_args_from_config(
    config: pulumi.Config, region: str | None = None, tags: dict[str, str] | None = None
) -> SiteArgs:
    """Read site settings from stack config.

    The optional `warmer` and `waf` blocks are validated here so an unknown
    key fails the preview instead of silently falling back to a default.

    Raises:
        pydantic.ValidationError: If `warmer` or `waf` is malformed
        FunctionConfigError: If `lambda_config` is malformed
    """
    warmer = config.get_object("warmer")
    waf = config.get_object("waf")
    lambda_config = config.get_object("lambda_config")

    # Resolve settings now; the site re-validates the same mapping later
    FunctionConfigManager(lambda_config)

    return SiteArgs(
        path=config.get("path") or DEFAULT_SITE_PATH,
        environment=config.get_object("environment") or {},
        warmer=WarmerConfig.model_validate(warmer) if warmer else None,
        waf=WafConfig.model_validate(waf) if waf else None,
        lambda_config=lambda_config,
        fix_sym_links=config.get_bool("fix_sym_links") or False,
        region=region,
        tags=tags or {},
    )


class NextJsSite(pulumi.ComponentResource):
    """Next.js site on Lambda + CloudFront, built with OpenNext."""

    domain_name: pulumi.Output[str]
    url: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        args: SiteArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Deploy a built Next.js app.

        Args:
            name: Site name, used to prefix every child resource
            args: Site configuration
            opts: Pulumi resource options

        Raises:
            FileNotFoundError: If the app has not been built with OpenNext
            FunctionConfigError: If `lambda_config` holds invalid settings
        """
        super().__init__("cloud:index:NextJsSite", name, None, opts)

        args = args or SiteArgs()
        self.name = name
        self.path = args.path
        self.region = args.region or aws.config.region or "us-east-1"
        self.tags = args.tags
        child_opts = pulumi.ResourceOptions(parent=self)

        if args.fix_sym_links:
            self._fix_sym_links()

        # Validate before creating anything
        config_manager = FunctionConfigManager(args.lambda_config)
        self.open_next_output = load_open_next_output(self.path)

        # =====================================================================
        # Storage, tag cache and revalidation queue
        # =====================================================================
        self.storage = StorageComponent(
            f"{name}-storage",
            site_name=name,
            open_next_output=self.open_next_output,
            path=self.path,
            tags=self.tags,
            opts=child_opts,
        )
        self.database = DatabaseComponent(
            f"{name}-database",
            site_name=name,
            open_next_output=self.open_next_output,
            path=self.path,
            seeder_required=True,
            tags=self.tags,
            opts=child_opts,
        )
        self.queue = RevalidationQueueComponent(
            f"{name}-queue",
            site_name=name,
            open_next_output=self.open_next_output,
            path=self.path,
            tags=self.tags,
            opts=child_opts,
        )

        # =====================================================================
        # Server functions
        # =====================================================================
        self.functions = FunctionsComponent(
            f"{name}-functions",
            site_name=name,
            open_next_output=self.open_next_output,
            path=self.path,
            environment=self._build_environment(args.environment),
            bucket_policy_arn=self.storage.bucket_policy.arn,
            table_policy_arn=self.database.table_policy.arn,
            queue_policy_arn=self.queue.queue_policy.arn,
            config_manager=config_manager,
            tags=self.tags,
            opts=child_opts,
        )

        # =====================================================================
        # Edge: WAF and CloudFront
        # =====================================================================
        self.waf: WafComponent | None = None
        if args.waf is not None and args.waf.enabled:
            self.waf = WafComponent(
                f"{name}-waf", args.waf, tags=self.tags, opts=child_opts
            )

        self.distribution = DistributionComponent(
            f"{name}-distribution",
            site_name=name,
            open_next_output=self.open_next_output,
            bucket_id=self.storage.bucket.id,
            bucket_arn=self.storage.bucket.arn,
            bucket_regional_domain_name=self.storage.bucket.bucket_regional_domain_name,
            functions=self.functions.functions,
            function_urls=self.functions.function_urls,
            web_acl_arn=self.waf.web_acl.arn if self.waf else None,
            tags=self.tags,
            opts=child_opts,
        )

        self.warmer: WarmerComponent | None = None
        if args.warmer is not None and args.warmer.enabled:
            self.warmer = WarmerComponent(
                f"{name}-warmer",
                site_name=name,
                open_next_output=self.open_next_output,
                path=self.path,
                functions=self.functions.functions,
                config=args.warmer,
                tags=self.tags,
                opts=child_opts,
            )

        self.domain_name = self.distribution.distribution.domain_name
        self.url = self.domain_name.apply(lambda domain: f"https://{domain}")

        self.register_outputs(
            {
                "domain_name": self.domain_name,
                "url": self.url,
                "bucket_name": self.storage.bucket.bucket,
                "distribution_id": self.distribution.distribution.id,
            }
        )

    def _build_environment(
        self, user_environment: dict[str, pulumi.Input[str]]
    ) -> dict[str, pulumi.Input[str]]:
        """Variables the OpenNext server bundle expects, then user overrides."""
        bucket_name = self.storage.bucket.bucket
        return {
            "CACHE_BUCKET_NAME": bucket_name,
            "CACHE_BUCKET_KEY_PREFIX": CACHE_KEY_PREFIX,
            "CACHE_BUCKET_REGION": self.region,
            "REVALIDATION_QUEUE_URL": self.queue.queue.url,
            "REVALIDATION_QUEUE_REGION": self.region,
            "CACHE_DYNAMO_TABLE": TABLE_NAME,
            "BUCKET_NAME": bucket_name,
            "BUCKET_KEY_PREFIX": ASSETS_KEY_PREFIX,
            **user_environment,
        }

    def _fix_sym_links(self) -> None:
        fixer = PnpmSymlinkFixer(Path(self.path, OPEN_NEXT_DIR))
        if not fixer.fix_all():
            pulumi.log.warn(
                f"Symlink repair reported {fixer.errors} unresolved link(s) "
                f"under {fixer.open_next_dir}"
            )
