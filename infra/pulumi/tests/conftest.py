"""Pytest configuration and fixtures for the infrastructure components.

Pulumi mocks are installed BEFORE any component module is imported, so
every resource registered during the tests resolves against the mock
engine instead of AWS.
"""

import copy
import json

import pulumi

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"


class Mocks(pulumi.runtime.Mocks):
    """Echo inputs back as state and fill in the attributes AWS computes."""

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        state = dict(args.inputs)
        name = state.get("name") or args.name
        state.setdefault("name", name)
        state.setdefault("arn", f"arn:aws:mock:{REGION}:{ACCOUNT_ID}:{args.typ}/{name}")

        if args.typ == "aws:s3/bucketV2:BucketV2":
            bucket = state.get("bucket") or args.name
            state["arn"] = f"arn:aws:s3:::{bucket}"
            state["bucket"] = bucket
            state["bucketRegionalDomainName"] = f"{bucket}.s3.{REGION}.amazonaws.com"
        elif args.typ == "aws:sqs/queue:Queue":
            state["url"] = f"https://sqs.{REGION}.amazonaws.com/{ACCOUNT_ID}/{name}"
        elif args.typ == "aws:lambda/functionUrl:FunctionUrl":
            state["functionUrl"] = f"https://{args.name}.lambda-url.{REGION}.on.aws/"
        elif args.typ == "aws:cloudfront/distribution:Distribution":
            state["domainName"] = "d111111abcdef8.cloudfront.net"
        elif args.typ == "aws:cloudfront/originAccessIdentity:OriginAccessIdentity":
            state["iamArn"] = f"arn:aws:iam::cloudfront:user/{args.name}"
            state["cloudfrontAccessIdentityPath"] = f"origin-access-identity/cloudfront/{args.name}"

        return [f"{args.name}_id", state]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


pulumi.runtime.set_mocks(Mocks(), preview=False)

import pytest

OPEN_NEXT_MANIFEST = {
    "edgeFunctions": {},
    "origins": {
        "s3": {
            "type": "s3",
            "originPath": "_assets",
            "copy": [
                {
                    "from": ".open-next/assets",
                    "to": "_assets",
                    "cached": True,
                    "versionedSubDir": "_next",
                },
                {"from": ".open-next/cache", "to": "_cache", "cached": False},
            ],
        },
        "imageOptimizer": {
            "type": "function",
            "handler": "index.handler",
            "bundle": ".open-next/image-optimization-function",
            "streaming": False,
        },
        "default": {
            "type": "function",
            "handler": "index.handler",
            "bundle": ".open-next/server-functions/default",
            "streaming": False,
        },
        "api": {
            "type": "function",
            "handler": "index.handler",
            "bundle": ".open-next/server-functions/api",
            "streaming": True,
        },
    },
    "behaviors": [
        {"pattern": "_next/image*", "origin": "imageOptimizer"},
        {"pattern": "_next/data/*", "origin": "default"},
        {"pattern": "api/*", "origin": "api"},
        {"pattern": "*", "origin": "default"},
        {"pattern": "BUILD_ID", "origin": "s3"},
        {"pattern": "_next/*", "origin": "s3"},
        {"pattern": "favicon.ico", "origin": "s3"},
    ],
    "additionalProps": {
        "disableIncrementalCache": False,
        "disableTagCache": False,
        "initializationFunction": {
            "handler": "index.handler",
            "bundle": ".open-next/dynamodb-provider",
        },
        "warmer": {"handler": "index.handler", "bundle": ".open-next/warmer-function"},
        "revalidationFunction": {
            "handler": "index.handler",
            "bundle": ".open-next/revalidation-function",
        },
    },
}

SITE_FILES = {
    ".open-next/assets/favicon.ico": "ico",
    ".open-next/assets/BUILD_ID": "build-1",
    ".open-next/assets/_next/static/chunks/main.js": "console.log('main');",
    ".open-next/assets/_next/static/css/app.css": "body{}",
    ".open-next/cache/build-1/index.cache": "{}",
    ".open-next/server-functions/default/index.mjs": "export const handler = () => {};",
    ".open-next/server-functions/api/index.mjs": "export const handler = () => {};",
    ".open-next/image-optimization-function/index.mjs": "export const handler = () => {};",
    ".open-next/dynamodb-provider/index.mjs": "export const handler = () => {};",
    ".open-next/warmer-function/index.mjs": "export const handler = () => {};",
    ".open-next/revalidation-function/index.mjs": "export const handler = () => {};",
}


@pytest.fixture
def manifest():
    """A fresh copy of the OpenNext manifest for mutation in tests."""
    return copy.deepcopy(OPEN_NEXT_MANIFEST)


def write_site(root, manifest):
    """Write a built Next.js app (OpenNext output) under root."""
    for relative, content in SITE_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    (root / ".open-next" / "open-next.output.json").write_text(json.dumps(manifest))
    return root


@pytest.fixture
def site_path(tmp_path, manifest):
    """Path of a built app with assets, cache entries and every bundle."""
    return write_site(tmp_path / "web", manifest)


@pytest.fixture
def open_next_output(manifest):
    """The parsed manifest."""
    from components.manifest import OpenNextOutput

    return OpenNextOutput.model_validate(manifest)


@pytest.fixture
def build_site(tmp_path):
    """Factory writing a built app for a customised manifest."""

    def build(manifest, name="custom"):
        return write_site(tmp_path / name, manifest)

    return build
