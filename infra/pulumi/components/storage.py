"""Storage Component - S3 bucket for static assets and the ISR cache.

OpenNext lists one or more copy instructions under `origins.s3.copy`; every
file they cover becomes a `BucketObject` with a cache policy matching
whether the file is content-hashed (immutable) or not.
"""

import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path

import pulumi
import pulumi_aws as aws

from components.iam import compute_hex_hash, create_bucket_policy
from components.manifest import OpenNextOutput, S3OriginCopy

IMMUTABLE_CACHE_CONTROL = "public,max-age=31536000,immutable"
REVALIDATE_CACHE_CONTROL = "public,max-age=0,s-maxage=31536000,must-revalidate"


@dataclass(frozen=True)
class AssetUpload:
    """A single file scheduled for upload."""

    path: Path
    key: str
    cache_control: str
    content_type: str | None
    resource_suffix: str


def _dir_identity(path: str | Path) -> tuple[int, int]:
    stat = os.stat(path)
    return stat.st_dev, stat.st_ino


def plan_asset_uploads(base_path: str | Path, copy: S3OriginCopy) -> list[AssetUpload]:
    """Walk a copy source directory and describe every object to upload.

    Dotfiles are included and directory symlinks are followed, except
    links back to an ancestor directory. Broken symlinks and vanished files
    are skipped with a warning.
    """
    source_dir = Path(base_path, copy.from_).resolve()
    if not source_dir.is_dir():
        pulumi.log.warn(f"Source directory {source_dir} does not exist, skipping...")
        return []

    cache_control = IMMUTABLE_CACHE_CONTROL if copy.cached else REVALIDATE_CACHE_CONTROL
    uploads = []
    # Directory identities on the path from source_dir, keyed by walk path
    ancestors: dict[str, frozenset[tuple[int, int]]] = {str(source_dir): frozenset()}
    for dirpath, dirnames, filenames in os.walk(source_dir, followlinks=True):
        chain = ancestors.pop(dirpath, frozenset()) | {_dir_identity(dirpath)}
        kept = []
        for dirname in dirnames:
            child = os.path.join(dirpath, dirname)
            # A link back to an ancestor would recurse forever
            if _dir_identity(child) in chain:
                pulumi.log.warn(f"Symlink loop at {child}, skipping...")
                continue
            ancestors[child] = chain
            kept.append(dirname)
        dirnames[:] = kept

        for filename in filenames:
            file_path = Path(dirpath, filename)
            if not file_path.exists():
                pulumi.log.warn(f"File {file_path} does not exist, skipping...")
                continue

            relative = file_path.relative_to(source_dir).as_posix()
            prefix = copy.to.strip("/")
            key = f"{prefix}/{relative}" if prefix else relative
            uploads.append(
                AssetUpload(
                    path=file_path,
                    key=key,
                    cache_control=cache_control,
                    content_type=mimetypes.guess_type(filename)[0],
                    resource_suffix=compute_hex_hash(key),
                )
            )

    return sorted(uploads, key=lambda u: u.key)


class StorageComponent(pulumi.ComponentResource):
    """Private S3 bucket holding OpenNext assets and cache entries."""

    def __init__(
        self,
        name: str,
        site_name: str,
        open_next_output: OpenNextOutput,
        path: str,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("nextjs:storage:Storage", name, None, opts)

        self.tags = tags or {}

        child_opts = pulumi.ResourceOptions(parent=self)

        self.bucket = aws.s3.BucketV2(
            f"{site_name}-open-next-bucket",
            bucket=f"{site_name}-open-next-bucket",
            force_destroy=True,
            tags=self.tags,
            opts=child_opts,
        )

        # CloudFront reads through the OAI; nothing is public
        self.public_access_block = aws.s3.BucketPublicAccessBlock(
            f"{site_name}-bucket-block-public-access",
            bucket=self.bucket.id,
            block_public_acls=True,
            block_public_policy=True,
            ignore_public_acls=True,
            restrict_public_buckets=True,
            opts=child_opts,
        )

        self.bucket_policy = create_bucket_policy(site_name, self.bucket.arn, self)

        self.objects: list[aws.s3.BucketObject] = []
        for copy in open_next_output.s3_origin.copy_:
            self._add_files(site_name, path, copy)

        self.register_outputs(
            {
                "bucket_name": self.bucket.bucket,
                "bucket_arn": self.bucket.arn,
                "bucket_policy_arn": self.bucket_policy.arn,
            }
        )

    def _add_files(self, site_name: str, base_path: str, copy: S3OriginCopy) -> None:
        for upload in plan_asset_uploads(base_path, copy):
            self.objects.append(
                aws.s3.BucketObject(
                    f"{site_name}-bucket-object-{upload.resource_suffix}",
                    bucket=self.bucket.id,
                    key=upload.key,
                    source=pulumi.FileAsset(str(upload.path)),
                    cache_control=upload.cache_control,
                    content_type=upload.content_type,
                    opts=pulumi.ResourceOptions(parent=self),
                )
            )
