"""OpenNext build manifest models.

OpenNext writes `.open-next/open-next.output.json` after a build. It lists
the origins (S3 assets and Lambda bundles), the CloudFront behaviors that
route to them, and a few auxiliary functions (table seeder, revalidation
consumer, warmer).
"""

import json
from pathlib import Path
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

MANIFEST_FILENAME = "open-next.output.json"
OPEN_NEXT_DIR = ".open-next"


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BaseFunction(_ManifestModel):
    """A Lambda bundle: handler export plus bundle directory."""

    handler: str
    bundle: str


class FunctionOrigin(BaseFunction):
    type: Literal["function"] = "function"
    streaming: bool = False


class EcsOrigin(_ManifestModel):
    type: Literal["ecs"] = "ecs"
    bundle: str
    dockerfile: str


class S3OriginCopy(_ManifestModel):
    from_: str = Field(alias="from")
    to: str
    cached: bool
    versioned_sub_dir: str | None = Field(default=None, alias="versionedSubDir")


class S3Origin(_ManifestModel):
    type: Literal["s3"] = "s3"
    origin_path: str = Field(alias="originPath")
    copy_: list[S3OriginCopy] = Field(default_factory=list, alias="copy")


Origin = Annotated[Union[FunctionOrigin, EcsOrigin, S3Origin], Field(discriminator="type")]


class Behavior(_ManifestModel):
    pattern: str
    origin: str | None = None
    edge_function: str | None = Field(default=None, alias="edgeFunction")


class AdditionalProps(_ManifestModel):
    disable_incremental_cache: bool | None = Field(
        default=None, alias="disableIncrementalCache"
    )
    disable_tag_cache: bool | None = Field(default=None, alias="disableTagCache")
    initialization_function: BaseFunction | None = Field(
        default=None, alias="initializationFunction"
    )
    warmer: BaseFunction | None = None
    revalidation_function: BaseFunction | None = Field(
        default=None, alias="revalidationFunction"
    )


class OpenNextOutput(_ManifestModel):
    """Parsed `open-next.output.json`."""

    edge_functions: dict[str, BaseFunction] = Field(
        default_factory=dict, alias="edgeFunctions"
    )
    origins: dict[str, Origin]
    behaviors: list[Behavior] = Field(default_factory=list)
    additional_props: AdditionalProps | None = Field(default=None, alias="additionalProps")

    @model_validator(mode="after")
    def _require_s3_origin(self) -> "OpenNextOutput":
        if not isinstance(self.origins.get("s3"), S3Origin):
            raise ValueError("origins.s3 must be an s3 origin")
        return self

    @property
    def s3_origin(self) -> S3Origin:
        return self.origins["s3"]  # type: ignore[return-value]

    @property
    def props(self) -> AdditionalProps:
        return self.additional_props or AdditionalProps()

    def function_origins(self) -> Iterator[tuple[str, FunctionOrigin]]:
        """Yield function origins: default, imageOptimizer, then split servers.

        S3 and ECS origins are skipped.
        """
        keys = [k for k in ("default", "imageOptimizer") if k in self.origins]
        keys += [k for k in self.origins if k not in ("default", "imageOptimizer")]
        for key in keys:
            origin = self.origins[key]
            if isinstance(origin, FunctionOrigin):
                yield key, origin

    def default_behavior(self) -> Behavior | None:
        return next((b for b in self.behaviors if b.pattern == "*"), None)

    def ordered_behaviors(self) -> list[Behavior]:
        return [b for b in self.behaviors if b.pattern != "*"]


def manifest_path(site_path: str | Path) -> Path:
    return Path(site_path) / OPEN_NEXT_DIR / MANIFEST_FILENAME


def load_open_next_output(site_path: str | Path) -> OpenNextOutput:
    """Load and validate the OpenNext manifest of a built site.

    Args:
        site_path: Directory of the Next.js app (contains `.open-next/`).

    Raises:
        FileNotFoundError: If the manifest does not exist.
        pydantic.ValidationError: If the manifest is malformed.
    """
    path = manifest_path(site_path)
    if not path.is_file():
        raise FileNotFoundError(
            f"OpenNext output not found at {path}. Run the OpenNext build first."
        )
    with path.open(encoding="utf-8") as f:
        return OpenNextOutput.model_validate(json.load(f))
