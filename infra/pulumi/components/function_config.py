"""Lambda settings for OpenNext function origins.

Settings resolve in layers (later wins):

    base defaults -> per-origin defaults -> user "default" -> user per-function

The user entry for the `default` origin is called `defaultServer`, since
`default` already names the layer shared by every function. Environment
maps merge key by key; every other field is replaced.
"""

from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

Runtime = Literal[
    "nodejs18.x",
    "nodejs20.x",
    "nodejs22.x",
    "python3.9",
    "python3.10",
    "python3.11",
    "python3.12",
    "java8.al2",
    "java11",
    "java17",
    "java21",
    "dotnet6",
    "dotnet8",
    "ruby3.2",
    "ruby3.3",
]
Architecture = Literal["x86_64", "arm64"]

VALID_RUNTIMES: tuple[str, ...] = get_args(Runtime)

# Key in the user config that targets the `default` server origin
DEFAULT_SERVER_KEY = "defaultServer"
# Key in the user config that applies to every function
SHARED_KEY = "default"


class FunctionConfigError(ValueError):
    """Raised when a user-supplied Lambda setting is out of range."""


class LambdaSettings(BaseModel):
    """User-supplied overrides for one function. Every field is optional."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    memory: int | None = Field(default=None, ge=128, le=10240, strict=True)
    timeout: int | None = Field(default=None, ge=1, le=900, strict=True)
    runtime: Runtime | None = None
    architecture: Architecture | None = None
    environment: dict[StrictStr, StrictStr] | None = None


class ResolvedFunctionSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    memory: int
    timeout: int
    runtime: str
    architecture: str
    environment: dict[str, str]


BASE_DEFAULTS = ResolvedFunctionSettings(
    memory=256,
    timeout=15,
    runtime="nodejs20.x",
    architecture="x86_64",
    environment={},
)

ORIGIN_DEFAULTS: dict[str, LambdaSettings] = {
    "default": LambdaSettings(memory=512, timeout=15),
    "imageOptimizer": LambdaSettings(memory=1024, timeout=30),
}

_FIELD_HINTS = {
    "memory": "Must be an integer between 128 and 10240 MB.",
    "timeout": "Must be an integer between 1 and 900 seconds.",
    "runtime": f"Must be one of: {', '.join(VALID_RUNTIMES)}.",
    "architecture": "Must be one of: x86_64, arm64.",
    "environment": "Both keys and values must be strings.",
}


def validate_settings(
    settings: LambdaSettings | dict[str, Any], function_name: str | None = None
) -> LambdaSettings:
    """Validate raw settings against AWS Lambda limits.

    Raises:
        FunctionConfigError: Naming the offending field and function.
    """
    if isinstance(settings, LambdaSettings):
        return settings

    context = f' for function "{function_name}"' if function_name else ""
    if not isinstance(settings, dict):
        raise FunctionConfigError(
            f"Invalid settings{context}: expected a mapping, got {type(settings).__name__}."
        )

    try:
        return LambdaSettings.model_validate(settings)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "settings"
        value = settings.get(field)
        hint = _FIELD_HINTS.get(field, error["msg"])
        raise FunctionConfigError(
            f"Invalid {field} setting{context}: {value!r}. {hint}"
        ) from e


def _overlay(
    resolved: ResolvedFunctionSettings, layer: LambdaSettings | None
) -> ResolvedFunctionSettings:
    if layer is None:
        return resolved
    return ResolvedFunctionSettings(
        memory=layer.memory if layer.memory is not None else resolved.memory,
        timeout=layer.timeout if layer.timeout is not None else resolved.timeout,
        runtime=layer.runtime or resolved.runtime,
        architecture=layer.architecture or resolved.architecture,
        environment={**resolved.environment, **(layer.environment or {})},
    )


class FunctionConfigManager:
    """Resolves per-function Lambda settings from user config and defaults."""

    def __init__(self, user_config: dict[str, LambdaSettings | dict[str, Any]] | None = None):
        user_config = user_config or {}
        if not isinstance(user_config, dict):
            raise FunctionConfigError(
                "Invalid lambda_config: expected a mapping of function keys to "
                f"settings, got {type(user_config).__name__}."
            )

        # Fail fast: a bad entry should stop the deploy before any resource exists
        self.user_config: dict[str, LambdaSettings] = {
            key: validate_settings(settings, key) for key, settings in user_config.items()
        }

    def get_function_settings(self, function_key: str) -> ResolvedFunctionSettings:
        user_key = DEFAULT_SERVER_KEY if function_key == "default" else function_key

        resolved = BASE_DEFAULTS
        for layer in (
            ORIGIN_DEFAULTS.get(function_key),
            self.user_config.get(SHARED_KEY),
            self.user_config.get(user_key),
        ):
            resolved = _overlay(resolved, layer)
        return resolved
