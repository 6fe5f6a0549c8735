"""Tooling configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REQUIRED_FUNCTIONS = "server-functions/default,image-optimization-function"


class Settings(BaseSettings):
    """Settings for the bundle tooling and smoke tests.

    Values come from environment variables or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenNext output directory; auto-detected when empty
    open_next_dir: str = ""

    # Bundle directories that must contain index.mjs (comma-separated)
    required_functions: str = DEFAULT_REQUIRED_FUNCTIONS

    # Deployed site URL for smoke tests (e.g. https://d111111abcdef8.cloudfront.net)
    site_url: str = ""

    log_level: str = "INFO"

    @property
    def required_functions_list(self) -> list[str]:
        """Parse comma-separated required functions into a list."""
        return [f.strip() for f in self.required_functions.split(",") if f.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
