"""Unit tests for tooling configuration."""

import os
from unittest.mock import patch

from common.config import DEFAULT_REQUIRED_FUNCTIONS, Settings, get_settings


def test_settings_loads_from_env_vars():
    """Test that settings load correctly from environment variables."""
    env_vars = {
        "OPEN_NEXT_DIR": "apps/web/.open-next",
        "REQUIRED_FUNCTIONS": "server-functions/default",
        "SITE_URL": "https://d111111abcdef8.cloudfront.net",
        "LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars, clear=True):
        settings = Settings(_env_file=None)
        assert settings.open_next_dir == "apps/web/.open-next"
        assert settings.required_functions == "server-functions/default"
        assert settings.site_url == "https://d111111abcdef8.cloudfront.net"
        assert settings.log_level == "DEBUG"


def test_settings_has_sensible_defaults():
    """Test that settings work with defaults when env vars are empty."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)
        assert settings.open_next_dir == ""
        assert settings.required_functions == DEFAULT_REQUIRED_FUNCTIONS
        assert settings.site_url == ""
        assert settings.log_level == "INFO"


def test_required_functions_list_parses_comma_separated():
    """Test that required functions split on commas and drop blanks."""
    with patch.dict(
        os.environ,
        {"REQUIRED_FUNCTIONS": " server-functions/default , ,api-function "},
        clear=True,
    ):
        settings = Settings(_env_file=None)
        assert settings.required_functions_list == [
            "server-functions/default",
            "api-function",
        ]


def test_env_var_names_are_case_insensitive():
    """Test that lowercase environment variable names are accepted."""
    with patch.dict(os.environ, {"site_url": "https://example.com"}, clear=True):
        settings = Settings(_env_file=None)
        assert settings.site_url == "https://example.com"


def test_get_settings_is_cached():
    """Test that get_settings returns the same instance."""
    assert get_settings() is get_settings()
