"""Pytest configuration and fixtures for the bundle tooling.

Environment variables are set before `common.config` is imported so the
cached Settings never pick up a developer's local values.
"""

import json
import os

os.environ.setdefault("OPEN_NEXT_DIR", "")
os.environ.setdefault(
    "REQUIRED_FUNCTIONS", "server-functions/default,image-optimization-function"
)
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest

from common.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reset cached settings between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def open_next_dir(tmp_path):
    """A complete `.open-next` build output with both required bundles."""
    root = tmp_path / ".open-next"
    for function in ("server-functions/default", "image-optimization-function"):
        bundle = root / function
        bundle.mkdir(parents=True)
        (bundle / "index.mjs").write_text("export const handler = () => {};\n")
    (root / "open-next.output.json").write_text(json.dumps({"origins": {}}))
    return root
