"""Pytest configuration for smoke tests."""

import pytest

from common.config import get_settings


def pytest_addoption(parser):
    """Add command line options for smoke tests."""
    parser.addoption(
        "--site-url",
        action="store",
        default=None,
        help="Deployed site URL for smoke tests (defaults to SITE_URL)",
    )


@pytest.fixture
def site_url(request):
    """Get the site URL from command line or environment."""
    url = request.config.getoption("--site-url", default=None) or get_settings().site_url
    if not url:
        pytest.skip("SITE_URL not set; smoke tests need a deployed site")
    return url.rstrip("/")
