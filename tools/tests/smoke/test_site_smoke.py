"""
Smoke tests for a deployed site.

These tests run after `pulumi up` to verify CloudFront, the server function
and the asset bucket are wired correctly. They make real HTTP requests to
the distribution.
"""

import httpx
import pytest


@pytest.fixture
def client(site_url):
    """Create an HTTP client for the site."""
    with httpx.Client(base_url=site_url, timeout=30.0, follow_redirects=True) as client:
        yield client


class TestServerRendering:
    """Smoke tests for pages served by the default server function."""

    def test_home_page(self, client):
        """Verify the home page renders."""
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_served_through_cloudfront(self, client):
        """Verify responses carry CloudFront headers."""
        response = client.get("/")
        assert "x-amz-cf-id" in response.headers

    def test_static_page(self, client):
        """Verify a statically generated page renders."""
        response = client.get("/about")
        assert response.status_code == 200

    def test_fetching_page(self, client):
        """Verify a page that fetches data at request time renders."""
        response = client.get("/fetching")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_dynamic_route(self, client):
        """Verify a dynamic segment route renders."""
        response = client.get("/blog/1")
        assert response.status_code == 200

    def test_unknown_route_returns_404(self, client):
        """Verify unknown paths fall through to the Next.js 404 page."""
        response = client.get("/this-page-does-not-exist")
        assert response.status_code == 404


class TestApiRoutes:
    """Smoke tests for API routes (uncached, all methods allowed)."""

    def test_api_route_get(self, client):
        """Verify the API route answers GET."""
        response = client.get("/api")
        assert response.status_code == 200

    def test_api_route_is_not_cached(self, client):
        """Verify API responses bypass the CloudFront cache."""
        client.get("/api")
        response = client.get("/api")
        assert response.headers.get("x-cache") != "Hit from cloudfront"


class TestStaticAssets:
    """Smoke tests for assets served from S3."""

    def test_favicon(self, client):
        """Verify a public asset is served from the bucket."""
        response = client.get("/favicon.ico")
        assert response.status_code == 200

    def test_bucket_not_directly_listable(self, client):
        """Verify the bucket root is not exposed through the distribution."""
        response = client.get("/_next/")
        assert response.status_code in [403, 404]
