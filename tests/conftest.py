"""
tests/conftest.py

Shared pytest fixtures used by both unit and integration test suites.
All HTTP fixtures use respx.mock: no real network calls are made in any test.
"""

from __future__ import annotations

import pytest
import respx
import httpx

from config import DomainTarget, ProviderKind


# ---------------------------------------------------------------------------
# HTTP mock fixture: intercepts all httpx calls
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_http():
    """
    Yields a respx router that intercepts all httpx.AsyncClient calls.

    No real network traffic is allowed during tests. Use this fixture
    wherever a service or client would normally make an outbound request.
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Shared httpx.AsyncClient fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
async def http_client():
    """
    Yields a real httpx.AsyncClient instance for use in tests.

    Pair with the mock_http fixture so all requests are intercepted by respx.
    The client is closed after each test.
    """
    async with httpx.AsyncClient() as client:
        yield client


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@pytest.fixture()
def dnspod_target():
    return DomainTarget(
        domain="blog.example.com",
        provider=ProviderKind.DNSPOD,
        token="12345,secret",
        ip_url="https://ip.test/",
    )


@pytest.fixture()
def cloudflare_target():
    return DomainTarget(
        domain="www.example.com",
        provider=ProviderKind.CLOUDFLARE,
        token="cf-token",
        ip_url="https://ip.test/",
    )
