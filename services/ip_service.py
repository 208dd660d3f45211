"""
services/ip_service.py

Responsibility: Fetches the current public IP address of the host machine
from a configurable plain-text endpoint.
Does NOT: parse DNS records, talk to DNS providers, or retry on failure.
"""

from __future__ import annotations

import ipaddress
import logging

import httpx

from config import DEFAULT_IP_URL
from exceptions import IpFetchError

logger = logging.getLogger(__name__)


class IpService:
    """
    Fetches the host machine's current public IP address.

    The whole response body, stripped of whitespace, must be an IPv4 or IPv6
    literal. Uses an injected httpx.AsyncClient so the service is fully
    testable without real network calls (use respx.mock in tests).

    Collaborators:
        - httpx.AsyncClient: injected; must be kept alive externally
    """

    def __init__(self, http_client: httpx.AsyncClient, default_url: str = DEFAULT_IP_URL) -> None:
        """
        Initialises the service with a shared HTTP client.

        Args:
            http_client: A long-lived httpx.AsyncClient instance created
                         during application startup.
            default_url: Endpoint used when a call passes no URL.
        """
        self._client = http_client
        self._default_url = default_url

    async def get_public_ip(self, url: str | None = None) -> str:
        """
        Returns the current public IP address of the host machine.

        Args:
            url: Endpoint returning the caller's IP as plain text; falls back
                 to the service default.

        Returns:
            The public IP address as a plain string, e.g. "1.2.3.4".

        Raises:
            IpFetchError: If the endpoint is unreachable, returns a non-2xx
                          response, or the body is not an IP literal.
        """
        url = url or self._default_url
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise IpFetchError(
                f"IP provider {url} returned status {exc.response.status_code}."
            ) from exc
        except httpx.RequestError as exc:
            raise IpFetchError(f"Could not reach IP provider ({url}): {exc}") from exc

        ip = response.text.strip()
        if not ip:
            raise IpFetchError(f"IP provider {url} returned an empty body.")
        try:
            ipaddress.ip_address(ip)
        except ValueError as exc:
            raise IpFetchError(f"IP provider {url} returned a non-IP body: {ip[:64]!r}") from exc

        logger.debug("Current public IP from %s: %s", url, ip)
        return ip
