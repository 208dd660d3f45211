"""
providers/cloudflare_client.py

Responsibility: Implements the DNSProvider protocol using the Cloudflare REST
API (v4), including zone discovery through the shared ZoneCache.
All Cloudflare HTTP calls are concentrated here; no other file may call the
Cloudflare API directly.
Does NOT: read configuration, track per-domain state, or contain scheduling logic.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from exceptions import DnsProviderError, ProviderErrorKind
from providers.dns_provider import DnsRecord, UpdateOutcome, UpdateResult
from providers.zone_cache import ZoneCache

if TYPE_CHECKING:
    from config import DomainTarget

logger = logging.getLogger(__name__)

CLOUDFLARE_BASE = "https://api.cloudflare.com/client/v4"

# Cloudflare error codes returned with success=false for bad or under-scoped tokens
_AUTH_ERROR_CODES = {9103, 9106, 9109, 10000}


def zone_name_for(domain: str) -> str:
    """
    Derives the candidate zone name from a full domain.

    Takes the last two dot-separated labels. Domains under multi-label
    public suffixes (e.g. "example.co.uk") resolve to the suffix itself.

    Args:
        domain: A full domain, e.g. "www.example.com".

    Returns:
        The zone name, e.g. "example.com".
    """
    labels = domain.split(".")
    if len(labels) >= 2:
        return f"{labels[-2]}.{labels[-1]}"
    return domain


class CloudflareClient:
    """
    Implements DNSProvider for the Cloudflare DNS REST API (v4).

    The API token is taken from each DomainTarget, so one instance serves
    every Cloudflare target. Zone IDs are resolved once per zone name and kept
    in the injected ZoneCache.

    Collaborators:
        - httpx.AsyncClient: injected HTTP client; must be kept alive externally
        - ZoneCache: shared zone-name → zone-ID map
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        zone_cache: ZoneCache | None = None,
        base_url: str = CLOUDFLARE_BASE,
    ) -> None:
        """
        Initialises the client with an HTTP client and a zone cache.

        Args:
            http_client: A long-lived httpx.AsyncClient instance.
            zone_cache: Shared cache; a fresh one is created when omitted.
            base_url: API root, overridable for tests.
        """
        self._client = http_client
        self._zones = zone_cache if zone_cache is not None else ZoneCache()
        self._base = base_url.rstrip("/")

    # ---------------------------------------------------------------------------
    # DNSProvider implementation
    # ---------------------------------------------------------------------------

    async def get_record(self, target: DomainTarget) -> DnsRecord | None:
        """
        Fetches the target's record with an exact-name lookup.

        Args:
            target: A Cloudflare DomainTarget.

        Returns:
            A DnsRecord if the record exists, or None if not found.

        Raises:
            DnsProviderError: If zone discovery or the record query fails.
        """
        zone_id = await self.get_zone_id(target)
        url = f"{self._base}/zones/{zone_id}/dns_records"
        params = {"name": target.domain, "type": target.record_type}

        logger.debug("GET %s params=%s", url, params)
        data = await self._request("GET", url, target.token, params=params)

        result = data.get("result") or []
        if not result:
            return None
        if len(result) > 1:
            logger.warning("%d %s records found for %s; using the first.", len(result), target.record_type, target.domain)

        return self._parse_record(result[0])

    async def upsert_record(self, target: DomainTarget, new_ip: str) -> UpdateResult:
        """
        Creates or patches the target's record so it points at new_ip.

        Args:
            target: A Cloudflare DomainTarget.
            new_ip: The IP address to write.

        Returns:
            An UpdateResult; UNCHANGED when the record already holds new_ip.

        Raises:
            DnsProviderError: If the Cloudflare API returns an error.
        """
        existing = await self.get_record(target)
        zone_id = await self.get_zone_id(target)

        if existing is None:
            url = f"{self._base}/zones/{zone_id}/dns_records"
            payload: dict[str, Any] = {
                "type": target.record_type,
                "name": target.domain,
                "content": new_ip,
                "ttl": 1,      # 1 = automatic TTL on Cloudflare
                "proxied": False,
            }
            logger.debug("POST %s payload=%s", url, payload)
            data = await self._request("POST", url, target.token, json=payload)
            return UpdateResult(UpdateOutcome.CREATED, self._parse_record(data.get("result")))

        if existing.content == new_ip:
            logger.debug("%s already points at %s.", target.domain, new_ip)
            return UpdateResult(UpdateOutcome.UNCHANGED, existing, old_ip=existing.content)

        url = f"{self._base}/zones/{zone_id}/dns_records/{existing.id}"
        payload = {"content": new_ip}
        logger.debug("PATCH %s payload=%s", url, payload)
        data = await self._request("PATCH", url, target.token, json=payload, record_call=True)
        return UpdateResult(UpdateOutcome.CHANGED, self._parse_record(data.get("result")), old_ip=existing.content)

    # ---------------------------------------------------------------------------
    # Zone discovery
    # ---------------------------------------------------------------------------

    async def get_zone_id(self, target: DomainTarget) -> str:
        """
        Returns the zone ID for the target's root zone, from cache when possible.

        Args:
            target: A Cloudflare DomainTarget.

        Returns:
            The Cloudflare zone ID.

        Raises:
            DnsProviderError: NOT_FOUND if no zone matches, or any API failure.
        """
        zone_name = zone_name_for(target.domain)

        async def _lookup(name: str) -> str:
            return await self._lookup_zone_id(name, target.token, target.account_id)

        return await self._zones.get_or_resolve(zone_name, _lookup)

    async def _lookup_zone_id(self, zone_name: str, token: str, account_id: str | None) -> str:
        url = f"{self._base}/zones"
        params = {"name": zone_name}
        if account_id:
            params["account.id"] = account_id

        logger.debug("Querying zone_id for %s", zone_name)
        data = await self._request("GET", url, token, params=params)

        zones = data.get("result") or []
        if not zones:
            raise DnsProviderError(f"No Cloudflare zone found for {zone_name}", ProviderErrorKind.NOT_FOUND)
        if len(zones) > 1:
            # NOTE: Ambiguous when one token spans several accounts; set
            # cloudflare_account_id to pin the right one.
            logger.warning("%d zones named %s visible to this token; using the first.", len(zones), zone_name)

        try:
            return str(zones[0]["id"])
        except (KeyError, TypeError) as exc:
            raise DnsProviderError(
                f"Zone list for {zone_name} has no id field", ProviderErrorKind.MALFORMED_RESPONSE
            ) from exc

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        record_call: bool = False,
    ) -> dict[str, Any]:
        """
        Sends an authenticated HTTP request to the Cloudflare API.

        Args:
            method: HTTP verb ("GET", "POST", "PATCH").
            url: Full URL of the Cloudflare API endpoint.
            token: Bearer token for the Authorization header.
            params: Optional query-string parameters.
            json: Optional JSON request body.
            record_call: True for calls addressing one record by ID; a 404
                then means the record is gone rather than a broken endpoint.

        Returns:
            The parsed JSON response body as a dict.

        Raises:
            DnsProviderError: With kind AUTH (401/403), RATE_LIMITED (429),
                NOT_FOUND (404 on record calls), NETWORK (other status or
                transport failure) or MALFORMED_RESPONSE (body is not JSON).
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.request(method, url, headers=headers, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise DnsProviderError(
                f"Cloudflare API error {status} for {method} {url}: {exc.response.text}",
                self._kind_for_status(status, record_call),
            ) from exc
        except httpx.RequestError as exc:
            raise DnsProviderError(
                f"Network error calling Cloudflare API ({method} {url}): {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise DnsProviderError(
                f"Cloudflare API returned a non-JSON body for {method} {url}",
                ProviderErrorKind.MALFORMED_RESPONSE,
            ) from exc
        if not isinstance(body, dict):
            raise DnsProviderError(
                f"Cloudflare API returned an unexpected body for {method} {url}",
                ProviderErrorKind.MALFORMED_RESPONSE,
            )

        # NOTE: Cloudflare wraps all responses in {"success": bool, "result": ...}
        if not body.get("success", False):
            errors = body.get("errors") or []
            codes = {e.get("code") for e in errors if isinstance(e, dict)}
            kind = ProviderErrorKind.AUTH if codes & _AUTH_ERROR_CODES else ProviderErrorKind.NETWORK
            raise DnsProviderError(
                f"Cloudflare API returned success=false for {method} {url}. Errors: {errors}",
                kind,
            )

        return body

    @staticmethod
    def _kind_for_status(status: int, record_call: bool) -> ProviderErrorKind:
        if status in (401, 403):
            return ProviderErrorKind.AUTH
        if status == 429:
            return ProviderErrorKind.RATE_LIMITED
        if status == 404 and record_call:
            return ProviderErrorKind.NOT_FOUND
        return ProviderErrorKind.NETWORK

    @staticmethod
    def _parse_record(raw: Any) -> DnsRecord:
        """
        Converts a raw Cloudflare API record dict into a typed DnsRecord.

        Args:
            raw: A single record object from the Cloudflare API response.

        Returns:
            A DnsRecord populated from the raw dict.

        Raises:
            DnsProviderError: MALFORMED_RESPONSE if required fields are missing.
        """
        try:
            return DnsRecord(
                id=str(raw["id"]),
                name=raw["name"],
                content=raw["content"],
                type=raw.get("type", "A"),
            )
        except (KeyError, TypeError) as exc:
            raise DnsProviderError(
                f"Cloudflare record is missing field {exc}", ProviderErrorKind.MALFORMED_RESPONSE
            ) from exc
