"""
providers/dnspod_client.py

Responsibility: Implements the DNSProvider protocol using the DNSPod record API
(https://dnsapi.cn), including the subdomain / root-domain split.
All DNSPod HTTP calls are concentrated here.
Does NOT: read configuration, track per-domain state, or contain scheduling logic.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from exceptions import DnsProviderError, ProviderErrorKind
from providers.dns_provider import DnsRecord, UpdateOutcome, UpdateResult

if TYPE_CHECKING:
    from config import DomainTarget

logger = logging.getLogger(__name__)

DNSPOD_BASE = "https://dnsapi.cn"

# DNSPod answers HTTP 200 and reports the outcome in status.code
_SUCCESS_CODE = "1"
_AUTH_CODES = {"-1", "-8", "85"}
_RATE_LIMITED_CODES = {"-2"}
# "10": no records (Record.List), "8": record ID invalid (Record.Modify)
_NOT_FOUND_CODES = {"10", "8"}

# Default resolution line; DNSPod expects the literal Chinese name
_DEFAULT_LINE = "默认"


def split_domain(full_domain: str) -> tuple[str, str]:
    """
    Splits a full domain into (subdomain, root domain) for the DNSPod API.

    "@.example.com" and "example.com" address the root record ("@"); longer
    names keep the last two labels as the root domain, e.g.
    "auth.service.k8s.example.com" → ("auth.service.k8s", "example.com").
    Multi-label public suffixes such as "co.uk" are not recognised.

    Args:
        full_domain: The configured domain string.

    Returns:
        A (subdomain, root_domain) tuple.

    Raises:
        ValueError: If the domain has fewer than two labels.
    """
    labels = full_domain.split(".")
    if len(labels) < 2 or not all(labels):
        raise ValueError(f"Invalid domain format: {full_domain!r}")

    if full_domain.startswith("@."):
        return "@", full_domain[2:]
    if len(labels) == 2:
        return "@", full_domain
    return ".".join(labels[:-2]), ".".join(labels[-2:])


class DnspodClient:
    """
    Implements DNSProvider for the DNSPod API.

    Every call is a form-encoded POST authenticated with the target's
    "token_id,token_secret" login token. One instance serves every DNSPod
    target.

    Collaborators:
        - httpx.AsyncClient: injected HTTP client; must be kept alive externally
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = DNSPOD_BASE) -> None:
        self._client = http_client
        self._base = base_url.rstrip("/")

    # ---------------------------------------------------------------------------
    # DNSProvider implementation
    # ---------------------------------------------------------------------------

    async def get_record(self, target: DomainTarget) -> DnsRecord | None:
        """
        Lists the target's records and returns the first one.

        Args:
            target: A DNSPod DomainTarget.

        Returns:
            A DnsRecord, or None when DNSPod has no matching record.

        Raises:
            DnsProviderError: If the API call fails.
        """
        subdomain, root = self._split(target)
        form = {"domain": root, "sub_domain": subdomain, "record_type": target.record_type}

        try:
            data = await self._post("Record.List", target.token, form)
        except DnsProviderError as exc:
            if exc.kind is ProviderErrorKind.NOT_FOUND:
                return None
            raise

        records = data.get("records") or []
        if not records:
            return None
        if len(records) > 1:
            logger.debug("%d records for %s; first match wins.", len(records), target.domain)

        record = self._parse_record(records[0], target.record_type)
        logger.info("Current DNSPod record for %s: %s", target.domain, record.content)
        return record

    async def upsert_record(self, target: DomainTarget, new_ip: str) -> UpdateResult:
        """
        Creates the record, or modifies it when its value differs from new_ip.

        Args:
            target: A DNSPod DomainTarget.
            new_ip: The IP address to write.

        Returns:
            An UpdateResult; UNCHANGED when the record already holds new_ip.

        Raises:
            DnsProviderError: If the API call fails.
        """
        subdomain, root = self._split(target)
        existing = await self.get_record(target)

        if existing is None:
            form = {
                "domain": root,
                "sub_domain": subdomain,
                "record_type": target.record_type,
                "record_line": _DEFAULT_LINE,
                "value": new_ip,
            }
            data = await self._post("Record.Create", target.token, form)
            record_id = str((data.get("record") or {}).get("id", ""))
            return UpdateResult(
                UpdateOutcome.CREATED,
                DnsRecord(id=record_id, name=subdomain, content=new_ip, type=target.record_type),
            )

        if existing.content == new_ip:
            logger.debug("%s already points at %s.", target.domain, new_ip)
            return UpdateResult(UpdateOutcome.UNCHANGED, existing, old_ip=existing.content)

        form = {
            "domain": root,
            "record_id": existing.id,
            "sub_domain": subdomain,
            "record_type": target.record_type,
            "record_line": _DEFAULT_LINE,
            "value": new_ip,
        }
        await self._post("Record.Modify", target.token, form)
        return UpdateResult(
            UpdateOutcome.CHANGED,
            DnsRecord(id=existing.id, name=subdomain, content=new_ip, type=target.record_type),
            old_ip=existing.content,
        )

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    @staticmethod
    def _split(target: DomainTarget) -> tuple[str, str]:
        try:
            return split_domain(target.domain)
        except ValueError as exc:
            raise DnsProviderError(str(exc), ProviderErrorKind.NETWORK) from exc

    @staticmethod
    def _login_token(token: str) -> str:
        token_id, _, secret = token.partition(",")
        if not token_id.strip() or not secret.strip():
            raise DnsProviderError("DNSPod token must be 'token_id,token_secret'", ProviderErrorKind.AUTH)
        return f"{token_id.strip()},{secret.strip()}"

    async def _post(self, action: str, token: str, form: dict[str, str]) -> dict[str, Any]:
        """
        Sends one DNSPod API action and checks its status block.

        Args:
            action: API action name, e.g. "Record.List".
            token: The raw "token_id,token_secret" credential.
            form: Action-specific form fields.

        Returns:
            The parsed JSON response body.

        Raises:
            DnsProviderError: AUTH for login failures, RATE_LIMITED when the
                API usage limit is hit, NOT_FOUND for "no records" / "bad
                record ID", MALFORMED_RESPONSE for unparseable bodies and
                NETWORK for everything else.
        """
        url = f"{self._base}/{action}"
        payload = {
            "login_token": self._login_token(token),
            "format": "json",
            "lang": "en",
            "error_on_empty": "no",
            **form,
        }

        logger.debug("POST %s form=%s", url, form)
        try:
            response = await self._client.post(url, data=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (401, 403):
                kind = ProviderErrorKind.AUTH
            elif status == 429:
                kind = ProviderErrorKind.RATE_LIMITED
            else:
                kind = ProviderErrorKind.NETWORK
            raise DnsProviderError(f"DNSPod API error {status} for {action}: {exc.response.text}", kind) from exc
        except httpx.RequestError as exc:
            raise DnsProviderError(f"Network error calling DNSPod API ({action}): {exc}") from exc

        try:
            body = response.json()
            status_block = body["status"]
            code = str(status_block.get("code"))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise DnsProviderError(
                f"DNSPod API returned an unparseable body for {action}: {response.text[:200]}",
                ProviderErrorKind.MALFORMED_RESPONSE,
            ) from exc

        logger.debug("%s result: code=%s message=%s", action, code, status_block.get("message"))
        if code == _SUCCESS_CODE:
            return body

        message = f"DNSPod {action} failed with code {code}: {status_block.get('message', '')}"
        if code in _AUTH_CODES:
            raise DnsProviderError(message, ProviderErrorKind.AUTH)
        if code in _RATE_LIMITED_CODES:
            raise DnsProviderError(message, ProviderErrorKind.RATE_LIMITED)
        if code in _NOT_FOUND_CODES:
            raise DnsProviderError(message, ProviderErrorKind.NOT_FOUND)
        raise DnsProviderError(message, ProviderErrorKind.NETWORK)

    @staticmethod
    def _parse_record(raw: Any, record_type: str) -> DnsRecord:
        try:
            return DnsRecord(
                id=str(raw["id"]),
                name=raw["name"],
                content=raw["value"],
                type=raw.get("type", record_type),
            )
        except (KeyError, TypeError) as exc:
            raise DnsProviderError(
                f"DNSPod record is missing field {exc}", ProviderErrorKind.MALFORMED_RESPONSE
            ) from exc
