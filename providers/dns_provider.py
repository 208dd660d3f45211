"""
providers/dns_provider.py

Responsibility: Defines the DNSProvider Protocol and the value objects it
returns (DnsRecord, UpdateResult).
Does NOT: make HTTP calls, hold state, or implement any provider logic.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from config import DomainTarget


# ---------------------------------------------------------------------------
# Value objects: stable shapes returned by all DNSProvider implementations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DnsRecord:
    """
    Represents a single address record as published by a DNSProvider.

    Records are never mutated; each successful upsert produces a new one.
    """

    # Provider-assigned identifier (Cloudflare record ID, DNSPod numeric record ID)
    id: str

    # Host part in the provider's own shape: FQDN on Cloudflare, subdomain on DNSPod
    name: str

    # IP address currently stored in the record
    content: str

    # "A" or "AAAA"
    type: str = "A"


class UpdateOutcome(str, Enum):
    CREATED = "created"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class UpdateResult:
    """What an upsert did, plus the record as it now stands remotely."""

    outcome: UpdateOutcome
    record: DnsRecord

    # Remote value before the upsert; "" when the record was created
    old_ip: str = ""

    @property
    def changed(self) -> bool:
        return self.outcome is not UpdateOutcome.UNCHANGED


def record_type_for(ip: str) -> str:
    """
    Returns the address-record type matching an IP literal.

    Args:
        ip: An IPv4 or IPv6 literal.

    Returns:
        "AAAA" for IPv6, "A" otherwise.
    """
    try:
        return "AAAA" if ipaddress.ip_address(ip).version == 6 else "A"
    except ValueError:
        return "A"


# ---------------------------------------------------------------------------
# Abstract interface: all DNS providers must implement this contract
# ---------------------------------------------------------------------------


@runtime_checkable
class DNSProvider(Protocol):
    """
    Capability contract shared by DnspodClient and CloudflareClient.

    Implementations take the credential and host name from the DomainTarget
    passed to each call, so a single instance serves every target of its kind.
    DnsService depends on this abstraction, never on a concrete implementation.
    """

    async def get_record(self, target: DomainTarget) -> DnsRecord | None:
        """
        Fetches the presently published record for the target's host name.

        Args:
            target: The configured synchronization target.

        Returns:
            The DnsRecord, or None if no record exists yet.

        Raises:
            DnsProviderError: If the API call fails.
        """
        ...

    async def upsert_record(self, target: DomainTarget, new_ip: str) -> UpdateResult:
        """
        Creates the record, or changes it when its value differs from new_ip.

        Calling this again with the same new_ip is a no-op that reports
        UpdateOutcome.UNCHANGED and issues no mutating call.

        Args:
            target: The configured synchronization target.
            new_ip: The IP literal the record must point at.

        Returns:
            An UpdateResult describing what was done.

        Raises:
            DnsProviderError: If any API call fails.
        """
        ...
