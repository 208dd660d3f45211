"""
exceptions.py

Responsibility: Defines all custom exception classes used across the application.
Does NOT: contain business logic, logging, or HTTP handling.
"""

from __future__ import annotations

from enum import Enum


class IpFetchError(Exception):
    """
    Raised by IpService when the public IP address cannot be determined.

    This may occur due to network connectivity issues, an empty body, or a
    body that is not an IP literal (e.g. a captive-portal HTML page).
    """


class ProviderErrorKind(str, Enum):
    """Failure categories shared by every DNSProvider implementation."""

    AUTH = "auth"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"


class DnsProviderError(Exception):
    """
    Raised by any DNSProvider implementation when a DNS API call fails.

    Includes a human-readable message and a ProviderErrorKind so callers
    (typically DnsService) can tell credential problems apart from
    transient connectivity issues.
    """

    def __init__(self, message: str, kind: ProviderErrorKind = ProviderErrorKind.NETWORK) -> None:
        super().__init__(message)
        self.kind = kind


class HookError(Exception):
    """
    Raised by HookService when a hook command cannot be spawned, exits
    non-zero, or times out. Never propagated past HookService.invoke().
    """


class ConfigLoadError(Exception):
    """
    Raised by load_config() when the configuration file is missing, cannot
    be parsed, or fails validation. The only error that stops the process.
    """
