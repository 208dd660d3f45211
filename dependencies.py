"""
dependencies.py

Responsibility: Builds the long-lived collaborators (HTTP clients, providers,
services) and wires them into a DnsService.
Does NOT: contain business logic, parse configuration files, or run ticks.
"""

from __future__ import annotations

import httpx

from config import AppConfig, ProviderKind
from exceptions import ConfigLoadError
from providers.cloudflare_client import CloudflareClient
from providers.dns_provider import DNSProvider
from providers.dnspod_client import DnspodClient
from providers.zone_cache import ZoneCache
from services.dns_service import DnsService
from services.hook_service import HookService
from services.ip_service import IpService
from services.notify_service import NotifyService
from services.state_service import StateService
from shared_templates import APP_VERSION

HTTP_TIMEOUT_SECS = 10.0

# ---------------------------------------------------------------------------
# Infrastructure: shared process-level resources
# ---------------------------------------------------------------------------


def create_http_client() -> httpx.AsyncClient:
    """
    Creates the shared httpx.AsyncClient used for IP lookups and provider APIs.

    trust_env=False ignores HTTP(S)_PROXY variables: IP lookups must leave
    through the host's own public address.

    Returns:
        A new httpx.AsyncClient; the caller owns and closes it.
    """
    return httpx.AsyncClient(
        timeout=HTTP_TIMEOUT_SECS,
        trust_env=False,
        headers={"User-Agent": f"ddns-sync/{APP_VERSION}"},
    )


def create_telegram_http_client(proxy: str | None = None) -> httpx.AsyncClient:
    """
    Creates the dedicated Telegram client, optionally routed through a proxy.

    A separate client keeps the proxy away from DNS provider and IP traffic.

    Args:
        proxy: HTTP proxy URL, e.g. "http://127.0.0.1:7890".

    Returns:
        A new httpx.AsyncClient; the caller owns and closes it.
    """
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECS, trust_env=False, proxy=proxy)


# ---------------------------------------------------------------------------
# Provider and service builders
# ---------------------------------------------------------------------------


def build_providers(
    http_client: httpx.AsyncClient,
    zone_cache: ZoneCache | None = None,
) -> dict[ProviderKind, DNSProvider]:
    """
    Creates one DNSProvider per ProviderKind.

    Args:
        http_client: The shared httpx.AsyncClient.
        zone_cache: Cloudflare zone cache; a fresh one when omitted.

    Returns:
        Maps each ProviderKind to its DNSProvider.
    """
    return {
        ProviderKind.DNSPOD: DnspodClient(http_client),
        ProviderKind.CLOUDFLARE: CloudflareClient(http_client, zone_cache or ZoneCache()),
    }


def build_dns_service(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    notify_service: NotifyService | None = None,
) -> DnsService:
    """
    Provides a fully wired DnsService for the given configuration.

    Args:
        config: The loaded AppConfig.
        http_client: The shared httpx.AsyncClient.
        notify_service: Optional Telegram notifier.

    Returns:
        A DnsService instance ready to run ticks.

    Raises:
        ConfigLoadError: If a target's provider has no implementation.
    """
    providers = build_providers(http_client)
    for target in config.targets:
        if target.provider not in providers:
            raise ConfigLoadError(f"No provider available for {target.domain} ({target.provider.value})")

    return DnsService(
        providers=providers,
        ip_service=IpService(http_client),
        state_service=StateService(config.force_get_record_interval),
        hook_service=HookService(timeout=config.hook_timeout_secs),
        notify_service=notify_service,
    )
