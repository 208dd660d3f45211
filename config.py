"""
config.py

Responsibility: Loads the TOML configuration file and resolves it into an
immutable AppConfig holding one fully-resolved DomainTarget per [[domains]]
entry (per-domain overrides already merged with the global defaults).
Does NOT: make HTTP calls, talk to DNS providers, or schedule jobs.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tldextract

from exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

DEFAULT_SLEEP_SECS = 120
DEFAULT_FORCE_GET_RECORD_INTERVAL = 5
DEFAULT_IP_URL = "http://whatismyip.akamai.com"
DEFAULT_HOOK_TIMEOUT_SECS = 60.0

_RECORD_TYPES = ("A", "AAAA")

# NOTE: suffix_list_urls=() keeps tldextract offline; it falls back to the
# public-suffix snapshot bundled with the package.
_tld_extract = tldextract.TLDExtract(suffix_list_urls=())


class ProviderKind(str, Enum):
    """Selects which DNSProvider implementation manages a target."""

    DNSPOD = "dnspod"
    CLOUDFLARE = "cloudflare"


# ---------------------------------------------------------------------------
# Resolved configuration entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DomainTarget:
    """
    One configured synchronization target.

    Built once at startup and never mutated. All optional settings have
    already been resolved against the global defaults.
    """

    # Full domain as written in the config, e.g. "blog.example.com" or "@.example.com"
    domain: str

    provider: ProviderKind

    # DNSPod: "token_id,token_secret"; Cloudflare: API bearer token
    token: str

    # Endpoint whose response body is the public IP literal
    ip_url: str = DEFAULT_IP_URL

    # Shell command run after a successful create/change, or None
    hook_command: str | None = None

    record_type: str = "A"

    # Cloudflare only: narrows zone discovery when a token spans several accounts
    account_id: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Identifies the target; one host may carry both an A and an AAAA target."""
        return (self.domain, self.record_type)


@dataclass(frozen=True)
class AppConfig:
    """Global loop settings plus the ordered list of targets."""

    sleep_secs: int = DEFAULT_SLEEP_SECS
    force_get_record_interval: int = DEFAULT_FORCE_GET_RECORD_INTERVAL
    hook_timeout_secs: float = DEFAULT_HOOK_TIMEOUT_SECS
    targets: list[DomainTarget] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> AppConfig:
    """
    Reads and validates the TOML configuration file.

    Args:
        path: Location of the config file, e.g. "config.toml".

    Returns:
        A fully resolved AppConfig.

    Raises:
        ConfigLoadError: If the file is unreadable, is not valid TOML, or
            fails validation.
    """
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigLoadError(f"Configuration file not found: {path}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"Could not read configuration file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"Invalid TOML syntax in {path}: {exc}") from exc

    config = parse_config(raw)
    logger.info("Loaded configuration with %d domain(s) from %s", len(config.targets), path)
    return config


def parse_config(raw: dict[str, Any]) -> AppConfig:
    """
    Builds an AppConfig from an already-decoded TOML document.

    Args:
        raw: The decoded TOML mapping.

    Returns:
        A fully resolved AppConfig.

    Raises:
        ConfigLoadError: If any setting is missing or invalid.
    """
    sleep_secs = _positive_int(raw, "sleep_secs", DEFAULT_SLEEP_SECS)
    force_interval = _positive_int(raw, "force_get_record_interval", DEFAULT_FORCE_GET_RECORD_INTERVAL)

    hook_timeout = raw.get("hook_timeout_secs", DEFAULT_HOOK_TIMEOUT_SECS)
    if not isinstance(hook_timeout, (int, float)) or hook_timeout <= 0:
        raise ConfigLoadError("hook_timeout_secs must be a positive number")

    domains = raw.get("domains") or []
    if not isinstance(domains, list) or not domains:
        raise ConfigLoadError("No domains configured")

    default_provider = _provider_kind(raw.get("default_provider", ProviderKind.CLOUDFLARE.value), "default_provider")

    targets: list[DomainTarget] = []
    seen: set[tuple[str, str]] = set()
    for index, entry in enumerate(domains, start=1):
        target = _build_target(index, entry, raw, default_provider)
        if target.key in seen:
            raise ConfigLoadError(f"Domain {index}: {target.domain} ({target.record_type}) is configured twice")
        seen.add(target.key)
        targets.append(target)

    return AppConfig(
        sleep_secs=sleep_secs,
        force_get_record_interval=force_interval,
        hook_timeout_secs=float(hook_timeout),
        targets=targets,
    )


def root_domain_differs_from_registrable(domain: str) -> str | None:
    """
    Compares the two-label root used by the providers with the registrable
    domain from the public-suffix list.

    Args:
        domain: A full domain, e.g. "cdn.prod.example.co.uk".

    Returns:
        The registrable domain (e.g. "example.co.uk") when it differs from
        the last two labels, otherwise None.
    """
    name = domain[2:] if domain.startswith("@.") else domain
    labels = name.split(".")
    two_label_root = ".".join(labels[-2:])

    ext = _tld_extract(name)
    if not ext.domain or not ext.suffix:
        return None
    registrable = f"{ext.domain}.{ext.suffix}"
    return registrable if registrable != two_label_root else None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_target(
    index: int,
    entry: Any,
    raw: dict[str, Any],
    default_provider: ProviderKind,
) -> DomainTarget:
    if not isinstance(entry, dict):
        raise ConfigLoadError(f"Domain {index} must be a table")

    domain = str(entry.get("domain", "")).strip()
    labels = domain.split(".")
    if len(labels) < 2 or not all(label.strip() for label in labels):
        raise ConfigLoadError(f"Domain {index} has invalid format: {domain!r}")

    provider = _provider_kind(entry.get("provider", default_provider.value), f"Domain {index} provider")

    if provider is ProviderKind.DNSPOD:
        token = entry.get("dnspod_token") or raw.get("default_dnspod_token")
        if not token:
            raise ConfigLoadError(
                f"Domain {index} uses DNSPod but has no dnspod_token and no default_dnspod_token is configured"
            )
        if "," not in token:
            raise ConfigLoadError(f"Domain {index}: DNSPod token must be 'token_id,token_secret'")
        account_id = None
    else:
        token = entry.get("cloudflare_token") or raw.get("default_cloudflare_token")
        if not token:
            raise ConfigLoadError(
                f"Domain {index} uses Cloudflare but has no cloudflare_token and no "
                "default_cloudflare_token is configured"
            )
        account_id = entry.get("cloudflare_account_id") or raw.get("default_cloudflare_account_id")

    record_type = str(entry.get("record_type", "A")).upper()
    if record_type not in _RECORD_TYPES:
        raise ConfigLoadError(f"Domain {index}: unsupported record_type {record_type!r}")

    registrable = root_domain_differs_from_registrable(domain)
    if registrable:
        logger.warning(
            "%s sits under a multi-label public suffix (registrable domain %s); "
            "the root domain will be taken as the last two labels and may be wrong.",
            domain,
            registrable,
        )

    return DomainTarget(
        domain=domain,
        provider=provider,
        token=str(token),
        ip_url=entry.get("ip_url") or raw.get("default_ip_url") or DEFAULT_IP_URL,
        hook_command=entry.get("hook_command") or raw.get("default_hook_command"),
        record_type=record_type,
        account_id=account_id,
    )


def _provider_kind(value: Any, where: str) -> ProviderKind:
    try:
        return ProviderKind(str(value).lower())
    except ValueError as exc:
        raise ConfigLoadError(f"{where}: unknown provider {value!r} (expected 'dnspod' or 'cloudflare')") from exc


def _positive_int(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigLoadError(f"{key} must be a positive integer, got {value!r}")
    return value
