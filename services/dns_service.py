"""
services/dns_service.py

Responsibility: Orchestrates the DDNS update cycle: resolves each target's
public IP, decides whether the remote record must be re-fetched or changed,
upserts through the target's DNSProvider and fires the hook and notifier
after a successful change.
Does NOT: make HTTP calls directly, read configuration files, or schedule ticks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from config import DomainTarget, ProviderKind
from exceptions import DnsProviderError, IpFetchError, ProviderErrorKind
from providers.dns_provider import DNSProvider, UpdateOutcome, record_type_for
from services.hook_service import HookService
from services.ip_service import IpService
from services.notify_service import NotifyService
from services.state_service import StateService

logger = logging.getLogger(__name__)

UPDATED = "updated"
UNCHANGED = "unchanged"
FAILED = "failed"


class DnsService:
    """
    Runs one reconciliation tick across all configured targets.

    Targets are processed concurrently; each target's own cycle (resolve →
    compare → upsert → hook) is serialized by a per-target asyncio.Lock.
    Every error is contained at the per-target boundary: a failing target is
    logged and retried on the next tick, other targets are unaffected.

    Collaborators:
        - DNSProvider: one implementation per ProviderKind (DnspodClient,
          CloudflareClient)
        - IpService: provides the current public IP
        - StateService: per-target last-known IP and forced-refresh counter
        - HookService: runs the operator's hook command after a change
        - NotifyService: optional Telegram notifier
    """

    def __init__(
        self,
        providers: Mapping[ProviderKind, DNSProvider],
        ip_service: IpService,
        state_service: StateService,
        hook_service: HookService,
        notify_service: NotifyService | None = None,
    ) -> None:
        """
        Initialises the service with all required collaborators.

        Args:
            providers: Maps each ProviderKind to the DNSProvider serving it.
            ip_service: Provides the current public IP of the host machine.
            state_service: Tracks per-target decision state.
            hook_service: Runs hook commands after successful changes.
            notify_service: Sends change notifications; None disables them.
        """
        self._providers = dict(providers)
        self._ip_service = ip_service
        self._state = state_service
        self._hooks = hook_service
        self._notifier = notify_service
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    # ---------------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------------

    def provider_for(self, target: DomainTarget) -> DNSProvider:
        """
        Returns the DNSProvider serving a target.

        Raises:
            KeyError: If no provider is registered for the target's kind.
        """
        return self._providers[target.provider]

    async def run_check_cycle(self, targets: list[DomainTarget]) -> dict[tuple[str, str], str]:
        """
        Runs a single DDNS tick for all targets.

        Args:
            targets: The configured targets, in config order.

        Returns:
            Maps each target key (domain, record type) to "updated",
            "unchanged" or "failed".
        """
        if not targets:
            logger.debug("No targets configured; skipping check cycle.")
            return {}

        results = await asyncio.gather(*(self._check_isolated(t) for t in targets))
        outcomes = {target.key: result for target, result in zip(targets, results)}

        updated = sum(1 for r in results if r == UPDATED)
        failed = sum(1 for r in results if r == FAILED)
        summary = [f"{len(targets)} domain(s) checked"]
        if updated:
            summary.append(f"{updated} updated")
        if failed:
            summary.append(f"{failed} failed")
        logger.log(logging.WARNING if failed else logging.INFO, "Check cycle complete: %s.", ", ".join(summary))
        return outcomes

    async def check_target(self, target: DomainTarget) -> str:
        """
        Runs one tick for a single target, serialized against other ticks
        for the same target.

        Args:
            target: The target to reconcile.

        Returns:
            "updated", "unchanged" or "failed".
        """
        lock = self._locks.setdefault(target.key, asyncio.Lock())
        async with lock:
            return await self._check_target(target)

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    async def _check_isolated(self, target: DomainTarget) -> str:
        try:
            return await self.check_target(target)
        except Exception:
            logger.exception("Unexpected error while checking %s (%s)", target.domain, target.record_type)
            return FAILED

    async def _check_target(self, target: DomainTarget) -> str:
        domain = target.domain
        provider = self.provider_for(target)

        try:
            current_ip = await self._ip_service.get_public_ip(target.ip_url)
        except IpFetchError as exc:
            # NOTE: leaves the forced-refresh counter untouched.
            logger.error("Error fetching current IP for %s from %s: %s", domain, target.ip_url, exc)
            return FAILED

        if record_type_for(current_ip) != target.record_type:
            logger.error(
                "Current IP for %s from %s is %s, which cannot go in a %s record; skipping.",
                domain,
                target.ip_url,
                current_ip,
                target.record_type,
            )
            return FAILED

        logger.info("Current IP for %s from %s: %s", domain, target.ip_url, current_ip)

        forced = self._state.needs_refresh(target.key)
        try:
            if forced:
                logger.debug("Forcing record re-fetch for %s.", domain)
                known_ip = await self._fetch_current_ip(provider, target)
            else:
                known_ip = self._state.get(target.key).last_ip

            if known_ip == current_ip:
                if forced:
                    self._state.mark_refreshed(target.key, known_ip)
                else:
                    self._state.mark_unchanged(target.key)
                logger.info("IP for %s unchanged: %s", domain, current_ip)
                return UNCHANGED

            result = await provider.upsert_record(target, current_ip)
        except DnsProviderError as exc:
            self._log_provider_error(target, exc)
            return FAILED

        self._state.mark_updated(target.key, current_ip)

        if not result.changed:
            logger.info("%s already points at %s remotely.", domain, current_ip)
            return UNCHANGED

        if result.outcome is UpdateOutcome.CREATED:
            logger.info("Created %s record for %s → %s", target.record_type, domain, current_ip)
        else:
            logger.info("IP for %s changed from %s to %s", domain, result.old_ip, current_ip)

        await self._hooks.invoke(target.hook_command, domain, current_ip, result.old_ip)
        if self._notifier is not None:
            await self._notifier.notify(domain, current_ip, result.old_ip)
        return UPDATED

    @staticmethod
    async def _fetch_current_ip(provider: DNSProvider, target: DomainTarget) -> str | None:
        try:
            record = await provider.get_record(target)
        except DnsProviderError as exc:
            if exc.kind is not ProviderErrorKind.NOT_FOUND:
                raise
            record = None

        if record is None:
            logger.info("No %s record for %s yet.", target.record_type, target.domain)
            return None
        return record.content

    @staticmethod
    def _log_provider_error(target: DomainTarget, exc: DnsProviderError) -> None:
        provider = target.provider.value
        if exc.kind is ProviderErrorKind.AUTH:
            logger.error("Authentication failed for %s (%s); check the API token: %s", target.domain, provider, exc)
        elif exc.kind is ProviderErrorKind.RATE_LIMITED:
            logger.warning("Rate limited by %s while updating %s; retrying next tick: %s", provider, target.domain, exc)
        elif exc.kind is ProviderErrorKind.NOT_FOUND:
            logger.error("Not found on %s while updating %s: %s", provider, target.domain, exc)
        elif exc.kind is ProviderErrorKind.MALFORMED_RESPONSE:
            logger.error("Unexpected response from %s for %s: %s", provider, target.domain, exc)
        else:
            logger.error("Error updating domain %s via %s: %s", target.domain, provider, exc)
