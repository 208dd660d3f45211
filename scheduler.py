"""
scheduler.py

Responsibility: Sets up the APScheduler AsyncIOScheduler and registers the
DDNS tick job. Exposes create_scheduler().
Does NOT: contain DNS business logic or HTTP calls; those are delegated
entirely to DnsService and its collaborators.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import DomainTarget
from services.dns_service import DnsService

logger = logging.getLogger(__name__)

# Job ID used to identify the DDNS tick job in APScheduler
JOB_ID = "ddns_check"


# ---------------------------------------------------------------------------
# Scheduler job
# ---------------------------------------------------------------------------


async def ddns_check_job(dns_service: DnsService, targets: list[DomainTarget]) -> None:
    """
    APScheduler job: runs one DDNS tick over every target.

    Args:
        dns_service: The long-lived DnsService holding per-domain state.
        targets: The configured targets.

    Returns:
        None
    """
    logger.debug("DDNS check job triggered.")
    await dns_service.run_check_cycle(targets)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_scheduler(
    dns_service: DnsService,
    targets: list[DomainTarget],
    interval_seconds: int = 120,
) -> AsyncIOScheduler:
    """
    Creates and returns a configured AsyncIOScheduler with the DDNS tick job.

    The job runs immediately on startup (next_run_time=now) and then every
    interval_seconds.

    Args:
        dns_service: The DnsService to drive.
        targets: The configured targets passed to every tick.
        interval_seconds: Seconds between ticks (default 120).

    Returns:
        A configured but not yet started AsyncIOScheduler.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        ddns_check_job,
        trigger="interval",
        seconds=interval_seconds,
        id=JOB_ID,
        kwargs={"dns_service": dns_service, "targets": targets},
        # NOTE: next_run_time=now triggers the first tick immediately on startup
        # rather than waiting a full interval before the first run.
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,  # a slow tick delays the next one instead of overlapping it
        coalesce=True,
    )
    logger.info("DDNS check job scheduled: interval: %ds.", interval_seconds)
    return scheduler
