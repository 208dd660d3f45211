"""
providers/zone_cache.py

Responsibility: In-memory mapping of Cloudflare zone name to zone ID, shared
by every Cloudflare target in the process.
Does NOT: make HTTP calls itself; the lookup coroutine is supplied by the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class ZoneCache:
    """
    Lazily populated zone-name → zone-ID map.

    Entries are never evicted: a zone's ID is assumed stable for the process
    lifetime. The whole read-check-write sequence runs under one asyncio.Lock,
    so concurrent misses for the same zone trigger a single lookup. An entry
    is stored with one dict assignment after the lookup returns; a cancelled
    lookup leaves the cache untouched.
    """

    def __init__(self) -> None:
        self._zones: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get_or_resolve(
        self,
        zone_name: str,
        resolve: Callable[[str], Awaitable[str]],
    ) -> str:
        """
        Returns the cached zone ID, resolving and storing it on a miss.

        Args:
            zone_name: Root zone name, e.g. "example.com".
            resolve: Coroutine function performing the remote lookup.

        Returns:
            The zone ID.

        Raises:
            Whatever resolve raises; nothing is cached in that case.
        """
        async with self._lock:
            zone_id = self._zones.get(zone_name)
            if zone_id is not None:
                logger.debug("Using cached zone_id for %s: %s", zone_name, zone_id)
                return zone_id

            zone_id = await resolve(zone_name)
            self._zones[zone_name] = zone_id
            logger.debug("Cached zone_id for %s: %s", zone_name, zone_id)
            return zone_id
