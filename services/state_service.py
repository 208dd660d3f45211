"""
services/state_service.py

Responsibility: Holds the in-memory UpdateDecisionState of every target and
decides when a forced remote re-fetch is due.
Does NOT: persist anything, make HTTP calls, or talk to DNS providers.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class UpdateDecisionState:
    """Last IP known to be published for one target, and ticks since the last forced refresh."""

    last_ip: str | None = None
    ticks_since_refresh: int = 0
    initialized: bool = False


class StateService:
    """
    Per-target decision state, keyed by DomainTarget.key.

    Each state belongs to exactly one target; DnsService serializes a
    target's cycle, so no locking happens here. Nothing survives a restart:
    a fresh process forces a remote fetch on each target's first tick.

    ticks_since_refresh stays in [0, force_interval). A refresh is forced on
    a target's first tick and then every force_interval ticks.
    """

    def __init__(self, force_interval: int) -> None:
        if force_interval < 1:
            raise ValueError("force_interval must be >= 1")
        self._force_interval = force_interval
        self._states: dict[Hashable, UpdateDecisionState] = {}

    def get(self, key: Hashable) -> UpdateDecisionState:
        return self._states.setdefault(key, UpdateDecisionState())

    def needs_refresh(self, key: Hashable) -> bool:
        state = self.get(key)
        return not state.initialized or state.ticks_since_refresh >= self._force_interval - 1

    def mark_refreshed(self, key: Hashable, ip: str | None) -> None:
        """Records the remote value seen by a forced fetch and restarts the tick count."""
        state = self.get(key)
        state.last_ip = ip
        state.ticks_since_refresh = 0
        state.initialized = True

    def mark_updated(self, key: Hashable, ip: str) -> None:
        """Records a successful upsert; the remote is now known to hold ip."""
        state = self.get(key)
        state.last_ip = ip
        state.ticks_since_refresh = 0
        state.initialized = True

    def mark_unchanged(self, key: Hashable) -> None:
        """Counts one tick that needed no remote call."""
        state = self.get(key)
        state.ticks_since_refresh = min(state.ticks_since_refresh + 1, self._force_interval - 1)
