"""Per-key alert cooldown bookkeeping.

A key present in the table must not be re-alerted until ``cooldown_seconds``
have elapsed since its last alert. Entries older than three cooldown periods
are evicted by ``sweep``; the table is also capped at ``max_entries`` so a
flood of short-lived target identifiers cannot grow it without bound.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Entries older than this many cooldown periods are evicted
_EVICTION_PERIODS: int = 3


class CooldownTable:
    def __init__(self, cooldown_seconds: float, max_entries: int = 1024) -> None:
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.cooldown_seconds = cooldown_seconds
        self.max_entries = max_entries
        self._last_alert: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_alert)

    def __contains__(self, key: object) -> bool:
        return key in self._last_alert

    def is_ready(self, key: str, now: float) -> bool:
        """True when *key* may be alerted at *now*."""
        last = self._last_alert.get(key)
        return last is None or (now - last) >= self.cooldown_seconds

    def mark(self, key: str, now: float) -> None:
        self._last_alert[key] = now
        if len(self._last_alert) > self.max_entries:
            self.sweep(now)
        while len(self._last_alert) > self.max_entries:
            oldest = min(self._last_alert, key=self._last_alert.__getitem__)
            del self._last_alert[oldest]
            logger.debug("Cooldown table full — evicted oldest key %s", oldest)

    def sweep(self, now: float) -> int:
        """Evict entries older than three cooldown periods. Returns the count removed."""
        horizon = self.cooldown_seconds * _EVICTION_PERIODS
        stale = [k for k, t in self._last_alert.items() if now - t > horizon]
        for key in stale:
            del self._last_alert[key]
        if stale:
            logger.debug("Evicted %d stale cooldown entries", len(stale))
        return len(stale)
