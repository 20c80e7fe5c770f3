"""
backend/oddsfeed/services/change_detector.py

Purpose:
    TTL-bounded cache of the last written odds per natural key, used to skip
    writes whose value did not move. Never authoritative: a miss or an expired
    entry simply lets the record through.

Dependencies:
    - time
    - oddsfeed.services.odds_types
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from oddsfeed.services.odds_types import CanonicalOddsRecord, NaturalKey

logger = logging.getLogger("oddsfeed.change_detector")


@dataclass
class _Fingerprint:
    odds: float
    seen_at: float


class ChangeDetector:
    """Last-seen odds per natural key, expiring after ``ttl_seconds``.

    The fingerprint is recorded when a record is enqueued, not when the write
    lands. If that batch is later dropped after its retries run out, an
    identical price is suppressed until the entry expires.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._cache: dict[NaturalKey, _Fingerprint] = {}
        self._suppressed = 0
        self._passed = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def has_changed(self, record: CanonicalOddsRecord) -> bool:
        now = self._clock()
        key = record.natural_key
        cached = self._cache.get(key)
        if cached is not None and cached.odds == record.odds and now - cached.seen_at < self._ttl:
            self._suppressed += 1
            return False
        self._cache[key] = _Fingerprint(odds=record.odds, seen_at=now)
        self._passed += 1
        return True

    def sweep(self) -> int:
        """Drop fingerprints older than twice the TTL; returns the number removed."""
        cutoff = self._clock() - 2 * self._ttl
        stale = [key for key, fp in self._cache.items() if fp.seen_at < cutoff]
        for key in stale:
            del self._cache[key]
        if stale:
            logger.debug("Change cache sweep removed %d entries, %d left", len(stale), len(self._cache))
        return len(stale)

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._cache),
            "suppressed_total": self._suppressed,
            "passed_total": self._passed,
        }
