"""
backend/oddsfeed/services/diagnostics.py

Purpose:
    Bounded in-memory registry of first-seen unmapped identifiers (market
    codes, team names) used to curate the static lookup tables. Recording is
    a dict operation on the hot path; reporting happens from a scheduled job.

Dependencies:
    - oddsfeed.utils
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from oddsfeed.utils import utcnow

logger = logging.getLogger("oddsfeed.diagnostics")


@dataclass
class FirstSeenEntry:
    key: str
    sample: str
    first_seen_at: datetime
    hits: int = 1


class FirstSeenRegistry:
    def __init__(self, max_entries: int = 1000) -> None:
        self._max_entries = max(1, int(max_entries))
        self._entries: dict[str, FirstSeenEntry] = {}
        self._overflow = 0

    def record(self, key: str, sample: str = "") -> bool:
        """Count one sighting; True only the first time ``key`` is stored."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.hits += 1
            return False
        if len(self._entries) >= self._max_entries:
            self._overflow += 1
            return False
        self._entries[key] = FirstSeenEntry(key=key, sample=sample, first_seen_at=utcnow())
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self, limit: int | None = None) -> list[FirstSeenEntry]:
        ordered = sorted(self._entries.values(), key=lambda e: e.hits, reverse=True)
        return ordered if limit is None else ordered[:limit]

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "overflow": self._overflow}


def log_report(title: str, registry: FirstSeenRegistry, limit: int) -> int:
    """Log the most frequent entries of ``registry``; returns how many were logged."""
    rows = registry.entries(limit)
    if not rows:
        return 0
    logger.info("Unmapped %s (%d tracked, showing %d):", title, len(registry), len(rows))
    for row in rows:
        logger.info("  %r hits=%d sample=%r", row.key, row.hits, row.sample)
    return len(rows)
