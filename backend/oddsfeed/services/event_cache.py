"""
backend/oddsfeed/services/event_cache.py

Purpose:
    Bounded, process-local map from the feed's internal event id to event
    metadata. Not authoritative: a miss only means an outcome cannot be
    enriched yet.

Dependencies:
    - oddsfeed.services.odds_types
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from oddsfeed.services.odds_types import EventMetadata

logger = logging.getLogger("oddsfeed.event_cache")


class EventCache:
    """Insertion-ordered cache; evicts the oldest-inserted block once over capacity.

    Refreshing an existing id keeps its original insertion position, so a
    long-running event is evicted before a newly announced one.
    """

    def __init__(self, max_size: int = 2000, evict_count: int = 500) -> None:
        self._max_size = max(1, int(max_size))
        self._evict_count = max(1, min(int(evict_count), self._max_size))
        self._entries: dict[str, EventMetadata] = {}
        self._evicted_total = 0

    def upsert(self, event_id: str, metadata: EventMetadata) -> bool:
        """Store metadata; True when ``event_id`` was not cached before."""
        key = str(event_id)
        is_new = key not in self._entries
        self._entries[key] = metadata
        if len(self._entries) > self._max_size:
            self._evict()
        return is_new

    def get(self, event_id: str) -> EventMetadata | None:
        return self._entries.get(str(event_id))

    def __contains__(self, event_id: object) -> bool:
        return str(event_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self) -> None:
        stale = list(self._entries)[: self._evict_count]
        for key in stale:
            del self._entries[key]
        self._evicted_total += len(stale)
        logger.debug("Evicted %d oldest events, %d cached", len(stale), len(self._entries))

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "evicted_total": self._evicted_total,
        }


class LeagueFilter:
    """Case-insensitive league allow-list; an empty list lets everything through."""

    def __init__(self, leagues: Iterable[str] = ()) -> None:
        self._leagues = [l.strip().lower() for l in leagues if l and l.strip()]

    @property
    def enabled(self) -> bool:
        return bool(self._leagues)

    def allows(self, league: str | None) -> bool:
        if not self._leagues:
            return True
        if not league:
            return False
        normalized = league.strip().lower()
        if not normalized:
            return False
        return any(normalized in l or l in normalized for l in self._leagues)
