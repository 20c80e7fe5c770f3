"""
backend/tests/test_event_cache.py

Purpose:
    Bounded event cache eviction and the league allow-list.
"""

from __future__ import annotations

from oddsfeed.services.event_cache import EventCache, LeagueFilter
from oddsfeed.services.odds_types import EventMetadata


def _meta(name: str = "Napoli - Juventus") -> EventMetadata:
    return EventMetadata(name=name, starts_at=None, league="Serie A", bookmaker_id=21)


def test_upsert_reports_new_ids_only():
    cache = EventCache(max_size=10, evict_count=2)

    assert cache.upsert("1", _meta()) is True
    assert cache.upsert("1", _meta("Roma - Lazio")) is False
    assert cache.get("1").name == "Roma - Lazio"
    assert cache.get(1).name == "Roma - Lazio"
    assert "1" in cache
    assert cache.get("2") is None


def test_eviction_drops_oldest_inserted_block():
    cache = EventCache(max_size=4, evict_count=2)
    for i in range(4):
        cache.upsert(str(i), _meta())
    # refreshing keeps the original insertion position
    cache.upsert("0", _meta("refreshed"))

    cache.upsert("4", _meta())

    assert len(cache) == 3
    assert "0" not in cache
    assert "1" not in cache
    assert all(str(i) in cache for i in (2, 3, 4))
    assert cache.stats() == {"size": 3, "max_size": 4, "evicted_total": 2}


def test_league_filter_substring_match_both_ways():
    leagues = LeagueFilter(["serie a", "италия. серия а"])

    assert leagues.enabled
    assert leagues.allows("Italy. Serie A")
    assert leagues.allows("Италия. Серия А")
    assert leagues.allows("SERIE A")
    assert not leagues.allows("England. Premier League")
    assert not leagues.allows("")
    assert not leagues.allows(None)


def test_league_filter_short_name_inside_configured_entry():
    leagues = LeagueFilter(["italy. serie a. round 1"])
    assert leagues.allows("Italy. Serie A")


def test_empty_league_filter_allows_everything():
    leagues = LeagueFilter([])
    assert not leagues.enabled
    assert leagues.allows("Anything")
    assert leagues.allows(None)
