"""
backend/oddsfeed/services/odds_pipeline.py

Purpose:
    Owns all mutable pipeline state (event cache, pending outcomes, change
    fingerprints, write queue) and turns decoded feed messages into canonical
    odds records:

        bookmaker_events -> league filter -> EventCache -> pending replay
        outcomes -> EventCache lookup -> MarketMapper -> odds bounds
                 -> match key / display name -> dedup -> ChangeDetector
                 -> WriteQueue

    One message is processed to completion before the next; only the write
    queue drain runs in the background.

Dependencies:
    - oddsfeed.services.* (decoder, mapper, caches, queue)
    - oddsfeed.config (build_pipeline only)
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from oddsfeed.config import Settings
from oddsfeed.services.change_detector import ChangeDetector
from oddsfeed.services.diagnostics import FirstSeenRegistry
from oddsfeed.services.event_cache import EventCache, LeagueFilter
from oddsfeed.services.market_mapper import MarketMapper, infer_provider
from oddsfeed.services.match_key import DEFAULT_BUCKET_MINUTES, build_match_key
from oddsfeed.services.odds_types import (
    CanonicalOddsRecord,
    DecodedEvent,
    DecodedOutcome,
    EventMetadata,
    FeedMessage,
    NaturalKey,
    bookmaker_name,
)
from oddsfeed.services.pending_outcomes import PendingOutcomeBuffer
from oddsfeed.services.team_alias_normalizer import (
    build_display_name,
    is_known_team,
    normalize_team_name,
    parse_event_name,
)
from oddsfeed.services.wire_decoder import decode_message
from oddsfeed.services.write_queue import OddsStore, WriteQueue
from oddsfeed.utils import utcnow

logger = logging.getLogger("oddsfeed.odds_pipeline")

MIN_ODDS = 1.0
MAX_ODDS = 1000.0
DEFAULT_SPORT_ID = 7


class OddsPipeline:
    def __init__(
        self,
        *,
        write_queue: WriteQueue,
        event_cache: EventCache | None = None,
        change_detector: ChangeDetector | None = None,
        pending: PendingOutcomeBuffer | None = None,
        mapper: MarketMapper | None = None,
        league_filter: LeagueFilter | None = None,
        unmapped_teams: FirstSeenRegistry | None = None,
        sport_id: int = DEFAULT_SPORT_ID,
        bucket_minutes: int = DEFAULT_BUCKET_MINUTES,
    ) -> None:
        self.write_queue = write_queue
        self.events = event_cache or EventCache()
        self.changes = change_detector or ChangeDetector()
        self.pending = pending or PendingOutcomeBuffer()
        self.mapper = mapper or MarketMapper()
        self.unmapped_teams = unmapped_teams or FirstSeenRegistry()
        self._leagues = league_filter or LeagueFilter()
        # Ids of events rejected by the league filter: their outcomes are
        # dropped outright instead of filling the pending buffer.
        cap = self.events.stats()["max_size"]
        self._filtered_events = EventCache(max_size=cap, evict_count=max(1, cap // 4))
        self._sport_id = sport_id
        self._bucket_minutes = bucket_minutes
        self._messages: Counter[str] = Counter()
        self._outcomes: Counter[str] = Counter()
        self._last_message_at = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_raw(self, raw: str | bytes | dict) -> FeedMessage:
        message = decode_message(raw)
        self.handle_message(message)
        return message

    def handle_message(self, message: FeedMessage) -> None:
        self._messages[message.command] += 1
        self._last_message_at = utcnow()
        if message.skipped:
            self._outcomes["malformed"] += message.skipped

        if message.command == "bookmaker_events":
            self.process_bookmaker_events(message.items)
        elif message.command == "outcomes":
            self.process_outcomes(message.items)
        elif message.command == "error":
            logger.error("Feed error: %s", message.payload)
        elif message.command == "unrecognized":
            logger.debug("Unrecognized feed message: %.200r", message.payload)

    # ------------------------------------------------------------------
    # Event definitions
    # ------------------------------------------------------------------

    def process_bookmaker_events(self, events: Iterable[DecodedEvent]) -> int:
        """Cache event definitions; returns how many ids were newly added."""
        cached = 0
        added = 0
        for event in events:
            metadata = EventMetadata(
                name=event.name,
                starts_at=event.starts_at,
                league=event.league,
                bookmaker_id=event.bookmaker_id,
            )
            if not self._leagues.allows(event.league):
                self._filtered_events.upsert(event.event_id, metadata)
                continue
            cached += 1
            if self.events.upsert(event.event_id, metadata):
                added += 1
            self._track_unmapped_teams(event.name)

        if cached:
            logger.info("Events cached: %d (%d new), total cache: %d", cached, added, len(self.events))
        if added and len(self.pending):
            self._replay_pending()
        return added

    def _track_unmapped_teams(self, event_name: str) -> None:
        parsed = parse_event_name(event_name)
        if parsed is None:
            return
        for raw in parsed:
            normalized = normalize_team_name(raw)
            if normalized and not is_known_team(normalized):
                if self.unmapped_teams.record(normalized, raw):
                    logger.warning("Unmapped team: %r -> normalized %r", raw, normalized)

    def _replay_pending(self) -> None:
        buffered = self.pending.drain()
        self._outcomes["replayed"] += len(buffered)
        enqueued = self.process_outcomes(buffered)
        logger.info(
            "Replayed %d pending outcomes: %d enqueued, %d still pending",
            len(buffered), enqueued, len(self.pending),
        )

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def process_outcomes(self, outcomes: Iterable[DecodedOutcome]) -> int:
        """Map outcomes to canonical records and enqueue the changed ones."""
        records: list[CanonicalOddsRecord] = []
        for outcome in outcomes:
            self._outcomes["seen"] += 1
            event = self.events.get(outcome.event_id)
            if event is None:
                if outcome.event_id in self._filtered_events:
                    self._outcomes["filtered_league"] += 1
                elif self.pending.add(outcome):
                    self._outcomes["buffered"] += 1
                else:
                    self._outcomes["dropped_pending_full"] += 1
                continue
            record = self.build_record(outcome, event)
            if record is not None:
                records.append(record)

        if not records:
            return 0
        return self.save_records(records)

    def build_record(self, outcome: DecodedOutcome, event: EventMetadata) -> CanonicalOddsRecord | None:
        bookmaker_id = event.bookmaker_id or infer_provider(outcome.info)
        if bookmaker_id is None:
            self._outcomes["no_bookmaker"] += 1
            return None

        mapping = self.mapper.map(bookmaker_id, outcome.info)
        if mapping is None:
            self._outcomes["unmapped"] += 1
            return None

        if not MIN_ODDS < outcome.price < MAX_ODDS:
            self._outcomes["invalid_odds"] += 1
            return None

        return CanonicalOddsRecord(
            event_id=outcome.event_id,
            event_name=event.name,
            raw_start_time=event.starts_at,
            display_name=build_display_name(event.name),
            league=event.league,
            sport_id=self._sport_id,
            bookmaker_id=bookmaker_id,
            bookmaker_name=bookmaker_name(bookmaker_id),
            market_type=mapping.market_type,
            selection=mapping.selection,
            odds=outcome.price,
            match_key=build_match_key(event.name, event.starts_at, self._bucket_minutes),
        )

    def save_records(self, records: Iterable[CanonicalOddsRecord]) -> int:
        """Deduplicate by natural key (last wins), drop unchanged, enqueue the rest."""
        unique: dict[NaturalKey, CanonicalOddsRecord] = {}
        for record in records:
            unique[record.natural_key] = record

        changed = [r for r in unique.values() if self.changes.has_changed(r)]
        self._outcomes["suppressed_unchanged"] += len(unique) - len(changed)
        if not changed:
            return 0
        self.write_queue.enqueue(changed)
        self._outcomes["enqueued"] += len(changed)
        return len(changed)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        await self.write_queue.stop()

    def stats(self) -> dict[str, Any]:
        return {
            "messages": dict(self._messages),
            "last_message_at": self._last_message_at.isoformat() if self._last_message_at else None,
            "outcomes": dict(self._outcomes),
            "event_cache": self.events.stats(),
            "filtered_events": len(self._filtered_events),
            "pending_outcomes": self.pending.stats(),
            "change_detector": self.changes.stats(),
            "unmapped_markets": self.mapper.unmapped.stats(),
            "unmapped_teams": self.unmapped_teams.stats(),
        }


def build_pipeline(settings: Settings, store: OddsStore) -> OddsPipeline:
    queue = WriteQueue(
        store,
        batch_size=settings.WRITE_BATCH_SIZE,
        write_delay_seconds=settings.WRITE_DELAY_MS / 1000,
        retry_delays=settings.WRITE_RETRY_DELAYS_SECONDS,
    )
    return OddsPipeline(
        write_queue=queue,
        event_cache=EventCache(settings.EVENT_CACHE_MAX_SIZE, settings.EVENT_CACHE_EVICT_COUNT),
        change_detector=ChangeDetector(settings.CHANGE_TTL_SECONDS),
        pending=PendingOutcomeBuffer(settings.PENDING_OUTCOMES_MAX),
        mapper=MarketMapper(FirstSeenRegistry(settings.DIAGNOSTICS_MAX_ENTRIES)),
        league_filter=LeagueFilter(settings.LEAGUE_FILTER),
        unmapped_teams=FirstSeenRegistry(settings.DIAGNOSTICS_MAX_ENTRIES),
        sport_id=settings.FEED_SPORT_IDS[0] if settings.FEED_SPORT_IDS else DEFAULT_SPORT_ID,
        bucket_minutes=settings.MATCH_TIME_BUCKET_MINUTES,
    )
