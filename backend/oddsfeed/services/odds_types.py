"""
backend/oddsfeed/services/odds_types.py

Purpose:
    Shared type contracts for the live odds pipeline: decoded feed items,
    cached event metadata, market mappings and the canonical persisted record.

Dependencies:
    - dataclasses
    - datetime
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from oddsfeed.utils import utcnow

FeedCommand = Literal[
    "authorized",
    "subscribed",
    "bookmaker_events",
    "outcomes",
    "error",
    "pong",
    "unrecognized",
]

CanonicalMarket = Literal["SHOTS", "SHOTS_ON_TARGET", "FOULS", "OFFSIDES", "CORNERS"]
MarketScope = Literal["MATCH", "TOTAL", "TEAM1", "TEAM2"]
MarketKind = Literal["1X2", "OU"]

NaturalKey = tuple[str, int, str, str]

BOOKMAKER_NAMES: dict[int, str] = {
    21: "1xbet",
    103: "Sisal",
}


def bookmaker_name(bookmaker_id: int) -> str:
    return BOOKMAKER_NAMES.get(bookmaker_id, f"Bookmaker_{bookmaker_id}")


@dataclass(frozen=True)
class DecodedOutcome:
    """One price update as delivered by the feed, before any interpretation."""

    event_id: str
    price: float
    info: str | None = None
    period: str | None = None


@dataclass(frozen=True)
class DecodedEvent:
    """One event definition from a ``bookmaker_events`` batch."""

    event_id: str
    name: str
    starts_at: str | None
    league: str
    bookmaker_id: int | None


@dataclass(frozen=True)
class FeedMessage:
    command: FeedCommand
    payload: Any = None
    items: tuple = ()
    skipped: int = 0


@dataclass(frozen=True)
class EventMetadata:
    name: str
    starts_at: str | None
    league: str
    bookmaker_id: int | None


@dataclass(frozen=True)
class MarketDefinition:
    market: CanonicalMarket
    scope: MarketScope
    kind: MarketKind


@dataclass(frozen=True)
class MarketMapping:
    market: CanonicalMarket
    scope: MarketScope
    kind: MarketKind
    selection: str

    @property
    def market_type(self) -> str:
        return f"{self.market}_{self.scope}_{self.kind}"


@dataclass
class CanonicalOddsRecord:
    event_id: str
    event_name: str
    raw_start_time: str | None
    display_name: str
    league: str
    sport_id: int
    bookmaker_id: int
    bookmaker_name: str
    market_type: str
    selection: str
    odds: float
    match_key: str | None
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def natural_key(self) -> NaturalKey:
        return (self.event_id, self.bookmaker_id, self.market_type, self.selection)

    def to_document(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_name": self.event_name,
            "event_time": self.raw_start_time,
            "raw_start_time": self.raw_start_time,
            "display_name": self.display_name,
            "league": self.league,
            "sport_id": self.sport_id,
            "bookmaker_id": self.bookmaker_id,
            "bookmaker_name": self.bookmaker_name,
            "market_type": self.market_type,
            "selection": self.selection,
            "odds": self.odds,
            "match_key": self.match_key,
            "kickoff_time": None,
            "updated_at": self.updated_at,
        }
