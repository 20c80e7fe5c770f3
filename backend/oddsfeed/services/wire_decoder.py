"""
backend/oddsfeed/services/wire_decoder.py

Purpose:
    Boundary decoder for OddsMarket websocket frames. Classifies each frame by
    its ``cmd`` tag and turns outcome / event-definition payloads (objects,
    positional arrays or legacy JSON-encoded strings) into typed items.
    Items matching no known shape are skipped and counted, never raised.

Dependencies:
    - json
    - oddsfeed.services.odds_types
    - oddsfeed.utils
"""

from __future__ import annotations

import json
import math
from typing import Any, Iterable

from oddsfeed.services.odds_types import DecodedEvent, DecodedOutcome, FeedMessage
from oddsfeed.utils import epoch_to_iso


_PASSTHROUGH_COMMANDS = {"authorized", "subscribed", "error", "pong"}

# Positional outcome layout.
_OUTCOME_MIN_LENGTH = 12
_OUTCOME_EVENT_ID = 1
_OUTCOME_PERIOD = 2
_OUTCOME_PRICE = 11
_OUTCOME_INFO = 15

# Positional event layout.
_EVENT_ID = 0
_EVENT_BOOKMAKER_ID = 1
_EVENT_STARTS_AT = 3
_EVENT_NAME = 4
_EVENT_LEAGUE_CANDIDATES = (6, 7)

# Object layouts: candidate keys in precedence order.
_OUTCOME_KEYS = {
    "event_id": ("bookmakerEventId", "eventId", "event_id"),
    "price": ("odds", "price"),
    "info": ("info", "infoString"),
    "period": ("period", "periodIdentifier"),
}
_EVENT_KEYS = {
    "event_id": ("id", "eventId"),
    "name": ("name", "eventName"),
    "starts_at": ("starts_at", "startsAt"),
    "league": ("league", "leagueName"),
    "bookmaker_id": ("bookmaker_id", "bookmakerId"),
}


def decode_message(raw: str | bytes | dict) -> FeedMessage:
    """Decode one websocket frame into a typed ``FeedMessage``."""
    message: Any = raw
    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError:
            return FeedMessage("unrecognized", payload=None)
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except ValueError:
            return FeedMessage("unrecognized", payload=raw)
    if not isinstance(message, dict):
        return FeedMessage("unrecognized", payload=message)

    command = message.get("cmd")
    payload = message.get("msg")

    if command in _PASSTHROUGH_COMMANDS:
        return FeedMessage(command, payload=payload)
    if command == "outcomes":
        items, skipped = _decode_batch(payload, _decode_outcome)
        return FeedMessage("outcomes", payload=payload, items=tuple(items), skipped=skipped)
    if command == "bookmaker_events":
        items, skipped = _decode_batch(payload, _decode_event)
        return FeedMessage("bookmaker_events", payload=payload, items=tuple(items), skipped=skipped)
    return FeedMessage("unrecognized", payload=message)


def _decode_batch(payload: Any, decode_item) -> tuple[list, int]:
    decoded: list = []
    skipped = 0
    for item in _iter_items(payload):
        result = decode_item(_unwrap_string(item))
        if result is None:
            skipped += 1
        else:
            decoded.append(result)
    return decoded, skipped


def _iter_items(payload: Any) -> Iterable[Any]:
    if payload is None:
        return []
    if isinstance(payload, str):
        payload = _unwrap_string(payload)
    if isinstance(payload, list):
        return payload
    return [payload]


def _unwrap_string(item: Any) -> Any:
    """Legacy frames carry JSON-encoded strings; anything else passes through."""
    if not isinstance(item, str):
        return item
    try:
        return json.loads(item)
    except ValueError:
        return None


def _decode_outcome(item: Any) -> DecodedOutcome | None:
    if isinstance(item, list):
        if len(item) < _OUTCOME_MIN_LENGTH:
            return None
        event_id = _as_id(item[_OUTCOME_EVENT_ID])
        price = _as_float(item[_OUTCOME_PRICE])
        period = item[_OUTCOME_PERIOD]
        info = item[_OUTCOME_INFO] if len(item) > _OUTCOME_INFO else None
    elif isinstance(item, dict):
        event_id = _as_id(_first(item, _OUTCOME_KEYS["event_id"]))
        price = _as_float(_first(item, _OUTCOME_KEYS["price"]))
        period = _first(item, _OUTCOME_KEYS["period"])
        info = _first(item, _OUTCOME_KEYS["info"])
    else:
        return None

    if event_id is None or price is None:
        return None
    return DecodedOutcome(
        event_id=event_id,
        price=price,
        info=info if isinstance(info, str) else None,
        period=str(period) if isinstance(period, (str, int)) and not isinstance(period, bool) else None,
    )


def _decode_event(item: Any) -> DecodedEvent | None:
    if isinstance(item, list):
        if len(item) <= _EVENT_BOOKMAKER_ID:
            return None
        event_id = _as_id(item[_EVENT_ID])
        bookmaker_id = _as_int(item[_EVENT_BOOKMAKER_ID])
        starts_at = epoch_to_iso(_at(item, _EVENT_STARTS_AT))
        name = _at(item, _EVENT_NAME)
        league = next(
            (item[i] for i in _EVENT_LEAGUE_CANDIDATES if _at(item, i)),
            "",
        )
    elif isinstance(item, dict):
        event_id = _as_id(_first(item, _EVENT_KEYS["event_id"]))
        bookmaker_id = _as_int(_first(item, _EVENT_KEYS["bookmaker_id"]))
        raw_start = _first(item, _EVENT_KEYS["starts_at"])
        if isinstance(raw_start, (int, float)) and not isinstance(raw_start, bool):
            starts_at = epoch_to_iso(raw_start)
        else:
            starts_at = str(raw_start) if raw_start else None
        name = _first(item, _EVENT_KEYS["name"])
        league = _first(item, _EVENT_KEYS["league"]) or ""
    else:
        return None

    if event_id is None:
        return None
    return DecodedEvent(
        event_id=event_id,
        name=str(name) if name else f"Event {event_id}",
        starts_at=starts_at,
        league=str(league),
        bookmaker_id=bookmaker_id,
    )


def _first(item: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _at(item: list, index: int) -> Any:
    return item[index] if len(item) > index else None


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None
