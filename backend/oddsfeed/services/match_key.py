"""
backend/oddsfeed/services/match_key.py

Purpose:
    Build the cross-provider match key ``{home}_{away}_{bucket}`` from an event
    name and the feed's (untrusted) start time.

Dependencies:
    - oddsfeed.services.team_alias_normalizer
    - oddsfeed.utils
"""

from __future__ import annotations

from datetime import datetime, timezone

from oddsfeed.services.team_alias_normalizer import normalize_team_name, parse_event_name
from oddsfeed.utils import ensure_utc, parse_timestamp, utcnow

DEFAULT_BUCKET_MINUTES = 30
_MIN_PLAUSIBLE_YEAR = 2020
_KEY_TIME_FORMAT = "%Y-%m-%dT%H:%M"


def floor_to_bucket(dt: datetime, bucket_minutes: int = DEFAULT_BUCKET_MINUTES) -> datetime:
    dt = ensure_utc(dt)
    bucket_seconds = max(1, int(bucket_minutes)) * 60
    epoch = int(dt.timestamp())
    return datetime.fromtimestamp(epoch - epoch % bucket_seconds, tz=timezone.utc)


def round_time(
    raw: object,
    bucket_minutes: int = DEFAULT_BUCKET_MINUTES,
    now: datetime | None = None,
) -> str:
    """Round a start time down to its bucket as ``YYYY-MM-DDTHH:MM`` (UTC).

    Missing, unparseable or pre-2020 values fall back to the current time so
    updates from the same session still share a key.
    """
    parsed = parse_timestamp(raw)
    if parsed is None or parsed.year < _MIN_PLAUSIBLE_YEAR:
        parsed = now or utcnow()
    return floor_to_bucket(parsed, bucket_minutes).strftime(_KEY_TIME_FORMAT)


def build_match_key(
    event_name: str | None,
    raw_start_time: object,
    bucket_minutes: int = DEFAULT_BUCKET_MINUTES,
    now: datetime | None = None,
) -> str | None:
    parsed = parse_event_name(event_name)
    if parsed is None:
        return None
    home = normalize_team_name(parsed.home)
    away = normalize_team_name(parsed.away)
    if not home or not away:
        return None
    return f"{home}_{away}_{round_time(raw_start_time, bucket_minutes, now)}"
