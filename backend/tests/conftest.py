"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: puts backend/ on the import path and provides a
    record factory for pipeline-level tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))


@pytest.fixture
def make_record():
    from oddsfeed.services.odds_types import CanonicalOddsRecord, bookmaker_name

    def _make(
        event_id: str = "e1",
        bookmaker_id: int = 21,
        market_type: str = "CORNERS_MATCH_1X2",
        selection: str = "1",
        odds: float = 1.85,
    ) -> CanonicalOddsRecord:
        return CanonicalOddsRecord(
            event_id=event_id,
            event_name="Napoli - Juventus",
            raw_start_time="2025-03-01T19:45:00+00:00",
            display_name="Napoli - Juventus",
            league="Italy. Serie A",
            sport_id=7,
            bookmaker_id=bookmaker_id,
            bookmaker_name=bookmaker_name(bookmaker_id),
            market_type=market_type,
            selection=selection,
            odds=odds,
            match_key="napoli_juventus_2025-03-01T19:30",
        )

    return _make
