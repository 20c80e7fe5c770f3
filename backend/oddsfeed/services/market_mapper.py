"""
backend/oddsfeed/services/market_mapper.py

Purpose:
    Map provider-specific market / outcome codes carried in the feed's opaque
    info string onto the canonical market schema (family + scope + kind) and a
    canonical selection label. Unmapped codes yield None; nothing is persisted
    under a synthetic label.

Dependencies:
    - re
    - oddsfeed.services.odds_types
    - oddsfeed.services.diagnostics
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable

from oddsfeed.services.diagnostics import FirstSeenRegistry
from oddsfeed.services.odds_types import MarketDefinition, MarketMapping

logger = logging.getLogger("oddsfeed.market_mapper")

ONEXBET_ID = 21
SISAL_ID = 103

_CORNERS = "CORNERS"
_SHOTS = "SHOTS"
_SHOTS_ON_TARGET = "SHOTS_ON_TARGET"
_FOULS = "FOULS"
_OFFSIDES = "OFFSIDES"


def _h2h(market: str) -> MarketDefinition:
    return MarketDefinition(market=market, scope="MATCH", kind="1X2")


def _total_ou(market: str) -> MarketDefinition:
    return MarketDefinition(market=market, scope="TOTAL", kind="OU")


# 1xbet betId -> canonical market
ONEXBET_MARKETS: dict[int, MarketDefinition] = {
    11: _h2h(_CORNERS),
    12: _h2h(_SHOTS),
    13: _h2h(_SHOTS_ON_TARGET),
    14: _h2h(_FOULS),
    751: _h2h(_OFFSIDES),
    739: _total_ou(_CORNERS),
    740: _total_ou(_CORNERS),
    741: _total_ou(_CORNERS),
    742: _total_ou(_CORNERS),
    7778: _total_ou(_SHOTS_ON_TARGET),
    7779: _total_ou(_SHOTS_ON_TARGET),
    7786: _total_ou(_SHOTS),
    7787: _total_ou(_SHOTS),
    7792: _total_ou(_FOULS),
    7793: _total_ou(_FOULS),
    7798: _total_ou(_OFFSIDES),
    7799: _total_ou(_OFFSIDES),
}

# 1xbet betValue -> 1X2 side. 0 and 3 are both draw encodings seen on the wire.
ONEXBET_H2H_SELECTIONS: dict[int, str] = {1: "1", 2: "2", 0: "X", 3: "X"}

# Sisal codiceScommessa -> canonical market
SISAL_MARKETS: dict[int, MarketDefinition] = {
    127: _h2h(_CORNERS),
    9942: _total_ou(_CORNERS),
    28319: _total_ou(_SHOTS_ON_TARGET),
    28320: _total_ou(_SHOTS),
    28321: _total_ou(_FOULS),
    28322: _total_ou(_OFFSIDES),
}

# Sisal codiceEsito -> selection base label
SISAL_SELECTIONS: dict[int, str] = {1: "1", 2: "2", 3: "X", 9: "Over", 14: "Under"}

# Sisal sends some lines as tenths (65 == 6.5). Approximation: a genuine line
# above this threshold would be misread.
SISAL_LINE_SCALE_THRESHOLD = 50.0

_PAIR_RE = re.compile(r"([^&=\s]+)=([^&]*)")
_NUMBER_RE = re.compile(r"^[0-9]+\.?[0-9]*")
_SISAL_LINE_KEYS = ("handicap", "line", "spread", "punti")


def parse_info_string(info: object) -> dict[str, str] | None:
    """Split an ``a=1&b=2`` style info string into a dict, None when no pair is present."""
    if not isinstance(info, str):
        return None
    pairs = {key: value for key, value in _PAIR_RE.findall(info)}
    return pairs or None


def _number(value: str | None) -> float | None:
    if value is None:
        return None
    match = _NUMBER_RE.match(value.strip())
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def _code(value: str | None) -> int | None:
    number = _number(value)
    if number is None or number != int(number):
        return None
    return int(number)


def format_line(line: float) -> str:
    """Render a line the way it is stored: ``9`` not ``9.0``, ``6.5`` stays ``6.5``."""
    if line == int(line):
        return str(int(line))
    return repr(round(line, 4))


def rescale_sisal_line(line: float) -> float:
    return line / 10 if line > SISAL_LINE_SCALE_THRESHOLD else line


def _lookup_ci(fields: dict[str, str], keys: tuple[str, ...]) -> str | None:
    lowered = {key.lower(): value for key, value in fields.items()}
    for key in keys:
        if key in lowered:
            return lowered[key]
    return None


class MarketMapper:
    """Per-provider market tables plus selection resolution rules.

    Every provider is an ordered strategy: extract the market code, look it up,
    then resolve the selection for that market's kind. Any step returning
    None short-circuits to "no mapping".
    """

    def __init__(self, unmapped: FirstSeenRegistry | None = None) -> None:
        self._unmapped = unmapped or FirstSeenRegistry()
        self._strategies: dict[int, Callable[[str, dict[str, str]], MarketMapping | None]] = {
            ONEXBET_ID: self._map_onexbet,
            SISAL_ID: self._map_sisal,
        }

    @property
    def unmapped(self) -> FirstSeenRegistry:
        return self._unmapped

    @property
    def providers(self) -> tuple[int, ...]:
        return tuple(self._strategies)

    def map(self, provider_id: int, info: str | None) -> MarketMapping | None:
        strategy = self._strategies.get(provider_id)
        if strategy is None or info is None:
            return None
        fields = parse_info_string(info)
        if fields is None:
            return None
        return strategy(info, fields)

    def _note_unmapped(self, provider_id: int, code: int, info: str) -> None:
        if self._unmapped.record(f"{provider_id}:{code}", info):
            logger.info("Unmapped market code provider=%s code=%s", provider_id, code)

    def _map_onexbet(self, info: str, fields: dict[str, str]) -> MarketMapping | None:
        bet_id = _code(fields.get("betId"))
        if bet_id is None:
            return None
        definition = ONEXBET_MARKETS.get(bet_id)
        if definition is None:
            self._note_unmapped(ONEXBET_ID, bet_id, info)
            return None

        bet_value = _number(fields.get("betValue"))
        if bet_value is None:
            return None

        if definition.kind == "1X2":
            if bet_value != int(bet_value):
                return None
            selection = ONEXBET_H2H_SELECTIONS.get(int(bet_value))
        else:
            direction = "Over" if "Over" in info else "Under"
            selection = f"{direction} {format_line(bet_value)}"

        if selection is None:
            return None
        return MarketMapping(definition.market, definition.scope, definition.kind, selection)

    def _map_sisal(self, info: str, fields: dict[str, str]) -> MarketMapping | None:
        market_code = _code(fields.get("codiceScommessa"))
        if market_code is None:
            return None
        definition = SISAL_MARKETS.get(market_code)
        if definition is None:
            self._note_unmapped(SISAL_ID, market_code, info)
            return None

        outcome_code = _code(fields.get("codiceEsito"))
        base = SISAL_SELECTIONS.get(outcome_code) if outcome_code is not None else None
        if base is None:
            return None

        if base in ("Over", "Under"):
            line = _number(_lookup_ci(fields, _SISAL_LINE_KEYS))
            if line is None:
                return None
            selection = f"{base} {format_line(rescale_sisal_line(line))}"
        else:
            selection = base

        if (definition.kind == "OU") != (base in ("Over", "Under")):
            return None
        return MarketMapping(definition.market, definition.scope, definition.kind, selection)


def infer_provider(info: str | None) -> int | None:
    """Guess the owning provider from the info string signature."""
    if not isinstance(info, str):
        return None
    if "codiceScommessa=" in info:
        return SISAL_ID
    if "betId=" in info:
        return ONEXBET_ID
    return None
