"""
backend/oddsfeed/services/team_alias_normalizer.py

Purpose:
    Normalize team names for robust matching across providers. 1xbet delivers
    many names as Russian (Cyrillic) text or as its own Latin transliteration,
    Sisal uses Italian spellings; both must collapse to the same key.

Dependencies:
    - re
    - unicodedata
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")
_LEGAL_TOKENS_RE = re.compile(r"\b(?:fc|fk|ac|ssc|as|ss|afc|sc|cf|ud|us|calcio)\b")

_EVENT_SEPARATORS = (" - ", " – ", " — ", " vs ", " v ")

_CYRILLIC_MAP = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "e",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "kh", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "shch",
    "ъ": "", "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
    "і": "i", "ї": "yi", "є": "ye", "ґ": "g",
}

# Exact normalized name -> canonical key. Values must normalize to themselves.
TEAM_ALIASES = {
    # Serie A
    "napoli": "napoli",
    "juventus": "juventus",
    "yuventus": "juventus",
    "inter": "inter",
    "inter milan": "inter",
    "internazionale": "inter",
    "internatsionale": "inter",
    "milan": "milan",
    "roma": "roma",
    "lazio": "lazio",
    "latsio": "lazio",
    "atalanta": "atalanta",
    "fiorentina": "fiorentina",
    "torino": "torino",
    "bologna": "bologna",
    "bolonya": "bologna",
    "udinese": "udinese",
    "udineze": "udinese",
    "empoli": "empoli",
    "lecce": "lecce",
    "lechche": "lecce",
    "monza": "monza",
    "montsa": "monza",
    "cagliari": "cagliari",
    "kalyari": "cagliari",
    "genoa": "genoa",
    "dzhenoa": "genoa",
    "verona": "verona",
    "hellas verona": "verona",
    "ellas verona": "verona",
    "parma": "parma",
    "como": "como",
    "komo": "como",
    "venezia": "venezia",
    "venetsiya": "venezia",
    "sassuolo": "sassuolo",
    "pisa": "pisa",
    "piza": "pisa",
    "cremonese": "cremonese",
    "kremoneze": "cremonese",
    # Common "city" / "united" transliteration artifacts
    "manchester siti": "manchester city",
    "manchester yunayted": "manchester united",
    "nyukasl yunayted": "newcastle united",
    "lester siti": "leicester city",
}


class TeamPair(NamedTuple):
    home: str
    away: str


def transliterate(text: str) -> str:
    """Character-by-character Cyrillic -> Latin; unknown characters pass through."""
    return "".join(_CYRILLIC_MAP.get(ch, ch) for ch in text)


def _clean(raw: str) -> str:
    text = transliterate(str(raw or "").strip().lower())
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _PUNCT_RE.sub(" ", text)
    text = _LEGAL_TOKENS_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def normalize_team_name(raw: str) -> str:
    """
    Normalize a provider team name into a cross-provider key.

    Steps:
        1. lowercase + trim
        2. Cyrillic transliteration
        3. NFKD accent removal
        4. punctuation cleanup
        5. legal-entity token removal (fc, ac, ssc, ...)
        6. whitespace collapse
        7. alias correction (exact match, then the space-free form)
    """
    cleaned = _clean(raw)
    if not cleaned:
        return ""
    if cleaned in TEAM_ALIASES:
        return TEAM_ALIASES[cleaned]
    compact = cleaned.replace(" ", "")
    if compact in TEAM_ALIASES:
        return TEAM_ALIASES[compact]
    return cleaned


def is_known_team(normalized: str) -> bool:
    return normalized in TEAM_ALIASES.values()


def parse_event_name(event_name: str | None) -> TeamPair | None:
    """Split ``"Home - Away"`` style names; the first separator present wins."""
    if not event_name:
        return None
    for sep in _EVENT_SEPARATORS:
        if sep in event_name:
            parts = event_name.split(sep)
            home, away = parts[0].strip(), parts[-1].strip()
            if home and away:
                return TeamPair(home, away)
            return None
    return None


def build_display_name(event_name: str) -> str:
    parsed = parse_event_name(event_name)
    if parsed is None:
        return event_name
    return f"{parsed.home} - {parsed.away}"
