"""
backend/tests/test_team_alias_normalizer.py

Purpose:
    Team name normalization across Italian, English and Russian spellings,
    plus event-name parsing.
"""

from __future__ import annotations

import pytest

from oddsfeed.services.team_alias_normalizer import (
    TEAM_ALIASES,
    build_display_name,
    is_known_team,
    normalize_team_name,
    parse_event_name,
    transliterate,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("SSC Napoli", "napoli"),
        ("Наполи", "napoli"),
        ("Ювентус", "juventus"),
        ("Juventus FC", "juventus"),
        ("Inter Milan", "inter"),
        ("Hellas Verona", "verona"),
        ("  AS   Roma ", "roma"),
        ("Лацио", "lazio"),
        ("Манчестер Сити", "manchester city"),
        ("Atlético", "atletico"),
    ],
)
def test_normalize_team_name(raw, expected):
    assert normalize_team_name(raw) == expected


def test_normalization_is_idempotent():
    samples = ["SSC Napoli", "Ювентус", "Hellas Verona", "Real Madrid C.F.", "Borussia M'gladbach", ""]
    for raw in samples:
        once = normalize_team_name(raw)
        assert normalize_team_name(once) == once


def test_alias_values_are_fixed_points():
    for canonical in set(TEAM_ALIASES.values()):
        assert normalize_team_name(canonical) == canonical


def test_compact_alias_match():
    assert normalize_team_name("Inter-nazionale") == "inter"


def test_transliterate_passes_unknown_characters():
    assert transliterate("щит 1") == "shchit 1"


def test_is_known_team():
    assert is_known_team("napoli")
    assert not is_known_team("atletico")


def test_parse_event_name():
    assert parse_event_name("Napoli - Juventus") == ("Napoli", "Juventus")
    assert parse_event_name("Roma vs Lazio") == ("Roma", "Lazio")
    assert parse_event_name("Milan v Inter") == ("Milan", "Inter")
    assert parse_event_name("Napoli") is None
    assert parse_event_name("Napoli - ") is None
    assert parse_event_name("") is None
    assert parse_event_name(None) is None


def test_build_display_name():
    assert build_display_name("Roma vs Lazio") == "Roma - Lazio"
    assert build_display_name("Napoli") == "Napoli"
