"""
backend/tests/test_change_detector.py

Purpose:
    TTL-bounded write suppression for unchanged odds.
"""

from __future__ import annotations

from oddsfeed.services.change_detector import ChangeDetector


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_unchanged_odds_within_ttl_are_suppressed(make_record):
    clock = _Clock()
    detector = ChangeDetector(ttl_seconds=60, clock=clock)

    assert detector.has_changed(make_record(odds=1.85)) is True
    clock.now += 30
    assert detector.has_changed(make_record(odds=1.85)) is False
    assert detector.stats() == {"size": 1, "suppressed_total": 1, "passed_total": 1}


def test_different_odds_pass_through(make_record):
    detector = ChangeDetector(ttl_seconds=60, clock=_Clock())

    assert detector.has_changed(make_record(odds=1.85))
    assert detector.has_changed(make_record(odds=1.90))
    assert detector.has_changed(make_record(odds=1.85))


def test_same_odds_pass_after_ttl(make_record):
    clock = _Clock()
    detector = ChangeDetector(ttl_seconds=60, clock=clock)

    detector.has_changed(make_record())
    clock.now += 60
    assert detector.has_changed(make_record()) is True


def test_keys_are_independent(make_record):
    detector = ChangeDetector(ttl_seconds=60, clock=_Clock())

    assert detector.has_changed(make_record(selection="1"))
    assert detector.has_changed(make_record(selection="2"))
    assert detector.has_changed(make_record(bookmaker_id=103))
    assert len(detector) == 3


def test_sweep_removes_entries_older_than_twice_ttl(make_record):
    clock = _Clock()
    detector = ChangeDetector(ttl_seconds=60, clock=clock)
    detector.has_changed(make_record(selection="1"))
    clock.now += 100
    detector.has_changed(make_record(selection="2"))
    clock.now += 30

    assert detector.sweep() == 1
    assert len(detector) == 1
    assert detector.sweep() == 0
