"""
backend/tests/test_wire_decoder.py

Purpose:
    Frame classification and shape sniffing for outcome and event-definition
    payloads (objects, positional arrays, JSON-encoded strings).
"""

from __future__ import annotations

import json

from oddsfeed.services.wire_decoder import decode_message


def _outcome_array(event_id=555, price=1.9, info="betId=11&betValue=1", period="0"):
    row = [None] * 16
    row[1] = event_id
    row[2] = period
    row[11] = price
    row[15] = info
    return row


def test_control_commands_pass_through():
    for cmd in ("authorized", "subscribed", "error", "pong"):
        message = decode_message(json.dumps({"cmd": cmd, "msg": "x"}))
        assert message.command == cmd
        assert message.payload == "x"
        assert message.items == ()


def test_unknown_command_and_garbage_are_unrecognized():
    assert decode_message('{"cmd": "heartbeat"}').command == "unrecognized"
    assert decode_message("not json").command == "unrecognized"
    assert decode_message("[1, 2, 3]").command == "unrecognized"
    assert decode_message(b"\xff\xfe").command == "unrecognized"


def test_outcome_object_keys_in_precedence_order():
    message = decode_message({
        "cmd": "outcomes",
        "msg": [{"bookmakerEventId": 42, "eventId": 99, "odds": "2.10", "info": "betId=12&betValue=2"}],
    })

    assert message.command == "outcomes"
    assert message.skipped == 0
    (outcome,) = message.items
    assert outcome.event_id == "42"
    assert outcome.price == 2.10
    assert outcome.info == "betId=12&betValue=2"


def test_outcome_positional_array():
    message = decode_message(json.dumps({"cmd": "outcomes", "msg": [_outcome_array()]}).encode())

    (outcome,) = message.items
    assert outcome.event_id == "555"
    assert outcome.price == 1.9
    assert outcome.period == "0"
    assert outcome.info == "betId=11&betValue=1"


def test_outcome_json_encoded_strings_are_unwrapped():
    payload = [json.dumps({"eventId": 7, "price": 3.3}), json.dumps(_outcome_array(event_id=8))]
    message = decode_message({"cmd": "outcomes", "msg": payload})

    assert [o.event_id for o in message.items] == ["7", "8"]


def test_malformed_outcomes_are_skipped_and_counted():
    message = decode_message({
        "cmd": "outcomes",
        "msg": [
            [1, 2, 3],  # too short
            {"eventId": 1},  # no price
            {"odds": 1.5},  # no event id
            "{broken",
            42,
            {"eventId": 3, "odds": 1.5},
        ],
    })

    assert message.skipped == 5
    assert [o.event_id for o in message.items] == ["3"]


def test_single_outcome_object_is_treated_as_batch():
    message = decode_message({"cmd": "outcomes", "msg": {"eventId": 1, "odds": 1.4}})
    assert len(message.items) == 1


def test_event_positional_array_with_league_fallback():
    message = decode_message({
        "cmd": "bookmaker_events",
        "msg": [
            [101, 21, None, 1740858300, "Napoli - Juventus", None, "", "Italy. Serie A"],
            [102, 103],
        ],
    })

    first, second = message.items
    assert first.event_id == "101"
    assert first.bookmaker_id == 21
    assert first.starts_at == "2025-03-01T19:45:00+00:00"
    assert first.name == "Napoli - Juventus"
    assert first.league == "Italy. Serie A"

    assert second.name == "Event 102"
    assert second.starts_at is None
    assert second.league == ""


def test_event_object_shape():
    message = decode_message({
        "cmd": "bookmaker_events",
        "msg": [{"eventId": "ev-9", "eventName": "Roma - Lazio", "startsAt": "2025-04-01T18:00:00Z",
                 "leagueName": "Serie A", "bookmakerId": "103"}],
    })

    (event,) = message.items
    assert event.event_id == "ev-9"
    assert event.name == "Roma - Lazio"
    assert event.starts_at == "2025-04-01T18:00:00Z"
    assert event.league == "Serie A"
    assert event.bookmaker_id == 103


def test_event_without_id_is_skipped():
    message = decode_message({"cmd": "bookmaker_events", "msg": [{"name": "x"}, ["", 21]]})
    assert message.items == ()
    assert message.skipped == 2


def test_overflowing_numbers_do_not_abort_the_event_batch():
    raw = (
        '{"cmd": "bookmaker_events", "msg": ['
        '[1, 1e400, null, 1e400, "Napoli - Juventus"], '
        '[2, 21, null, 1740858300, "Roma - Lazio"]]}'
    )

    message = decode_message(raw)

    first, second = message.items
    assert message.skipped == 0
    assert first.bookmaker_id is None
    assert first.starts_at is None
    assert second.bookmaker_id == 21
    assert second.name == "Roma - Lazio"


def test_non_finite_prices_are_skipped():
    raw = (
        '{"cmd": "outcomes", "msg": ['
        '{"eventId": 1, "odds": NaN}, '
        '{"eventId": 2, "odds": Infinity}, '
        '{"eventId": 3, "odds": 1e400}, '
        '{"eventId": 4, "odds": "inf"}, '
        '{"eventId": 5, "odds": ' + "9" * 400 + '}, '
        '{"eventId": 6, "odds": 1.75}]}'
    )

    message = decode_message(raw)

    assert message.skipped == 5
    assert [(o.event_id, o.price) for o in message.items] == [("6", 1.75)]
