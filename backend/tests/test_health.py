"""
backend/tests/test_health.py

Purpose:
    /health status aggregation and the fatal exit on feed exhaustion.
"""

from __future__ import annotations

import asyncio
import json
import logging
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import oddsfeed.main as main_module
from oddsfeed.providers.oddsmarket_ws import FeedReconnectExhausted
from oddsfeed.services.odds_pipeline import OddsPipeline
from oddsfeed.services.write_queue import WriteQueue


class _NullStore:
    async def upsert(self, records):
        return None


def _patch_state(monkeypatch, *, db_ok: bool, authorized: bool) -> None:
    async def fake_ping():
        return db_ok

    feed = SimpleNamespace(stats=lambda: {"state": "subscribed" if authorized else "connecting",
                                          "authorized": authorized})
    monkeypatch.setattr(main_module, "ping_db", fake_ping)
    monkeypatch.setattr(main_module, "feed", feed)
    monkeypatch.setattr(main_module, "pipeline", OddsPipeline(write_queue=WriteQueue(_NullStore())))


def test_health_is_healthy_when_db_and_feed_are_up(monkeypatch):
    _patch_state(monkeypatch, db_ok=True, authorized=True)

    response = TestClient(main_module.app).get("/health")
    body = response.json()

    assert len(response.headers["X-Request-ID"]) == 8
    assert body["status"] == "healthy"
    assert body["db"] == "connected"
    assert body["feed"]["state"] == "subscribed"
    assert body["pipeline"]["event_cache"]["size"] == 0
    assert body["pipeline"]["pending_outcomes"]["size"] == 0
    assert body["write_queue"]["depth"] == 0


@pytest.mark.parametrize("db_ok,authorized", [(False, True), (True, False)])
def test_health_is_degraded_otherwise(monkeypatch, db_ok, authorized):
    _patch_state(monkeypatch, db_ok=db_ok, authorized=authorized)

    body = TestClient(main_module.app).get("/health").json()

    assert body["status"] == "degraded"


def test_requests_are_logged_with_their_request_id(monkeypatch, caplog):
    _patch_state(monkeypatch, db_ok=True, authorized=True)
    client = TestClient(main_module.app)

    with caplog.at_level(logging.DEBUG, logger="oddsfeed.http"):
        health = client.get("/health")
        missing = client.get("/odds")

    records = [r for r in caplog.records if r.name == "oddsfeed.http"]
    lines = [json.loads(r.getMessage()) for r in records]
    assert [r.levelno for r in records] == [logging.DEBUG, logging.WARNING]
    assert lines[0]["request_id"] == health.headers["X-Request-ID"]
    assert lines[0]["path"] == "/health"
    assert lines[1]["status"] == 404
    assert lines[1]["request_id"] == missing.headers["X-Request-ID"]
    assert set(lines[0]) == {"request_id", "method", "path", "status", "duration_ms"}


def test_health_before_startup(monkeypatch):
    async def fake_ping():
        return False

    monkeypatch.setattr(main_module, "ping_db", fake_ping)
    monkeypatch.setattr(main_module, "feed", None)
    monkeypatch.setattr(main_module, "pipeline", None)

    body = TestClient(main_module.app).get("/health").json()

    assert body["status"] == "degraded"
    assert body["feed"] == {"state": "not_started", "authorized": False}
    assert body["pipeline"] is None


@pytest.mark.asyncio
async def test_feed_exhaustion_exits_process(monkeypatch):
    exits = []
    monkeypatch.setattr(main_module.os, "_exit", exits.append)

    async def exhausted():
        raise FeedReconnectExhausted("Feed unreachable after 10 reconnect attempts")

    async def finished():
        return None

    failed = asyncio.create_task(exhausted())
    clean = asyncio.create_task(finished())
    await asyncio.gather(failed, clean, return_exceptions=True)

    main_module._on_feed_done(clean)
    assert exits == []
    main_module._on_feed_done(failed)
    assert exits == [1]
