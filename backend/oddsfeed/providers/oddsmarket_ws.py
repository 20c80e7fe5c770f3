"""
backend/oddsfeed/providers/oddsmarket_ws.py

Purpose:
    Websocket client for the OddsMarket live feed. Authenticates on open,
    subscribes once authorized, keeps the session alive with application-level
    pings, and reconnects after a fixed delay. Every decoded message is handed
    to the pipeline; the connection loop never dies on a processing error.

    Reconnect policy: the attempt counter resets on every successful open;
    exceeding the maximum raises FeedReconnectExhausted, which the process
    treats as fatal.

Dependencies:
    - websockets (asyncio client, per-message deflate)
    - oddsfeed.services.wire_decoder
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from oddsfeed.services.odds_types import FeedMessage
from oddsfeed.services.wire_decoder import decode_message
from oddsfeed.utils import utcnow

logger = logging.getLogger("oddsfeed.feed")


class FeedConfigError(RuntimeError):
    """The feed cannot be started with the current configuration."""


class FeedReconnectExhausted(RuntimeError):
    """Reconnect attempts exceeded the configured maximum."""


class FeedClient:
    def __init__(
        self,
        *,
        api_key: str,
        url: str,
        bookmaker_ids: Sequence[int],
        sport_ids: Sequence[int],
        handler: Callable[[FeedMessage], None],
        ping_interval: float = 30.0,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        if not api_key:
            raise FeedConfigError("FEED_API_KEY is not configured")
        self._api_key = api_key
        self._url = url
        self._bookmaker_ids = list(bookmaker_ids)
        self._sport_ids = list(sport_ids)
        self._handler = handler
        self._ping_interval = ping_interval
        self._reconnect_delay = reconnect_delay
        self._max_attempts = max_reconnect_attempts
        self._connect = connect

        self._ws = None
        self._stopping = False
        self._state = "idle"
        self._authorized = False
        self._attempts = 0
        self._connections = 0
        self._messages_received = 0
        self._last_message_at = None

    @property
    def authorized(self) -> bool:
        return self._authorized

    async def run(self) -> None:
        """Connect and consume until close() is called or reconnects run out."""
        self._stopping = False
        while not self._stopping:
            self._state = "connecting"
            try:
                await self._run_once()
            except (OSError, TimeoutError, asyncio.TimeoutError, WebSocketException) as exc:
                logger.warning("Feed connection error: %s", exc)

            if self._stopping:
                break
            self._state = "disconnected"
            self._attempts += 1
            if self._attempts > self._max_attempts:
                self._state = "failed"
                raise FeedReconnectExhausted(
                    f"Feed unreachable after {self._max_attempts} reconnect attempts"
                )
            logger.info(
                "Reconnecting to feed in %.1fs (attempt %d/%d)",
                self._reconnect_delay, self._attempts, self._max_attempts,
            )
            await asyncio.sleep(self._reconnect_delay)
        self._state = "closed"

    async def close(self) -> None:
        self._stopping = True
        ws = self._ws
        if ws is not None:
            await ws.close()

    async def _run_once(self) -> None:
        async with self._connect(self._url, compression="deflate", ping_interval=None) as ws:
            self._ws = ws
            self._state = "connected"
            self._attempts = 0
            self._connections += 1
            logger.info("Connected to feed %s", self._url)

            await self._send(ws, "authorization", self._api_key)
            ping_task = asyncio.create_task(self._ping_loop(ws), name="feed_ping")
            try:
                async for raw in ws:
                    await self._on_frame(ws, raw)
            finally:
                ping_task.cancel()
                try:
                    await ping_task
                except asyncio.CancelledError:
                    pass
                self._ws = None
                self._authorized = False
        logger.warning("Feed connection closed")

    async def _on_frame(self, ws, raw: str | bytes) -> None:
        self._messages_received += 1
        self._last_message_at = utcnow()
        try:
            message = decode_message(raw)
        except Exception:
            logger.exception("Failed to decode feed frame")
            return

        if message.command == "authorized":
            self._authorized = True
            self._state = "authorized"
            logger.info(
                "Feed authorized, subscribing to bookmakers %s sports %s",
                self._bookmaker_ids, self._sport_ids,
            )
            await self._send(ws, "subscribe", {
                "bookmakerIds": self._bookmaker_ids,
                "sportIds": self._sport_ids,
            })
        elif message.command == "subscribed":
            self._state = "subscribed"
            logger.info("Feed subscription confirmed")

        try:
            self._handler(message)
        except Exception:
            logger.exception("Failed to process %s message", message.command)

    async def _ping_loop(self, ws) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            try:
                await self._send(ws, "ping", str(int(time.time() * 1000)))
            except ConnectionClosed:
                return

    @staticmethod
    async def _send(ws, cmd: str, msg: Any) -> None:
        await ws.send(json.dumps({"cmd": cmd, "msg": msg}))

    def stats(self) -> dict[str, Any]:
        return {
            "state": self._state,
            "authorized": self._authorized,
            "connections": self._connections,
            "reconnect_attempts": self._attempts,
            "max_reconnect_attempts": self._max_attempts,
            "messages_received": self._messages_received,
            "last_message_at": self._last_message_at.isoformat() if self._last_message_at else None,
        }
