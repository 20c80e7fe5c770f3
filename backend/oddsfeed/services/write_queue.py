"""
backend/oddsfeed/services/write_queue.py

Purpose:
    Single in-process FIFO of pending odds records drained by exactly one
    background task in fixed-size batches, with a mandatory delay between
    batches, bounded retry with backoff on transient store errors, and
    drop-on-exhaustion (records are never requeued).

Dependencies:
    - asyncio
    - pymongo.errors (transient error classification)
    - oddsfeed.services.odds_types
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, deque
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from pymongo.errors import ConnectionFailure

from oddsfeed.services.odds_types import CanonicalOddsRecord, bookmaker_name

logger = logging.getLogger("oddsfeed.write_queue")

_RETRYABLE_TYPES = (TimeoutError, asyncio.TimeoutError, ConnectionError, ConnectionFailure)
# Edge proxies answer with an HTML error page instead of a structured error.
_RETRYABLE_MARKERS = (
    "<!doctype",
    "<html",
    "econnreset",
    "connection reset",
    "etimedout",
    "timed out",
    "timeout",
)
_ERROR_PREVIEW_CHARS = 200


class OddsStore(Protocol):
    async def upsert(self, records: Sequence[CanonicalOddsRecord]) -> Any:
        ...


def is_retryable_error(exc: BaseException) -> bool:
    """Connection resets, timeouts and gateway HTML pages are transient; all else is not."""
    if isinstance(exc, _RETRYABLE_TYPES):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _RETRYABLE_MARKERS)


def _preview(exc: BaseException) -> str:
    text = " ".join(str(exc).split())
    if len(text) > _ERROR_PREVIEW_CHARS:
        return text[:_ERROR_PREVIEW_CHARS] + "..."
    return text or type(exc).__name__


def _batch_summary(batch: Sequence[CanonicalOddsRecord]) -> str:
    counts = Counter(bookmaker_name(r.bookmaker_id) for r in batch)
    return ", ".join(f"{name}: {count}" for name, count in sorted(counts.items()))


class WriteQueue:
    def __init__(
        self,
        store: OddsStore,
        *,
        batch_size: int = 50,
        write_delay_seconds: float = 0.2,
        retry_delays: Iterable[float] = (0.5, 1.0, 2.0),
    ) -> None:
        self._store = store
        self._batch_size = max(1, int(batch_size))
        self._write_delay = max(0.0, float(write_delay_seconds))
        self._retry_delays = tuple(float(d) for d in retry_delays)
        self._queue: deque[CanonicalOddsRecord] = deque()
        self._draining = False
        self._drain_task: asyncio.Task | None = None

        self._drain_runs = 0
        self._batches_written = 0
        self._records_written = 0
        self._batches_dropped = 0
        self._records_dropped = 0
        self._records_abandoned = 0
        self._retries = 0
        self._max_depth_seen = 0

    @property
    def draining(self) -> bool:
        return self._draining

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, records: Iterable[CanonicalOddsRecord]) -> int:
        """Append records and wake the drain loop if it is idle."""
        added = list(records)
        if not added:
            return 0
        self._queue.extend(added)
        self._max_depth_seen = max(self._max_depth_seen, len(self._queue))
        logger.debug("Queued %d records, queue size: %d", len(added), len(self._queue))
        if not self._draining:
            # Set before the task exists so a second enqueue in the same tick sees it.
            self._draining = True
            self._drain_task = asyncio.create_task(self._drain(), name="write_queue_drain")
        return len(added)

    async def wait_idle(self) -> None:
        while self._drain_task is not None and not self._drain_task.done():
            await self._drain_task

    async def stop(self) -> None:
        """Cancel the drain and abandon whatever is still queued."""
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
        self._draining = False
        abandoned = len(self._queue)
        self._queue.clear()
        if abandoned:
            self._records_abandoned += abandoned
            logger.warning("Write queue stopped; %d queued records abandoned", abandoned)

    async def _drain(self) -> None:
        self._drain_runs += 1
        try:
            while self._queue:
                take = min(self._batch_size, len(self._queue))
                batch = [self._queue.popleft() for _ in range(take)]
                await self._write_batch(batch)
                await asyncio.sleep(self._write_delay)
        finally:
            self._draining = False

    async def _write_batch(self, batch: list[CanonicalOddsRecord]) -> bool:
        attempts = len(self._retry_delays) + 1
        for attempt in range(attempts):
            try:
                await self._store.upsert(batch)
            except Exception as exc:
                if not is_retryable_error(exc):
                    logger.error(
                        "Upsert failed (non-retryable), dropping batch of %d records (%s) first_key=%s: %s",
                        len(batch), _batch_summary(batch), batch[0].natural_key, _preview(exc),
                    )
                    break
                if attempt + 1 >= attempts:
                    logger.error(
                        "Upsert failed after %d attempts, dropping batch of %d records (%s) first_key=%s: %s",
                        attempts, len(batch), _batch_summary(batch), batch[0].natural_key, _preview(exc),
                    )
                    break
                delay = self._retry_delays[attempt]
                self._retries += 1
                logger.warning(
                    "Transient upsert error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1, attempts, delay, _preview(exc),
                )
                await asyncio.sleep(delay)
            else:
                self._batches_written += 1
                self._records_written += len(batch)
                logger.info("Saved %d records (%s)", len(batch), _batch_summary(batch))
                return True

        self._batches_dropped += 1
        self._records_dropped += len(batch)
        return False

    def stats(self) -> dict[str, Any]:
        return {
            "depth": len(self._queue),
            "draining": self._draining,
            "batch_size": self._batch_size,
            "drain_runs": self._drain_runs,
            "batches_written": self._batches_written,
            "records_written": self._records_written,
            "batches_dropped": self._batches_dropped,
            "records_dropped": self._records_dropped,
            "records_abandoned": self._records_abandoned,
            "retries": self._retries,
            "max_depth_seen": self._max_depth_seen,
        }
