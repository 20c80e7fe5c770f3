"""
backend/oddsfeed/main.py

Purpose:
    Process bootstrap: logging, MongoDB, pipeline state, the feed client task,
    scheduled housekeeping jobs and the /health status endpoint.

    Reconnect exhaustion on the feed terminates the whole process with exit
    code 1 so the supervisor can restart it.

Dependencies:
    - fastapi, apscheduler, uvicorn
    - oddsfeed.database
    - oddsfeed.providers.oddsmarket_ws
    - oddsfeed.services.odds_pipeline
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from oddsfeed.config import settings
from oddsfeed.database import close_db, connect_db, ping_db
from oddsfeed.middleware.logging import StructuredLoggingMiddleware, setup_logging
from oddsfeed.providers.oddsmarket_ws import FeedClient, FeedReconnectExhausted
from oddsfeed.services.odds_pipeline import OddsPipeline, build_pipeline
from oddsfeed.services.odds_repository import LiveOddsRepository
from oddsfeed.workers.maintenance import report_unmapped, sweep_change_cache

logger = logging.getLogger("oddsfeed")
scheduler = AsyncIOScheduler()

pipeline: OddsPipeline | None = None
feed: FeedClient | None = None
_feed_task: asyncio.Task | None = None


def _on_feed_done(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        return
    if isinstance(exc, FeedReconnectExhausted):
        logger.critical("%s, exiting", exc)
    else:
        logger.critical("Feed client crashed, exiting", exc_info=exc)
    os._exit(1)


def _register_jobs(state: OddsPipeline) -> None:
    scheduler.add_job(
        sweep_change_cache,
        "interval",
        seconds=settings.CHANGE_TTL_SECONDS,
        args=[state],
        id="change_cache_sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        report_unmapped,
        "interval",
        seconds=settings.UNMAPPED_REPORT_INTERVAL_SECONDS,
        args=[state, settings.UNMAPPED_REPORT_LIMIT],
        id="unmapped_report",
        replace_existing=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global pipeline, feed, _feed_task
    setup_logging()

    pipeline = build_pipeline(settings, LiveOddsRepository())
    # Raises FeedConfigError before anything is started when the key is missing.
    feed = FeedClient(
        api_key=settings.FEED_API_KEY,
        url=settings.FEED_WS_URL,
        bookmaker_ids=settings.FEED_BOOKMAKER_IDS,
        sport_ids=settings.FEED_SPORT_IDS,
        handler=pipeline.handle_message,
        ping_interval=settings.FEED_PING_INTERVAL_SECONDS,
        reconnect_delay=settings.FEED_RECONNECT_DELAY_SECONDS,
        max_reconnect_attempts=settings.FEED_MAX_RECONNECT_ATTEMPTS,
    )

    await connect_db()
    _register_jobs(pipeline)
    scheduler.start()
    logger.info("Background scheduler started")

    _feed_task = asyncio.create_task(feed.run(), name="oddsmarket_feed")
    _feed_task.add_done_callback(_on_feed_done)
    logger.info(
        "Feed worker started: bookmakers %s, leagues %s",
        settings.FEED_BOOKMAKER_IDS, settings.LEAGUE_FILTER or "all",
    )

    yield

    _feed_task.remove_done_callback(_on_feed_done)
    await feed.close()
    _feed_task.cancel()
    try:
        await _feed_task
    except asyncio.CancelledError:
        pass
    await pipeline.stop()
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_db()
    logger.info("Feed worker stopped")


app = FastAPI(
    title="OddsFeed",
    description="Live bookmaker odds ingestion",
    version="0.1.0",
    lifespan=lifespan,
)

# Structured request logging
app.add_middleware(StructuredLoggingMiddleware)


@app.get("/health")
async def health():
    """Health check -- DB ping, feed connection state and pipeline counters."""
    db_ok = await ping_db()
    feed_stats = feed.stats() if feed is not None else {"state": "not_started", "authorized": False}
    healthy = db_ok and feed_stats["authorized"]

    return {
        "status": "healthy" if healthy else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "feed": feed_stats,
        "pipeline": pipeline.stats() if pipeline is not None else None,
        "write_queue": pipeline.write_queue.stats() if pipeline is not None else None,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("oddsfeed.main:app", host="0.0.0.0", port=8000)
