"""
backend/oddsfeed/database.py

Purpose:
    MongoDB connection bootstrap and index management for the live odds
    collection.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - oddsfeed.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from oddsfeed.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("oddsfeed.database")

NATURAL_KEY_FIELDS = ("event_id", "bookmaker_id", "market_type", "selection")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=10,
        minPoolSize=1,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def ping_db() -> bool:
    if db is None:
        return False
    try:
        result = await db.command("ping")
    except PyMongoError:
        return False
    return result.get("ok") == 1.0


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""
    live_odds = db[settings.ODDS_COLLECTION]

    # Conflict key for upserts: one row per event/bookmaker/market/selection.
    try:
        await live_odds.create_index(
            [(field, 1) for field in NATURAL_KEY_FIELDS],
            unique=True,
            name="live_odds_natural_key",
        )
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning("Skipped unique live_odds natural key index: %s", exc)

    # Cross-provider comparison reads
    await live_odds.create_index([("match_key", 1), ("market_type", 1), ("selection", 1)])
    await live_odds.create_index([("updated_at", -1)])
    await live_odds.create_index([("bookmaker_id", 1), ("updated_at", -1)])
