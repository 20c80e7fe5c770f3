"""
backend/oddsfeed/services/odds_repository.py

Purpose:
    Persistence access layer for the live odds collection. One bulk upsert per
    batch, resolving conflicts on (event_id, bookmaker_id, market_type,
    selection): an existing row with the same key is overwritten.

Dependencies:
    - oddsfeed.database
    - pymongo
"""

from __future__ import annotations

from collections.abc import Sequence

from pymongo import UpdateOne

import oddsfeed.database as _db
from oddsfeed.config import settings
from oddsfeed.database import NATURAL_KEY_FIELDS
from oddsfeed.services.odds_types import CanonicalOddsRecord
from oddsfeed.utils import utcnow


class LiveOddsRepository:
    def __init__(self, collection_name: str | None = None) -> None:
        self._collection_name = collection_name or settings.ODDS_COLLECTION

    def _collection(self):
        return _db.db[self._collection_name]

    async def upsert(self, records: Sequence[CanonicalOddsRecord]) -> dict[str, int]:
        if not records:
            return {"upserted": 0, "modified": 0, "matched": 0}

        now = utcnow()
        ops = []
        for record in records:
            doc = record.to_document()
            ops.append(
                UpdateOne(
                    {field: doc[field] for field in NATURAL_KEY_FIELDS},
                    {"$set": doc, "$setOnInsert": {"created_at": now}},
                    upsert=True,
                )
            )
        result = await self._collection().bulk_write(ops, ordered=False)
        return {
            "upserted": result.upserted_count,
            "modified": result.modified_count,
            "matched": result.matched_count,
        }
