"""
backend/marketsync/services/archive_service.py

Purpose:
    Move aged terminal records to cold storage with a batched copy-then-delete.
    Final contests qualify once ARCHIVE_AFTER_HOURS have passed since
    scored_at (or match_time when never scored); Closed speculations once the
    same age has passed since their lock time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from marketsync.models.contest import ContestStatus
from marketsync.models.speculation import SpeculationStatus
from marketsync.monitoring.metrics import ARCHIVE_DOCUMENTS_TOTAL
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow

logger = logging.getLogger("marketsync.archive")


class ArchiveService:
    def __init__(self, store: DocumentStore, *, after_hours: int = 72, batch_size: int = 200):
        self._store = store
        self._after = timedelta(hours=after_hours)
        self._batch_size = max(1, batch_size)

    async def _move(self, source: str, target: str, query: dict[str, Any], now: datetime) -> int:
        moved = 0
        while True:
            docs = await self._store.find(source, query, sort=[("_id", 1)], limit=self._batch_size)
            if not docs:
                break
            batch = self._store.batch()
            for doc in docs:
                batch.set(target, doc["_id"], {**doc, "archived_at": now})
            for doc in docs:
                batch.delete(source, doc["_id"])
            await batch.commit()
            moved += len(docs)
            ARCHIVE_DOCUMENTS_TOTAL.labels(collection=source).inc(len(docs))
            if len(docs) < self._batch_size:
                break
        return moved

    async def archive_final_contests(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        cutoff = now - self._after
        query = {
            "status": ContestStatus.FINAL.value,
            "$or": [
                {"scored_at": {"$lte": cutoff}},
                {"scored_at": None, "match_time": {"$lte": cutoff}},
            ],
        }
        moved = await self._move(keys.CONTESTS, keys.CONTESTS_ARCHIVE, query, now)
        logger.info("Archived %d final contests (cutoff %s)", moved, cutoff.isoformat())
        return moved

    async def archive_closed_speculations(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        cutoff = now - self._after
        query = {"status": SpeculationStatus.CLOSED.value, "lock_time": {"$lte": cutoff}}
        moved = await self._move(keys.SPECULATIONS, keys.SPECULATIONS_ARCHIVE, query, now)
        logger.info("Archived %d closed speculations (cutoff %s)", moved, cutoff.isoformat())
        return moved

    async def run(self, now: datetime | None = None) -> dict[str, int]:
        now = now or utcnow()
        return {
            "contests": await self.archive_final_contests(now),
            "speculations": await self.archive_closed_speculations(now),
        }
