"""Persistent worker state: last successful run per worker, kept across restarts.

Uses a lightweight `worker_state` collection through the document store.
"""

from datetime import datetime, timedelta
from typing import Any

from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import ensure_utc, utcnow


async def get_synced_at(store: DocumentStore, worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await store.get(keys.WORKER_STATE, worker_id)
    return doc["synced_at"] if doc else None


async def set_synced(store: DocumentStore, worker_id: str, summary: dict[str, Any] | None = None) -> None:
    """Mark a worker as just synced."""
    fields: dict[str, Any] = {"synced_at": utcnow()}
    if summary is not None:
        fields["last_summary"] = summary
    await store.upsert(keys.WORKER_STATE, worker_id, fields)


async def recently_synced(store: DocumentStore, worker_id: str, max_age: timedelta) -> bool:
    """Check if a worker synced within the given time window."""
    last = await get_synced_at(store, worker_id)
    if not last:
        return False
    return (utcnow() - ensure_utc(last)) < max_age
