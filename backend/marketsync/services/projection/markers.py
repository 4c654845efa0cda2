"""
backend/marketsync/services/projection/markers.py

Purpose:
    Delivery markers for events that move amounts on an existing record.
    A handler body runs only for the delivery that conditionally created the
    marker; the marker is released again when the body does not apply, so a
    later replay can retry.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from marketsync.services.projection.context import Outcome, ProjectionContext, ProjectionResult, duplicate
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow


async def run_once(
    store: DocumentStore,
    ctx: ProjectionContext,
    entity_key: str,
    body: Callable[[], Awaitable[ProjectionResult]],
) -> ProjectionResult:
    marker = {
        "event": ctx.event_name,
        "entity_key": entity_key,
        "tx_hash": ctx.tx_hash,
        "log_index": ctx.log_index,
        "block_number": ctx.block_number,
        "processed_at": utcnow(),
    }
    if not await store.create_if_absent(keys.PROCESSED_EVENTS, ctx.marker_key, marker):
        return duplicate(entity_key, f"delivery {ctx.marker_key} already applied")
    try:
        result = await body()
    except Exception:
        await store.delete(keys.PROCESSED_EVENTS, ctx.marker_key)
        raise
    if result.outcome is not Outcome.APPLIED:
        await store.delete(keys.PROCESSED_EVENTS, ctx.marker_key)
    return result
