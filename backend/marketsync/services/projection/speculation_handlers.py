"""
backend/marketsync/services/projection/speculation_handlers.py

Purpose:
    Speculation projections. Creation rejects a second on-chain id for the
    same (contest, scorer, number) proposition, first by lookup and then by
    the unique business-key index when two deliveries race.

Dependencies:
    - marketsync.store
    - marketsync.models.speculation
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.models.speculation import Speculation, SpeculationStatus, WinSide
from marketsync.services.projection.context import (
    ProjectionContext,
    ProjectionResult,
    applied,
    duplicate,
    missing,
)
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import from_unix, utcnow

logger = logging.getLogger("marketsync.projection.speculation")


async def on_speculation_created(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    speculation_id = str(values["speculation_id"])
    key = keys.speculation_key(speculation_id)
    if await store.get(keys.SPECULATIONS, key) is not None:
        return duplicate(key)

    now = ctx.event_time
    speculation = Speculation(
        key=key,
        speculation_id=speculation_id,
        contest_id=str(values["contest_id"]),
        lock_time=from_unix(values["lock_time"]),
        scorer=values["scorer"],
        the_number=int(values["the_number"]),
        creator=values.get("creator"),
        status=SpeculationStatus.OPEN,
        created_at=now,
        updated_at=now,
    )

    # Same proposition under a different on-chain id.
    existing = await store.find_one(keys.SPECULATIONS, speculation.business_key())
    if existing is not None:
        return duplicate(key, f"business key held by speculation {existing['_id']}")

    if not await store.create_if_absent(keys.SPECULATIONS, key, speculation.to_document()):
        return duplicate(key, "lost creation race")
    return applied(key)


async def on_speculation_settled(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.speculation_key(values["speculation_id"])
    if await store.get(keys.SPECULATIONS, key) is None:
        return missing(key)
    side = WinSide(int(values["win_side"]))
    await store.update(
        keys.SPECULATIONS,
        key,
        {
            "status": SpeculationStatus.CLOSED.value,
            "winning_side": side.name.capitalize(),
            "settled_at": ctx.event_time,
            "updated_at": utcnow(),
        },
    )
    return applied(key)


HANDLERS = {
    "SpeculationCreated": on_speculation_created,
    "SpeculationSettled": on_speculation_settled,
}
