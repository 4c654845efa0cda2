"""
backend/marketsync/services/projection/contest_handlers.py

Purpose:
    Contest lifecycle projections: creation (copied from the reconciled
    provider-keyed record), verification, on-chain market updates and scores.

Dependencies:
    - marketsync.store
    - marketsync.models.contest
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.models.contest import Contest, ContestStatus, OnchainMarket, advance_status
from marketsync.services.projection.context import (
    ProjectionContext,
    ProjectionResult,
    applied,
    duplicate,
    ignored,
    missing,
)
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import from_unix, utcnow

logger = logging.getLogger("marketsync.projection.contest")

# Provider-record fields carried over to the on-chain copy.
_COPIED_FIELDS = ("sport", "league", "home_team", "away_team", "match_time", "market", "rundown_id", "sportspage_id")


def _status_of(doc: dict[str, Any]) -> ContestStatus | None:
    try:
        return ContestStatus(doc.get("status"))
    except ValueError:
        return None


async def on_contest_created(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    contest_id = str(values["contest_id"])
    key = keys.contest_key(contest_id)
    if await store.get(keys.CONTESTS, key) is not None:
        return duplicate(key)

    jsonodds_id = values.get("jsonodds_id") or None
    source = await store.get(keys.CONTESTS, jsonodds_id) if jsonodds_id else None

    fields: dict[str, Any] = {}
    if source is not None:
        fields = {name: source.get(name) for name in _COPIED_FIELDS if source.get(name) is not None}
    else:
        logger.info(
            "No reconciled record for jsonodds_id=%s; creating contest %s from event fields",
            jsonodds_id, contest_id,
        )
    fields.setdefault("rundown_id", values.get("rundown_id") or None)
    fields.setdefault("sportspage_id", values.get("sportspage_id") or None)

    now = ctx.event_time
    contest = Contest(
        key=key,
        contest_id=contest_id,
        jsonodds_id=jsonodds_id,
        status=ContestStatus.UNVERIFIED,
        created=True,
        creator=values.get("creator"),
        created_at=now,
        updated_at=now,
        **fields,
    )
    if not await store.create_if_absent(keys.CONTESTS, key, contest.to_document()):
        return duplicate(key, "lost creation race")

    if source is not None:
        await store.update(
            keys.CONTESTS,
            source["_id"],
            {"created": True, "linked_contest_id": contest_id, "updated_at": utcnow()},
        )
    return applied(key)


async def on_contest_verified(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.contest_key(values["contest_id"])
    doc = await store.get(keys.CONTESTS, key)
    if doc is None:
        return missing(key)
    status = advance_status(_status_of(doc), ContestStatus.VERIFIED)
    await store.update(
        keys.CONTESTS,
        key,
        {"status": status.value, "start_time": from_unix(values["start_time"]), "updated_at": utcnow()},
    )
    return applied(key)


async def on_contest_markets_updated(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.contest_key(values["contest_id"])
    if await store.get(keys.CONTESTS, key) is None:
        return missing(key)
    market = OnchainMarket(**{name: value for name, value in values.items() if name != "contest_id"})
    await store.update(keys.CONTESTS, key, {"onchain_market": market.model_dump(), "updated_at": utcnow()})
    return applied(key)


async def on_contest_scores_set(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.contest_key(values["contest_id"])
    doc = await store.get(keys.CONTESTS, key)
    if doc is None:
        return missing(key)
    current = _status_of(doc)
    if current is ContestStatus.FINAL:
        # Final scores are locked.
        return ignored(key, "contest already final")
    update: dict[str, Any] = {
        "status": advance_status(current, ContestStatus.SCORED).value,
        "away_score": int(values["away_score"]),
        "home_score": int(values["home_score"]),
        "updated_at": utcnow(),
    }
    if doc.get("scored_at") is None:
        update["scored_at"] = ctx.event_time
    await store.update(keys.CONTESTS, key, update)
    return applied(key)


HANDLERS = {
    "ContestCreated": on_contest_created,
    "ContestVerified": on_contest_verified,
    "ContestMarketsUpdated": on_contest_markets_updated,
    "ContestScoresSet": on_contest_scores_set,
}
