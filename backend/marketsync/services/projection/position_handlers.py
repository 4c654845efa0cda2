"""
backend/marketsync/services/projection/position_handlers.py

Purpose:
    Position projections, including the order-matching projection applied on
    PositionMatched. Amount-moving events run at most once per delivery
    (see markers.run_once) and mutate positions through version-checked
    read-modify-write.

Dependencies:
    - marketsync.models.position
    - marketsync.store
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.errors import DecodeError
from marketsync.models.common import PositionType
from marketsync.models.position import Position, fill_maker, fill_taker
from marketsync.services.projection.context import (
    ProjectionContext,
    ProjectionResult,
    applied,
    duplicate,
    missing,
)
from marketsync.services.projection.markers import run_once
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import from_unix, utcnow

logger = logging.getLogger("marketsync.projection.position")

_AMOUNT_FIELDS = ("matched_amount", "unmatched_amount", "counterparties")


def _position_type(value: Any) -> PositionType:
    try:
        return PositionType(int(value))
    except ValueError as exc:
        raise DecodeError(f"invalid position type {value!r}") from exc


def _amount_changes(position: Position) -> dict[str, Any]:
    doc = position.to_document()
    changes = {name: doc[name] for name in _AMOUNT_FIELDS}
    changes["updated_at"] = utcnow()
    return changes


async def on_position_created(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    position_type = _position_type(values["position_type"])
    speculation_id = str(values["speculation_id"])
    user = values["user"]
    odds_pair_id = str(values["odds_pair_id"])
    key = keys.position_key(speculation_id, user, odds_pair_id, int(position_type))
    amount = int(values["amount"])
    expiry = from_unix(values["unmatched_expiry"]) if values.get("unmatched_expiry") else None

    async def body() -> ProjectionResult:
        now = ctx.event_time
        position = Position(
            key=key,
            speculation_id=speculation_id,
            user=user,
            odds_pair_id=odds_pair_id,
            position_type=position_type,
            unmatched_amount=amount,
            unmatched_expiry=expiry,
            stored_upper_odds=int(values["upper_odds"]),
            stored_lower_odds=int(values["lower_odds"]),
            created_at=now,
            updated_at=now,
        )
        if await store.create_if_absent(keys.POSITIONS, key, position.to_document()):
            return applied(key)

        def add_unmatched(doc: dict[str, Any]) -> dict[str, Any]:
            current = Position.from_document(doc)
            return {
                "unmatched_amount": str(current.unmatched_amount + amount),
                "unmatched_expiry": expiry,
                "stored_upper_odds": int(values["upper_odds"]),
                "stored_lower_odds": int(values["lower_odds"]),
                "updated_at": utcnow(),
            }

        await store.transact(keys.POSITIONS, key, add_unmatched, retries=ctx.cas_retries)
        return applied(key, "added unmatched stake")

    return await run_once(store, ctx, key, body)


async def on_position_matched(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    maker_type = _position_type(values["maker_position_type"])
    taker_type = maker_type.opposite()
    speculation_id = str(values["speculation_id"])
    odds_pair_id = str(values["odds_pair_id"])
    maker_address = values["maker"]
    taker_address = values["taker"]
    taker_amount = int(values["amount"])
    maker_key = keys.position_key(speculation_id, maker_address, odds_pair_id, int(maker_type))
    taker_key = keys.position_key(speculation_id, taker_address, odds_pair_id, int(taker_type))

    async def body() -> ProjectionResult:
        consumed_box: list[int] = []

        def fill_maker_side(doc: dict[str, Any]) -> dict[str, Any]:
            maker = Position.from_document(doc)
            consumed_box[:] = [fill_maker(maker, taker_address, taker_amount)]
            return _amount_changes(maker)

        maker_doc = await store.transact(keys.POSITIONS, maker_key, fill_maker_side, retries=ctx.cas_retries)
        if maker_doc is None:
            return missing(maker_key, "maker position not projected yet")
        consumed = consumed_box[0]

        now = ctx.event_time
        taker = Position(
            key=taker_key,
            speculation_id=speculation_id,
            user=taker_address,
            odds_pair_id=odds_pair_id,
            position_type=taker_type,
            stored_upper_odds=maker_doc.get("stored_upper_odds"),
            stored_lower_odds=maker_doc.get("stored_lower_odds"),
            created_at=now,
            updated_at=now,
        )
        fill_taker(taker, maker_address, taker_amount, consumed)
        if not await store.create_if_absent(keys.POSITIONS, taker_key, taker.to_document()):

            def fill_taker_side(doc: dict[str, Any]) -> dict[str, Any]:
                existing = Position.from_document(doc)
                fill_taker(existing, maker_address, taker_amount, consumed)
                return _amount_changes(existing)

            await store.transact(keys.POSITIONS, taker_key, fill_taker_side, retries=ctx.cas_retries)

        logger.info(
            "Matched maker=%s taker=%s taker_amount=%d consumed=%d",
            maker_key, taker_key, taker_amount, consumed,
        )
        return applied(maker_key, f"consumed={consumed}")

    return await run_once(store, ctx, maker_key, body)


async def on_position_adjusted(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    position_type = _position_type(values["position_type"])
    key = keys.position_key(values["speculation_id"], values["user"], values["odds_pair_id"], int(position_type))
    delta = int(values["amount_delta"])

    async def body() -> ProjectionResult:
        def adjust(doc: dict[str, Any]) -> dict[str, Any]:
            current = Position.from_document(doc)
            return {"unmatched_amount": str(current.unmatched_amount + delta), "updated_at": utcnow()}

        if await store.transact(keys.POSITIONS, key, adjust, retries=ctx.cas_retries) is None:
            return missing(key)
        return applied(key, f"delta={delta}")

    return await run_once(store, ctx, key, body)


async def on_position_claimed(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    position_type = _position_type(values["position_type"])
    key = keys.position_key(values["speculation_id"], values["user"], values["odds_pair_id"], int(position_type))
    doc = await store.get(keys.POSITIONS, key)
    if doc is None:
        return missing(key)
    if doc.get("claimed"):
        return duplicate(key, "already claimed")
    await store.update(
        keys.POSITIONS,
        key,
        {"claimed": True, "payout": str(int(values["payout"])), "claimed_at": ctx.event_time, "updated_at": utcnow()},
    )
    return applied(key)


HANDLERS = {
    "PositionCreated": on_position_created,
    "PositionMatched": on_position_matched,
    "PositionAdjusted": on_position_adjusted,
    "PositionClaimed": on_position_claimed,
}
