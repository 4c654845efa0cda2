"""
backend/marketsync/services/projection/leaderboard_handlers.py

Purpose:
    Leaderboard accounting projections. Participant and prize-pool counters
    are updated through a version-checked read-modify-write on the
    leaderboard document; the current-winner flag is kept unique by a sweep
    over every registration still flagged as winner.

Dependencies:
    - marketsync.models.leaderboard
    - marketsync.store
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.errors import TransactionConflictError
from marketsync.models.common import PositionType
from marketsync.models.leaderboard import (
    Leaderboard,
    LeaderboardPosition,
    LeaderboardRule,
    Registration,
    rule_update,
)
from marketsync.services.projection.context import (
    ProjectionContext,
    ProjectionResult,
    applied,
    duplicate,
    failed,
    missing,
)
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import from_unix, utcnow

logger = logging.getLogger("marketsync.projection.leaderboard")


async def on_leaderboard_created(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    leaderboard_id = str(values["leaderboard_id"])
    key = keys.leaderboard_key(leaderboard_id)
    now = ctx.event_time
    leaderboard = Leaderboard(
        key=key,
        leaderboard_id=leaderboard_id,
        entry_fee=int(values["entry_fee"]),
        start_time=from_unix(values["start_time"]),
        end_time=from_unix(values["end_time"]),
        safety_period_duration=int(values["safety_period_duration"]),
        roi_submission_window=int(values["roi_submission_window"]),
        created_at=now,
        updated_at=now,
    )
    if not await store.create_if_absent(keys.LEADERBOARDS, key, leaderboard.to_document()):
        return duplicate(key)
    return applied(key)


async def on_speculation_added(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.leaderboard_key(values["leaderboard_id"])
    speculation_id = str(values["speculation_id"])
    if not await store.add_to_set(keys.LEADERBOARDS, key, "speculation_ids", speculation_id, {"updated_at": utcnow()}):
        return missing(key)
    return applied(key, f"speculation={speculation_id}")


async def on_rule_set(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    rule = LeaderboardRule.parse(values["rule_type"])
    key = keys.leaderboard_key(values["leaderboard_id"])
    update = rule_update(rule, int(values["value"]))
    update["updated_at"] = utcnow()
    if not await store.update(keys.LEADERBOARDS, key, update):
        return missing(key)
    return applied(key, f"rule={rule.value}")


async def on_user_registered(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    leaderboard_id = str(values["leaderboard_id"])
    user = values["user"]
    lb_key = keys.leaderboard_key(leaderboard_id)
    key = keys.registration_key(leaderboard_id, user)
    if await store.get(keys.LEADERBOARDS, lb_key) is None:
        return missing(lb_key)

    registration = Registration(
        key=key,
        leaderboard_id=leaderboard_id,
        user=user,
        declared_bankroll=int(values["declared_bankroll"]),
        registered_at=ctx.event_time,
        updated_at=ctx.event_time,
    )
    if not await store.create_if_absent(keys.REGISTRATIONS, key, registration.to_document()):
        return duplicate(key)

    def add_participant(doc: dict[str, Any]) -> dict[str, Any]:
        leaderboard = Leaderboard.model_validate(doc)
        changes: dict[str, Any] = {
            "current_participants": leaderboard.current_participants + 1,
            "updated_at": utcnow(),
        }
        if leaderboard.entry_fee > 0:
            changes["prize_pool"] = str(leaderboard.prize_pool + leaderboard.entry_fee)
        return changes

    try:
        await store.transact(keys.LEADERBOARDS, lb_key, add_participant, retries=ctx.cas_retries)
    except TransactionConflictError as exc:
        # Leaderboard keeps its prior value; dropping the registration lets a replay retry.
        await store.delete(keys.REGISTRATIONS, key)
        logger.error("Registration %s rolled back: %s", key, exc)
        return failed(key, "leaderboard update conflict")
    return applied(key)


async def on_position_registered(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    leaderboard_id = str(values["leaderboard_id"])
    speculation_id = str(values["speculation_id"])
    user = values["user"]
    odds_pair_id = str(values["odds_pair_id"])
    position_type = PositionType(int(values["position_type"]))
    lb_key = keys.leaderboard_key(leaderboard_id)
    key = keys.leaderboard_position_key(leaderboard_id, speculation_id, user, odds_pair_id, int(position_type))
    if await store.get(keys.LEADERBOARDS, lb_key) is None:
        return missing(lb_key)

    row = LeaderboardPosition(
        key=key,
        leaderboard_id=leaderboard_id,
        speculation_id=speculation_id,
        user=user,
        odds_pair_id=odds_pair_id,
        position_type=position_type,
        amount=int(values["amount"]),
        position_key=keys.position_key(speculation_id, user, odds_pair_id, int(position_type)),
        created_at=ctx.event_time,
    )
    if not await store.create_if_absent(keys.LEADERBOARD_POSITIONS, key, row.to_document()):
        return duplicate(key)

    def count_position(doc: dict[str, Any]) -> dict[str, Any]:
        return {"total_positions": int(doc.get("total_positions") or 0) + 1, "updated_at": utcnow()}

    try:
        await store.transact(keys.LEADERBOARDS, lb_key, count_position, retries=ctx.cas_retries)
    except TransactionConflictError as exc:
        await store.delete(keys.LEADERBOARD_POSITIONS, key)
        logger.error("Leaderboard position %s rolled back: %s", key, exc)
        return failed(key, "leaderboard update conflict")
    return applied(key)


async def on_roi_submitted(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.registration_key(values["leaderboard_id"], values["user"])
    updated = await store.update(
        keys.REGISTRATIONS,
        key,
        {"submitted_roi": str(int(values["roi"])), "roi_submitted_at": ctx.event_time, "updated_at": utcnow()},
    )
    if not updated:
        return missing(key)
    return applied(key)


async def on_new_highest_roi(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    leaderboard_id = str(values["leaderboard_id"])
    user = values["user"]
    lb_key = keys.leaderboard_key(leaderboard_id)
    winner_key = keys.registration_key(leaderboard_id, user)
    now = utcnow()

    if not await store.update(
        keys.LEADERBOARDS,
        lb_key,
        {"current_highest_roi": str(int(values["roi"])), "current_winner": user, "updated_at": now},
    ):
        return missing(lb_key)

    if not await store.update(keys.REGISTRATIONS, winner_key, {"is_current_winner": True, "updated_at": now}):
        logger.error("Winner registration %s not projected; leader pointer updated only", winner_key)

    flagged = await store.find(keys.REGISTRATIONS, {"leaderboard_id": leaderboard_id, "is_current_winner": True})
    for doc in flagged:
        if doc["_id"] == winner_key:
            continue
        await store.update(keys.REGISTRATIONS, doc["_id"], {"is_current_winner": False, "updated_at": now})
        logger.info("Cleared stale winner flag on %s (new winner %s)", doc["_id"], winner_key)
    return applied(winner_key)


async def on_prize_claimed(store: DocumentStore, values: dict[str, Any], ctx: ProjectionContext) -> ProjectionResult:
    key = keys.registration_key(values["leaderboard_id"], values["user"])
    doc = await store.get(keys.REGISTRATIONS, key)
    if doc is None:
        return missing(key)
    if doc.get("prize_claimed"):
        return duplicate(key, "prize already claimed")
    await store.update(
        keys.REGISTRATIONS,
        key,
        {"prize_claimed": True, "prize_amount": str(int(values["amount"])), "updated_at": utcnow()},
    )
    return applied(key)


HANDLERS = {
    "LeaderboardCreated": on_leaderboard_created,
    "LeaderboardSpeculationAdded": on_speculation_added,
    "LeaderboardRuleSet": on_rule_set,
    "UserRegistered": on_user_registered,
    "LeaderboardPositionRegistered": on_position_registered,
    "LeaderboardROISubmitted": on_roi_submitted,
    "NewHighestROI": on_new_highest_roi,
    "LeaderboardPrizeClaimed": on_prize_claimed,
}
