"""
backend/marketsync/database.py

Purpose:
    MongoDB connection bootstrap and index management. The returned client and
    database handles are owned by the application lifespan and passed down to
    the store adapter; nothing here is module-global.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - marketsync.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from marketsync.config import Settings
from marketsync.models.contest import PROVIDER_ID_FIELDS
from marketsync.store import keys

logger = logging.getLogger("marketsync.database")


async def connect_db(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=1,
        serverSelectionTimeoutMS=10_000,
    )
    db = client[settings.MONGO_DB]
    await ensure_indexes(db)
    return client, db


def close_db(client: AsyncIOMotorClient | None) -> None:
    if client:
        client.close()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create indexes on startup. Idempotent; safe to run repeatedly."""

    # ---- Contests (one per on-chain id, one per provider id) ----
    # Provider-keyed docs carry an explicit contest_id: null, which a sparse
    # index would still index; partial filters scope each index to its docs.
    await db[keys.CONTESTS].create_index(
        "contest_id",
        unique=True,
        partialFilterExpression={"contest_id": {"$type": "string"}},
        name="contest_onchain_id",
    )
    for field in PROVIDER_ID_FIELDS:
        await db[keys.CONTESTS].create_index(
            field,
            unique=True,
            partialFilterExpression={field: {"$type": "string"}, "contest_id": {"$type": "null"}},
            name=f"contest_{field}_provider_unique",
        )
        await db[keys.CONTESTS].create_index([(field, 1), ("status", 1)], name=f"contest_{field}_lookup")
    await db[keys.CONTESTS].create_index([("status", 1), ("match_time", 1)])
    await db[keys.CONTESTS].create_index([("sport", 1), ("match_time", 1)])

    # ---- Speculations: functional duplicate guard on the business tuple ----
    try:
        await db[keys.SPECULATIONS].create_index(
            [("contest_id", 1), ("scorer", 1), ("the_number", 1)],
            unique=True,
            name="speculation_business_key",
        )
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning("Skipped unique speculation business index due to duplicate data: %s", exc)
        await db[keys.SPECULATIONS].create_index(
            [("contest_id", 1), ("scorer", 1), ("the_number", 1)],
            name="speculation_business_key_lookup",
        )
    await db[keys.SPECULATIONS].create_index([("status", 1), ("lock_time", 1)])

    # ---- Positions ----
    await db[keys.POSITIONS].create_index([("speculation_id", 1), ("user", 1)])

    # ---- Leaderboards ----
    await db[keys.REGISTRATIONS].create_index([("leaderboard_id", 1), ("is_current_winner", 1)])
    await db[keys.LEADERBOARD_POSITIONS].create_index([("leaderboard_id", 1), ("user", 1)])

    # ---- Processed event markers (amount-moving events) ----
    await db[keys.PROCESSED_EVENTS].create_index("processed_at")

    # ---- Archives ----
    await db[keys.CONTESTS_ARCHIVE].create_index("archived_at")
    await db[keys.SPECULATIONS_ARCHIVE].create_index("archived_at")

    # ---- Odds history / slate ----
    await db[keys.ODDS_HISTORY].create_index([("jsonodds_id", 1), ("captured_at", -1)])
    await db[keys.ODDS_HISTORY].create_index(
        [("jsonodds_id", 1), ("market", 1), ("source", 1), ("captured_at", 1)],
        unique=True,
    )
    await db[keys.EVALUATION_SLATE].create_index([("game_time", 1), ("evaluate", 1)])
