"""
backend/marketsync/store/mongo.py

Purpose:
    MongoDB implementation of the DocumentStore contract. Keys map to `_id`,
    create-if-absent is an `$setOnInsert` upsert (atomic against concurrent
    webhook deliveries), and read-modify-write uses an optimistic `version`
    field.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - marketsync.errors
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DeleteOne, InsertOne, ReplaceOne, UpdateOne
from pymongo.errors import DuplicateKeyError

from marketsync.errors import TransactionConflictError
from marketsync.store.base import Document, DocumentStore, Mutation, WriteBatch
from marketsync.utils import utcnow

logger = logging.getLogger("marketsync.store")

LOCKS_COLLECTION = "locks"


def _upsert_doc(fields: Document, on_insert: Document | None) -> dict[str, Any]:
    update: dict[str, Any] = {"$set": {k: v for k, v in fields.items() if k != "_id"}}
    # $set and $setOnInsert may not name the same path.
    insert_only = {k: v for k, v in (on_insert or {}).items() if k != "_id" and k not in update["$set"]}
    if insert_only:
        update["$setOnInsert"] = insert_only
    return update


class MongoWriteBatch(WriteBatch):
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._ops: dict[str, list[Any]] = {}

    def _append(self, collection: str, op: Any) -> None:
        self._ops.setdefault(collection, []).append(op)

    def set(self, collection: str, key: str, doc: Document) -> None:
        body = {k: v for k, v in doc.items() if k != "_id"}
        self._append(collection, ReplaceOne({"_id": key}, body, upsert=True))

    def update(self, collection: str, key: str, fields: Document) -> None:
        self._append(collection, UpdateOne({"_id": key}, {"$set": fields}))

    def upsert(self, collection: str, key: str, fields: Document, on_insert: Document | None = None) -> None:
        self._append(collection, UpdateOne({"_id": key}, _upsert_doc(fields, on_insert), upsert=True))

    def insert(self, collection: str, doc: Document) -> None:
        self._append(collection, InsertOne(dict(doc)))

    def delete(self, collection: str, key: str) -> None:
        self._append(collection, DeleteOne({"_id": key}))

    async def commit(self) -> int:
        sent = 0
        for collection, ops in self._ops.items():
            if not ops:
                continue
            await self._db[collection].bulk_write(ops, ordered=True)
            sent += len(ops)
        self._ops.clear()
        return sent

    def __len__(self) -> int:
        return sum(len(ops) for ops in self._ops.values())


class MongoDocumentStore(DocumentStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._db

    async def get(self, collection: str, key: str) -> Document | None:
        return await self._db[collection].find_one({"_id": key})

    async def find(
        self,
        collection: str,
        query: Document,
        *,
        sort: list[tuple[str, int]] | None = None,
        limit: int = 0,
    ) -> list[Document]:
        cursor = self._db[collection].find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit or None)

    async def find_one(self, collection: str, query: Document) -> Document | None:
        return await self._db[collection].find_one(query)

    async def count(self, collection: str, query: Document) -> int:
        return await self._db[collection].count_documents(query)

    async def set(self, collection: str, key: str, doc: Document) -> None:
        body = {k: v for k, v in doc.items() if k != "_id"}
        await self._db[collection].replace_one({"_id": key}, body, upsert=True)

    async def update(self, collection: str, key: str, fields: Document) -> bool:
        result = await self._db[collection].update_one({"_id": key}, {"$set": fields})
        return result.matched_count > 0

    async def upsert(self, collection: str, key: str, fields: Document, on_insert: Document | None = None) -> bool:
        result = await self._db[collection].update_one({"_id": key}, _upsert_doc(fields, on_insert), upsert=True)
        return result.upserted_id is not None

    async def update_many(self, collection: str, query: Document, fields: Document) -> int:
        result = await self._db[collection].update_many(query, {"$set": fields})
        return result.modified_count

    async def create_if_absent(self, collection: str, key: str, doc: Document) -> bool:
        body = {k: v for k, v in doc.items() if k != "_id"}
        try:
            result = await self._db[collection].update_one(
                {"_id": key},
                {"$setOnInsert": body},
                upsert=True,
            )
        except DuplicateKeyError:
            # A unique business-key index rejected the insert.
            return False
        return result.upserted_id is not None

    async def add_to_set(self, collection: str, key: str, field: str, value: Any, fields: Document | None = None) -> bool:
        update: dict[str, Any] = {"$addToSet": {field: value}}
        if fields:
            update["$set"] = fields
        result = await self._db[collection].update_one({"_id": key}, update)
        return result.matched_count > 0

    async def delete(self, collection: str, key: str) -> bool:
        result = await self._db[collection].delete_one({"_id": key})
        return result.deleted_count > 0

    def batch(self) -> MongoWriteBatch:
        return MongoWriteBatch(self._db)

    async def transact(self, collection: str, key: str, mutate: Mutation, *, retries: int = 5) -> Document | None:
        coll = self._db[collection]
        for attempt in range(max(1, retries)):
            current = await coll.find_one({"_id": key})
            if current is None:
                return None
            changes = mutate(dict(current))
            if not changes:
                return current

            query: dict[str, Any] = {"_id": key}
            if "version" in current:
                version = int(current["version"])
                query["version"] = version
            else:
                version = 0
                query["version"] = {"$exists": False}

            result = await coll.update_one(query, {"$set": {**changes, "version": version + 1}})
            if result.matched_count:
                return {**current, **changes, "version": version + 1}
            logger.debug("CAS conflict on %s/%s (attempt %d)", collection, key, attempt + 1)
        raise TransactionConflictError(f"CAS retries exhausted for {collection}/{key}")

    async def acquire_lease(self, name: str, owner: str, ttl_seconds: int) -> bool:
        now = utcnow()
        try:
            await self._db[LOCKS_COLLECTION].update_one(
                {
                    "_id": name,
                    "$or": [{"expires_at": {"$lte": now}}, {"owner": owner}],
                },
                {
                    "$set": {
                        "owner": owner,
                        "acquired_at": now,
                        "expires_at": now + timedelta(seconds=ttl_seconds),
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            return False
        return True

    async def release_lease(self, name: str, owner: str) -> None:
        await self._db[LOCKS_COLLECTION].delete_one({"_id": name, "owner": owner})
