"""
backend/marketsync/store/base.py

Purpose:
    Abstract keyed document store contract. Projection handlers, the contest
    sync cycle and the archiver only talk to this interface; documents are
    addressed by deterministic string keys (see store.keys).

Dependencies:
    - abc
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

Document = dict[str, Any]
Mutation = Callable[[Document], "Document | None"]


class WriteBatch(ABC):
    """Buffered writes committed together, grouped per collection in first-use order."""

    @abstractmethod
    def set(self, collection: str, key: str, doc: Document) -> None:
        ...

    @abstractmethod
    def update(self, collection: str, key: str, fields: Document) -> None:
        ...

    @abstractmethod
    def upsert(self, collection: str, key: str, fields: Document, on_insert: Document | None = None) -> None:
        """Set fields, creating the document when absent; on_insert is written only on creation."""
        ...

    @abstractmethod
    def insert(self, collection: str, doc: Document) -> None:
        ...

    @abstractmethod
    def delete(self, collection: str, key: str) -> None:
        ...

    @abstractmethod
    async def commit(self) -> int:
        """Apply all buffered writes. Returns the number of operations sent."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class DocumentStore(ABC):
    @abstractmethod
    async def get(self, collection: str, key: str) -> Document | None:
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        query: Document,
        *,
        sort: list[tuple[str, int]] | None = None,
        limit: int = 0,
    ) -> list[Document]:
        ...

    @abstractmethod
    async def find_one(self, collection: str, query: Document) -> Document | None:
        ...

    @abstractmethod
    async def count(self, collection: str, query: Document) -> int:
        ...

    @abstractmethod
    async def set(self, collection: str, key: str, doc: Document) -> None:
        """Replace (or create) the document stored under key."""
        ...

    @abstractmethod
    async def update(self, collection: str, key: str, fields: Document) -> bool:
        """Set fields on an existing document. Returns False when key is absent."""
        ...

    @abstractmethod
    async def upsert(self, collection: str, key: str, fields: Document, on_insert: Document | None = None) -> bool:
        """Set fields, creating the document when absent. Returns True when it was created."""
        ...

    @abstractmethod
    async def update_many(self, collection: str, query: Document, fields: Document) -> int:
        ...

    @abstractmethod
    async def create_if_absent(self, collection: str, key: str, doc: Document) -> bool:
        """Atomically insert doc under key unless it (or a unique business key) exists.

        Returns True only for the caller that created the document.
        """
        ...

    @abstractmethod
    async def add_to_set(self, collection: str, key: str, field: str, value: Any, fields: Document | None = None) -> bool:
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        ...

    @abstractmethod
    def batch(self) -> WriteBatch:
        ...

    @abstractmethod
    async def transact(self, collection: str, key: str, mutate: Mutation, *, retries: int = 5) -> Document | None:
        """Version-checked read-modify-write.

        mutate receives a copy of the current document and returns the fields
        to set (or None for no change). Returns the updated document, or None
        when the key is absent. Raises TransactionConflictError when every
        attempt lost the race.
        """
        ...

    @abstractmethod
    async def acquire_lease(self, name: str, owner: str, ttl_seconds: int) -> bool:
        ...

    @abstractmethod
    async def release_lease(self, name: str, owner: str) -> None:
        ...
