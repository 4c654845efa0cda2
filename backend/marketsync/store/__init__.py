from marketsync.store.base import DocumentStore, WriteBatch
from marketsync.store.mongo import MongoDocumentStore

__all__ = ["DocumentStore", "MongoDocumentStore", "WriteBatch"]
