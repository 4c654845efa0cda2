"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for backend and root-level tool
    modules, an in-memory store, and a helper that builds CoreEventEmitted
    logs the way the chain emits them.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_THIS_FILE.parent), str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from fake_mongo import FakeDB, run_sync  # noqa: E402

from marketsync.chain.codec import CORE_EVENT_SIGNATURE, encode_event_payload  # noqa: E402
from marketsync.chain.envelope import ChainLog  # noqa: E402
from marketsync.chain.registry import EVENT_FIELDS, build_default_registry  # noqa: E402
from marketsync.database import ensure_indexes  # noqa: E402
from marketsync.services.projection import ProjectionEngine  # noqa: E402
from marketsync.store import MongoDocumentStore  # noqa: E402


@pytest.fixture
def fake_db():
    db = FakeDB()
    # Same unique and partial indexes as production, enforced in memory.
    run_sync(ensure_indexes(db))
    return db


@pytest.fixture
def store(fake_db):
    return MongoDocumentStore(fake_db)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def engine(store, registry):
    return ProjectionEngine(store, registry, cas_retries=3)


@pytest.fixture
def make_log(registry):
    counter = {"n": 0}

    def _make(name: str, tx_hash: str | None = None, log_index: int = 0, block_number: int = 100, **values) -> ChainLog:
        spec = registry.by_name(name)
        ordered = [values[field] for field, _ in EVENT_FIELDS[name]]
        counter["n"] += 1
        data = "0x" + encode_event_payload(spec.schema, ordered).hex()
        return ChainLog(
            topics=[CORE_EVENT_SIGNATURE, spec.type_id],
            data=data,
            block_number=block_number,
            tx_hash=tx_hash or f"0x{counter['n']:064x}",
            log_index=log_index,
        )

    return _make
