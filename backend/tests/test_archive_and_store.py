"""
backend/tests/test_archive_and_store.py

Purpose:
    Cold-storage archival thresholds and the Mongo store primitives the
    projection relies on (conditional create, versioned transact, leases).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import DuplicateKeyError

from marketsync.errors import TransactionConflictError
from marketsync.services.archive_service import ArchiveService
from marketsync.store import keys
from marketsync.workers._state import recently_synced, set_synced

NOW = datetime(2026, 11, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_archive_moves_only_aged_final_contests(store, fake_db):
    old = NOW - timedelta(hours=100)
    fresh = NOW - timedelta(hours=10)
    await store.set(keys.CONTESTS, "a", {"status": "Final", "scored_at": old, "match_time": old})
    await store.set(keys.CONTESTS, "b", {"status": "Final", "scored_at": fresh, "match_time": old})
    await store.set(keys.CONTESTS, "c", {"status": "Final", "scored_at": None, "match_time": old})
    await store.set(keys.CONTESTS, "d", {"status": "Scored", "scored_at": old, "match_time": old})

    moved = await ArchiveService(store, after_hours=72, batch_size=1).archive_final_contests(NOW)

    assert moved == 2
    assert sorted(fake_db[keys.CONTESTS].docs) == ["b", "d"]
    archived = fake_db[keys.CONTESTS_ARCHIVE].docs
    assert sorted(archived) == ["a", "c"]
    assert archived["a"]["archived_at"] == NOW
    assert archived["a"]["scored_at"] == old


@pytest.mark.asyncio
async def test_archive_closed_speculations(store, fake_db):
    stale = NOW - timedelta(days=5)
    await store.set(keys.SPECULATIONS, "1", {"contest_id": "42", "scorer": "0xs", "the_number": 0, "status": "Closed", "lock_time": stale})
    await store.set(keys.SPECULATIONS, "2", {"contest_id": "42", "scorer": "0xs", "the_number": 35, "status": "Open", "lock_time": stale})

    result = await ArchiveService(store, after_hours=72).run(NOW)

    assert result == {"contests": 0, "speculations": 1}
    assert list(fake_db[keys.SPECULATIONS_ARCHIVE].docs) == ["1"]


@pytest.mark.asyncio
async def test_create_if_absent_only_first_caller_wins(store):
    assert await store.create_if_absent("things", "k", {"v": 1}) is True
    assert await store.create_if_absent("things", "k", {"v": 2}) is False
    assert (await store.get("things", "k"))["v"] == 1


@pytest.mark.asyncio
async def test_transact_bumps_version_and_reports_missing(store):
    await store.set("things", "k", {"n": 1})

    updated = await store.transact("things", "k", lambda doc: {"n": doc["n"] + 1})
    again = await store.transact("things", "k", lambda doc: {"n": doc["n"] + 1})

    assert updated["version"] == 1
    assert again["n"] == 3 and again["version"] == 2
    assert await store.transact("things", "missing", lambda doc: {"n": 0}) is None


@pytest.mark.asyncio
async def test_transact_gives_up_after_repeated_conflicts(store, fake_db):
    await store.set("things", "k", {"n": 1, "version": 0})

    def _racing_writer(doc):
        # Another writer bumps the version between our read and our write.
        fake_db["things"].docs["k"]["version"] += 1
        return {"n": doc["n"] + 1}

    with pytest.raises(TransactionConflictError):
        await store.transact("things", "k", _racing_writer, retries=3)


@pytest.mark.asyncio
async def test_lease_is_exclusive_until_released(store):
    assert await store.acquire_lease("job", "me", 60) is True
    assert await store.acquire_lease("job", "you", 60) is False
    assert await store.acquire_lease("job", "me", 60) is True
    await store.release_lease("job", "me")
    assert await store.acquire_lease("job", "you", 60) is True


@pytest.mark.asyncio
async def test_worker_state_round_trip(store):
    assert await recently_synced(store, "archive", timedelta(hours=1)) is False
    await set_synced(store, "archive", {"contests": 3})
    assert await recently_synced(store, "archive", timedelta(hours=1)) is True
    assert (await store.get(keys.WORKER_STATE, "archive"))["last_summary"] == {"contests": 3}


@pytest.mark.asyncio
async def test_contest_indexes_scope_uniqueness_per_document_kind(store):
    # Provider-keyed contests are written with an explicit contest_id of null.
    await store.set(keys.CONTESTS, "jo-1", {"contest_id": None, "rundown_id": "rd-1", "sportspage_id": "555"})
    await store.set(keys.CONTESTS, "jo-2", {"contest_id": None, "rundown_id": "rd-2", "sportspage_id": "556"})
    # The on-chain copy repeats the provider ids of its source record.
    await store.set(keys.CONTESTS, "42", {"contest_id": "42", "rundown_id": "rd-1", "sportspage_id": "555"})

    with pytest.raises(DuplicateKeyError):
        await store.set(keys.CONTESTS, "43", {"contest_id": "42"})
    with pytest.raises(DuplicateKeyError):
        await store.set(keys.CONTESTS, "jo-3", {"contest_id": None, "rundown_id": "rd-1", "sportspage_id": "557"})
    with pytest.raises(DuplicateKeyError):
        await store.set(keys.CONTESTS, "jo-4", {"contest_id": None, "rundown_id": "rd-4", "sportspage_id": "556"})
