"""
backend/tests/test_contest_projection.py

Purpose:
    Contest and speculation projections: idempotent creation, copy from the
    reconciled provider record, lifecycle updates and the business-key
    duplicate guard.
"""

from __future__ import annotations

from datetime import datetime, timezone

import bson
import pytest

from marketsync.models.contest import Contest, ContestStatus, MarketSnapshot
from marketsync.services.projection import Outcome
from marketsync.store import keys

CREATOR = "0x" + "1" * 40
SCORER = "0x" + "2" * 40


def _contest_created(make_log, contest_id=42, jsonodds_id="", tx_hash=None):
    return make_log(
        "ContestCreated",
        tx_hash=tx_hash,
        contest_id=contest_id,
        jsonodds_id=jsonodds_id,
        rundown_id="rd-1",
        sportspage_id="sp-1",
        creator=CREATOR,
    )


@pytest.mark.asyncio
async def test_contest_created_replay_leaves_one_identical_document(engine, fake_db, make_log):
    log = _contest_created(make_log, tx_hash="0x" + "a" * 64)

    first = await engine.process_log(log)
    before = bson.encode(fake_db[keys.CONTESTS].docs["42"])
    second = await engine.process_log(log)
    after = bson.encode(fake_db[keys.CONTESTS].docs["42"])

    assert first.outcome is Outcome.APPLIED
    assert second.outcome is Outcome.DUPLICATE
    assert len(fake_db[keys.CONTESTS].docs) == 1
    assert before == after


@pytest.mark.asyncio
async def test_contest_created_copies_reconciled_record(engine, store, make_log):
    kickoff = datetime(2026, 11, 2, 0, 20, tzinfo=timezone.utc)
    source = Contest(
        key="jo-1",
        jsonodds_id="jo-1",
        rundown_id="rd-9",
        sportspage_id="sp-9",
        sport=4,
        league="NFL",
        home_team="Kansas City Chiefs",
        away_team="Buffalo Bills",
        match_time=kickoff,
        market=MarketSnapshot(moneyline_home="-150", moneyline_away="+130"),
    )
    await store.set(keys.CONTESTS, source.key, source.to_document())

    result = await engine.process_log(_contest_created(make_log, jsonodds_id="jo-1"))

    assert result.outcome is Outcome.APPLIED
    onchain = await store.get(keys.CONTESTS, "42")
    assert onchain["status"] == ContestStatus.UNVERIFIED.value
    assert onchain["home_team"] == "Kansas City Chiefs"
    assert onchain["rundown_id"] == "rd-9"
    assert onchain["market"]["moneyline_home"] == "-150"
    assert onchain["created"] is True
    provider = await store.get(keys.CONTESTS, "jo-1")
    assert provider["created"] is True
    assert provider["linked_contest_id"] == "42"


@pytest.mark.asyncio
async def test_contest_lifecycle_and_final_scores_locked(engine, store, make_log):
    await engine.process_log(_contest_created(make_log))
    await engine.process_log(make_log("ContestVerified", contest_id=42, start_time=1_790_000_000))
    markets = await engine.process_log(
        make_log(
            "ContestMarketsUpdated",
            contest_id=42,
            moneyline_away_odds=23_000_000,
            moneyline_home_odds=16_500_000,
            spread_line_ticks=-35,
            spread_away_odds=19_100_000,
            spread_home_odds=19_100_000,
            total_line_ticks=475,
            over_odds=19_000_000,
            under_odds=19_200_000,
        )
    )
    scored = await engine.process_log(make_log("ContestScoresSet", contest_id=42, away_score=17, home_score=24))

    doc = await store.get(keys.CONTESTS, "42")
    assert markets.outcome is Outcome.APPLIED
    assert doc["onchain_market"]["spread_line_ticks"] == -35
    assert scored.outcome is Outcome.APPLIED
    assert doc["status"] == ContestStatus.SCORED.value
    assert (doc["away_score"], doc["home_score"]) == (17, 24)
    assert doc["start_time"] == datetime.fromtimestamp(1_790_000_000, tz=timezone.utc)

    await store.update(keys.CONTESTS, "42", {"status": ContestStatus.FINAL.value})
    late = await engine.process_log(make_log("ContestScoresSet", contest_id=42, away_score=0, home_score=0))
    doc = await store.get(keys.CONTESTS, "42")
    assert late.outcome is Outcome.IGNORED
    assert (doc["away_score"], doc["home_score"]) == (17, 24)


@pytest.mark.asyncio
async def test_verifying_unknown_contest_is_missing_reference(engine, store, make_log):
    result = await engine.process_log(make_log("ContestVerified", contest_id=7, start_time=1))
    assert result.outcome is Outcome.MISSING_REFERENCE
    assert await store.get(keys.CONTESTS, "7") is None


def _speculation(make_log, speculation_id, the_number=-35):
    return make_log(
        "SpeculationCreated",
        speculation_id=speculation_id,
        contest_id=42,
        lock_time=1_790_000_000,
        scorer=SCORER,
        the_number=the_number,
        creator=CREATOR,
    )


@pytest.mark.asyncio
async def test_duplicate_speculation_proposition_is_rejected(engine, fake_db, make_log):
    first = await engine.process_log(_speculation(make_log, 1))
    second = await engine.process_log(_speculation(make_log, 2))
    other_line = await engine.process_log(_speculation(make_log, 3, the_number=-70))

    assert first.outcome is Outcome.APPLIED
    assert second.outcome is Outcome.DUPLICATE
    assert other_line.outcome is Outcome.APPLIED
    assert sorted(fake_db[keys.SPECULATIONS].docs) == ["1", "3"]


@pytest.mark.asyncio
async def test_speculation_settled(engine, store, make_log):
    await engine.process_log(_speculation(make_log, 1))
    result = await engine.process_log(make_log("SpeculationSettled", speculation_id=1, win_side=2))

    doc = await store.get(keys.SPECULATIONS, "1")
    assert result.outcome is Outcome.APPLIED
    assert doc["status"] == "Closed"
    assert doc["winning_side"] == "Home"


@pytest.mark.asyncio
async def test_racing_speculation_for_same_proposition_is_stopped_by_unique_index(engine, store, fake_db, make_log, monkeypatch):
    await engine.process_log(_speculation(make_log, 1))

    async def _lookup_before_first_insert(collection, query):
        return None

    # The competing delivery ran its lookup before speculation 1 was written.
    monkeypatch.setattr(store, "find_one", _lookup_before_first_insert)
    result = await engine.process_log(_speculation(make_log, 2))

    assert result.outcome is Outcome.DUPLICATE
    assert result.detail == "lost creation race"
    assert sorted(fake_db[keys.SPECULATIONS].docs) == ["1"]
