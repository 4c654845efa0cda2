"""
backend/tests/test_backfill_service.py

Purpose:
    Manual backfill: event-name validation, per-event log queries over the
    recent block range and chain-ordered idempotent replay.
"""

from __future__ import annotations

import pytest

from marketsync.services.backfill_service import BackfillService, UnknownEventError
from marketsync.store import keys

USER = "0x" + "9" * 40


class _Explorer:
    def __init__(self, logs_by_topic):
        self.logs_by_topic = logs_by_topic
        self.queries = []

    async def get_latest_block(self):
        return 10_000

    async def get_logs(self, address, topic0, topic1, from_block, to_block):
        self.queries.append((address, topic1, from_block, to_block))
        return self.logs_by_topic.get(topic1, [])


def _explorer_row(log):
    return {
        "topics": log.topics,
        "data": log.data,
        "blockNumber": hex(log.block_number),
        "transactionHash": log.tx_hash,
        "logIndex": hex(log.log_index),
        "timeStamp": "0x6a7c2f00",
    }


@pytest.mark.asyncio
async def test_unknown_event_names_are_rejected(engine):
    service = BackfillService(engine, _Explorer({}), contract_address="0xc0")
    with pytest.raises(UnknownEventError):
        await service.run(["ContestCreated", "Nope"])


@pytest.mark.asyncio
async def test_backfill_replays_each_event_type_idempotently(engine, store, registry, make_log):
    created = make_log(
        "LeaderboardCreated",
        block_number=900,
        leaderboard_id=5,
        entry_fee=2,
        start_time=1,
        end_time=2,
        safety_period_duration=0,
        roi_submission_window=0,
    )
    registered = make_log("UserRegistered", block_number=950, leaderboard_id=5, user=USER, declared_bankroll=10)
    explorer = _Explorer(
        {
            registry.by_name("UserRegistered").type_id: [_explorer_row(registered)],
            registry.by_name("LeaderboardCreated").type_id: [_explorer_row(created)],
        }
    )
    service = BackfillService(engine, explorer, contract_address="0xc0", block_range=500)

    report = await service.run(["LeaderboardCreated", "UserRegistered"])
    replay = await service.run(["LeaderboardCreated", "UserRegistered"], block_range=50)

    assert report["from_block"] == 9_500
    assert report["events"]["LeaderboardCreated"]["applied"] == 1
    assert report["events"]["UserRegistered"]["applied"] == 1
    assert replay["from_block"] == 9_950
    assert replay["events"]["UserRegistered"]["duplicate"] == 1
    assert explorer.queries[0][0] == "0xc0"
    doc = await store.get(keys.LEADERBOARDS, "5")
    assert doc["current_participants"] == 1
    assert doc["prize_pool"] == "2"


@pytest.mark.asyncio
async def test_default_backfill_covers_every_registered_event(engine, registry):
    explorer = _Explorer({})
    report = await BackfillService(engine, explorer, contract_address="0xc0").run()

    assert len(explorer.queries) == len(registry)
    assert set(report["events"]) == set(registry.names())
