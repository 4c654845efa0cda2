"""
backend/tests/test_order_matching.py

Purpose:
    Fill arithmetic on maker/taker positions and the PositionCreated /
    PositionMatched projections built on it.
"""

from __future__ import annotations

import pytest

from marketsync.models.common import PositionType
from marketsync.models.position import Position, consumed_amount, match_order
from marketsync.services.projection import Outcome
from marketsync.store import keys

MAKER = "0x" + "a" * 40
TAKER = "0x" + "b" * 40
OTHER = "0x" + "c" * 40


def _position(user: str, side: PositionType, unmatched: int = 0) -> Position:
    return Position(
        key=keys.position_key(1, user, 7, int(side)),
        speculation_id="1",
        user=user,
        odds_pair_id="7",
        position_type=side,
        unmatched_amount=unmatched,
        stored_upper_odds=15_000_000,
        stored_lower_odds=12_000_000,
    )


def test_upper_maker_consumes_at_lower_odds():
    maker = _position(MAKER, PositionType.UPPER, unmatched=50_000_000)
    taker = _position(TAKER, PositionType.LOWER)

    consumed = match_order(maker, taker, 100_000_000)

    assert consumed == 20_000_000
    assert maker.matched_amount == 20_000_000
    assert maker.unmatched_amount == 30_000_000
    assert maker.counterparties == {TAKER: 100_000_000}
    assert taker.matched_amount == 100_000_000
    # The taker books the consumed maker stake, not its own contribution.
    assert taker.counterparties == {MAKER: 20_000_000}


def test_lower_maker_consumes_at_upper_odds():
    maker = _position(MAKER, PositionType.LOWER, unmatched=80_000_000)
    taker = _position(TAKER, PositionType.UPPER)

    assert match_order(maker, taker, 100_000_000) == 50_000_000
    assert maker.unmatched_amount == 30_000_000


def test_consumed_amount_floors():
    assert consumed_amount(3, 13_333_333) == 0
    assert consumed_amount(10_000_001, 12_500_000) == 2_500_000


def test_counterparties_accumulate_in_first_seen_order():
    maker = _position(MAKER, PositionType.UPPER, unmatched=100_000_000)
    match_order(maker, _position(TAKER, PositionType.LOWER), 10_000_000)
    match_order(maker, _position(OTHER, PositionType.LOWER), 10_000_000)
    match_order(maker, _position(TAKER.upper().replace("0X", "0x"), PositionType.LOWER), 5_000_000)

    assert list(maker.counterparties) == [TAKER, OTHER]
    assert maker.counterparties[TAKER] == 15_000_000


def _created(make_log, user=MAKER, side=0, amount=50_000_000, tx_hash=None):
    return make_log(
        "PositionCreated",
        tx_hash=tx_hash,
        speculation_id=1,
        user=user,
        odds_pair_id=7,
        unmatched_expiry=0,
        position_type=side,
        amount=amount,
        upper_odds=15_000_000,
        lower_odds=12_000_000,
    )


def _matched(make_log, amount=100_000_000, tx_hash=None):
    return make_log(
        "PositionMatched",
        tx_hash=tx_hash,
        speculation_id=1,
        maker=MAKER,
        odds_pair_id=7,
        maker_position_type=0,
        taker=TAKER,
        amount=amount,
    )


@pytest.mark.asyncio
async def test_position_matched_projection_updates_both_sides(engine, store, make_log):
    await engine.process_log(_created(make_log))

    result = await engine.process_log(_matched(make_log))

    assert result.outcome is Outcome.APPLIED
    maker = await store.get(keys.POSITIONS, keys.position_key(1, MAKER, 7, 0))
    taker = await store.get(keys.POSITIONS, keys.position_key(1, TAKER, 7, 1))
    assert maker["matched_amount"] == "20000000"
    assert maker["unmatched_amount"] == "30000000"
    assert maker["counterparties"] == {TAKER: "100000000"}
    assert taker["position_type"] == 1
    assert taker["matched_amount"] == "100000000"
    assert taker["counterparties"] == {MAKER: "20000000"}
    assert taker["stored_lower_odds"] == 12_000_000


@pytest.mark.asyncio
async def test_redelivered_match_is_applied_once(engine, store, make_log):
    await engine.process_log(_created(make_log))
    match = _matched(make_log, tx_hash="0x" + "d" * 64)

    first = await engine.process_log(match)
    second = await engine.process_log(match)

    assert first.outcome is Outcome.APPLIED
    assert second.outcome is Outcome.DUPLICATE
    maker = await store.get(keys.POSITIONS, keys.position_key(1, MAKER, 7, 0))
    assert maker["matched_amount"] == "20000000"


@pytest.mark.asyncio
async def test_match_before_maker_exists_can_be_replayed(engine, store, make_log):
    match = _matched(make_log, tx_hash="0x" + "e" * 64)

    early = await engine.process_log(match)
    assert early.outcome is Outcome.MISSING_REFERENCE
    assert await store.get(keys.POSITIONS, keys.position_key(1, TAKER, 7, 1)) is None

    await engine.process_log(_created(make_log))
    replay = await engine.process_log(match)
    assert replay.outcome is Outcome.APPLIED


@pytest.mark.asyncio
async def test_second_position_created_adds_unmatched_stake(engine, store, make_log):
    await engine.process_log(_created(make_log, amount=10))
    await engine.process_log(_created(make_log, amount=15))

    doc = await store.get(keys.POSITIONS, keys.position_key(1, MAKER, 7, 0))
    assert doc["unmatched_amount"] == "25"
    assert doc["version"] == 1


@pytest.mark.asyncio
async def test_position_adjusted_and_claimed(engine, store, make_log):
    await engine.process_log(_created(make_log, amount=100))
    adjusted = await engine.process_log(
        make_log("PositionAdjusted", speculation_id=1, user=MAKER, odds_pair_id=7, position_type=0, amount_delta=-40)
    )
    claim = make_log("PositionClaimed", speculation_id=1, user=MAKER, odds_pair_id=7, position_type=0, payout=999)
    claimed = await engine.process_log(claim)
    again = await engine.process_log(claim)

    doc = await store.get(keys.POSITIONS, keys.position_key(1, MAKER, 7, 0))
    assert adjusted.outcome is Outcome.APPLIED
    assert doc["unmatched_amount"] == "60"
    assert claimed.outcome is Outcome.APPLIED
    assert again.outcome is Outcome.DUPLICATE
    assert doc["claimed"] is True
    assert doc["payout"] == "999"
