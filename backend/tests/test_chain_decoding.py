"""
backend/tests/test_chain_decoding.py

Purpose:
    Payload codec, event registry, webhook envelope parsing and the engine's
    per-event isolation of decode failures.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest
from eth_abi import encode

from marketsync.chain.codec import CORE_EVENT_SIGNATURE, decode_event_payload, event_type_id
from marketsync.chain.envelope import ChainLog, parse_envelope, parse_int
from marketsync.chain.registry import EVENT_FIELDS
from marketsync.errors import DecodeError
from marketsync.services.projection import Outcome


def test_decode_unwraps_outer_bytes_and_normalizes_values():
    inner = encode(["uint256", "address", "bytes32"], [9, "0x" + "ab" * 20, b"\x01" * 32])
    data = "0x" + encode(["bytes"], [inner]).hex()

    values = decode_event_payload(["uint256", "address", "bytes32"], data)

    assert values == [9, "0x" + "ab" * 20, "0x" + "01" * 32]


def test_decode_rejects_payload_for_another_schema():
    data = "0x" + encode(["bytes"], [encode(["uint8"], [1])]).hex()
    with pytest.raises(DecodeError):
        decode_event_payload(["uint256", "address", "string"], data)


def test_decode_rejects_non_hex():
    with pytest.raises(DecodeError):
        decode_event_payload(["uint256"], "0xzz")


def test_registry_covers_every_event(registry):
    assert len(registry) == len(EVENT_FIELDS) == 18
    spec = registry.by_type_id(event_type_id("PositionMatched").upper().replace("0X", "0x"))
    assert spec is not None and spec.name == "PositionMatched"
    assert registry.by_name("Unknown") is None


def test_parse_int_handles_hex_and_decimal():
    assert parse_int("0x1f") == 31
    assert parse_int("42") == 42
    assert parse_int("") is None
    assert parse_int("nope") is None


def test_graphql_envelope():
    payload = {
        "event": {
            "data": {
                "block": {
                    "number": 1234,
                    "timestamp": 1_790_000_000,
                    "logs": [
                        {
                            "topics": [CORE_EVENT_SIGNATURE.upper().replace("0X", "0x"), "0x01"],
                            "data": "0xdead",
                            "index": 3,
                            "transaction": {"hash": "0xABC"},
                            "account": {"address": "0xF00"},
                        }
                    ],
                }
            }
        }
    }

    (log,) = parse_envelope(payload)

    assert log.topic0 == CORE_EVENT_SIGNATURE
    assert log.block_number == 1234
    assert log.log_index == 3
    assert log.tx_hash == "0xabc"
    assert log.address == "0xf00"
    assert log.block_timestamp == datetime.fromtimestamp(1_790_000_000, tz=timezone.utc)


def test_stream_envelope_with_split_topics():
    payload = {
        "block": {"number": "0x10", "timestamp": "0x6a"},
        "logs": [
            {
                "topic0": CORE_EVENT_SIGNATURE,
                "topic1": "0x02",
                "data": "0x",
                "transactionHash": "0xdef",
                "logIndex": "0x2",
            }
        ],
    }

    (log,) = parse_envelope(payload)

    assert log.topics == [CORE_EVENT_SIGNATURE, "0x02"]
    assert log.block_number == 16
    assert log.log_index == 2


@pytest.mark.parametrize("payload", [None, [], {"hello": "world"}, {"event": {"data": {}}}])
def test_unrecognized_envelopes(payload):
    assert parse_envelope(payload) is None


@pytest.mark.asyncio
async def test_engine_ignores_foreign_and_unregistered_logs(engine):
    foreign = ChainLog(topics=["0x" + "0" * 64], data="0x")
    unregistered = ChainLog(topics=[CORE_EVENT_SIGNATURE, event_type_id("SomethingElse")], data="0x")

    summary = await engine.process_logs([foreign, unregistered])

    assert summary.as_dict()["ignored"] == 2


@pytest.mark.asyncio
async def test_unregistered_event_type_is_logged_at_info(engine, caplog):
    type_id = event_type_id("SomethingElse")
    caplog.set_level(logging.INFO, logger="marketsync.projection")

    await engine.process_log(ChainLog(topics=[CORE_EVENT_SIGNATURE, type_id], data="0x"))

    (record,) = [r for r in caplog.records if r.name == "marketsync.projection"]
    assert record.levelno == logging.INFO
    assert f"unregistered event type {type_id}" in record.getMessage()


@pytest.mark.asyncio
async def test_decode_failure_does_not_abort_the_batch(engine, store, registry, make_log):
    spec = registry.by_name("LeaderboardCreated")
    broken = ChainLog(topics=[CORE_EVENT_SIGNATURE, spec.type_id], data="0x1234", tx_hash="0x01", log_index=0)
    good = make_log(
        "LeaderboardCreated",
        leaderboard_id=1,
        entry_fee=0,
        start_time=1,
        end_time=2,
        safety_period_duration=0,
        roi_submission_window=0,
    )

    summary = await engine.process_logs([broken, good])

    assert summary.as_dict() == {
        "received": 2,
        "applied": 1,
        "duplicate": 0,
        "missing_reference": 0,
        "ignored": 0,
        "failed": 1,
    }
    assert await store.get("leaderboards", "1") is not None


@pytest.mark.asyncio
async def test_handler_exception_is_contained(engine, store, make_log, monkeypatch):
    async def _boom(*_args, **_kwargs):
        raise RuntimeError("store went away")

    monkeypatch.setattr(store, "create_if_absent", _boom)
    result = await engine.process_log(
        make_log(
            "LeaderboardCreated",
            leaderboard_id=1,
            entry_fee=0,
            start_time=1,
            end_time=2,
            safety_period_duration=0,
            roi_submission_window=0,
        )
    )

    assert result.outcome is Outcome.FAILED
    assert "store went away" in result.detail
