"""
backend/marketsync/chain/envelope.py

Purpose:
    Structural detection of the two webhook envelope shapes and their
    flattening into ChainLog records. Unrecognized envelopes yield None so the
    webhook can acknowledge unknown traffic without processing it.

    GraphQL-style:  {"event": {"data": {"block": {"number", "timestamp",
                     "logs": [{"topics", "data", "index", "transaction": {"hash"}}]}}}}
    Stream-style:   {"block": {"number", "timestamp"}, "logs": [{"topics" | "topic0".."topic3",
                     "data", "transactionHash", "logIndex", "blockNumber"}]}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from marketsync.utils import from_unix


@dataclass
class ChainLog:
    topics: list[str]
    data: str
    block_number: int | None = None
    tx_hash: str | None = None
    log_index: int | None = None
    block_timestamp: datetime | None = None
    address: str | None = None
    is_sync: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def topic0(self) -> str | None:
        return self.topics[0].lower() if self.topics else None

    @property
    def topic1(self) -> str | None:
        return self.topics[1].lower() if len(self.topics) > 1 else None


def parse_int(value: Any) -> int | None:
    """Accept ints, decimal strings and 0x-prefixed hex strings."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return None


def _timestamp(value: Any) -> datetime | None:
    seconds = parse_int(value)
    return from_unix(seconds) if seconds is not None else None


def _topics(raw: dict[str, Any]) -> list[str]:
    topics = raw.get("topics")
    if isinstance(topics, list):
        return [str(t).lower() for t in topics if t]
    collected = []
    for i in range(4):
        topic = raw.get(f"topic{i}")
        if not topic:
            break
        collected.append(str(topic).lower())
    return collected


def _graphql_logs(payload: dict[str, Any]) -> list[ChainLog] | None:
    block = (((payload.get("event") or {}).get("data") or {}).get("block"))
    if not isinstance(block, dict) or not isinstance(block.get("logs"), list):
        return None
    block_number = parse_int(block.get("number"))
    block_ts = _timestamp(block.get("timestamp"))
    logs = []
    for raw in block["logs"]:
        if not isinstance(raw, dict):
            continue
        tx = raw.get("transaction") or {}
        account = raw.get("account") or {}
        logs.append(
            ChainLog(
                topics=_topics(raw),
                data=str(raw.get("data") or "0x"),
                block_number=block_number,
                tx_hash=(tx.get("hash") or "").lower() or None,
                log_index=parse_int(raw.get("index")),
                block_timestamp=block_ts,
                address=(account.get("address") or "").lower() or None,
            )
        )
    return logs


def _stream_logs(payload: dict[str, Any]) -> list[ChainLog] | None:
    raw_logs = payload.get("logs")
    if not isinstance(raw_logs, list):
        return None
    block = payload.get("block") if isinstance(payload.get("block"), dict) else {}
    block_number = parse_int(block.get("number"))
    block_ts = _timestamp(block.get("timestamp"))
    logs = []
    for raw in raw_logs:
        if not isinstance(raw, dict):
            continue
        logs.append(
            ChainLog(
                topics=_topics(raw),
                data=str(raw.get("data") or "0x"),
                block_number=parse_int(raw.get("blockNumber")) or block_number,
                tx_hash=(raw.get("transactionHash") or "").lower() or None,
                log_index=parse_int(raw.get("logIndex")),
                block_timestamp=_timestamp(raw.get("timeStamp")) or block_ts,
                address=(raw.get("address") or "").lower() or None,
            )
        )
    return logs


def parse_envelope(payload: Any) -> list[ChainLog] | None:
    """Return the logs carried by a recognized envelope, or None."""
    if not isinstance(payload, dict):
        return None
    logs = _graphql_logs(payload)
    if logs is not None:
        return logs
    return _stream_logs(payload)
