"""
backend/marketsync/providers/block_explorer.py

Purpose:
    Etherscan-compatible log API used by manual backfill to re-query recent
    CoreEventEmitted logs per event type.
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.chain.envelope import parse_int
from marketsync.errors import FeedError
from marketsync.providers.base import FeedProvider

logger = logging.getLogger("marketsync.providers.block_explorer")

_NO_RECORDS = "no records found"


class BlockExplorerProvider(FeedProvider):
    feed_name = "block_explorer"

    async def _call(self, params: dict[str, Any]) -> Any:
        params = {**params, "apikey": self._settings.BLOCK_EXPLORER_API_KEY}
        return await self._get_json(self._settings.BLOCK_EXPLORER_BASE_URL, params=params)

    async def get_latest_block(self) -> int:
        body = await self._call({"module": "proxy", "action": "eth_blockNumber"})
        number = parse_int(body.get("result")) if isinstance(body, dict) else None
        if number is None:
            raise FeedError(self.feed_name, f"unexpected block number response: {body!r}")
        return number

    async def get_logs(
        self,
        address: str,
        topic0: str,
        topic1: str,
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        body = await self._call(
            {
                "module": "logs",
                "action": "getLogs",
                "address": address,
                "fromBlock": from_block,
                "toBlock": to_block,
                "topic0": topic0,
                "topic1": topic1,
                "topic0_1_opr": "and",
            }
        )
        if not isinstance(body, dict):
            raise FeedError(self.feed_name, "getLogs response is not an object")
        result = body.get("result")
        if str(body.get("status")) == "1" and isinstance(result, list):
            return result
        if _NO_RECORDS in str(body.get("message", "")).lower():
            return []
        raise FeedError(self.feed_name, f"getLogs failed: {body.get('message')} {result!r}")
