"""
backend/marketsync/services/backfill_service.py

Purpose:
    Manual replay of recent chain events. For each requested event type the
    block explorer is queried for CoreEventEmitted logs over a bounded recent
    block range and every log is replayed through the projection engine with
    is_sync set. Handlers are idempotent, so replays are safe.

Dependencies:
    - marketsync.providers.block_explorer
    - marketsync.services.projection
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.chain.codec import CORE_EVENT_SIGNATURE
from marketsync.chain.envelope import parse_envelope
from marketsync.errors import FeedError
from marketsync.providers.block_explorer import BlockExplorerProvider
from marketsync.services.projection import ProjectionEngine

logger = logging.getLogger("marketsync.backfill")


class UnknownEventError(ValueError):
    """Raised when a backfill names an event type that is not registered."""


class BackfillService:
    def __init__(
        self,
        engine: ProjectionEngine,
        explorer: BlockExplorerProvider,
        *,
        contract_address: str,
        block_range: int = 5000,
    ):
        self._engine = engine
        self._explorer = explorer
        self._contract_address = contract_address
        self._block_range = block_range

    async def run(self, event_names: list[str] | None = None, *, block_range: int | None = None) -> dict[str, Any]:
        registry = self._engine.registry
        names = list(event_names) if event_names else registry.names()
        unknown = [name for name in names if registry.by_name(name) is None]
        if unknown:
            raise UnknownEventError(f"unknown event types: {', '.join(unknown)}")

        latest = await self._explorer.get_latest_block()
        from_block = max(0, latest - (block_range or self._block_range))
        report: dict[str, Any] = {"from_block": from_block, "to_block": latest, "events": {}}

        for name in names:
            spec = registry.by_name(name)
            try:
                raw_logs = await self._explorer.get_logs(
                    self._contract_address, CORE_EVENT_SIGNATURE, spec.type_id, from_block, latest
                )
            except FeedError as exc:
                logger.error("Backfill of %s skipped: %s", name, exc)
                report["events"][name] = {"error": str(exc)}
                continue

            logs = parse_envelope({"logs": raw_logs}) or []
            for log in logs:
                log.is_sync = True
            # Replay in chain order.
            logs.sort(key=lambda log: (log.block_number or 0, log.log_index or 0))
            summary = await self._engine.process_logs(logs)
            report["events"][name] = summary.as_dict()
            logger.info("Backfilled %s: %s", name, summary.as_dict())
        return report
