"""
Chain event backfill: replay recent CoreEventEmitted logs into the projection.

Queries the block explorer per event type over a bounded recent block range
and feeds every log through the projection engine with is_sync set. Handlers
are idempotent, so running this repeatedly is safe.

Usage:
    python -m tools.backfill_events
    python -m tools.backfill_events --events ContestCreated,PositionMatched
    python -m tools.backfill_events --events LeaderboardCreated --blocks 20000
"""

import argparse
import asyncio
import json
import logging
import sys

# Add backend to Python path so we can import marketsync modules
sys.path.insert(0, "backend")

from marketsync.chain.registry import build_default_registry  # noqa: E402
from marketsync.config import settings  # noqa: E402
from marketsync.database import close_db, connect_db  # noqa: E402
from marketsync.errors import FeedError  # noqa: E402
from marketsync.providers import BlockExplorerProvider  # noqa: E402
from marketsync.services.backfill_service import BackfillService, UnknownEventError  # noqa: E402
from marketsync.services.projection import ProjectionEngine  # noqa: E402
from marketsync.store import MongoDocumentStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("backfill_events")


async def run(event_names: list[str] | None, blocks: int | None) -> int:
    if not settings.CORE_CONTRACT_ADDRESS:
        log.error("CORE_CONTRACT_ADDRESS is not configured")
        return 1

    client, db = await connect_db(settings)
    explorer = BlockExplorerProvider(settings)
    try:
        engine = ProjectionEngine(
            MongoDocumentStore(db), build_default_registry(), cas_retries=settings.PROJECTION_CAS_RETRIES
        )
        service = BackfillService(
            engine, explorer,
            contract_address=settings.CORE_CONTRACT_ADDRESS,
            block_range=settings.BACKFILL_BLOCK_RANGE,
        )
        try:
            report = await service.run(event_names, block_range=blocks)
        except UnknownEventError as exc:
            log.error("%s (known: %s)", exc, ", ".join(engine.registry.names()))
            return 2
        except FeedError as exc:
            log.error("Block explorer unavailable: %s", exc)
            return 1
    finally:
        await explorer.aclose()
        close_db(client)

    print(json.dumps(report, indent=2, default=str))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Replay recent chain events into the projection store")
    parser.add_argument("--events", type=str, default="",
                        help="Comma-separated event names (default: all registered events)")
    parser.add_argument("--blocks", type=int, default=None,
                        help=f"How many recent blocks to scan (default: {settings.BACKFILL_BLOCK_RANGE})")
    args = parser.parse_args()

    if args.blocks is not None and args.blocks <= 0:
        parser.error("--blocks must be positive")
    names = [name.strip() for name in args.events.split(",") if name.strip()] or None
    sys.exit(asyncio.run(run(names, args.blocks)))


if __name__ == "__main__":
    main()
