"""
backend/marketsync/workers/contest_sync.py

Purpose:
    Scheduler entry point for the contest reconciliation cycle. The job is
    registered with max_instances=1 and coalesce=True; the service adds its
    own lock and store lease on top.
"""

import logging

from marketsync.services.contest_sync_service import ContestSyncService

logger = logging.getLogger("marketsync.workers.contest_sync")


async def sync_contests(service: ContestSyncService) -> None:
    try:
        summary = await service.run_cycle()
    except Exception:
        logger.exception("Contest sync cycle crashed")
        return
    logger.info("Contest sync finished with status=%s", summary.status)
