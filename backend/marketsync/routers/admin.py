"""
backend/marketsync/routers/admin.py

Purpose:
    Operator endpoints: manual chain backfill, an on-demand contest sync
    cycle and an on-demand archive run.

Dependencies:
    - marketsync.services.backfill_service
    - marketsync.services.contest_sync_service
    - marketsync.services.archive_service
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marketsync.errors import FeedError
from marketsync.routers.deps import get_archive, get_backfill, get_contest_sync, require_admin
from marketsync.services.archive_service import ArchiveService
from marketsync.services.backfill_service import BackfillService, UnknownEventError
from marketsync.services.contest_sync_service import ContestSyncService

logger = logging.getLogger("marketsync.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class BackfillRequest(BaseModel):
    event_names: list[str] | None = None
    block_range: int | None = Field(default=None, gt=0)


@router.post("/backfill")
async def backfill(body: BackfillRequest | None = None, service: BackfillService = Depends(get_backfill)):
    body = body or BackfillRequest()
    try:
        return await service.run(body.event_names, block_range=body.block_range)
    except UnknownEventError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except FeedError as exc:
        logger.error("Backfill aborted: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))


@router.post("/contest-sync")
async def contest_sync(service: ContestSyncService = Depends(get_contest_sync)):
    summary = await service.run_cycle()
    if summary.status == "skipped":
        raise HTTPException(status_code=409, detail="A contest sync cycle is already running.")
    return summary.as_dict()


@router.post("/archive")
async def archive(service: ArchiveService = Depends(get_archive)):
    return await service.run()
