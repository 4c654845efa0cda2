"""Request-scoped access to components wired by the application lifespan."""

import hmac

from fastapi import Header, HTTPException, Request, status

from marketsync.config import settings
from marketsync.services.archive_service import ArchiveService
from marketsync.services.backfill_service import BackfillService
from marketsync.services.contest_sync_service import ContestSyncService
from marketsync.services.projection import ProjectionEngine


def get_engine(request: Request) -> ProjectionEngine:
    return request.app.state.engine


def get_backfill(request: Request) -> BackfillService:
    return request.app.state.backfill


def get_contest_sync(request: Request) -> ContestSyncService:
    return request.app.state.contest_sync


def get_archive(request: Request) -> ArchiveService:
    return request.app.state.archive


async def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    expected = settings.ADMIN_API_KEY
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key.")
