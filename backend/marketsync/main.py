"""
backend/marketsync/main.py

Purpose:
    FastAPI application bootstrap: builds the store, projection engine, feed
    providers and services inside the lifespan, attaches them to app.state,
    wires middleware, routers and error handlers, and runs the scheduled
    contest sync and archive jobs.

Dependencies:
    - marketsync.database
    - marketsync.services
    - apscheduler
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from marketsync.chain.registry import build_default_registry
from marketsync.config import settings
from marketsync.database import close_db, connect_db
from marketsync.middleware.logging import StructuredLoggingMiddleware, setup_logging
from marketsync.providers import BlockExplorerProvider, JsonOddsProvider, RundownProvider, SportspageProvider
from marketsync.services.archive_service import ArchiveService
from marketsync.services.backfill_service import BackfillService
from marketsync.services.contest_sync_service import ContestSyncService
from marketsync.services.projection import ProjectionEngine
from marketsync.services.team_alias_resolver import build_resolver
from marketsync.store import MongoDocumentStore
from marketsync.workers.archive import archive_old_records
from marketsync.workers.contest_sync import sync_contests

logger = logging.getLogger("marketsync")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    client, db = await connect_db(settings)
    store = MongoDocumentStore(db)

    engine = ProjectionEngine(store, build_default_registry(), cas_retries=settings.PROJECTION_CAS_RETRIES)
    jsonodds = JsonOddsProvider(settings)
    rundown = RundownProvider(settings)
    sportspage = SportspageProvider(settings)
    explorer = BlockExplorerProvider(settings)
    providers = [jsonodds, rundown, sportspage, explorer]

    contest_sync = ContestSyncService(
        store, jsonodds, rundown, sportspage, build_resolver(settings.TEAM_ALIASES_FILE), settings,
    )
    archive = ArchiveService(store, after_hours=settings.ARCHIVE_AFTER_HOURS, batch_size=settings.ARCHIVE_BATCH_SIZE)
    backfill = BackfillService(
        engine, explorer,
        contract_address=settings.CORE_CONTRACT_ADDRESS,
        block_range=settings.BACKFILL_BLOCK_RANGE,
    )

    app.state.db = db
    app.state.store = store
    app.state.engine = engine
    app.state.providers = providers
    app.state.contest_sync = contest_sync
    app.state.archive = archive
    app.state.backfill = backfill

    scheduler = AsyncIOScheduler()
    if settings.CONTEST_SYNC_ENABLED:
        scheduler.add_job(
            sync_contests, "interval", minutes=settings.CONTEST_SYNC_INTERVAL_MINUTES,
            args=[contest_sync], id="contest_sync", max_instances=1, coalesce=True,
        )
    else:
        logger.info("Contest sync disabled via config")
    scheduler.add_job(
        archive_old_records, "interval", hours=settings.ARCHIVE_INTERVAL_HOURS,
        args=[archive, store], id="archive", max_instances=1, coalesce=True,
    )
    scheduler.start()
    logger.info("Background scheduler started (%d jobs)", len(scheduler.get_jobs()))

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    for provider in providers:
        await provider.aclose()
    close_db(client)


app = FastAPI(
    title="MarketSync",
    description="Prediction-market event projection and sports feed reconciliation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(StructuredLoggingMiddleware)

from marketsync.routers.admin import router as admin_router
from marketsync.routers.webhooks import router as webhooks_router

app.include_router(webhooks_router)
app.include_router(admin_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health(request: Request):
    """Health check -- verifies DB connection and feed circuit state."""
    try:
        result = await request.app.state.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except (ConnectionFailure, OperationFailure):
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "feeds": {p.feed_name: {"circuit_open": p.circuit_open} for p in request.app.state.providers},
    }


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
