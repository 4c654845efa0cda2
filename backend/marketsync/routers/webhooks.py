"""
backend/marketsync/routers/webhooks.py

Purpose:
    Chain event webhook. Accepts POST only (other methods get 405 from the
    router). Recognized envelopes are projected event by event; per-event
    failures are reported only through logs and metrics, never through the
    response status.

Dependencies:
    - marketsync.chain.envelope
    - marketsync.services.projection
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from marketsync.chain.envelope import parse_envelope
from marketsync.routers.deps import get_engine
from marketsync.services.projection import ProjectionEngine

logger = logging.getLogger("marketsync.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/chain-events")
async def chain_events(request: Request, engine: ProjectionEngine = Depends(get_engine)):
    raw = await request.body()
    try:
        payload = json.loads(raw or b"null")
    except ValueError:
        raise HTTPException(status_code=400, detail="Body is not valid JSON.")

    logs = parse_envelope(payload)
    if logs is None:
        logger.info("Ignoring unrecognized webhook envelope (keys=%s)", sorted(payload)[:10] if isinstance(payload, dict) else type(payload).__name__)
        return {"status": "ignored"}

    summary = await engine.process_logs(logs)
    return {"status": "ok", **summary.as_dict()}
