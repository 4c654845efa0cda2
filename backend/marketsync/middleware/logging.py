"""
backend/marketsync/middleware/logging.py

Purpose:
    Per-request JSON access log and request counter. Chain-event deliveries
    carry the relay's X-Request-ID through so a delivery can be followed
    from the relay into the projection logs.

Dependencies:
    - starlette
    - marketsync.monitoring.metrics
"""

import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from marketsync.monitoring.metrics import HTTP_REQUESTS_TOTAL

logger = logging.getLogger("marketsync.http")

# Polled by health checks and scrapers; logged at DEBUG only.
_QUIET_PATHS = frozenset({"/health", "/metrics"})


def _client_hash(request: Request) -> str | None:
    if not request.client or not request.client.host:
        return None
    return hashlib.sha256(request.client.host.encode()).hexdigest()[:12]


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        path = request.url.path
        HTTP_REQUESTS_TOTAL.labels(method=request.method, status=str(response.status_code)).inc()
        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "client_ip_hash": _client_hash(request),
        }
        if path in _QUIET_PATHS and response.status_code < 400:
            level = logging.DEBUG
        elif response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, json.dumps(entry))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # httpx logs every request line at INFO; the feed clients log their own failures.
    logging.getLogger("httpx").setLevel(logging.WARNING)
