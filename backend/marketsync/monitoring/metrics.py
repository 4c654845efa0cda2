"""
backend/marketsync/monitoring/metrics.py

Purpose:
    Prometheus metrics for event projection, feed polling, the contest sync
    cycle and archival. Exported by the /metrics endpoint.

Dependencies:
    - prometheus_client
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter

from prometheus_client import Counter, Histogram

PROJECTION_EVENTS_TOTAL = Counter(
    "projection_events_total",
    "Chain events handled by the projection engine, by outcome.",
    ["event", "outcome"],
)
PROJECTION_LATENCY = Histogram(
    "projection_latency_seconds",
    "Latency of one event projection (decode + handler).",
    ["event"],
)
FEED_REQUESTS_TOTAL = Counter(
    "feed_requests_total",
    "Outbound feed calls, by feed and outcome.",
    ["feed", "outcome"],
)
CONTEST_SYNC_CONTESTS_TOTAL = Counter(
    "contest_sync_contests_total",
    "Authoritative entries seen by the contest sync cycle, by match result.",
    ["sport", "result"],
)
CONTEST_SYNC_CYCLE_LATENCY = Histogram(
    "contest_sync_cycle_seconds",
    "Wall time of one contest sync cycle.",
)
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Inbound HTTP requests, by method and status code.",
    ["method", "status"],
)
ARCHIVE_DOCUMENTS_TOTAL = Counter(
    "archive_documents_total",
    "Documents moved to cold storage.",
    ["collection"],
)


@contextmanager
def observe_latency(metric):
    start = perf_counter()
    try:
        yield
    finally:
        metric.observe(perf_counter() - start)
