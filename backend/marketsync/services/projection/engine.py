"""
backend/marketsync/services/projection/engine.py

Purpose:
    Event projection engine. Filters logs to the core event signature, looks
    up the registered event by its type id, decodes the payload and applies
    the handler. Each event in a delivery is processed sequentially and in
    isolation: one failure is logged and counted, never propagated.

Dependencies:
    - marketsync.chain
    - marketsync.monitoring.metrics
    - marketsync.store
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from marketsync.chain.codec import CORE_EVENT_SIGNATURE, decode_event_payload
from marketsync.chain.envelope import ChainLog
from marketsync.chain.registry import EventRegistry
from marketsync.errors import DecodeError, UnknownRuleTypeError
from marketsync.monitoring.metrics import PROJECTION_EVENTS_TOTAL, PROJECTION_LATENCY, observe_latency
from marketsync.services.projection.context import (
    Outcome,
    ProjectionContext,
    ProjectionResult,
    ProjectionSummary,
    failed,
    ignored,
)
from marketsync.store import DocumentStore

logger = logging.getLogger("marketsync.projection")

_LEVELS = {
    Outcome.APPLIED: logging.INFO,
    Outcome.DUPLICATE: logging.INFO,
    Outcome.IGNORED: logging.DEBUG,
    Outcome.MISSING_REFERENCE: logging.ERROR,
    Outcome.FAILED: logging.ERROR,
}


class ProjectionEngine:
    def __init__(self, store: DocumentStore, registry: EventRegistry, *, cas_retries: int = 5):
        self._store = store
        self._registry = registry
        self._cas_retries = cas_retries

    @property
    def registry(self) -> EventRegistry:
        return self._registry

    async def process_log(self, log: ChainLog) -> ProjectionResult:
        if log.topic0 != CORE_EVENT_SIGNATURE:
            result = ignored(detail="not a core event")
            self._emit(result, log)
            return result

        spec = self._registry.by_type_id(log.topic1 or "")
        if spec is None:
            result = ignored(detail=f"unregistered event type {log.topic1}")
            self._emit(result, log, level=logging.INFO)
            return result

        ctx = ProjectionContext(
            event_name=spec.name,
            data=log.data,
            block_number=log.block_number,
            tx_hash=log.tx_hash,
            log_index=log.log_index,
            block_timestamp=log.block_timestamp,
            is_sync=log.is_sync,
            cas_retries=self._cas_retries,
        )
        with observe_latency(PROJECTION_LATENCY.labels(event=spec.name)):
            try:
                values = spec.bind(decode_event_payload(spec.schema, log.data))
                result = await spec.handler(self._store, values, ctx)
            except DecodeError as exc:
                result = failed(detail=f"decode error: {exc}")
            except UnknownRuleTypeError as exc:
                result = failed(detail=str(exc))
            except Exception as exc:
                logger.exception("Projection of %s failed (tx=%s log_index=%s)", spec.name, log.tx_hash, log.log_index)
                result = failed(detail=f"{type(exc).__name__}: {exc}")
        result.event = spec.name
        self._emit(result, log)
        return result

    async def process_logs(self, logs: Iterable[ChainLog]) -> ProjectionSummary:
        summary = ProjectionSummary()
        for log in logs:
            summary.record(await self.process_log(log))
        return summary

    def _emit(self, result: ProjectionResult, log: ChainLog, level: int | None = None) -> None:
        event = result.event or "unknown"
        PROJECTION_EVENTS_TOTAL.labels(event=event, outcome=result.outcome.value).inc()
        logger.log(
            level if level is not None else _LEVELS[result.outcome],
            "event=%s outcome=%s key=%s tx=%s log_index=%s block=%s is_sync=%s detail=%s",
            event,
            result.outcome.value,
            result.key,
            log.tx_hash,
            log.log_index,
            log.block_number,
            log.is_sync,
            result.detail,
        )
