"""
backend/marketsync/services/projection/context.py

Purpose:
    Per-event metadata handed to projection handlers and the result contract
    they return. Outcomes are first-class telemetry: duplicate deliveries,
    missing references and genuine failures must stay distinguishable.

Dependencies:
    - hashlib
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from marketsync.utils import utcnow


class Outcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    MISSING_REFERENCE = "missing_reference"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class ProjectionContext:
    event_name: str
    data: str = ""
    block_number: int | None = None
    tx_hash: str | None = None
    log_index: int | None = None
    block_timestamp: datetime | None = None
    is_sync: bool = False
    cas_retries: int = 5

    @property
    def event_time(self) -> datetime:
        """Block time when the envelope carried one, otherwise processing time."""
        return self.block_timestamp or utcnow()

    @property
    def marker_key(self) -> str:
        """Identity of this delivery for amount-moving events."""
        if self.tx_hash:
            return f"{self.tx_hash.lower()}:{self.log_index if self.log_index is not None else 0}"
        digest = hashlib.sha256(f"{self.event_name}|{self.data}".encode()).hexdigest()
        return f"payload:{digest}"


@dataclass
class ProjectionResult:
    outcome: Outcome
    key: str | None = None
    detail: str | None = None
    event: str | None = None


def applied(key: str, detail: str | None = None) -> ProjectionResult:
    return ProjectionResult(Outcome.APPLIED, key, detail)


def duplicate(key: str, detail: str | None = None) -> ProjectionResult:
    return ProjectionResult(Outcome.DUPLICATE, key, detail)


def missing(key: str, detail: str | None = None) -> ProjectionResult:
    return ProjectionResult(Outcome.MISSING_REFERENCE, key, detail)


def ignored(key: str | None = None, detail: str | None = None) -> ProjectionResult:
    return ProjectionResult(Outcome.IGNORED, key, detail)


def failed(key: str | None = None, detail: str | None = None) -> ProjectionResult:
    return ProjectionResult(Outcome.FAILED, key, detail)


@dataclass
class ProjectionSummary:
    received: int = 0
    applied: int = 0
    duplicate: int = 0
    missing_reference: int = 0
    ignored: int = 0
    failed: int = 0

    def record(self, result: ProjectionResult) -> None:
        self.received += 1
        name = result.outcome.value
        setattr(self, name, getattr(self, name) + 1)

    def as_dict(self) -> dict[str, int]:
        return {
            "received": self.received,
            "applied": self.applied,
            "duplicate": self.duplicate,
            "missing_reference": self.missing_reference,
            "ignored": self.ignored,
            "failed": self.failed,
        }
