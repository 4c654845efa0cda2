"""
backend/marketsync/models/contest.py

Purpose:
    Canonical contest record shared by the reconciler (provider-keyed docs,
    status Ready) and the projection engine (on-chain keyed docs). Declares
    per-field ownership so a refresh can never clobber locally-owned state.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ContestStatus(str, Enum):
    READY = "Ready"
    UNVERIFIED = "Unverified"
    VERIFIED = "Verified"
    SCORED = "Scored"
    FINAL = "Final"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ContestStatus.READY: 0,
    ContestStatus.UNVERIFIED: 1,
    ContestStatus.VERIFIED: 2,
    ContestStatus.SCORED: 3,
    ContestStatus.FINAL: 4,
}


def advance_status(current: ContestStatus | None, proposed: ContestStatus) -> ContestStatus:
    """Lifecycle only moves forward."""
    if current is None or proposed.rank > current.rank:
        return proposed
    return current


class MarketSnapshot(BaseModel):
    """Display strings as delivered by the authoritative feed (American odds)."""

    odd_type: str | None = None
    moneyline_away: str | None = None
    moneyline_home: str | None = None
    over_line: str | None = None
    total_number: str | None = None
    under_line: str | None = None
    point_spread_away: str | None = None
    point_spread_home: str | None = None
    point_spread_away_line: str | None = None
    point_spread_home_line: str | None = None


class OnchainMarket(BaseModel):
    """Raw integers from ContestMarketsUpdated (odds in 1e7 fixed point)."""

    moneyline_away_odds: int
    moneyline_home_odds: int
    spread_line_ticks: int
    spread_away_odds: int
    spread_home_odds: int
    total_line_ticks: int
    over_odds: int
    under_odds: int


class Contest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    contest_id: str | None = None
    jsonodds_id: str | None = None
    rundown_id: str | None = None
    sportspage_id: str | None = None
    sport: int | None = None
    league: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    match_time: datetime | None = None
    market: MarketSnapshot | None = None
    onchain_market: OnchainMarket | None = None
    status: ContestStatus = ContestStatus.READY
    created: bool = False
    linked_contest_id: str | None = None
    creator: str | None = None
    start_time: datetime | None = None
    away_score: int | None = None
    home_score: int | None = None
    scored_at: datetime | None = None
    final_source: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    synced_at: datetime | None = None

    @field_serializer("status")
    def _serialize_status(self, value: ContestStatus) -> str:
        return value.value

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Contest":
        return cls.model_validate(doc)


class FieldPolicy(str, Enum):
    # Feed value wins; a missing (None) feed value leaves the stored one unchanged.
    FEED = "feed"
    # Never written by the feed; the stored value is always kept.
    LOCAL = "local"
    # Forward-only lifecycle.
    STATUS = "status"
    # Feed value accepted until the contest is Final, then frozen.
    FINAL_LOCKED = "final_locked"


# Secondary-feed identifiers; each may be held by at most one provider-keyed contest.
PROVIDER_ID_FIELDS = ("rundown_id", "sportspage_id")


CONTEST_FIELD_POLICY: dict[str, FieldPolicy] = {
    "contest_id": FieldPolicy.LOCAL,
    "jsonodds_id": FieldPolicy.FEED,
    "rundown_id": FieldPolicy.FEED,
    "sportspage_id": FieldPolicy.FEED,
    "sport": FieldPolicy.FEED,
    "league": FieldPolicy.FEED,
    "home_team": FieldPolicy.FEED,
    "away_team": FieldPolicy.FEED,
    "match_time": FieldPolicy.FEED,
    "market": FieldPolicy.FEED,
    "onchain_market": FieldPolicy.LOCAL,
    "status": FieldPolicy.STATUS,
    "created": FieldPolicy.LOCAL,
    "linked_contest_id": FieldPolicy.LOCAL,
    "creator": FieldPolicy.LOCAL,
    "start_time": FieldPolicy.LOCAL,
    "away_score": FieldPolicy.FINAL_LOCKED,
    "home_score": FieldPolicy.FINAL_LOCKED,
    "scored_at": FieldPolicy.FINAL_LOCKED,
    "final_source": FieldPolicy.FINAL_LOCKED,
    "created_at": FieldPolicy.LOCAL,
    "updated_at": FieldPolicy.FEED,
    "synced_at": FieldPolicy.FEED,
}


def merge_contest(existing: Contest | None, incoming: Contest) -> Contest:
    """Merge a freshly reconciled contest into the stored one.

    Fields follow CONTEST_FIELD_POLICY; a field missing from the table is a
    programming error and raises KeyError.
    """
    if existing is None:
        return incoming

    merged: dict[str, Any] = {"key": existing.key}
    locked = existing.status is ContestStatus.FINAL
    for name in Contest.model_fields:
        if name == "key":
            continue
        policy = CONTEST_FIELD_POLICY[name]
        current = getattr(existing, name)
        proposed = getattr(incoming, name)
        if policy is FieldPolicy.LOCAL:
            merged[name] = current
        elif policy is FieldPolicy.STATUS:
            merged[name] = advance_status(current, proposed)
        elif policy is FieldPolicy.FINAL_LOCKED:
            merged[name] = current if locked or proposed is None else proposed
        else:
            merged[name] = current if proposed is None else proposed
    return Contest(**merged)


def split_for_upsert(contest: Contest) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a merged contest into ($set fields, $setOnInsert fields).

    Locally-owned fields are only ever written on insert, so a refresh can
    never overwrite a flag the projection engine set in the meantime.
    """
    doc = contest.to_document()
    doc.pop("_id", None)
    local = {name for name, policy in CONTEST_FIELD_POLICY.items() if policy is FieldPolicy.LOCAL}
    fields = {k: v for k, v in doc.items() if k not in local}
    on_insert = {k: v for k, v in doc.items() if k in local}
    return fields, on_insert
