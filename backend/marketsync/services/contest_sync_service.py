"""
backend/marketsync/services/contest_sync_service.py

Purpose:
    One reconciliation cycle: fetch the authoritative feed once, then per
    active sport (sequentially) fetch both secondary feeds, reconcile, merge
    with stored contests and batch-write; finally run the finality pass and
    the odds-history and evaluation-slate side outputs.

    Runs are serialized by an in-process lock and a store lease so a slow
    cycle and the next scheduler tick (or a second replica) never overlap.
    A failing secondary feed only degrades that sport for this cycle.

Dependencies:
    - marketsync.providers
    - marketsync.services.reconciler
    - marketsync.services.finality_service
    - marketsync.store
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from marketsync.config import Settings
from marketsync.errors import FeedError, LeaseHeldError
from marketsync.models.contest import PROVIDER_ID_FIELDS, Contest, merge_contest, split_for_upsert
from marketsync.monitoring.metrics import CONTEST_SYNC_CONTESTS_TOTAL, CONTEST_SYNC_CYCLE_LATENCY, observe_latency
from marketsync.providers.jsonodds import JsonOddsProvider
from marketsync.providers.rundown import RundownProvider
from marketsync.providers.sportspage import SportspageProvider
from marketsync.services import sports_calendar
from marketsync.services.finality_service import FinalityService
from marketsync.services.odds_history_service import OddsHistoryService
from marketsync.services.reconciler import reconcile_sport
from marketsync.services.slate_sync_service import SlateSyncService
from marketsync.services.team_alias_resolver import TeamAliasResolver
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow
from marketsync.workers._state import set_synced

logger = logging.getLogger("marketsync.contest_sync")

LEASE_NAME = "contest_sync"
WORKER_ID = "contest_sync"


@dataclass
class CycleSummary:
    status: str = "ok"
    sports: list[str] = field(default_factory=list)
    authoritative: int = 0
    matched: int = 0
    unmatched: int = 0
    ambiguous: int = 0
    conflicts: int = 0
    written: int = 0
    finalized: int = 0
    odds_rows: int = 0
    feed_errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class ContestSyncService:
    def __init__(
        self,
        store: DocumentStore,
        jsonodds: JsonOddsProvider,
        rundown: RundownProvider,
        sportspage: SportspageProvider,
        resolver: TeamAliasResolver,
        settings: Settings,
        *,
        finality: FinalityService | None = None,
        odds_history: OddsHistoryService | None = None,
        slate: SlateSyncService | None = None,
        sports: tuple[sports_calendar.SportConfig, ...] = sports_calendar.SPORTS,
    ):
        self._store = store
        self._jsonodds = jsonodds
        self._rundown = rundown
        self._sportspage = sportspage
        self._resolver = resolver
        self._settings = settings
        self._finality = finality or FinalityService(store)
        self._odds_history = odds_history or OddsHistoryService(store)
        self._slate = slate or SlateSyncService(store, deactivate_after_hours=settings.SLATE_DEACTIVATE_AFTER_HOURS)
        self._sports = sports
        self._lock = asyncio.Lock()
        self._owner = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

    async def run_cycle(self, now: datetime | None = None) -> CycleSummary:
        if self._lock.locked():
            logger.info("Contest sync already running in this process; skipping")
            return CycleSummary(status="skipped")
        async with self._lock:
            try:
                await self._acquire_lease()
            except LeaseHeldError as exc:
                logger.info("%s; skipping", exc)
                return CycleSummary(status="skipped")
            try:
                with observe_latency(CONTEST_SYNC_CYCLE_LATENCY):
                    summary = await self._run(now or utcnow())
            finally:
                await self._store.release_lease(LEASE_NAME, self._owner)
            if summary.status == "ok":
                await set_synced(self._store, WORKER_ID, summary.as_dict())
            return summary

    async def _acquire_lease(self) -> None:
        acquired = await self._store.acquire_lease(LEASE_NAME, self._owner, self._settings.CONTEST_SYNC_LOCK_TTL_SECONDS)
        if not acquired:
            raise LeaseHeldError(f"lease {LEASE_NAME} held by another worker")

    async def _run(self, now: datetime) -> CycleSummary:
        summary = CycleSummary()
        try:
            authoritative = await self._jsonodds.get_odds()
        except FeedError as exc:
            logger.error("Authoritative feed unavailable, aborting cycle: %s", exc)
            summary.status = "failed"
            summary.feed_errors.append(str(exc))
            return summary
        summary.authoritative = len(authoritative)

        try:
            results = await self._jsonodds.get_results()
        except FeedError as exc:
            logger.warning("Authoritative results unavailable: %s", exc)
            summary.feed_errors.append(str(exc))
            results = []

        tz = self._settings.SCHEDULE_TIMEZONE
        all_rundown: list[dict[str, Any]] = []
        all_sportspage: list[dict[str, Any]] = []
        reconciled: list[Contest] = []

        for sport, phase in sports_calendar.active_sports(now, tz, self._sports):
            summary.sports.append(sport.name)
            dates = sports_calendar.dates_for_window(phase.days_ahead, self._settings.CONTEST_SYNC_LOOKBACK_DAYS, tz, now)
            logger.info("Processing %s (%s, %d dates)", sport.name, phase.name, len(dates))

            rundown_events = await self._fetch(summary, self._rundown.get_events(sport.rundown_id, dates))
            sportspage_games = await self._fetch(summary, self._sportspage.get_games(sport.sportspage_league, dates))
            all_rundown.extend(rundown_events)
            all_sportspage.extend(sportspage_games)
            if not rundown_events or not sportspage_games:
                logger.info("Skipping %s reconciliation: rundown=%d sportspage=%d", sport.name, len(rundown_events), len(sportspage_games))
                continue

            result = reconcile_sport(sport, authoritative, rundown_events, sportspage_games, self._resolver, now=now)
            summary.matched += len(result.contests)
            summary.unmatched += len(result.unmatched)
            summary.ambiguous += result.ambiguous
            summary.conflicts += result.conflicts
            CONTEST_SYNC_CONTESTS_TOTAL.labels(sport=sport.name, result="matched").inc(len(result.contests))
            CONTEST_SYNC_CONTESTS_TOTAL.labels(sport=sport.name, result="unmatched").inc(len(result.unmatched))
            CONTEST_SYNC_CONTESTS_TOTAL.labels(sport=sport.name, result="ambiguous").inc(result.ambiguous)
            CONTEST_SYNC_CONTESTS_TOTAL.labels(sport=sport.name, result="conflict").inc(result.conflicts)
            reconciled.extend(result.contests)

        reconciled = await self._drop_taken_ids(reconciled, summary)
        summary.written = await self._write(reconciled)
        summary.finalized = await self._finality.apply(all_rundown, all_sportspage, results, now=now)

        sportspage_by_id = {str(g.get("gameId")): g for g in all_sportspage if g.get("gameId") is not None}
        try:
            summary.odds_rows = await self._odds_history.record(reconciled, sportspage_by_id, captured_at=now)
        except Exception:
            logger.exception("Odds history capture failed")
        try:
            await self._slate.sync(reconciled, sportspage_by_id, now=now)
        except Exception:
            logger.exception("Evaluation slate sync failed")

        logger.info(
            "Contest sync done: sports=%s authoritative=%d matched=%d unmatched=%d written=%d finalized=%d",
            ",".join(summary.sports), summary.authoritative, summary.matched, summary.unmatched,
            summary.written, summary.finalized,
        )
        return summary

    async def _fetch(self, summary: CycleSummary, call) -> list[dict[str, Any]]:
        try:
            return await call
        except FeedError as exc:
            logger.warning("Feed call failed, continuing with partial data: %s", exc)
            summary.feed_errors.append(str(exc))
            return []

    async def _write(self, contests: list[Contest]) -> int:
        if not contests:
            return 0
        existing_docs = await self._store.find(keys.CONTESTS, {"_id": {"$in": [c.key for c in contests]}})
        existing = {doc["_id"]: Contest.from_document(doc) for doc in existing_docs}

        batch = self._store.batch()
        for incoming in contests:
            merged = merge_contest(existing.get(incoming.key), incoming)
            fields, on_insert = split_for_upsert(merged)
            batch.upsert(keys.CONTESTS, merged.key, fields, on_insert)
        return await batch.commit()

    async def _drop_taken_ids(self, contests: list[Contest], summary: CycleSummary) -> list[Contest]:
        """Keep each secondary-feed id on at most one provider-keyed contest.

        An id stays with the stored contest that holds it unless that contest
        moves to a different id in this same batch. Contests releasing an id
        are written first so the new holder never collides with the old one.
        """
        clauses = []
        for name in PROVIDER_ID_FIELDS:
            ids = sorted({getattr(c, name) for c in contests if getattr(c, name)})
            if ids:
                clauses.append({name: {"$in": ids}})
        if not clauses:
            return contests

        incoming = {c.key: c for c in contests}
        holders = await self._store.find(keys.CONTESTS, {"contest_id": None, "$or": clauses})
        held: dict[tuple[str, str], str] = {}
        releasing: set[str] = set()
        for doc in holders:
            update = incoming.get(doc["_id"])
            for name in PROVIDER_ID_FIELDS:
                value = doc.get(name)
                if value is None:
                    continue
                if update is not None and getattr(update, name) not in (None, value):
                    releasing.add(doc["_id"])
                    continue
                held[(name, value)] = doc["_id"]

        kept = []
        for contest in contests:
            taken = [
                f"{name}={getattr(contest, name)} (held by {held[(name, getattr(contest, name))]})"
                for name in PROVIDER_ID_FIELDS
                if held.get((name, getattr(contest, name)), contest.key) != contest.key
            ]
            if taken:
                summary.conflicts += 1
                CONTEST_SYNC_CONTESTS_TOTAL.labels(sport=contest.league or "unknown", result="conflict").inc()
                logger.warning("Not writing contest %s: %s", contest.key, ", ".join(taken))
                continue
            kept.append(contest)
        kept.sort(key=lambda c: c.key not in releasing)
        return kept
