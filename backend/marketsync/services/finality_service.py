"""
backend/marketsync/services/finality_service.py

Purpose:
    Terminal-state detection from independent signals (either secondary feed's
    status string, or the authoritative feed's own final flags). Any one
    signal is enough. Once a contest is Final its scores and scored_at are
    locked; nothing in this module ever moves a contest out of Final.

Dependencies:
    - marketsync.store
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from marketsync.models.contest import ContestStatus
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow

logger = logging.getLogger("marketsync.finality")

TERMINAL_MARKERS = ("final", "complete", "finished")


def is_terminal_status(status: Any) -> bool:
    text = str(status or "").lower()
    return any(marker in text for marker in TERMINAL_MARKERS)


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class FinalityVerdict:
    final: bool
    source: str | None = None
    away_score: int | None = None
    home_score: int | None = None


def _authoritative_final(result: dict[str, Any]) -> bool:
    if result.get("Final") is True or str(result.get("Final")).lower() == "true":
        return True
    return is_terminal_status(result.get("FinalType"))


def detect_finality(
    rundown_event: dict[str, Any] | None = None,
    sportspage_game: dict[str, Any] | None = None,
    authoritative_result: dict[str, Any] | None = None,
) -> FinalityVerdict:
    """OR of the available signals. Scores prefer the authoritative feed, then Rundown, then Sportspage."""
    sources: list[tuple[str, int | None, int | None]] = []

    if authoritative_result and _authoritative_final(authoritative_result):
        sources.append(
            (
                "jsonodds",
                _int_or_none(authoritative_result.get("AwayScore")),
                _int_or_none(authoritative_result.get("HomeScore")),
            )
        )
    if rundown_event:
        score = rundown_event.get("score") or {}
        if is_terminal_status(score.get("event_status")):
            sources.append(("rundown", _int_or_none(score.get("score_away")), _int_or_none(score.get("score_home"))))
    if sportspage_game and is_terminal_status(sportspage_game.get("status")):
        board = (sportspage_game.get("scoreboard") or {}).get("score") or {}
        sources.append(("sportspage", _int_or_none(board.get("away")), _int_or_none(board.get("home"))))

    if not sources:
        return FinalityVerdict(final=False)
    source = sources[0][0]
    away = next((a for _, a, _ in sources if a is not None), None)
    home = next((h for _, _, h in sources if h is not None), None)
    return FinalityVerdict(final=True, source=source, away_score=away, home_score=home)


def result_event_id(result: dict[str, Any]) -> str | None:
    value = result.get("EventID") or result.get("ID")
    return str(value) if value else None


class FinalityService:
    def __init__(self, store: DocumentStore):
        self._store = store

    async def apply(
        self,
        rundown_events: list[dict[str, Any]],
        sportspage_games: list[dict[str, Any]],
        authoritative_results: list[dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> int:
        """Mark every non-final contest the signals declare terminal. Returns contests updated."""
        now = now or utcnow()
        rundown_by_id = {str(e.get("event_id")): e for e in rundown_events if e.get("event_id") is not None}
        sportspage_by_id = {str(g.get("gameId")): g for g in sportspage_games if g.get("gameId") is not None}
        results_by_id = {rid: r for r in authoritative_results if (rid := result_event_id(r))}
        if not (rundown_by_id or sportspage_by_id or results_by_id):
            return 0

        candidates = await self._store.find(
            keys.CONTESTS,
            {
                "status": {"$ne": ContestStatus.FINAL.value},
                "$or": [
                    {"rundown_id": {"$in": list(rundown_by_id)}},
                    {"sportspage_id": {"$in": list(sportspage_by_id)}},
                    {"jsonodds_id": {"$in": list(results_by_id)}},
                ],
            },
        )

        updated = 0
        seen: set[str] = set()
        for doc in candidates:
            jsonodds_id = doc.get("jsonodds_id")
            if jsonodds_id and jsonodds_id in seen:
                continue
            verdict = detect_finality(
                rundown_by_id.get(str(doc.get("rundown_id"))),
                sportspage_by_id.get(str(doc.get("sportspage_id"))),
                results_by_id.get(str(jsonodds_id)),
            )
            if not verdict.final:
                continue

            fields = {
                "status": ContestStatus.FINAL.value,
                "final_source": verdict.source,
                "scored_at": doc.get("scored_at") or now,
                "updated_at": now,
            }
            if verdict.away_score is not None and verdict.home_score is not None:
                fields["away_score"] = verdict.away_score
                fields["home_score"] = verdict.home_score

            # Provider-keyed record and its on-chain copy share the jsonodds id.
            if jsonodds_id:
                seen.add(jsonodds_id)
                query = {"jsonodds_id": jsonodds_id, "status": {"$ne": ContestStatus.FINAL.value}}
            else:
                query = {"_id": doc["_id"], "status": {"$ne": ContestStatus.FINAL.value}}
            count = await self._store.update_many(keys.CONTESTS, query, fields)
            updated += count
            logger.info(
                "Contest %s final via %s (away=%s home=%s, %d documents)",
                jsonodds_id or doc["_id"], verdict.source, verdict.away_score, verdict.home_score, count,
            )
        return updated
