"""
backend/marketsync/services/slate_sync_service.py

Purpose:
    Maintain the evaluation slate: one row per reconciled game. The sync only
    owns the schedule and odds columns; `evaluate` and `notes` are
    operator-controlled and written only when a row is first created. Past
    games nobody decided on are switched off.

Dependencies:
    - marketsync.odds_utils
    - marketsync.store
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from marketsync.models.contest import Contest
from marketsync.odds_utils import american_to_decimal, parse_american_odds, parse_float
from marketsync.services.sports_calendar import SPORT_BY_JSONODDS_ID
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow

logger = logging.getLogger("marketsync.slate_sync")


def _decimal(raw: Any) -> float | None:
    american = parse_american_odds(raw)
    return american_to_decimal(american) if american else None


def slate_row(contest: Contest, conference: str | None, now: datetime) -> dict[str, Any] | None:
    sport = SPORT_BY_JSONODDS_ID.get(contest.sport) if contest.sport is not None else None
    if sport is None or contest.match_time is None:
        return None
    market = contest.market

    moneyline_away = _decimal(market.moneyline_away) if market else None
    moneyline_home = _decimal(market.moneyline_home) if market else None

    spread_line = None
    if market:
        away_spread = parse_float(market.point_spread_away)
        home_spread = parse_float(market.point_spread_home)
        spread_line = away_spread if away_spread is not None else (-home_spread if home_spread is not None else None)
    spread_away = _decimal(market.point_spread_away_line) if market else None
    spread_home = _decimal(market.point_spread_home_line) if market else None

    total_line = parse_float(market.total_number) if market else None
    if total_line is not None and total_line <= 0:
        total_line = None
    over = _decimal(market.over_line) if market else None
    under = _decimal(market.under_line) if market else None

    has_odds = (
        (moneyline_away is not None and moneyline_home is not None)
        or (spread_line is not None and spread_away is not None and spread_home is not None)
        or (total_line is not None and over is not None and under is not None)
    )
    return {
        "jsonodds_id": contest.jsonodds_id,
        "league": sport.name,
        "sport_id": contest.sport,
        "home_team": contest.home_team,
        "away_team": contest.away_team,
        "game_time": contest.match_time,
        "source": "contest_sync",
        "synced_at": now,
        "moneyline_home": moneyline_home,
        "moneyline_away": moneyline_away,
        "spread_line": spread_line,
        "spread_home_odds": spread_home,
        "spread_away_odds": spread_away,
        "total_line": total_line,
        "over_odds": over,
        "under_odds": under,
        "has_odds": has_odds,
        "conference": conference,
    }


class SlateSyncService:
    def __init__(self, store: DocumentStore, *, deactivate_after_hours: int = 2):
        self._store = store
        self._deactivate_after = timedelta(hours=deactivate_after_hours)

    async def sync(
        self,
        contests: list[Contest],
        sportspage_by_id: dict[str, dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> dict[str, int]:
        now = now or utcnow()
        inserted = updated = 0
        for contest in contests:
            if not contest.jsonodds_id:
                continue
            game = sportspage_by_id.get(contest.sportspage_id or "") or {}
            conference = ((game.get("teams") or {}).get("home") or {}).get("conference")
            row = slate_row(contest, conference, now)
            if row is None:
                logger.warning("Skipping slate row for %s: unknown sport or kickoff", contest.jsonodds_id)
                continue
            created = await self._store.upsert(
                keys.EVALUATION_SLATE,
                contest.jsonodds_id,
                row,
                on_insert={"evaluate": None, "notes": None, "created_at": now},
            )
            if created:
                inserted += 1
            else:
                updated += 1

        deactivated = await self._store.update_many(
            keys.EVALUATION_SLATE,
            {"game_time": {"$lt": now - self._deactivate_after}, "evaluate": None},
            {"evaluate": False},
        )
        logger.info("Slate sync: inserted %d, updated %d, deactivated %d", inserted, updated, deactivated)
        return {"inserted": inserted, "updated": updated, "deactivated": deactivated}
