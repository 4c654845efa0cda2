"""
backend/marketsync/services/odds_history_service.py

Purpose:
    Append one odds snapshot row per market per sync cycle from the
    authoritative feed, plus the Sportspage opening lines the first time a
    contest is captured.

Dependencies:
    - marketsync.odds_utils
    - marketsync.store
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from marketsync.models.contest import Contest
from marketsync.odds_utils import american_to_decimal, parse_american_odds, parse_float
from marketsync.store import DocumentStore
from marketsync.store import keys
from marketsync.utils import utcnow

logger = logging.getLogger("marketsync.odds_history")

SOURCE_CURRENT = "jsonodds"
SOURCE_OPEN = "sportspage_open"


def _row(
    jsonodds_id: str,
    sportspage_id: str | None,
    market: str,
    line: float | None,
    away: int,
    home: int,
    source: str,
    captured_at: datetime,
) -> dict[str, Any]:
    return {
        "jsonodds_id": jsonodds_id,
        "sportspage_id": sportspage_id,
        "market": market,
        "line": line,
        "away_odds_american": away,
        "away_odds_decimal": american_to_decimal(away),
        "home_odds_american": home,
        "home_odds_decimal": american_to_decimal(home),
        "source": source,
        "captured_at": captured_at,
    }


def current_rows(contest: Contest, captured_at: datetime) -> list[dict[str, Any]]:
    market = contest.market
    if market is None or not contest.jsonodds_id:
        return []
    rows = []
    away = parse_american_odds(market.moneyline_away)
    home = parse_american_odds(market.moneyline_home)
    if away and home:
        rows.append(_row(contest.jsonodds_id, contest.sportspage_id, "moneyline", None, away, home, SOURCE_CURRENT, captured_at))

    line = parse_float(market.point_spread_home)
    away = parse_american_odds(market.point_spread_away_line)
    home = parse_american_odds(market.point_spread_home_line)
    if line is not None and away and home:
        rows.append(_row(contest.jsonodds_id, contest.sportspage_id, "spread", line, away, home, SOURCE_CURRENT, captured_at))

    # Over is recorded on the away side, under on the home side.
    line = parse_float(market.total_number)
    over = parse_american_odds(market.over_line)
    under = parse_american_odds(market.under_line)
    if line is not None and over and under:
        rows.append(_row(contest.jsonodds_id, contest.sportspage_id, "total", line, over, under, SOURCE_CURRENT, captured_at))
    return rows


def opener_rows(jsonodds_id: str, sportspage_id: str, game: dict[str, Any], captured_at: datetime) -> list[dict[str, Any]]:
    odds = (game.get("odds") or [None])[0]
    if not odds:
        return []
    rows = []
    ml = (odds.get("moneyline") or {}).get("open") or {}
    if ml.get("awayOdds") and ml.get("homeOdds"):
        rows.append(_row(jsonodds_id, sportspage_id, "moneyline", None, int(ml["awayOdds"]), int(ml["homeOdds"]), SOURCE_OPEN, captured_at))
    spread = (odds.get("spread") or {}).get("open") or {}
    if spread.get("home") is not None and spread.get("awayOdds") and spread.get("homeOdds"):
        rows.append(_row(jsonodds_id, sportspage_id, "spread", float(spread["home"]), int(spread["awayOdds"]), int(spread["homeOdds"]), SOURCE_OPEN, captured_at))
    total = (odds.get("total") or {}).get("open") or {}
    if total.get("total") is not None and total.get("overOdds") and total.get("underOdds"):
        rows.append(_row(jsonodds_id, sportspage_id, "total", float(total["total"]), int(total["overOdds"]), int(total["underOdds"]), SOURCE_OPEN, captured_at))
    return rows


def row_key(row: dict[str, Any]) -> str:
    return keys.composite_key(row["jsonodds_id"], row["market"], row["source"], row["captured_at"].isoformat())


class OddsHistoryService:
    def __init__(self, store: DocumentStore):
        self._store = store

    async def record(
        self,
        contests: list[Contest],
        sportspage_by_id: dict[str, dict[str, Any]],
        *,
        captured_at: datetime | None = None,
    ) -> int:
        if not contests:
            return 0
        captured_at = captured_at or utcnow()
        batch = self._store.batch()
        openers = 0
        for contest in contests:
            rows = current_rows(contest, captured_at)
            first_capture = await self._store.count(keys.ODDS_HISTORY, {"jsonodds_id": contest.jsonodds_id}) == 0
            if first_capture and contest.sportspage_id and contest.sportspage_id in sportspage_by_id:
                extra = opener_rows(contest.jsonodds_id, contest.sportspage_id, sportspage_by_id[contest.sportspage_id], captured_at)
                openers += len(extra)
                rows.extend(extra)
            for row in rows:
                batch.set(keys.ODDS_HISTORY, row_key(row), row)
        written = await batch.commit()
        logger.info("Saved %d odds history rows (%d openers)", written, openers)
        return written
