"""
backend/marketsync/services/reconciler.py

Purpose:
    Join the authoritative odds feed with the two secondary schedule feeds.
    Match key = (canonical home, canonical away, kickoff floored to the UTC
    hour). A contest is produced only when both secondary feeds matched; the
    first candidate in feed order wins and additional candidates are logged.
    A secondary game already joined to one entry is never reused for another.
    Unmatched authoritative entries with same-hour candidates are logged with
    the full comparison so operators can extend the alias table.

Dependencies:
    - marketsync.services.team_alias_resolver
    - marketsync.models.contest
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from marketsync.models.contest import Contest, ContestStatus, MarketSnapshot
from marketsync.services.sports_calendar import SportConfig
from marketsync.services.team_alias_resolver import TeamAliasResolver
from marketsync.utils import floor_to_hour, parse_utc

logger = logging.getLogger("marketsync.reconciler")

MatchKey = tuple[str, str, datetime]


@dataclass
class Candidate:
    feed: str
    feed_id: str
    home: str
    away: str
    hour: datetime
    raw: dict[str, Any]

    @property
    def key(self) -> MatchKey:
        return (self.home, self.away, self.hour)

    def describe(self) -> str:
        return f"{self.feed}:{self.feed_id} home={self.home!r} away={self.away!r} hour={self.hour.isoformat()}"


@dataclass
class ReconcileResult:
    contests: list[Contest] = field(default_factory=list)
    unmatched: list[dict[str, Any]] = field(default_factory=list)
    ambiguous: int = 0
    conflicts: int = 0


def _safe_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return parse_utc(value)
    except (TypeError, ValueError):
        return None


def rundown_candidates(events: list[dict[str, Any]], sport: int, resolver: TeamAliasResolver) -> list[Candidate]:
    out = []
    for event in events:
        teams = event.get("teams_normalized") or []
        kickoff = _safe_time(event.get("event_date"))
        if len(teams) < 2 or kickoff is None:
            continue
        # teams_normalized is ordered [away, home].
        away, home = teams[0], teams[1]
        out.append(
            Candidate(
                feed="rundown",
                feed_id=str(event.get("event_id")),
                home=resolver.match_key(resolver.name_for_sport(sport, home.get("name", ""), home.get("mascot")), sport),
                away=resolver.match_key(resolver.name_for_sport(sport, away.get("name", ""), away.get("mascot")), sport),
                hour=floor_to_hour(kickoff),
                raw=event,
            )
        )
    return out


def sportspage_candidates(games: list[dict[str, Any]], sport: int, resolver: TeamAliasResolver) -> list[Candidate]:
    out = []
    for game in games:
        teams = game.get("teams") or {}
        kickoff = _safe_time((game.get("schedule") or {}).get("date"))
        home = (teams.get("home") or {}).get("team")
        away = (teams.get("away") or {}).get("team")
        if not home or not away or kickoff is None:
            continue
        out.append(
            Candidate(
                feed="sportspage",
                feed_id=str(game.get("gameId")),
                home=resolver.match_key(home, sport),
                away=resolver.match_key(away, sport),
                hour=floor_to_hour(kickoff),
                raw=game,
            )
        )
    return out


def _index(candidates: list[Candidate]) -> tuple[dict[MatchKey, list[Candidate]], dict[datetime, list[Candidate]]]:
    by_key: dict[MatchKey, list[Candidate]] = defaultdict(list)
    by_hour: dict[datetime, list[Candidate]] = defaultdict(list)
    for candidate in candidates:
        by_key[candidate.key].append(candidate)
        by_hour[candidate.hour].append(candidate)
    return by_key, by_hour


def authoritative_kickoff(entry: dict[str, Any]) -> datetime | None:
    # MatchTime is UTC without an offset.
    return _safe_time(entry.get("MatchTime"))


def market_snapshot(entry: dict[str, Any]) -> MarketSnapshot | None:
    odds = entry.get("Odds") or []
    if not odds:
        return None
    first = odds[0]
    return MarketSnapshot(
        odd_type=first.get("OddType"),
        moneyline_away=first.get("MoneyLineAway"),
        moneyline_home=first.get("MoneyLineHome"),
        over_line=first.get("OverLine"),
        total_number=first.get("TotalNumber"),
        under_line=first.get("UnderLine"),
        point_spread_away=first.get("PointSpreadAway"),
        point_spread_home=first.get("PointSpreadHome"),
        point_spread_away_line=first.get("PointSpreadAwayLine"),
        point_spread_home_line=first.get("PointSpreadHomeLine"),
    )


def _first(
    matches: list[Candidate],
    entry_id: str,
    result: ReconcileResult,
    claimed: dict[tuple[str, str], str],
) -> Candidate | None:
    if not matches:
        return None
    free = []
    for match in matches:
        holder = claimed.get((match.feed, match.feed_id))
        if holder is None:
            free.append(match)
            continue
        result.conflicts += 1
        logger.warning(
            "%s game %s already joined to jsonodds_id=%s; not reusing it for jsonodds_id=%s",
            match.feed, match.feed_id, holder, entry_id,
        )
    if len(free) > 1:
        result.ambiguous += 1
        logger.warning(
            "Ambiguous %s match for jsonodds_id=%s; using first of %d: %s",
            free[0].feed, entry_id, len(free), "; ".join(m.describe() for m in free),
        )
    return free[0] if free else None


def reconcile_sport(
    sport: SportConfig,
    authoritative: list[dict[str, Any]],
    rundown_events: list[dict[str, Any]],
    sportspage_games: list[dict[str, Any]],
    resolver: TeamAliasResolver,
    *,
    now: datetime,
) -> ReconcileResult:
    result = ReconcileResult()
    # (feed, feed_id) -> jsonodds_id; a secondary game joins at most one entry.
    claimed: dict[tuple[str, str], str] = {}
    sport_id = sport.jsonodds_id
    rundown_by_key, rundown_by_hour = _index(rundown_candidates(rundown_events, sport_id, resolver))
    sportspage_by_key, sportspage_by_hour = _index(sportspage_candidates(sportspage_games, sport_id, resolver))

    for entry in authoritative:
        if entry.get("Sport") != sport_id:
            continue
        entry_id = str(entry.get("ID") or "").strip()
        kickoff = authoritative_kickoff(entry)
        if not entry_id or kickoff is None:
            logger.warning("Skipping authoritative entry without id or kickoff: %r", entry.get("ID"))
            continue

        home = resolver.match_key(entry.get("HomeTeam", ""), sport_id)
        away = resolver.match_key(entry.get("AwayTeam", ""), sport_id)
        hour = floor_to_hour(kickoff)
        key = (home, away, hour)

        rundown = _first(rundown_by_key.get(key, []), entry_id, result, claimed)
        sportspage = _first(sportspage_by_key.get(key, []), entry_id, result, claimed)

        if rundown is None or sportspage is None:
            same_hour = rundown_by_hour.get(hour, []) + sportspage_by_hour.get(hour, [])
            if same_hour:
                detail = {
                    "jsonodds_id": entry_id,
                    "home": home,
                    "away": away,
                    "hour": hour.isoformat(),
                    "rundown_matched": rundown is not None,
                    "sportspage_matched": sportspage is not None,
                    "candidates": [c.describe() for c in same_hour],
                }
                result.unmatched.append(detail)
                logger.warning(
                    "Unmatched jsonodds_id=%s sport=%s home=%r away=%r hour=%s rundown=%s sportspage=%s candidates=[%s]",
                    entry_id, sport.name, home, away, hour.isoformat(),
                    rundown is not None, sportspage is not None, "; ".join(detail["candidates"]),
                )
            continue

        claimed[(rundown.feed, rundown.feed_id)] = entry_id
        claimed[(sportspage.feed, sportspage.feed_id)] = entry_id
        result.contests.append(
            Contest(
                key=entry_id,
                jsonodds_id=entry_id,
                rundown_id=rundown.feed_id,
                sportspage_id=sportspage.feed_id,
                sport=sport_id,
                league=sport.name,
                home_team=entry.get("HomeTeam"),
                away_team=entry.get("AwayTeam"),
                match_time=kickoff,
                market=market_snapshot(entry),
                status=ContestStatus.READY,
                created_at=now,
                updated_at=now,
                synced_at=now,
            )
        )
    return result
