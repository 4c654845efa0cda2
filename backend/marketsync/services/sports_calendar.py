"""
backend/marketsync/services/sports_calendar.py

Purpose:
    Per-sport feed identifiers and season phases. Phases are recurring
    month/day windows (a window may wrap the new year) with a fetch horizon
    in days; outside every phase a sport is skipped by the sync cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class SeasonPhase:
    name: str
    start: tuple[int, int]
    end: tuple[int, int]
    days_ahead: int

    def contains(self, day: date) -> bool:
        current = (day.month, day.day)
        if self.start <= self.end:
            return self.start <= current <= self.end
        return current >= self.start or current <= self.end


@dataclass(frozen=True)
class SportConfig:
    name: str
    jsonodds_id: int
    rundown_id: int
    sportspage_league: str
    phases: tuple[SeasonPhase, ...]


def _phases(pre, regular, post) -> tuple[SeasonPhase, ...]:
    out = []
    for name, window in (("preseason", pre), ("regular", regular), ("postseason", post)):
        if window:
            start, end, days = window
            out.append(SeasonPhase(name, start, end, days))
    return tuple(out)


SPORTS: tuple[SportConfig, ...] = (
    SportConfig("MLB", 0, 3, "MLB", _phases(((2, 20), (3, 26), 14), ((3, 27), (9, 30), 5), ((10, 1), (11, 5), 14))),
    SportConfig("NBA", 1, 4, "NBA", _phases(((10, 1), (10, 20), 10), ((10, 21), (4, 15), 3), ((4, 16), (6, 25), 7))),
    SportConfig("NCAAB", 2, 5, "NCAAB", _phases(None, ((11, 1), (3, 15), 2), ((3, 16), (4, 10), 7))),
    SportConfig("NCAAF", 3, 1, "NCAAF", _phases(None, ((8, 24), (12, 14), 8), ((12, 15), (1, 25), 3))),
    SportConfig("NFL", 4, 2, "NFL", _phases(((8, 1), (9, 3), 21), ((9, 4), (1, 8), 8), ((1, 9), (2, 15), 3))),
    SportConfig("NHL", 5, 6, "NHL", _phases(((9, 20), (10, 6), 10), ((10, 7), (4, 18), 3), ((4, 19), (6, 30), 7))),
    SportConfig("WNBA", 8, 8, "WNBA", _phases(((5, 1), (5, 14), 10), ((5, 15), (9, 15), 3), ((9, 16), (10, 25), 7))),
)


SPORT_BY_JSONODDS_ID: dict[int, SportConfig] = {s.jsonodds_id: s for s in SPORTS}


def season_phase(sport: SportConfig, today: date) -> SeasonPhase | None:
    """First phase containing today (preseason, regular, postseason order)."""
    for phase in sport.phases:
        if phase.contains(today):
            return phase
    return None


def local_today(now: datetime, tz: str) -> date:
    return now.astimezone(ZoneInfo(tz)).date()


def dates_for_window(days_ahead: int, lookback_days: int, tz: str, now: datetime) -> list[str]:
    """YYYY-MM-DD strings from lookback_days ago through today + days_ahead - 1, in tz."""
    today = local_today(now, tz)
    return [
        (today + timedelta(days=offset)).isoformat()
        for offset in range(-max(0, lookback_days), max(0, days_ahead))
    ]


def active_sports(now: datetime, tz: str, sports: tuple[SportConfig, ...] = SPORTS) -> list[tuple[SportConfig, SeasonPhase]]:
    today = local_today(now, tz)
    active = []
    for sport in sports:
        phase = season_phase(sport, today)
        if phase is not None:
            active.append((sport, phase))
    return active
