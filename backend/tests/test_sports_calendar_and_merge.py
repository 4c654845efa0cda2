"""
backend/tests/test_sports_calendar_and_merge.py

Purpose:
    Season windows, fetch date ranges and the per-field contest merge policy.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from marketsync.models.contest import (
    CONTEST_FIELD_POLICY,
    Contest,
    ContestStatus,
    advance_status,
    merge_contest,
    split_for_upsert,
)
from marketsync.services import sports_calendar
from marketsync.services.sports_calendar import SPORT_BY_JSONODDS_ID, SeasonPhase


def test_phase_window_wrapping_new_year():
    phase = SeasonPhase("regular", (9, 4), (1, 8), 8)
    assert phase.contains(date(2026, 12, 31))
    assert phase.contains(date(2027, 1, 8))
    assert not phase.contains(date(2027, 1, 9))


def test_season_phase_lookup():
    nfl = SPORT_BY_JSONODDS_ID[4]
    assert sports_calendar.season_phase(nfl, date(2026, 8, 15)).name == "preseason"
    assert sports_calendar.season_phase(nfl, date(2027, 1, 20)).name == "postseason"
    assert sports_calendar.season_phase(nfl, date(2026, 6, 1)) is None


def test_dates_follow_local_calendar():
    # 02:00 UTC is still the previous evening in New York.
    now = datetime(2026, 11, 2, 2, 0, tzinfo=timezone.utc)
    assert sports_calendar.dates_for_window(2, 1, "America/New_York", now) == [
        "2026-10-31",
        "2026-11-01",
        "2026-11-02",
    ]


def test_active_sports_in_july():
    active = sports_calendar.active_sports(datetime(2026, 7, 1, 16, tzinfo=timezone.utc), "America/New_York")
    assert [sport.name for sport, _ in active] == ["MLB", "WNBA"]


def test_status_never_moves_backwards():
    assert advance_status(ContestStatus.FINAL, ContestStatus.READY) is ContestStatus.FINAL
    assert advance_status(None, ContestStatus.READY) is ContestStatus.READY
    assert advance_status(ContestStatus.VERIFIED, ContestStatus.SCORED) is ContestStatus.SCORED


def test_every_contest_field_has_a_policy():
    assert set(Contest.model_fields) - {"key"} == set(CONTEST_FIELD_POLICY)


def _incoming(**overrides):
    now = datetime(2026, 11, 1, tzinfo=timezone.utc)
    fields = dict(key="jo-1", jsonodds_id="jo-1", home_team="Home", away_team="Away", rundown_id="rd-2", updated_at=now)
    fields.update(overrides)
    return Contest(**fields)


def test_merge_keeps_local_fields_and_ignores_missing_feed_values():
    existing = Contest(
        key="jo-1",
        jsonodds_id="jo-1",
        rundown_id="rd-1",
        sportspage_id="sp-1",
        created=True,
        linked_contest_id="42",
        status=ContestStatus.VERIFIED,
    )

    merged = merge_contest(existing, _incoming())

    assert merged.created is True
    assert merged.linked_contest_id == "42"
    assert merged.status is ContestStatus.VERIFIED
    assert merged.rundown_id == "rd-2"
    assert merged.sportspage_id == "sp-1"


def test_merge_freezes_scores_once_final():
    existing = Contest(key="jo-1", status=ContestStatus.FINAL, away_score=20, home_score=27)
    merged = merge_contest(existing, _incoming(away_score=0, home_score=0))
    assert (merged.away_score, merged.home_score) == (20, 27)

    scored = Contest(key="jo-1", status=ContestStatus.SCORED, away_score=20, home_score=27)
    assert merge_contest(scored, _incoming(away_score=21, home_score=27)).away_score == 21


def test_split_for_upsert_routes_local_fields_to_insert_only():
    fields, on_insert = split_for_upsert(_incoming(created=False))
    assert "created" in on_insert and "created" not in fields
    assert "home_team" in fields
    assert "_id" not in fields and "_id" not in on_insert


@pytest.mark.parametrize("sport_id", sorted(SPORT_BY_JSONODDS_ID))
def test_sport_table_has_phases(sport_id):
    assert SPORT_BY_JSONODDS_ID[sport_id].phases
