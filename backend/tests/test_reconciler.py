"""
backend/tests/test_reconciler.py

Purpose:
    Three-feed join on canonical names and kickoff hour.
"""

from __future__ import annotations

from datetime import datetime, timezone

from marketsync.models.contest import ContestStatus
from marketsync.services.reconciler import reconcile_sport
from marketsync.services.sports_calendar import SPORT_BY_JSONODDS_ID
from marketsync.services.team_alias_resolver import TeamAliasResolver

NFL = SPORT_BY_JSONODDS_ID[4]
NOW = datetime(2026, 11, 1, 12, 0, tzinfo=timezone.utc)


def _authoritative(entry_id="jo-1", home="Kansas City Chiefs", away="Buffalo Bills", when="2026-11-02T00:20:00", sport=4):
    return {
        "ID": entry_id,
        "Sport": sport,
        "HomeTeam": home,
        "AwayTeam": away,
        "MatchTime": when,
        "Odds": [{"OddType": "Game", "MoneyLineHome": "-150", "MoneyLineAway": "130", "TotalNumber": "47.5"}],
    }


def _rundown(event_id="rd-1", when="2026-11-02T00:20:00Z", away=("Buffalo", "Bills"), home=("Kansas City", "Chiefs")):
    return {
        "event_id": event_id,
        "event_date": when,
        "teams_normalized": [
            {"name": away[0], "mascot": away[1]},
            {"name": home[0], "mascot": home[1]},
        ],
    }


def _sportspage(game_id=555, when="2026-11-02T00:20:00.000Z", home="Kansas City Chiefs", away="Buffalo Bills"):
    return {
        "gameId": game_id,
        "schedule": {"date": when},
        "teams": {"home": {"team": home}, "away": {"team": away}},
    }


def test_contest_requires_both_secondary_matches():
    result = reconcile_sport(NFL, [_authoritative()], [_rundown()], [_sportspage()], TeamAliasResolver(), now=NOW)

    (contest,) = result.contests
    assert contest.key == "jo-1"
    assert contest.rundown_id == "rd-1"
    assert contest.sportspage_id == "555"
    assert contest.status is ContestStatus.READY
    assert contest.league == "NFL"
    assert contest.match_time == datetime(2026, 11, 2, 0, 20, tzinfo=timezone.utc)
    assert contest.market.moneyline_home == "-150"
    assert result.unmatched == []


def test_kickoff_minutes_within_the_hour_still_match():
    result = reconcile_sport(
        NFL,
        [_authoritative(when="2026-11-02T00:05:00")],
        [_rundown(when="2026-11-02T00:55:00Z")],
        [_sportspage()],
        TeamAliasResolver(),
        now=NOW,
    )
    assert len(result.contests) == 1


def test_unmatched_entry_records_same_hour_candidates():
    result = reconcile_sport(
        NFL,
        [_authoritative()],
        [_rundown(home=("Kansas City", "Royals"))],
        [_sportspage()],
        TeamAliasResolver(),
        now=NOW,
    )

    assert result.contests == []
    (detail,) = result.unmatched
    assert detail["jsonodds_id"] == "jo-1"
    assert detail["rundown_matched"] is False
    assert detail["sportspage_matched"] is True
    assert len(detail["candidates"]) == 2


def test_first_candidate_wins_and_ambiguity_is_counted():
    result = reconcile_sport(
        NFL,
        [_authoritative()],
        [_rundown(event_id="rd-1"), _rundown(event_id="rd-2")],
        [_sportspage()],
        TeamAliasResolver(),
        now=NOW,
    )

    assert [c.rundown_id for c in result.contests] == ["rd-1"]
    assert result.ambiguous == 1


def test_secondary_game_is_joined_to_one_entry_only():
    # The authoritative feed lists the same game twice under different ids.
    result = reconcile_sport(
        NFL,
        [_authoritative("jo-1"), _authoritative("jo-2")],
        [_rundown(event_id="rd-1"), _rundown(event_id="rd-2")],
        [_sportspage()],
        TeamAliasResolver(),
        now=NOW,
    )

    assert [(c.key, c.rundown_id, c.sportspage_id) for c in result.contests] == [("jo-1", "rd-1", "555")]
    assert result.conflicts == 2
    (unmatched,) = result.unmatched
    assert unmatched["jsonodds_id"] == "jo-2"
    assert unmatched["rundown_matched"] is True
    assert unmatched["sportspage_matched"] is False


def test_other_sports_and_aliases():
    nba = SPORT_BY_JSONODDS_ID[1]
    result = reconcile_sport(
        nba,
        [
            _authoritative("jo-2", home="LA Clippers", away="Portland Trailblazers", when="2026-11-03T03:00:00", sport=1),
            _authoritative("jo-3", sport=4),
        ],
        [_rundown("rd-5", "2026-11-03T03:30:00Z", away=("Portland", "Trail Blazers"), home=("Los Angeles", "Clippers"))],
        [_sportspage(9, "2026-11-03T03:00:00Z", home="Los Angeles Clippers", away="Portland Trail Blazers")],
        TeamAliasResolver(),
        now=NOW,
    )

    assert [c.key for c in result.contests] == ["jo-2"]
