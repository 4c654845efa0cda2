"""
backend/marketsync/store/keys.py

Purpose:
    Collection names and deterministic document keys. Composite keys are the
    hyphen-joined identifiers so an upsert by key alone is idempotent.
"""

from __future__ import annotations

CONTESTS = "contests"
CONTESTS_ARCHIVE = "contests_archive"
SPECULATIONS = "speculations"
SPECULATIONS_ARCHIVE = "speculations_archive"
POSITIONS = "positions"
LEADERBOARDS = "leaderboards"
REGISTRATIONS = "leaderboard_registrations"
LEADERBOARD_POSITIONS = "leaderboard_positions"
PROCESSED_EVENTS = "processed_events"
ODDS_HISTORY = "odds_history"
EVALUATION_SLATE = "evaluation_slate"
WORKER_STATE = "worker_state"


def _part(value: object) -> str:
    text = str(value)
    return text.lower() if text.startswith("0x") else text


def composite_key(*parts: object) -> str:
    return "-".join(_part(p) for p in parts)


def contest_key(contest_id: int | str) -> str:
    return str(contest_id)


def speculation_key(speculation_id: int | str) -> str:
    return str(speculation_id)


def position_key(speculation_id: int | str, user: str, odds_pair_id: int | str, position_type: int) -> str:
    return composite_key(speculation_id, user, odds_pair_id, position_type)


def leaderboard_key(leaderboard_id: int | str) -> str:
    return str(leaderboard_id)


def registration_key(leaderboard_id: int | str, user: str) -> str:
    return composite_key(leaderboard_id, user)


def leaderboard_position_key(
    leaderboard_id: int | str,
    speculation_id: int | str,
    user: str,
    odds_pair_id: int | str,
    position_type: int,
) -> str:
    return composite_key(leaderboard_id, speculation_id, user, odds_pair_id, position_type)
