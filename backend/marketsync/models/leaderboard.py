"""
backend/marketsync/models/leaderboard.py

Purpose:
    Leaderboard, registration and leaderboard-position documents plus the
    closed set of rule types a LeaderboardRuleSet event may target.

Dependencies:
    - pydantic
    - marketsync.errors
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from marketsync.errors import UnknownRuleTypeError
from marketsync.models.common import BigInt, PositionType


class LeaderboardRule(str, Enum):
    MIN_BET = "minBet"
    MAX_BET = "maxBet"
    MIN_BANKROLL = "minBankroll"
    MAX_BANKROLL = "maxBankroll"
    MIN_BET_PERCENTAGE = "minBetPercentage"
    MAX_BET_PERCENTAGE = "maxBetPercentage"
    MIN_BETS = "minBets"
    ODDS_ENFORCEMENT_BPS = "oddsEnforcementBps"
    ALLOW_LIVE_BETTING = "allowLiveBetting"

    @classmethod
    def parse(cls, raw: str) -> "LeaderboardRule":
        """Accept camelCase, snake_case or UPPER_CASE spellings of a rule type."""
        wanted = str(raw or "").replace("_", "").replace("-", "").strip().lower()
        for rule in cls:
            if rule.value.lower() == wanted:
                return rule
        raise UnknownRuleTypeError(f"unsupported leaderboard rule type: {raw!r}")


# rule -> (document field, value converter)
RULE_SETTERS: dict[LeaderboardRule, tuple[str, Callable[[int], Any]]] = {
    LeaderboardRule.MIN_BET: ("min_bet", str),
    LeaderboardRule.MAX_BET: ("max_bet", str),
    LeaderboardRule.MIN_BANKROLL: ("min_bankroll", str),
    LeaderboardRule.MAX_BANKROLL: ("max_bankroll", str),
    LeaderboardRule.MIN_BET_PERCENTAGE: ("min_bet_percentage", int),
    LeaderboardRule.MAX_BET_PERCENTAGE: ("max_bet_percentage", int),
    LeaderboardRule.MIN_BETS: ("min_bets", int),
    LeaderboardRule.ODDS_ENFORCEMENT_BPS: ("odds_enforcement_bps", int),
    LeaderboardRule.ALLOW_LIVE_BETTING: ("allow_live_betting", bool),
}


def rule_update(rule: LeaderboardRule, value: int) -> dict[str, Any]:
    field, convert = RULE_SETTERS[rule]
    return {field: convert(value)}


class Leaderboard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    leaderboard_id: str
    entry_fee: BigInt = 0
    prize_pool: BigInt = 0
    current_participants: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    safety_period_duration: int = 0
    roi_submission_window: int = 0
    speculation_ids: list[str] = Field(default_factory=list)
    total_positions: int = 0
    current_highest_roi: BigInt | None = None
    current_winner: str | None = None
    min_bet: BigInt | None = None
    max_bet: BigInt | None = None
    min_bankroll: BigInt | None = None
    max_bankroll: BigInt | None = None
    min_bet_percentage: int | None = None
    max_bet_percentage: int | None = None
    min_bets: int | None = None
    odds_enforcement_bps: int | None = None
    allow_live_betting: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")


class Registration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    leaderboard_id: str
    user: str
    declared_bankroll: BigInt = 0
    submitted_roi: BigInt | None = None
    roi_submitted_at: datetime | None = None
    is_current_winner: bool = False
    prize_claimed: bool = False
    prize_amount: BigInt | None = None
    registered_at: datetime | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")


class LeaderboardPosition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    leaderboard_id: str
    speculation_id: str
    user: str
    odds_pair_id: str
    position_type: PositionType
    amount: BigInt = 0
    position_key: str
    created_at: datetime | None = None

    @field_serializer("position_type")
    def _serialize_position_type(self, value: PositionType) -> int:
        return int(value)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")
