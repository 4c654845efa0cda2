from marketsync.models.common import PRECISION, BigInt, PositionType
from marketsync.models.contest import Contest, ContestStatus, MarketSnapshot, OnchainMarket, merge_contest
from marketsync.models.leaderboard import Leaderboard, LeaderboardPosition, LeaderboardRule, Registration
from marketsync.models.position import Position, match_order
from marketsync.models.speculation import Speculation, SpeculationStatus, WinSide

__all__ = [
    "PRECISION",
    "BigInt",
    "Contest",
    "ContestStatus",
    "Leaderboard",
    "LeaderboardPosition",
    "LeaderboardRule",
    "MarketSnapshot",
    "OnchainMarket",
    "Position",
    "PositionType",
    "Registration",
    "Speculation",
    "SpeculationStatus",
    "WinSide",
    "match_order",
    "merge_contest",
]
