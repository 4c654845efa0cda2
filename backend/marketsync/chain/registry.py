"""
backend/marketsync/chain/registry.py

Purpose:
    Static table of the on-chain events this service projects. Each entry
    pairs the event name, its bytes32 type id (second log topic), the ordered
    ABI field schema and the async handler that applies it.

Dependencies:
    - marketsync.chain.codec
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from marketsync.chain.codec import event_type_id

Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class EventSpec:
    name: str
    fields: tuple[tuple[str, str], ...]
    handler: Handler
    type_id: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type_id", event_type_id(self.name))

    @property
    def schema(self) -> list[str]:
        return [abi_type for _, abi_type in self.fields]

    @property
    def field_names(self) -> list[str]:
        return [name for name, _ in self.fields]

    def bind(self, values: list[Any]) -> dict[str, Any]:
        return dict(zip(self.field_names, values))


class EventRegistry:
    def __init__(self) -> None:
        self._by_type_id: dict[str, EventSpec] = {}
        self._by_name: dict[str, EventSpec] = {}

    def register(self, spec: EventSpec) -> None:
        if spec.name in self._by_name:
            raise ValueError(f"event {spec.name} already registered")
        self._by_type_id[spec.type_id] = spec
        self._by_name[spec.name] = spec

    def by_type_id(self, type_id: str) -> EventSpec | None:
        return self._by_type_id.get(str(type_id).lower())

    def by_name(self, name: str) -> EventSpec | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return list(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)


_UINT = "uint256"
_ADDR = "address"

EVENT_FIELDS: dict[str, tuple[tuple[str, str], ...]] = {
    "ContestCreated": (
        ("contest_id", _UINT),
        ("jsonodds_id", "string"),
        ("rundown_id", "string"),
        ("sportspage_id", "string"),
        ("creator", _ADDR),
    ),
    "ContestVerified": (("contest_id", _UINT), ("start_time", "uint32")),
    "ContestMarketsUpdated": (
        ("contest_id", _UINT),
        ("moneyline_away_odds", "uint64"),
        ("moneyline_home_odds", "uint64"),
        ("spread_line_ticks", "int32"),
        ("spread_away_odds", "uint64"),
        ("spread_home_odds", "uint64"),
        ("total_line_ticks", "int32"),
        ("over_odds", "uint64"),
        ("under_odds", "uint64"),
    ),
    "ContestScoresSet": (("contest_id", _UINT), ("away_score", "uint32"), ("home_score", "uint32")),
    "SpeculationCreated": (
        ("speculation_id", _UINT),
        ("contest_id", _UINT),
        ("lock_time", "uint32"),
        ("scorer", _ADDR),
        ("the_number", "int32"),
        ("creator", _ADDR),
    ),
    "SpeculationSettled": (("speculation_id", _UINT), ("win_side", "uint8")),
    "PositionCreated": (
        ("speculation_id", _UINT),
        ("user", _ADDR),
        ("odds_pair_id", "uint128"),
        ("unmatched_expiry", "uint32"),
        ("position_type", "uint8"),
        ("amount", _UINT),
        ("upper_odds", "uint64"),
        ("lower_odds", "uint64"),
    ),
    "PositionMatched": (
        ("speculation_id", _UINT),
        ("maker", _ADDR),
        ("odds_pair_id", "uint128"),
        ("maker_position_type", "uint8"),
        ("taker", _ADDR),
        ("amount", _UINT),
    ),
    "PositionAdjusted": (
        ("speculation_id", _UINT),
        ("user", _ADDR),
        ("odds_pair_id", "uint128"),
        ("position_type", "uint8"),
        ("amount_delta", "int256"),
    ),
    "PositionClaimed": (
        ("speculation_id", _UINT),
        ("user", _ADDR),
        ("odds_pair_id", "uint128"),
        ("position_type", "uint8"),
        ("payout", _UINT),
    ),
    "LeaderboardCreated": (
        ("leaderboard_id", _UINT),
        ("entry_fee", _UINT),
        ("start_time", "uint32"),
        ("end_time", "uint32"),
        ("safety_period_duration", "uint32"),
        ("roi_submission_window", "uint32"),
    ),
    "LeaderboardSpeculationAdded": (("leaderboard_id", _UINT), ("speculation_id", _UINT)),
    "LeaderboardRuleSet": (("leaderboard_id", _UINT), ("rule_type", "string"), ("value", _UINT)),
    "UserRegistered": (("leaderboard_id", _UINT), ("user", _ADDR), ("declared_bankroll", _UINT)),
    "LeaderboardPositionRegistered": (
        ("leaderboard_id", _UINT),
        ("speculation_id", _UINT),
        ("user", _ADDR),
        ("odds_pair_id", "uint128"),
        ("position_type", "uint8"),
        ("amount", _UINT),
    ),
    "LeaderboardROISubmitted": (("leaderboard_id", _UINT), ("user", _ADDR), ("roi", "int256")),
    "NewHighestROI": (("leaderboard_id", _UINT), ("user", _ADDR), ("roi", "int256")),
    "LeaderboardPrizeClaimed": (("leaderboard_id", _UINT), ("user", _ADDR), ("amount", _UINT)),
}


def build_default_registry() -> EventRegistry:
    # Handler modules import the projection package, which imports this module.
    from marketsync.services.projection import (
        contest_handlers,
        leaderboard_handlers,
        position_handlers,
        speculation_handlers,
    )

    handlers: dict[str, Handler] = {
        **contest_handlers.HANDLERS,
        **speculation_handlers.HANDLERS,
        **position_handlers.HANDLERS,
        **leaderboard_handlers.HANDLERS,
    }
    registry = EventRegistry()
    for name, fields in EVENT_FIELDS.items():
        registry.register(EventSpec(name=name, fields=fields, handler=handlers[name]))
    return registry
