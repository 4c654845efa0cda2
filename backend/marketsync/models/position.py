"""
backend/marketsync/models/position.py

Purpose:
    Position documents and the order-matching arithmetic applied when a taker
    fills part of a maker's unmatched stake.

Dependencies:
    - pydantic
    - marketsync.models.common
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from marketsync.models.common import PRECISION, BigInt, PositionType


class Position(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    speculation_id: str
    user: str
    odds_pair_id: str
    position_type: PositionType
    matched_amount: BigInt = 0
    unmatched_amount: BigInt = 0
    unmatched_expiry: datetime | None = None
    stored_upper_odds: int | None = None
    stored_lower_odds: int | None = None
    # Insertion-ordered address -> amount map.
    counterparties: dict[str, BigInt] = Field(default_factory=dict)
    claimed: bool = False
    payout: BigInt | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_serializer("position_type")
    def _serialize_position_type(self, value: PositionType) -> int:
        return int(value)

    def credit_counterparty(self, address: str, amount: int) -> None:
        """Append a new counterparty or increment an existing one."""
        address = address.lower()
        self.counterparties[address] = self.counterparties.get(address, 0) + int(amount)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Position":
        return cls.model_validate(doc)


def opposite_odds(maker: Position) -> int:
    """Counter-odds the taker side receives: the maker's stored odds for the other side."""
    odds = maker.stored_lower_odds if maker.position_type is PositionType.UPPER else maker.stored_upper_odds
    if odds is None:
        raise ValueError(f"position {maker.key} has no stored odds")
    return int(odds)


def consumed_amount(taker_amount: int, odds: int) -> int:
    """Maker stake consumed by a taker amount at the given 1e7 fixed-point odds."""
    return (int(taker_amount) * (int(odds) - PRECISION)) // PRECISION


def fill_maker(maker: Position, taker_address: str, taker_amount: int) -> int:
    """Consume maker stake for one fill; the maker credits the taker's contributed amount."""
    consumed = consumed_amount(taker_amount, opposite_odds(maker))
    maker.matched_amount += consumed
    maker.unmatched_amount -= consumed
    maker.credit_counterparty(taker_address, taker_amount)
    return consumed


def fill_taker(taker: Position, maker_address: str, taker_amount: int, consumed: int) -> None:
    """The taker credits the maker with the consumed amount, not the taker amount."""
    taker.matched_amount += int(taker_amount)
    taker.credit_counterparty(maker_address, consumed)


def match_order(maker: Position, taker: Position, taker_amount: int) -> int:
    """Apply one fill to both positions in place and return the consumed maker amount.

    The two sides record different quantities against each other, mirroring
    the on-chain books.
    """
    consumed = fill_maker(maker, taker.user, taker_amount)
    fill_taker(taker, maker.user, taker_amount, consumed)
    return consumed
