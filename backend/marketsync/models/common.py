"""
backend/marketsync/models/common.py

Purpose:
    Shared field types for projected documents. On-chain integers (uint256
    amounts, int256 ROI values) are stored as decimal strings so MongoDB's
    64-bit integers never truncate them; in Python they are plain ints.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer

PRECISION = 10_000_000


def _to_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(value, int):
        return value
    return int(str(value).strip())


BigInt = Annotated[int, BeforeValidator(_to_int), PlainSerializer(str, return_type=str)]


class PositionType(IntEnum):
    UPPER = 0
    LOWER = 1

    def opposite(self) -> "PositionType":
        return PositionType.LOWER if self is PositionType.UPPER else PositionType.UPPER
