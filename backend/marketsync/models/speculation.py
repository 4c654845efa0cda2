from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class SpeculationStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class WinSide(IntEnum):
    TBD = 0
    AWAY = 1
    HOME = 2
    OVER = 3
    UNDER = 4
    PUSH = 5
    FORFEIT = 6
    VOID = 7


class Speculation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="_id")
    speculation_id: str
    contest_id: str
    lock_time: datetime | None = None
    scorer: str
    the_number: int
    creator: str | None = None
    status: SpeculationStatus = SpeculationStatus.OPEN
    winning_side: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_serializer("status")
    def _serialize_status(self, value: SpeculationStatus) -> str:
        return value.value

    def business_key(self) -> dict[str, Any]:
        return {"contest_id": self.contest_id, "scorer": self.scorer, "the_number": self.the_number}

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")
