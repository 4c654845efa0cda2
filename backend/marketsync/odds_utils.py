"""American/decimal odds conversion for feed display strings."""

from __future__ import annotations

import re
from typing import Any

_NON_NUMERIC_RE = re.compile(r"[^0-9-]")


def parse_american_odds(american: Any) -> int:
    """Parse "-110", "+150", "150" or a number into integer American odds (0 when unusable)."""
    if american is None:
        return 0
    if isinstance(american, (int, float)) and not isinstance(american, bool):
        return int(round(american))
    cleaned = _NON_NUMERIC_RE.sub("", str(american))
    try:
        return int(cleaned)
    except ValueError:
        return 0


def american_to_decimal(american: Any) -> float:
    odds = parse_american_odds(american) if not isinstance(american, (int, float)) else american
    if not odds:
        return 1.0
    if odds >= 100:
        return odds / 100 + 1
    if odds <= -100:
        return 100 / abs(odds) + 1
    # -100 < odds < 100 does not occur on real books.
    return 1.0


def parse_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
