from __future__ import annotations

import logging
from typing import Any

from marketsync.errors import FeedError
from marketsync.providers.base import FeedProvider

logger = logging.getLogger("marketsync.providers.rundown")


class RundownProvider(FeedProvider):
    """Secondary schedule feed; events carry split name/mascot team records."""

    feed_name = "rundown"

    def _headers(self) -> dict[str, str]:
        return {
            "x-rapidapi-host": self._settings.RUNDOWN_HOST,
            "x-rapidapi-key": self._settings.RAPIDAPI_API_KEY,
        }

    async def get_events(self, sport_id: int, dates: list[str]) -> list[dict[str, Any]]:
        events: list[dict[str, Any]] = []
        for date in dates:
            body = await self._get_json(
                f"{self._settings.RUNDOWN_BASE_URL}/sports/{sport_id}/events/{date}",
                headers=self._headers(),
            )
            if not isinstance(body, dict):
                raise FeedError(self.feed_name, f"events response for {date} is not an object")
            events.extend(body.get("events") or [])
        logger.debug("Rundown sport=%s dates=%s events=%d", sport_id, dates, len(events))
        return events
