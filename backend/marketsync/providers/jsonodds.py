"""
backend/marketsync/providers/jsonodds.py

Purpose:
    Authoritative odds feed. One call per cycle returns every upcoming game
    across sports with its global identifier, kickoff time and market lines;
    the results endpoint carries the feed's own final-state flags.
"""

from __future__ import annotations

import logging
from typing import Any

from marketsync.errors import FeedError
from marketsync.providers.base import FeedProvider

logger = logging.getLogger("marketsync.providers.jsonodds")


class JsonOddsProvider(FeedProvider):
    feed_name = "jsonodds"

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._settings.JSONODDS_API_KEY}

    async def get_odds(self) -> list[dict[str, Any]]:
        body = await self._get_json(
            f"{self._settings.JSONODDS_BASE_URL}/odds",
            params={"oddType": "Game"},
            headers=self._headers(),
        )
        if not isinstance(body, list):
            raise FeedError(self.feed_name, "odds response is not a list")
        logger.info("JsonOdds returned %d games", len(body))
        return body

    async def get_results(self, sport_name: str | None = None) -> list[dict[str, Any]]:
        url = f"{self._settings.JSONODDS_BASE_URL}/results"
        if sport_name:
            url = f"{url}/{sport_name.lower()}"
        body = await self._get_json(url, params={"oddType": "Game"}, headers=self._headers())
        if not isinstance(body, list):
            raise FeedError(self.feed_name, "results response is not a list")
        return body
