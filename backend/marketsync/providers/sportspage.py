from __future__ import annotations

import logging
from typing import Any

from marketsync.errors import FeedError
from marketsync.providers.base import FeedProvider

logger = logging.getLogger("marketsync.providers.sportspage")


class SportspageProvider(FeedProvider):
    """Secondary schedule feed, paginated with `skip` per date."""

    feed_name = "sportspage"

    def _headers(self) -> dict[str, str]:
        return {
            "x-rapidapi-host": self._settings.SPORTSPAGE_HOST,
            "x-rapidapi-key": self._settings.RAPIDAPI_API_KEY,
        }

    async def get_games(self, league: str, dates: list[str]) -> list[dict[str, Any]]:
        games: list[dict[str, Any]] = []
        for date in dates:
            skip = 0
            while True:
                body = await self._get_json(
                    f"{self._settings.SPORTSPAGE_BASE_URL}/games",
                    params={"date": date, "league": league, "skip": skip},
                    headers=self._headers(),
                )
                if not isinstance(body, dict):
                    raise FeedError(self.feed_name, f"games response for {date} is not an object")
                page = body.get("results") or []
                games.extend(page)
                skip += len(page)
                total = int(body.get("games") or 0)
                if not page or skip >= total or len(page) < self._settings.SPORTSPAGE_PAGE_SIZE:
                    break
        logger.debug("Sportspage league=%s dates=%s games=%d", league, dates, len(games))
        return games
