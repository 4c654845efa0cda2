from __future__ import annotations

import logging
from typing import Any

import httpx

from marketsync.config import Settings
from marketsync.errors import FeedError
from marketsync.monitoring.metrics import FEED_REQUESTS_TOTAL
from marketsync.providers.http_client import ResilientClient, safe_url

logger = logging.getLogger("marketsync.providers")


class FeedProvider:
    """Shared plumbing for feed clients: one ResilientClient, JSON decoding, FeedError on failure."""

    feed_name = "feed"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._settings = settings
        self._client = ResilientClient(
            self.feed_name,
            timeout=settings.FEED_TIMEOUT_SECONDS,
            max_retries=settings.FEED_MAX_RETRIES,
            base_delay=settings.FEED_RETRY_BASE_DELAY_SECONDS,
            transport=transport,
        )

    async def _get_json(self, url: str, *, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None) -> Any:
        try:
            resp = await self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            FEED_REQUESTS_TOTAL.labels(feed=self.feed_name, outcome="error").inc()
            raise FeedError(self.feed_name, f"request to {safe_url(url)} failed: {exc}") from exc

        if resp.status_code != 200:
            FEED_REQUESTS_TOTAL.labels(feed=self.feed_name, outcome="error").inc()
            raise FeedError(self.feed_name, f"{safe_url(url)} returned HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as exc:
            FEED_REQUESTS_TOTAL.labels(feed=self.feed_name, outcome="error").inc()
            raise FeedError(self.feed_name, f"{safe_url(url)} returned invalid JSON") from exc
        FEED_REQUESTS_TOTAL.labels(feed=self.feed_name, outcome="ok").inc()
        return body

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def circuit_open(self) -> bool:
        return self._client.circuit.is_open
