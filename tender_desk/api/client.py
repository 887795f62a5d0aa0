"""Async HTTP client for fetching third-party feeds through the CORS proxy.

Feed hosts are untrusted and not same-origin, so every request goes to
``<proxy><urlencoded feed url>`` rather than to the feed directly.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from ..config import CORS_PROXY_URL, FEED_TIMEOUT_SECONDS, USER_AGENT
from ..exceptions import FeedFetchError, FeedRateLimitError

logger = logging.getLogger(__name__)


def proxied_url(feed_url: str, proxy_base: str = CORS_PROXY_URL) -> str:
    return f"{proxy_base}{quote(feed_url, safe='')}"


class FeedClient:
    """Async HTTP client for feed downloads."""

    def __init__(
        self,
        proxy_base: str = CORS_PROXY_URL,
        timeout: float = FEED_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.proxy_base = proxy_base
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> FeedClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def fetch_feed(self, feed_url: str) -> str:
        """GET the feed body as text.

        Raises:
            FeedRateLimitError: the proxy or feed host answered 429.
            FeedFetchError: any other non-2xx answer.
            httpx.HTTPError: transport failures (DNS, timeout, ...).
        """
        r = await self._client.get(proxied_url(feed_url, self.proxy_base))
        if r.status_code == 429:
            raise FeedRateLimitError(feed_url)
        if not r.is_success:
            raise FeedFetchError(feed_url, r.status_code)
        logger.debug("Fetched %s (%d bytes)", feed_url, len(r.content))
        return r.text
