"""Feed ingestion: fetch every source, parse, infer closing dates, dedupe.

Usage::

    ingestor = FeedIngestor()
    tenders = await ingestor.refresh(store.state.sources)
    if ingestor.error:
        print(ingestor.error)

A refresh is all-or-nothing unless ``isolate_failures`` is set: one failing
source leaves the previous tender list in place and records the failure in
``error``. Each call is tagged with a generation number and only the most
recent call may publish its result, so a slow earlier refresh can never
overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from .api.client import FeedClient
from .config import ISOLATE_SOURCE_FAILURES, REFRESH_DEBOUNCE_SECONDS
from .models.types import Source, Tender
from .services.closing_date import infer_closing_date
from .services.feed_parser import RawEntry, parse_feed, strip_markup, truncate_summary

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_tender(entry: RawEntry, today: date | None = None) -> Tender:
    """Turn a parsed entry into a ``Tender`` with its closing date filled in.

    Inference reads the whole stripped summary, so a date sitting past the
    200-character display cut is still found.
    """
    text = strip_markup(entry.summary)
    result = infer_closing_date(text, entry.published, entry.source, today=today)
    return Tender(
        id=entry.id,
        title=entry.title,
        summary=truncate_summary(text),
        published_date=entry.published.isoformat(),
        closing_date=result.closing_date.isoformat(),
        is_closing_date_estimated=result.is_estimated,
        link=entry.link,
        source=entry.source,
    )


def deduplicate(tenders: Iterable[Tender]) -> list[Tender]:
    """Keep one tender per id; a later duplicate replaces the earlier one."""
    by_id: dict[str, Tender] = {}
    for tender in tenders:
        by_id[tender.id] = tender
    return list(by_id.values())


async def fetch_source_tenders(
    client: FeedClient, feed_url: str, today: date | None = None
) -> list[Tender]:
    body = await client.fetch_feed(feed_url)
    tenders = [build_tender(entry, today) for entry in parse_feed(body, feed_url)]
    logger.info("Source %s: %d tenders", feed_url, len(tenders))
    return tenders


class FeedIngestor:
    """Holds the transient tender list and the status of the last refresh."""

    def __init__(
        self,
        client: FeedClient | None = None,
        *,
        debounce_seconds: float = REFRESH_DEBOUNCE_SECONDS,
        isolate_failures: bool = ISOLATE_SOURCE_FAILURES,
        clock: Clock = _utc_now,
        today: date | None = None,
    ):
        self._client = client
        self.debounce = timedelta(seconds=debounce_seconds)
        self.isolate_failures = isolate_failures
        self._clock = clock
        self._today = today

        self.tenders: list[Tender] = []
        self.loading = False
        self.error: str | None = None
        self.last_fetched: datetime | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_fresh(self, last_fetched: datetime | None = None) -> bool:
        """True while the last completed fetch is inside the debounce window."""
        last = last_fetched or self.last_fetched
        return last is not None and self._clock() - last < self.debounce

    async def refresh(
        self,
        sources: list[Source],
        force: bool = False,
        last_fetched: Optional[datetime] = None,
    ) -> list[Tender]:
        """Re-fetch all sources and replace ``tenders`` wholesale.

        Args:
            sources: Feed endpoints. Duplicate URLs are fetched once.
            force: Skip the debounce check.
            last_fetched: Overrides ``self.last_fetched`` for the debounce
                check, for callers that persist the timestamp themselves.

        Returns:
            The current tender list: new on success, the previous one on
            failure, debounce or when a newer refresh has superseded this one.
        """
        if not force and self.is_fresh(last_fetched):
            logger.info("Skipping refresh: last fetch at %s", (last_fetched or self.last_fetched).isoformat())
            return self.tenders

        self._generation += 1
        generation = self._generation
        self.loading = True
        self.error = None

        urls = list(dict.fromkeys(s.url for s in sources))
        logger.info("Refresh #%d: fetching %d sources", generation, len(urls))

        client = self._client or FeedClient()
        try:
            results = await asyncio.gather(
                *(fetch_source_tenders(client, url, self._today) for url in urls),
                return_exceptions=True,
            )
        finally:
            if self._client is None:
                await client.close()

        if generation != self._generation:
            logger.warning("Discarding refresh #%d, superseded by #%d", generation, self._generation)
            return self.tenders

        try:
            collected, failures = self._collect(urls, results)
            if failures and (not self.isolate_failures or len(failures) == len(urls)):
                self.error = failures[0]
                return self.tenders

            self.tenders = deduplicate(collected)
            self.last_fetched = self._clock()
            self.error = "; ".join(failures) if failures else None
            logger.info("Refresh #%d: %d unique tenders", generation, len(self.tenders))
            return self.tenders
        finally:
            self.loading = False

    def _collect(self, urls: list[str], results: list) -> tuple[list[Tender], list[str]]:
        collected: list[Tender] = []
        failures: list[str] = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error("Failed to fetch or parse feed %s: %s", url, result)
                failures.append(str(result))
                continue
            collected.extend(result)
        return collected, failures
