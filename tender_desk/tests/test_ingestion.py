"""Tests for the feed ingestion orchestrator, with HTTP faked by httpx.MockTransport."""

import asyncio
import json
from datetime import date, datetime, timedelta, timezone

import httpx

from tender_desk.api.client import FeedClient, proxied_url
from tender_desk.ingestion_pipeline import FeedIngestor, deduplicate
from tender_desk.models.types import Source, Tender

PROXY = "https://proxy.test/?url="
TODAY = date(2025, 7, 1)
FEED_A = "https://feeds.example.org/a.json"
FEED_B = "https://feeds.example.org/b.json"


def _feed(entries, title="Test Feed"):
    return json.dumps({
        "title": title,
        "items": [
            {
                "id": entry_id,
                "title": entry_title,
                "url": f"https://example.org/{entry_id}",
                "content_html": summary,
                "date_published": "2025-06-20T10:00:00Z",
            }
            for entry_id, entry_title, summary in entries
        ],
    })


def _client(routes, calls=None):
    """``routes`` maps feed URL -> (status, body) or a callable returning a response."""

    def handler(request: httpx.Request) -> httpx.Response:
        feed_url = request.url.params.get("url")
        if calls is not None:
            calls.append(feed_url)
        route = routes[feed_url]
        if callable(route):
            return route()
        status, body = route
        return httpx.Response(status, text=body)

    return FeedClient(proxy_base=PROXY, transport=httpx.MockTransport(handler))


def _sources(*urls):
    return [Source(id=f"s{i}", url=url) for i, url in enumerate(urls)]


def _run(coro):
    return asyncio.run(coro)


def test_proxied_url_encodes_feed_url():
    assert proxied_url("https://a.org/feed?x=1&y=2", PROXY) == (
        "https://proxy.test/?url=https%3A%2F%2Fa.org%2Ffeed%3Fx%3D1%26y%3D2"
    )


def test_duplicate_ids_last_source_wins():
    async def scenario():
        client = _client({
            FEED_A: (200, _feed([("t-1", "From A", "Summary A")])),
            FEED_B: (200, _feed([("t-1", "From B", "Summary B"), ("t-2", "Other", "x")])),
        })
        ingestor = FeedIngestor(client, today=TODAY)
        tenders = await ingestor.refresh(_sources(FEED_A, FEED_B))
        await client.close()
        return ingestor, tenders

    ingestor, tenders = _run(scenario())
    assert sorted(t.id for t in tenders) == ["t-1", "t-2"]
    assert next(t for t in tenders if t.id == "t-1").title == "From B"
    assert ingestor.error is None
    assert ingestor.last_fetched is not None
    assert ingestor.loading is False


def test_summary_truncated_but_date_found_past_cut():
    long_summary = "<p>" + "Lorem ipsum dolor sit amet. " * 12 + "Closing date: 2025-09-15</p>"

    async def scenario():
        client = _client({FEED_A: (200, _feed([("t-1", "Long", long_summary)]))})
        tenders = await FeedIngestor(client, today=TODAY).refresh(_sources(FEED_A))
        await client.close()
        return tenders

    (tender,) = _run(scenario())
    assert len(tender.summary) <= 203
    assert tender.summary.endswith("...")
    assert "<p>" not in tender.summary
    assert tender.closing_date.startswith("2025-09-15")
    assert tender.is_closing_date_estimated is False


def test_estimated_closing_date_when_no_keyword():
    async def scenario():
        client = _client({FEED_A: (200, _feed([("t-1", "Plain", "Nothing to see")]))})
        tenders = await FeedIngestor(client, today=TODAY).refresh(_sources(FEED_A))
        await client.close()
        return tenders

    (tender,) = _run(scenario())
    assert tender.is_closing_date_estimated is True
    assert tender.closing_date.startswith("2025-07-20")


def test_debounce_skips_fetch_until_forced():
    calls = []
    now = [datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)]

    async def scenario():
        client = _client({FEED_A: (200, _feed([("t-1", "One", "x")]))}, calls)
        ingestor = FeedIngestor(client, clock=lambda: now[0], today=TODAY)
        await ingestor.refresh(_sources(FEED_A))
        now[0] += timedelta(minutes=2)
        await ingestor.refresh(_sources(FEED_A))
        assert len(calls) == 1
        await ingestor.refresh(_sources(FEED_A), force=True)
        assert len(calls) == 2
        now[0] += timedelta(minutes=6)
        await ingestor.refresh(_sources(FEED_A))
        assert len(calls) == 3
        await client.close()

    _run(scenario())


def test_caller_supplied_last_fetched_debounces():
    calls = []
    now = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)

    async def scenario():
        client = _client({FEED_A: (200, _feed([("t-1", "One", "x")]))}, calls)
        ingestor = FeedIngestor(client, clock=lambda: now, today=TODAY)
        result = await ingestor.refresh(_sources(FEED_A), last_fetched=now - timedelta(minutes=1))
        await client.close()
        return result

    assert _run(scenario()) == []
    assert calls == []


def test_http_error_keeps_previous_tenders():
    responses = [httpx.Response(200, text=_feed([("t-1", "One", "x")])), httpx.Response(500)]

    async def scenario():
        client = _client({FEED_A: lambda: responses.pop(0)})
        ingestor = FeedIngestor(client, today=TODAY)
        first = await ingestor.refresh(_sources(FEED_A), force=True)
        second = await ingestor.refresh(_sources(FEED_A), force=True)
        await client.close()
        return ingestor, first, second

    ingestor, first, second = _run(scenario())
    assert [t.id for t in second] == [t.id for t in first] == ["t-1"]
    assert "500" in ingestor.error
    assert FEED_A in ingestor.error
    assert ingestor.loading is False


def test_new_refresh_clears_previous_error_while_loading():
    seen = []
    holder = {}

    def second_attempt():
        ingestor = holder["ingestor"]
        seen.append((ingestor.loading, ingestor.error))
        return httpx.Response(200, text=_feed([("t-1", "One", "x")]))

    responses = [lambda: httpx.Response(500), second_attempt]

    async def scenario():
        client = _client({FEED_A: lambda: responses.pop(0)()})
        ingestor = holder["ingestor"] = FeedIngestor(client, today=TODAY)
        await ingestor.refresh(_sources(FEED_A), force=True)
        assert "500" in ingestor.error
        await ingestor.refresh(_sources(FEED_A), force=True)
        await client.close()
        return ingestor

    ingestor = _run(scenario())
    assert seen == [(True, None)]
    assert ingestor.error is None


def test_rate_limit_has_distinct_message():
    async def scenario():
        client = _client({FEED_A: (429, "")})
        ingestor = FeedIngestor(client, today=TODAY)
        await ingestor.refresh(_sources(FEED_A))
        await client.close()
        return ingestor

    ingestor = _run(scenario())
    assert "Rate limit exceeded" in ingestor.error
    assert ingestor.tenders == []
    assert ingestor.last_fetched is None


def test_one_failing_source_fails_whole_refresh_by_default():
    async def scenario():
        client = _client({
            FEED_A: (200, _feed([("t-1", "One", "x")])),
            FEED_B: (503, ""),
        })
        ingestor = FeedIngestor(client, today=TODAY)
        await ingestor.refresh(_sources(FEED_A, FEED_B))
        await client.close()
        return ingestor

    ingestor = _run(scenario())
    assert ingestor.tenders == []
    assert "503" in ingestor.error


def test_isolated_failures_keep_successful_sources():
    async def scenario():
        client = _client({
            FEED_A: (200, _feed([("t-1", "One", "x")])),
            FEED_B: (503, ""),
        })
        ingestor = FeedIngestor(client, isolate_failures=True, today=TODAY)
        await ingestor.refresh(_sources(FEED_A, FEED_B))
        await client.close()
        return ingestor

    ingestor = _run(scenario())
    assert [t.id for t in ingestor.tenders] == ["t-1"]
    assert "503" in ingestor.error
    assert ingestor.last_fetched is not None


def test_transport_error_is_reported():
    def boom():
        raise httpx.ConnectError("offline")

    async def scenario():
        client = _client({FEED_A: boom})
        ingestor = FeedIngestor(client, today=TODAY)
        await ingestor.refresh(_sources(FEED_A))
        await client.close()
        return ingestor

    ingestor = _run(scenario())
    assert "offline" in ingestor.error


def test_malformed_feed_is_empty_not_error():
    async def scenario():
        client = _client({FEED_A: (200, "<html><body>oops")})
        ingestor = FeedIngestor(client, today=TODAY)
        tenders = await ingestor.refresh(_sources(FEED_A))
        await client.close()
        return ingestor, tenders

    ingestor, tenders = _run(scenario())
    assert tenders == []
    assert ingestor.error is None


def test_duplicate_source_urls_fetched_once():
    calls = []

    async def scenario():
        client = _client({FEED_A: (200, _feed([("t-1", "One", "x")]))}, calls)
        await FeedIngestor(client, today=TODAY).refresh(_sources(FEED_A, FEED_A))
        await client.close()

    _run(scenario())
    assert calls == [FEED_A]


def test_superseded_refresh_is_discarded():
    async def scenario():
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("url") == FEED_A:
                await release.wait()
                return httpx.Response(200, text=_feed([("old", "Old", "x")]))
            return httpx.Response(200, text=_feed([("new", "New", "x")]))

        client = FeedClient(proxy_base=PROXY, transport=httpx.MockTransport(handler))
        ingestor = FeedIngestor(client, today=TODAY)
        slow = asyncio.create_task(ingestor.refresh(_sources(FEED_A), force=True))
        await asyncio.sleep(0)
        fast = await ingestor.refresh(_sources(FEED_B), force=True)
        release.set()
        stale = await slow
        await client.close()
        return ingestor, fast, stale

    ingestor, fast, stale = _run(scenario())
    assert [t.id for t in fast] == ["new"]
    assert [t.id for t in stale] == ["new"]
    assert [t.id for t in ingestor.tenders] == ["new"]
    assert ingestor.generation == 2


def test_deduplicate_keeps_last():
    def tender(tid, title):
        return Tender(
            id=tid, title=title, summary="", published_date="", closing_date="",
            is_closing_date_estimated=True, link="#", source="s",
        )

    result = deduplicate([tender("a", "1"), tender("b", "2"), tender("a", "3")])
    assert [(t.id, t.title) for t in result] == [("a", "3"), ("b", "2")]
