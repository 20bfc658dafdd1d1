"""Exa-backed market search, driven through httpx.MockTransport."""

import asyncio
import json
import time
from datetime import datetime, timezone

import httpx

from tradesight.core.config import Settings
from tradesight.schemas.market import SearchResult
from tradesight.services.web_search import (
    ALLOWED_DOMAINS,
    WebSearchClient,
    render_search_context,
)

NOW = datetime(2024, 5, 29, 12, 0, tzinfo=timezone.utc)

SEARCH_HITS = {
    "results": [
        {"id": "r1", "title": "Gold steadies near record", "url": "https://www.reuters.com/gold",
         "publishedDate": "2024-05-29T08:00:00.000Z", "author": "Jane Doe"},
        {"id": "r2", "title": "Bitcoin ETF flows", "url": "https://www.cnbc.com/btc", "publishedDate": None},
    ]
}


class ExaStub:
    def __init__(self, search=None, contents=None):
        self.search = search
        self.contents = contents or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, body, request.headers.get("x-api-key")))
        if request.url.path == "/search":
            if self.search is None:
                return httpx.Response(401, json={"error": "bad key"})
            return httpx.Response(200, json=self.search)
        result_id = body["ids"][0]
        content = self.contents.get(result_id)
        if content is None:
            return httpx.Response(500, json={"error": "no content"})
        return httpx.Response(200, json=content)


def _search(stub: ExaStub, query: str = "gold outlook", api_key: str = "exa-key"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            search = WebSearchClient(api_key, client=client, settings=Settings())
            return await search.search_market_context(query, now=NOW)

    return asyncio.run(run())


def test_search_request_shape():
    stub = ExaStub(search={"results": []})
    assert _search(stub) == []

    path, body, key = stub.requests[0]
    assert path == "/search"
    assert key == "exa-key"
    assert body["query"] == "gold outlook market finance trading analysis current price"
    assert body["numResults"] == 5
    assert body["includeDomains"] == ALLOWED_DOMAINS
    assert body["startPublishedDate"] == "2024-05-28T12:00:00Z"
    assert body["endPublishedDate"] == "2024-05-29T12:00:00Z"


def test_results_are_enriched_with_content():
    stub = ExaStub(
        search=SEARCH_HITS,
        contents={
            "r1": {"results": [{"id": "r1", "text": "Gold held steady. Traders await data. More text."}]},
            "r2": {"contents": [{"id": "r2", "extract": "Inflows continued."}]},
        },
    )
    results = _search(stub)

    assert [r.title for r in results] == ["Gold steadies near record", "Bitcoin ETF flows"]
    assert results[0].content.startswith("Gold held steady")
    assert results[0].author == "Jane Doe"
    assert results[0].published_at == datetime(2024, 5, 29, 8, 0, tzinfo=timezone.utc)
    assert results[1].content == "Inflows continued."
    assert results[1].published_at is None


def test_failed_content_fetch_leaves_content_empty():
    stub = ExaStub(
        search=SEARCH_HITS,
        contents={"r2": {"results": [{"id": "r2", "text": "Inflows continued."}]}},
    )
    results = _search(stub)

    assert len(results) == 2
    assert results[0].content is None
    assert results[1].content == "Inflows continued."


def test_failed_search_returns_empty_list():
    assert _search(ExaStub(search=None)) == []


def test_missing_api_key_skips_the_network():
    stub = ExaStub(search=SEARCH_HITS)
    assert _search(stub, api_key=None) == []
    assert stub.requests == []


def test_render_search_context_keeps_two_sentences():
    results = [
        SearchResult(
            title="Gold steadies",
            url="https://www.reuters.com/gold",
            published_at=datetime(2024, 5, 29, 8, tzinfo=timezone.utc),
            content="Gold held steady. Traders await data! Third sentence here.",
        ),
        SearchResult(title="No body", url="https://x"),
    ]
    text = render_search_context(results)

    assert text.startswith("Relevant Market Information:")
    assert "Gold steadies (2024-05-29)\nGold held steady. Traders await data." in text
    assert "Third sentence" not in text
    assert "No body" in text
    assert render_search_context([]) == ""


def test_content_fetches_run_concurrently():
    delay = 0.3
    stub = ExaStub(
        search={"results": [{"id": f"r{i}", "title": f"Hit {i}", "url": f"https://www.ft.com/{i}"} for i in range(5)]},
        contents={f"r{i}": {"results": [{"id": f"r{i}", "text": f"Body {i}."}]} for i in range(5)},
    )

    async def slow_contents(request):
        if request.url.path == "/contents":
            await asyncio.sleep(delay)
        return stub(request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(slow_contents)) as client:
            search = WebSearchClient("exa-key", client=client, settings=Settings())
            started = time.perf_counter()
            results = await search.search_market_context("gold outlook", now=NOW)
            return results, time.perf_counter() - started

    results, elapsed = asyncio.run(run())

    assert [r.content for r in results] == [f"Body {i}." for i in range(5)]
    # five fetches overlap instead of queueing
    assert elapsed < delay * 2.5
