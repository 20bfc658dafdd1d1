"""
MarketDataAggregator against httpx.MockTransport.

Each test scripts the upstream feeds by host; nothing touches the network.
"""

import asyncio
import json
import time
from datetime import datetime, timezone

import httpx
import pytest

from tradesight.core.config import Settings
from tradesight.core.retry import RetryScheduler
from tradesight.services.market_data import (
    MarketDataAggregator,
    render_snapshot_context,
    static_crypto_quotes,
    static_metal_quote,
)

NOW = datetime(2024, 5, 29, 12, 0, tzinfo=timezone.utc)

COINGECKO = {
    "bitcoin": {"usd": 50000.0, "usd_24h_change": 2.0},
    "ethereum": {"usd": 3000.0, "usd_24h_change": -1.5},
}
COINMARKETCAP = {
    "data": {
        "BTC": {"quote": {"USD": {"price": 49950.0, "percent_change_24h": 1.9}}},
        "ETH": [{"quote": {"USD": {"price": 2995.0, "percent_change_24h": -1.4}}}],
    }
}
METALS_LIVE = [{"price": 2330.25, "change": 12.5, "change_percent": 0.54}]
TRADERMADE = {"quotes": [{"ask": 2331.0, "bid": 2330.0, "mid": 2330.5}]}
FEAR_GREED = {"data": [{"value": "72", "value_classification": "Greed", "timestamp": "1716940800"}]}

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
<item>
  <title>Gold rallies as dollar slips</title>
  <link>https://news.example/gold</link>
  <guid>g-1</guid>
  <pubDate>Wed, 29 May 2024 10:00:00 GMT</pubDate>
  <description>&lt;a href="https://news.example/gold"&gt;Gold rallies&lt;/a&gt;&amp;nbsp; on weaker dollar</description>
  <source url="https://www.reuters.com">Reuters</source>
</item>
<item>
  <title>Headline without a description</title>
  <link>https://news.example/empty</link>
</item>
</channel></rss>"""


def _newsdata(count: int) -> dict:
    results = []
    for i in range(count):
        results.append({
            "article_id": f"a{i}",
            "title": f"Headline {i}",
            # every third article has no description and must be dropped
            "description": None if i % 3 == 2 else f"Summary {i}",
            "link": f"https://news.example/{i}",
            "pubDate": "2024-05-29 09:00:00",
            "source_id": "example",
            "category": ["business"],
        })
    return {"status": "success", "results": results}


class Upstream:
    """Routes requests by host to scripted responses and remembers what was hit."""

    def __init__(self, **routes):
        self.routes = routes
        self.hits = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.hits.append(host)
        route = self.routes.get(host)
        if route is None:
            return httpx.Response(500, json={"error": "down"})
        if callable(route):
            return route(request)
        if isinstance(route, str):
            return httpx.Response(200, content=route.encode(), headers={"content-type": "application/rss+xml"})
        return httpx.Response(200, json=route)


def healthy_routes(**overrides):
    routes = {
        "api.coingecko.com": COINGECKO,
        "api.metals.live": METALS_LIVE,
        "api.alternative.me": FEAR_GREED,
        "news.google.com": RSS,
    }
    routes.update(overrides)
    return routes


def _snapshot(upstream: Upstream, sleeper, **settings_kwargs):
    settings = Settings(
        coinmarketcap_api_key=settings_kwargs.pop("coinmarketcap_api_key", None),
        tradermade_api_key=settings_kwargs.pop("tradermade_api_key", None),
        newsdata_api_key=settings_kwargs.pop("newsdata_api_key", None),
    )
    retry = RetryScheduler(max_attempts=2, base_delay_ms=500, jitter_ms=0, sleep=sleeper)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
            aggregator = MarketDataAggregator(settings, client=client, retry=retry, clock=lambda: NOW)
            return await aggregator.fetch_snapshot()

    return asyncio.run(run())


# =============================================================================
# Happy path
# =============================================================================


def test_all_primary_feeds_healthy(sleeper):
    upstream = Upstream(**healthy_routes())
    snap = _snapshot(upstream, sleeper)

    assert snap.sources == {
        "crypto": "coingecko",
        "metal": "metals.live",
        "sentiment": "alternative.me",
        "news": "google-rss",
    }
    assert snap.degraded_legs == []
    assert snap.as_of == NOW

    btc = snap.crypto_quotes["BTC/USD"]
    assert btc.price == 50000.0
    assert btc.change_24h_pct == 2.0
    assert btc.change_24h_abs == pytest.approx(50000.0 - 50000.0 / 1.02)
    assert snap.crypto_quotes["ETH/USD"].change_24h_abs < 0

    assert snap.metal_quote.price == 2330.25
    assert snap.metal_quote.change_24h_pct == 0.54

    assert snap.sentiment.value == 72
    assert snap.sentiment.label == "Greed"
    assert snap.sentiment.as_of == datetime(2024, 5, 29, 0, 0, tzinfo=timezone.utc)

    # the description-less RSS item is filtered out
    assert len(snap.news) == 1
    item = snap.news[0]
    assert item.title == "Gold rallies as dollar slips"
    assert "<a" not in item.summary and "Gold rallies" in item.summary
    assert item.source_name == "Reuters"
    assert item.source_url == "https://www.reuters.com"
    assert item.published_at == datetime(2024, 5, 29, 10, 0, tzinfo=timezone.utc)


def test_providers_without_keys_are_never_called(sleeper):
    upstream = Upstream(**healthy_routes())
    _snapshot(upstream, sleeper)
    assert "marketdata.tradermade.com" not in upstream.hits
    assert "pro-api.coinmarketcap.com" not in upstream.hits
    assert "newsdata.io" not in upstream.hits


# =============================================================================
# Degradation
# =============================================================================


def test_every_provider_down_yields_static_defaults(sleeper):
    upstream = Upstream()
    snap = _snapshot(
        upstream,
        sleeper,
        coinmarketcap_api_key="cmc",
        tradermade_api_key="tm",
        newsdata_api_key="nd",
    )

    assert snap.sources == {"crypto": "static", "metal": "static", "sentiment": "static", "news": "static"}
    assert sorted(snap.degraded_legs) == ["crypto", "metal", "news", "sentiment"]
    assert snap.crypto_quotes == static_crypto_quotes()
    assert snap.metal_quote == static_metal_quote()
    assert snap.sentiment.value == 65 and snap.sentiment.label == "Greed"
    assert snap.sentiment.as_of == NOW
    assert len(snap.news) == 5
    assert all(n.title and n.summary for n in snap.news)
    # every keyed secondary was tried before giving up
    assert {"pro-api.coinmarketcap.com", "marketdata.tradermade.com", "newsdata.io"} <= set(upstream.hits)


def test_secondary_quote_provider_takes_over(sleeper):
    routes = healthy_routes(**{"pro-api.coinmarketcap.com": COINMARKETCAP})
    del routes["api.coingecko.com"]
    snap = _snapshot(Upstream(**routes), sleeper, coinmarketcap_api_key="cmc")

    assert snap.sources["crypto"] == "coinmarketcap"
    assert snap.crypto_quotes["BTC/USD"].price == 49950.0
    assert snap.crypto_quotes["ETH/USD"].change_24h_pct == -1.4


def test_keyed_metal_primary_is_preferred(sleeper):
    snap = _snapshot(
        Upstream(**healthy_routes(**{"marketdata.tradermade.com": TRADERMADE})),
        sleeper,
        tradermade_api_key="tm",
    )
    assert snap.sources["metal"] == "tradermade"
    assert snap.metal_quote.price == 2330.5
    assert snap.metal_quote.change_24h_abs == 0.0


def test_one_leg_crashing_does_not_block_the_others(sleeper):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    snap = _snapshot(Upstream(**healthy_routes(**{"api.alternative.me": refuse})), sleeper)

    assert snap.sources["sentiment"] == "static"
    assert snap.sources["crypto"] == "coingecko"
    assert snap.sources["metal"] == "metals.live"
    assert snap.sources["news"] == "google-rss"


def test_rate_limited_feed_is_retried(sleeper):
    calls = {"n": 0}

    def throttled_once(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(429, json={"status": {"error_code": 429}})
        return httpx.Response(200, json=COINGECKO)

    snap = _snapshot(Upstream(**healthy_routes(**{"api.coingecko.com": throttled_once})), sleeper)

    assert snap.sources["crypto"] == "coingecko"
    assert calls["n"] == 2
    assert sleeper.delays == [0.5]


def test_empty_payload_counts_as_failure(sleeper):
    snap = _snapshot(Upstream(**healthy_routes(**{"api.coingecko.com": {}})), sleeper)
    assert snap.sources["crypto"] == "static"


# =============================================================================
# News filtering
# =============================================================================


def test_news_keeps_first_ten_complete_items_in_order(sleeper):
    snap = _snapshot(
        Upstream(**healthy_routes(**{"newsdata.io": _newsdata(20)})),
        sleeper,
        newsdata_api_key="nd",
    )

    assert snap.sources["news"] == "newsdata"
    assert len(snap.news) == 10
    expected_ids = [f"a{i}" for i in range(20) if i % 3 != 2][:10]
    assert [n.id for n in snap.news] == expected_ids
    assert all(n.summary for n in snap.news)
    assert snap.news[0].categories == {"business"}


def test_news_with_no_complete_items_falls_through(sleeper):
    payload = {"results": [{"title": "Only a title", "description": ""}]}
    snap = _snapshot(
        Upstream(**healthy_routes(**{"newsdata.io": payload})),
        sleeper,
        newsdata_api_key="nd",
    )
    assert snap.sources["news"] == "google-rss"


def test_render_snapshot_context(sleeper):
    snap = _snapshot(Upstream(**healthy_routes()), sleeper)
    text = render_snapshot_context(snap)
    assert "BTC/USD: $50,000.00 (+2.00% 24h)" in text
    assert "XAU/USD" in text
    assert "Crypto Fear & Greed: 72 (Greed)" in text
    assert "Gold rallies as dollar slips (Reuters)" in text


def test_snapshot_serializes(sleeper):
    snap = _snapshot(Upstream(), sleeper)
    payload = json.loads(snap.model_dump_json())
    assert set(payload) >= {"crypto_quotes", "metal_quote", "sentiment", "news", "sources", "as_of"}


def test_news_category_string_is_not_split(sleeper):
    payload = _newsdata(1)
    payload["results"][0]["category"] = "business"
    snap = _snapshot(
        Upstream(**healthy_routes(**{"newsdata.io": payload})),
        sleeper,
        newsdata_api_key="nd",
    )
    assert snap.news[0].categories == {"business"}


# =============================================================================
# Concurrency
# =============================================================================


LEG_DELAY = 0.3


def _slow(upstream: Upstream):
    async def handler(request):
        await asyncio.sleep(LEG_DELAY)
        return upstream(request)

    return handler


def _timed_snapshot(handler, sleeper):
    retry = RetryScheduler(max_attempts=1, sleep=sleeper)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            aggregator = MarketDataAggregator(Settings(), client=client, retry=retry, clock=lambda: NOW)
            started = time.perf_counter()
            snap = await aggregator.fetch_snapshot()
            return snap, time.perf_counter() - started

    return asyncio.run(run())


def test_slow_legs_are_fetched_concurrently(sleeper):
    upstream = Upstream(**healthy_routes())
    snap, elapsed = _timed_snapshot(_slow(upstream), sleeper)

    assert len(upstream.hits) == 4
    assert snap.degraded_legs == []
    # one leg's delay, not the sum of four
    assert elapsed < LEG_DELAY * 2.5


def test_slow_failing_legs_do_not_wait_on_each_other(sleeper):
    snap, elapsed = _timed_snapshot(_slow(Upstream()), sleeper)

    assert sorted(snap.degraded_legs) == ["crypto", "metal", "news", "sentiment"]
    assert elapsed < LEG_DELAY * 2.5
