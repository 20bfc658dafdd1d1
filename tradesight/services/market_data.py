# tradesight/services/market_data.py
"""
Market snapshot for the chat assistant: crypto quotes, gold, Fear & Greed
and headlines, each fetched as an independent leg.

Every leg walks its own provider chain (primary -> secondary -> static
default) so one failing feed never blocks the others, and the snapshot is
always structurally complete.
"""
from __future__ import annotations

import asyncio
import html
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx

from tradesight.core.config import Settings, get_settings
from tradesight.core.normalizers import parse_datetime, parse_number
from tradesight.core.retry import RetryScheduler
from tradesight.schemas.market import MarketSnapshot, NewsItem, Quote, SentimentIndex
from tradesight.utils.logger import get_logger, log_execution_time

logger = get_logger(__name__)

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
COINMARKETCAP_URL = "https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest"
TRADERMADE_URL = "https://marketdata.tradermade.com/api/v1/live"
METALS_LIVE_URL = "https://api.metals.live/v1/spot/gold"
FEAR_GREED_URL = "https://api.alternative.me/fng/"
NEWSDATA_URL = "https://newsdata.io/api/1/latest"
GOOGLE_NEWS_RSS_URL = "https://news.google.com/rss/search"

NEWS_QUERY = "bitcoin OR ethereum OR gold OR trading OR cryptocurrency OR stock market"
NEWS_LIMIT = 10

# symbol -> (coingecko id, coinmarketcap symbol)
CRYPTO_ASSETS = {
    "BTC/USD": ("bitcoin", "BTC"),
    "ETH/USD": ("ethereum", "ETH"),
}

_TAG_RE = re.compile(r"<[^>]+>")


class EmptyPayload(ValueError):
    """Provider answered but with nothing usable."""


def _change_abs(price: float, pct: float) -> float:
    # Absolute move implied by the current price and the 24h percentage
    if pct <= -100:
        return 0.0
    previous = price / (1 + pct / 100.0)
    return round(price - previous, 8)


# --- Static defaults ---

def static_crypto_quotes() -> Dict[str, Quote]:
    return {
        "BTC/USD": Quote(price=43250.00, change_24h_abs=1250.00, change_24h_pct=2.98),
        "ETH/USD": Quote(price=2650.00, change_24h_abs=-45.00, change_24h_pct=-1.67),
    }


def static_metal_quote() -> Quote:
    return Quote(price=2050.00, change_24h_abs=15.50, change_24h_pct=0.76)


def static_sentiment(now: datetime) -> SentimentIndex:
    return SentimentIndex(value=65, label="Greed", as_of=now)


def static_news(now: datetime) -> List[NewsItem]:
    rows = [
        ("Bitcoin Reaches New Monthly High Amid Institutional Adoption",
         "Bitcoin continues its upward momentum as major institutions increase their cryptocurrency holdings, driving market confidence.",
         "Crypto News Today", {"cryptocurrency"}),
        ("Gold Prices Stabilize as Safe Haven Demand Increases",
         "Gold maintains its position as a preferred safe haven asset during periods of market uncertainty and inflation concerns.",
         "Financial Times", {"commodities"}),
        ("Ethereum Network Upgrade Shows Promising Results",
         "Latest Ethereum improvements focus on scalability and reduced transaction fees, attracting more developers to the platform.",
         "Blockchain Today", {"cryptocurrency"}),
        ("Trading Volume Surges Across Major Cryptocurrency Exchanges",
         "Increased retail and institutional trading activity drives record volumes across leading crypto trading platforms.",
         "Market Watch", {"cryptocurrency", "trading"}),
        ("Central Banks Consider Digital Currency Implementations",
         "Multiple central banks worldwide are accelerating their digital currency research and pilot programs.",
         "Reuters", {"finance"}),
    ]
    return [
        NewsItem(
            id=f"static_{i + 1}",
            title=title,
            summary=summary,
            link="#",
            published_at=now - timedelta(hours=i),
            source_name=source,
            source_url="#",
            categories=categories,
        )
        for i, (title, summary, source, categories) in enumerate(rows)
    ]


# --- Providers ---

async def _get_json(client: httpx.AsyncClient, url: str, **kwargs: Any) -> Any:
    resp = await client.get(url, **kwargs)
    resp.raise_for_status()
    return resp.json()


async def fetch_coingecko_quotes(client: httpx.AsyncClient) -> Dict[str, Quote]:
    ids = ",".join(cg_id for cg_id, _ in CRYPTO_ASSETS.values())
    data = await _get_json(
        client,
        COINGECKO_URL,
        params={"ids": ids, "vs_currencies": "usd", "include_24hr_change": "true"},
    )
    out: Dict[str, Quote] = {}
    for symbol, (cg_id, _) in CRYPTO_ASSETS.items():
        row = (data or {}).get(cg_id) or {}
        price = parse_number(row.get("usd"))
        if price is None:
            continue
        pct = parse_number(row.get("usd_24h_change")) or 0.0
        out[symbol] = Quote(price=price, change_24h_abs=_change_abs(price, pct), change_24h_pct=pct)
    if not out:
        raise EmptyPayload("coingecko returned no prices")
    return out


async def fetch_coinmarketcap_quotes(client: httpx.AsyncClient, api_key: str) -> Dict[str, Quote]:
    symbols = ",".join(cmc for _, cmc in CRYPTO_ASSETS.values())
    data = await _get_json(
        client,
        COINMARKETCAP_URL,
        params={"symbol": symbols, "convert": "USD"},
        headers={"X-CMC_PRO_API_KEY": api_key, "Accept": "application/json"},
    )
    rows = (data or {}).get("data") or {}
    out: Dict[str, Quote] = {}
    for symbol, (_, cmc) in CRYPTO_ASSETS.items():
        row = rows.get(cmc)
        if isinstance(row, list):
            row = row[0] if row else None
        usd = ((row or {}).get("quote") or {}).get("USD") or {}
        price = parse_number(usd.get("price"))
        if price is None:
            continue
        pct = parse_number(usd.get("percent_change_24h")) or 0.0
        out[symbol] = Quote(price=price, change_24h_abs=_change_abs(price, pct), change_24h_pct=pct)
    if not out:
        raise EmptyPayload("coinmarketcap returned no prices")
    return out


async def fetch_tradermade_gold(client: httpx.AsyncClient, api_key: str) -> Quote:
    data = await _get_json(client, TRADERMADE_URL, params={"currency": "XAUUSD", "api_key": api_key})
    quotes = (data or {}).get("quotes") or []
    first = quotes[0] if quotes else {}
    price = parse_number(first.get("mid")) or parse_number(first.get("ask"))
    if price is None:
        raise EmptyPayload("tradermade returned no XAUUSD quote")
    # The live endpoint carries no 24h change
    return Quote(price=price)


async def fetch_metals_live_gold(client: httpx.AsyncClient) -> Quote:
    data = await _get_json(client, METALS_LIVE_URL)
    row = data[-1] if isinstance(data, list) and data else data
    if not isinstance(row, dict):
        raise EmptyPayload("metals.live returned no gold price")
    price = parse_number(row.get("price")) or parse_number(row.get("gold"))
    if price is None:
        raise EmptyPayload("metals.live returned no gold price")
    return Quote(
        price=price,
        change_24h_abs=parse_number(row.get("change")) or 0.0,
        change_24h_pct=parse_number(row.get("change_percent")) or 0.0,
    )


async def fetch_fear_greed(client: httpx.AsyncClient) -> SentimentIndex:
    data = await _get_json(client, FEAR_GREED_URL)
    latest = ((data or {}).get("data") or [None])[0]
    if not latest:
        raise EmptyPayload("fear & greed returned no data")
    value = parse_number(latest.get("value"))
    if value is None:
        raise EmptyPayload("fear & greed value missing")
    stamp = latest.get("timestamp")
    as_of = None
    if stamp is not None and str(stamp).isdigit():
        as_of = datetime.fromtimestamp(int(stamp), tz=timezone.utc)
    else:
        as_of = parse_datetime(stamp)
    return SentimentIndex(
        value=int(value),
        label=str(latest.get("value_classification") or ""),
        as_of=as_of or datetime.now(timezone.utc),
    )


def _categories(raw: Any) -> Set[str]:
    # list of names or a single name
    if isinstance(raw, str):
        return {raw} if raw.strip() else set()
    if isinstance(raw, (list, tuple, set)):
        return {str(c) for c in raw if c}
    return set()


def _keep_news(items: List[NewsItem]) -> List[NewsItem]:
    kept = [it for it in items if it.title.strip() and it.summary.strip()]
    if not kept:
        raise EmptyPayload("no headline with both title and description")
    return kept[:NEWS_LIMIT]


async def fetch_newsdata_news(client: httpx.AsyncClient, api_key: str) -> List[NewsItem]:
    data = await _get_json(
        client,
        NEWSDATA_URL,
        params={"apikey": api_key, "q": NEWS_QUERY, "language": "en", "country": "us"},
    )
    results = (data or {}).get("results")
    if not isinstance(results, list):
        raise EmptyPayload("newsdata returned no results list")

    items: List[NewsItem] = []
    for i, art in enumerate(results):
        if not isinstance(art, dict):
            continue
        items.append(NewsItem(
            id=str(art.get("article_id") or f"newsdata_{i}"),
            title=art.get("title") or "",
            summary=art.get("description") or "",
            link=art.get("link") or "",
            published_at=parse_datetime(art.get("pubDate")),
            source_name=art.get("source_name") or art.get("source_id") or "",
            source_url=art.get("source_url") or "",
            image_url=art.get("image_url") or None,
            categories=_categories(art.get("category")),
        ))
    return _keep_news(items)


async def fetch_google_rss_news(client: httpx.AsyncClient) -> List[NewsItem]:
    """Free fallback: Google News RSS search. Descriptions are HTML snippets."""
    resp = await client.get(
        GOOGLE_NEWS_RSS_URL,
        params={"q": NEWS_QUERY, "hl": "en-US", "gl": "US", "ceid": "US:en"},
        headers={"User-Agent": "Mozilla/5.0"},
    )
    resp.raise_for_status()
    root = ET.fromstring(resp.content)

    items: List[NewsItem] = []
    for i, item in enumerate(root.findall(".//item")):
        title = item.findtext("title") or ""
        link = item.findtext("link") or ""
        description = html.unescape(_TAG_RE.sub(" ", item.findtext("description") or ""))
        source_el = item.find("source")
        items.append(NewsItem(
            id=item.findtext("guid") or link or f"rss_{i}",
            title=title.strip(),
            summary=" ".join(description.split()),
            link=link,
            published_at=parse_datetime(item.findtext("pubDate")),
            source_name=(source_el.text or "") if source_el is not None else "",
            source_url=source_el.get("url", "") if source_el is not None else "",
        ))
    return _keep_news(items)


# --- Aggregation ---

@dataclass
class Provider:
    name: str
    fetch: Callable[[httpx.AsyncClient], Awaitable[Any]]
    enabled: bool = True


class MarketDataAggregator:
    """
    fetch_snapshot() never raises. Build one per request; the providers it
    calls share a single httpx client for the lifetime of that call.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        retry: Optional[RetryScheduler] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings or get_settings()
        self._client = client
        self.retry = retry or RetryScheduler(max_attempts=2, base_delay_ms=500.0, jitter_ms=250.0)
        self.clock = clock

    def _quote_providers(self) -> List[Provider]:
        cmc_key = self.settings.coinmarketcap_api_key
        return [
            Provider("coingecko", fetch_coingecko_quotes),
            Provider("coinmarketcap", lambda c: fetch_coinmarketcap_quotes(c, cmc_key), enabled=bool(cmc_key)),
        ]

    def _metal_providers(self) -> List[Provider]:
        tm_key = self.settings.tradermade_api_key
        return [
            Provider("tradermade", lambda c: fetch_tradermade_gold(c, tm_key), enabled=bool(tm_key)),
            Provider("metals.live", fetch_metals_live_gold),
        ]

    def _sentiment_providers(self) -> List[Provider]:
        return [Provider("alternative.me", fetch_fear_greed)]

    def _news_providers(self) -> List[Provider]:
        nd_key = self.settings.newsdata_api_key
        return [
            Provider("newsdata", lambda c: fetch_newsdata_news(c, nd_key), enabled=bool(nd_key)),
            Provider("google-rss", fetch_google_rss_news),
        ]

    async def _run_leg(
        self,
        leg: str,
        client: httpx.AsyncClient,
        providers: List[Provider],
        default: Callable[[], Any],
    ) -> tuple:
        for provider in providers:
            if not provider.enabled:
                continue
            try:
                value = await self.retry.run(
                    lambda: provider.fetch(client),
                    name=f"{leg}:{provider.name}",
                )
                return value, provider.name
            except Exception as e:
                logger.warning(f"[MarketData] {leg} provider {provider.name} failed: {e}")
        logger.warning(f"[MarketData] {leg} degraded to static default")
        return default(), "static"

    @log_execution_time(level="INFO")
    async def fetch_snapshot(self) -> MarketSnapshot:
        now = self.clock()
        legs = {
            "crypto": (self._quote_providers(), static_crypto_quotes),
            "metal": (self._metal_providers(), static_metal_quote),
            "sentiment": (self._sentiment_providers(), lambda: static_sentiment(now)),
            "news": (self._news_providers(), lambda: static_news(now)),
        }

        if self._client is not None:
            results = await self._gather_legs(self._client, legs)
        else:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
                results = await self._gather_legs(client, legs)

        values = {leg: value for leg, (value, _) in results.items()}
        return MarketSnapshot(
            crypto_quotes=values["crypto"],
            metal_quote=values["metal"],
            sentiment=values["sentiment"],
            news=values["news"][:NEWS_LIMIT],
            sources={leg: source for leg, (_, source) in results.items()},
            as_of=now,
        )

    async def _gather_legs(self, client: httpx.AsyncClient, legs: Dict[str, tuple]) -> Dict[str, tuple]:
        names = list(legs)
        outcomes = await asyncio.gather(
            *(self._run_leg(name, client, *legs[name]) for name in names),
            return_exceptions=True,
        )
        results: Dict[str, tuple] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(f"[MarketData] {name} leg crashed: {outcome}")
                outcome = (legs[name][1](), "static")
            results[name] = outcome
        return results


def render_snapshot_context(snapshot: MarketSnapshot) -> str:
    """Compact text block of the snapshot for a model prompt."""
    lines: List[str] = []
    for symbol, q in snapshot.crypto_quotes.items():
        lines.append(f"- {symbol}: ${q.price:,.2f} ({q.change_24h_pct:+.2f}% 24h)")
    if snapshot.metal_quote:
        q = snapshot.metal_quote
        lines.append(f"- XAU/USD: ${q.price:,.2f} ({q.change_24h_pct:+.2f}% 24h)")
    if snapshot.sentiment:
        lines.append(f"- Crypto Fear & Greed: {snapshot.sentiment.value} ({snapshot.sentiment.label})")
    if snapshot.news:
        lines.append("Headlines:")
        lines.extend(f"- {n.title} ({n.source_name})" if n.source_name else f"- {n.title}" for n in snapshot.news[:5])
    return "\n".join(lines)
