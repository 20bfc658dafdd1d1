# tradesight/services/web_search.py
from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from tradesight.core.config import Settings, get_settings
from tradesight.core.normalizers import parse_datetime
from tradesight.schemas.market import SearchResult
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)

EXA_BASE_URL = "https://api.exa.ai"
QUERY_SUFFIX = "market finance trading analysis current price"
NUM_RESULTS = 5
SEARCH_WINDOW = timedelta(hours=24)

ALLOWED_DOMAINS = [
    "reuters.com",
    "bloomberg.com",
    "ft.com",
    "wsj.com",
    "cnbc.com",
    "marketwatch.com",
    "investing.com",
    "finance.yahoo.com",
    "tradingview.com",
    "seekingalpha.com",
]

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class WebSearchClient:
    """Thin async client over Exa's search and contents endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        base_url: str = EXA_BASE_URL,
    ):
        settings = settings or get_settings()
        self.api_key = api_key or settings.exa_api_key
        self.timeout = settings.http_timeout_seconds
        self.base_url = base_url.rstrip("/")
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key or "", "Content-Type": "application/json"}

    async def _post(self, client: httpx.AsyncClient, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = await client.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
        resp.raise_for_status()
        return resp.json() or {}

    async def search(
        self,
        client: httpx.AsyncClient,
        query: str,
        *,
        start: datetime,
        end: datetime,
        num_results: int = NUM_RESULTS,
        include_domains: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        data = await self._post(client, "/search", {
            "query": query,
            "numResults": num_results,
            "type": "keyword",
            "includeDomains": include_domains or ALLOWED_DOMAINS,
            "startPublishedDate": _iso(start),
            "endPublishedDate": _iso(end),
        })
        results = data.get("results")
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    async def get_contents(self, client: httpx.AsyncClient, result_id: str) -> Optional[str]:
        data = await self._post(client, "/contents", {"ids": [result_id], "text": True})
        rows = data.get("results") or []
        if rows and isinstance(rows[0], dict) and rows[0].get("text"):
            return rows[0]["text"]
        # older response shape
        legacy = data.get("contents") or []
        if legacy and isinstance(legacy[0], dict):
            return legacy[0].get("extract") or None
        return None

    async def _content_or_none(self, client: httpx.AsyncClient, result: Dict[str, Any]) -> Optional[str]:
        result_id = result.get("id")
        if not result_id:
            return None
        try:
            return await self.get_contents(client, str(result_id))
        except Exception as e:
            logger.warning(f"[WebSearch] content fetch failed for {result_id}: {e}")
            return None

    async def search_market_context(self, query: str, *, now: Optional[datetime] = None) -> List[SearchResult]:
        """
        Recent finance-domain results for `query`. Never raises: a failed
        search yields [] and a failed content fetch leaves that result's
        content as None.
        """
        if not self.api_key:
            logger.info("[WebSearch] no Exa API key configured, skipping search")
            return []

        now = now or datetime.now(timezone.utc)
        full_query = f"{query} {QUERY_SUFFIX}"

        try:
            if self._client is not None:
                return await self._search_with(self._client, full_query, now)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await self._search_with(client, full_query, now)
        except Exception as e:
            logger.warning(f"[WebSearch] search failed for {full_query!r}: {e}")
            return []

    async def _search_with(self, client: httpx.AsyncClient, full_query: str, now: datetime) -> List[SearchResult]:
        raw = await self.search(client, full_query, start=now - SEARCH_WINDOW, end=now)
        if not raw:
            return []

        contents = await asyncio.gather(*(self._content_or_none(client, r) for r in raw))
        return [
            SearchResult(
                title=r.get("title") or "",
                url=r.get("url") or "",
                published_at=parse_datetime(r.get("publishedDate")),
                author=r.get("author") or None,
                content=content,
            )
            for r, content in zip(raw, contents)
        ]


async def search_market_context(
    query: str,
    *,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> List[SearchResult]:
    return await WebSearchClient(settings=settings).search_market_context(query, now=now)


def render_search_context(results: List[SearchResult]) -> str:
    if not results:
        return ""
    blocks = []
    for r in results:
        summary = r.title
        if r.published_at:
            summary += f" ({r.published_at.date().isoformat()})"
        if r.content:
            sentences = [s.strip() for s in _SENTENCE_SPLIT.split(r.content) if s.strip()][:2]
            if sentences:
                summary += "\n" + ". ".join(sentences) + "."
        blocks.append(summary)
    return "Relevant Market Information:\n" + "\n\n".join(blocks)
