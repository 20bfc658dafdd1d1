from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field


class Quote(BaseModel):
    price: float
    change_24h_abs: float = 0.0
    change_24h_pct: float = 0.0


class SentimentIndex(BaseModel):
    value: int = Field(..., ge=0, le=100)
    label: str
    as_of: datetime


class NewsItem(BaseModel):
    id: str
    title: str
    summary: str
    link: str
    published_at: Optional[datetime] = None
    source_name: str = ""
    source_url: str = ""
    image_url: Optional[str] = None
    categories: Set[str] = Field(default_factory=set)


class MarketSnapshot(BaseModel):
    """
    Independently sourced market leaves. Any leaf may be missing without
    affecting the others; `sources` records which provider served each leg
    ("static" when the fixed fallback was used).
    """

    crypto_quotes: Dict[str, Quote] = Field(default_factory=dict)
    metal_quote: Optional[Quote] = None
    sentiment: Optional[SentimentIndex] = None
    news: List[NewsItem] = Field(default_factory=list, max_length=10)
    sources: Dict[str, str] = Field(default_factory=dict)
    as_of: Optional[datetime] = None

    @property
    def degraded_legs(self) -> List[str]:
        return [leg for leg, source in self.sources.items() if source == "static"]


class SearchResult(BaseModel):
    title: str
    url: str
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    content: Optional[str] = None
