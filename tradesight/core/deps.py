# tradesight/core/deps.py
"""FastAPI dependency providers. Tests swap these via app.dependency_overrides."""
from fastapi import Depends
from sqlalchemy.orm import Session

from tradesight.core.config import Settings, get_settings
from tradesight.core.gemini_client import GenerativeModel, get_generative_model
from tradesight.core.retry import RetryScheduler
from tradesight.database.session import get_db
from tradesight.services.chat import ChatService
from tradesight.services.market_data import MarketDataAggregator
from tradesight.services.screenshot import ScreenshotAnalyzer
from tradesight.services.web_search import WebSearchClient


def get_model(settings: Settings = Depends(get_settings)) -> GenerativeModel:
    return get_generative_model(settings)


def get_retry(settings: Settings = Depends(get_settings)) -> RetryScheduler:
    return RetryScheduler(
        max_attempts=settings.ai_max_attempts,
        base_delay_ms=settings.ai_backoff_base_ms,
        jitter_ms=settings.ai_backoff_jitter_ms,
    )


def get_aggregator(settings: Settings = Depends(get_settings)) -> MarketDataAggregator:
    return MarketDataAggregator(settings)


def get_search(settings: Settings = Depends(get_settings)) -> WebSearchClient:
    return WebSearchClient(settings=settings)


def get_analyzer(
    model: GenerativeModel = Depends(get_model),
    retry: RetryScheduler = Depends(get_retry),
) -> ScreenshotAnalyzer:
    return ScreenshotAnalyzer(model, retry)


def get_chat_service(
    model: GenerativeModel = Depends(get_model),
    retry: RetryScheduler = Depends(get_retry),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
    search: WebSearchClient = Depends(get_search),
    db: Session = Depends(get_db),
) -> ChatService:
    return ChatService(model, db=db, aggregator=aggregator, search=search, retry=retry)
