# tradesight/api/endpoints/market.py
from fastapi import APIRouter, Depends

from tradesight.core.deps import get_aggregator
from tradesight.schemas.market import MarketSnapshot
from tradesight.services.market_data import MarketDataAggregator

router = APIRouter()


@router.get("/snapshot", response_model=MarketSnapshot)
async def market_snapshot(aggregator: MarketDataAggregator = Depends(get_aggregator)):
    return await aggregator.fetch_snapshot()
