from fastapi import APIRouter

from tradesight.api.endpoints import health
from tradesight.api.endpoints import screenshots
from tradesight.api.endpoints import chat
from tradesight.api.endpoints import market

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["_meta"])
router.include_router(screenshots.router, prefix="/screenshots", tags=["screenshots"])
router.include_router(chat.router, prefix="/chat", tags=["chat"])
router.include_router(market.router, prefix="/market", tags=["market"])
