# tradesight/api/endpoints/screenshots.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from tradesight.core.deps import get_analyzer
from tradesight.core.exceptions import ValidationError
from tradesight.database.session import get_db
from tradesight.repositories.trade import TradeRepository
from tradesight.schemas.extraction import ExtractedTradeRecord, ExtractionVariant
from tradesight.services.screenshot import ScreenshotAnalyzer
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=ExtractedTradeRecord)
async def analyze_screenshot(
    response: Response,
    image: UploadFile = File(...),
    variant: ExtractionVariant = Query(ExtractionVariant.FOREX),
    session_id: Optional[UUID] = Form(None),
    analyzer: ScreenshotAnalyzer = Depends(get_analyzer),
    db: Session = Depends(get_db),
):
    """
    Read one trade row off a forex or crypto-futures history screenshot.
    When `session_id` is given the row is also journaled into that session
    and the new trade id is returned in the X-Trade-Id header.
    """
    if image.content_type and not image.content_type.startswith("image/"):
        raise ValidationError("File must be an image")

    raw = await image.read()
    record = await analyzer.analyze(raw, variant, mime_type=image.content_type or None)

    if session_id is not None:
        trade = TradeRepository(db).create_from_extracted(session_id, record)
        response.headers["X-Trade-Id"] = str(trade.id)
        logger.info(f"[Screenshots] journaled trade {trade.id} into session {session_id}")

    return record
