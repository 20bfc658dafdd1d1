# tradesight/core/assembler.py
"""
Turn the raw object recovered from a model response into an
ExtractedTradeRecord, one declarative field mapping per table layout.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from tradesight.core.classifiers import (
    classify_direction,
    classify_margin_mode,
    classify_reason,
    classify_side,
    classify_status,
    direction_to_side,
    side_to_direction,
)
from tradesight.core.normalizers import clean_text, parse_datetime, parse_number
from tradesight.schemas.extraction import ExtractedTradeRecord, ExtractionVariant
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)


def _assemble_forex(raw: Dict[str, Any], now: Optional[datetime]) -> ExtractedTradeRecord:
    side = classify_side(raw.get("type"))
    return ExtractedTradeRecord(
        variant=ExtractionVariant.FOREX,
        symbol=clean_text(raw.get("symbol")),
        side=side,
        direction=side_to_direction(side),
        volume=parse_number(raw.get("volumeLot")),
        open_price=parse_number(raw.get("openPrice")),
        close_price=parse_number(raw.get("closePrice")),
        take_profit=parse_number(raw.get("tp")),
        stop_loss=parse_number(raw.get("sl")),
        status=classify_status(raw.get("position")),
        open_time=parse_datetime(raw.get("openTime"), now=now),
        close_time=parse_datetime(raw.get("closeTime"), now=now),
        reason=classify_reason(raw.get("reason")),
        profit_loss_usd=parse_number(raw.get("pnlUsd")),
    )


def _assemble_crypto(raw: Dict[str, Any], now: Optional[datetime]) -> ExtractedTradeRecord:
    direction = classify_direction(raw.get("direction"))
    status_cell = raw.get("status") if raw.get("status") is not None else raw.get("position")
    return ExtractedTradeRecord(
        variant=ExtractionVariant.CRYPTO,
        margin_mode=classify_margin_mode(raw.get("marginMode")),
        direction=direction,
        margin_history_note=clean_text(raw.get("marginAdjustmentHistory")),
        status=classify_status(status_cell),
        open_time=parse_datetime(raw.get("openTime"), now=now),
        close_time=parse_datetime(raw.get("closeTime"), now=now),
        # Common fields back-filled from the futures columns
        symbol=clean_text(raw.get("futuresSymbol")),
        side=direction_to_side(direction),
        open_price=parse_number(raw.get("avgEntryPrice")),
        close_price=parse_number(raw.get("avgClosePrice")),
        profit_loss_usd=parse_number(raw.get("realizedPnl")),
        volume=parse_number(raw.get("closingQuantity")),
    )


def assemble(
    raw: Any,
    variant: ExtractionVariant,
    *,
    now: Optional[datetime] = None,
) -> ExtractedTradeRecord:
    """
    Normalize a raw extraction object field by field. Never raises: anything
    that cannot be read is left as None.

    `now` anchors timestamps printed without a year.
    """
    if not isinstance(raw, dict):
        logger.warning(f"[Assembler] Expected an object, got {type(raw).__name__}")
        raw = {}

    if ExtractionVariant(variant) is ExtractionVariant.CRYPTO:
        record = _assemble_crypto(raw, now)
    else:
        record = _assemble_forex(raw, now)

    logger.info(
        f"[Assembler] {record.variant.value} record: symbol={record.symbol} "
        f"side={record.side} status={record.status} (raw status={raw.get('status', raw.get('position'))!r})"
    )
    return record
