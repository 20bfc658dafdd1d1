from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ExtractionVariant(str, Enum):
    FOREX = "forex"
    CRYPTO = "crypto"


class ExtractedTradeRecord(BaseModel):
    """
    One trade row read off a history-table screenshot.

    Every field is independently optional: a partial record is the normal
    outcome of an extraction, not an error.
    """

    variant: Optional[ExtractionVariant] = None

    # Common
    symbol: Optional[str] = None
    side: Optional[Literal["Buy", "Sell"]] = None
    volume: Optional[float] = None
    open_price: Optional[float] = None
    close_price: Optional[float] = None
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None
    status: Optional[Literal["Open", "Closed"]] = None
    reason: Optional[Literal["TP", "SL", "EarlyClose", "Other"]] = None
    profit_loss_usd: Optional[float] = None

    # Forex table
    take_profit: Optional[float] = None
    stop_loss: Optional[float] = None

    # Crypto futures table
    margin_mode: Optional[Literal["Cross", "Isolated"]] = None
    direction: Optional[Literal["Long", "Short"]] = None
    margin_history_note: Optional[str] = Field(
        None, description="Margin adjustment history cell, usually 'View History'."
    )

    def is_empty(self) -> bool:
        return all(v is None for k, v in self.model_dump().items() if k != "variant")

    class Config:
        json_schema_extra = {
            "example": {
                "variant": "forex",
                "symbol": "XAU/USD",
                "side": "Buy",
                "volume": 0.01,
                "open_price": 2041.12,
                "close_price": 2060.5,
                "open_time": "2024-06-16T20:50:55Z",
                "close_time": "2024-06-16T23:41:00Z",
                "status": "Closed",
                "reason": "TP",
                "profit_loss_usd": 19.38,
                "take_profit": 2060.5,
                "stop_loss": 2030.0,
                "direction": "Long",
            }
        }
