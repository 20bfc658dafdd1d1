# tradesight/core/classifiers.py
"""
Map free-text table cells onto closed vocabularies.

Screenshots often put a numeric order/position id in the same column as the
trade status, so a purely numeric status cell is rejected instead of being
guessed into Open/Closed.
"""
from __future__ import annotations

import re
from typing import Any, Literal, Optional

TradeStatus = Literal["Open", "Closed"]
CloseReason = Literal["TP", "SL", "EarlyClose", "Other"]
TradeSide = Literal["Buy", "Sell"]
TradeDirection = Literal["Long", "Short"]
MarginMode = Literal["Cross", "Isolated"]

_CLOSED_WORDS = {"closed", "all closed", "completed", "complete"}
# "Long", "Close Long", "Open Short"; whole words only
_LONG_RE = re.compile(r"\blong\b")
_SHORT_RE = re.compile(r"\bshort\b")


def _norm(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return re.sub(r"\s+", " ", str(value)).strip().lower()


def _looks_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    text = str(value).strip().lstrip("#")
    if not text:
        return False
    if text.isdigit():
        return True
    try:
        float(text.replace(",", ""))
    except ValueError:
        return False
    return True


def classify_status(value: Any) -> Optional[TradeStatus]:
    if value is None or _looks_numeric(value):
        return None
    text = _norm(value)
    if not text:
        return None

    if text == "open":
        return "Open"
    if text in _CLOSED_WORDS:
        return "Closed"

    if text.startswith("open"):
        return "Open"
    if "closed" in text or "complete" in text:
        return "Closed"
    return None


def classify_reason(value: Any) -> Optional[CloseReason]:
    text = _norm(value)
    if not text:
        return None

    if text == "tp":
        return "TP"
    if text == "sl":
        return "SL"
    if text == "early close":
        return "EarlyClose"

    if "take profit" in text or "tp" in text:
        return "TP"
    if "stop loss" in text or "sl" in text:
        return "SL"
    if "early" in text and "clos" in text:
        return "EarlyClose"
    return "Other"


def classify_side(value: Any) -> Optional[TradeSide]:
    text = _norm(value)
    if text.startswith("buy") or _LONG_RE.search(text):
        return "Buy"
    if text.startswith("sell") or _SHORT_RE.search(text):
        return "Sell"
    return None


def classify_direction(value: Any) -> Optional[TradeDirection]:
    text = _norm(value)
    if _LONG_RE.search(text) or text == "buy":
        return "Long"
    if _SHORT_RE.search(text) or text == "sell":
        return "Short"
    return None


def classify_margin_mode(value: Any) -> Optional[MarginMode]:
    text = _norm(value)
    if text.startswith("cross"):
        return "Cross"
    if text.startswith("isolated"):
        return "Isolated"
    return None


def direction_to_side(direction: Optional[str]) -> Optional[TradeSide]:
    return {"Long": "Buy", "Short": "Sell"}.get(direction or "")


def side_to_direction(side: Optional[str]) -> Optional[TradeDirection]:
    return {"Buy": "Long", "Sell": "Short"}.get(side or "")
