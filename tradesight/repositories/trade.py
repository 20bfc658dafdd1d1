from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from tradesight.core.exceptions import NotFoundError
from tradesight.models.session import TradingSession
from tradesight.models.trade import Trade
from tradesight.repositories.base import BaseRepository
from tradesight.schemas.extraction import ExtractedTradeRecord


def _to_decimal(v: Any) -> Optional[Decimal]:
    if v is None:
        return None
    return Decimal(str(v))


def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class TradeRepository(BaseRepository[Trade]):
    def __init__(self, session: Session):
        super().__init__(session, Trade)

    @staticmethod
    def _clamp_text(value: Optional[str], limit: int) -> Optional[str]:
        if value is None:
            return None
        s = str(value)
        return s if len(s) <= limit else s[:limit]

    def recent_for_session(self, session_id, limit: int = 10) -> list[Trade]:
        return list(self.find(
            where={"session_id": session_id},
            order_by=[("created_at", "desc")],
            take=limit,
        ))

    def recent_for_user(self, user_id: str, limit: int = 50) -> list[Trade]:
        """Most recent trades across every session the user owns."""
        session_ids = [
            s.id for s in self.session.query(TradingSession.id).filter(TradingSession.user_id == user_id)
        ]
        if not session_ids:
            return []
        return list(self.find(
            where={"session_id": {"in": session_ids}},
            order_by=[("created_at", "desc")],
            take=limit,
        ))

    def create_from_extracted(self, session_id, record: ExtractedTradeRecord, commit: bool = True) -> Trade:
        """
        Journal an extracted screenshot row into a trading session.

        Raises:
            NotFoundError: no such trading session
        """
        if self.session.get(TradingSession, session_id) is None:
            raise NotFoundError(f"Trading session {session_id} not found")

        return self.create({
            "session_id": session_id,
            "source": "AI",
            "variant": record.variant.value if record.variant else None,
            "symbol": self._clamp_text(record.symbol, 40),
            "side": record.side,
            "direction": record.direction,
            "volume": _to_decimal(record.volume),
            "open_price": _to_decimal(record.open_price),
            "close_price": _to_decimal(record.close_price),
            "take_profit": _to_decimal(record.take_profit),
            "stop_loss": _to_decimal(record.stop_loss),
            "open_time": _naive_utc(record.open_time),
            "close_time": _naive_utc(record.close_time),
            "status": record.status,
            "reason": record.reason,
            "profit_loss": _to_decimal(record.profit_loss_usd),
            "margin_mode": record.margin_mode,
            "margin_history_note": record.margin_history_note,
        }, commit=commit)
