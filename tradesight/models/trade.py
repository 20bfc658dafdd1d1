import uuid
from sqlalchemy import Column, String, DateTime, Numeric, Index, ForeignKey, Uuid, text
from sqlalchemy.orm import relationship

from tradesight.models.base import Base
from tradesight.models.enums import (
    CloseReason,
    MarginMode,
    TradeDirection,
    TradeSide,
    TradeSource,
    TradeStatus,
)
from tradesight.models.timestamps import utcnow


class Trade(Base):
    __tablename__ = "trades"
    __table_args__ = (
        Index("idx_trades_session_created", "session_id", "created_at"),
        Index("idx_trades_symbol", "symbol"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("trading_sessions.id", ondelete="CASCADE"), nullable=False)

    source = Column(TradeSource, server_default=text("'AI'"))
    variant = Column(String(10))  # forex | crypto

    symbol = Column(String(40))
    side = Column(TradeSide)
    direction = Column(TradeDirection)
    volume = Column(Numeric(20, 8))

    open_price = Column(Numeric(18, 6))
    close_price = Column(Numeric(18, 6))
    take_profit = Column(Numeric(18, 6))
    stop_loss = Column(Numeric(18, 6))
    open_time = Column(DateTime)
    close_time = Column(DateTime)

    status = Column(TradeStatus)
    reason = Column(CloseReason)
    profit_loss = Column(Numeric(18, 6))

    margin_mode = Column(MarginMode)
    margin_history_note = Column(String)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("TradingSession", back_populates="trades", lazy="selectin")
