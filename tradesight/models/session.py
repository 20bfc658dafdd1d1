import uuid
from sqlalchemy import Column, String, DateTime, Index, Numeric, Uuid
from sqlalchemy.orm import relationship

from tradesight.models.base import Base
from tradesight.models.timestamps import utcnow


class TradingSession(Base):
    """A user's trading journal; trades are recorded against one session."""

    __tablename__ = "trading_sessions"
    __table_args__ = (
        Index("idx_trading_sessions_user_created", "user_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    name = Column(String(120), nullable=False)
    initial_capital = Column(Numeric(18, 2))
    current_capital = Column(Numeric(18, 2))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    trades = relationship(
        "Trade",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
