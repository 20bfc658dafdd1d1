from sqlalchemy import Column, Integer, String, DateTime, Index, Text

from tradesight.models.base import Base
from tradesight.models.enums import MessageType
from tradesight.models.timestamps import utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("idx_chat_messages_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    message = Column(Text, nullable=False)
    message_type = Column(MessageType, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
