from sqlalchemy.orm import Session

from tradesight.models.chat_message import ChatMessage
from tradesight.repositories.base import BaseRepository


class ChatMessageRepository(BaseRepository[ChatMessage]):
    def __init__(self, session: Session):
        super().__init__(session, ChatMessage)

    def add_exchange(self, user_id: str, message: str, reply: str) -> list[ChatMessage]:
        """User message and assistant reply, committed together."""
        user_msg = self.create({"user_id": user_id, "message": message, "message_type": "user"}, commit=False)
        ai_msg = self.create({"user_id": user_id, "message": reply, "message_type": "ai"}, commit=False)
        self._finish(True, user_msg, ai_msg)
        return [user_msg, ai_msg]

    def history(self, user_id: str, limit: int = 20) -> list[ChatMessage]:
        """Newest first."""
        return list(self.find(
            where={"user_id": user_id},
            order_by=[("created_at", "desc"), ("id", "desc")],
            take=limit,
        ))
