from typing import Optional
from sqlalchemy.orm import Session
from tradesight.repositories.base import BaseRepository
from tradesight.models.session import TradingSession


class TradingSessionRepository(BaseRepository[TradingSession]):
    def __init__(self, session: Session):
        super().__init__(session, TradingSession)

    def get(self, session_id) -> Optional[TradingSession]:
        return self.find_one(where={"id": session_id})

    def recent_for_user(self, user_id: str, limit: int = 5) -> list[TradingSession]:
        return list(self.find(
            where={"user_id": user_id},
            order_by=[("created_at", "desc")],
            take=limit,
        ))
