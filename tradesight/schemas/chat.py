from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    message: str = Field(..., description="What the user typed.")

    class Config:
        json_schema_extra = {
            "example": {"user_id": "u-123", "message": "How is gold doing today?"}
        }


class ChatReply(BaseModel):
    reply: str


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    message: str
    message_type: Literal["user", "ai"]
    created_at: datetime


class GreetingOut(BaseModel):
    greeting: str
    market_status: Optional[dict[str, bool]] = None
