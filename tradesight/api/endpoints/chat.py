# tradesight/api/endpoints/chat.py
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from tradesight.core.deps import get_chat_service
from tradesight.schemas.chat import ChatMessageOut, ChatReply, ChatRequest, GreetingOut
from tradesight.services.chat import ChatService, greeting, market_status

router = APIRouter()


@router.post("", response_model=ChatReply)
async def chat(payload: ChatRequest, service: ChatService = Depends(get_chat_service)):
    reply = await service.process_message(payload.user_id, payload.message)
    service.save_exchange(payload.user_id, payload.message, reply)
    return ChatReply(reply=reply)


@router.get("/history/{user_id}", response_model=List[ChatMessageOut])
def chat_history(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    service: ChatService = Depends(get_chat_service),
):
    return service.history(user_id, limit=limit)


@router.get("/greeting", response_model=GreetingOut)
def chat_greeting(name: Optional[str] = Query(None, max_length=60)):
    now = datetime.now(timezone.utc)
    return GreetingOut(greeting=greeting(now, name), market_status=market_status(now))
