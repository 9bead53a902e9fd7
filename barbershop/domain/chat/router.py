"""Chat router - assistant endpoints used by the storefront chat widget"""

import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...config import CHAT_RATE_LIMIT, CHAT_RATE_WINDOW_SECONDS
from ...firebase import get_db, get_http
from ...rate_limiter import create_rate_limiter
from .schemas import ChatRequest, ChatResponse
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])

chat_rate_limit = create_rate_limiter(CHAT_RATE_LIMIT, CHAT_RATE_WINDOW_SECONDS, key_prefix="rate:chat")


def get_chat_service(http: httpx.AsyncClient = Depends(get_http), db=Depends(get_db)) -> ChatService:
    """Dependency injection for ChatService"""
    return ChatService(http, db)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    service: ChatService = Depends(get_chat_service),
    _: None = Depends(chat_rate_limit),
):
    message = await service.chat([m.model_dump() for m in data.messages])
    return ChatResponse(message=message)


@router.post("/stream-chat")
async def stream_chat(
    data: ChatRequest,
    service: ChatService = Depends(get_chat_service),
    _: None = Depends(chat_rate_limit),
):
    return StreamingResponse(
        service.stream([m.model_dump() for m in data.messages]),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
