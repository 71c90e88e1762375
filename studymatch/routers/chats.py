"""
Chat Router - API endpoints for partner chats
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user
from ..models.database_models import Message
from ..services.chat_service import chat_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])

# ===== Request Models =====

class StartChatRequest(BaseModel):
    partnerId: str = Field(..., description="UID of the partner to chat with")

class SendMessageRequest(BaseModel):
    text: str = Field(..., description="Message content")

# ===== Chat Endpoints =====

@router.post("/")
async def start_chat(body: StartChatRequest, current_user: dict = Depends(get_current_user)):
    """Open the chat with a partner, creating it on first use"""
    try:
        chat_id = await chat_service.get_or_create_chat(current_user["uid"], body.partnerId)
        return {"success": True, "data": {"id": chat_id}}
    except Exception as e:
        raise to_http_exception(e, "Starting chat")


@router.get("/threads")
async def get_threads(current_user: dict = Depends(get_current_user)):
    try:
        threads = await chat_service.get_inbox_threads(current_user["uid"])
        return {"success": True, "data": threads, "count": len(threads)}
    except Exception as e:
        raise to_http_exception(e, "Loading inbox")


@router.get("/unread")
async def get_total_unread(current_user: dict = Depends(get_current_user)):
    try:
        total = await chat_service.get_total_unread_count(current_user["uid"])
        return {"success": True, "data": {"unreadCount": total}}
    except Exception as e:
        raise to_http_exception(e, "Counting unread messages")


@router.get("/recent")
async def get_recent(
    limit: int = Query(3, ge=1, le=20),
    current_user: dict = Depends(get_current_user)
):
    try:
        messages = await chat_service.get_recent_messages(current_user["uid"], limit=limit)
        return {"success": True, "data": messages}
    except Exception as e:
        raise to_http_exception(e, "Loading recent messages")

# ===== Message Endpoints =====

@router.get("/{chat_id}/messages")
async def get_messages(
    chat_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: dict = Depends(get_current_user)
):
    try:
        messages = await chat_service.get_messages(chat_id, current_user["uid"], limit=limit)
        return {"success": True, "data": messages, "count": len(messages)}
    except Exception as e:
        raise to_http_exception(e, "Loading messages")


@router.post("/{chat_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user)
):
    try:
        message = await chat_service.send_message(chat_id, current_user["uid"], body.text)
        return {"success": True, "data": Message(**message).dict()}
    except Exception as e:
        raise to_http_exception(e, "Sending message")


@router.post("/{chat_id}/read")
async def mark_read(chat_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await chat_service.mark_chat_as_read(chat_id, current_user["uid"])
        return {"success": True}
    except Exception as e:
        raise to_http_exception(e, "Marking chat as read")


@router.get("/{chat_id}/unread")
async def get_chat_unread(chat_id: str, current_user: dict = Depends(get_current_user)):
    try:
        count = await chat_service.get_unread_count(chat_id, current_user["uid"])
        return {"success": True, "data": {"unreadCount": count}}
    except Exception as e:
        raise to_http_exception(e, "Counting unread messages")


@router.delete("/{chat_id}")
async def delete_chat(chat_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await chat_service.delete_chat(chat_id, current_user["uid"])
        return {"success": True, "message": "Chat deleted"}
    except Exception as e:
        raise to_http_exception(e, "Deleting chat")
