from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from starlette.websockets import WebSocketState
from typing import Optional
import logging
import json
from datetime import datetime, timezone

from ..auth.dependencies import get_current_user
from ..auth.firebase_auth import firebase_auth
from ..services.websocket_service import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])


@router.websocket("/chats")
async def websocket_chats(
    websocket: WebSocket,
    token: str = Query(..., description="Firebase ID token")
):
    """Push channel for chat events (new_message, chat_read, chat_deleted)"""
    user_data = await authenticate_websocket_token(token)
    if not user_data:
        await websocket.close(code=1008, reason="Authentication failed")
        return

    user_id = user_data["uid"]

    try:
        await connection_manager.connect(websocket, user_id)

        while True:
            try:
                data = await websocket.receive_text()
                message = json.loads(data)
                await handle_websocket_message(websocket, message)

            except WebSocketDisconnect:
                break
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({
                    "type": "error",
                    "message": "Invalid JSON format",
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }))

    except Exception as e:
        logger.error(f"WebSocket connection error: {str(e)}")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close(code=1011, reason="Internal server error")

    finally:
        connection_manager.disconnect(websocket)


async def authenticate_websocket_token(token: str) -> Optional[dict]:
    if not token:
        return None
    return await firebase_auth.verify_token(token)


async def handle_websocket_message(websocket: WebSocket, message: dict):
    """The client only sends keep-alives; chat writes go through the REST API"""
    message_type = message.get('type') if isinstance(message, dict) else None

    if message_type == 'ping':
        await websocket.send_text(json.dumps({
            "type": "pong",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }))
    else:
        await websocket.send_text(json.dumps({
            "type": "error",
            "message": f"Unknown message type: {message_type}",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }))


@router.get("/stats")
async def get_websocket_stats(current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": connection_manager.get_connection_stats()}
