from fastapi import WebSocket
from typing import Dict, Set, Any, Iterable
import json
import logging
from datetime import datetime, timezone
from uuid import uuid4

logger = logging.getLogger(__name__)


class ConnectionManager:
    """WebSocket connections per signed-in user, used to push chat events"""

    def __init__(self):
        # A user may have several devices connected
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.connection_metadata: Dict[WebSocket, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        """Accept a WebSocket connection and register it for user_id"""
        try:
            await websocket.accept()

            self.active_connections.setdefault(user_id, set()).add(websocket)
            self.connection_metadata[websocket] = {
                "user_id": user_id,
                "connected_at": datetime.now(timezone.utc),
                "connection_id": str(uuid4())
            }

            logger.info(f"WebSocket connected: user_id={user_id}")

            await self.send_personal_message(user_id, {
                "type": "connection_confirmed",
                "message": "WebSocket connection established",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "user_id": user_id
            })

        except Exception as e:
            logger.error(f"Error connecting WebSocket: {str(e)}")
            raise

    def disconnect(self, websocket: WebSocket):
        metadata = self.connection_metadata.pop(websocket, None)
        if not metadata:
            return

        user_id = metadata["user_id"]
        connections = self.active_connections.get(user_id)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.active_connections[user_id]

        logger.info(f"WebSocket disconnected: user_id={user_id}")

    def is_connected(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_personal_message(self, user_id: str, message: Dict[str, Any]) -> int:
        """Send to every connection of user_id; returns how many sockets got it"""
        if user_id not in self.active_connections:
            logger.debug(f"No active connections for user {user_id}")
            return 0

        message_json = json.dumps(message, default=str)
        connections_to_remove = []
        sent = 0

        for websocket in self.active_connections[user_id].copy():
            try:
                await websocket.send_text(message_json)
                sent += 1
            except Exception as e:
                logger.error(f"Error sending message to user {user_id}: {str(e)}")
                connections_to_remove.append(websocket)

        for websocket in connections_to_remove:
            self.disconnect(websocket)

        return sent

    async def broadcast_to_users(self, user_ids: Iterable[str], message: Dict[str, Any]) -> int:
        sent_count = 0
        for user_id in user_ids:
            sent_count += await self.send_personal_message(user_id, message)
        return sent_count

    def get_connection_stats(self) -> Dict[str, Any]:
        return {
            "total_connections": sum(len(c) for c in self.active_connections.values()),
            "total_users": len(self.active_connections),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }


class ChatNotifier:
    """Pushes chat events to the participants of a chat"""

    def __init__(self, connection_manager: ConnectionManager):
        self.manager = connection_manager

    async def new_message(self, chat_id: str, participants: Iterable[str], message: Dict[str, Any]):
        try:
            await self.manager.broadcast_to_users(participants, {
                "type": "new_message",
                "chat_id": chat_id,
                "data": message,
                "timestamp": datetime.now(timezone.utc).isoformat()
            })
        except Exception as e:
            logger.error(f"Error pushing new message for chat {chat_id}: {str(e)}")

    async def chat_read(self, chat_id: str, participants: Iterable[str], reader_id: str):
        try:
            await self.manager.broadcast_to_users(participants, {
                "type": "chat_read",
                "chat_id": chat_id,
                "data": {"user_id": reader_id},
                "timestamp": datetime.now(timezone.utc).isoformat()
            })
        except Exception as e:
            logger.error(f"Error pushing read receipt for chat {chat_id}: {str(e)}")

    async def chat_deleted(self, chat_id: str, participants: Iterable[str]):
        try:
            await self.manager.broadcast_to_users(participants, {
                "type": "chat_deleted",
                "chat_id": chat_id,
                "timestamp": datetime.now(timezone.utc).isoformat()
            })
        except Exception as e:
            logger.error(f"Error pushing chat deletion for chat {chat_id}: {str(e)}")


connection_manager = ConnectionManager()
chat_notifier = ChatNotifier(connection_manager)
