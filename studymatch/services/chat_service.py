"""
Chat Service - one chat per pair of partners.

Messages live in the chats/<id>/messages subcollection. Read state is kept
per participant in the chat's lastReadBy map; a message is unread for a user
when it was sent after their lastReadBy entry, by somebody else, and is not a
system message.
"""

from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import asyncio
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS, SYSTEM_SENDER_ID, messages_path
from .partner_service import partner_service
from .user_service import user_service, fallback_name
from .websocket_service import chat_notifier

logger = logging.getLogger(__name__)

RECENT_MESSAGES_PER_CHAT = 5


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_unread_for(message: Dict[str, Any], uid: str, last_read: Optional[datetime]) -> bool:
    sender = message.get('senderId')
    if sender in (uid, SYSTEM_SENDER_ID):
        return False
    sent_at = _as_utc(message.get('sentAt'))
    if last_read is None:
        return True
    return sent_at is not None and sent_at > last_read


class ChatService:
    """Service for managing chats and their messages"""

    def __init__(self, db=None, partners=None, users=None, notifier=None):
        self.db = db or database_service
        self.partners = partners or partner_service
        self.users = users or user_service
        self.notifier = notifier or chat_notifier

    # ===== Chat Operations =====

    async def get_chat(self, chat_id: str) -> Dict[str, Any]:
        success, chat, _ = await self.db.get_document(COLLECTIONS['chats'], chat_id)
        if not success or not chat:
            raise ValueError("Chat not found")
        return chat

    async def _get_participant_chat(self, chat_id: str, uid: str) -> Dict[str, Any]:
        chat = await self.get_chat(chat_id)
        if uid not in chat.get('participants', []):
            raise PermissionError("You are not a participant in this chat")
        return chat

    async def _shared_courses(self, uid1: str, uid2: str) -> List[str]:
        partnerships = await self.partners.get_accepted_partners(uid1)
        return sorted({p['course'] for p in partnerships if p['partnerId'] == uid2 and p.get('course')})

    async def get_user_chats(self, uid: str) -> List[Dict[str, Any]]:
        success, chats, error = await self.db.query_documents(
            COLLECTIONS['chats'], [('participants', 'array_contains', uid)]
        )
        if not success:
            raise RuntimeError(f"Could not load chats: {error}")
        return chats

    async def _visible_chats(self, uid: str) -> List[Dict[str, Any]]:
        """uid's chats whose counterpart uid has not blocked"""
        chats, blocked = await asyncio.gather(
            self.get_user_chats(uid), self.partners.get_blocked_user_ids(uid)
        )
        return [c for c in chats if self._counterpart(c, uid) not in blocked]

    @staticmethod
    def _counterpart(chat: Dict[str, Any], uid: str) -> Optional[str]:
        return next((p for p in chat.get('participants', []) if p != uid), None)

    async def get_or_create_chat(self, uid1: str, uid2: str) -> str:
        """
        Return the chat id for the pair, creating it if needed.

        A new chat requires at least one partnership between the two users and
        opens with a system message listing the courses they share.
        """
        if uid1 == uid2:
            raise ValueError("Cannot start a chat with yourself")

        participants = sorted([uid1, uid2])
        success, existing, error = await self.db.query_documents(
            COLLECTIONS['chats'], [('participants', '==', participants)], limit=1
        )
        if not success:
            raise RuntimeError(f"Could not look up chat: {error}")

        shared_courses = await self._shared_courses(uid1, uid2)

        if existing:
            chat = existing[0]
            if shared_courses and sorted(chat.get('sharedCourses') or []) != shared_courses:
                await self.db.update_document(COLLECTIONS['chats'], chat['id'], {'sharedCourses': shared_courses})
            return chat['id']

        if not shared_courses:
            raise PermissionError("You can only chat with your study partners")

        ok, chat_id, error = await self.db.create_document(COLLECTIONS['chats'], {
            'participants': participants,
            'sharedCourses': shared_courses,
            'lastReadBy': {},
            'createdAt': datetime.now(timezone.utc),
        })
        if not ok:
            raise RuntimeError(f"Failed to create chat: {error}")

        await self.send_system_message(chat_id, f"You are study partners for {', '.join(shared_courses)}. Say hi!")
        logger.info(f"Created chat {chat_id} for {participants}")
        return chat_id

    async def delete_chat(self, chat_id: str, uid: str) -> None:
        """Delete every message, then the chat"""
        chat = await self._get_participant_chat(chat_id, uid)

        messages = await self.db.get_all_documents(messages_path(chat_id))
        results = await asyncio.gather(*(
            self.db.delete_document(messages_path(chat_id), m['id']) for m in messages
        ))
        failures = [error for success, error in results if not success]
        if failures:
            raise RuntimeError(f"Failed to delete messages: {failures[0]}")

        success, error = await self.db.delete_document(COLLECTIONS['chats'], chat_id)
        if not success:
            raise RuntimeError(f"Failed to delete chat: {error}")

        logger.info(f"Chat {chat_id} deleted by {uid} ({len(messages)} messages)")
        await self.notifier.chat_deleted(chat_id, chat['participants'])

    # ===== Message Operations =====

    async def _add_message(self, chat_id: str, sender_id: str, text: str) -> Dict[str, Any]:
        message = {'senderId': sender_id, 'text': text, 'sentAt': datetime.now(timezone.utc)}
        ok, message_id, error = await self.db.create_document(messages_path(chat_id), message)
        if not ok:
            raise RuntimeError(f"Failed to send message: {error}")
        return {'id': message_id, **message}

    async def send_message(self, chat_id: str, sender_id: str, text: str) -> Dict[str, Any]:
        if not text or not text.strip():
            raise ValueError("Message text cannot be empty")

        chat = await self._get_participant_chat(chat_id, sender_id)
        message = await self._add_message(chat_id, sender_id, text.strip())

        await self.notifier.new_message(chat_id, chat['participants'], message)
        return message

    async def send_system_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        return await self._add_message(chat_id, SYSTEM_SENDER_ID, text)

    async def get_messages(self, chat_id: str, uid: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Messages oldest first; with a limit, the latest ones"""
        await self._get_participant_chat(chat_id, uid)
        success, messages, error = await self.db.query_documents(
            messages_path(chat_id), order_by='sentAt', descending=limit is not None, limit=limit
        )
        if not success:
            raise RuntimeError(f"Could not load messages: {error}")
        if limit is not None:
            messages.reverse()
        return messages

    async def _latest_messages(self, chat_id: str, limit: int) -> List[Dict[str, Any]]:
        _, messages, _ = await self.db.query_documents(
            messages_path(chat_id), order_by='sentAt', descending=True, limit=limit
        )
        return messages

    # ===== Read State =====

    async def mark_chat_as_read(self, chat_id: str, uid: str) -> None:
        chat = await self._get_participant_chat(chat_id, uid)
        success, error = await self.db.update_document(
            COLLECTIONS['chats'], chat_id, {f'lastReadBy.{uid}': datetime.now(timezone.utc)}
        )
        if not success:
            raise RuntimeError(f"Failed to mark chat as read: {error}")
        await self.notifier.chat_read(chat_id, chat['participants'], uid)

    async def _unread_in(self, chat: Dict[str, Any], uid: str) -> int:
        last_read = _as_utc((chat.get('lastReadBy') or {}).get(uid))
        filters = [('sentAt', '>', last_read)] if last_read else []
        success, messages, error = await self.db.query_documents(messages_path(chat['id']), filters)
        if not success:
            logger.error(f"Error counting unread messages in {chat['id']}: {error}")
            return 0
        return sum(1 for m in messages if is_unread_for(m, uid, last_read))

    async def get_unread_count(self, chat_id: str, uid: str) -> int:
        chat = await self._get_participant_chat(chat_id, uid)
        return await self._unread_in(chat, uid)

    async def get_total_unread_count(self, uid: str) -> int:
        """Unread messages across uid's chats, ignoring blocked partners"""
        chats = await self._visible_chats(uid)
        counts = await asyncio.gather(*(self._unread_in(c, uid) for c in chats))
        return sum(counts)

    # ===== Inbox =====

    async def _counterpart_name(self, uid: str) -> str:
        info = await self.users.get_user_info(uid)
        return info.get('name') or fallback_name(uid)

    async def get_inbox_threads(self, uid: str) -> List[Dict[str, Any]]:
        chats = await self._visible_chats(uid)

        async def thread(chat: Dict[str, Any]) -> Dict[str, Any]:
            other_uid = self._counterpart(chat, uid)
            name, latest, unread = await asyncio.gather(
                self._counterpart_name(other_uid),
                self._latest_messages(chat['id'], 1),
                self._unread_in(chat, uid),
            )
            last = latest[0] if latest else None
            return {
                'id': chat['id'],
                'otherUid': other_uid,
                'name': name,
                'lastMessage': last.get('text') if last else 'No messages yet',
                'lastMessageAt': last.get('sentAt') if last else None,
                'unreadCount': unread,
                'sharedCourses': chat.get('sharedCourses') or [],
            }

        threads = await asyncio.gather(*(thread(c) for c in chats))
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(threads, key=lambda t: _as_utc(t['lastMessageAt']) or epoch, reverse=True)

    async def get_recent_messages(self, uid: str, limit: int = 3) -> List[Dict[str, Any]]:
        """Newest messages from partners across all visible chats"""
        chats = await self._visible_chats(uid)

        async def from_chat(chat: Dict[str, Any]) -> List[Dict[str, Any]]:
            other_uid = self._counterpart(chat, uid)
            name, latest = await asyncio.gather(
                self._counterpart_name(other_uid),
                self._latest_messages(chat['id'], RECENT_MESSAGES_PER_CHAT),
            )
            return [
                {
                    'type': 'message',
                    'title': f"Message from {name}",
                    'chatId': chat['id'],
                    'partnerName': name,
                    'senderId': m['senderId'],
                    'messageText': m.get('text') or 'New message',
                    'timestamp': m['sentAt'],
                }
                for m in latest
                if m.get('senderId') not in (uid, SYSTEM_SENDER_ID) and m.get('sentAt')
            ]

        per_chat = await asyncio.gather(*(from_chat(c) for c in chats))
        messages = [m for chunk in per_chat for m in chunk]
        messages.sort(key=lambda m: _as_utc(m['timestamp']), reverse=True)
        return messages[:limit]


chat_service = ChatService()
