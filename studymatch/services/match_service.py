"""
Match Service - study-partner match requests.

Flow: a user posts an open request for a course (receiverId None); another
user applies to it (receiverId set); the poster accepts, which settles every
pending request between the two users for that course and creates the
partnership.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import asyncio
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..models.database_models import MatchStatus
from .partner_service import partner_service

logger = logging.getLogger(__name__)


class MatchService:
    def __init__(self, db=None, partners=None):
        self.db = db or database_service
        self.partners = partners or partner_service

    async def _query(self, filters: List[tuple]) -> List[Dict[str, Any]]:
        success, docs, error = await self.db.query_documents(COLLECTIONS['match_requests'], filters)
        if not success:
            raise RuntimeError(f"Could not load match requests: {error}")
        return docs

    async def get_match_request(self, request_id: str) -> Dict[str, Any]:
        success, data, _ = await self.db.get_document(COLLECTIONS['match_requests'], request_id)
        if not success or not data:
            raise ValueError("Match request not found")
        return data

    async def send_match_request(
        self,
        sender_id: str,
        course: str,
        study_time: Optional[str] = None,
        meeting_preference: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> str:
        """Post an open request; returns the new request id"""
        if not course or not course.strip():
            raise ValueError("Course is required")

        if not await self.partners.can_send_match_request(sender_id, course):
            raise ValueError(f"You already have the maximum number of partners for {course}")

        now = datetime.now(timezone.utc)
        ok, request_id, error = await self.db.create_document(COLLECTIONS['match_requests'], {
            'senderId': sender_id,
            'course': course.strip(),
            'studyTime': study_time,
            'meetingPreference': meeting_preference,
            'bio': bio,
            'receiverId': None,
            'status': MatchStatus.PENDING.value,
            'createdAt': now,
            'updatedAt': now,
        })
        if not ok:
            raise RuntimeError(f"Failed to send match request: {error}")

        logger.info(f"Match request {request_id} posted by {sender_id} for {course}")
        return request_id

    async def get_my_match_requests(self, uid: str) -> List[Dict[str, Any]]:
        return await self._query([('senderId', '==', uid)])

    async def get_incoming_match_requests(self, uid: str) -> List[Dict[str, Any]]:
        """Pending requests addressed to uid, plus uid's own requests someone applied to"""
        received, sent = await asyncio.gather(
            self._query([('receiverId', '==', uid), ('status', '==', MatchStatus.PENDING.value)]),
            self._query([('senderId', '==', uid), ('status', '==', MatchStatus.PENDING.value)]),
        )
        return [*received, *[r for r in sent if r.get('receiverId')]]

    async def update_match_request_status(self, request_id: str, status: str) -> None:
        if status not in (MatchStatus.ACCEPTED.value, MatchStatus.REJECTED.value):
            raise ValueError(f"Invalid status: {status}")

        success, error = await self.db.update_document(COLLECTIONS['match_requests'], request_id, {
            'status': status,
            'updatedAt': datetime.now(timezone.utc),
        })
        if not success:
            raise RuntimeError(f"Failed to update match request: {error}")

    async def get_open_match_requests(self, course: str, uid: str) -> List[Dict[str, Any]]:
        """Unclaimed pending requests for a course, excluding uid's own"""
        requests = await self._query([
            ('course', '==', course),
            ('status', '==', MatchStatus.PENDING.value),
            ('receiverId', '==', None),
        ])
        return [r for r in requests if r.get('senderId') != uid]

    async def apply_to_match_request(self, request_id: str, uid: str) -> None:
        request = await self.get_match_request(request_id)

        if request.get('senderId') == uid:
            raise ValueError("You cannot apply to your own match request")
        if request.get('status') != MatchStatus.PENDING.value:
            raise ValueError("This match request is no longer pending")
        if request.get('receiverId'):
            raise ValueError("Someone has already applied to this match request")
        if not await self.partners.can_send_match_request(uid, request['course']):
            raise ValueError(f"You already have the maximum number of partners for {request['course']}")

        success, error = await self.db.update_document(COLLECTIONS['match_requests'], request_id, {
            'receiverId': uid,
            'updatedAt': datetime.now(timezone.utc),
        })
        if not success:
            raise RuntimeError(f"Failed to apply to match request: {error}")
        logger.info(f"{uid} applied to match request {request_id}")

    async def accept_match_request(self, request: Dict[str, Any]) -> Optional[str]:
        """
        Accept a claimed request.

        Every pending request for the course between the two users (either
        direction), and every still-open request either of them posted, is
        accepted too; open ones get the counterpart as receiver. Returns the
        new partnership id, or None if the pair already existed.
        """
        sender_id = request['senderId']
        receiver_id = request.get('receiverId')
        course = request['course']
        if not receiver_id:
            raise ValueError("Nobody has applied to this match request yet")

        def counterpart(row: Dict[str, Any]) -> str:
            return receiver_id if row.get('senderId') == sender_id else sender_id

        pending = await self._query([
            ('course', '==', course),
            ('status', '==', MatchStatus.PENDING.value),
        ])

        now = datetime.now(timezone.utc)
        updates = []
        for row in pending:
            row_sender, row_receiver = row.get('senderId'), row.get('receiverId')
            same_pair = {row_sender, row_receiver} == {sender_id, receiver_id}
            open_by_either_side = row_receiver is None and row_sender in (sender_id, receiver_id)

            if (same_pair or open_by_either_side) and row['id'] != request['id']:
                updates.append(self.db.update_document(COLLECTIONS['match_requests'], row['id'], {
                    'status': MatchStatus.ACCEPTED.value,
                    'receiverId': row_receiver or counterpart(row),
                    'updatedAt': now,
                }))

        updates.append(self.db.update_document(COLLECTIONS['match_requests'], request['id'], {
            'status': MatchStatus.ACCEPTED.value,
            'updatedAt': now,
        }))

        results = await asyncio.gather(*updates)
        failures = [error for success, error in results if not success]
        if failures:
            raise RuntimeError(f"Failed to accept match request: {failures[0]}")

        logger.info(f"Accepted {len(results)} match request(s) between {sender_id} and {receiver_id} for {course}")
        return await self.partners.create_partner_pair(sender_id, receiver_id, course)

    async def _get_participant_request(self, request_id: str, uid: str) -> Dict[str, Any]:
        request = await self.get_match_request(request_id)
        if uid not in (request.get('senderId'), request.get('receiverId')):
            raise PermissionError("You are not part of this match request")
        return request

    async def accept_match_request_by_id(self, request_id: str, uid: str) -> Optional[str]:
        request = await self._get_participant_request(request_id, uid)
        if request.get('status') != MatchStatus.PENDING.value:
            raise ValueError("This match request is no longer pending")
        return await self.accept_match_request(request)

    async def reject_match_request(self, request_id: str, uid: str) -> None:
        request = await self._get_participant_request(request_id, uid)
        if request.get('status') != MatchStatus.PENDING.value:
            raise ValueError("This match request is no longer pending")
        await self.update_match_request_status(request_id, MatchStatus.REJECTED.value)
        logger.info(f"Match request {request_id} rejected by {uid}")


match_service = MatchService()
