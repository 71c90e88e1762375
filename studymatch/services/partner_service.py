"""
Partner Service - accepted study pairings.

A partnership is an undirected (userA, userB, course) record. Display names
and computing IDs are cached on the record so partner lists render without a
user lookup per row; the cache is refreshed whenever it holds a placeholder.
"""

from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timezone
import asyncio
import logging

from google.cloud.firestore_v1 import ArrayUnion

from ..core.config import settings
from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from .user_service import user_service, fallback_name, short_uid, is_placeholder_name

logger = logging.getLogger(__name__)


def other_member(partnership: Dict[str, Any], uid: str) -> str:
    return partnership['userB'] if partnership.get('userA') == uid else partnership['userA']


def is_member(partnership: Dict[str, Any], uid: str) -> bool:
    return uid in (partnership.get('userA'), partnership.get('userB'))


def same_pair(partnership: Dict[str, Any], user_a: str, user_b: str) -> bool:
    return {partnership.get('userA'), partnership.get('userB')} == {user_a, user_b}


class PartnerService:
    def __init__(self, db=None, users=None):
        self.db = db or database_service
        self.users = users or user_service

    async def _get_partnership(self, partnership_id: str) -> Optional[Dict[str, Any]]:
        success, data, _ = await self.db.get_document(COLLECTIONS['partners'], partnership_id)
        return data if success else None

    async def _all_partnerships_of(self, uid: str) -> List[Dict[str, Any]]:
        partners = await self.db.get_all_documents(COLLECTIONS['partners'])
        return [p for p in partners if is_member(p, uid)]

    async def _resolve_identity(self, uid: str) -> Tuple[str, str]:
        info = await self.users.get_user_info(uid)
        return info.get('name') or fallback_name(uid), info.get('computingId') or short_uid(uid)

    async def create_partner_pair(self, user_a: str, user_b: str, course: str) -> Optional[str]:
        """Create the partnership unless the pair already exists for this course"""
        success, existing, error = await self.db.query_documents(
            COLLECTIONS['partners'], [('course', '==', course)]
        )
        if not success:
            raise RuntimeError(f"Could not load partnerships: {error}")

        if any(same_pair(p, user_a, user_b) for p in existing):
            logger.info(f"Partnership already exists between {user_a} and {user_b} for {course}")
            return None

        (a_name, a_cid), (b_name, b_cid) = await asyncio.gather(
            self._resolve_identity(user_a), self._resolve_identity(user_b)
        )

        partnership = {
            'userA': user_a,
            'userB': user_b,
            'course': course,
            'createdAt': datetime.now(timezone.utc),
            'deleteRequestedBy': [],
            'blockedBy': [],
            'userAName': a_name,
            'userBName': b_name,
            'userAComputingId': a_cid,
            'userBComputingId': b_cid,
        }
        ok, doc_id, error = await self.db.create_document(COLLECTIONS['partners'], partnership)
        if not ok:
            raise RuntimeError(f"Failed to create partnership: {error}")

        logger.info(f"Created partnership {doc_id} for {course}")
        return doc_id

    async def get_partners_for_course(self, uid: str, course: str) -> List[Dict[str, Any]]:
        success, partners, error = await self.db.query_documents(
            COLLECTIONS['partners'], [('course', '==', course)]
        )
        if not success:
            raise RuntimeError(f"Could not load partnerships: {error}")
        return [p for p in partners if is_member(p, uid)]

    async def can_send_match_request(self, uid: str, course: str) -> bool:
        partners = await self.get_partners_for_course(uid, course)
        return len(partners) < settings.MAX_PARTNERS_PER_COURSE

    def _cached_identity(self, partnership: Dict[str, Any], uid: str) -> Tuple[Optional[str], Optional[str]]:
        if partnership.get('userA') == uid:
            return partnership.get('userBName'), partnership.get('userBComputingId')
        return partnership.get('userAName'), partnership.get('userAComputingId')

    async def _write_back_identity(self, partnership: Dict[str, Any], partner_id: str,
                                   name: str, computing_id: str) -> None:
        side = 'A' if partnership.get('userA') == partner_id else 'B'
        success, error = await self.db.update_document(COLLECTIONS['partners'], partnership['id'], {
            f'user{side}Name': name,
            f'user{side}ComputingId': computing_id,
            'lastNameUpdate': datetime.now(timezone.utc),
        })
        if not success:
            logger.error(f"Error updating partnership names for {partnership['id']}: {error}")

    async def _summarize(self, partnership: Dict[str, Any], uid: str) -> Dict[str, Any]:
        """Partnership as seen by uid, refreshing a placeholder name"""
        partner_id = other_member(partnership, uid)
        name, computing_id = self._cached_identity(partnership, uid)

        if is_placeholder_name(name):
            fresh_name, fresh_cid = await self._resolve_identity(partner_id)
            if fresh_name != name and not is_placeholder_name(fresh_name):
                await self._write_back_identity(partnership, partner_id, fresh_name, fresh_cid)
            name, computing_id = fresh_name, fresh_cid

        return {
            'id': partnership['id'],
            'partnerId': partner_id,
            'course': partnership.get('course'),
            'partnerName': name,
            'partnerComputingId': computing_id,
        }

    async def get_partners_for_course_with_names(self, uid: str, course: str) -> List[Dict[str, Any]]:
        partners = await self.get_partners_for_course(uid, course)
        summaries = await asyncio.gather(*(self._summarize(p, uid) for p in partners))
        return sorted(summaries, key=lambda s: s['partnerName'].lower())

    async def get_accepted_partners(self, uid: str) -> List[Dict[str, Any]]:
        partners = await self._all_partnerships_of(uid)
        summaries = await asyncio.gather(*(self._summarize(p, uid) for p in partners))
        return sorted(summaries, key=lambda s: (s['course'] or '', s['partnerName'].lower()))

    async def refresh_all_partnership_names(self, uid: str) -> Dict[str, Any]:
        """Rewrite cached names on every partnership of uid"""
        try:
            partnerships = await self._all_partnerships_of(uid)
            logger.info(f"Found {len(partnerships)} partnerships to refresh for user {uid}")

            async def refresh(partnership: Dict[str, Any]) -> Optional[Dict[str, Any]]:
                (a_name, a_cid), (b_name, b_cid) = await asyncio.gather(
                    self._resolve_identity(partnership['userA']),
                    self._resolve_identity(partnership['userB']),
                )
                success, error = await self.db.update_document(COLLECTIONS['partners'], partnership['id'], {
                    'userAName': a_name,
                    'userBName': b_name,
                    'userAComputingId': a_cid,
                    'userBComputingId': b_cid,
                    'lastNameRefresh': datetime.now(timezone.utc),
                })
                if not success:
                    logger.error(f"Error refreshing partnership {partnership['id']}: {error}")
                    return None
                return {
                    'partnershipId': partnership['id'],
                    'course': partnership.get('course'),
                    'userAName': a_name,
                    'userBName': b_name,
                }

            results = await asyncio.gather(*(refresh(p) for p in partnerships))
            refreshed = [r for r in results if r]
            return {
                'success': True,
                'message': f"Refreshed {len(refreshed)} partnerships",
                'refreshedPartnerships': refreshed,
            }

        except Exception as e:
            logger.error(f"Error refreshing partnership names: {e}")
            return {'success': False, 'message': str(e)}

    async def request_delete_partner(self, partnership_id: str, uid: str) -> str:
        """
        Record uid's wish to end the partnership.

        Returns "deleted" once both members asked, "requested" after the
        first request, "unchanged" for a repeat request.
        """
        partnership = await self._get_partnership(partnership_id)
        if not partnership:
            raise ValueError("Partnership not found")
        if not is_member(partnership, uid):
            raise PermissionError("You are not part of this partnership")

        current = partnership.get('deleteRequestedBy') or []
        if uid in current:
            return "unchanged"

        updated = [*current, uid]
        if len(updated) >= 2:
            success, error = await self.db.delete_document(COLLECTIONS['partners'], partnership_id)
            if not success:
                raise RuntimeError(f"Failed to delete partnership: {error}")
            logger.info(f"Partnership deleted by mutual request: {partnership_id}")
            return "deleted"

        success, error = await self.db.update_document(
            COLLECTIONS['partners'], partnership_id, {'deleteRequestedBy': updated}
        )
        if not success:
            raise RuntimeError(f"Failed to record delete request: {error}")
        logger.info(f"Delete request added for partnership: {partnership_id}")
        return "requested"

    async def block_partner(self, partnership_id: str, uid: str) -> None:
        partnership = await self._get_partnership(partnership_id)
        if not partnership:
            raise ValueError("Partnership not found")
        if not is_member(partnership, uid):
            raise PermissionError("You are not part of this partnership")

        blocked_by = partnership.get('blockedBy') or []
        if uid not in blocked_by:
            success, error = await self.db.update_document(
                COLLECTIONS['partners'], partnership_id, {'blockedBy': [*blocked_by, uid]}
            )
            if not success:
                raise RuntimeError(f"Failed to block partner: {error}")
            logger.info(f"{uid} blocked partnership {partnership_id}")

    async def unblock_partner(self, partnership_id: str, uid: str) -> None:
        partnership = await self._get_partnership(partnership_id)
        if not partnership:
            raise ValueError("Partnership not found")
        if not is_member(partnership, uid):
            raise PermissionError("You are not part of this partnership")

        blocked_by = [b for b in partnership.get('blockedBy') or [] if b != uid]
        success, error = await self.db.update_document(
            COLLECTIONS['partners'], partnership_id, {'blockedBy': blocked_by}
        )
        if not success:
            raise RuntimeError(f"Failed to unblock partner: {error}")

    async def is_partner_blocked(self, partnership_id: str, uid: str) -> bool:
        partnership = await self._get_partnership(partnership_id)
        if not partnership:
            return False
        return uid in (partnership.get('blockedBy') or [])

    async def get_blocked_user_ids(self, uid: str) -> set:
        """Counterparts uid has blocked in any partnership"""
        return {
            other_member(p, uid)
            for p in await self._all_partnerships_of(uid)
            if uid in (p.get('blockedBy') or [])
        }

    async def get_partners_with_block_status(self, uid: str) -> List[Dict[str, Any]]:
        partnerships = {p['id']: p for p in await self._all_partnerships_of(uid)}
        summaries = await self.get_accepted_partners(uid)
        for summary in summaries:
            summary['isBlocked'] = uid in (partnerships[summary['id']].get('blockedBy') or [])
        return summaries

    async def get_blocked_partners(self, uid: str) -> List[Dict[str, Any]]:
        return [p for p in await self.get_partners_with_block_status(uid) if p['isBlocked']]

    async def report_partner(self, partnership_id: str, reporter_id: str, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValueError("Please select or enter a reason for reporting.")

        partnership = await self._get_partnership(partnership_id)
        if not partnership:
            raise ValueError("Partnership not found")
        if not is_member(partnership, reporter_id):
            raise PermissionError("You can only report your own partners")

        report = {
            'reporterId': reporter_id,
            'reason': reason.strip(),
            'reportedAt': datetime.now(timezone.utc),
        }
        success, error = await self.db.update_document(
            COLLECTIONS['partners'], partnership_id, {'reports': ArrayUnion([report])}
        )
        if not success:
            raise RuntimeError(f"Failed to submit report: {error}")
        logger.warning(f"Partnership {partnership_id} reported by {reporter_id}")


partner_service = PartnerService()
