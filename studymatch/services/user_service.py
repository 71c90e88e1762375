from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
import asyncio
import logging
import re

from fastapi import UploadFile

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..auth.firebase_auth import firebase_auth
from ..models.user import DEFAULT_AVATAR, DEFAULT_MEETING_PREFERENCE, DEFAULT_STUDY_TIMES
from .file_storage_service import file_storage_service

logger = logging.getLogger(__name__)

# Names written by older clients before the profile existed
_BIO_NAME_PATTERNS = [
    re.compile(r"I am ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"My name is ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"Hi, I'm ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"Hello, I'm ([A-Za-z\s]+)", re.IGNORECASE),
]

# Contact values written when the Auth record had no email
_MISSING_CONTACT = (None, '', 'Unknown Email', 'unknown')

PROFILE_FIELDS = (
    'name', 'bio', 'courses', 'studyTimes', 'meetingPreference', 'selectedAvatar', 'photoURL'
)


def short_uid(uid: str) -> str:
    return uid[:8]


def fallback_name(uid: str) -> str:
    return f"Student {short_uid(uid)}"


def is_placeholder_name(name: Optional[str]) -> bool:
    """True for names generated before a real one was known"""
    if not name:
        return True
    return 'Unknown' in name or 'Study Partner' in name or name.startswith('User ')


def computing_id_from_email(email: Optional[str]) -> str:
    return email.split('@')[0] if email else 'unknown'


class UserService:
    def __init__(self, db=None, storage=None):
        self.db = db or database_service
        self.storage = storage or file_storage_service

    def _placeholder(self, uid: str) -> Dict[str, Any]:
        return {
            'name': fallback_name(uid),
            'computingId': short_uid(uid),
            'email': f"{short_uid(uid)}@virginia.edu",
            'isPlaceholder': True,
        }

    def _upgrade_fields(self, current: Dict[str, Any], real_info: Dict[str, Any]) -> Dict[str, Any]:
        """Fields to merge onto an existing placeholder document; real contact details are kept"""
        fields = {
            'name': real_info['name'],
            'dataSource': real_info.get('dataSource'),
            'isReconstructed': True,
            'lastUpdated': datetime.now(timezone.utc),
        }
        for key in ('email', 'computingId'):
            if current.get(key) in _MISSING_CONTACT or current.get('isPlaceholder'):
                fields[key] = real_info[key]
        return fields

    def _default_profile(self, display_name: Optional[str], email: Optional[str]) -> Dict[str, Any]:
        return {
            'name': display_name or 'Unknown User',
            'email': email or 'Unknown Email',
            'computingId': computing_id_from_email(email),
            'bio': '',
            'courses': [],
            'studyTimes': list(DEFAULT_STUDY_TIMES),
            'meetingPreference': DEFAULT_MEETING_PREFERENCE,
            'selectedAvatar': DEFAULT_AVATAR,
            'photoURL': '',
            'createdAt': datetime.now(timezone.utc),
        }

    async def get_user_info(self, uid: str) -> Dict[str, Any]:
        """
        Fetch a user by UID, resolving placeholder records.

        Placeholder documents are upgraded with any real name found elsewhere
        in the database; unknown users get a persisted placeholder so partner
        lists always have something to show.
        """
        try:
            success, user_data, _ = await self.db.get_document(COLLECTIONS['users'], uid)
            if success and user_data:
                if user_data.get('isPlaceholder') or is_placeholder_name(user_data.get('name')):
                    real_info = await self.find_real_user_info(uid)
                    if real_info and real_info['name'] != user_data.get('name'):
                        fields = self._upgrade_fields(user_data, real_info)
                        await self.db.set_document(COLLECTIONS['users'], uid, fields, merge=True)
                        updated = {**user_data, **fields}
                        logger.info(f"Upgraded placeholder user {uid} to '{real_info['name']}'")
                        return updated
                return user_data

            real_info = await self.find_real_user_info(uid)
            if real_info:
                await self.db.set_document(COLLECTIONS['users'], uid, real_info)
                logger.info(f"Created user document for {uid} from {real_info.get('dataSource')}")
                return real_info

            placeholder = {**self._placeholder(uid), 'createdAt': datetime.now(timezone.utc)}
            await self.db.set_document(COLLECTIONS['users'], uid, placeholder)
            return placeholder

        except Exception as e:
            logger.error(f"Error fetching user info for {uid}: {e}")
            return self._placeholder(uid)

    async def find_real_user_info(self, uid: str) -> Optional[Dict[str, Any]]:
        """Reconstruct a user's name from match requests, partnerships and notes"""
        found_name = None
        found_email = None
        data_source = None

        _, requests, _ = await self.db.query_documents(
            COLLECTIONS['match_requests'], [('senderId', '==', uid)]
        )
        for data in requests:
            if data.get('senderName'):
                found_name, data_source = data['senderName'], 'matchRequests.senderName'
            if data.get('senderEmail'):
                found_email = data['senderEmail']
            if data.get('name'):
                found_name, data_source = data['name'], 'matchRequests.name'
            if data.get('bio') and not found_name:
                for pattern in _BIO_NAME_PATTERNS:
                    match = pattern.search(data['bio'])
                    if match:
                        found_name, data_source = match.group(1).strip(), 'matchRequests.bio'
                        break

        partners = await self.db.get_all_documents(COLLECTIONS['partners'])
        for data in partners:
            if data.get('userA') == uid and data.get('userAName') and not is_placeholder_name(data['userAName']):
                found_name, data_source = data['userAName'], 'partners.userAName'
            if data.get('userB') == uid and data.get('userBName') and not is_placeholder_name(data['userBName']):
                found_name, data_source = data['userBName'], 'partners.userBName'

        if not found_name:
            _, notes, _ = await self.db.query_documents(COLLECTIONS['notes'], [('authorId', '==', uid)])
            for data in notes:
                if data.get('authorName'):
                    found_name, data_source = data['authorName'], 'notes.authorName'
                    break

        if not found_name and not found_email:
            return None

        return {
            'name': found_name or fallback_name(uid),
            'email': found_email or f"{short_uid(uid)}@virginia.edu",
            'computingId': computing_id_from_email(found_email) if found_email else short_uid(uid),
            'createdAt': datetime.now(timezone.utc),
            'dataSource': data_source,
            'foundOriginalData': bool(found_name),
            'isReconstructed': True,
        }

    async def get_current_user_profile(self, current_user: Dict[str, Any]) -> Dict[str, Any]:
        """Profile of the signed-in user, created from the token claims when missing"""
        uid = current_user['uid']
        success, profile, _ = await self.db.get_document(COLLECTIONS['users'], uid)
        if success and profile:
            profile['id'] = uid
            return profile

        profile = self._default_profile(current_user.get('name'), current_user.get('email'))
        ok, _, error = await self.db.create_document(COLLECTIONS['users'], profile, document_id=uid)
        if not ok:
            raise RuntimeError(f"Could not create profile: {error}")

        logger.info(f"Created default profile for {uid}")
        return {'id': uid, **profile}

    async def ensure_user_document(self, uid: str) -> Optional[Dict[str, Any]]:
        """Make sure users/<uid> exists, building it from the Auth record"""
        success, profile, _ = await self.db.get_document(COLLECTIONS['users'], uid)
        if success and profile:
            return profile

        auth_user = await firebase_auth.get_user(uid)
        if not auth_user:
            logger.warning(f"No auth record for {uid}; cannot create user document")
            return None

        profile = self._default_profile(auth_user.display_name, auth_user.email)
        ok, _, error = await self.db.create_document(COLLECTIONS['users'], profile, document_id=uid)
        if not ok:
            logger.error(f"Error ensuring user document for {uid}: {error}")
            return None
        return profile

    async def update_user_profile(self, uid: str, profile_data: Dict[str, Any],
                                  current_display_name: Optional[str] = None) -> Dict[str, Any]:
        update_data = {k: v for k, v in profile_data.items() if k in PROFILE_FIELDS and v is not None}
        update_data['lastUpdated'] = datetime.now(timezone.utc)

        success, error = await self.db.update_document(COLLECTIONS['users'], uid, update_data)
        if not success:
            raise RuntimeError(f"Failed to update profile: {error}")
        logger.info(f"Updated profile for {uid}: {sorted(update_data)}")

        name = update_data.get('name')
        if name and name != current_display_name:
            try:
                await firebase_auth.update_user(uid, display_name=name)
            except Exception as e:
                logger.warning(f"Failed to update Firebase Auth displayName for {uid}: {e}")

        return {'success': True, 'message': 'Profile updated successfully!'}

    async def update_user_photo_url(self, uid: str, photo_url: str) -> None:
        success, error = await self.db.update_document(COLLECTIONS['users'], uid, {
            'photoURL': photo_url,
            'lastUpdated': datetime.now(timezone.utc),
        })
        if not success:
            raise RuntimeError(f"Failed to save photo URL: {error}")

    async def upload_profile_picture(self, uid: str, file: UploadFile) -> str:
        uploaded = await self.storage.upload_profile_picture(uid, file)
        await self.update_user_photo_url(uid, uploaded['download_url'])
        return uploaded['download_url']

    async def refresh_all_partner_names(self, uid: str) -> Dict[str, Any]:
        """Re-resolve placeholder user documents of everyone partnered with uid"""
        try:
            partners = await self.db.get_all_documents(COLLECTIONS['partners'])
            partner_ids = set()
            for data in partners:
                if data.get('userA') == uid:
                    partner_ids.add(data['userB'])
                elif data.get('userB') == uid:
                    partner_ids.add(data['userA'])

            async def refresh(partner_id: str) -> Optional[Dict[str, Any]]:
                success, current, _ = await self.db.get_document(COLLECTIONS['users'], partner_id)
                if not success or not current:
                    return None
                if not (current.get('isPlaceholder') or is_placeholder_name(current.get('name'))):
                    return None
                new_info = await self.find_real_user_info(partner_id)
                if new_info and new_info['name'] != current.get('name'):
                    await self.db.set_document(
                        COLLECTIONS['users'], partner_id, self._upgrade_fields(current, new_info), merge=True
                    )
                    return {'partnerId': partner_id, 'oldName': current.get('name'), 'newName': new_info['name']}
                return None

            results = await asyncio.gather(*(refresh(pid) for pid in sorted(partner_ids)))
            updates = [r for r in results if r]
            return {
                'success': True,
                'message': f"Refreshed {len(updates)} partner names",
                'updates': updates,
            }

        except Exception as e:
            logger.error(f"Error refreshing partner names for {uid}: {e}")
            return {'success': False, 'message': str(e)}

    async def get_all_users(self) -> List[Dict[str, Any]]:
        return await self.db.get_all_documents(COLLECTIONS['users'])

    async def get_all_partners(self) -> List[Dict[str, Any]]:
        return await self.db.get_all_documents(COLLECTIONS['partners'])

    async def debug_partners_and_users(self, current_uid: str) -> Dict[str, Any]:
        """Cross-check partnerships against user documents"""
        users, partners = await asyncio.gather(self.get_all_users(), self.get_all_partners())

        user_ids = [u['id'] for u in users]
        partner_user_ids = set()
        for p in partners:
            partner_user_ids.add(p.get('userA'))
            partner_user_ids.add(p.get('userB'))
        partner_user_ids.discard(None)

        return {
            'userIds': user_ids,
            'partnerUserIds': sorted(partner_user_ids),
            'missingUsers': sorted(uid for uid in partner_user_ids if uid not in user_ids),
            'currentUid': current_uid,
            'userPartnerships': [p for p in partners if current_uid in (p.get('userA'), p.get('userB'))],
        }


user_service = UserService()
