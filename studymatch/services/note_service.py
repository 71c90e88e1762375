from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import logging

from fastapi import UploadFile

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from .file_storage_service import file_storage_service

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def sort_newest_first(notes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Newest createdAt first; notes without a timestamp go last"""
    dated = [n for n in notes if n.get('createdAt')]
    undated = [n for n in notes if not n.get('createdAt')]
    dated.sort(key=lambda n: n['createdAt'].timestamp(), reverse=True)
    return dated + undated


class NoteService:
    def __init__(self, db=None, storage=None):
        self.db = db or database_service
        self.storage = storage or file_storage_service

    async def upload_media_note(self, uid: str, title: str, course: str, media_url: str,
                                author_name: Optional[str] = None,
                                storage_path: Optional[str] = None) -> str:
        if not media_url:
            raise ValueError("mediaURL is required")
        if not title or not title.strip():
            raise ValueError("Title is required")
        if not course or not course.strip():
            raise ValueError("Course is required")

        note = {
            'authorId': uid,
            'title': title.strip(),
            'course': course.strip(),
            'mediaURL': media_url,
            'rating': 0,
            'ratings': {},
            'createdAt': datetime.now(timezone.utc),
        }
        if author_name:
            note['authorName'] = author_name
        if storage_path:
            note['storagePath'] = storage_path

        ok, note_id, error = await self.db.create_document(COLLECTIONS['notes'], note)
        if not ok:
            raise RuntimeError(f"Failed to save note: {error}")

        logger.info(f"Note {note_id} uploaded by {uid} for {course}")
        return note_id

    async def upload_note_file(self, uid: str, title: str, course: str, file: UploadFile,
                               author_name: Optional[str] = None) -> str:
        """Store the file in Cloud Storage, then record the note pointing at it"""
        uploaded = await self.storage.upload_note_file(uid, course, file)
        try:
            return await self.upload_media_note(
                uid, title, course, uploaded['download_url'],
                author_name=author_name, storage_path=uploaded['file_path'],
            )
        except Exception:
            await self.storage.delete_file(uploaded['file_path'])
            raise

    async def _query_notes(self, filters: List[tuple]) -> List[Dict[str, Any]]:
        success, notes, error = await self.db.query_documents(COLLECTIONS['notes'], filters)
        if not success:
            raise RuntimeError(f"Could not load notes: {error}")
        return sort_newest_first(notes)

    async def get_notes_by_course(self, course: str) -> List[Dict[str, Any]]:
        return await self._query_notes([('course', '==', course)])

    async def get_notes_by_user(self, uid: str) -> List[Dict[str, Any]]:
        return await self._query_notes([('authorId', '==', uid)])

    async def search_notes_by_title(self, keyword: str) -> List[Dict[str, Any]]:
        """Case-insensitive title substring search; content is not searched"""
        needle = (keyword or '').lower()
        notes = await self.db.get_all_documents(COLLECTIONS['notes'])
        return sort_newest_first([n for n in notes if needle in (n.get('title') or '').lower()])

    async def get_note_detail(self, note_id: str) -> Dict[str, Any]:
        success, note, _ = await self.db.get_document(COLLECTIONS['notes'], note_id)
        if not success or not note:
            raise ValueError("Note not found")
        return note

    async def delete_note(self, note_id: str, uid: str) -> None:
        note = await self.get_note_detail(note_id)
        if note.get('authorId') != uid:
            logger.warning(f"User {uid} tried to delete note {note_id} owned by {note.get('authorId')}")
            raise PermissionError("Unauthorized delete attempt")

        success, error = await self.db.delete_document(COLLECTIONS['notes'], note_id)
        if not success:
            raise RuntimeError(f"Failed to delete note: {error}")

        if note.get('storagePath'):
            await self.storage.delete_file(note['storagePath'])
        logger.info(f"Note {note_id} deleted by {uid}")

    async def rate_note(self, note_id: str, uid: str, rating: int) -> Dict[str, Any]:
        """Record uid's rating; the note's rating becomes the mean of all ratings"""
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

        note = await self.get_note_detail(note_id)
        ratings = {**(note.get('ratings') or {}), uid: rating}
        average = round(sum(ratings.values()) / len(ratings), 1)

        success, error = await self.db.update_document(COLLECTIONS['notes'], note_id, {
            f'ratings.{uid}': rating,
            'rating': average,
        })
        if not success:
            raise RuntimeError(f"Failed to rate note: {error}")

        return {'rating': average, 'ratingCount': len(ratings)}


note_service = NoteService()
