import uuid
import urllib.parse
from typing import Dict, Any
from datetime import datetime, timezone
import mimetypes
from pathlib import Path

from fastapi import HTTPException, UploadFile
import logging

from ..core.config import settings
from .firebase_storage_init import get_storage_bucket

logger = logging.getLogger(__name__)

class FileStorageService:
    """
    Stores profile pictures and shared note files in Firebase Storage.
    """

    def __init__(self, bucket=None):
        self._bucket = bucket

        self.allowed_image_types = {
            'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp', 'image/heic'
        }
        self.allowed_document_types = {'application/pdf'}
        self.max_file_size = settings.MAX_NOTE_FILE_MB * 1024 * 1024
        self.max_image_size = 5 * 1024 * 1024   # 5MB

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_storage_bucket()
        return self._bucket

    def _resolve_content_type(self, file: UploadFile) -> str:
        content_type = file.content_type
        if not content_type or content_type in ("application/octet-stream", "binary/octet-stream"):
            content_type = mimetypes.guess_type(file.filename or "")[0]
            if not content_type:
                raise HTTPException(status_code=400, detail="Unable to determine file type")
        return content_type.lower()

    def _validate_file(self, file: UploadFile, file_type: str = "any") -> str:
        """Validate file type and size, returning the resolved content type"""
        content_type = self._resolve_content_type(file)

        file.file.seek(0, 2)
        file_size = file.file.tell()
        file.file.seek(0)

        if file_type == "image":
            allowed, max_size = self.allowed_image_types, self.max_image_size
        else:
            allowed = self.allowed_image_types | self.allowed_document_types
            max_size = self.max_file_size

        if content_type not in allowed:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type. Allowed: {', '.join(sorted(allowed))}"
            )
        if file_size > max_size:
            raise HTTPException(
                status_code=400,
                detail=f"File too large. Maximum size: {max_size / (1024*1024):.1f}MB"
            )
        return content_type

    def _download_url(self, file_path: str, token: str) -> str:
        encoded_path = urllib.parse.quote(file_path, safe='')
        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self.bucket.name}/o/"
            f"{encoded_path}?alt=media&token={token}"
        )

    async def _upload(self, file: UploadFile, file_path: str, content_type: str,
                      metadata: Dict[str, Any]) -> Dict[str, Any]:
        if not self.bucket:
            raise HTTPException(status_code=500, detail="File storage not available")

        try:
            blob = self.bucket.blob(file_path)
            download_token = str(uuid.uuid4())
            blob.metadata = {
                **metadata,
                'original_filename': file.filename,
                'upload_timestamp': datetime.now(timezone.utc).isoformat(),
                'firebaseStorageDownloadTokens': download_token,
            }

            file_content = await file.read()
            blob.upload_from_string(file_content, content_type=content_type)

            download_url = self._download_url(file_path, download_token)
            logger.info(f"✅ File uploaded successfully: {file_path}")

            return {
                'file_path': file_path,
                'file_size': len(file_content),
                'content_type': content_type,
                'storage_url': f"gs://{self.bucket.name}/{file_path}",
                'download_url': download_url,
            }

        except Exception as e:
            logger.error(f"❌ File upload failed: {e}")
            raise HTTPException(status_code=500, detail=f"File upload failed: {str(e)}")

    async def upload_profile_picture(self, uid: str, file: UploadFile) -> Dict[str, Any]:
        """Upload to profilePics/<uid>.jpg, replacing any previous picture"""
        content_type = self._validate_file(file, "image")
        return await self._upload(file, f"profilePics/{uid}.jpg", content_type, {'uploaded_by': uid})

    async def upload_note_file(self, uid: str, course: str, file: UploadFile) -> Dict[str, Any]:
        """Upload a note PDF or picture under notes/<uid>/"""
        content_type = self._validate_file(file, "any")

        file_ext = Path(file.filename or "").suffix.lower() or (mimetypes.guess_extension(content_type) or "")
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        file_path = f"notes/{uid}/{timestamp}_{uuid.uuid4()}{file_ext}"

        return await self._upload(file, file_path, content_type, {'uploaded_by': uid, 'course': course})

    async def delete_file(self, file_path: str) -> bool:
        if not self.bucket:
            raise HTTPException(status_code=500, detail="File storage not available")

        try:
            self.bucket.blob(file_path).delete()
            logger.info(f"✅ File deleted successfully: {file_path}")
            return True
        except Exception as e:
            logger.error(f"❌ File deletion failed for {file_path}: {e}")
            return False

# Global instance
file_storage_service = FileStorageService()
