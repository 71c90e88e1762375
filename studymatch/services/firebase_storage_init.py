"""
Firebase Storage initialization and utilities.
Handles bucket setup and storage configuration.
"""

from firebase_admin import storage
import logging
from typing import Optional

from ..core.config import settings
from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

_storage_bucket = None

def initialize_storage() -> Optional[object]:
    """
    Initialize the Firebase Storage bucket.

    Returns:
        Storage bucket object if successful, None otherwise
    """
    global _storage_bucket

    if _storage_bucket is not None:
        return _storage_bucket

    if not is_firebase_available() and not initialize_firebase():
        logger.warning("⚠️ Firebase not initialized - storage unavailable")
        return None

    try:
        _storage_bucket = storage.bucket(settings.FIREBASE_STORAGE_BUCKET)
        logger.info(f"✅ Firebase Storage initialized: gs://{_storage_bucket.name}")
        return _storage_bucket

    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase Storage: {e}")
        logger.error(f"  Bucket name: {settings.FIREBASE_STORAGE_BUCKET}")
        return None

def get_storage_bucket() -> Optional[object]:
    """
    Get the Firebase Storage bucket.
    Initializes on first call if not already initialized.
    """
    if _storage_bucket is None:
        return initialize_storage()
    return _storage_bucket

def get_bucket_info() -> dict:
    """Get storage bucket information for the health endpoint."""
    bucket = get_storage_bucket()

    if not bucket:
        return {
            "available": False,
            "error": "Storage bucket not initialized"
        }

    return {
        "available": True,
        "bucket_name": bucket.name,
        "bucket_path": f"gs://{bucket.name}",
    }
