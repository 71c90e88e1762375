"""
Firestore client access.
The Admin SDK is initialised on first use so importing services never
requires credentials.
"""

from firebase_admin import firestore
import logging

from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

_client = None

def get_firestore_client():
    """Get or create the shared Firestore client"""
    global _client

    if _client is None:
        if not is_firebase_available() and not initialize_firebase():
            raise RuntimeError("Firebase initialization failed - Firestore not available")
        _client = firestore.client()
        logger.info("✅ Firestore client created")

    return _client
