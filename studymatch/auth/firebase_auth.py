from firebase_admin import auth
from typing import Optional
import logging

from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

class FirebaseAuth:
    def _ensure_initialized(self):
        if not is_firebase_available():
            if not initialize_firebase():
                raise RuntimeError("Firebase initialization failed - Auth not available")

    async def verify_token(self, token: str) -> Optional[dict]:
        try:
            self._ensure_initialized()
            return auth.verify_id_token(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    async def create_user(self, email: str, password: str, display_name: str = None) -> dict:
        try:
            self._ensure_initialized()
            user = auth.create_user(
                email=email,
                password=password,
                display_name=display_name
            )
            return {
                "uid": user.uid,
                "email": user.email,
            }
        except Exception as e:
            raise ValueError(f"User creation failed: {e}")

    async def get_user(self, uid: str):
        """Get user by UID"""
        try:
            self._ensure_initialized()
            return auth.get_user(uid)
        except Exception as e:
            logger.warning(f"Get user failed: {e}")
            return None

    async def delete_user(self, uid: str):
        """Delete a user from Firebase Auth"""
        self._ensure_initialized()
        auth.delete_user(uid)

    async def update_user(self, uid: str, **kwargs):
        """Update user properties in Firebase Auth"""
        self._ensure_initialized()
        auth.update_user(uid, **kwargs)

firebase_auth = FirebaseAuth()
