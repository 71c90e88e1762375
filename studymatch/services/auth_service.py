from typing import Dict, Any
from datetime import datetime, timezone
import logging

import httpx

from ..auth.firebase_auth import firebase_auth
from ..core.config import settings
from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..models.user import COMPUTING_ID_PATTERN

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"


class InvalidCredentialsError(Exception):
    pass


class AuthService:
    def __init__(self, db=None, auth=None):
        self.db = db or database_service
        self.auth = auth or firebase_auth

    async def is_computing_id_taken(self, computing_id: str) -> bool:
        success, docs, error = await self.db.query_documents(
            COLLECTIONS['users'], [('computingId', '==', computing_id)], limit=1
        )
        if not success:
            raise RuntimeError(f"Could not check computing ID: {error}")
        return bool(docs)

    async def register_user(self, email: str, password: str, name: str, computing_id: str) -> Dict[str, Any]:
        """
        Create the Auth account and its users/<uid> document.
        The Auth account is removed again if the profile cannot be written.
        """
        if not COMPUTING_ID_PATTERN.match(computing_id or ""):
            raise ValueError("Computing ID must be exactly 6 letters or numbers")

        if await self.is_computing_id_taken(computing_id):
            raise ValueError("Computing ID is already registered")

        firebase_user = await self.auth.create_user(email=email, password=password, display_name=name)
        uid = firebase_user["uid"]

        profile = {
            'name': name,
            'email': email,
            'computingId': computing_id,
            'photoURL': '',
            'createdAt': datetime.now(timezone.utc),
        }
        ok, _, err = await self.db.create_document(COLLECTIONS['users'], profile, document_id=uid)
        if not ok:
            try:
                await self.auth.delete_user(uid)
            except Exception:
                logger.warning("Rollback of Firebase user %s failed.", uid, exc_info=True)
            raise RuntimeError(f"Failed to create user profile: {err}")

        logger.info("Registered uid=%s computing_id=%s", uid, computing_id)
        return {'uid': uid, 'email': firebase_user['email'], 'profile': profile}

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """
        Server-side password verification using the Firebase REST API.
        Returns {idToken, refreshToken, expiresIn, localId, ...}
        """
        if not settings.FIREBASE_WEB_API_KEY:
            raise RuntimeError("Missing FIREBASE_WEB_API_KEY")

        payload = {"email": email, "password": password, "returnSecureToken": True}
        async with httpx.AsyncClient(timeout=15.0) as client:
            resp = await client.post(
                SIGN_IN_URL,
                params={"key": settings.FIREBASE_WEB_API_KEY},
                json=payload,
            )
        if resp.status_code != 200:
            raise InvalidCredentialsError("Invalid email or password")
        return resp.json()

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        token_data = await self.sign_in_with_password(email, password)
        uid = token_data.get("localId")

        _, profile, _ = await self.db.get_document(COLLECTIONS['users'], uid)
        return {
            "id_token": token_data.get("idToken"),
            "token_type": "Bearer",
            "refresh_token": token_data.get("refreshToken"),
            "expires_in": token_data.get("expiresIn", "3600"),
            "uid": uid,
            "email": email,
            "profile": profile or {},
        }


auth_service = AuthService()
