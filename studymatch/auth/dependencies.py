from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .firebase_auth import firebase_auth
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """
    Verify Firebase ID token and return the decoded claims.
    Raises 401 if token is invalid.
    """
    user_data = await firebase_auth.verify_token(credentials.credentials)

    if not user_data:
        logger.warning("[Auth] Token verification failed - invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"[Auth] Authenticated user: {user_data.get('uid')}")
    return user_data

async def require_admin(current_user: dict = Depends(get_current_user)):
    """Debug/admin endpoints need the `admin` custom claim"""
    if not current_user.get("admin"):
        logger.warning(f"[Auth] Admin access denied for {current_user.get('uid')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
