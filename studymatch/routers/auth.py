"""
Authentication routes.

- Register: email, password, name, computingId (6 letters or digits, unique).
- Login: email + password via the Firebase REST API; returns id_token + profile.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth.dependencies import get_current_user
from ..models.user import UserRegister, UserLogin
from ..services.auth_service import auth_service, InvalidCredentialsError
from ..services.user_service import user_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: UserRegister) -> Dict[str, Any]:
    try:
        result = await auth_service.register_user(
            email=body.email,
            password=body.password,
            name=body.name.strip(),
            computing_id=body.computingId,
        )
        return {
            "success": True,
            "message": "Registration successful!",
            "data": {"uid": result["uid"], "email": result["email"]},
        }
    except Exception as e:
        raise to_http_exception(e, "Registration")


@router.post("/login")
async def login(body: UserLogin) -> Dict[str, Any]:
    try:
        return await auth_service.login(body.email, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except Exception as e:
        raise to_http_exception(e, "Login")


@router.get("/me")
async def me(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    try:
        profile = await user_service.get_current_user_profile(current_user)
        return {
            "uid": current_user.get("uid"),
            "email": current_user.get("email"),
            "email_verified": current_user.get("email_verified", False),
            "profile": profile,
        }
    except Exception as e:
        raise to_http_exception(e, "Loading account")
