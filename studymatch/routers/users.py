from fastapi import APIRouter, Depends, File, UploadFile
from typing import Any, Dict
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..models.user import ProfileUpdate
from ..services.user_service import user_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def get_my_profile(current_user: dict = Depends(get_current_user)):
    try:
        profile = await user_service.get_current_user_profile(current_user)
        return {"success": True, "data": profile}
    except Exception as e:
        raise to_http_exception(e, "Loading profile")


@router.patch("/me")
async def update_my_profile(
    body: ProfileUpdate,
    current_user: dict = Depends(get_current_user)
):
    """Write the fields that were sent; a new name is mirrored to the Auth display name"""
    try:
        uid = current_user["uid"]
        await user_service.ensure_user_document(uid)
        result = await user_service.update_user_profile(
            uid,
            body.dict(exclude_unset=True),
            current_display_name=current_user.get("name"),
        )
        return {"success": True, "message": result["message"]}
    except Exception as e:
        raise to_http_exception(e, "Updating profile")


@router.post("/me/photo")
async def upload_my_photo(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user)
):
    try:
        photo_url = await user_service.upload_profile_picture(current_user["uid"], file)
        return {"success": True, "data": {"photoURL": photo_url}}
    except Exception as e:
        raise to_http_exception(e, "Uploading profile picture")


@router.post("/me/refresh-partner-names")
async def refresh_partner_names(current_user: dict = Depends(get_current_user)):
    try:
        result = await user_service.refresh_all_partner_names(current_user["uid"])
        return {"success": result["success"], "data": result}
    except Exception as e:
        raise to_http_exception(e, "Refreshing partner names")


@router.get("/debug/partners")
async def debug_partners(current_user: dict = Depends(require_admin)) -> Dict[str, Any]:
    try:
        report = await user_service.debug_partners_and_users(current_user["uid"])
        return {"success": True, "data": report}
    except Exception as e:
        raise to_http_exception(e, "Partner debug report")


@router.get("/{uid}")
async def get_user(uid: str, current_user: dict = Depends(get_current_user)):
    """Public profile of any user; unknown users resolve to a placeholder"""
    try:
        info = await user_service.get_user_info(uid)
        return {"success": True, "data": {"id": uid, **info}}
    except Exception as e:
        raise to_http_exception(e, "Loading user")
