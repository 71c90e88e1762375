"""
Match Router - posting, browsing, applying to and settling match requests
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user
from ..services.match_service import match_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matches", tags=["matches"])

# ===== Request Models =====

class SendMatchRequest(BaseModel):
    course: str = Field(..., min_length=1, description="Course code, e.g. CS 3240")
    studyTime: Optional[str] = None
    meetingPreference: Optional[str] = None
    bio: Optional[str] = None

# ===== Endpoints =====

@router.post("/", status_code=status.HTTP_201_CREATED)
async def send_match_request(
    body: SendMatchRequest,
    current_user: dict = Depends(get_current_user)
):
    try:
        request_id = await match_service.send_match_request(
            sender_id=current_user["uid"],
            course=body.course,
            study_time=body.studyTime,
            meeting_preference=body.meetingPreference,
            bio=body.bio,
        )
        return {"success": True, "data": {"id": request_id}, "message": "Match request sent"}
    except Exception as e:
        raise to_http_exception(e, "Sending match request")


@router.get("/mine")
async def get_my_requests(current_user: dict = Depends(get_current_user)):
    try:
        requests = await match_service.get_my_match_requests(current_user["uid"])
        return {"success": True, "data": requests, "count": len(requests)}
    except Exception as e:
        raise to_http_exception(e, "Loading match requests")


@router.get("/incoming")
async def get_incoming_requests(current_user: dict = Depends(get_current_user)):
    try:
        requests = await match_service.get_incoming_match_requests(current_user["uid"])
        return {"success": True, "data": requests, "count": len(requests)}
    except Exception as e:
        raise to_http_exception(e, "Loading incoming match requests")


@router.get("/open")
async def get_open_requests(
    course: str = Query(..., min_length=1),
    current_user: dict = Depends(get_current_user)
):
    """Open requests other students posted for a course"""
    try:
        requests = await match_service.get_open_match_requests(course, current_user["uid"])
        return {"success": True, "data": requests, "count": len(requests)}
    except Exception as e:
        raise to_http_exception(e, "Loading open match requests")


@router.post("/{request_id}/apply")
async def apply_to_request(request_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await match_service.apply_to_match_request(request_id, current_user["uid"])
        return {"success": True, "message": "Applied to match request"}
    except Exception as e:
        raise to_http_exception(e, "Applying to match request")


@router.post("/{request_id}/accept")
async def accept_request(request_id: str, current_user: dict = Depends(get_current_user)):
    try:
        partnership_id = await match_service.accept_match_request_by_id(request_id, current_user["uid"])
        return {
            "success": True,
            "data": {"partnershipId": partnership_id},
            "message": "Match accepted" if partnership_id else "Already partners for this course",
        }
    except Exception as e:
        raise to_http_exception(e, "Accepting match request")


@router.post("/{request_id}/reject")
async def reject_request(request_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await match_service.reject_match_request(request_id, current_user["uid"])
        return {"success": True, "message": "Match request rejected"}
    except Exception as e:
        raise to_http_exception(e, "Rejecting match request")
