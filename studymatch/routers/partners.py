from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user
from ..models.database_models import PartnerSummary
from ..services.partner_service import partner_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/partners", tags=["partners"])


class ReportPartnerRequest(BaseModel):
    reason: str = Field(..., description="Reason picked or typed by the reporter")


@router.get("/")
async def list_partners(current_user: dict = Depends(get_current_user)):
    """All partners of the current user with their block status"""
    try:
        partners = await partner_service.get_partners_with_block_status(current_user["uid"])
        return {"success": True, "data": partners, "count": len(partners)}
    except Exception as e:
        raise to_http_exception(e, "Loading partners")


@router.get("/course/{course}")
async def list_partners_for_course(course: str, current_user: dict = Depends(get_current_user)):
    try:
        partners = await partner_service.get_partners_for_course_with_names(current_user["uid"], course)
        return {
            "success": True,
            "data": [PartnerSummary(**p).dict() for p in partners],
            "count": len(partners),
        }
    except Exception as e:
        raise to_http_exception(e, "Loading course partners")


@router.get("/blocked")
async def list_blocked_partners(current_user: dict = Depends(get_current_user)):
    try:
        partners = await partner_service.get_blocked_partners(current_user["uid"])
        return {"success": True, "data": partners, "count": len(partners)}
    except Exception as e:
        raise to_http_exception(e, "Loading blocked partners")


@router.post("/refresh-names")
async def refresh_partnership_names(current_user: dict = Depends(get_current_user)):
    try:
        result = await partner_service.refresh_all_partnership_names(current_user["uid"])
        return {"success": result["success"], "data": result}
    except Exception as e:
        raise to_http_exception(e, "Refreshing partnership names")


@router.post("/{partnership_id}/delete-request")
async def request_delete(partnership_id: str, current_user: dict = Depends(get_current_user)):
    """The partnership is removed once both members have asked"""
    try:
        outcome = await partner_service.request_delete_partner(partnership_id, current_user["uid"])
        messages = {
            "deleted": "Partnership deleted",
            "requested": "Delete request sent. Waiting for your partner.",
            "unchanged": "You already requested to delete this partnership",
        }
        return {"success": True, "data": {"status": outcome}, "message": messages[outcome]}
    except Exception as e:
        raise to_http_exception(e, "Deleting partner")


@router.post("/{partnership_id}/block")
async def block(partnership_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await partner_service.block_partner(partnership_id, current_user["uid"])
        return {"success": True, "message": "Partner blocked"}
    except Exception as e:
        raise to_http_exception(e, "Blocking partner")


@router.post("/{partnership_id}/unblock")
async def unblock(partnership_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await partner_service.unblock_partner(partnership_id, current_user["uid"])
        return {"success": True, "message": "Partner unblocked"}
    except Exception as e:
        raise to_http_exception(e, "Unblocking partner")


@router.get("/{partnership_id}/blocked")
async def blocked_status(partnership_id: str, current_user: dict = Depends(get_current_user)):
    try:
        blocked = await partner_service.is_partner_blocked(partnership_id, current_user["uid"])
        return {"success": True, "data": {"isBlocked": blocked}}
    except Exception as e:
        raise to_http_exception(e, "Checking block status")


@router.post("/{partnership_id}/report")
async def report(
    partnership_id: str,
    body: ReportPartnerRequest,
    current_user: dict = Depends(get_current_user)
):
    try:
        await partner_service.report_partner(partnership_id, current_user["uid"], body.reason)
        return {"success": True, "message": "Report submitted. Thank you."}
    except Exception as e:
        raise to_http_exception(e, "Reporting partner")
