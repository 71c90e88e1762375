from fastapi import APIRouter, Depends, Query
import logging

from ..auth.dependencies import get_current_user
from ..services.course_service import course_service
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("/sections")
async def get_sections(
    subject: str = Query(..., min_length=1, description="Subject code, e.g. CS"),
    catalog: str = Query(..., min_length=1, description="Catalog number, e.g. 3240"),
    current_user: dict = Depends(get_current_user)
):
    """Lecture sections (or stand-alone labs) offered this term"""
    try:
        sections = await course_service.get_course_sections(subject, catalog)
        return {"success": True, "data": [s.dict() for s in sections], "count": len(sections)}
    except Exception as e:
        raise to_http_exception(e, "Course lookup")
