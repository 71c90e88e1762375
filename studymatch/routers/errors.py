from fastapi import HTTPException, status
import logging

from ..services.course_service import CourseCatalogError

logger = logging.getLogger(__name__)


def to_http_exception(e: Exception, action: str) -> HTTPException:
    """Map a service exception onto the HTTP error the client shows"""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, PermissionError):
        logger.warning(f"{action} forbidden: {e}")
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, ValueError):
        code = status.HTTP_404_NOT_FOUND if "not found" in str(e).lower() else status.HTTP_400_BAD_REQUEST
        return HTTPException(status_code=code, detail=str(e))
    if isinstance(e, CourseCatalogError):
        logger.error(f"{action} failed: {e}")
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Course catalog error: {e}")

    logger.exception(f"{action} failed")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed: {str(e)}")
