"""
Course Service - section lookup against the university class-search endpoint.

The endpoint is paginated: pages are requested from 1 upward until one comes
back with an empty "classes" array.
"""

from typing import Dict, Any, List, Optional
import logging

import httpx

from ..core.config import settings
from ..models.database_models import CourseSection

logger = logging.getLogger(__name__)

# Safety stop for a catalog that never returns an empty page
MAX_PAGES = 50


class CourseCatalogError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def format_time(raw: Any) -> str:
    """'09.30.00.000000-04:00' -> '09:30'; '' for missing values"""
    if not raw or not isinstance(raw, str):
        return ''
    parts = raw.split('.')
    hour = parts[0] or '00'
    minute = parts[1].zfill(2) if len(parts) > 1 and parts[1] else '00'
    return f"{hour}:{minute}"


def to_section(raw: Dict[str, Any]) -> CourseSection:
    meeting = (raw.get('meetings') or [{}])[0]
    return CourseSection(
        subject=raw.get('subject'),
        catalog=raw.get('catalog_nbr'),
        section=raw.get('class_section'),
        classNbr=raw.get('class_nbr'),
        component=raw.get('component'),
        descr=raw.get('descr'),
        meetDays=meeting.get('days') or 'TBA',
        startTime=format_time(meeting.get('start_time')),
        endTime=format_time(meeting.get('end_time')),
    )


def select_sections(classes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Lectures when there are any, otherwise the labs"""
    lectures = [c for c in classes if c.get('component') == 'LEC']
    if lectures:
        return lectures
    return [c for c in classes if c.get('component') == 'LAB']


class CourseService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def fetch_all_classes(self, subject: str, catalog: str) -> List[Dict[str, Any]]:
        params = {
            'institution': settings.COURSE_INSTITUTION,
            'term': settings.COURSE_TERM,
            'subject': subject,
            'catalog_nbr': catalog,
        }
        classes: List[Dict[str, Any]] = []

        async with httpx.AsyncClient(timeout=settings.COURSE_CATALOG_TIMEOUT, transport=self.transport) as client:
            for page in range(1, MAX_PAGES + 1):
                try:
                    resp = await client.get(settings.COURSE_CATALOG_URL, params={**params, 'page': page})
                except httpx.HTTPError as e:
                    raise CourseCatalogError(f"Course catalog unreachable: {e}") from e

                if not resp.is_success:
                    raise CourseCatalogError(f"HTTP {resp.status_code}", status_code=resp.status_code)

                try:
                    payload = resp.json()
                except ValueError as e:
                    raise CourseCatalogError(f"Course catalog returned invalid JSON on page {page}") from e
                if not isinstance(payload, dict):
                    raise CourseCatalogError(f"Unexpected course catalog response on page {page}")

                page_classes = payload.get('classes')
                if not isinstance(page_classes, list) or not page_classes:
                    break
                classes.extend(page_classes)
            else:
                logger.warning(f"Stopped paging {subject} {catalog} after {MAX_PAGES} pages")

        logger.info(f"Fetched {len(classes)} classes for {subject} {catalog}")
        return classes

    async def get_course_sections(self, subject: str, catalog: str) -> List[CourseSection]:
        subject = (subject or '').strip().upper()
        catalog = (catalog or '').strip()
        if not subject or not catalog:
            raise ValueError("Subject and catalog number are required")

        classes = await self.fetch_all_classes(subject, catalog)
        return [to_section(c) for c in select_sections(classes)]


course_service = CourseService()
