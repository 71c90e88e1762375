from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user
from ..services.note_service import note_service, MIN_RATING, MAX_RATING
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])


class CreateNoteRequest(BaseModel):
    title: str
    course: str
    mediaURL: str


class RateNoteRequest(BaseModel):
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_note(body: CreateNoteRequest, current_user: dict = Depends(get_current_user)):
    """Share a note that is already hosted somewhere"""
    try:
        note_id = await note_service.upload_media_note(
            current_user["uid"], body.title, body.course, body.mediaURL,
            author_name=current_user.get("name"),
        )
        return {"success": True, "data": {"id": note_id}}
    except Exception as e:
        raise to_http_exception(e, "Uploading note")


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_note(
    title: str = Form(...),
    course: str = Form(...),
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user)
):
    """Upload a PDF or picture and share it as a note"""
    try:
        note_id = await note_service.upload_note_file(
            current_user["uid"], title, course, file,
            author_name=current_user.get("name"),
        )
        return {"success": True, "data": {"id": note_id}}
    except Exception as e:
        raise to_http_exception(e, "Uploading note")


@router.get("/course/{course}")
async def notes_for_course(course: str, current_user: dict = Depends(get_current_user)):
    try:
        notes = await note_service.get_notes_by_course(course)
        return {"success": True, "data": notes, "count": len(notes)}
    except Exception as e:
        raise to_http_exception(e, "Loading notes")


@router.get("/mine")
async def my_notes(current_user: dict = Depends(get_current_user)):
    try:
        notes = await note_service.get_notes_by_user(current_user["uid"])
        return {"success": True, "data": notes, "count": len(notes)}
    except Exception as e:
        raise to_http_exception(e, "Loading notes")


@router.get("/search")
async def search_notes(q: str = Query(..., min_length=1), current_user: dict = Depends(get_current_user)):
    try:
        notes = await note_service.search_notes_by_title(q)
        return {"success": True, "data": notes, "count": len(notes)}
    except Exception as e:
        raise to_http_exception(e, "Searching notes")


@router.get("/{note_id}")
async def note_detail(note_id: str, current_user: dict = Depends(get_current_user)):
    try:
        return {"success": True, "data": await note_service.get_note_detail(note_id)}
    except Exception as e:
        raise to_http_exception(e, "Loading note")


@router.delete("/{note_id}")
async def delete_note(note_id: str, current_user: dict = Depends(get_current_user)):
    try:
        await note_service.delete_note(note_id, current_user["uid"])
        return {"success": True, "message": "Note deleted"}
    except Exception as e:
        raise to_http_exception(e, "Deleting note")


@router.post("/{note_id}/rating")
async def rate_note(note_id: str, body: RateNoteRequest, current_user: dict = Depends(get_current_user)):
    try:
        result = await note_service.rate_note(note_id, current_user["uid"], body.rating)
        return {"success": True, "data": result}
    except Exception as e:
        raise to_http_exception(e, "Rating note")
