from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, validator, root_validator
from typing import Optional, List, Dict
import re

COMPUTING_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{6}$")

# Defaults written when a profile is created from the Auth record
DEFAULT_STUDY_TIMES = ["Evenings", "Weekends"]
DEFAULT_MEETING_PREFERENCE = "In-person & Virtual"
DEFAULT_AVATAR = "person-circle"


# ──────────────────────────────────────────────────────────────────────────────
# Registration / login payloads (camelCase for app)
# ──────────────────────────────────────────────────────────────────────────────

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    computingId: str

    @root_validator(pre=True)
    def _fold_legacy(cls, v: Dict) -> Dict:
        # The callable function used "computingID"
        v.setdefault("computingId", v.get("computingID") or v.get("computing_id"))
        return v

    @validator("computingId")
    def _check_computing_id(cls, raw: str) -> str:
        if not isinstance(raw, str) or not COMPUTING_ID_PATTERN.match(raw):
            raise ValueError("Computing ID must be exactly 6 letters or numbers")
        return raw


class UserLogin(BaseModel):
    email: EmailStr
    password: str


# ──────────────────────────────────────────────────────────────────────────────
# Profile
# ──────────────────────────────────────────────────────────────────────────────

class ProfileUpdate(BaseModel):
    """Partial profile update; only fields that were sent are written"""
    name: Optional[str] = None
    bio: Optional[str] = None
    courses: Optional[List[str]] = None
    studyTimes: Optional[List[str]] = None
    meetingPreference: Optional[str] = None
    selectedAvatar: Optional[str] = None
    photoURL: Optional[str] = None

    @validator("name")
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v is not None else v
