from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

class MatchStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

# Partner as seen from one member
class PartnerSummary(BaseModel):
    id: str
    partnerId: str
    course: str
    partnerName: str
    partnerComputingId: Optional[str] = None

# Chat message ("system" sender for generated messages)
class Message(BaseModel):
    id: Optional[str] = None
    senderId: str
    text: str
    sentAt: Optional[datetime] = None

# Course catalog section
class CourseSection(BaseModel):
    subject: Optional[str] = None
    catalog: Optional[str] = None
    section: Optional[str] = None
    classNbr: Optional[int | str] = None
    component: Optional[str] = None
    descr: Optional[str] = None
    meetDays: str = "TBA"
    startTime: str = ""
    endTime: str = ""
