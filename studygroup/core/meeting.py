"""
Core meeting and attendance data models.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from studygroup.core.uuid import UUID

from .models import CamelModel


class AttendanceStatus(str, Enum):
    ATTENDING = "attending"
    NOT_ATTENDING = "not_attending"
    MAYBE = "maybe"


class MeetingData(CamelModel):
    meeting_id: UUID = Field(alias="id")
    group_id: UUID
    title: str
    description: str | None = None
    date: datetime
    location: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    # User ids of everyone who has recorded a status for this meeting.
    attendees: list[str] = Field(default_factory=list)


class MeetingAttendeeData(CamelModel):
    user_id: str
    user_name: str
    status: AttendanceStatus
    updated_at: datetime
