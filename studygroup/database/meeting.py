"""
Meeting and attendance ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, Relationship, SQLModel

from studygroup.core.meeting import AttendanceStatus, MeetingAttendeeData, MeetingData
from studygroup.core.models import as_utc
from studygroup.core.uuid import UUID, uuid7


class MeetingAttendee(SQLModel, table=True):
    """
    A user's attendance status for a meeting. There is at most one row per
    (meeting, user); later updates overwrite the status.
    """

    __tablename__ = "meeting_attendee"
    __table_args__ = (
        UniqueConstraint(
            "meeting_id", "user_id", name="uq_meeting_attendee_meeting_user"
        ),
    )

    attendee_id: UUID = Field(primary_key=True, default_factory=uuid7)
    meeting_id: UUID = Field(
        foreign_key="meeting.meeting_id", ondelete="CASCADE", index=True
    )
    user_id: str
    user_name: str
    status: AttendanceStatus = Field(
        sa_column=Column(
            SAEnum(AttendanceStatus, name="attendance_status"), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    meeting: "Meeting" = Relationship(back_populates="attendees")

    def to_core(self) -> MeetingAttendeeData:
        return MeetingAttendeeData(
            user_id=self.user_id,
            user_name=self.user_name,
            status=self.status,
            updated_at=as_utc(self.updated_at),
        )


class Meeting(SQLModel, table=True):
    __tablename__ = "meeting"

    meeting_id: UUID = Field(primary_key=True, default_factory=uuid7)
    group_id: UUID = Field(
        foreign_key="study_group.group_id", ondelete="CASCADE", index=True
    )

    title: str
    description: str | None = None
    date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    location: str | None = None

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )

    attendees: list[MeetingAttendee] = Relationship(
        back_populates="meeting",
        sa_relationship_kwargs=dict(
            lazy="selectin",
            order_by=lambda: MeetingAttendee.updated_at.desc(),
            passive_deletes=True,
        ),
    )

    def to_core(self) -> MeetingData:
        return MeetingData(
            meeting_id=self.meeting_id,
            group_id=self.group_id,
            title=self.title,
            description=self.description,
            date=as_utc(self.date),
            location=self.location,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            attendees=[attendee.user_id for attendee in self.attendees],
        )
