"""
Meeting and attendance routes.
"""

from datetime import datetime

from fastapi import APIRouter

from studygroup.api.dependencies import (
    AuthenticatedActorDependency,
    DatabaseDependency,
    LoggerDependency,
)
from studygroup.core.errors import PermissionDeniedError
from studygroup.core.meeting import AttendanceStatus, MeetingAttendeeData, MeetingData
from studygroup.core.models import CamelModel, MessageResponse
from studygroup.core.uuid import UUID
from studygroup.service import attendance as attendance_service
from studygroup.service import meetings as meetings_service

meeting_app = APIRouter(tags=["Meetings"])


class MeetingUpdateRequest(CamelModel):
    title: str | None = None
    description: str | None = None
    date: datetime | None = None
    location: str | None = None


@meeting_app.put(
    "/{meeting_id}",
    summary="Update a meeting",
    responses={
        200: {"description": "The updated meeting."},
        404: {"description": "Meeting not found."},
    },
)
async def update_meeting(
    meeting_id: UUID,
    content: MeetingUpdateRequest,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> MeetingData:
    meeting = await meetings_service.update(
        meeting_id=meeting_id,
        title=content.title,
        description=content.description,
        date=content.date,
        location=content.location,
        conn=conn,
        log=log,
    )

    if meeting is None:
        raise meetings_service.MeetingNotFound(f"Meeting {meeting_id} not found")

    return meeting.to_core()


@meeting_app.delete(
    "/{meeting_id}",
    summary="Delete a meeting",
    description="Delete a meeting together with its attendance records.",
    responses={
        200: {"description": "Meeting deleted."},
        404: {"description": "Meeting not found."},
    },
)
async def delete_meeting(
    meeting_id: UUID, conn: DatabaseDependency, log: LoggerDependency
) -> MessageResponse:
    if not await meetings_service.delete(meeting_id=meeting_id, conn=conn, log=log):
        raise meetings_service.MeetingNotFound(f"Meeting {meeting_id} not found")

    return MessageResponse(message="Meeting deleted.")


class AttendanceRequest(CamelModel):
    user_id: str | None = None
    user_name: str | None = None
    status: AttendanceStatus | None = None


@meeting_app.post(
    "/{meeting_id}/attendance",
    summary="Set attendance",
    description=(
        "Record whether a user attends a meeting. Setting it again overwrites "
        "the previous status."
    ),
    responses={
        200: {"description": "The attendance record."},
        400: {"description": "Unknown status."},
        401: {"description": "Log in first."},
        404: {"description": "Meeting not found."},
    },
)
async def set_attendance(
    meeting_id: UUID,
    content: AttendanceRequest,
    actor: AuthenticatedActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> MeetingAttendeeData:
    user_id = content.user_id or actor.user_id

    if user_id != actor.user_id and not actor.is_admin:
        raise PermissionDeniedError("You can only set your own attendance")

    user_name = content.user_name or (
        actor.display_name if user_id == actor.user_id else None
    )

    attendee = await attendance_service.set_attendance(
        meeting_id=meeting_id,
        user_id=user_id,
        user_name=user_name,
        status=content.status,
        conn=conn,
        log=log,
    )

    return attendee.to_core()


@meeting_app.get(
    "/{meeting_id}/attendance",
    summary="List attendance",
    description="Attendance records of a meeting, most recently updated first.",
)
async def list_attendance(
    meeting_id: UUID, conn: DatabaseDependency, log: LoggerDependency
) -> list[MeetingAttendeeData]:
    attendees = await attendance_service.get_attendee_list(
        meeting_id=meeting_id, conn=conn, log=log
    )

    return [attendee.to_core() for attendee in attendees]
