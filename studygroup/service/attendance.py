"""
Service layer for meeting attendance. Statuses are upserted per (meeting, user).
"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import ValidationError
from studygroup.core.meeting import AttendanceStatus
from studygroup.core.uuid import UUID, uuid7
from studygroup.database.meeting import MeetingAttendee

from . import meetings as meetings_service


class InvalidAttendanceData(ValidationError):
    pass


def _insert_for(conn: AsyncSession):
    match conn.get_bind().dialect.name:
        case "postgresql":
            return postgresql.insert
        case "sqlite":
            return sqlite.insert
        case name:
            raise NotImplementedError(f"Attendance upsert is not supported on {name}")


async def set_attendance(
    meeting_id: UUID,
    user_id: str,
    user_name: str | None,
    status: AttendanceStatus | str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> MeetingAttendee:
    """
    Record a user's attendance status for a meeting. Calling this again for the
    same user overwrites the status and refreshes `updated_at`; there is never
    more than one row per (meeting, user).

    Parameters
    ----------
    meeting_id: UUID
        The meeting.
    user_id: str
        The user whose status is being set.
    user_name: str | None
        Display name snapshot, stored on the first write only.
    status: AttendanceStatus | str
        One of attending, not_attending or maybe.

    Raises
    ------
    MeetingNotFound
        If the meeting does not exist.
    InvalidAttendanceData
        If the user id is empty or the status is unknown.
    """
    log = log.bind(meeting_id=meeting_id, user_id=user_id, status=status)

    if not user_id:
        await log.ainfo("attendance.missing_user")
        raise InvalidAttendanceData("A user id is required")

    try:
        status = AttendanceStatus(status)
    except ValueError:
        await log.ainfo("attendance.invalid_status")
        raise InvalidAttendanceData(f"Unknown attendance status {status!r}")

    await meetings_service.read_by_id(meeting_id=meeting_id, conn=conn, log=log)

    insert = _insert_for(conn)

    statement = insert(MeetingAttendee).values(
        attendee_id=uuid7(),
        meeting_id=meeting_id,
        user_id=user_id,
        user_name=user_name or user_id,
        status=status,
        updated_at=datetime.now(tz=timezone.utc),
    )
    statement = statement.on_conflict_do_update(
        index_elements=["meeting_id", "user_id"],
        set_=dict(
            status=statement.excluded.status,
            updated_at=statement.excluded.updated_at,
        ),
    )

    await conn.execute(statement)

    result = await conn.execute(
        select(MeetingAttendee)
        .where(MeetingAttendee.meeting_id == meeting_id)
        .where(MeetingAttendee.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    attendee = result.scalar_one()

    await log.ainfo("attendance.set")

    return attendee


async def get_attendee_list(
    meeting_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> list[MeetingAttendee]:
    """
    Get every attendance record of a meeting, most recently updated first.
    """
    log = log.bind(meeting_id=meeting_id)

    result = await conn.execute(
        select(MeetingAttendee)
        .where(MeetingAttendee.meeting_id == meeting_id)
        .order_by(MeetingAttendee.updated_at.desc())
    )

    attendees = list(result.scalars().all())

    await log.adebug("attendance.listed", number_of_attendees=len(attendees))

    return attendees
