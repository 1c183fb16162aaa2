"""
Service layer for meetings scheduled by a group.
"""

from datetime import datetime, timezone

from sqlalchemy import delete as sql_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import NotFoundError, ValidationError
from studygroup.core.models import as_utc
from studygroup.core.uuid import UUID
from studygroup.database.meeting import Meeting

from . import groups as groups_service


class MeetingNotFound(NotFoundError):
    pass


class InvalidMeetingData(ValidationError):
    pass


async def create(
    group_id: UUID,
    title: str | None,
    date: datetime | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    description: str | None = None,
    location: str | None = None,
) -> Meeting:
    """
    Schedule a meeting for a group.

    Parameters
    ----------
    group_id: UUID
        The group that owns the meeting.
    title: str
        Title of the meeting. Required.
    date: datetime
        When the meeting takes place. Required. Stored in UTC; naive values
        are taken to be UTC already.
    description: str | None
        Optional free text.
    location: str | None
        Optional place or link.

    Raises
    ------
    InvalidMeetingData
        If the title or date is missing.
    GroupNotFound
        If the group does not exist or is inactive.
    """
    log = log.bind(group_id=group_id, title=title, date=date)

    if not title or not title.strip() or date is None:
        await log.ainfo("meeting.create.missing_fields")
        raise InvalidMeetingData("A meeting needs a title and a date")

    await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    meeting = Meeting(
        group_id=group_id,
        title=title.strip(),
        description=description,
        date=as_utc(date),
        location=location,
        created_at=datetime.now(tz=timezone.utc),
    )
    conn.add(meeting)
    await conn.flush()

    meeting = await read_by_id(meeting_id=meeting.meeting_id, conn=conn, log=log)

    await log.ainfo("meeting.created", meeting_id=meeting.meeting_id)

    return meeting


async def read_by_id(
    meeting_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> Meeting:
    """
    Read a meeting, with its attendees, by its ID.

    Raises
    ------
    MeetingNotFound
        If the meeting does not exist.
    """
    log = log.bind(meeting_id=meeting_id)

    result = await conn.execute(
        select(Meeting)
        .where(Meeting.meeting_id == meeting_id)
        .execution_options(populate_existing=True)
    )
    meeting = result.scalar_one_or_none()

    if meeting is None:
        await log.ainfo("meeting.not_found")
        raise MeetingNotFound(f"Meeting {meeting_id} not found")

    await log.adebug("meeting.found")
    return meeting


async def get_meeting_list(
    group_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> list[Meeting]:
    """
    Get all meetings of a group, earliest first.
    """
    log = log.bind(group_id=group_id)

    result = await conn.execute(
        select(Meeting)
        .where(Meeting.group_id == group_id)
        .order_by(Meeting.date.asc(), Meeting.meeting_id.asc())
        .execution_options(populate_existing=True)
    )

    meetings = list(result.scalars().all())

    await log.adebug("meeting.listed", number_of_meetings=len(meetings))

    return meetings


async def update(
    meeting_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    title: str | None = None,
    description: str | None = None,
    date: datetime | None = None,
    location: str | None = None,
) -> Meeting | None:
    """
    Partially update a meeting. A title or date that is None is left alone;
    description and location are only changed when given.

    Returns
    -------
    Meeting | None
        The updated meeting, or None if it does not exist.
    """
    log = log.bind(meeting_id=meeting_id)

    try:
        meeting = await read_by_id(meeting_id=meeting_id, conn=conn, log=log)
    except MeetingNotFound:
        return None

    changed = []

    if title:
        meeting.title = title
        changed.append("title")

    if description is not None:
        meeting.description = description
        changed.append("description")

    if date is not None:
        meeting.date = as_utc(date)
        changed.append("date")

    if location is not None:
        meeting.location = location
        changed.append("location")

    if not changed:
        await log.adebug("meeting.update.no_changes")
        return meeting

    meeting.updated_at = datetime.now(tz=timezone.utc)
    conn.add(meeting)
    await conn.flush()

    await log.ainfo("meeting.updated", changed=changed)

    return meeting


async def delete(
    meeting_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> bool:
    """
    Delete a meeting and, through the foreign key, its attendance records.

    Returns
    -------
    bool
        Whether a meeting was deleted.
    """
    log = log.bind(meeting_id=meeting_id)

    result = await conn.execute(
        sql_delete(Meeting)
        .where(Meeting.meeting_id == meeting_id)
        .execution_options(synchronize_session=False)
    )

    deleted = result.rowcount > 0

    if deleted:
        await log.ainfo("meeting.deleted")
    else:
        await log.ainfo("meeting.delete.not_found")

    return deleted
