"""
Tests the meeting and attendance service layers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from studygroup.core.meeting import AttendanceStatus
from studygroup.core.uuid import uuid7
from studygroup.service import attendance as attendance_service
from studygroup.service import groups as groups_service
from studygroup.service import meetings as meetings_service


@pytest.mark.asyncio(loop_scope="session")
async def test_create_meeting(session_manager, logger, make_group):
    group = await make_group()
    date = datetime.now(tz=timezone.utc) + timedelta(days=1)

    async with session_manager.session() as conn:
        async with conn.begin():
            meeting = await meetings_service.create(
                group_id=group.group_id,
                title="  Exam prep  ",
                date=date,
                description="Past papers",
                conn=conn,
                log=logger,
            )

            data = meeting.to_core()

    assert data.title == "Exam prep"
    assert data.description == "Past papers"
    assert data.location is None
    assert data.updated_at is None
    assert data.attendees == []

    dumped = data.model_dump(mode="json", by_alias=True)
    assert dumped["id"] == str(data.meeting_id)
    assert dumped["groupId"] == str(group.group_id)


@pytest.mark.asyncio(loop_scope="session")
@pytest.mark.parametrize(
    "title, date",
    [
        (None, datetime(2030, 1, 1, tzinfo=timezone.utc)),
        ("   ", datetime(2030, 1, 1, tzinfo=timezone.utc)),
        ("Exam prep", None),
    ],
)
async def test_create_meeting_invalid(session_manager, logger, make_group, title, date):
    group = await make_group()

    with pytest.raises(meetings_service.InvalidMeetingData):
        async with session_manager.session() as conn:
            async with conn.begin():
                await meetings_service.create(
                    group_id=group.group_id,
                    title=title,
                    date=date,
                    conn=conn,
                    log=logger,
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_create_meeting_inactive_group(session_manager, logger, make_group):
    group = await make_group()

    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=group.group_id, conn=conn, log=logger
            )

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await meetings_service.create(
                    group_id=group.group_id,
                    title="Too late",
                    date=datetime.now(tz=timezone.utc),
                    conn=conn,
                    log=logger,
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_meeting_list_is_sorted_by_date(
    session_manager, logger, make_group, make_meeting
):
    group = await make_group()

    later = await make_meeting(group.group_id, title="Later", days_ahead=10)
    sooner = await make_meeting(group.group_id, title="Sooner", days_ahead=1)
    middle = await make_meeting(group.group_id, title="Middle", days_ahead=5)

    async with session_manager.session() as conn:
        async with conn.begin():
            meetings = await meetings_service.get_meeting_list(
                group_id=group.group_id, conn=conn, log=logger
            )

            assert [m.meeting_id for m in meetings] == [
                sooner.meeting_id,
                middle.meeting_id,
                later.meeting_id,
            ]

            assert (
                await meetings_service.get_meeting_list(
                    group_id=uuid7(), conn=conn, log=logger
                )
                == []
            )


@pytest.mark.asyncio(loop_scope="session")
async def test_meeting_dates_with_offsets(session_manager, logger, make_group):
    group = await make_group()
    kst = timezone(timedelta(hours=9))

    async with session_manager.session() as conn:
        async with conn.begin():
            late = await meetings_service.create(
                group_id=group.group_id,
                title="Late UTC",
                date=datetime(2030, 1, 1, 5, 0, tzinfo=timezone.utc),
                conn=conn,
                log=logger,
            )
            # 01:00 UTC
            early = await meetings_service.create(
                group_id=group.group_id,
                title="Early KST",
                date=datetime(2030, 1, 1, 10, 0, tzinfo=kst),
                conn=conn,
                log=logger,
            )
            # Naive dates are taken as UTC
            naive = await meetings_service.create(
                group_id=group.group_id,
                title="Naive",
                date=datetime(2030, 1, 1, 3, 0),
                conn=conn,
                log=logger,
            )
            ids = (late.meeting_id, early.meeting_id, naive.meeting_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            meetings = [
                meeting.to_core()
                for meeting in await meetings_service.get_meeting_list(
                    group_id=group.group_id, conn=conn, log=logger
                )
            ]

            moved = await meetings_service.update(
                meeting_id=ids[0],
                date=datetime(2030, 1, 1, 8, 0, tzinfo=kst),
                conn=conn,
                log=logger,
            )
            moved_date = moved.to_core().date

    assert [m.title for m in meetings] == ["Early KST", "Naive", "Late UTC"]
    assert [m.date for m in meetings] == [
        datetime(2030, 1, 1, 1, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 1, 3, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 1, 5, 0, tzinfo=timezone.utc),
    ]
    assert all(m.date.utcoffset() == timedelta(0) for m in meetings)

    assert moved_date == datetime(2029, 12, 31, 23, 0, tzinfo=timezone.utc)
    assert moved_date.utcoffset() == timedelta(0)


@pytest.mark.asyncio(loop_scope="session")
async def test_meetings_survive_group_deletion(
    session_manager, logger, make_group, make_meeting
):
    group = await make_group()
    meeting = await make_meeting(group.group_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=group.group_id, conn=conn, log=logger
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            meetings = await meetings_service.get_meeting_list(
                group_id=group.group_id, conn=conn, log=logger
            )
            assert [m.meeting_id for m in meetings] == [meeting.meeting_id]


@pytest.mark.asyncio(loop_scope="session")
async def test_update_meeting(session_manager, logger, make_group, make_meeting):
    group = await make_group()
    meeting = await make_meeting(group.group_id, title="Draft")

    async with session_manager.session() as conn:
        async with conn.begin():
            updated = await meetings_service.update(
                meeting_id=meeting.meeting_id,
                title="Final",
                location="Online",
                conn=conn,
                log=logger,
            )

            assert updated.title == "Final"
            assert updated.location == "Online"
            assert updated.description is None
            assert updated.updated_at is not None

    async with session_manager.session() as conn:
        async with conn.begin():
            unchanged = await meetings_service.update(
                meeting_id=meeting.meeting_id, conn=conn, log=logger
            )
            assert unchanged.title == "Final"

            assert (
                await meetings_service.update(
                    meeting_id=uuid7(), title="Nothing", conn=conn, log=logger
                )
                is None
            )


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_meeting(session_manager, logger, make_group, make_meeting):
    group = await make_group()
    meeting = await make_meeting(group.group_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            await attendance_service.set_attendance(
                meeting_id=meeting.meeting_id,
                user_id=group.leader_id,
                user_name="Leader",
                status=AttendanceStatus.ATTENDING,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            assert await meetings_service.delete(
                meeting_id=meeting.meeting_id, conn=conn, log=logger
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            with pytest.raises(meetings_service.MeetingNotFound):
                await meetings_service.read_by_id(
                    meeting_id=meeting.meeting_id, conn=conn, log=logger
                )

            assert not await meetings_service.delete(
                meeting_id=meeting.meeting_id, conn=conn, log=logger
            )

            # Attendance goes with the meeting
            assert (
                await attendance_service.get_attendee_list(
                    meeting_id=meeting.meeting_id, conn=conn, log=logger
                )
                == []
            )


@pytest.mark.asyncio(loop_scope="session")
async def test_attendance_upsert(session_manager, logger, make_group, make_meeting):
    group = await make_group()
    meeting = await make_meeting(group.group_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            first = await attendance_service.set_attendance(
                meeting_id=meeting.meeting_id,
                user_id="u1",
                user_name="Uma",
                status="attending",
                conn=conn,
                log=logger,
            )
            assert first.status == AttendanceStatus.ATTENDING

    async with session_manager.session() as conn:
        async with conn.begin():
            second = await attendance_service.set_attendance(
                meeting_id=meeting.meeting_id,
                user_id="u1",
                user_name="Someone else",
                status=AttendanceStatus.MAYBE,
                conn=conn,
                log=logger,
            )

            assert second.status == AttendanceStatus.MAYBE
            # The first name snapshot is kept
            assert second.user_name == "Uma"

    async with session_manager.session() as conn:
        async with conn.begin():
            await attendance_service.set_attendance(
                meeting_id=meeting.meeting_id,
                user_id="u2",
                user_name=None,
                status=AttendanceStatus.NOT_ATTENDING,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            attendees = await attendance_service.get_attendee_list(
                meeting_id=meeting.meeting_id, conn=conn, log=logger
            )

            assert [(a.user_id, a.status) for a in attendees] == [
                ("u2", AttendanceStatus.NOT_ATTENDING),
                ("u1", AttendanceStatus.MAYBE),
            ]
            assert attendees[0].user_name == "u2"

            read = await meetings_service.read_by_id(
                meeting_id=meeting.meeting_id, conn=conn, log=logger
            )
            assert sorted(read.to_core().attendees) == ["u1", "u2"]


@pytest.mark.asyncio(loop_scope="session")
async def test_attendance_invalid(session_manager, logger, make_group, make_meeting):
    group = await make_group()
    meeting = await make_meeting(group.group_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            with pytest.raises(attendance_service.InvalidAttendanceData):
                await attendance_service.set_attendance(
                    meeting_id=meeting.meeting_id,
                    user_id="u1",
                    user_name=None,
                    status="definitely",
                    conn=conn,
                    log=logger,
                )

            with pytest.raises(attendance_service.InvalidAttendanceData):
                await attendance_service.set_attendance(
                    meeting_id=meeting.meeting_id,
                    user_id="",
                    user_name=None,
                    status="maybe",
                    conn=conn,
                    log=logger,
                )

            with pytest.raises(meetings_service.MeetingNotFound):
                await attendance_service.set_attendance(
                    meeting_id=uuid7(),
                    user_id="u1",
                    user_name=None,
                    status="maybe",
                    conn=conn,
                    log=logger,
                )
