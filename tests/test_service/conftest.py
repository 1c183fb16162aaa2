"""
Fixtures for the service layer tests.
"""

from datetime import datetime, timedelta, timezone

import pytest_asyncio

from studygroup.core.uuid import uuid7
from studygroup.service import groups as groups_service
from studygroup.service import meetings as meetings_service
from studygroup.service.coordinator import MeetingScheduler, MembershipCoordinator
from studygroup.service.mock import (
    FailingNotificationDispatcher,
    RecordingNotificationDispatcher,
)


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid7().hex[-12:]}"


@pytest_asyncio.fixture(scope="session")
def make_group(session_manager, logger):
    """
    Factory for committed groups. Every call gets a fresh leader unless one
    is given.
    """

    async def make(
        leader_id: str | None = None,
        max_members: int = 5,
        category: str = "mathematics",
        name: str = "Linear Algebra",
    ):
        leader_id = leader_id or unique("leader")

        async with session_manager.session() as conn:
            async with conn.begin():
                group = await groups_service.create(
                    name=name,
                    description="Weekly problem sets",
                    category=category,
                    max_members=max_members,
                    leader_id=leader_id,
                    leader_name=f"{leader_id} name",
                    conn=conn,
                    log=logger,
                )

                return group.to_core()

    yield make


@pytest_asyncio.fixture(scope="session")
def make_meeting(session_manager, logger):
    async def make(group_id, title: str = "Chapter 3", days_ahead: int = 7):
        async with session_manager.session() as conn:
            async with conn.begin():
                meeting = await meetings_service.create(
                    group_id=group_id,
                    title=title,
                    date=datetime.now(tz=timezone.utc) + timedelta(days=days_ahead),
                    location="Library room 2",
                    conn=conn,
                    log=logger,
                )

                return meeting.to_core()

    yield make


@pytest_asyncio.fixture
def notifier():
    yield RecordingNotificationDispatcher()


@pytest_asyncio.fixture
def failing_notifier():
    yield FailingNotificationDispatcher()


@pytest_asyncio.fixture
def coordinator(session_manager, notifier):
    yield MembershipCoordinator(manager=session_manager, notifier=notifier)


@pytest_asyncio.fixture
def scheduler(session_manager, notifier):
    yield MeetingScheduler(manager=session_manager, notifier=notifier)
