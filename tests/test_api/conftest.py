"""
Fixtures for the API tests. Requests go through the ASGI app in-process, with
the database session and coordinators pointed at the test database.
"""

import httpx
import pytest_asyncio

from studygroup.service.coordinator import MeetingScheduler, MembershipCoordinator
from studygroup.service.mock import RecordingNotificationDispatcher


def caller(user_id: str, email: str | None = None, groups: str | None = None):
    headers = {"X-User-Id": user_id}

    if email:
        headers["X-User-Email"] = email

    if groups:
        headers["X-User-Groups"] = groups

    return headers


@pytest_asyncio.fixture(scope="session")
def api_notifier():
    yield RecordingNotificationDispatcher()


@pytest_asyncio.fixture(scope="session")
async def client(session_manager, api_notifier):
    from studygroup.api import dependencies
    from studygroup.api.app import app

    async def get_test_session():
        async with session_manager.session() as session:
            async with session.begin():
                yield session

    coordinator = MembershipCoordinator(manager=session_manager, notifier=api_notifier)
    scheduler = MeetingScheduler(manager=session_manager, notifier=api_notifier)

    app.dependency_overrides[dependencies.get_async_session] = get_test_session
    app.dependency_overrides[dependencies.get_membership_coordinator] = (
        lambda: coordinator
    )
    app.dependency_overrides[dependencies.get_meeting_scheduler] = lambda: scheduler

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="session")
def headers():
    yield caller
