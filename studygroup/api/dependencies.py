"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from studygroup.config.settings import Settings
from studygroup.core.user import Actor
from studygroup.service.coordinator import MeetingScheduler, MembershipCoordinator
from studygroup.service.notifications import (
    NotificationDispatcher,
    dispatcher_from_settings,
)


@lru_cache
def SETTINGS():
    return Settings()


DATABASE_MANAGER = SETTINGS().async_manager()


async def get_async_session():
    async with DATABASE_MANAGER.session() as session:
        async with session.begin():
            yield session


def logger():
    return get_logger()


@lru_cache
def get_notifier() -> NotificationDispatcher:
    return dispatcher_from_settings(settings=SETTINGS())


@lru_cache
def get_membership_coordinator() -> MembershipCoordinator:
    # One instance per process: it holds the per-group lock table.
    return MembershipCoordinator(
        manager=DATABASE_MANAGER,
        notifier=get_notifier(),
        strict_capacity=SETTINGS().strict_capacity,
    )


@lru_cache
def get_meeting_scheduler() -> MeetingScheduler:
    return MeetingScheduler(manager=DATABASE_MANAGER, notifier=get_notifier())


def parse_groups(header: str | None) -> set[str]:
    if not header:
        return set()

    return {group.strip() for group in header.split(",") if group.strip()}


async def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
    x_user_groups: Annotated[str | None, Header()] = None,
) -> Actor | None:
    """
    The caller, as asserted by the gateway in front of this service. Returns
    None for anonymous requests.
    """
    if not x_user_id:
        return None

    return Actor(
        user_id=x_user_id,
        email=x_user_email,
        user_name=x_user_name,
        groups=parse_groups(x_user_groups),
    )


async def get_authenticated_actor(
    actor: Annotated[Actor | None, Depends(get_actor)],
) -> Actor:
    """
    The same as `get_actor` but raises a 401 for anonymous requests.
    """
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Log in first"
        )

    return actor


SettingsDependency = Annotated[Settings, Depends(SETTINGS)]
DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
ActorDependency = Annotated[Actor | None, Depends(get_actor)]
AuthenticatedActorDependency = Annotated[Actor, Depends(get_authenticated_actor)]
MembershipDependency = Annotated[
    MembershipCoordinator, Depends(get_membership_coordinator)
]
SchedulerDependency = Annotated[MeetingScheduler, Depends(get_meeting_scheduler)]
