"""
Coordinators for the operations that notify other users: membership changes and
meeting creation.

Unlike the plain service functions, which work inside a caller's transaction,
the coordinators own their unit of work. The database change is committed
first, and only then is the notification attempted, so a notification failure
can never roll back or block the change itself.
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from structlog.typing import FilteringBoundLogger

from studygroup.config.managers import AsyncSessionManager
from studygroup.core.errors import ConflictError, InternalError, NotFoundError
from studygroup.core.group import JoinFailure, JoinResult
from studygroup.core.meeting import MeetingData
from studygroup.core.uuid import UUID

from . import groups as groups_service
from . import meetings as meetings_service
from . import membership as membership_service
from .notifications import NotificationDispatcher


def _failure(error: NotFoundError | ConflictError) -> JoinResult:
    return JoinResult(
        success=False,
        message=error.message,
        reason=JoinFailure(error.reason) if error.reason else None,
    )


class MembershipCoordinator:
    """
    Runs join, leave and kick. Results are always returned as a `JoinResult`;
    only storage failures raise (as `InternalError`).

    With `strict_capacity`, writes to the same group are serialized: an
    in-process lock per group is held until the transaction commits, and the
    group row is read `FOR UPDATE` for deployments with several workers. Two
    joins racing for the last place therefore cannot both succeed. Without it,
    concurrent joins may briefly overshoot `max_members`.
    """

    manager: AsyncSessionManager
    notifier: NotificationDispatcher
    strict_capacity: bool

    def __init__(
        self,
        manager: AsyncSessionManager,
        notifier: NotificationDispatcher,
        strict_capacity: bool = True,
    ):
        self.manager = manager
        self.notifier = notifier
        self.strict_capacity = strict_capacity
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._users: Counter[UUID] = Counter()

    @asynccontextmanager
    async def serialized(self, group_id: UUID):
        if not self.strict_capacity:
            yield
            return

        lock = self._locks.get(group_id)

        if lock is None:
            lock = self._locks[group_id] = asyncio.Lock()

        # Entries are dropped once nobody holds or waits for the lock.
        self._users[group_id] += 1

        try:
            async with lock:
                yield
        finally:
            self._users[group_id] -= 1

            if not self._users[group_id]:
                del self._users[group_id]
                del self._locks[group_id]

    async def join(
        self,
        group_id: UUID,
        user_id: str,
        user_name: str | None,
        log: FilteringBoundLogger,
    ) -> JoinResult:
        """
        Join a group as a member, then notify the leader.
        """
        log = log.bind(group_id=group_id, user_id=user_id)
        user_name = user_name or user_id

        try:
            async with self.serialized(group_id):
                async with self.manager.session() as conn:
                    async with conn.begin():
                        group, _ = await membership_service.join(
                            group_id=group_id,
                            user_id=user_id,
                            user_name=user_name,
                            conn=conn,
                            log=log,
                            lock_group=self.strict_capacity,
                        )
                        group_data = group.to_core()
        except (NotFoundError, ConflictError) as e:
            return _failure(e)
        except IntegrityError:
            # Lost a race against the same user joining on another connection.
            await log.ainfo("membership.join.duplicate")
            return _failure(
                membership_service.AlreadyMember("Already a member of this study group")
            )
        except SQLAlchemyError as e:
            await log.aerror("membership.join.storage_error", error=repr(e))
            raise InternalError("Could not join the study group") from e

        await self.notifier.member_joined(group=group_data, member_name=user_name, log=log)

        return JoinResult(
            success=True, message="Joined the study group.", group=group_data
        )

    async def leave(
        self, group_id: UUID, user_id: str, log: FilteringBoundLogger
    ) -> JoinResult:
        """
        Leave a group, then notify the leader.
        """
        log = log.bind(group_id=group_id, user_id=user_id)

        try:
            async with self.serialized(group_id):
                async with self.manager.session() as conn:
                    async with conn.begin():
                        group, member = await membership_service.leave(
                            group_id=group_id, user_id=user_id, conn=conn, log=log
                        )
                        group_data = group.to_core()
                        member_name = member.user_name
        except (NotFoundError, ConflictError) as e:
            return _failure(e)
        except SQLAlchemyError as e:
            await log.aerror("membership.leave.storage_error", error=repr(e))
            raise InternalError("Could not leave the study group") from e

        await self.notifier.member_left(group=group_data, member_name=member_name, log=log)

        return JoinResult(
            success=True, message="Left the study group.", group=group_data
        )

    async def kick(
        self, group_id: UUID, member_id: str, log: FilteringBoundLogger
    ) -> JoinResult:
        """
        Remove a member from a group. No one is notified.
        """
        log = log.bind(group_id=group_id, member_id=member_id)

        try:
            async with self.serialized(group_id):
                async with self.manager.session() as conn:
                    async with conn.begin():
                        group, member = await membership_service.kick(
                            group_id=group_id, member_id=member_id, conn=conn, log=log
                        )
                        group_data = group.to_core()
                        member_name = member.user_name
        except (NotFoundError, ConflictError) as e:
            return _failure(e)
        except SQLAlchemyError as e:
            await log.aerror("membership.kick.storage_error", error=repr(e))
            raise InternalError("Could not remove the member") from e

        return JoinResult(
            success=True,
            message=f"{member_name} was removed from the study group.",
            group=group_data,
        )


class MeetingScheduler:
    """
    Creates meetings and tells the group about them.
    """

    manager: AsyncSessionManager
    notifier: NotificationDispatcher

    def __init__(self, manager: AsyncSessionManager, notifier: NotificationDispatcher):
        self.manager = manager
        self.notifier = notifier

    async def create_meeting(
        self,
        group_id: UUID,
        title: str | None,
        date: datetime | None,
        log: FilteringBoundLogger,
        description: str | None = None,
        location: str | None = None,
        exclude_user_id: str | None = None,
    ) -> MeetingData:
        """
        Schedule a meeting, then notify every current member except
        `exclude_user_id`.

        Raises
        ------
        InvalidMeetingData
            If the title or date is missing.
        GroupNotFound
            If the group does not exist or is inactive.
        InternalError
            If the meeting could not be stored.
        """
        log = log.bind(group_id=group_id)

        try:
            async with self.manager.session() as conn:
                async with conn.begin():
                    meeting = await meetings_service.create(
                        group_id=group_id,
                        title=title,
                        date=date,
                        description=description,
                        location=location,
                        conn=conn,
                        log=log,
                    )
                    meeting_data = meeting.to_core()

                    group = await groups_service.read_by_id(
                        group_id=group_id, conn=conn, log=log
                    )
                    group_data = group.to_core()
        except SQLAlchemyError as e:
            await log.aerror("meeting.create.storage_error", error=repr(e))
            raise InternalError("Could not create the meeting") from e

        await self.notifier.meeting_created(
            group=group_data,
            meeting=meeting_data,
            member_ids=group_data.member_ids,
            exclude_user_id=exclude_user_id,
            log=log,
        )

        return meeting_data
