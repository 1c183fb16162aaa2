"""
Service layer implementing membership changes: join, leave and kick. These are
the only functions that write `group_member` rows after group creation.
"""

from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import ConflictError, NotFoundError
from studygroup.core.group import JoinFailure
from studygroup.core.roles import Role
from studygroup.core.uuid import UUID
from studygroup.database.group import GroupMember, StudyGroup

from . import groups as groups_service


class AlreadyMember(ConflictError):
    reason = JoinFailure.ALREADY_MEMBER


class GroupFull(ConflictError):
    reason = JoinFailure.CAPACITY


class LeaderCannotLeave(ConflictError):
    reason = JoinFailure.LEADER_CANNOT_LEAVE


class NotAMember(ConflictError):
    reason = JoinFailure.NOT_A_MEMBER


class MemberNotFound(NotFoundError):
    reason = JoinFailure.MEMBER_NOT_FOUND


class CannotKickLeader(ConflictError):
    reason = JoinFailure.CANNOT_KICK_LEADER


async def _remove_member(
    group_id: UUID, user_id: str, conn: AsyncSession
) -> int:
    result = await conn.execute(
        delete(GroupMember)
        .where(GroupMember.group_id == group_id)
        .where(GroupMember.user_id == user_id)
        .execution_options(synchronize_session=False)
    )

    await groups_service.recompute_member_count(group_id=group_id, conn=conn)

    return result.rowcount


async def join(
    group_id: UUID,
    user_id: str,
    user_name: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    lock_group: bool = False,
) -> tuple[StudyGroup, GroupMember]:
    """
    Add a user to a group as a regular member.

    Parameters
    ----------
    group_id: UUID
        The group to join.
    user_id: str
        The joining user.
    user_name: str
        Display name of the joining user, stored as a snapshot.
    lock_group: bool
        Read the group row with `FOR UPDATE` so that concurrent joins on other
        connections wait for this transaction before checking capacity.

    Returns
    -------
    tuple[StudyGroup, GroupMember]
        The group with its recomputed member count, and the new member row.

    Raises
    ------
    GroupNotFound
        If the group does not exist or is inactive.
    AlreadyMember
        If the user is already in the group.
    GroupFull
        If the group has reached `max_members`.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    group = await groups_service.read_by_id(
        group_id=group_id, conn=conn, log=log, for_update=lock_group
    )

    if group.find_member(user_id) is not None:
        await log.ainfo("membership.join.already_member")
        raise AlreadyMember("Already a member of this study group")

    if group.current_members >= group.max_members:
        await log.ainfo(
            "membership.join.group_full",
            current_members=group.current_members,
            max_members=group.max_members,
        )
        raise GroupFull("This study group has reached its member limit")

    member = GroupMember(
        group_id=group_id,
        user_id=user_id,
        user_name=user_name or user_id,
        role=Role.MEMBER,
        joined_at=datetime.now(tz=timezone.utc),
    )
    conn.add(member)

    await groups_service.recompute_member_count(group_id=group_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    await log.ainfo("membership.joined", current_members=group.current_members)

    return group, member


async def leave(
    group_id: UUID,
    user_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> tuple[StudyGroup, GroupMember]:
    """
    Remove a user from a group at their own request.

    Returns
    -------
    tuple[StudyGroup, GroupMember]
        The group with its recomputed member count, and the removed member row.

    Raises
    ------
    GroupNotFound
        If the group does not exist or is inactive.
    LeaderCannotLeave
        If the user leads the group.
    NotAMember
        If the user is not in the group.
    """
    log = log.bind(group_id=group_id, user_id=user_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    if group.leader_id == user_id:
        await log.ainfo("membership.leave.leader")
        raise LeaderCannotLeave("The group leader cannot leave the study group")

    member = group.find_member(user_id)

    if member is None:
        await log.ainfo("membership.leave.not_member")
        raise NotAMember("Not a member of this study group")

    await _remove_member(group_id=group_id, user_id=user_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    await log.ainfo("membership.left", current_members=group.current_members)

    return group, member


async def kick(
    group_id: UUID,
    member_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> tuple[StudyGroup, GroupMember]:
    """
    Remove another member from a group. Whether the caller may do this is
    decided by the API layer; here only the leader row is protected.

    Raises
    ------
    GroupNotFound
        If the group does not exist or is inactive.
    MemberNotFound
        If `member_id` is not in the group.
    CannotKickLeader
        If `member_id` is the group leader.
    """
    log = log.bind(group_id=group_id, member_id=member_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    member = group.find_member(member_id)

    if member is None:
        await log.ainfo("membership.kick.member_not_found")
        raise MemberNotFound("Member not found in this study group")

    if member.role == Role.LEADER:
        await log.ainfo("membership.kick.leader")
        raise CannotKickLeader("The group leader cannot be removed")

    await _remove_member(group_id=group_id, user_id=member_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    await log.ainfo("membership.kicked", current_members=group.current_members)

    return group, member
