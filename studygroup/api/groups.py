"""
Study group routes: lifecycle, membership and the meetings of a group.
"""

from datetime import datetime

from fastapi import APIRouter, Response, status
from structlog.typing import FilteringBoundLogger

from studygroup.api.dependencies import (
    AuthenticatedActorDependency,
    DatabaseDependency,
    LoggerDependency,
    MembershipDependency,
    SchedulerDependency,
    SettingsDependency,
)
from studygroup.core.errors import PermissionDeniedError, ValidationError
from studygroup.core.group import (
    GroupData,
    GroupListData,
    JoinResult,
    UserGroupListData,
)
from studygroup.core.meeting import MeetingData
from studygroup.core.models import CamelModel, MessageResponse
from studygroup.core.roles import Capability, has_capability, roles_for
from studygroup.core.user import Actor
from studygroup.core.uuid import UUID
from studygroup.database.group import StudyGroup
from studygroup.service import groups as groups_service
from studygroup.service import meetings as meetings_service

group_app = APIRouter(tags=["Study Groups"])


async def require_capability(
    group: StudyGroup,
    actor: Actor,
    capability: Capability,
    log: FilteringBoundLogger,
):
    roles = roles_for(
        user_id=actor.user_id,
        leader_id=group.leader_id,
        member_ids=[member.user_id for member in group.members],
        is_admin=actor.is_admin,
    )

    if not has_capability(roles, capability):
        await log.awarning("group.access_denied", capability=capability)
        raise PermissionDeniedError(
            "Only the group leader or an administrator can do this"
        )


def membership_response(result: JoinResult, response: Response) -> JoinResult:
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST

    return result


@group_app.get(
    "",
    summary="List study groups",
    description=(
        "List active study groups, newest first, optionally filtered by "
        "category. Use category=all to disable the filter."
    ),
    responses={
        200: {"description": "A page of groups."},
        400: {"description": "Invalid page or limit."},
    },
)
async def list_groups(
    conn: DatabaseDependency,
    log: LoggerDependency,
    settings: SettingsDependency,
    category: str = "all",
    page: int = 1,
    limit: int | None = None,
) -> GroupListData:
    log = log.bind(category=category, page=page, limit=limit)

    groups, total, total_pages = await groups_service.get_group_list(
        category=category,
        page=page,
        page_size=limit or settings.default_page_size,
        conn=conn,
        log=log,
    )

    return GroupListData(
        groups=[group.to_core() for group in groups],
        total=total,
        total_pages=total_pages,
    )


@group_app.get(
    "/categories",
    summary="List categories",
    description="The distinct categories in use by active groups.",
)
async def list_categories(conn: DatabaseDependency, log: LoggerDependency) -> list[str]:
    return await groups_service.get_categories(conn=conn, log=log)


@group_app.get(
    "/users/{user_id}",
    summary="Groups led by a user",
    responses={200: {"description": "A page of groups led by the user."}},
)
async def list_led_groups(
    user_id: str,
    conn: DatabaseDependency,
    log: LoggerDependency,
    page: int = 1,
    limit: int = 10,
) -> UserGroupListData:
    groups, pagination = await groups_service.get_led_groups(
        user_id=user_id, page=page, page_size=limit, conn=conn, log=log
    )

    return UserGroupListData(
        groups=[group.to_core() for group in groups], pagination=pagination
    )


@group_app.get(
    "/users/{user_id}/participating",
    summary="Groups a user has joined",
    description="Groups the user is a member of but does not lead.",
    responses={200: {"description": "A page of groups joined by the user."}},
)
async def list_participating_groups(
    user_id: str,
    conn: DatabaseDependency,
    log: LoggerDependency,
    page: int = 1,
    limit: int = 10,
) -> UserGroupListData:
    groups, pagination = await groups_service.get_participating_groups(
        user_id=user_id, page=page, page_size=limit, conn=conn, log=log
    )

    return UserGroupListData(
        groups=[group.to_core() for group in groups], pagination=pagination
    )


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    responses={
        200: {"description": "Group details with members."},
        404: {"description": "Group not found."},
    },
)
async def get_group_by_id(
    group_id: UUID, conn: DatabaseDependency, log: LoggerDependency
) -> GroupData:
    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)
    return group.to_core()


class GroupCreationRequest(CamelModel):
    """
    Request model for creating a new group. The leader defaults to the caller.
    """

    name: str | None = None
    description: str | None = None
    category: str | None = None
    max_members: int | None = None
    leader: str | None = None
    leader_name: str | None = None


@group_app.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a new group",
    description=(
        "Create a study group. The leader (by default the caller) is added as "
        "its first member."
    ),
    responses={
        201: {"description": "Group created successfully."},
        400: {"description": "Missing fields or invalid member limit."},
        401: {"description": "Log in first."},
    },
)
async def create_group(
    content: GroupCreationRequest,
    actor: AuthenticatedActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    leader_id = content.leader or actor.user_id
    leader_name = content.leader_name or (
        actor.display_name if leader_id == actor.user_id else None
    )

    log = log.bind(user_id=actor.user_id, leader_id=leader_id)

    group = await groups_service.create(
        name=content.name,
        description=content.description,
        category=content.category,
        max_members=content.max_members,
        leader_id=leader_id,
        leader_name=leader_name,
        conn=conn,
        log=log,
    )

    return group.to_core()


class GroupUpdateRequest(CamelModel):
    name: str | None = None
    description: str | None = None
    max_members: int | None = None


@group_app.put(
    "/{group_id}",
    summary="Update a group",
    description="Change the name, description or member limit of a group.",
    responses={
        200: {"description": "The updated group."},
        400: {"description": "Invalid member limit."},
        404: {"description": "Group not found."},
    },
)
async def update_group(
    group_id: UUID,
    content: GroupUpdateRequest,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await groups_service.update(
        group_id=group_id,
        name=content.name,
        description=content.description,
        max_members=content.max_members,
        conn=conn,
        log=log,
    )

    if group is None:
        raise groups_service.GroupNotFound(f"Study group {group_id} not found")

    return group.to_core()


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Deactivate a group. Only the leader or an administrator can delete it."
    ),
    responses={
        200: {"description": "Group deleted."},
        403: {"description": "Access denied to delete this group."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: UUID,
    actor: AuthenticatedActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> MessageResponse:
    log = log.bind(group_id=group_id, user_id=actor.user_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    await require_capability(
        group=group, actor=actor, capability=Capability.DELETE_GROUP, log=log
    )

    if not await groups_service.delete_group(group_id=group_id, conn=conn, log=log):
        raise groups_service.GroupNotFound(f"Study group {group_id} not found")

    return MessageResponse(message="Study group deleted.")


class JoinRequest(CamelModel):
    user_id: str | None = None
    user_name: str | None = None


@group_app.post(
    "/{group_id}/join",
    summary="Join a group",
    responses={
        200: {"description": "Joined the group."},
        400: {"description": "The group is full, missing, or already joined."},
        401: {"description": "Log in first."},
    },
)
async def join_group(
    group_id: UUID,
    response: Response,
    content: JoinRequest,
    actor: AuthenticatedActorDependency,
    membership: MembershipDependency,
    log: LoggerDependency,
) -> JoinResult:
    user_id = content.user_id or actor.user_id

    if user_id != actor.user_id and not actor.is_admin:
        raise PermissionDeniedError("You can only join a group yourself")

    user_name = content.user_name or (
        actor.display_name if user_id == actor.user_id else None
    )

    result = await membership.join(
        group_id=group_id, user_id=user_id, user_name=user_name, log=log
    )

    return membership_response(result=result, response=response)


class LeaveRequest(CamelModel):
    user_id: str | None = None


@group_app.post(
    "/{group_id}/leave",
    summary="Leave a group",
    description="The group leader cannot leave their own group.",
    responses={
        200: {"description": "Left the group."},
        400: {"description": "Not a member, or the caller is the leader."},
    },
)
async def leave_group(
    group_id: UUID,
    response: Response,
    content: LeaveRequest,
    actor: AuthenticatedActorDependency,
    membership: MembershipDependency,
    log: LoggerDependency,
) -> JoinResult:
    user_id = content.user_id or actor.user_id

    if user_id != actor.user_id and not actor.is_admin:
        raise PermissionDeniedError("You can only leave a group yourself")

    result = await membership.leave(group_id=group_id, user_id=user_id, log=log)

    return membership_response(result=result, response=response)


class KickRequest(CamelModel):
    member_id: str | None = None


@group_app.post(
    "/{group_id}/kick",
    summary="Remove a member",
    description="Only the leader or an administrator can remove members.",
    responses={
        200: {"description": "Member removed."},
        400: {"description": "Member missing, or the member is the leader."},
        401: {"description": "Log in first."},
        403: {"description": "Access denied to remove members."},
    },
)
async def kick_member(
    group_id: UUID,
    response: Response,
    content: KickRequest,
    actor: AuthenticatedActorDependency,
    membership: MembershipDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> JoinResult:
    log = log.bind(group_id=group_id, user_id=actor.user_id)

    if not content.member_id:
        raise ValidationError("A member id is required")

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    await require_capability(
        group=group, actor=actor, capability=Capability.KICK_MEMBER, log=log
    )

    result = await membership.kick(
        group_id=group_id, member_id=content.member_id, log=log
    )

    return membership_response(result=result, response=response)


@group_app.get(
    "/{group_id}/meetings",
    summary="List the meetings of a group",
    description="Meetings of the group, earliest first.",
)
async def list_meetings(
    group_id: UUID, conn: DatabaseDependency, log: LoggerDependency
) -> list[MeetingData]:
    meetings = await meetings_service.get_meeting_list(
        group_id=group_id, conn=conn, log=log
    )

    return [meeting.to_core() for meeting in meetings]


class MeetingCreationRequest(CamelModel):
    title: str | None = None
    description: str | None = None
    date: datetime | None = None
    location: str | None = None


@group_app.post(
    "/{group_id}/meetings",
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a meeting",
    description="Schedule a meeting and notify the other members of the group.",
    responses={
        201: {"description": "Meeting created."},
        400: {"description": "Missing title or date."},
        401: {"description": "Log in first."},
        404: {"description": "Group not found."},
    },
)
async def create_meeting(
    group_id: UUID,
    content: MeetingCreationRequest,
    actor: AuthenticatedActorDependency,
    scheduler: SchedulerDependency,
    log: LoggerDependency,
) -> MeetingData:
    return await scheduler.create_meeting(
        group_id=group_id,
        title=content.title,
        date=content.date,
        description=content.description,
        location=content.location,
        exclude_user_id=actor.user_id,
        log=log.bind(user_id=actor.user_id),
    )
