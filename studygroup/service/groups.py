"""
Service layer for the study group lifecycle: creation, reads, listings, updates
and soft deletion. Also owns the member-count recompute that every membership
mutation goes through.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy import update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from studygroup.core.errors import NotFoundError, ValidationError
from studygroup.core.models import Pagination, total_pages_for
from studygroup.core.roles import Role
from studygroup.core.uuid import UUID
from studygroup.database.group import GroupMember, StudyGroup


class GroupNotFound(NotFoundError):
    pass


class InvalidGroupData(ValidationError):
    pass


MINIMUM_MAX_MEMBERS = 2


def _check_page(page: int, page_size: int):
    if page < 1:
        raise InvalidGroupData("page must be at least 1")
    if page_size < 1:
        raise InvalidGroupData("page size must be at least 1")


def _check_max_members(max_members: int | None):
    if max_members is None or max_members < MINIMUM_MAX_MEMBERS:
        raise InvalidGroupData(
            f"max_members must be at least {MINIMUM_MAX_MEMBERS}"
        )


async def create(
    name: str,
    description: str,
    category: str,
    max_members: int,
    leader_id: str,
    leader_name: str | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> StudyGroup:
    """
    Create a new study group, with its leader as the first member.

    Parameters
    ----------
    name: str
        Name of the group.
    description: str
        What the group studies.
    category: str
        Category tag used for filtering.
    max_members: int
        Member cap, including the leader. Must be at least 2.
    leader_id: str
        The user that leads the group.
    leader_name: str | None
        Display name of the leader; falls back to `leader_id`.

    Raises
    ------
    InvalidGroupData
        If a required field is empty or `max_members` is too small.
    """
    log = log.bind(
        name=name, category=category, leader_id=leader_id, max_members=max_members
    )

    missing = [
        field
        for field, value in (
            ("name", name),
            ("description", description),
            ("category", category),
            ("leader", leader_id),
        )
        if not value or not value.strip()
    ]

    if missing:
        await log.ainfo("group.create.missing_fields", missing=missing)
        raise InvalidGroupData(f"Missing required fields: {', '.join(missing)}")

    _check_max_members(max_members)

    now = datetime.now(tz=timezone.utc)

    group = StudyGroup(
        name=name.strip(),
        description=description.strip(),
        category=category.strip(),
        leader_id=leader_id,
        max_members=max_members,
        created_at=now,
        updated_at=now,
    )
    conn.add(group)
    await conn.flush()

    leader = GroupMember(
        group_id=group.group_id,
        user_id=leader_id,
        user_name=leader_name or leader_id,
        role=Role.LEADER,
        joined_at=now,
    )
    conn.add(leader)
    await conn.flush()

    await recompute_member_count(group_id=group.group_id, conn=conn)

    group = await read_by_id(group_id=group.group_id, conn=conn, log=log)

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def read_by_id(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    for_update: bool = False,
) -> StudyGroup:
    """
    Read an active group by its ID, with its members.

    Parameters
    ----------
    group_id: UUID
        The ID of the group to read.
    conn: AsyncSession
        The database session.
    log: FilteringBoundLogger
        Logger instance.
    for_update: bool
        Lock the group row until the end of the transaction. Used to serialize
        membership writes across processes.

    Raises
    ------
    GroupNotFound
        If the group does not exist or has been deleted.
    """
    log = log.bind(group_id=group_id)

    query = (
        select(StudyGroup)
        .where(StudyGroup.group_id == group_id)
        .where(StudyGroup.is_active.is_(True))
        .execution_options(populate_existing=True)
    )

    if for_update:
        query = query.with_for_update()

    result = await conn.execute(query)
    group = result.unique().scalar_one_or_none()

    if group is None:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Study group {group_id} not found")

    await log.adebug("group.found")
    return group


async def get_group(
    group_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> StudyGroup | None:
    """
    Read an active group by its ID, returning None if it does not exist.
    """
    try:
        return await read_by_id(group_id=group_id, conn=conn, log=log)
    except GroupNotFound:
        return None


async def update(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    name: str | None = None,
    description: str | None = None,
    max_members: int | None = None,
) -> StudyGroup | None:
    """
    Partially update a group. Fields that are None (or an empty name or
    description) are left alone.

    Returns
    -------
    StudyGroup | None
        The updated group, or None if it does not exist.

    Raises
    ------
    InvalidGroupData
        If `max_members` is below 2 or below the current number of members.
    """
    log = log.bind(group_id=group_id)

    group = await get_group(group_id=group_id, conn=conn, log=log)

    if group is None:
        return None

    changed = []

    if name:
        group.name = name
        changed.append("name")

    if description:
        group.description = description
        changed.append("description")

    if max_members is not None:
        _check_max_members(max_members)

        if max_members < group.current_members:
            await log.ainfo(
                "group.update.below_current_members",
                max_members=max_members,
                current_members=group.current_members,
            )
            raise InvalidGroupData(
                f"max_members cannot be lower than the current {group.current_members} members"
            )

        group.max_members = max_members
        changed.append("max_members")

    if not changed:
        await log.adebug("group.update.no_changes")
        return group

    group.updated_at = datetime.now(tz=timezone.utc)
    conn.add(group)
    await conn.flush()

    await log.ainfo("group.updated", changed=changed)

    return group


async def get_group_list(
    conn: AsyncSession,
    log: FilteringBoundLogger,
    category: str = "all",
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[StudyGroup], int, int]:
    """
    Get a page of active groups, newest first.

    Parameters
    ----------
    category: str
        Only return groups with this category; "all" disables the filter.
    page: int
        1-based page number.
    page_size: int
        Number of groups per page.

    Returns
    -------
    tuple[list[StudyGroup], int, int]
        The groups on this page, the total number of matching groups, and the
        total number of pages.
    """
    _check_page(page=page, page_size=page_size)

    log = log.bind(category=category, page=page, page_size=page_size)

    filters = [StudyGroup.is_active.is_(True)]

    if category != "all":
        filters.append(StudyGroup.category == category)

    total = (
        await conn.execute(select(func.count()).select_from(StudyGroup).where(*filters))
    ).scalar_one()

    result = await conn.execute(
        select(StudyGroup)
        .where(*filters)
        .order_by(StudyGroup.created_at.desc(), StudyGroup.group_id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )

    groups = list(result.unique().scalars().all())

    await log.adebug("group.listed", number_of_groups=len(groups), total=total)

    return groups, total, total_pages_for(total=total, page_size=page_size)


async def get_led_groups(
    user_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[StudyGroup], Pagination]:
    """
    Get the active groups led by `user_id`, newest first.
    """
    _check_page(page=page, page_size=page_size)

    log = log.bind(user_id=user_id, page=page, page_size=page_size)

    filters = [StudyGroup.leader_id == user_id, StudyGroup.is_active.is_(True)]

    total = (
        await conn.execute(select(func.count()).select_from(StudyGroup).where(*filters))
    ).scalar_one()

    result = await conn.execute(
        select(StudyGroup)
        .where(*filters)
        .order_by(StudyGroup.created_at.desc(), StudyGroup.group_id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )

    groups = list(result.unique().scalars().all())

    await log.adebug("group.listed_led", number_of_groups=len(groups), total=total)

    return groups, Pagination.build(page=page, page_size=page_size, total=total)


async def get_participating_groups(
    user_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[StudyGroup], Pagination]:
    """
    Get the active groups that `user_id` has joined without leading them, most
    recently joined first.
    """
    _check_page(page=page, page_size=page_size)

    log = log.bind(user_id=user_id, page=page, page_size=page_size)

    filters = [
        GroupMember.user_id == user_id,
        StudyGroup.leader_id != user_id,
        StudyGroup.is_active.is_(True),
    ]

    total = (
        await conn.execute(
            select(func.count())
            .select_from(StudyGroup)
            .join(GroupMember, GroupMember.group_id == StudyGroup.group_id)
            .where(*filters)
        )
    ).scalar_one()

    result = await conn.execute(
        select(StudyGroup)
        .join(GroupMember, GroupMember.group_id == StudyGroup.group_id)
        .where(*filters)
        .order_by(GroupMember.joined_at.desc(), StudyGroup.group_id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )

    groups = list(result.unique().scalars().all())

    await log.adebug(
        "group.listed_participating", number_of_groups=len(groups), total=total
    )

    return groups, Pagination.build(page=page, page_size=page_size, total=total)


async def get_categories(conn: AsyncSession, log: FilteringBoundLogger) -> list[str]:
    """
    Get the distinct categories in use by active groups, sorted.
    """
    result = await conn.execute(
        select(StudyGroup.category)
        .where(StudyGroup.is_active.is_(True))
        .distinct()
        .order_by(StudyGroup.category)
    )

    categories = list(result.scalars().all())

    await log.adebug("group.categories_listed", number_of_categories=len(categories))

    return categories


async def delete_group(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> bool:
    """
    Soft-delete a group by its ID. Member, meeting and attendance rows are kept.

    Returns
    -------
    bool
        Whether an active group was deactivated.
    """
    log = log.bind(group_id=group_id)

    result = await conn.execute(
        sql_update(StudyGroup)
        .where(StudyGroup.group_id == group_id)
        .where(StudyGroup.is_active.is_(True))
        .values(is_active=False, updated_at=datetime.now(tz=timezone.utc))
        .execution_options(synchronize_session=False)
    )

    deleted = result.rowcount > 0

    if deleted:
        await log.ainfo("group.deleted")
    else:
        await log.ainfo("group.delete.not_found")

    return deleted

async def recompute_member_count(group_id: UUID, conn: AsyncSession) -> int:
    """
    Set `current_members` to the number of membership rows for the group. This
    is the only way the count is ever written.

    Returns
    -------
    int
        The recomputed number of members.
    """
    await conn.flush()

    member_count = (
        select(func.count())
        .select_from(GroupMember)
        .where(GroupMember.group_id == group_id)
        .scalar_subquery()
    )

    result = await conn.execute(
        sql_update(StudyGroup)
        .where(StudyGroup.group_id == group_id)
        .values(current_members=member_count)
        .returning(StudyGroup.current_members)
        .execution_options(synchronize_session=False)
    )

    return result.scalar_one()
