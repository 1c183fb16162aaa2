"""
Core group data models.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from studygroup.core.uuid import UUID

from .models import CamelModel, Pagination
from .roles import Role


class GroupMemberData(CamelModel):
    user_id: str
    user_name: str
    joined_at: datetime
    role: Role


class GroupData(CamelModel):
    group_id: UUID = Field(alias="id")
    name: str
    description: str
    category: str
    # Display name of the leader; leader_id is the raw identifier.
    leader: str
    leader_id: str
    max_members: int
    current_members: int
    members: list[GroupMemberData]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @property
    def member_ids(self) -> list[str]:
        return [member.user_id for member in self.members]


class GroupListData(CamelModel):
    groups: list[GroupData]
    total: int
    total_pages: int


class UserGroupListData(CamelModel):
    groups: list[GroupData]
    pagination: Pagination


class JoinFailure(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_MEMBER = "already_member"
    CAPACITY = "capacity"
    LEADER_CANNOT_LEAVE = "leader_cannot_leave"
    NOT_A_MEMBER = "not_a_member"
    MEMBER_NOT_FOUND = "member_not_found"
    CANNOT_KICK_LEADER = "cannot_kick_leader"


class JoinResult(CamelModel):
    """
    Outcome of a join, leave or kick. Failures are reported here rather than
    raised.
    """

    success: bool
    message: str
    reason: JoinFailure | None = None
    group: GroupData | None = None
