"""
Study group ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, Relationship, SQLModel

from studygroup.core.group import GroupData, GroupMemberData
from studygroup.core.roles import Role
from studygroup.core.uuid import UUID, uuid7


class GroupMember(SQLModel, table=True):
    """
    A record of a user's membership of a study group. The user name is a
    snapshot taken when they joined.
    """

    __tablename__ = "group_member"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member_group_user"),
    )

    member_id: UUID = Field(primary_key=True, default_factory=uuid7)
    group_id: UUID = Field(
        foreign_key="study_group.group_id", ondelete="CASCADE", index=True
    )
    user_id: str = Field(index=True)
    user_name: str
    role: Role = Field(
        default=Role.MEMBER,
        sa_column=Column(SAEnum(Role, name="member_role"), nullable=False),
    )
    joined_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    group: "StudyGroup" = Relationship(back_populates="members")

    def to_core(self) -> GroupMemberData:
        return GroupMemberData(
            user_id=self.user_id,
            user_name=self.user_name,
            joined_at=self.joined_at,
            role=self.role,
        )


class StudyGroup(SQLModel, table=True):
    __tablename__ = "study_group"

    group_id: UUID = Field(primary_key=True, default_factory=uuid7)

    name: str
    description: str
    category: str = Field(index=True)
    leader_id: str = Field(index=True)

    max_members: int
    # Always recomputed from group_member, never incremented in place.
    current_members: int = 0

    is_active: bool = True

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    members: list[GroupMember] = Relationship(
        back_populates="group",
        sa_relationship_kwargs=dict(
            lazy="selectin",
            order_by=lambda: [GroupMember.joined_at, GroupMember.member_id],
            passive_deletes=True,
        ),
    )

    @property
    def leader_member(self) -> GroupMember | None:
        return next(
            (member for member in self.members if member.role == Role.LEADER), None
        )

    def find_member(self, user_id: str) -> GroupMember | None:
        return next(
            (member for member in self.members if member.user_id == user_id), None
        )

    def to_core(self) -> GroupData:
        """
        Convert this StudyGroup ORM object to a GroupData core object. The leader
        display name falls back to the raw leader id if the leader's member row
        is missing.
        """
        leader = self.leader_member

        return GroupData(
            group_id=self.group_id,
            name=self.name,
            description=self.description,
            category=self.category,
            leader=leader.user_name if leader is not None else self.leader_id,
            leader_id=self.leader_id,
            max_members=self.max_members,
            current_members=self.current_members,
            members=[member.to_core() for member in self.members],
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
