"""
Roles and capabilities within a study group.
"""

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    LEADER = "leader"
    MEMBER = "member"
    ADMIN = "admin"


class Capability(str, Enum):
    DELETE_GROUP = "delete_group"
    KICK_MEMBER = "kick_member"


CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.LEADER: frozenset({Capability.DELETE_GROUP, Capability.KICK_MEMBER}),
    Role.MEMBER: frozenset(),
}


def roles_for(
    user_id: str, leader_id: str, member_ids: Iterable[str], is_admin: bool
) -> set[Role]:
    """
    Work out the roles a user holds with respect to a single group.
    """
    roles = set()

    if user_id == leader_id:
        roles.add(Role.LEADER)

    if user_id in set(member_ids):
        roles.add(Role.MEMBER)

    if is_admin:
        roles.add(Role.ADMIN)

    return roles


def has_capability(roles: Iterable[Role], capability: Capability) -> bool:
    """
    Check whether any of `roles` grants `capability`.
    """
    return any(capability in CAPABILITIES[role] for role in roles)
