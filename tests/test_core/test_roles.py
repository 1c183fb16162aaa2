"""
Tests roles, capabilities and display names.
"""

import pytest

from studygroup.core.roles import Capability, Role, has_capability, roles_for
from studygroup.core.user import Actor, display_name


def test_roles_for():
    assert roles_for(
        user_id="lea", leader_id="lea", member_ids=["lea", "max"], is_admin=False
    ) == {Role.LEADER, Role.MEMBER}

    assert roles_for(
        user_id="max", leader_id="lea", member_ids=["lea", "max"], is_admin=False
    ) == {Role.MEMBER}

    assert roles_for(
        user_id="root", leader_id="lea", member_ids=["lea"], is_admin=True
    ) == {Role.ADMIN}

    assert (
        roles_for(user_id="nia", leader_id="lea", member_ids=["lea"], is_admin=False)
        == set()
    )


@pytest.mark.parametrize(
    "roles, allowed",
    [
        ({Role.LEADER, Role.MEMBER}, True),
        ({Role.ADMIN}, True),
        ({Role.MEMBER}, False),
        (set(), False),
    ],
)
def test_has_capability(roles, allowed):
    assert has_capability(roles, Capability.DELETE_GROUP) is allowed
    assert has_capability(roles, Capability.KICK_MEMBER) is allowed


@pytest.mark.parametrize(
    "email, user_name, expected",
    [
        ("ada@example.org", "Ada Lovelace", "ada"),
        (None, "Ada Lovelace", "Ada Lovelace"),
        ("", "", "User"),
        (None, None, "User"),
        ("not-an-address", None, "not-an-address"),
    ],
)
def test_display_name(email, user_name, expected):
    assert display_name(email=email, user_name=user_name) == expected


def test_actor_is_admin():
    assert Actor(user_id="u", groups={"students", " Admin "}).is_admin
    assert not Actor(user_id="u", groups={"students"}).is_admin
    assert Actor(user_id="u", email="u@example.org").display_name == "u"
