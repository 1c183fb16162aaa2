"""
The caller of an API operation, as asserted by the upstream gateway.
"""

from pydantic import BaseModel, Field

DEFAULT_DISPLAY_NAME = "User"


def display_name_from_email(email: str | None) -> str:
    if not email or "@" not in email:
        return email or DEFAULT_DISPLAY_NAME
    return email.split("@")[0]


def display_name(email: str | None, user_name: str | None) -> str:
    """
    Name shown to other group members: the local part of the e-mail address
    if there is one, then the user name, then a generic placeholder.
    """
    if email:
        return display_name_from_email(email)

    if user_name and user_name != email:
        return user_name

    return DEFAULT_DISPLAY_NAME


class Actor(BaseModel):
    user_id: str
    email: str | None = None
    user_name: str | None = None
    groups: set[str] = Field(default_factory=set)

    @property
    def display_name(self) -> str:
        return display_name(email=self.email, user_name=self.user_name)

    @property
    def is_admin(self) -> bool:
        return "admin" in {group.strip().lower() for group in self.groups}
