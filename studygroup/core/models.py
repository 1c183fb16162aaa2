"""
Shared pydantic building blocks for request/responses to APIs.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Models exchanged with the frontend and the notification service use
    camelCase keys on the wire, snake_case in Python.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class MessageResponse(BaseModel):
    message: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_groups: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = total_pages_for(total=total, page_size=page_size)
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_groups=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


def total_pages_for(total: int, page_size: int) -> int:
    return -(-total // page_size)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a timestamp to UTC. Naive values are taken to already be in UTC,
    which is also how SQLite hands back stored timestamps.
    """
    if value is None:
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)
