"""
Identifier creation. Groups, members, meetings and attendees all use time-ordered
uuid7 keys, which the standard library only gained in 3.14.
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

__all__ = ["UUID", "uuid7"]
