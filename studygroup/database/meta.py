"""
Meta functionality for the database.
"""

from .group import GroupMember, StudyGroup
from .meeting import Meeting, MeetingAttendee

ALL_TABLES = (
    StudyGroup,
    GroupMember,
    Meeting,
    MeetingAttendee,
)
