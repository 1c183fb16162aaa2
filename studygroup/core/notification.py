"""
Notification payloads exchanged with the notification service.
"""

from datetime import datetime
from enum import Enum

from .models import CamelModel


class NotificationType(str, Enum):
    MEMBER_JOIN = "member_join"
    MEMBER_LEAVE = "member_leave"
    MEETING_CREATED = "meeting_created"


class NotificationRequest(CamelModel):
    user_id: str
    type: NotificationType
    title: str
    message: str
    group_id: str | None = None
    group_name: str | None = None
    related_id: str | None = None
    action_url: str | None = None


class NotificationData(NotificationRequest):
    # The notification service owns ids; fallbacks get a local one.
    id: str
    is_read: bool = False
    created_at: datetime
