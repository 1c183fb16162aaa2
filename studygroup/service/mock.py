"""
Mock notification dispatchers, used for testing.
"""

from structlog.typing import FilteringBoundLogger

from studygroup.core.notification import NotificationData, NotificationRequest
from studygroup.service.notifications import (
    NotificationDeliveryError,
    NotificationDispatcher,
    fallback_notification,
)


class RecordingNotificationDispatcher(NotificationDispatcher):
    """
    Keeps every delivered notification in `sent`.
    """

    name = "recording"

    sent: list[NotificationData]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.sent = []

    async def deliver(
        self, notification: NotificationRequest, log: FilteringBoundLogger
    ) -> NotificationData:
        delivered = fallback_notification(notification)
        self.sent.append(delivered)
        return delivered

    def sent_to(self, user_id: str) -> list[NotificationData]:
        return [x for x in self.sent if x.user_id == user_id]

    def clear(self):
        self.sent = []


class FailingNotificationDispatcher(NotificationDispatcher):
    """
    Fails every delivery, counting the attempts.
    """

    name = "failing"

    attempts: int

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.attempts = 0

    async def deliver(
        self, notification: NotificationRequest, log: FilteringBoundLogger
    ) -> NotificationData:
        self.attempts += 1
        raise NotificationDeliveryError("Notification service unavailable")
