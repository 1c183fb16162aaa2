"""
Best-effort notifications for group events.

Dispatchers are handed to the coordinators at construction. Whatever happens
during delivery, `notify` never raises: failures are logged and replaced by a
locally built notification so the membership or meeting change that triggered
it still succeeds.
"""

import abc
import asyncio
from datetime import datetime, timezone
from json import JSONDecodeError
from typing import Iterable

import httpx
from structlog.typing import FilteringBoundLogger

from studygroup.config.settings import Settings
from studygroup.core.group import GroupData
from studygroup.core.meeting import MeetingData
from studygroup.core.notification import (
    NotificationData,
    NotificationRequest,
    NotificationType,
)
from studygroup.core.uuid import uuid7


class NotificationDeliveryError(Exception):
    pass


def group_url(group: GroupData) -> str:
    return f"/study-groups/{group.group_id}"


def fallback_notification(notification: NotificationRequest) -> NotificationData:
    """
    The record kept locally when the notification service could not be reached.
    """
    return NotificationData(
        **notification.model_dump(),
        id=str(uuid7()),
        is_read=False,
        created_at=datetime.now(tz=timezone.utc),
    )


class NotificationDispatcher(abc.ABC):
    """
    The base class for notification dispatchers. Downstream must implement:

    - deliver: hand a single notification to the delivery system and return
               the stored notification. May raise on failure.

    Users in `skip_user_ids` (the system/admin placeholder account) never
    receive notifications.
    """

    name: str
    skip_user_ids: frozenset[str]

    def __init__(self, skip_user_ids: Iterable[str] = ("admin",)):
        self.skip_user_ids = frozenset(skip_user_ids)

    @abc.abstractmethod
    async def deliver(
        self, notification: NotificationRequest, log: FilteringBoundLogger
    ) -> NotificationData:
        raise NotImplementedError

    async def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        log: FilteringBoundLogger,
        group_id: str | None = None,
        group_name: str | None = None,
        related_id: str | None = None,
        action_url: str | None = None,
    ) -> NotificationData | None:
        """
        Send a notification to one user.

        Returns
        -------
        NotificationData | None
            The delivered notification, a local fallback if delivery failed, or
            None if the recipient is skipped.
        """
        log = log.bind(
            recipient=user_id,
            notification_type=notification_type,
            dispatcher=self.name,
        )

        if not user_id or user_id in self.skip_user_ids:
            await log.adebug("notification.skipped")
            return None

        notification = NotificationRequest(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            group_id=group_id,
            group_name=group_name,
            related_id=related_id,
            action_url=action_url,
        )

        try:
            delivered = await self.deliver(notification=notification, log=log)
        except Exception as e:
            await log.awarning("notification.failed", error=repr(e))
            return fallback_notification(notification)

        await log.ainfo("notification.sent", notification_id=delivered.id)

        return delivered

    async def member_joined(
        self, group: GroupData, member_name: str, log: FilteringBoundLogger
    ) -> NotificationData | None:
        """
        Tell the group leader that someone joined.
        """
        return await self.notify(
            user_id=group.leader_id,
            notification_type=NotificationType.MEMBER_JOIN,
            title="New member joined",
            message=f'{member_name} joined the study group "{group.name}".',
            group_id=str(group.group_id),
            group_name=group.name,
            action_url=group_url(group),
            log=log,
        )

    async def member_left(
        self, group: GroupData, member_name: str, log: FilteringBoundLogger
    ) -> NotificationData | None:
        """
        Tell the group leader that someone left.
        """
        return await self.notify(
            user_id=group.leader_id,
            notification_type=NotificationType.MEMBER_LEAVE,
            title="Member left",
            message=f'{member_name} left the study group "{group.name}".',
            group_id=str(group.group_id),
            group_name=group.name,
            action_url=group_url(group),
            log=log,
        )

    async def meeting_created(
        self,
        group: GroupData,
        meeting: MeetingData,
        member_ids: Iterable[str],
        log: FilteringBoundLogger,
        exclude_user_id: str | None = None,
    ) -> list[NotificationData]:
        """
        Tell every member in `member_ids`, except `exclude_user_id`, about a
        new meeting.
        """
        sent = await asyncio.gather(
            *(
                self.notify(
                    user_id=member_id,
                    notification_type=NotificationType.MEETING_CREATED,
                    title="New meeting scheduled",
                    message=(
                        f'A new meeting "{meeting.title}" was scheduled in the '
                        f'study group "{group.name}".'
                    ),
                    group_id=str(group.group_id),
                    group_name=group.name,
                    related_id=str(meeting.meeting_id),
                    action_url=group_url(group),
                    log=log,
                )
                for member_id in member_ids
                if member_id != exclude_user_id
            )
        )

        return [notification for notification in sent if notification is not None]


class HTTPNotificationDispatcher(NotificationDispatcher):
    """
    Sends notifications to the notification service over HTTP. Requests have
    their own short timeout so a slow service cannot hold up a request.
    """

    name = "http"

    url: str
    timeout: float
    transport: httpx.AsyncBaseTransport | None

    def __init__(
        self,
        url: str,
        timeout: float = 2.0,
        skip_user_ids: Iterable[str] = ("admin",),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(skip_user_ids=skip_user_ids)
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def deliver(
        self, notification: NotificationRequest, log: FilteringBoundLogger
    ) -> NotificationData:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.post(
                self.url,
                json=notification.model_dump(mode="json", by_alias=True),
            )

        if not response.is_success:
            raise NotificationDeliveryError(
                f"Notification service returned {response.status_code}"
            )

        try:
            content = response.json()
        except JSONDecodeError:
            raise NotificationDeliveryError("Notification service returned invalid JSON")

        if not isinstance(content, dict) or "data" not in content:
            raise NotificationDeliveryError("Notification service response has no data")

        return NotificationData.model_validate(content["data"])


class NullNotificationDispatcher(NotificationDispatcher):
    """
    Used when no notification service is configured: notifications are only
    written to the log.
    """

    name = "null"

    async def deliver(
        self, notification: NotificationRequest, log: FilteringBoundLogger
    ) -> NotificationData:
        await log.ainfo("notification.logged_only", title=notification.title)
        return fallback_notification(notification)


def dispatcher_from_settings(settings: Settings) -> NotificationDispatcher:
    if settings.notification_api_url:
        return HTTPNotificationDispatcher(
            url=settings.notification_api_url,
            timeout=settings.notification_timeout,
            skip_user_ids=settings.notification_skip_user_ids,
        )

    return NullNotificationDispatcher(
        skip_user_ids=settings.notification_skip_user_ids
    )
