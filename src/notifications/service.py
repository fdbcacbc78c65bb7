"""NotificationService: builds notification records and pushes them to clients."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.notifications.models import (
    CATEGORY_SYSTEM,
    CATEGORY_USER,
    Notification,
    make_notification_id,
    utc_iso,
)
from src.realtime.messages import job_status_message, notification_message

if TYPE_CHECKING:
    from src.notifications.store import NotificationStore
    from src.realtime.registry import ConnectionRegistry
    from src.users.store import UserStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates notifications and delivers them to online recipients.

    Args:
        store: NotificationStore for persistence.
        users: UserStore used to resolve recipients (everyone, admins).
        registry: ConnectionRegistry used for realtime delivery.
    """

    def __init__(
        self,
        store: NotificationStore,
        users: UserStore,
        registry: ConnectionRegistry,
    ) -> None:
        self._store = store
        self._users = users
        self._registry = registry

    # -- Creation --------------------------------------------------------------

    async def create_system_notification(
        self,
        title: str,
        message: str,
        type: str = "info",  # noqa: A002
        scheduled_at: datetime | None = None,
    ) -> list[Notification]:
        """Create one system notification per known user. Does not deliver."""
        users = await self._users.list_users()
        scheduled = utc_iso(scheduled_at) if scheduled_at else None
        batch = [
            Notification(
                id=make_notification_id(),
                user_id=user.id,
                title=title,
                message=message,
                type=type,
                category=CATEGORY_SYSTEM,
                scheduled_at=scheduled,
            )
            for user in users
        ]
        await self._store.add_many(batch)
        logger.info(
            "Created system notification '%s' for %d user(s) (scheduled=%s)",
            title,
            len(batch),
            scheduled,
        )
        return batch

    async def create_user_notification(
        self,
        user_id: str,
        sender_id: str | None,
        title: str,
        message: str,
        type: str = "info",  # noqa: A002
        scheduled_at: datetime | None = None,
    ) -> Notification:
        """Create a single user-to-user notification. Does not deliver."""
        notification = Notification(
            id=make_notification_id(),
            user_id=user_id,
            sender_id=sender_id,
            title=title,
            message=message,
            type=type,
            category=CATEGORY_USER,
            scheduled_at=utc_iso(scheduled_at) if scheduled_at else None,
        )
        await self._store.add(notification)
        logger.info("Created notification %s for user %s", notification.id, user_id)
        return notification

    async def send_system_notification(
        self,
        title: str,
        message: str,
        type: str = "info",  # noqa: A002
        scheduled_at: datetime | None = None,
    ) -> list[Notification]:
        """Create a system notification and broadcast it unless it is scheduled."""
        batch = await self.create_system_notification(title, message, type, scheduled_at)
        if scheduled_at is None:
            await self.broadcast(batch)
        return batch

    async def send_user_notification(
        self,
        user_id: str,
        sender_id: str | None,
        title: str,
        message: str,
        type: str = "info",  # noqa: A002
        scheduled_at: datetime | None = None,
    ) -> Notification:
        """Create a user notification and deliver it now if it is not scheduled."""
        notification = await self.create_user_notification(
            user_id, sender_id, title, message, type, scheduled_at
        )
        if scheduled_at is None:
            await self.deliver(notification)
        return notification

    # -- Delivery --------------------------------------------------------------

    async def deliver(self, notification: Notification) -> bool:
        """Push one notification to its recipient if connected."""
        if not self._registry.is_connected(notification.user_id):
            return False
        return await self._registry.send_to(
            notification.user_id, notification_message(notification)
        )

    async def broadcast(self, notifications: list[Notification]) -> int:
        """Push each notification to its recipient. Returns the number delivered."""
        delivered = 0
        for notification in notifications:
            if await self.deliver(notification):
                delivered += 1
        logger.info("Broadcast %d/%d notification(s)", delivered, len(notifications))
        return delivered

    async def deliver_unread(self, user_id: str) -> int:
        """Push every unread notification of a freshly connected user."""
        unread = await self._store.list_unread(user_id)
        delivered = 0
        for notification in unread:
            if await self.deliver(notification):
                delivered += 1
        if unread:
            logger.info("Delivered %d unread notification(s) to %s", delivered, user_id)
        return delivered

    async def notify_job_status(self, job_id: str, status: str, message: str) -> int:
        """Send a ``cronjob_status`` frame to every connected admin."""
        payload = job_status_message(job_id, status, message)
        sent = 0
        for admin in await self._users.list_admins():
            if await self._registry.send_to(admin.id, payload):
                sent += 1
        return sent

    # -- Status ----------------------------------------------------------------

    async def get_unread(self, user_id: str) -> list[Notification]:
        return await self._store.list_unread(user_id)

    async def mark_read(self, notification_id: str) -> Notification | None:
        return await self._store.mark_read(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        count = await self._store.mark_all_read(user_id)
        logger.info("Marked %d notification(s) read for %s", count, user_id)
        return count

    async def flush_scheduled(self, now: datetime | None = None) -> list[Notification]:
        """Return scheduled notifications that are due and not yet sent."""
        return await self._store.list_due(now or datetime.now(UTC))

    async def mark_sent(self, notification_id: str) -> bool:
        return await self._store.mark_sent(notification_id)

    async def unread_counts(self) -> dict[str, int]:
        return await self._store.unread_counts()
