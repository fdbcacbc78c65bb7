"""JobExecutor: runs the body of a job for its type and payload."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.scheduler.payloads import (
    JOB_CUSTOM,
    JOB_DAILY_SUMMARY,
    JOB_NOTIFICATION_CHECK,
    CustomPayload,
    NotificationCheckPayload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.notifications.service import NotificationService
    from src.scheduler.payloads import JobPayload

logger = logging.getLogger(__name__)

SUMMARY_SENDER_ID = "system"
SUMMARY_TITLE = "Daily notification summary"


class JobExecutor:
    """Executes job bodies by dispatching on job type.

    Errors propagate to the caller; the scheduler engine decides whether a
    failure is logged (scheduled fire) or surfaced (direct execution).

    Args:
        notifications: NotificationService used by every job body.
        clock: Returns the current time; overridable in tests.
    """

    def __init__(
        self,
        notifications: NotificationService,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._notifications = notifications
        self._clock = clock or (lambda: datetime.now(UTC))

    async def execute(self, job_type: str, payload: JobPayload | None) -> None:
        """Run one job body."""
        if job_type == JOB_NOTIFICATION_CHECK:
            await self._handle_notification_check(
                payload if isinstance(payload, NotificationCheckPayload) else None
            )
        elif job_type == JOB_DAILY_SUMMARY:
            await self._handle_daily_summary()
        elif job_type == JOB_CUSTOM:
            await self._handle_custom(payload if isinstance(payload, CustomPayload) else None)
        else:
            logger.warning("Unknown job type: %s", job_type)

    async def _handle_notification_check(self, payload: NotificationCheckPayload | None) -> None:
        """Flush due scheduled notifications, then emit the payload's broadcast."""
        due = await self._notifications.flush_scheduled(self._clock())
        for notification in due:
            await self._notifications.deliver(notification)
            await self._notifications.mark_sent(notification.id)
        if due:
            logger.info("Sent %d scheduled notification(s)", len(due))

        if payload is None or payload.broadcast is None:
            return
        broadcast = payload.broadcast
        batch = await self._notifications.send_system_notification(
            broadcast.title, broadcast.message, broadcast.type
        )
        logger.info(
            "Broadcast '%s' from notification_check job to %d user(s)",
            broadcast.title,
            len(batch),
        )

    async def _handle_daily_summary(self) -> None:
        """Tell every user with unread notifications how many are waiting."""
        counts = await self._notifications.unread_counts()
        for user_id, unread in counts.items():
            await self._notifications.send_user_notification(
                user_id,
                SUMMARY_SENDER_ID,
                SUMMARY_TITLE,
                f"You have {unread} unread notification(s)",
                "info",
            )
        if counts:
            logger.info("Sent daily summary to %d user(s)", len(counts))

    async def _handle_custom(self, payload: CustomPayload | None) -> None:
        if payload is None or payload.data is None:
            logger.info("Custom job executed with no data")
            return
        logger.info("Executing custom job with data: %.500r", payload.data)
