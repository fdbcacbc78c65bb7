"""Notification data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

CATEGORY_SYSTEM = "system"
CATEGORY_USER = "user-to-user"
CATEGORIES = (CATEGORY_SYSTEM, CATEGORY_USER)

NOTIFICATION_TYPES = ("info", "warning", "success", "error")


@dataclass
class Notification:
    """A message addressed to exactly one recipient.

    Attributes:
        id: Unique identifier (UUID hex).
        user_id: Recipient.
        title: Short headline.
        message: Body text.
        type: Severity: one of ``NOTIFICATION_TYPES``.
        category: ``"system"`` (fanned out to everyone) or ``"user-to-user"``.
        sender_id: Originating user; None for system notifications.
        is_read: Set once the recipient acknowledges it.
        is_sent: Set once a scheduled notification has been flushed.
        scheduled_at: ISO 8601 UTC delivery time; None means deliver now.
        created_at: ISO 8601 UTC timestamp.
    """

    id: str
    user_id: str
    title: str
    message: str
    type: str = "info"
    category: str = CATEGORY_SYSTEM
    sender_id: str | None = None
    is_read: bool = False
    is_sent: bool = False
    scheduled_at: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_at is not None

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``notifications`` column order."""
        return (
            self.id,
            self.user_id,
            self.sender_id,
            self.title,
            self.message,
            self.type,
            self.category,
            int(self.is_read),
            int(self.is_sent),
            self.scheduled_at,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Notification:
        return cls(
            id=row[0],
            user_id=row[1],
            sender_id=row[2],
            title=row[3],
            message=row[4],
            type=row[5],
            category=row[6],
            is_read=bool(row[7]),
            is_sent=bool(row[8]),
            scheduled_at=row[9],
            created_at=row[10],
        )

    def to_dict(self) -> dict[str, Any]:
        """API representation (camelCase keys)."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "senderId": self.sender_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "category": self.category,
            "isRead": self.is_read,
            "isSent": self.is_sent,
            "scheduledAt": self.scheduled_at,
            "createdAt": self.created_at,
        }


def make_notification_id() -> str:
    """Generate a new notification ID."""
    return uuid.uuid4().hex


def utc_iso(moment: datetime) -> str:
    """Normalize a datetime to an ISO 8601 UTC string (naive means UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat()
