"""NotificationStore: aiosqlite CRUD for notification records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.db import get_connection
from src.notifications.models import Notification, utc_iso

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS notifications (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    sender_id    TEXT,
    title        TEXT NOT NULL,
    message      TEXT NOT NULL,
    type         TEXT NOT NULL DEFAULT 'info',
    category     TEXT NOT NULL,
    is_read      INTEGER NOT NULL DEFAULT 0,
    is_sent      INTEGER NOT NULL DEFAULT 0,
    scheduled_at TEXT,
    created_at   TEXT NOT NULL
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_notifications_user_unread
    ON notifications (user_id, is_read)
"""

_INSERT = """
INSERT INTO notifications
    (id, user_id, sender_id, title, message, type, category,
     is_read, is_sent, scheduled_at, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class NotificationStore:
    """Persists notifications in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self):  # noqa: ANN202
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_INDEX)
            await db.commit()
            self._initialised = True
        return db

    # -- CRUD ------------------------------------------------------------------

    async def add(self, notification: Notification) -> Notification:
        """Insert one notification. Returns the same object."""
        db = await self._connect()
        try:
            await db.execute(_INSERT, notification.to_row())
            await db.commit()
            return notification
        finally:
            await db.close()

    async def add_many(self, notifications: Iterable[Notification]) -> list[Notification]:
        """Insert a batch in a single transaction."""
        batch = list(notifications)
        if not batch:
            return batch
        db = await self._connect()
        try:
            await db.executemany(_INSERT, [n.to_row() for n in batch])
            await db.commit()
            return batch
        finally:
            await db.close()

    async def get(self, notification_id: str) -> Notification | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            )
            row = await cursor.fetchone()
            return Notification.from_row(row) if row else None
        finally:
            await db.close()

    async def list_unread(self, user_id: str) -> list[Notification]:
        """Return a user's unread notifications, newest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT * FROM notifications
                WHERE user_id = ? AND is_read = 0
                ORDER BY created_at DESC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [Notification.from_row(row) for row in rows]
        finally:
            await db.close()

    async def mark_read(self, notification_id: str) -> Notification | None:
        """Set the read flag. Returns the updated record, or None if unknown."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ?", (notification_id,)
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        finally:
            await db.close()
        return await self.get(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read. Returns the count."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0",
                (user_id,),
            )
            await db.commit()
            return cursor.rowcount
        finally:
            await db.close()

    async def list_due(self, now: datetime | None = None) -> list[Notification]:
        """Return unsent notifications whose scheduled time is at or before *now*."""
        cutoff = utc_iso(now or datetime.now(UTC))
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT * FROM notifications
                WHERE scheduled_at IS NOT NULL AND scheduled_at <= ? AND is_sent = 0
                ORDER BY scheduled_at
                """,
                (cutoff,),
            )
            rows = await cursor.fetchall()
            return [Notification.from_row(row) for row in rows]
        finally:
            await db.close()

    async def mark_sent(self, notification_id: str) -> bool:
        """Set the sent flag. Returns True if the notification exists."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE notifications SET is_sent = 1 WHERE id = ?", (notification_id,)
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def unread_counts(self) -> dict[str, int]:
        """Return ``{user_id: unread_count}`` for users with unread notifications."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT user_id, COUNT(*) FROM notifications
                WHERE is_read = 0
                GROUP BY user_id
                ORDER BY user_id
                """
            )
            rows = await cursor.fetchall()
            return {row[0]: row[1] for row in rows}
        finally:
            await db.close()
