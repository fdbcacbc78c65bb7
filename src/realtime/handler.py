"""RealtimeHandler: reacts to inbound realtime frames and disconnects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.realtime.messages import MarkAsReadMessage, RegisterMessage, parse_inbound

if TYPE_CHECKING:
    from src.notifications.service import NotificationService
    from src.realtime.connection import Connection
    from src.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RealtimeHandler:
    """Drives the registry and notification delivery from client frames.

    Nothing raised while handling a frame escapes: a bad frame is logged and
    dropped and the connection stays open.
    """

    def __init__(self, registry: ConnectionRegistry, notifications: NotificationService) -> None:
        self._registry = registry
        self._notifications = notifications

    async def handle_message(self, connection: Connection, raw: str | bytes) -> None:
        message = parse_inbound(raw)
        if message is None:
            return
        try:
            if isinstance(message, RegisterMessage):
                await self.handle_register(connection, message.user_id)
            elif isinstance(message, MarkAsReadMessage):
                await self.handle_mark_as_read(message.notification_id)
        except Exception:
            logger.exception("Realtime message failed (type=%s)", message.type)

    async def handle_register(self, connection: Connection, user_id: str) -> None:
        """Register the connection, then flush the user's unread notifications."""
        await self._registry.register(user_id, connection)
        await self._notifications.deliver_unread(user_id)

    async def handle_mark_as_read(self, notification_id: str) -> None:
        updated = await self._notifications.mark_read(notification_id)
        if updated is None:
            logger.warning("markAsRead for unknown notification: %s", notification_id)

    async def handle_disconnect(self, connection: Connection) -> None:
        """Unregister whichever user the closed connection belonged to."""
        user_id = self._registry.find_user_by_connection(connection)
        if user_id is not None:
            await self._registry.unregister(user_id)
