"""ConnectionRegistry: maps user ids to their live realtime connection."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.realtime.connection import Connection
    from src.users.store import UserStore

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Owns the user → connection map.

    At most one connection is kept per user.  A second registration replaces
    the first; with *close_superseded* the replaced connection is also closed,
    otherwise it is left open and simply stops receiving messages.

    Args:
        users: UserStore used to persist the online flag.
        close_superseded: Close the previous connection on re-registration.
    """

    def __init__(self, users: UserStore, *, close_superseded: bool = False) -> None:
        self._users = users
        self._close_superseded = close_superseded
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    # -- Registration ----------------------------------------------------------

    async def register(self, user_id: str, connection: Connection) -> None:
        """Map *user_id* to *connection* and flag the user online."""
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection

        if previous is not None and previous is not connection:
            if self._close_superseded:
                logger.info("Closing superseded connection for user: %s", user_id)
                try:
                    await previous.close()
                except Exception:
                    logger.exception("Failed to close superseded connection: %s", user_id)
            else:
                logger.warning("Connection for user %s replaced; previous left open", user_id)

        logger.info("Connection registered for user: %s", user_id)
        try:
            await self._users.mark_online(user_id)
        except Exception:
            logger.exception("Failed to flag user online: %s", user_id)

    async def unregister(self, user_id: str) -> None:
        """Drop the mapping for *user_id* and flag the user offline."""
        async with self._lock:
            removed = self._connections.pop(user_id, None)
        if removed is None:
            return

        logger.info("Connection unregistered for user: %s", user_id)
        try:
            await self._users.set_online(user_id, False)
        except Exception:
            logger.exception("Failed to flag user offline: %s", user_id)

    # -- Lookup ----------------------------------------------------------------

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._connections

    def connected_user_ids(self) -> list[str]:
        return list(self._connections)

    def find_user_by_connection(self, connection: Connection) -> str | None:
        """Reverse lookup by identity. Returns None if the connection is unknown."""
        for user_id, candidate in list(self._connections.items()):
            if candidate is connection:
                return user_id
        return None

    # -- Delivery --------------------------------------------------------------

    async def send_to(self, user_id: str, payload: dict[str, Any]) -> bool:
        """Serialize *payload* and send it if the user is connected.

        Fire-and-forget: returns False when the user is offline or the
        transport fails, never raises.
        """
        connection = self._connections.get(user_id)
        if connection is None:
            return False
        try:
            await connection.send_str(json.dumps(payload))
            return True
        except Exception:
            logger.exception("Send failed for user: %s", user_id)
            return False

    async def close_all(self) -> None:
        """Close and forget every connection (used at shutdown)."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            try:
                await connection.close()
            except Exception:
                logger.exception("Failed to close connection during shutdown")
        if connections:
            logger.info("Closed %d realtime connection(s)", len(connections))
