"""UserStore: known users and their persisted online flag."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from src.db import get_connection

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id         TEXT PRIMARY KEY,
    email      TEXT NOT NULL UNIQUE,
    name       TEXT,
    role       TEXT NOT NULL DEFAULT 'user',
    is_online  INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
)
"""


@dataclass
class User:
    """A notification recipient."""

    id: str
    email: str
    name: str | None = None
    role: str = ROLE_USER
    is_online: bool = False
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_row(self) -> tuple:
        return (
            self.id,
            self.email,
            self.name,
            self.role,
            int(self.is_online),
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> User:
        return cls(
            id=row[0],
            email=row[1],
            name=row[2],
            role=row[3],
            is_online=bool(row[4]),
            created_at=row[5],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "isOnline": self.is_online,
            "createdAt": self.created_at,
        }


class UserStore:
    """Persists users in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    async def _connect(self):  # noqa: ANN202
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def add_user(self, user: User) -> User:
        """Insert a new user. Returns the same user object."""
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO users (id, email, name, role, is_online, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                user.to_row(),
            )
            await db.commit()
            logger.info("Added user: %s (%s)", user.id, user.role)
            return user
        finally:
            await db.close()

    async def get_user(self, user_id: str) -> User | None:
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            return User.from_row(row) if row else None
        finally:
            await db.close()

    async def list_users(self) -> list[User]:
        """Return every known user, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM users ORDER BY created_at, id")
            rows = await cursor.fetchall()
            return [User.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_admins(self) -> list[User]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM users WHERE role = ? ORDER BY created_at, id", (ROLE_ADMIN,)
            )
            rows = await cursor.fetchall()
            return [User.from_row(row) for row in rows]
        finally:
            await db.close()

    async def set_online(self, user_id: str, online: bool) -> bool:
        """Set the online flag. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE users SET is_online = ? WHERE id = ?", (int(online), user_id)
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def mark_online(self, user_id: str) -> None:
        """Flag a user online, creating a placeholder record for unknown ids."""
        placeholder = User(id=user_id, email=f"user-{user_id}@example.com", is_online=True)
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO users (id, email, name, role, is_online, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET is_online = 1
                """,
                placeholder.to_row(),
            )
            await db.commit()
        finally:
            await db.close()
