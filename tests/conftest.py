"""Shared test fixtures."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from src.notifications.store import NotificationStore
from src.users.store import ROLE_ADMIN, User, UserStore

# Fixed "current time" used by clocks injected into the scheduler and executor.
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeConnection:
    """In-memory stand-in for a WebSocket connection."""

    def __init__(self, fail: bool = False) -> None:
        self.frames: list[dict] = []
        self.closed = False
        self._fail = fail

    async def send_str(self, data: str) -> None:
        if self._fail:
            msg = "connection reset"
            raise ConnectionResetError(msg)
        self.frames.append(json.loads(data))

    async def close(self) -> bool:
        self.closed = True
        return True

    def of_type(self, frame_type: str) -> list[dict]:
        return [f for f in self.frames if f["type"] == frame_type]


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def user_store(db_path: Path) -> UserStore:
    return UserStore(db_path=db_path)


@pytest.fixture
def notification_store(db_path: Path) -> NotificationStore:
    return NotificationStore(db_path=db_path)


@pytest.fixture
async def three_users(user_store: UserStore) -> list[User]:
    """Alice (admin), Bob, and Charlie."""
    users = [
        User(id="user1", email="alice@example.com", name="Alice", role=ROLE_ADMIN,
             created_at="2025-01-01T00:00:00+00:00"),
        User(id="user2", email="bob@example.com", name="Bob",
             created_at="2025-01-02T00:00:00+00:00"),
        User(id="user3", email="charlie@example.com", name="Charlie",
             created_at="2025-01-03T00:00:00+00:00"),
    ]
    for user in users:
        await user_store.add_user(user)
    return users
