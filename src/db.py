"""Async SQLite connection helper over aiosqlite.

Every store opens a short-lived connection per call, in WAL mode with a
busy timeout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path


async def get_connection(local_path_override: Path | None = None) -> aiosqlite.Connection:
    """Return an open aiosqlite connection.

    If *local_path_override* is given (test isolation), it takes priority over
    ``settings.database_path``.
    """
    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path), timeout=settings.database_busy_timeout_ms / 1000)
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute(f"PRAGMA busy_timeout={int(settings.database_busy_timeout_ms)}")
    return db
