"""JobStore: aiosqlite CRUD for job definitions."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from src.db import get_connection
from src.scheduler.models import JobDefinition

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS cron_jobs (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    cron_expression TEXT NOT NULL,
    job_type        TEXT NOT NULL,
    job_data        TEXT,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_by      TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    last_run_at     TEXT,
    next_run_at     TEXT
)
"""

# Columns callers may change through ``update``.
_UPDATABLE = {
    "name",
    "description",
    "cron_expression",
    "job_type",
    "job_data",
    "is_active",
}


class JobStore:
    """Persists job definitions in SQLite.

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
            await db.commit()
            self._initialised = True
        return db

    async def _fetch_all(self, sql: str, params: tuple = ()) -> list[JobDefinition]:
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            return [JobDefinition.from_row(row) for row in rows]
        finally:
            await db.close()

    # -- CRUD ------------------------------------------------------------------

    async def add_job(self, job: JobDefinition) -> JobDefinition:
        """Insert a new definition. Returns the same object."""
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO cron_jobs
                    (id, name, description, cron_expression, job_type, job_data,
                     is_active, created_by, created_at, updated_at,
                     last_run_at, next_run_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                job.to_row(),
            )
            await db.commit()
            logger.info("Added job definition: %s (%s)", job.name, job.id)
            return job
        finally:
            await db.close()

    async def get_job(self, job_id: str) -> JobDefinition | None:
        """Fetch a definition by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM cron_jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()
            return JobDefinition.from_row(row) if row else None
        finally:
            await db.close()

    async def list_jobs(self) -> list[JobDefinition]:
        """Return every definition, newest first."""
        return await self._fetch_all("SELECT * FROM cron_jobs ORDER BY created_at DESC")

    async def list_active_jobs(self) -> list[JobDefinition]:
        """Return active definitions in ascending creation order."""
        return await self._fetch_all(
            "SELECT * FROM cron_jobs WHERE is_active = 1 ORDER BY created_at"
        )

    async def update_job(self, job_id: str, **fields: Any) -> JobDefinition | None:
        """Apply a partial update. Returns the updated definition, or None if unknown."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            msg = f"Cannot update job field(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if "is_active" in fields:
            fields["is_active"] = int(bool(fields["is_active"]))
        fields["updated_at"] = datetime.now(UTC).isoformat()

        assignments = ", ".join(f"{column} = ?" for column in fields)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"UPDATE cron_jobs SET {assignments} WHERE id = ?",  # noqa: S608
                (*fields.values(), job_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        finally:
            await db.close()
        return await self.get_job(job_id)

    async def set_active(self, job_id: str, active: bool) -> JobDefinition | None:
        """Activate or deactivate a definition. Returns it, or None if unknown."""
        job = await self.update_job(job_id, is_active=active)
        if job is not None:
            logger.info("%s job: %s", "Activated" if active else "Deactivated", job_id)
        return job

    async def delete_job(self, job_id: str) -> bool:
        """Delete a definition. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM cron_jobs WHERE id = ?", (job_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted job definition: %s", job_id)
            return deleted
        finally:
            await db.close()

    async def update_last_run(
        self, job_id: str, last_run_at: str, next_run_at: str | None
    ) -> None:
        """Record a completed run and the next planned one."""
        db = await self._connect()
        try:
            await db.execute(
                "UPDATE cron_jobs SET last_run_at = ?, next_run_at = ? WHERE id = ?",
                (last_run_at, next_run_at, job_id),
            )
            await db.commit()
        finally:
            await db.close()

    async def update_next_run(self, job_id: str, next_run_at: str | None) -> None:
        """Set or clear the next_run_at timestamp."""
        db = await self._connect()
        try:
            await db.execute(
                "UPDATE cron_jobs SET next_run_at = ? WHERE id = ?", (next_run_at, job_id)
            )
            await db.commit()
        finally:
            await db.close()
