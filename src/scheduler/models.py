"""Job definition and live-task data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.scheduler.payloads import JobPayload


@dataclass
class JobDefinition:
    """A persisted recurring or one-time job.

    Attributes:
        id: Unique identifier (UUID hex).
        name: Human-readable name.
        cron_expression: Five-field crontab schedule, evaluated in UTC.
        job_type: ``"notification_check"``, ``"daily_summary"`` or ``"custom"``.
        job_data: Optional JSON payload interpreted per job type.
        description: Optional human-readable description.
        is_active: Whether the job should be scheduled.
        created_by: Id of the user that created the job.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp of the last change.
        last_run_at: ISO 8601 timestamp of the last execution.
        next_run_at: ISO 8601 timestamp of the next planned execution.
    """

    id: str
    name: str
    cron_expression: str
    job_type: str
    job_data: str | None = None
    description: str = ""
    is_active: bool = True
    created_by: str | None = None
    created_at: str = ""
    updated_at: str = ""
    last_run_at: str | None = None
    next_run_at: str | None = None

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``cron_jobs`` column order."""
        return (
            self.id,
            self.name,
            self.description,
            self.cron_expression,
            self.job_type,
            self.job_data,
            int(self.is_active),
            self.created_by,
            self.created_at,
            self.updated_at,
            self.last_run_at,
            self.next_run_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> JobDefinition:
        return cls(
            id=row[0],
            name=row[1],
            description=row[2] or "",
            cron_expression=row[3],
            job_type=row[4],
            job_data=row[5],
            is_active=bool(row[6]),
            created_by=row[7],
            created_at=row[8],
            updated_at=row[9],
            last_run_at=row[10],
            next_run_at=row[11],
        )

    def to_dict(self) -> dict[str, Any]:
        """API representation (camelCase keys)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "cronExpression": self.cron_expression,
            "jobType": self.job_type,
            "jobData": self.job_data,
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "lastRun": self.last_run_at,
            "nextRun": self.next_run_at,
        }


@dataclass(frozen=True)
class ActiveTask:
    """Snapshot of a definition taken when its live job was installed.

    Changes to the definition never reach a running task; they go through
    ``SchedulerEngine.update_job`` which replaces the task.
    """

    id: str
    name: str
    job_type: str
    cron_expression: str
    payload: JobPayload | None
    one_time: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "jobType": self.job_type,
            "isRunning": True,
        }


def make_job_id() -> str:
    """Generate a new job ID."""
    return uuid.uuid4().hex
