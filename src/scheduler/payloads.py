"""Job payloads: one structured variant per job type.

Payloads are stored as JSON text on the job definition and parsed exactly once,
when a definition enters the scheduler or the HTTP boundary.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from src.notifications.models import NOTIFICATION_TYPES

JOB_NOTIFICATION_CHECK = "notification_check"
JOB_DAILY_SUMMARY = "daily_summary"
JOB_CUSTOM = "custom"
JOB_TYPES = (JOB_NOTIFICATION_CHECK, JOB_DAILY_SUMMARY, JOB_CUSTOM)


class PayloadError(ValueError):
    """Raised when a job payload cannot be parsed for its job type."""


class Broadcast(BaseModel):
    """System notification a ``notification_check`` job emits on every fire."""

    title: str
    message: str
    type: Literal["info", "warning", "success", "error"] = "info"


class NotificationCheckPayload(BaseModel):
    kind: Literal["notification_check"] = "notification_check"
    broadcast: Broadcast | None = None


class DailySummaryPayload(BaseModel):
    kind: Literal["daily_summary"] = "daily_summary"


class CustomPayload(BaseModel):
    kind: Literal["custom"] = "custom"
    data: Any = None


JobPayload = NotificationCheckPayload | DailySummaryPayload | CustomPayload


def _load_json(job_data: str) -> Any:
    try:
        return json.loads(job_data)
    except (TypeError, ValueError) as exc:
        msg = "jobData must be valid JSON format"
        raise PayloadError(msg) from exc


def _parse_broadcast(data: Any) -> Broadcast:
    if not isinstance(data, dict):
        msg = "jobData must be a JSON object for notification_check jobs"
        raise PayloadError(msg)
    for field in ("title", "message"):
        if not data.get(field) or not isinstance(data[field], str):
            msg = f'jobData must contain "{field}" field (string) for notification_check jobs'
            raise PayloadError(msg)
    if data.get("type") and data["type"] not in NOTIFICATION_TYPES:
        msg = f'jobData "type" must be one of: {", ".join(NOTIFICATION_TYPES)}'
        raise PayloadError(msg)
    try:
        return Broadcast(
            title=data["title"],
            message=data["message"],
            type=data.get("type") or "info",
        )
    except ValidationError as exc:
        raise PayloadError(str(exc)) from exc


def parse_payload(job_type: str, job_data: str | None) -> JobPayload:
    """Parse a definition's raw ``job_data`` into the variant for *job_type*.

    Raises:
        PayloadError: malformed data, or an unknown job type.
    """
    if job_type == JOB_NOTIFICATION_CHECK:
        if not job_data:
            return NotificationCheckPayload()
        return NotificationCheckPayload(broadcast=_parse_broadcast(_load_json(job_data)))
    if job_type == JOB_DAILY_SUMMARY:
        return DailySummaryPayload()
    if job_type == JOB_CUSTOM:
        if not job_data:
            return CustomPayload()
        return CustomPayload(data=_load_json(job_data))
    msg = f"Unknown job type: {job_type}"
    raise PayloadError(msg)


def empty_payload(job_type: str) -> JobPayload | None:
    """The payload a job of *job_type* runs with when its data is unusable."""
    try:
        return parse_payload(job_type, None)
    except PayloadError:
        return None


def validate_job_data(job_type: str, job_data: str | None) -> str | None:
    """Return an error message for invalid job data, or None if acceptable.

    ``notification_check`` data must describe a broadcast and ``custom`` data
    must be JSON. ``daily_summary`` ignores its data.
    """
    if not job_data or job_type not in (JOB_NOTIFICATION_CHECK, JOB_CUSTOM):
        return None
    try:
        parse_payload(job_type, job_data)
    except PayloadError as exc:
        return str(exc)
    return None
