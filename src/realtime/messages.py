"""Realtime message shapes: inbound parsing and outbound builders."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

if TYPE_CHECKING:
    from src.notifications.models import Notification

logger = logging.getLogger(__name__)

JOB_STATUSES = ("started", "stopped", "executed", "failed")


class RegisterMessage(BaseModel):
    type: Literal["register"]
    user_id: str = Field(alias="userId", min_length=1)


class MarkAsReadMessage(BaseModel):
    type: Literal["markAsRead"]
    notification_id: str = Field(alias="notificationId", min_length=1)


InboundMessage = Annotated[RegisterMessage | MarkAsReadMessage, Field(discriminator="type")]

_inbound = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes) -> RegisterMessage | MarkAsReadMessage | None:
    """Parse a client frame. Returns None (and logs) for anything malformed."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Dropping non-JSON realtime message: %.200r", raw)
        return None
    if not isinstance(data, dict) or "type" not in data:
        logger.warning("Dropping realtime message without a type: %.200r", data)
        return None
    try:
        return _inbound.validate_python(data)
    except ValidationError as exc:
        logger.warning(
            "Dropping invalid realtime message (type=%s): %d error(s)",
            data.get("type"),
            exc.error_count(),
        )
        return None


def notification_message(notification: Notification) -> dict[str, Any]:
    """Outbound ``notification`` frame."""
    return {
        "type": "notification",
        "data": {
            "id": notification.id,
            "title": notification.title,
            "message": notification.message,
            "type": notification.type,
            "createdAt": notification.created_at,
        },
    }


def job_status_message(job_id: str, status: str, message: str) -> dict[str, Any]:
    """Outbound ``cronjob_status`` frame."""
    if status not in JOB_STATUSES:
        msg = f"Unknown job status: {status}"
        raise ValueError(msg)
    return {
        "type": "cronjob_status",
        "data": {
            "cronJobId": job_id,
            "status": status,
            "message": message,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    }
