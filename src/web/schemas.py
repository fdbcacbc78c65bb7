"""Request bodies for the HTTP API, validated with pydantic."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.notifications.models import CATEGORY_USER
from src.scheduler.cron import validate_expression
from src.scheduler.payloads import validate_job_data

NotificationType = Literal["info", "warning", "success", "error"]
JobType = Literal["notification_check", "daily_summary", "custom"]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateNotificationRequest(_Request):
    category: Literal["system", "user-to-user"]
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: NotificationType = "info"
    user_id: str | None = Field(default=None, alias="userId")
    sender_id: str | None = Field(default=None, alias="senderId")
    scheduled_at: datetime | None = Field(default=None, alias="scheduledAt")

    @model_validator(mode="after")
    def recipient_required(self) -> CreateNotificationRequest:
        if self.category == CATEGORY_USER and not self.user_id:
            msg = "userId is required for user-to-user notifications"
            raise ValueError(msg)
        return self


def _coerce_job_data(value: Any) -> Any:
    """Accept jobData as a JSON string or as an already-decoded object."""
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def _check_expression(value: str | None) -> str | None:
    if value is None:
        return value
    error = validate_expression(value)
    if error:
        msg = f"Invalid cron expression: {error}"
        raise ValueError(msg)
    return value.strip()


class CreateJobRequest(_Request):
    name: str = Field(min_length=1)
    description: str = ""
    cron_expression: str = Field(alias="cronExpression")
    job_type: JobType = Field(alias="jobType")
    job_data: str | None = Field(default=None, alias="jobData")
    is_active: bool = Field(default=True, alias="isActive")
    created_by: str | None = Field(default=None, alias="createdBy")

    @field_validator("job_data", mode="before")
    @classmethod
    def coerce_job_data(cls, value: Any) -> Any:
        return _coerce_job_data(value)

    @field_validator("cron_expression")
    @classmethod
    def check_expression(cls, value: str | None) -> str | None:
        return _check_expression(value)

    @model_validator(mode="after")
    def job_data_matches_type(self) -> CreateJobRequest:
        error = validate_job_data(self.job_type, self.job_data)
        if error:
            msg = f"Invalid jobData: {error}"
            raise ValueError(msg)
        return self


class UpdateJobRequest(_Request):
    """Partial update; ``job_data`` is checked against the effective job type by the route."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    cron_expression: str | None = Field(default=None, alias="cronExpression")
    job_type: JobType | None = Field(default=None, alias="jobType")
    job_data: str | None = Field(default=None, alias="jobData")
    is_active: bool | None = Field(default=None, alias="isActive")

    @field_validator("job_data", mode="before")
    @classmethod
    def coerce_job_data(cls, value: Any) -> Any:
        return _coerce_job_data(value)

    @field_validator("cron_expression")
    @classmethod
    def check_expression(cls, value: str | None) -> str | None:
        return _check_expression(value)

    def changes(self) -> dict[str, Any]:
        """Fields the client actually sent, keyed by store column."""
        return self.model_dump(exclude_unset=True)


def error_message(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        text = str(error.get("msg", "")).removeprefix("Value error, ")
        parts.append(f"{location}: {text}" if location else text)
    return "; ".join(parts)
