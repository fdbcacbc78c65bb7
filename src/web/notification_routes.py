"""HTTP routes for notifications."""

from __future__ import annotations

import logging

from aiohttp import web
from pydantic import ValidationError

from src.notifications.models import CATEGORIES, CATEGORY_SYSTEM
from src.web.context import json_error, read_json, services_of
from src.web.schemas import CreateNotificationRequest, error_message

logger = logging.getLogger(__name__)


async def _create(request: web.Request) -> web.Response:
    """POST /notifications: system broadcast or user-to-user message."""
    body = await read_json(request)
    if body is None:
        return json_error("invalid JSON", 400)
    if body.get("category") not in CATEGORIES:
        return json_error('Invalid category. Must be "system" or "user-to-user"', 400)
    try:
        data = CreateNotificationRequest.model_validate(body)
    except ValidationError as exc:
        return json_error(error_message(exc), 400)

    notifications = services_of(request).notifications
    if data.category == CATEGORY_SYSTEM:
        batch = await notifications.send_system_notification(
            data.title, data.message, data.type, data.scheduled_at
        )
        return web.json_response(
            {"notifications": [n.to_dict() for n in batch], "count": len(batch)},
            status=201,
        )

    notification = await notifications.send_user_notification(
        data.user_id,
        data.sender_id,
        data.title,
        data.message,
        data.type,
        data.scheduled_at,
    )
    return web.json_response(notification.to_dict(), status=201)


async def _list_unread(request: web.Request) -> web.Response:
    """GET /notifications/{userId}: unread, newest first."""
    user_id = request.match_info["userId"]
    unread = await services_of(request).notifications.get_unread(user_id)
    return web.json_response({"notifications": [n.to_dict() for n in unread]})


async def _mark_read(request: web.Request) -> web.Response:
    """PUT /notifications/{id}/read"""
    notification_id = request.match_info["id"]
    notification = await services_of(request).notifications.mark_read(notification_id)
    if notification is None:
        return json_error("Notification not found", 404)
    return web.json_response({"notification": notification.to_dict()})


async def _mark_all_read(request: web.Request) -> web.Response:
    """POST /notifications/mark-all-read/{userId}"""
    user_id = request.match_info["userId"]
    count = await services_of(request).notifications.mark_all_read(user_id)
    return web.json_response({"message": f"Marked {count} notifications as read", "count": count})


def register_routes(app: web.Application) -> None:
    app.router.add_post("/notifications", _create)
    app.router.add_post("/notifications/mark-all-read/{userId}", _mark_all_read)
    app.router.add_get("/notifications/{userId}", _list_unread)
    app.router.add_put("/notifications/{id}/read", _mark_read)
