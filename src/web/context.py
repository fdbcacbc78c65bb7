"""Shared helpers for route handlers."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from src.app import Services

logger = logging.getLogger(__name__)

SERVICES_KEY = web.AppKey("services", Services)


def services_of(request: web.Request) -> Services:
    return request.app[SERVICES_KEY]


def json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def read_json(request: web.Request) -> dict[str, Any] | None:
    """Decode a JSON object body, or None when the body is not one."""
    try:
        payload = await request.json()
    except Exception:
        logger.warning("Bad request: invalid JSON (%s %s)", request.method, request.path)
        return None
    if not isinstance(payload, dict):
        return None
    return payload
