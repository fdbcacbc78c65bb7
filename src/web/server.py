"""Async HTTP + WebSocket server for the notification API.

Runs in the same asyncio event loop as the job scheduler. Uses aiohttp's
AppRunner/TCPSite for non-blocking start/stop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import WSMsgType, web

from src.config import settings
from src.web import cronjob_routes, notification_routes
from src.web.context import SERVICES_KEY, json_error, services_of

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.app import Services

logger = logging.getLogger(__name__)


@web.middleware
async def _error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Turn unexpected handler failures into a logged 500 response."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Request failed: %s %s", request.method, request.path)
        return json_error("Internal server error", 500)


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _ping(request: web.Request) -> web.Response:
    """GET /ping"""
    return web.Response(text="pong")


async def _handle_ws(request: web.Request) -> web.WebSocketResponse:
    """GET /ws: one realtime channel per client."""
    realtime = services_of(request).realtime
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)
    logger.info("Realtime connection opened from %s", request.remote)

    try:
        async for msg in ws:
            if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                await realtime.handle_message(ws, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("Realtime connection error: %s", ws.exception())
    finally:
        await realtime.handle_disconnect(ws)
        logger.info("Realtime connection closed from %s", request.remote)
    return ws


async def _close_connections(app: web.Application) -> None:
    await app[SERVICES_KEY].registry.close_all()


def create_web_app(services: Services) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_error_middleware])
    app[SERVICES_KEY] = services
    app.router.add_get("/health", _health)
    app.router.add_get("/ping", _ping)
    app.router.add_get("/ws", _handle_ws)
    notification_routes.register_routes(app)
    cronjob_routes.register_routes(app)
    app.on_shutdown.append(_close_connections)
    return app


class WebServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, services: Services, port: int | None = None) -> None:
        self.port = port or settings.server_port
        self._services = services
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for HTTP requests and WebSocket clients."""
        app = create_web_app(self._services)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, settings.server_host, self.port)
        await site.start()
        logger.info("Server listening on %s:%d", settings.server_host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Server stopped")
