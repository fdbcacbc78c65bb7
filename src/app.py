"""Service graph construction and process lifecycle."""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.config import settings
from src.notifications.service import NotificationService
from src.notifications.store import NotificationStore
from src.realtime.handler import RealtimeHandler
from src.realtime.registry import ConnectionRegistry
from src.scheduler.engine import SchedulerEngine
from src.scheduler.executor import JobExecutor
from src.scheduler.store import JobStore
from src.users.store import UserStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived collaborator, built once and injected where needed."""

    users: UserStore
    notification_store: NotificationStore
    jobs: JobStore
    registry: ConnectionRegistry
    notifications: NotificationService
    executor: JobExecutor
    engine: SchedulerEngine
    realtime: RealtimeHandler


def build_services(
    db_path: Path | None = None,
    *,
    timezone: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Wire stores, registry, delivery, and the scheduler together.

    *db_path* overrides ``settings.database_path`` (tests pass a tmp file).
    """
    users = UserStore(db_path=db_path)
    notification_store = NotificationStore(db_path=db_path)
    jobs = JobStore(db_path=db_path)
    registry = ConnectionRegistry(
        users, close_superseded=settings.realtime_close_superseded
    )
    notifications = NotificationService(notification_store, users, registry)
    executor = JobExecutor(notifications, clock=clock)
    engine = SchedulerEngine(
        store=jobs,
        executor=executor,
        notifications=notifications,
        timezone=timezone,
        clock=clock,
    )
    return Services(
        users=users,
        notification_store=notification_store,
        jobs=jobs,
        registry=registry,
        notifications=notifications,
        executor=executor,
        engine=engine,
        realtime=RealtimeHandler(registry, notifications),
    )


async def run() -> None:
    """Start the scheduler and the server, then wait for SIGINT/SIGTERM."""
    from src.web.server import WebServer

    services = build_services()
    server = WebServer(services)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await services.engine.start()
    try:
        await server.start()
        await stop.wait()
        logger.info("Shutting down...")
    finally:
        await server.stop()
        await services.engine.shutdown()
