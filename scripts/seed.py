#!/usr/bin/env python3
"""Seed demo users, notifications, and job definitions.

Usage examples:
    # Seed the default database
    uv run python scripts/seed.py

    # Seed a specific file
    uv run python scripts/seed.py --db data/dev.db

    # Users only
    uv run python scripts/seed.py --users-only
"""

import argparse
import asyncio
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.notifications.models import CATEGORY_SYSTEM, Notification, make_notification_id
from src.notifications.store import NotificationStore
from src.scheduler.models import JobDefinition, make_job_id
from src.scheduler.store import JobStore
from src.users.store import ROLE_ADMIN, User, UserStore

USERS = [
    User(id="user1", email="alice@example.com", name="Alice Johnson", role=ROLE_ADMIN),
    User(id="user2", email="bob@example.com", name="Bob Smith"),
    User(id="user3", email="charlie@example.com", name="Charlie Brown"),
]

SYSTEM_MESSAGES = [
    ("Welcome!", "Thanks for joining. We hope you enjoy the experience.", "success"),
    ("Scheduled maintenance", "The system will be down on Sunday 02:00-04:00 UTC.", "warning"),
    ("Security update", "We have updated our security systems to better protect your data.", "info"),
]

JOBS = [
    ("Scheduled notification check", "* * * * *", "notification_check", None),
    ("Daily summary", "0 9 * * *", "daily_summary", None),
]


async def seed(db_path: Path | None, users_only: bool) -> None:
    users = UserStore(db_path=db_path)
    for user in USERS:
        if await users.get_user(user.id) is None:
            await users.add_user(user)
    print(f"Seeded {len(USERS)} users")
    if users_only:
        return

    batch = [
        Notification(
            id=make_notification_id(),
            user_id=user.id,
            title=title,
            message=message,
            type=kind,
            category=CATEGORY_SYSTEM,
        )
        for title, message, kind in SYSTEM_MESSAGES
        for user in USERS
    ]
    scheduled_at = (datetime.now(UTC) + timedelta(minutes=5)).isoformat()
    batch.extend(
        Notification(
            id=make_notification_id(),
            user_id=user.id,
            title="Scheduled reminder",
            message="This notification was scheduled five minutes after seeding.",
            category=CATEGORY_SYSTEM,
            scheduled_at=scheduled_at,
        )
        for user in USERS
    )
    await NotificationStore(db_path=db_path).add_many(batch)
    print(f"Seeded {len(batch)} notifications")

    jobs = JobStore(db_path=db_path)
    for name, expression, job_type, job_data in JOBS:
        await jobs.add_job(
            JobDefinition(
                id=make_job_id(),
                name=name,
                cron_expression=expression,
                job_type=job_type,
                job_data=job_data,
                created_by=USERS[0].id,
            )
        )
    print(f"Seeded {len(JOBS)} job definitions")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--db", type=Path, default=None, help="SQLite file (default: settings)")
    parser.add_argument("--users-only", action="store_true", help="Only seed users")
    args = parser.parse_args()
    asyncio.run(seed(args.db, args.users_only))


if __name__ == "__main__":
    main()
