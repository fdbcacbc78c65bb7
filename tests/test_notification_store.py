"""Tests for NotificationStore: aiosqlite CRUD for notifications."""

from datetime import timedelta

from src.notifications.models import CATEGORY_USER, Notification
from src.notifications.store import NotificationStore
from tests.conftest import NOW


def _make_notification(
    notification_id: str = "n1",
    user_id: str = "user1",
    **kwargs,
) -> Notification:
    defaults = {
        "title": "Hello",
        "message": "World",
        "created_at": "2025-01-01T00:00:00+00:00",
    }
    defaults.update(kwargs)
    return Notification(id=notification_id, user_id=user_id, **defaults)


# -- add / get -------------------------------------------------------------------


async def test_add_and_get(notification_store: NotificationStore) -> None:
    await notification_store.add(
        _make_notification(sender_id="user2", category=CATEGORY_USER, type="warning")
    )

    fetched = await notification_store.get("n1")
    assert fetched is not None
    assert fetched.user_id == "user1"
    assert fetched.sender_id == "user2"
    assert fetched.category == CATEGORY_USER
    assert fetched.type == "warning"
    assert fetched.is_read is False
    assert fetched.is_sent is False


async def test_get_missing(notification_store: NotificationStore) -> None:
    assert await notification_store.get("missing") is None


async def test_add_many(notification_store: NotificationStore) -> None:
    batch = [_make_notification(f"n{i}", f"user{i}") for i in range(1, 4)]
    await notification_store.add_many(batch)

    for i in range(1, 4):
        assert (await notification_store.get(f"n{i}")).user_id == f"user{i}"


async def test_add_many_empty(notification_store: NotificationStore) -> None:
    assert await notification_store.add_many([]) == []


# -- unread ------------------------------------------------------------------------


async def test_list_unread_newest_first(notification_store: NotificationStore) -> None:
    await notification_store.add(_make_notification("old", created_at="2025-01-01T00:00:00+00:00"))
    await notification_store.add(_make_notification("new", created_at="2025-03-01T00:00:00+00:00"))
    await notification_store.add(_make_notification("read", is_read=True))
    await notification_store.add(_make_notification("other", user_id="user2"))

    unread = await notification_store.list_unread("user1")
    assert [n.id for n in unread] == ["new", "old"]


async def test_mark_read(notification_store: NotificationStore) -> None:
    await notification_store.add(_make_notification())

    updated = await notification_store.mark_read("n1")
    assert updated is not None
    assert updated.is_read is True
    assert await notification_store.list_unread("user1") == []


async def test_mark_read_missing(notification_store: NotificationStore) -> None:
    assert await notification_store.mark_read("missing") is None


async def test_mark_all_read_counts_only_unread(notification_store: NotificationStore) -> None:
    await notification_store.add(_make_notification("a"))
    await notification_store.add(_make_notification("b"))
    await notification_store.add(_make_notification("c", is_read=True))
    await notification_store.add(_make_notification("d", user_id="user2"))

    assert await notification_store.mark_all_read("user1") == 2
    assert await notification_store.list_unread("user1") == []
    assert len(await notification_store.list_unread("user2")) == 1


async def test_unread_counts(notification_store: NotificationStore) -> None:
    await notification_store.add(_make_notification("a", "user1"))
    await notification_store.add(_make_notification("b", "user1"))
    await notification_store.add(_make_notification("c", "user2"))
    await notification_store.add(_make_notification("d", "user3", is_read=True))

    assert await notification_store.unread_counts() == {"user1": 2, "user2": 1}


# -- scheduled ---------------------------------------------------------------------


async def test_list_due_filters(notification_store: NotificationStore) -> None:
    past = (NOW - timedelta(minutes=5)).isoformat()
    exact = NOW.isoformat()
    future = (NOW + timedelta(minutes=5)).isoformat()
    await notification_store.add(_make_notification("past", scheduled_at=past))
    await notification_store.add(_make_notification("exact", scheduled_at=exact))
    await notification_store.add(_make_notification("future", scheduled_at=future))
    await notification_store.add(_make_notification("sent", scheduled_at=past, is_sent=True))
    await notification_store.add(_make_notification("immediate"))

    due = await notification_store.list_due(NOW)
    assert [n.id for n in due] == ["past", "exact"]
    for notification in due:
        assert notification.scheduled_at <= NOW.isoformat()
        assert notification.is_sent is False


async def test_mark_sent(notification_store: NotificationStore) -> None:
    await notification_store.add(
        _make_notification(scheduled_at=(NOW - timedelta(minutes=1)).isoformat())
    )

    assert await notification_store.mark_sent("n1") is True
    assert await notification_store.list_due(NOW) == []
    assert await notification_store.mark_sent("missing") is False
