from datetime import timedelta

import pytest

from civictrack.config import NotificationType
from civictrack.notifications.domain import Notification, NotificationFeed

from factories import NOW


def note(i, recipient="authority-1"):
    return Notification(
        recipient_id=recipient,
        type=NotificationType.NEW_TICKET,
        title="New Issue Reported",
        message=f"issue {i}",
        created_at=NOW + timedelta(minutes=i),
    )


def test_push_keeps_newest_first():
    feed = NotificationFeed("authority-1", cap=3)
    for i in range(3):
        assert feed.push(note(i)) == []
    assert [n.message for n in feed.entries] == ["issue 2", "issue 1", "issue 0"]


def test_push_on_full_feed_evicts_oldest():
    feed = NotificationFeed("authority-1", cap=3)
    first = note(0)
    feed.push(first)
    feed.push(note(1))
    feed.push(note(2))

    evicted = feed.push(note(3))

    assert evicted == [first]
    assert len(feed) == 3
    assert feed.entries[0].message == "issue 3"


def test_overfull_history_is_trimmed_on_next_push():
    existing = [note(i) for i in reversed(range(5))]
    feed = NotificationFeed("authority-1", existing, cap=3)

    evicted = feed.push(note(5))

    assert [n.message for n in evicted] == ["issue 1", "issue 0", "issue 2"]
    assert [n.message for n in feed.entries] == ["issue 5", "issue 4", "issue 3"]


def test_unread_count():
    feed = NotificationFeed("authority-1", cap=5)
    for i in range(3):
        feed.push(note(i))
    feed.entries[0].mark_read()
    assert feed.unread_count == 2


def test_rejects_other_recipient():
    feed = NotificationFeed("authority-1")
    with pytest.raises(ValueError):
        feed.push(note(0, recipient="citizen-1"))


def test_cap_must_be_positive():
    with pytest.raises(ValueError):
        NotificationFeed("authority-1", cap=0)
