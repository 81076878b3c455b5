from __future__ import annotations

import pytest

from realtime_service.application.exceptions import PersistenceError
from realtime_service.infrastructure.bus.redis_pubsub import (
    NOTIFICATION_CREATED,
    RedisPubSubSubscriber,
    notification_callback,
)
from realtime_service.infrastructure.bus.serializer import serialize_event
from realtime_service.services.notification_fanout import NotificationFanout
from tests.conftest import open_connection, sent


@pytest.fixture
def fanout(registry, uow_factory, clock):
    return NotificationFanout(registry, uow_factory, clock=clock)


@pytest.mark.asyncio
async def test_notify_stores_and_pushes_to_online_user(fanout, registry, store):
    conn = open_connection(registry, 2)

    notification = await fanout.notify(2, "mutual_crush", "It's a match!", related_user_id=1)

    assert store.notifications[notification.id].message == "It's a match!"
    [frame] = sent(conn).frames_of("notification")
    assert frame["notification"]["id"] == notification.id
    assert frame["notification"]["relatedUserId"] == 1
    assert frame["notification"]["isRead"] is False


@pytest.mark.asyncio
async def test_notify_offline_user_only_stores(fanout, store):
    notification = await fanout.notify(2, "new_message", "hi")

    assert notification.id in store.notifications


@pytest.mark.asyncio
async def test_notify_store_failure(fanout, registry, store):
    conn = open_connection(registry, 2)
    store.fail_notifications = True

    with pytest.raises(PersistenceError):
        await fanout.notify(2, "new_message", "hi")
    assert sent(conn).sent == []


def _subscriber(fanout) -> RedisPubSubSubscriber:
    # Never started, so the redis client is not touched.
    return RedisPubSubSubscriber(None, "realtime.notifications", notification_callback(fanout))


@pytest.mark.asyncio
async def test_externally_created_notification_is_pushed(fanout, registry):
    conn = open_connection(registry, 3)
    raw = serialize_event(
        NOTIFICATION_CREATED,
        {
            "id": 41,
            "userId": 3,
            "type": "friend_group_created",
            "message": "You were added to a group",
            "isRead": False,
            "createdAt": "2026-01-01T12:00:00+00:00",
        },
    )

    await _subscriber(fanout).handle_raw(raw)

    [frame] = sent(conn).frames_of("notification")
    assert frame["notification"]["id"] == 41
    assert frame["notification"]["type"] == "friend_group_created"


@pytest.mark.asyncio
async def test_bad_pubsub_payloads_are_dropped(fanout, registry):
    conn = open_connection(registry, 3)
    subscriber = _subscriber(fanout)

    await subscriber.handle_raw("not json")
    await subscriber.handle_raw(serialize_event(NOTIFICATION_CREATED, {"userId": 3}))
    await subscriber.handle_raw(serialize_event("user.renamed", {"id": 3}))

    assert sent(conn).sent == []
