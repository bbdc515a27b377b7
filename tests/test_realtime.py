from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import anyio
import anyio.to_thread

from app.domain.entities import Notification, NotificationCategory
from app.infrastructure.notifications import (
    LocalRealtimeChannel,
    NotificationConnectionManager,
    RedisNotificationRelay,
    RedisRealtimeChannel,
    serialize_notification,
)


def _notification() -> Notification:
    return Notification(
        id=11,
        user_id=3,
        category=NotificationCategory.COUPON,
        title="10% off",
        message="Use code SPRING",
        link="/coupons/spring",
        created_at=datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc),
    )


def test_serialize_notification_uses_plain_json_types():
    payload = serialize_notification(_notification())

    assert payload == {
        "id": 11,
        "user_id": 3,
        "category": "COUPON",
        "title": "10% off",
        "message": "Use code SPRING",
        "link": "/coupons/spring",
        "image": None,
        "read": False,
        "created_at": "2024-04-01T08:00:00+00:00",
    }


def test_redis_channel_publishes_json_document():
    client = MagicMock()
    payload = serialize_notification(_notification())

    RedisRealtimeChannel(client).publish("notifications", payload)

    channel_name, body = client.publish.call_args.args
    assert channel_name == "notifications"
    assert json.loads(body) == payload


def test_relay_forwards_messages_to_the_recipient():
    manager = MagicMock()
    manager.send_to_user = AsyncMock()
    relay = RedisNotificationRelay(MagicMock(), "notifications", manager)
    payload = serialize_notification(_notification())

    anyio.run(relay.forward, json.dumps(payload).encode())

    manager.send_to_user.assert_awaited_once_with(3, {"type": "notification", "data": payload})


def test_relay_ignores_malformed_messages():
    manager = MagicMock()
    manager.send_to_user = AsyncMock()
    relay = RedisNotificationRelay(MagicMock(), "notifications", manager)

    anyio.run(relay.forward, b"not json")
    anyio.run(relay.forward, json.dumps({"id": 1}))

    manager.send_to_user.assert_not_awaited()


def test_local_channel_without_subscribers_is_a_noop():
    manager = NotificationConnectionManager()
    manager.send_to_user = AsyncMock()

    LocalRealtimeChannel(manager).publish("notifications", {"user_id": 3, "id": 1})

    manager.send_to_user.assert_not_called()


def test_local_channel_sends_from_a_worker_thread():
    manager = MagicMock()
    manager.has_connections.return_value = True
    manager.send_to_user = AsyncMock()
    channel = LocalRealtimeChannel(manager)

    async def main():
        await anyio.to_thread.run_sync(channel.publish, "notifications", {"user_id": 3, "id": 1})

    anyio.run(main)

    manager.send_to_user.assert_awaited_once_with(
        3, {"type": "notification", "data": {"user_id": 3, "id": 1}}
    )


async def _drain() -> None:
    for _ in range(3):
        await anyio.sleep(0)


def test_local_channel_inside_the_loop_keeps_the_send_until_it_finishes():
    manager = MagicMock()
    manager.has_connections.return_value = True
    manager.send_to_user = AsyncMock(return_value=1)
    channel = LocalRealtimeChannel(manager)

    async def main():
        channel.publish("notifications", {"user_id": 3, "id": 1})
        scheduled = len(channel._pending)
        await _drain()
        return scheduled

    scheduled = anyio.run(main)

    assert scheduled == 1
    assert channel._pending == set()
    manager.send_to_user.assert_awaited_once_with(
        3, {"type": "notification", "data": {"user_id": 3, "id": 1}}
    )


def test_local_channel_logs_a_failed_send_inside_the_loop(caplog):
    manager = MagicMock()
    manager.has_connections.return_value = True
    manager.send_to_user = AsyncMock(side_effect=RuntimeError("socket closed"))
    channel = LocalRealtimeChannel(manager)

    async def main():
        channel.publish("notifications", {"user_id": 3, "id": 1})
        await _drain()

    with caplog.at_level("ERROR"):
        anyio.run(main)

    assert "Realtime send failed" in caplog.text
    assert "socket closed" in caplog.text
    assert channel._pending == set()


def test_manager_tracks_sockets_per_user_and_closes_them():
    manager = NotificationConnectionManager()
    first, second = AsyncMock(), AsyncMock()

    async def main():
        await manager.connect(3, first)
        await manager.connect(3, second)
        delivered = await manager.send_to_user(3, {"type": "pong"})
        manager.disconnect(3, first)
        remaining = manager.connected_users()
        await manager.close_all()
        return delivered, remaining

    delivered, remaining = anyio.run(main)

    assert delivered == 2
    assert remaining == [3]
    second.close.assert_awaited_once_with(code=1001)
    first.close.assert_not_awaited()
    assert manager.has_connections(3) is False
