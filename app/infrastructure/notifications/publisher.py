"""In-process realtime channel that pushes notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from anyio import from_thread

from app.domain.entities import Notification
from app.utils import isoformat_or_none

from .manager import NotificationConnectionManager, notification_manager

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the JSON payload published for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "category": notification.category.value,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "image": notification.image,
        "read": notification.read,
        "created_at": isoformat_or_none(notification.created_at),
    }


class LocalRealtimeChannel:
    """Realtime channel whose only subscriber is this process's websocket gateway.

    Publishing from a delivery worker thread hands the send over to the event
    loop through :mod:`anyio.from_thread`; the worker therefore has to run in a
    thread started with :func:`anyio.to_thread.run_sync`.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._pending: set[asyncio.Task[Any]] = set()

    def publish(self, channel_name: str, payload: dict[str, Any]) -> None:
        user_id = payload.get("user_id")
        if not user_id or not self._manager.has_connections(user_id):
            logger.debug("No live subscribers for user %s on %s", user_id, channel_name)
            return

        message = {"type": "notification", "data": payload}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            from_thread.run(self._manager.send_to_user, user_id, message)
        else:
            # The loop keeps only weak references to tasks.
            task = loop.create_task(self._manager.send_to_user(user_id, message))
            self._pending.add(task)
            task.add_done_callback(self._on_sent)

    def _on_sent(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Realtime send failed", exc_info=exc)


local_realtime_channel = LocalRealtimeChannel(notification_manager)


__all__ = ["LocalRealtimeChannel", "local_realtime_channel", "serialize_notification"]
