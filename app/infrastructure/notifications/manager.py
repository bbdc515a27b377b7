"""Registry of live websocket subscribers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationConnectionManager:
    """Track the websockets of connected recipients, several per user.

    All methods run on the event loop; worker threads reach ``send_to_user``
    through :class:`~app.infrastructure.notifications.LocalRealtimeChannel`.
    """

    def __init__(self) -> None:
        self._sockets: dict[int, set[WebSocket]] = {}

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self._sockets.setdefault(user_id, set()).add(websocket)
        logger.debug(
            "User %s subscribed (%s open sockets)", user_id, len(self._sockets[user_id])
        )

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._sockets.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._sockets[user_id]

    def has_connections(self, user_id: int) -> bool:
        return bool(self._sockets.get(user_id))

    def connected_users(self) -> list[int]:
        return sorted(self._sockets)

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        """Send ``message`` to every socket of ``user_id``; return how many received it."""

        delivered = 0
        stale: list[WebSocket] = []
        for websocket in list(self._sockets.get(user_id, ())):
            try:
                await websocket.send_json(message)
            except Exception:  # pragma: no cover - socket closed mid-send
                logger.debug("Dropping dead websocket for user %s", user_id, exc_info=True)
                stale.append(websocket)
            else:
                delivered += 1
        for websocket in stale:
            self.disconnect(user_id, websocket)
        return delivered

    async def close_all(self, code: int = 1001) -> None:
        """Close every open socket, used when the gateway shuts down."""

        sockets = [
            (user_id, websocket)
            for user_id, user_sockets in self._sockets.items()
            for websocket in user_sockets
        ]
        self._sockets.clear()
        for user_id, websocket in sockets:
            try:
                await websocket.close(code=code)
            except Exception:  # pragma: no cover - already closed by the client
                logger.debug("Websocket for user %s was already closed", user_id)


notification_manager = NotificationConnectionManager()


__all__ = ["NotificationConnectionManager", "notification_manager"]
