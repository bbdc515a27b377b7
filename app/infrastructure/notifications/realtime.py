"""Realtime channel contract and its Redis pub/sub implementation."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import anyio
from redis import Redis
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)


class RealtimeChannel(Protocol):
    """Publish side of the transport live-delivery gateways subscribe to."""

    def publish(self, channel_name: str, payload: dict[str, Any]) -> None: ...


class RedisRealtimeChannel:
    """Publish notifications as JSON documents on a Redis pub/sub channel."""

    def __init__(self, client: Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRealtimeChannel":
        return cls(Redis.from_url(url))

    def publish(self, channel_name: str, payload: dict[str, Any]) -> None:
        receivers = self._redis.publish(channel_name, json.dumps(payload))
        logger.debug(
            "Published notification %s to %s (%s receivers)",
            payload.get("id"),
            channel_name,
            receivers,
        )


class RedisNotificationRelay:
    """Gateway side: forward notifications from Redis pub/sub to local websockets."""

    def __init__(
        self,
        client: AsyncRedis,
        channel_name: str,
        manager: NotificationConnectionManager,
    ) -> None:
        self._redis = client
        self._channel_name = channel_name
        self._manager = manager

    async def run(self, stop_event: anyio.Event) -> None:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self._channel_name)
        logger.info("Relaying realtime notifications from %s", self._channel_name)
        try:
            while not stop_event.is_set():
                try:
                    message = await pubsub.get_message(timeout=1.0)
                except RedisError:
                    logger.exception("Realtime relay read failed; retrying in 1s")
                    await anyio.sleep(1.0)
                    continue
                if message is not None:
                    await self.forward(message.get("data"))
        finally:
            await pubsub.unsubscribe(self._channel_name)
            await pubsub.aclose()

    async def forward(self, raw: Any) -> None:
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed realtime message on %s", self._channel_name)
            return
        user_id = payload.get("user_id") if isinstance(payload, dict) else None
        if not user_id:
            return
        await self._manager.send_to_user(int(user_id), {"type": "notification", "data": payload})


__all__ = ["RealtimeChannel", "RedisNotificationRelay", "RedisRealtimeChannel"]
