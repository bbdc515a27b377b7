"""Build the dispatch queue and realtime channel selected by the settings."""

from __future__ import annotations

import logging

from app.config import Settings
from app.infrastructure.notifications import (
    RealtimeChannel,
    RedisRealtimeChannel,
    local_realtime_channel,
)
from app.infrastructure.queue import (
    DispatchQueue,
    InMemoryDispatchQueue,
    RedisDispatchQueue,
)

logger = logging.getLogger(__name__)


def build_dispatch_queue(settings: Settings) -> DispatchQueue:
    if settings.queue_backend == "redis":
        logger.info("Using Redis dispatch queue '%s'", settings.dispatch_queue_name)
        return RedisDispatchQueue.from_url(
            settings.redis_url,
            stream=settings.dispatch_queue_name,
            lease_timeout=settings.worker_lease_timeout_seconds,
        )
    logger.info("Using in-memory dispatch queue")
    return InMemoryDispatchQueue(lease_timeout=settings.worker_lease_timeout_seconds)


def build_realtime_channel(settings: Settings) -> RealtimeChannel:
    if settings.queue_backend == "redis":
        return RedisRealtimeChannel.from_url(settings.redis_url)
    return local_realtime_channel


__all__ = ["build_dispatch_queue", "build_realtime_channel"]
