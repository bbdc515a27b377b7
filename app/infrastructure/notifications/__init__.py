"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, notification_manager
from .publisher import (
    LocalRealtimeChannel,
    local_realtime_channel,
    serialize_notification,
)
from .realtime import RealtimeChannel, RedisNotificationRelay, RedisRealtimeChannel

__all__ = [
    "NotificationConnectionManager",
    "notification_manager",
    "LocalRealtimeChannel",
    "local_realtime_channel",
    "serialize_notification",
    "RealtimeChannel",
    "RedisNotificationRelay",
    "RedisRealtimeChannel",
]
