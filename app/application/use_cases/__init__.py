"""Aggregate application use cases."""

from .notifications import broadcast, notify_user, send_notification

__all__ = [
    "broadcast",
    "notify_user",
    "send_notification",
]
