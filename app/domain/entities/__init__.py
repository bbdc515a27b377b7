"""Domain entities exposed by the application."""

from .dispatch_job import (
    JOB_SOURCE_BROADCAST,
    JOB_SOURCE_DIRECT,
    DispatchJob,
    build_idempotency_key,
)
from .notification import GLOBAL_CATEGORIES, Notification, NotificationCategory
from .notification_preferences import PREFERENCE_FLAGS, NotificationPreferences
from .user import User

__all__ = [
    "DispatchJob",
    "GLOBAL_CATEGORIES",
    "JOB_SOURCE_BROADCAST",
    "JOB_SOURCE_DIRECT",
    "Notification",
    "NotificationCategory",
    "NotificationPreferences",
    "PREFERENCE_FLAGS",
    "User",
    "build_idempotency_key",
]
