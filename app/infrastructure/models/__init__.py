"""ORM models used by the application infrastructure."""

from .user import UserModel
from .notification import NotificationModel
from .notification_preferences import NotificationPreferencesModel

__all__ = [
    "UserModel",
    "NotificationModel",
    "NotificationPreferencesModel",
]
