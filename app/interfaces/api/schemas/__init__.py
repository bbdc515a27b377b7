from .notification import (
    BroadcastResponse,
    ClearNotificationsResponse,
    DeadLetterRead,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationCreate,
    NotificationPageRead,
    NotificationRead,
    NotifyResponse,
)

__all__ = [
    "BroadcastResponse",
    "ClearNotificationsResponse",
    "DeadLetterRead",
    "MarkAllReadResponse",
    "MarkReadResponse",
    "NotificationCreate",
    "NotificationPageRead",
    "NotificationRead",
    "NotifyResponse",
]
