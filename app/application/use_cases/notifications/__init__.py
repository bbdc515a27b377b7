"""Public helpers for dispatching and managing notifications."""

from .delivery import DEFAULT_CHANNEL_NAME, DeliveryWorker
from .dispatch import (
    DEFAULT_CHUNK_SIZE,
    BroadcastResult,
    DispatchOutcome,
    NotificationContent,
    broadcast,
    chunked,
    notify_user,
    send_notification,
)
from .preferences import CATEGORY_PREFERENCE_FLAGS, is_enabled
from .read_state import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MarkReadResult,
    NotificationPage,
    clear_all,
    decode_cursor,
    encode_cursor,
    list_notifications,
    mark_all_read,
    mark_read,
)

__all__ = [
    "BroadcastResult",
    "CATEGORY_PREFERENCE_FLAGS",
    "DEFAULT_CHANNEL_NAME",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_PAGE_SIZE",
    "DeliveryWorker",
    "DispatchOutcome",
    "MAX_PAGE_SIZE",
    "MarkReadResult",
    "NotificationContent",
    "NotificationPage",
    "broadcast",
    "chunked",
    "clear_all",
    "decode_cursor",
    "encode_cursor",
    "is_enabled",
    "list_notifications",
    "mark_all_read",
    "mark_read",
    "notify_user",
    "send_notification",
]
