"""Decide whether a notification category is enabled for a recipient."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.domain.entities import NotificationCategory, NotificationPreferences

# Each category is enabled when any of its flags is set.
CATEGORY_PREFERENCE_FLAGS: Mapping[NotificationCategory, tuple[str, ...]] = MappingProxyType(
    {
        NotificationCategory.BOOKING: ("new_booking",),
        NotificationCategory.REVIEW: ("new_review",),
        NotificationCategory.PAYMENT: ("payout_completed", "payout_initiated"),
        NotificationCategory.ALERT: ("security_alert",),
        NotificationCategory.SYSTEM: ("policy_change",),
        NotificationCategory.COUPON: ("promotional_offer",),
        NotificationCategory.WISHLIST: ("tips_for_host",),
        NotificationCategory.EVENT: ("booking_reminder",),
    }
)


def is_enabled(
    category: NotificationCategory, preferences: NotificationPreferences | None
) -> bool:
    """Return ``True`` when ``preferences`` allow ``category``.

    A missing preference record enables everything, and so does a category
    with no entry in :data:`CATEGORY_PREFERENCE_FLAGS`.
    """

    if preferences is None:
        return True
    flags = CATEGORY_PREFERENCE_FLAGS.get(category)
    if not flags:
        return True
    return any(getattr(preferences, flag) for flag in flags)


__all__ = ["CATEGORY_PREFERENCE_FLAGS", "is_enabled"]
