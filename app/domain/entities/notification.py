"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NotificationCategory(str, Enum):
    """Closed set of notification categories understood by the dispatcher."""

    BOOKING = "BOOKING"
    REVIEW = "REVIEW"
    PAYMENT = "PAYMENT"
    ALERT = "ALERT"
    SYSTEM = "SYSTEM"
    COUPON = "COUPON"
    WISHLIST = "WISHLIST"
    EVENT = "EVENT"

    @classmethod
    def parse(cls, value: "NotificationCategory | str") -> "NotificationCategory":
        """Return the category named by ``value`` or raise ``ValueError``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unknown notification category '{value}'. Expected one of: {allowed}"
            ) from None


# Categories the admin "send" operation fans out to every user.
GLOBAL_CATEGORIES: frozenset[NotificationCategory] = frozenset(
    {NotificationCategory.SYSTEM, NotificationCategory.ALERT}
)


@dataclass(frozen=True)
class Notification:
    """Information message delivered to a specific user.

    Everything except ``read`` is fixed once the delivery worker stores the
    record; read state changes go through the repository.
    """

    id: int | None
    user_id: int
    category: NotificationCategory
    title: str
    message: str
    link: str | None = None
    image: str | None = None
    read: bool = False
    created_at: datetime | None = None


__all__ = ["GLOBAL_CATEGORIES", "Notification", "NotificationCategory"]
