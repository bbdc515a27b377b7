"""Per-user notification settings owned by the account settings module."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotificationPreferences:
    """Boolean opt-in flags grouped by notification topic."""

    user_id: int
    new_booking: bool = True
    new_review: bool = True
    payout_completed: bool = True
    payout_initiated: bool = True
    security_alert: bool = True
    policy_change: bool = True
    promotional_offer: bool = True
    tips_for_host: bool = True
    booking_reminder: bool = True


PREFERENCE_FLAGS: tuple[str, ...] = (
    "new_booking",
    "new_review",
    "payout_completed",
    "payout_initiated",
    "security_alert",
    "policy_change",
    "promotional_offer",
    "tips_for_host",
    "booking_reminder",
)


__all__ = ["NotificationPreferences", "PREFERENCE_FLAGS"]
