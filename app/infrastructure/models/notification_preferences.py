"""SQLAlchemy model for per-user notification settings."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer
from sqlalchemy.sql import expression

from app.infrastructure.database import Base


def _flag() -> Column:
    return Column(Boolean, nullable=False, default=True, server_default=expression.true())


class NotificationPreferencesModel(Base):
    """One row of opt-in flags per user."""

    __tablename__ = "notification_preferences"

    user_id = Column(
        Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True
    )
    new_booking = _flag()
    new_review = _flag()
    payout_completed = _flag()
    payout_initiated = _flag()
    security_alert = _flag()
    policy_change = _flag()
    promotional_offer = _flag()
    tips_for_host = _flag()
    booking_reminder = _flag()


__all__ = ["NotificationPreferencesModel"]
