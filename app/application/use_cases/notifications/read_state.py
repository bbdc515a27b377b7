"""Query and read-state operations over stored notifications."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.domain.entities import Notification
from app.domain.exceptions import NotFoundError, NothingToClearError, ValidationError
from app.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
_CURSOR_PREFIX = "n:"


@dataclass(frozen=True)
class NotificationPage:
    items: list[Notification]
    total: int
    cursor: str | None


@dataclass(frozen=True)
class MarkReadResult:
    notification_id: int
    already_read: bool


def encode_cursor(notification_id: int) -> str:
    raw = f"{_CURSOR_PREFIX}{notification_id}".encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> int:
    """Return the notification id embedded in ``cursor``."""

    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid pagination cursor") from None
    if not raw.startswith(_CURSOR_PREFIX) or not raw[len(_CURSOR_PREFIX):].isdecimal():
        raise ValidationError("Invalid pagination cursor")
    return int(raw[len(_CURSOR_PREFIX):])


def list_notifications(
    session: Session,
    *,
    user_id: int,
    cursor: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> NotificationPage:
    """Return a newest-first page of the user's notifications.

    Passing back the returned ``cursor`` continues after the last item;
    notifications stored in the meantime only show up on a fresh first page.
    """

    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    before_id = decode_cursor(cursor) if cursor else None

    repository = NotificationRepository(session)
    items = list(repository.list_page(user_id, before_id=before_id, limit=limit))
    total = repository.count_for_user(user_id)
    next_cursor = encode_cursor(items[-1].id) if items else None
    return NotificationPage(items=items, total=total, cursor=next_cursor)


def mark_read(session: Session, *, notification_id: int) -> MarkReadResult:
    """Mark one notification as read; repeated calls report ``already_read``."""

    repository = NotificationRepository(session)
    if repository.mark_read(notification_id):
        return MarkReadResult(notification_id=notification_id, already_read=False)
    if repository.get(notification_id) is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    return MarkReadResult(notification_id=notification_id, already_read=True)


def mark_all_read(session: Session, *, user_id: int) -> int:
    count = NotificationRepository(session).mark_all_read(user_id)
    logger.debug("Marked %s notifications as read for user %s", count, user_id)
    return count


def clear_all(session: Session, *, user_id: int) -> int:
    """Delete every notification of ``user_id`` and return how many were removed."""

    deleted = NotificationRepository(session).delete_all_for_user(user_id)
    if not deleted:
        raise NothingToClearError(f"No notifications found for user {user_id}")
    logger.info("Cleared %s notifications for user %s", deleted, user_id)
    return deleted


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "MarkReadResult",
    "NotificationPage",
    "clear_all",
    "decode_cursor",
    "encode_cursor",
    "list_notifications",
    "mark_all_read",
    "mark_read",
]
