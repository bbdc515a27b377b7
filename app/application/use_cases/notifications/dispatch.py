"""Producer side of the dispatch pipeline: schedule notifications for delivery."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice

from sqlalchemy.orm import Session

from app.domain.entities import (
    GLOBAL_CATEGORIES,
    JOB_SOURCE_BROADCAST,
    JOB_SOURCE_DIRECT,
    DispatchJob,
    NotificationCategory,
)
from app.domain.exceptions import (
    FailedChunk,
    NotFoundError,
    PartialFanoutError,
    QueueUnavailableError,
    ValidationError,
)
from app.infrastructure.queue import DispatchQueue
from app.infrastructure.repositories import (
    NotificationPreferencesRepository,
    UserRepository,
)
from app.utils import now_in_app_timezone

from .preferences import is_enabled

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 300
MAX_TITLE_LENGTH = 120
MAX_REFERENCE_LENGTH = 500


class DispatchOutcome(str, Enum):
    ACCEPTED = "accepted"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NotificationContent:
    """Validated fields shared by every job produced for one send request."""

    category: NotificationCategory
    title: str
    message: str
    link: str | None = None
    image: str | None = None

    @classmethod
    def build(
        cls,
        *,
        category: NotificationCategory | str,
        title: str,
        message: str,
        link: str | None = None,
        image: str | None = None,
    ) -> "NotificationContent":
        """Normalize the raw fields or raise :class:`ValidationError`."""

        try:
            parsed_category = NotificationCategory.parse(category)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        clean_title = (title or "").strip()
        clean_message = (message or "").strip()
        if not clean_title:
            raise ValidationError("Notification title must not be empty")
        if len(clean_title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"Notification title must be at most {MAX_TITLE_LENGTH} characters"
            )
        if not clean_message:
            raise ValidationError("Notification message must not be empty")

        return cls(
            category=parsed_category,
            title=clean_title,
            message=clean_message,
            link=_clean_reference(link, "link"),
            image=_clean_reference(image, "image"),
        )


@dataclass(frozen=True)
class BroadcastResult:
    recipients: int
    chunks: int
    failed_chunks: list[FailedChunk] = field(default_factory=list)


def _clean_reference(value: str | None, name: str) -> str | None:
    cleaned = (value or "").strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_REFERENCE_LENGTH:
        raise ValidationError(
            f"Notification {name} must be at most {MAX_REFERENCE_LENGTH} characters"
        )
    return cleaned


def chunked(values: Iterable[int], size: int) -> Iterator[list[int]]:
    """Yield consecutive lists of at most ``size`` items from ``values``."""

    if size <= 0:
        raise ValueError("Chunk size must be a positive integer")
    iterator = iter(values)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


def notify_user(
    session: Session,
    queue: DispatchQueue,
    *,
    user_id: int,
    content: NotificationContent,
    check_recipient: bool = True,
) -> DispatchOutcome:
    """Enqueue one notification for ``user_id`` unless their preferences opt out.

    With ``check_recipient`` the user must exist in the directory. Queue errors
    propagate as :class:`QueueUnavailableError`.
    """

    if check_recipient and not UserRepository(session).exists(user_id):
        raise NotFoundError(f"User {user_id} not found")

    preferences = NotificationPreferencesRepository(session).get_for_user(user_id)
    if not is_enabled(content.category, preferences):
        logger.debug(
            "Skipped notification of category %s for user %s", content.category.value, user_id
        )
        return DispatchOutcome.SKIPPED

    job = DispatchJob.create(
        user_id=user_id,
        category=content.category,
        title=content.title,
        message=content.message,
        link=content.link,
        image=content.image,
        enqueued_at=now_in_app_timezone(),
        source=JOB_SOURCE_DIRECT,
    )
    queue.enqueue(job)
    logger.debug("Queued notification for user %s", user_id)
    return DispatchOutcome.ACCEPTED


def broadcast(
    session: Session,
    queue: DispatchQueue,
    *,
    content: NotificationContent,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> BroadcastResult:
    """Enqueue one job per directory user, ``chunk_size`` jobs per bulk call.

    Preferences are not consulted here. A failing chunk does not undo the
    chunks already enqueued; every failure is collected and reported through
    :class:`PartialFanoutError` once all chunks were attempted.
    """

    enqueued_at = now_in_app_timezone()
    recipients = 0
    chunks = 0
    failed: list[FailedChunk] = []

    for user_ids in chunked(UserRepository(session).iter_ids(batch_size=chunk_size), chunk_size):
        start = recipients
        recipients += len(user_ids)
        chunks += 1
        jobs = [
            DispatchJob.create(
                user_id=user_id,
                category=content.category,
                title=content.title,
                message=content.message,
                link=content.link,
                image=content.image,
                enqueued_at=enqueued_at,
                source=JOB_SOURCE_BROADCAST,
            )
            for user_id in user_ids
        ]
        try:
            queue.enqueue_bulk(jobs)
        except QueueUnavailableError as exc:
            logger.error(
                "Fanout chunk %s-%s (users %s..%s) failed",
                start,
                recipients,
                user_ids[0],
                user_ids[-1],
                exc_info=True,
            )
            failed.append(FailedChunk(start=start, end=recipients, reason=str(exc)))

    if recipients == 0:
        logger.warning("No users found for fanout notification")
        return BroadcastResult(recipients=0, chunks=0)

    logger.info(
        "Broadcast %s notification to %s users in %s chunks",
        content.category.value,
        recipients,
        chunks,
    )
    if failed:
        raise PartialFanoutError(failed, total_recipients=recipients)
    return BroadcastResult(recipients=recipients, chunks=chunks)


def send_notification(
    session: Session,
    queue: DispatchQueue,
    *,
    user_id: int,
    content: NotificationContent,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> DispatchOutcome:
    """Admin send: global categories go to everyone, the rest to ``user_id``."""

    if content.category in GLOBAL_CATEGORIES:
        broadcast(session, queue, content=content, chunk_size=chunk_size)
        return DispatchOutcome.ACCEPTED
    return notify_user(session, queue, user_id=user_id, content=content)


__all__ = [
    "BroadcastResult",
    "DEFAULT_CHUNK_SIZE",
    "DispatchOutcome",
    "NotificationContent",
    "broadcast",
    "chunked",
    "notify_user",
    "send_notification",
]
