"""Consumer side of the dispatch pipeline: persist queued jobs and publish them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.domain.entities import DispatchJob, Notification
from app.domain.exceptions import PersistenceError, QueueUnavailableError
from app.infrastructure.notifications import RealtimeChannel, serialize_notification
from app.infrastructure.queue import DispatchQueue, Lease
from app.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_NAME = "notifications"


class DeliveryWorker:
    """Dequeue :class:`DispatchJob` items, store them and announce them live.

    Preferences are not evaluated here: direct jobs were filtered when they
    were enqueued and broadcast jobs are delivered to every recipient. Several
    workers may share one queue; each job is processed by whichever reserves it.
    """

    def __init__(
        self,
        queue: DispatchQueue,
        channel: RealtimeChannel,
        session_factory: Callable[[], Session],
        *,
        channel_name: str = DEFAULT_CHANNEL_NAME,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        poll_interval: float = 1.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._queue = queue
        self._channel = channel
        self._session_factory = session_factory
        self._channel_name = channel_name
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._poll_interval = poll_interval

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based), doubling every time."""

        return self._backoff_seconds * (2 ** max(attempt - 1, 0))

    def process_next(self, timeout: float = 0.0) -> bool:
        """Process a single job; return ``False`` when none arrived within ``timeout``."""

        lease = self._queue.reserve(timeout)
        if lease is None:
            return False

        job = lease.job
        if job.attempts >= self._max_attempts:
            self._dead_letter(lease, f"Exceeded {self._max_attempts} attempts")
            return True

        try:
            notification = self.deliver(job)
        except PersistenceError as exc:
            self._handle_failure(lease, exc)
            return True
        except Exception as exc:
            logger.exception("Unexpected error delivering job for user %s", job.user_id)
            self._handle_failure(lease, exc)
            return True

        self._queue.ack(lease)
        logger.info(
            "Notification %s saved and published for user %s", notification.id, job.user_id
        )
        return True

    def deliver(self, job: DispatchJob) -> Notification:
        """Persist ``job`` and publish the stored record; publish errors are only logged."""

        with self._session_factory() as session:
            notification, created = NotificationRepository(session).create_from_job(job)
        if not created:
            logger.info(
                "Job %s for user %s was already stored as notification %s",
                job.idempotency_key[:12],
                job.user_id,
                notification.id,
            )
        self._publish(notification)
        return notification

    def run_until_idle(self) -> int:
        """Process jobs until the queue has nothing ready; return how many were handled."""

        processed = 0
        while self.process_next(0.0):
            processed += 1
        return processed

    def run(self, stop_event: threading.Event) -> None:
        """Keep processing jobs until ``stop_event`` is set."""

        logger.info("Delivery worker started on channel %s", self._channel_name)
        while not stop_event.is_set():
            try:
                self.process_next(self._poll_interval)
            except QueueUnavailableError:
                logger.exception(
                    "Dispatch queue unavailable; retrying in %ss", self._poll_interval
                )
                stop_event.wait(self._poll_interval)
            except Exception:
                logger.exception("Delivery worker iteration failed; continuing")
                stop_event.wait(self._poll_interval)
        logger.info("Delivery worker stopped")

    def _publish(self, notification: Notification) -> None:
        try:
            self._channel.publish(self._channel_name, serialize_notification(notification))
        except Exception:
            # The row is stored; retrying the job would only duplicate it.
            logger.exception(
                "Failed to publish notification %s for user %s",
                notification.id,
                notification.user_id,
            )

    def _handle_failure(self, lease: Lease, exc: Exception) -> None:
        attempt = lease.job.attempts + 1
        if attempt >= self._max_attempts:
            self._dead_letter(lease, str(exc))
            return
        delay = self.backoff_delay(attempt)
        logger.warning(
            "Delivery attempt %s/%s for user %s failed (%s); retrying in %.1fs",
            attempt,
            self._max_attempts,
            lease.job.user_id,
            exc,
            delay,
        )
        self._queue.retry(lease, delay=delay)

    def _dead_letter(self, lease: Lease, reason: str) -> None:
        logger.error(
            "Dead-lettering notification job for user %s after %s attempts: %s",
            lease.job.user_id,
            lease.job.attempts + 1,
            reason,
        )
        self._queue.dead_letter(lease, reason=reason)


__all__ = ["DEFAULT_CHANNEL_NAME", "DeliveryWorker"]
