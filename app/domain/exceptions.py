"""Errors raised by the notification dispatch pipeline."""

from __future__ import annotations

from dataclasses import dataclass


class NotificationError(Exception):
    """Base class for every dispatch pipeline error."""


class NotFoundError(NotificationError, LookupError):
    """Raised when a notification or a user id is unknown."""


class ValidationError(NotificationError, ValueError):
    """Raised when a category, cursor or payload is malformed."""


class QueueUnavailableError(NotificationError):
    """Raised when the dispatch queue cannot accept work."""


class PersistenceError(NotificationError):
    """Raised by the delivery path when the notification store rejects a write."""


class NothingToClearError(NotificationError):
    """Raised when a user asks to clear an already empty inbox."""


@dataclass(frozen=True)
class FailedChunk:
    """Range of recipients (``start`` inclusive, ``end`` exclusive) that was not enqueued."""

    start: int
    end: int
    reason: str

    def describe(self) -> str:
        return f"[{self.start}, {self.end}): {self.reason}"


class PartialFanoutError(NotificationError):
    """Raised when some chunks of a broadcast could not be enqueued.

    Chunks enqueued before or after the failing ones stay queued.
    """

    def __init__(self, failed_chunks: list[FailedChunk], *, total_recipients: int) -> None:
        self.failed_chunks = list(failed_chunks)
        self.total_recipients = total_recipients
        ranges = "; ".join(chunk.describe() for chunk in self.failed_chunks)
        super().__init__(
            f"{len(self.failed_chunks)} fanout chunk(s) failed out of "
            f"{total_recipients} recipients: {ranges}"
        )


__all__ = [
    "FailedChunk",
    "NotFoundError",
    "NotificationError",
    "NothingToClearError",
    "PartialFanoutError",
    "PersistenceError",
    "QueueUnavailableError",
    "ValidationError",
]
