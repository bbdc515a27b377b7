"""Contract shared by every dispatch queue backend."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.domain.entities import DispatchJob


@dataclass(frozen=True)
class Lease:
    """A reserved job together with the backend handle needed to settle it."""

    job: DispatchJob
    receipt: str


@dataclass(frozen=True)
class DeadLetter:
    """A job that exhausted its attempts, kept for operator inspection."""

    job: DispatchJob
    reason: str
    failed_at: datetime


class DispatchQueue(Protocol):
    """Ordered, durable work queue between producers and delivery workers.

    Delivery is at-least-once: a reserved job that is neither acknowledged,
    retried nor dead-lettered within the lease timeout becomes visible again,
    after which settling the stale lease is a no-op. Every method raises
    :class:`~app.domain.exceptions.QueueUnavailableError` when the backend
    cannot be reached.
    """

    def enqueue(self, job: DispatchJob) -> None: ...

    def enqueue_bulk(self, jobs: Sequence[DispatchJob]) -> None: ...

    def reserve(self, timeout: float) -> Lease | None: ...

    def ack(self, lease: Lease) -> None: ...

    def retry(self, lease: Lease, *, delay: float) -> None: ...

    def dead_letter(self, lease: Lease, *, reason: str) -> None: ...

    def dead_letters(self, limit: int = 100) -> list[DeadLetter]: ...


__all__ = ["DeadLetter", "DispatchQueue", "Lease"]
